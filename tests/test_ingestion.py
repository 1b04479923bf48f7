"""Tests for feed parsing, feed sync and audio download."""

from datetime import datetime
from unittest.mock import MagicMock, patch

import requests

from conftest import episode_metadata, make_store, run
from podcast_qa.ingestion import (
    download_episode,
    fetch_feed_episodes,
    generate_filename,
    parse_feed,
    sanitize_filename,
    sync_to_database,
)
from podcast_qa.ingestion.feed import parse_pub_date

SAMPLE_FEED = b"""<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0" xmlns:itunes="http://www.itunes.com/dtds/podcast-1.0.dtd">
  <channel>
    <title>Hockey Talk</title>
    <item>
      <title>Trade Deadline Special</title>
      <guid>tag:hockey-talk,3</guid>
      <pubDate>Tue, 05 Mar 2024 10:00:00 +0000</pubDate>
      <itunes:episode>42</itunes:episode>
      <description><![CDATA[<p>All the <b>deadline</b> moves.</p>]]></description>
      <enclosure url="https://cdn.example.com/42.mp3" type="audio/mpeg"/>
    </item>
    <item>
      <title>Goalie Roundtable</title>
      <pubDate>not a date</pubDate>
      <enclosure url="https://cdn.example.com/goalies.mp3" type="audio/mpeg"/>
    </item>
    <item>
      <title>Season Preview</title>
      <guid>tag:hockey-talk,1</guid>
      <pubDate>Mon, 01 Jan 2024 08:30:00 GMT</pubDate>
    </item>
    <item>
      <title></title>
      <guid>tag:hockey-talk,untitled</guid>
    </item>
  </channel>
</rss>
"""


class TestParseFeed:
    def test_items_oldest_first(self):
        episodes = parse_feed(SAMPLE_FEED)

        assert [ep.title for ep in episodes] == [
            "Season Preview",
            "Goalie Roundtable",
            "Trade Deadline Special",
        ]

    def test_fields(self):
        preview, goalies, deadline = parse_feed(SAMPLE_FEED)

        assert deadline.guid == "tag:hockey-talk,3"
        assert deadline.episode_number == 42
        assert deadline.published_date == datetime(2024, 3, 5, 10, 0, 0)
        assert deadline.audio_url == "https://cdn.example.com/42.mp3"
        assert deadline.description == "All the deadline moves."

        assert goalies.guid == "https://cdn.example.com/goalies.mp3"
        assert goalies.published_date is None

        assert preview.audio_url is None

    def test_position_numbering_without_itunes_episode(self):
        preview, goalies, _ = parse_feed(SAMPLE_FEED)

        assert preview.episode_number == 2
        assert goalies.episode_number == 3

    def test_parse_pub_date(self):
        assert parse_pub_date("Mon, 01 Jan 2024 08:30:00 GMT") == datetime(2024, 1, 1, 8, 30)
        assert parse_pub_date("") is None


def test_fetch_feed_episodes_uses_requests():
    response = MagicMock(content=SAMPLE_FEED)
    with patch("podcast_qa.ingestion.feed.requests.get", return_value=response) as get:
        episodes = fetch_feed_episodes("https://feeds.example.com/hockey", timeout=5)

    get.assert_called_once_with("https://feeds.example.com/hockey", timeout=5)
    response.raise_for_status.assert_called_once()
    assert len(episodes) == 3


def test_sync_to_database_counts(tmp_path):
    async def scenario():
        store = make_store(tmp_path)
        await store.initialize()
        first = await sync_to_database(store, [episode_metadata(1), episode_metadata(2)])
        second = await sync_to_database(
            store, [episode_metadata(1), episode_metadata(2), episode_metadata(3)]
        )
        episodes = await store.list_episodes()
        await store.close()
        return first, second, episodes

    first, second, episodes = run(scenario())

    assert first == {"processed": 2, "added": 2, "skipped": 0, "errors": 0}
    assert second == {"processed": 3, "added": 1, "skipped": 2, "errors": 0}
    assert len(episodes) == 3


def test_sync_to_database_counts_insert_errors():
    store = MagicMock()

    async def insert_episode(metadata):
        raise RuntimeError("database is locked")

    store.insert_episode = insert_episode

    stats = run(sync_to_database(store, [episode_metadata(1)]))

    assert stats == {"processed": 0, "added": 0, "skipped": 0, "errors": 1}


class TestFilenames:
    def test_sanitize(self):
        assert sanitize_filename("Ep. 12: Trade Talk!  (Part 2)") == "ep_12_trade_talk_part_2"
        assert sanitize_filename("") == "unknown_episode"
        assert sanitize_filename("!!!") == "unknown_episode"

    def test_long_titles_cut_at_word_boundary(self):
        safe = sanitize_filename("word " * 40, max_length=22)
        assert safe == "word_word_word_word"

    def test_generate_filename(self):
        assert generate_filename(7, "Goalie Talk") == "e7_goalie_talk.mp3"


def _streaming_response(payload: bytes):
    response = MagicMock()
    response.__enter__.return_value = response
    response.iter_content.return_value = [payload]
    return response


class TestDownloadEpisode:
    def test_existing_file_is_not_downloaded(self, tmp_path):
        existing = tmp_path / "e1_first.mp3"
        existing.write_bytes(b"audio")

        with patch("podcast_qa.ingestion.audio_download.requests.get") as get:
            success, path = download_episode(1, "First", "https://x/1.mp3", str(tmp_path))

        assert success and path == str(existing)
        get.assert_not_called()

    def test_retries_after_network_error(self, tmp_path):
        responses = [
            requests.ConnectionError("reset"),
            _streaming_response(b"a" * 2048),
        ]
        with patch(
            "podcast_qa.ingestion.audio_download.requests.get", side_effect=responses
        ) as get, patch("podcast_qa.ingestion.audio_download.time.sleep") as sleep:
            success, path = download_episode(
                2, "Second", "https://x/2.mp3", str(tmp_path), min_bytes=1024
            )

        assert success
        assert path.endswith("e2_second.mp3")
        assert get.call_count == 2
        sleep.assert_called_once_with(1)

    def test_too_small_file_fails_and_is_removed(self, tmp_path):
        with patch(
            "podcast_qa.ingestion.audio_download.requests.get",
            side_effect=lambda *a, **kw: _streaming_response(b"tiny"),
        ), patch("podcast_qa.ingestion.audio_download.time.sleep"):
            success, path = download_episode(
                3, "Third", "https://x/3.mp3", str(tmp_path), max_retries=2
            )

        assert (success, path) == (False, "")
        assert not (tmp_path / "e3_third.mp3").exists()
