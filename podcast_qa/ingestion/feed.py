"""
RSS feed discovery.

Fetches the podcast feed, turns each <item> into an EpisodeMetadata record
and inserts the unseen ones. Only the fields the pipeline needs are read;
anything the feed does not carry is left empty.
"""

import logging
from datetime import datetime
from typing import Optional, Sequence

import requests
from bs4 import BeautifulSoup

from podcast_qa.db import EpisodeMetadata, PodcastStore
from podcast_qa.logger import log_function


logger = logging.getLogger("ingestion")

DESCRIPTION_MAX_CHARS = 1000


def parse_pub_date(value: str) -> Optional[datetime]:
    """Parse an RFC 822 pubDate, ignoring the trailing timezone."""
    try:
        without_tz = " ".join(value.split()[:-1])
        return datetime.strptime(without_tz, "%a, %d %b %Y %H:%M:%S")
    except (ValueError, IndexError):
        logger.warning(f"Could not parse date: {value!r}")
        return None


def _episode_number(item) -> Optional[int]:
    tag = item.find("itunes:episode")
    if tag is None:
        return None
    try:
        return int(tag.get_text(strip=True))
    except ValueError:
        return None


def parse_feed(content: bytes) -> list[EpisodeMetadata]:
    """Parse RSS XML into episode records, oldest first.

    Items without a title or without any identifier (guid or enclosure URL)
    are skipped. The episode number comes from <itunes:episode> when present,
    otherwise from the item's chronological position.
    """
    soup = BeautifulSoup(content, "xml")
    episodes = []

    for position, item in enumerate(reversed(soup.find_all("item")), start=1):
        title_tag = item.find("title")
        if not title_tag or not title_tag.get_text(strip=True):
            continue

        enclosure = item.find("enclosure")
        audio_url = enclosure["url"] if enclosure and enclosure.has_attr("url") else None

        guid_tag = item.find("guid")
        guid = guid_tag.get_text(strip=True) if guid_tag else ""
        guid = guid or audio_url
        if not guid:
            logger.warning(f"Skipping item without guid or enclosure: {title_tag.get_text(strip=True)}")
            continue

        date_tag = item.find("pubDate")
        published = parse_pub_date(date_tag.get_text(strip=True)) if date_tag else None

        description = None
        description_tag = item.find("description")
        if description_tag:
            text = BeautifulSoup(description_tag.get_text(strip=True), "html.parser").get_text()
            description = text[:DESCRIPTION_MAX_CHARS]

        episodes.append(
            EpisodeMetadata(
                guid=guid,
                title=title_tag.get_text(strip=True),
                episode_number=_episode_number(item) or position,
                published_date=published,
                audio_url=audio_url,
                description=description,
            )
        )

    return episodes


@log_function(logger_name="ingestion", log_execution_time=True)
def fetch_feed_episodes(feed_url: str, timeout: float = 30) -> list[EpisodeMetadata]:
    """
    Download the RSS feed and parse its episodes.

    Args:
        feed_url: RSS feed URL.
        timeout: Request timeout in seconds.

    Returns:
        list[EpisodeMetadata]: Episodes, oldest first.

    Raises:
        requests.RequestException: If the feed cannot be fetched.
    """
    logger.info(f"Fetching feed from {feed_url}...")
    response = requests.get(feed_url, timeout=timeout)
    response.raise_for_status()
    episodes = parse_feed(response.content)
    logger.info(f"Found {len(episodes)} episodes in feed")
    return episodes


@log_function(logger_name="ingestion", log_execution_time=True)
async def sync_to_database(
    store: PodcastStore, episodes: Sequence[EpisodeMetadata]
) -> dict[str, int]:
    """
    Insert feed episodes whose guid is not yet stored.

    Args:
        store: Storage collaborator.
        episodes: Episodes from fetch_feed_episodes.

    Returns:
        Dictionary with statistics:
        - processed: Episodes examined without error
        - added: New episodes inserted
        - skipped: Episodes already present
        - errors: Episodes that failed to insert
    """
    stats = {"processed": 0, "added": 0, "skipped": 0, "errors": 0}

    for metadata in episodes:
        try:
            _, created = await store.insert_episode(metadata)
        except Exception as e:
            logger.error(f"Error processing episode '{metadata.title}': {e}")
            stats["errors"] += 1
            continue

        if created:
            stats["added"] += 1
        else:
            logger.debug(f"Skipped '{metadata.title[:50]}' (already exists)")
            stats["skipped"] += 1
        stats["processed"] += 1

    logger.info(
        f"Sync done: {stats['added']} added, {stats['skipped']} skipped, {stats['errors']} errors"
    )
    return stats
