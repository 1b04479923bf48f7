"""Tests for stage selection and the per-episode pipeline."""

import threading
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from conftest import FakeEmbedder, episode_metadata, make_store, run
from podcast_qa.config import PodcastQAConfig
from podcast_qa.db import ProcessingStage
from podcast_qa.exceptions import MissingCredentialError
from podcast_qa.pipeline import (
    PipelineContext,
    filter_episodes,
    get_last_requested_stage,
    run_pipeline,
    run_sync_stage,
)
from podcast_qa.pipeline.__main__ import main as pipeline_main
from podcast_qa.pipeline.stages import chunk_timed_segments
from podcast_qa.query import RetrievalEngine
from podcast_qa.storage import LocalStorage
from podcast_qa.transcription import EpisodeSummary, Transcript, TranscriptRepository

TRANSCRIPT_TEXT = (
    "Welcome back to the show. Today we talk about the rocket launch. "
    "Later our guest explains her garden and the music she plays while digging. "
    "We close with finance tips and a long story about coffee."
)


def _config(tmp_path, **overrides):
    return PodcastQAConfig(
        embedding_dimension=8,
        chunk_size=20,
        chunk_overlap=5,
        audio_dir=str(tmp_path / "audio"),
        feed_url="https://feeds.example.com/show",
        **overrides,
    )


def _context(tmp_path, store, transcribe=None, summary=None):
    transcription = MagicMock()
    transcription.transcribe_audio_file = AsyncMock(
        side_effect=transcribe, return_value=TRANSCRIPT_TEXT
    )
    summarizer = MagicMock()
    summarizer.summarize = AsyncMock(
        return_value=summary or EpisodeSummary("A rocket and garden episode.", ["Ann Lee"])
    )
    return PipelineContext(
        config=_config(tmp_path),
        store=store,
        segmenter=MagicMock(),
        transcription=transcription,
        transcripts=TranscriptRepository(LocalStorage(str(tmp_path)), "transcripts"),
        embedder=FakeEmbedder(),
        summarizer=summarizer,
    )


def _fake_download(episode_number, title, url, workspace):
    return True, f"{workspace}/e{episode_number}.mp3"


def _episode(number, stage):
    return SimpleNamespace(episode_number=number, processing_stage=stage)


class TestSelection:
    def test_last_requested_stage(self):
        assert get_last_requested_stage(["download"]) == ProcessingStage.AUDIO_DOWNLOADED
        assert get_last_requested_stage(["embed", "transcribe"]) == ProcessingStage.EMBEDDED
        with pytest.raises(ValueError):
            get_last_requested_stage(["publish"])

    def test_filter_skips_completed_episodes(self):
        episodes = [
            _episode(1, ProcessingStage.SUMMARIZED),
            _episode(2, ProcessingStage.TRANSCRIBED),
            _episode(3, ProcessingStage.ERROR),
            _episode(4, ProcessingStage.SYNCED),
        ]

        selected = filter_episodes(episodes, target=ProcessingStage.EMBEDDED)
        assert [ep.episode_number for ep in selected] == [2, 3, 4]

        limited = filter_episodes(episodes, limit=1, target=ProcessingStage.EMBEDDED)
        assert [ep.episode_number for ep in limited] == [2]

        forced = filter_episodes(episodes, force=True)
        assert len(forced) == 4

    def test_explicit_numbers_win(self):
        episodes = [_episode(1, ProcessingStage.SUMMARIZED), _episode(2, ProcessingStage.SYNCED)]

        selected = filter_episodes(episodes, episode_numbers=[1])

        assert [ep.episode_number for ep in selected] == [1]


def test_full_pipeline_processes_every_stage(tmp_path):
    async def scenario():
        store = make_store(tmp_path)
        await store.initialize()
        await store.insert_episode(episode_metadata(1, "Rocket launch"))
        await store.insert_episode(episode_metadata(2, "Garden party"))
        ctx = _context(tmp_path, store)
        with patch("podcast_qa.pipeline.stages.download_episode", side_effect=_fake_download):
            summary = await run_pipeline(ctx)
        episodes = await store.list_episodes()
        chunks = await store.get_episode_chunks("guid-1")
        matches = await store.query_episodes_by_summary_similarity(
            await ctx.embedder.embed_query("rocket"), 0.1, 5
        )
        await store.close()
        return ctx, summary, episodes, chunks, matches

    ctx, summary, episodes, chunks, matches = run(scenario())

    assert summary["selected"] == 2
    assert summary["succeeded"] == 2 and summary["failed"] == 0
    assert all(ep.processing_stage == ProcessingStage.SUMMARIZED for ep in episodes)
    assert episodes[0].audio_file_path.endswith("e1.mp3")
    assert episodes[0].guest_list == ["Ann Lee"]
    assert len(chunks) > 1
    assert any("rocket" in chunk for chunk in chunks)
    assert {match.episode_number for match in matches} == {1, 2}
    assert ctx.transcripts.load(1).transcript == TRANSCRIPT_TEXT


def test_failing_episode_is_marked_and_run_continues(tmp_path):
    async def transcribe(audio_path, segmenter):
        if audio_path.endswith("e1.mp3"):
            raise RuntimeError("provider returned 500")
        return TRANSCRIPT_TEXT

    async def scenario():
        store = make_store(tmp_path)
        await store.initialize()
        await store.insert_episode(episode_metadata(1))
        await store.insert_episode(episode_metadata(2))
        ctx = _context(tmp_path, store, transcribe=transcribe)
        with patch("podcast_qa.pipeline.stages.download_episode", side_effect=_fake_download):
            summary = await run_pipeline(ctx)
        failed = await store.find_episode_by_guid("guid-1")
        done = await store.find_episode_by_guid("guid-2")
        await store.close()
        return summary, failed, done

    summary, failed, done = run(scenario())

    assert summary["succeeded"] == 1 and summary["failed"] == 1
    assert summary["errors"][1].startswith("transcribe: Transcription failed")
    assert failed.processing_stage == ProcessingStage.ERROR
    assert "provider returned 500" in failed.error_message
    assert done.processing_stage == ProcessingStage.SUMMARIZED


def test_existing_transcript_is_not_transcribed_again(tmp_path):
    async def scenario():
        store = make_store(tmp_path)
        await store.initialize()
        await store.insert_episode(episode_metadata(1))
        ctx = _context(tmp_path, store)
        ctx.transcripts.save(1, Transcript(guid="guid-1", title="Episode 1", transcript="saved"))
        summary = await run_pipeline(ctx, stages=["transcribe"])
        episode = await store.find_episode_by_guid("guid-1")
        await store.close()
        return ctx, summary, episode

    ctx, summary, episode = run(scenario())

    assert summary["succeeded"] == 1
    ctx.transcription.transcribe_audio_file.assert_not_called()
    assert episode.processing_stage == ProcessingStage.TRANSCRIBED


def test_existing_transcript_check_runs_off_the_event_loop(tmp_path):
    class RecordingRepository(TranscriptRepository):
        def __init__(self, *args):
            super().__init__(*args)
            self.threads = []

        def exists(self, episode_number):
            self.threads.append(threading.get_ident())
            return super().exists(episode_number)

    async def scenario():
        store = make_store(tmp_path)
        await store.initialize()
        await store.insert_episode(episode_metadata(1))
        ctx = _context(tmp_path, store)
        ctx.transcripts = RecordingRepository(LocalStorage(str(tmp_path)), "transcripts")
        ctx.transcripts.save(1, Transcript(guid="guid-1", title="Episode 1", transcript="saved"))
        summary = await run_pipeline(ctx, stages=["transcribe"])
        await store.close()
        return ctx, summary

    ctx, summary = run(scenario())

    assert summary["succeeded"] == 1
    assert ctx.transcripts.threads
    assert threading.main_thread().ident not in ctx.transcripts.threads


def test_malformed_summary_still_completes_episode(tmp_path):
    async def scenario():
        store = make_store(tmp_path)
        await store.initialize()
        await store.insert_episode(episode_metadata(1))
        ctx = _context(tmp_path, store, summary=EpisodeSummary("", ["Ann Lee"]))
        ctx.transcripts.save(1, Transcript(guid="guid-1", title="Episode 1", transcript="text"))
        summary = await run_pipeline(ctx, stages=["summarize"])
        episode = await store.find_episode_by_guid("guid-1")
        matches = await store.query_episodes_by_summary_similarity(
            await ctx.embedder.embed_query("rocket"), 0.0, 5
        )
        await store.close()
        return ctx, summary, episode, matches

    ctx, summary, episode, matches = run(scenario())

    assert summary["failed"] == 0 and summary["succeeded"] == 1
    assert episode.processing_stage == ProcessingStage.SUMMARIZED
    assert episode.guest_list == ["Ann Lee"]
    assert not episode.summary
    assert matches == []
    # only the query was embedded; the empty summary got no vector
    assert ctx.embedder.calls == [["rocket"]]


def test_summary_request_error_fails_the_stage(tmp_path):
    async def scenario():
        store = make_store(tmp_path)
        await store.initialize()
        await store.insert_episode(episode_metadata(1))
        ctx = _context(tmp_path, store)
        ctx.summarizer.summarize.side_effect = RuntimeError("rate limited")
        ctx.transcripts.save(1, Transcript(guid="guid-1", title="Episode 1", transcript="text"))
        summary = await run_pipeline(ctx, stages=["summarize"])
        episode = await store.find_episode_by_guid("guid-1")
        await store.close()
        return summary, episode

    summary, episode = run(scenario())

    assert summary["failed"] == 1
    assert episode.processing_stage == ProcessingStage.ERROR
    assert "rate limited" in episode.error_message


CAPTION_SEGMENTS = [
    {"start": 0, "duration": 4, "text": "Kirk: the rocket launch was loud"},
    {"start": 4, "duration": 3, "text": "and the rocket landed again"},
    {"start": 7, "duration": 5, "text": "Ann: my garden needs rain"},
]


class TestSpeakerChunks:
    def test_caption_segments_flow_into_stored_chunks(self, tmp_path):
        async def scenario():
            store = make_store(tmp_path)
            await store.initialize()
            await store.insert_episode(episode_metadata(1))
            ctx = _context(tmp_path, store)
            ctx.transcripts.save_segments(1, CAPTION_SEGMENTS)
            summary = await run_pipeline(ctx, stages=["transcribe", "embed"], speaker=True)
            episode = await store.find_episode_by_guid("guid-1")
            chunks = await store.get_episode_chunks("guid-1")
            results = await RetrievalEngine(store, ctx.embedder).find_relevant_content("rocket")
            await store.close()
            return ctx, summary, episode, chunks, results

        ctx, summary, episode, chunks, results = run(scenario())

        assert summary["succeeded"] == 1
        assert episode.processing_stage == ProcessingStage.EMBEDDED
        ctx.transcription.transcribe_audio_file.assert_not_called()
        assert ctx.transcripts.load(1).transcript.startswith("the rocket launch was loud")
        assert chunks == ["the rocket launch was loud and the rocket landed again", "my garden needs rain"]

        top = results[0]
        assert top["content"] == chunks[0]
        assert top["speaker"] == "Kirk"
        assert top["start_time"] == 0.0
        assert top["end_time"] == 7.0
        assert all(result["speaker"] != "Ann" for result in results)

    def test_speaker_budget_comes_from_config(self, tmp_path):
        config = _config(tmp_path, speaker_chunk_max_tokens=6)
        chunks = chunk_timed_segments(CAPTION_SEGMENTS, config)

        assert [chunk.speaker for chunk in chunks] == ["Kirk", "Kirk", "Ann"]
        assert [(chunk.start_time, chunk.end_time) for chunk in chunks] == [
            (0.0, 4.0),
            (4.0, 7.0),
            (7.0, 12.0),
        ]

    def test_missing_segments_fail_the_embed_stage(self, tmp_path):
        async def scenario():
            store = make_store(tmp_path)
            await store.initialize()
            await store.insert_episode(episode_metadata(1))
            ctx = _context(tmp_path, store)
            ctx.transcripts.save(1, Transcript(guid="guid-1", title="Episode 1", transcript="text"))
            summary = await run_pipeline(ctx, stages=["embed"], speaker=True)
            await store.close()
            return summary

        summary = run(scenario())

        assert summary["failed"] == 1
        assert summary["errors"][1] == "embed: No timed segments for speaker chunking"

    def test_cli_rejects_semantic_with_speaker_chunks(self):
        assert pipeline_main(["--semantic", "--speaker-chunks"]) == 2


def test_missing_credentials_stop_the_run(tmp_path):
    async def scenario():
        store = make_store(tmp_path)
        await store.initialize()
        await store.insert_episode(episode_metadata(1))
        ctx = _context(tmp_path, store)
        ctx.summarizer.summarize.side_effect = MissingCredentialError("OPENAI_API_KEY")
        ctx.transcripts.save(1, Transcript(guid="guid-1", title="Episode 1", transcript="text"))
        try:
            await run_pipeline(ctx, stages=["summarize"])
        finally:
            await store.close()

    with pytest.raises(MissingCredentialError):
        run(scenario())


def test_sync_stage_inserts_feed_episodes(tmp_path):
    async def scenario():
        store = make_store(tmp_path)
        await store.initialize()
        ctx = _context(tmp_path, store)
        with patch(
            "podcast_qa.pipeline.orchestrator.fetch_feed_episodes",
            return_value=[episode_metadata(1), episode_metadata(2)],
        ) as fetch:
            stats = await run_sync_stage(ctx)
        await store.close()
        return fetch, stats

    fetch, stats = run(scenario())

    fetch.assert_called_once_with("https://feeds.example.com/show")
    assert stats["added"] == 2


def test_sync_stage_requires_feed_url(tmp_path):
    ctx = SimpleNamespace(config=PodcastQAConfig(), store=MagicMock())

    with pytest.raises(ValueError):
        run(run_sync_stage(ctx))
