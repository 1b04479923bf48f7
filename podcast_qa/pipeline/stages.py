"""
Pipeline stage functions.

Each stage processes one episode and reports a result dictionary
{"success", "error", ...}. A stage failure is recorded on the episode row
(processing_stage=error, error_message) by the orchestrator; it never stops
other episodes. Shared-setup failures (missing credentials, missing ffmpeg)
are raised.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from podcast_qa.audio import AudioSegmenter
from podcast_qa.chunker import (
    SpeakerChunk,
    chunk_speaker_turns,
    create_overlapping_chunks,
    create_semantic_chunks,
)
from podcast_qa.config import PodcastQAConfig
from podcast_qa.db import Episode, PodcastStore, ProcessingStage
from podcast_qa.embedder import EmbeddingGenerator, embed_episode_chunks, embed_summary
from podcast_qa.exceptions import EmbeddingBatchFailure, MediaToolMissingError
from podcast_qa.ingestion import download_episode
from podcast_qa.llm import get_openai_async_client
from podcast_qa.logger import log_function
from podcast_qa.storage import get_storage
from podcast_qa.transcription import (
    EpisodeSummarizer,
    OpenAITranscriber,
    Transcript,
    TranscriptionOrchestrator,
    TranscriptRepository,
    normalize_timed_segments,
)


logger = logging.getLogger("pipeline")


@dataclass
class PipelineContext:
    """Collaborators shared by every stage of a run."""

    config: PodcastQAConfig
    store: PodcastStore
    segmenter: AudioSegmenter
    transcription: TranscriptionOrchestrator
    transcripts: TranscriptRepository
    embedder: EmbeddingGenerator
    summarizer: EpisodeSummarizer

    @classmethod
    def from_config(
        cls, config: PodcastQAConfig, store: Optional[PodcastStore] = None
    ) -> "PipelineContext":
        """Build every collaborator from the configuration.

        Raises:
            MissingCredentialError: If OPENAI_API_KEY is not configured.
        """
        client = get_openai_async_client(config)
        return cls(
            config=config,
            store=store or PodcastStore.from_config(config),
            segmenter=AudioSegmenter.from_config(config),
            transcription=TranscriptionOrchestrator(
                OpenAITranscriber.from_config(client, config),
                max_workers=config.max_transcription_workers,
            ),
            transcripts=TranscriptRepository(get_storage(config), config.transcripts_dir),
            embedder=EmbeddingGenerator.from_config(client, config),
            summarizer=EpisodeSummarizer.from_config(client, config),
        )


def _result(success: bool = False, error: Optional[str] = None, **extra: Any) -> Dict[str, Any]:
    return {"success": success, "error": error, **extra}


async def advance_stage(store: PodcastStore, guid: str, stage: ProcessingStage) -> None:
    """Move an episode forward to `stage`; never moves it backwards."""
    episode = await store.find_episode_by_guid(guid)
    if episode is None:
        return
    current = ProcessingStage(episode.processing_stage)
    if current is ProcessingStage.ERROR or not current.reached(stage):
        await store.update_episode(guid, processing_stage=stage, error_message=None)


async def mark_failed(store: PodcastStore, guid: str, message: str) -> None:
    await store.update_episode(
        guid, processing_stage=ProcessingStage.ERROR, error_message=message[:1000]
    )


@log_function(logger_name="pipeline", log_execution_time=True)
async def run_download_stage(
    ctx: PipelineContext, episode: Episode, force: bool = False
) -> Dict[str, Any]:
    """Download the episode's audio file.

    Returns:
        dict: {"success", "error", "audio_path"}
    """
    if episode.audio_file_path and not force:
        logger.info(f"Episode {episode.episode_number}: audio already at {episode.audio_file_path}")
        return _result(True, audio_path=episode.audio_file_path)
    if not episode.audio_url:
        return _result(error="Episode has no audio URL")

    success, path = await asyncio.to_thread(
        download_episode,
        episode.episode_number,
        episode.title,
        episode.audio_url,
        ctx.config.audio_dir,
    )
    if not success:
        return _result(error=f"Audio download failed for {episode.audio_url}")

    await ctx.store.update_episode(episode.guid, audio_file_path=path)
    await advance_stage(ctx.store, episode.guid, ProcessingStage.AUDIO_DOWNLOADED)
    episode.audio_file_path = path
    return _result(True, audio_path=path)


@log_function(logger_name="pipeline", log_execution_time=True)
async def run_transcribe_stage(
    ctx: PipelineContext, episode: Episode, force: bool = False
) -> Dict[str, Any]:
    """Produce the transcript artifact of an episode.

    An existing artifact is reused unless `force` is set, so the provider is
    never paid twice for the same episode. An episode with timed caption
    segments gets its transcript from the captions instead of the audio.

    Returns:
        dict: {"success", "error", "transcript_path", "skipped", "source"}
    """
    number = episode.episode_number
    if not force and await asyncio.to_thread(ctx.transcripts.exists, number):
        logger.info(f"Episode {number}: transcript already exists, skipping")
        await advance_stage(ctx.store, episode.guid, ProcessingStage.TRANSCRIBED)
        return _result(True, transcript_path=episode.transcript_path, skipped=True)

    segments = await asyncio.to_thread(ctx.transcripts.load_segments, number)
    if segments is not None:
        text = " ".join(turn.text for turn in normalize_timed_segments(segments))
        source = "captions"
        logger.info(f"Episode {number}: transcript built from {len(segments)} caption segments")
    elif not episode.audio_file_path:
        return _result(error="No audio file; run the download stage first")
    else:
        try:
            text = await ctx.transcription.transcribe_audio_file(
                episode.audio_file_path, ctx.segmenter
            )
        except MediaToolMissingError:
            raise
        except Exception as e:
            return _result(error=f"Transcription failed: {e}")
        source = "audio"

    if not text.strip():
        return _result(error="Transcription produced no text")

    location = await asyncio.to_thread(
        ctx.transcripts.save,
        number,
        Transcript(guid=episode.guid, title=episode.title, transcript=text),
    )
    await ctx.store.update_episode(episode.guid, transcript_path=location)
    await advance_stage(ctx.store, episode.guid, ProcessingStage.TRANSCRIBED)
    return _result(
        True, transcript_path=location, skipped=False, source=source, characters=len(text)
    )


def chunk_transcript(text: str, config: PodcastQAConfig, semantic: bool = False) -> list[str]:
    chunker = create_semantic_chunks if semantic else create_overlapping_chunks
    return chunker(
        text,
        chunk_size=config.chunk_size,
        overlap_size=config.chunk_overlap,
        encoding_name=config.encoding_name,
    )


def chunk_timed_segments(segments: list[dict], config: PodcastQAConfig) -> list[SpeakerChunk]:
    """Normalize caption segments into speaker turns and chunk them by speaker."""
    return chunk_speaker_turns(
        normalize_timed_segments(segments),
        max_tokens=config.speaker_chunk_max_tokens,
        encoding_name=config.encoding_name,
    )


async def _load_transcript(ctx: PipelineContext, episode: Episode) -> Optional[Transcript]:
    return await asyncio.to_thread(ctx.transcripts.load, episode.episode_number)


async def _chunk_episode(
    ctx: PipelineContext, episode: Episode, semantic: bool, speaker: bool
) -> tuple[Optional[list], str]:
    """Return (chunks, strategy name), or (None, error message)."""
    if speaker:
        try:
            segments = await asyncio.to_thread(ctx.transcripts.load_segments, episode.episode_number)
        except ValueError as e:
            return None, str(e)
        if segments is None:
            return None, "No timed segments for speaker chunking"
        return chunk_timed_segments(segments, ctx.config), "speaker"

    transcript = await _load_transcript(ctx, episode)
    if transcript is None:
        return None, "No transcript; run the transcribe stage first"
    chunks = chunk_transcript(transcript.transcript, ctx.config, semantic=semantic)
    return chunks, "semantic" if semantic else "fixed-window"


@log_function(logger_name="pipeline", log_execution_time=True)
async def run_embed_stage(
    ctx: PipelineContext, episode: Episode, semantic: bool = False, speaker: bool = False
) -> Dict[str, Any]:
    """Chunk the transcript and store chunks with their vectors.

    With `speaker`, the timed caption segments are chunked by speaker turn and
    every chunk keeps its speaker and time range. Previously stored chunks of
    the episode are replaced.

    Returns:
        dict: {"success", "error", "chunks", "inserted", "failed", "replaced"}
    """
    chunks, strategy = await _chunk_episode(ctx, episode, semantic, speaker)
    if chunks is None:
        return _result(error=strategy)
    logger.info(f"Episode {episode.episode_number}: {len(chunks)} {strategy} chunk(s)")

    try:
        stored = await embed_episode_chunks(ctx.store, ctx.embedder, episode, chunks)
    except EmbeddingBatchFailure as e:
        return _result(error=str(e))

    counts = {key: stored[key] for key in ("inserted", "failed", "replaced")}
    if not stored["success"]:
        return _result(error=stored["error"] or "No chunk stored", chunks=len(chunks), **counts)

    await advance_stage(ctx.store, episode.guid, ProcessingStage.EMBEDDED)
    return _result(True, chunks=len(chunks), **counts)


@log_function(logger_name="pipeline", log_execution_time=True)
async def run_summarize_stage(ctx: PipelineContext, episode: Episode) -> Dict[str, Any]:
    """Summarize the transcript, extract guests and store the summary vector.

    A malformed answer is stored as it degraded (possibly an empty summary,
    which gets no vector); only a failing request fails the stage.

    Returns:
        dict: {"success", "error", "guests", "empty_summary"}
    """
    transcript = await _load_transcript(ctx, episode)
    if transcript is None:
        return _result(error="No transcript; run the transcribe stage first")

    summary = await ctx.summarizer.summarize(transcript.transcript, episode.title)
    if not summary.summary:
        logger.warning(
            f"Episode {episode.episode_number}: empty summary, "
            f"storing {len(summary.guests)} guest(s) without a summary vector"
        )

    vector = await embed_summary(ctx.embedder, summary.summary)
    await ctx.store.update_episode_summary(
        episode.guid, summary.summary, summary.guests, embedding=vector
    )
    await advance_stage(ctx.store, episode.guid, ProcessingStage.SUMMARIZED)
    return _result(True, guests=summary.guests, empty_summary=not summary.summary)
