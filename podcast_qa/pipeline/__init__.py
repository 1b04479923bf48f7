"""
Podcast processing pipeline.

Per episode, in order:
    1. Audio download (podcast_qa.ingestion)
    2. Segmentation and transcription (podcast_qa.audio, podcast_qa.transcription)
    3. Chunking and embedding (podcast_qa.chunker, podcast_qa.embedder)
    4. Summary and guest extraction (podcast_qa.transcription.summarize)

Episodes are processed one at a time; within an episode, transcription
requests run concurrently.

Usage:
    python -m podcast_qa.pipeline --sync --limit 5

    from podcast_qa.pipeline import PipelineContext, run_pipeline
    summary = await run_pipeline(PipelineContext.from_config(config), limit=5)
"""

from .orchestrator import (
    STAGE_NAMES,
    filter_episodes,
    get_last_requested_stage,
    process_episode,
    run_pipeline,
    run_pipeline_from_config,
    run_sync_stage,
)
from .stages import (
    PipelineContext,
    advance_stage,
    chunk_transcript,
    mark_failed,
    run_download_stage,
    run_embed_stage,
    run_summarize_stage,
    run_transcribe_stage,
)

__all__ = [
    # Orchestration
    "STAGE_NAMES",
    "filter_episodes",
    "get_last_requested_stage",
    "process_episode",
    "run_pipeline",
    "run_pipeline_from_config",
    "run_sync_stage",
    # Stages
    "PipelineContext",
    "advance_stage",
    "chunk_transcript",
    "mark_failed",
    "run_download_stage",
    "run_embed_stage",
    "run_summarize_stage",
    "run_transcribe_stage",
]
