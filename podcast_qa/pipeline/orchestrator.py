import asyncio
import logging
from typing import Any, Dict, Optional, Sequence

from podcast_qa.db import Episode, PodcastStore, ProcessingStage
from podcast_qa.exceptions import MediaToolMissingError, MissingCredentialError
from podcast_qa.ingestion import fetch_feed_episodes, sync_to_database
from podcast_qa.logger import log_function
from .stages import (
    PipelineContext,
    mark_failed,
    run_download_stage,
    run_embed_stage,
    run_summarize_stage,
    run_transcribe_stage,
)


logger = logging.getLogger("pipeline")

STAGE_NAMES = ("download", "transcribe", "embed", "summarize")

ARG_TO_PROCESSING_STAGE = {
    "download": ProcessingStage.AUDIO_DOWNLOADED,
    "transcribe": ProcessingStage.TRANSCRIBED,
    "embed": ProcessingStage.EMBEDDED,
    "summarize": ProcessingStage.SUMMARIZED,
}


def get_last_requested_stage(stages: Sequence[str]) -> ProcessingStage:
    """Return the furthest processing stage among the requested stage names."""
    order = ProcessingStage.ordered()
    requested = [ARG_TO_PROCESSING_STAGE[name] for name in stages if name in ARG_TO_PROCESSING_STAGE]
    if not requested:
        raise ValueError(f"No valid stage in {list(stages)}; choose from {STAGE_NAMES}")
    return max(requested, key=order.index)


def filter_episodes(
    episodes: Sequence[Episode],
    episode_numbers: Optional[Sequence[int]] = None,
    limit: Optional[int] = None,
    target: ProcessingStage = ProcessingStage.SUMMARIZED,
    force: bool = False,
) -> list[Episode]:
    """
    Select the episodes a run should process.

    Explicitly numbered episodes are always selected. Otherwise episodes that
    have not reached `target` are selected (all of them with `force`), up to
    `limit`.
    """
    if episode_numbers:
        wanted = set(episode_numbers)
        return [ep for ep in episodes if ep.episode_number in wanted]

    selected = [
        ep
        for ep in episodes
        if force or not ProcessingStage(ep.processing_stage).reached(target)
    ]
    if limit is not None and limit > 0:
        selected = selected[:limit]
    return selected


async def run_sync_stage(ctx: PipelineContext) -> Dict[str, int]:
    """Fetch the feed and insert unseen episodes."""
    feed_url = ctx.config.feed_url
    if not feed_url:
        raise ValueError("PODCAST_FEED_URL is not configured")
    episodes = await asyncio.to_thread(fetch_feed_episodes, feed_url)
    return await sync_to_database(ctx.store, episodes)


async def process_episode(
    ctx: PipelineContext,
    episode: Episode,
    stages: Sequence[str] = STAGE_NAMES,
    semantic: bool = False,
    speaker: bool = False,
    force: bool = False,
) -> Dict[str, Any]:
    """
    Run the requested stages on one episode, in pipeline order.

    The first failing stage stops the episode and is recorded on its row.

    Returns:
        dict: {"success", "error", "stages": {stage name: stage result}}
    """
    results: Dict[str, Any] = {}
    for name in STAGE_NAMES:
        if name not in stages:
            continue
        if name == "download":
            result = await run_download_stage(ctx, episode, force=force)
        elif name == "transcribe":
            result = await run_transcribe_stage(ctx, episode, force=force)
        elif name == "embed":
            result = await run_embed_stage(ctx, episode, semantic=semantic, speaker=speaker)
        else:
            result = await run_summarize_stage(ctx, episode)
        results[name] = result

        if not result["success"]:
            message = f"{name}: {result['error']}"
            logger.error(f"Episode {episode.episode_number} failed at {message}")
            await mark_failed(ctx.store, episode.guid, message)
            return {"success": False, "error": message, "stages": results}

    return {"success": True, "error": None, "stages": results}


@log_function(logger_name="pipeline", log_execution_time=True)
async def run_pipeline(
    ctx: PipelineContext,
    episode_numbers: Optional[Sequence[int]] = None,
    limit: Optional[int] = None,
    stages: Optional[Sequence[str]] = None,
    sync: bool = False,
    semantic: bool = False,
    speaker: bool = False,
    force: bool = False,
) -> Dict[str, Any]:
    """
    Process episodes one at a time through the requested stages.

    A failing episode is logged, marked as error and counted; the run moves on
    to the next one. Missing credentials and missing media tools stop the run.

    Args:
        ctx: Shared collaborators.
        episode_numbers: Process exactly these episodes.
        limit: Maximum number of episodes to process.
        stages: Stage names (default: all of STAGE_NAMES).
        sync: Fetch the feed before processing.
        semantic: Use semantic chunking instead of fixed windows.
        speaker: Chunk timed caption segments by speaker turn.
        force: Re-run stages whose output already exists.

    Returns:
        dict: {"synced", "selected", "succeeded", "failed", "errors"}
    """
    stages = list(stages or STAGE_NAMES)
    target = get_last_requested_stage(stages)
    summary: Dict[str, Any] = {
        "synced": None,
        "selected": 0,
        "succeeded": 0,
        "failed": 0,
        "errors": {},
    }

    logger.info("=== PIPELINE STARTED ===")
    await ctx.store.initialize()

    if sync:
        summary["synced"] = await run_sync_stage(ctx)

    episodes = filter_episodes(
        await ctx.store.list_episodes(),
        episode_numbers=episode_numbers,
        limit=limit,
        target=target,
        force=force,
    )
    summary["selected"] = len(episodes)
    logger.info(f"{len(episodes)} episode(s) to process through {', '.join(stages)}")

    for episode in episodes:
        if episode.episode_number is None:
            logger.warning(f"Skipping episode {episode.guid}: no episode number")
            continue
        try:
            result = await process_episode(
                ctx, episode, stages, semantic=semantic, speaker=speaker, force=force
            )
        except (MissingCredentialError, MediaToolMissingError):
            raise
        except Exception as e:
            logger.error(f"Episode {episode.episode_number} failed: {e}", exc_info=True)
            await mark_failed(ctx.store, episode.guid, str(e))
            result = {"success": False, "error": str(e)}

        if result["success"]:
            summary["succeeded"] += 1
        else:
            summary["failed"] += 1
            summary["errors"][episode.episode_number] = result["error"]

    logger.info(
        f"=== PIPELINE COMPLETED: {summary['succeeded']} succeeded, {summary['failed']} failed ==="
    )
    return summary


async def run_pipeline_from_config(config, store: Optional[PodcastStore] = None, **options) -> Dict[str, Any]:
    """Build a context from `config`, run the pipeline and close the store."""
    ctx = PipelineContext.from_config(config, store=store)
    try:
        return await run_pipeline(ctx, **options)
    finally:
        await ctx.store.close()
