#!/usr/bin/env python3
"""
CLI interface for the podcast processing pipeline.

Stages, in order:
    download    Audio file downloaded
    transcribe  Segmented, transcribed, transcript artifact saved
                (built from eN_segments.json captions when present)
    embed       Transcript chunked, chunks and vectors stored
    summarize   Summary, guests and summary vector stored

Usage:
    python -m podcast_qa.pipeline --sync --limit 5
    python -m podcast_qa.pipeline --episode-number 12 15 --force
    python -m podcast_qa.pipeline --stages transcribe,embed --semantic
    python -m podcast_qa.pipeline --stages embed --speaker-chunks --force
"""

import argparse
import asyncio
import logging
import sys
from typing import List

from podcast_qa.config import PodcastQAConfig
from podcast_qa.exceptions import MediaToolMissingError, MissingCredentialError
from podcast_qa.logger import setup_logging
from .orchestrator import STAGE_NAMES, run_pipeline_from_config


LOGGER_NAMES = (
    "pipeline",
    "ingestion",
    "segmenter",
    "transcription",
    "chunker",
    "embedder",
    "summarizer",
    "database",
    "qdrant_client",
)


def validate_stages(stage_names: List[str]) -> tuple[List[str], List[str]]:
    """Split stage names into (valid, invalid)."""
    valid = [name for name in stage_names if name in STAGE_NAMES]
    invalid = [name for name in stage_names if name not in STAGE_NAMES]
    return valid, invalid


def parse_arguments(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Podcast processing pipeline: download, transcribe, embed and summarize episodes",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Available stages: {', '.join(STAGE_NAMES)}

Without --episode-number, episodes that have not reached the last requested
stage are processed, oldest first, up to --limit.
""",
    )
    parser.add_argument("--sync", action="store_true", help="Fetch the RSS feed before processing")
    parser.add_argument(
        "--episode-number",
        type=int,
        nargs="+",
        metavar="N",
        help="Process specific episode number(s)",
    )
    parser.add_argument("--limit", type=int, help="Maximum number of episodes to process")
    parser.add_argument(
        "--stages",
        type=lambda value: [name.strip() for name in value.split(",") if name.strip()],
        help="Comma-separated stages to run (default: all)",
    )
    parser.add_argument("--semantic", action="store_true", help="Use semantic chunking")
    parser.add_argument(
        "--speaker-chunks",
        action="store_true",
        help="Chunk timed caption segments by speaker turn",
    )
    parser.add_argument("--force", action="store_true", help="Re-run stages whose output exists")
    parser.add_argument("--verbose", "-v", action="store_true", help="Log to console")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_arguments(argv)

    if args.stages:
        _, invalid = validate_stages(args.stages)
        if invalid:
            print(f"✗ Unknown stage(s): {', '.join(invalid)}", file=sys.stderr)
            print(f"  Available: {', '.join(STAGE_NAMES)}", file=sys.stderr)
            return 2
    if args.semantic and args.speaker_chunks:
        print("✗ Cannot combine --semantic and --speaker-chunks", file=sys.stderr)
        return 2
    if args.episode_number and args.limit:
        print("✗ Cannot combine --episode-number and --limit", file=sys.stderr)
        return 2

    config = PodcastQAConfig.from_env()
    errors = config.validate()
    if errors:
        for error in errors:
            print(f"✗ Invalid configuration: {error}", file=sys.stderr)
        return 2

    for name in LOGGER_NAMES:
        setup_logging(name, f"{config.log_dir}/{name}.log", verbose=args.verbose)
    logger = logging.getLogger("pipeline")

    try:
        summary = asyncio.run(
            run_pipeline_from_config(
                config,
                episode_numbers=args.episode_number,
                limit=args.limit,
                stages=args.stages,
                sync=args.sync,
                semantic=args.semantic,
                speaker=args.speaker_chunks,
                force=args.force,
            )
        )
    except (MissingCredentialError, MediaToolMissingError) as e:
        print(f"✗ {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nInterrupted by user", file=sys.stderr)
        return 130
    except Exception as e:
        logger.error(f"Pipeline failed: {e}", exc_info=True)
        print(f"✗ Pipeline failed: {e}", file=sys.stderr)
        return 1

    print(
        f"✓ {summary['succeeded']} episode(s) processed, {summary['failed']} failed "
        f"(of {summary['selected']} selected)"
    )
    for number, error in summary["errors"].items():
        print(f"  ✗ Episode {number}: {error}")
    return 0 if summary["failed"] == 0 else 1


if __name__ == "__main__":
    sys.exit(main())
