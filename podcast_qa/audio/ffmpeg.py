"""FFmpeg / FFprobe subprocess wrappers.

Both tools run as child processes through asyncio so the event loop stays free
while media is probed or cut. Missing binaries raise MediaToolMissingError,
non-zero exits raise MediaProbeError carrying the tool's stderr.
"""

import asyncio
import logging
from pathlib import Path

from podcast_qa.exceptions import MediaProbeError, MediaToolMissingError


logger = logging.getLogger("segmenter")


async def _run_tool(cmd: list[str], path: str) -> str:
    """Run an external media tool and return its stdout.

    Args:
        cmd: Full command line, tool name first.
        path: Media file the command operates on (used in error messages).

    Returns:
        str: Decoded standard output.

    Raises:
        MediaToolMissingError: If the executable is not on PATH.
        MediaProbeError: If the tool exits with a non-zero status.
    """
    logger.debug(f"Running: {' '.join(cmd)}")
    try:
        process = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except FileNotFoundError as e:
        raise MediaToolMissingError(cmd[0]) from e

    stdout, stderr = await process.communicate()
    if process.returncode != 0:
        message = stderr.decode(errors="replace").strip()[:500]
        raise MediaProbeError(path, f"{cmd[0]} failed (rc={process.returncode}): {message}")
    return stdout.decode(errors="replace")


async def probe_duration(path: str | Path) -> float:
    """Return the duration of an audio file in seconds using ffprobe.

    Raises:
        MediaProbeError: If the duration is missing, non-numeric or not positive.
    """
    path = str(path)
    output = await _run_tool(
        [
            "ffprobe",
            "-v", "error",
            "-show_entries", "format=duration",
            "-of", "default=noprint_wrappers=1:nokey=1",
            path,
        ],
        path,
    )
    raw = output.strip()
    try:
        duration = float(raw)
    except ValueError as e:
        raise MediaProbeError(path, f"unparsable duration '{raw}'") from e
    if duration <= 0:
        raise MediaProbeError(path, f"non-positive duration {duration}")
    return duration


async def extract_range(
    input_path: str | Path,
    output_path: str | Path,
    start: float,
    duration: float,
) -> None:
    """Stream-copy a time range of `input_path` into `output_path` (no re-encode)."""
    await _run_tool(
        [
            "ffmpeg", "-y", "-hide_banner", "-loglevel", "error",
            "-i", str(input_path),
            "-ss", f"{start:.3f}",
            "-t", f"{duration:.3f}",
            "-reset_timestamps", "1",
            "-c", "copy",
            str(output_path),
        ],
        str(input_path),
    )
