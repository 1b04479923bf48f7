"""
Audio segmentation under transcription provider limits.

An episode file that exceeds the provider's per-request byte size or duration
ceiling is cut into equal-duration segments by timestamp. Segment count is
max(ceil(size / max_size), ceil(duration / max_duration)); boundaries ignore
speech and silence, and segments are stream-copied so the codec is preserved.
A file already within both limits is copied into the working directory as a
single segment.
"""

import asyncio
import logging
import math
import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from podcast_qa.config import PodcastQAConfig
from podcast_qa.exceptions import MediaProbeError
from podcast_qa.logger import log_function
from .ffmpeg import extract_range, probe_duration


logger = logging.getLogger("segmenter")


@dataclass
class AudioSegment:
    """A time-bounded slice of an episode's audio, removed after transcription."""

    index: int
    path: str
    start_seconds: float
    duration_seconds: float

    @property
    def end_seconds(self) -> float:
        return self.start_seconds + self.duration_seconds


def plan_segments(
    size_bytes: int,
    duration_seconds: float,
    max_size_bytes: int,
    max_duration_seconds: float,
) -> list[tuple[float, float]]:
    """Compute (start, duration) windows covering the whole file.

    Windows are contiguous and equal-length; the last one absorbs float
    rounding so the windows end exactly at `duration_seconds`.

    Args:
        size_bytes: Source file size.
        duration_seconds: Source duration.
        max_size_bytes: Provider byte limit per request.
        max_duration_seconds: Provider duration limit per request.

    Returns:
        list[tuple[float, float]]: One (start, duration) pair per segment.
    """
    if size_bytes <= max_size_bytes and duration_seconds <= max_duration_seconds:
        return [(0.0, duration_seconds)]

    count = max(
        math.ceil(size_bytes / max_size_bytes),
        math.ceil(duration_seconds / max_duration_seconds),
    )
    window = min(duration_seconds / count, max_duration_seconds)

    windows = []
    for i in range(count):
        start = i * window
        length = duration_seconds - start if i == count - 1 else window
        windows.append((start, length))
    return windows


class AudioSegmenter:
    """Split episode audio into provider-sized segments.

    Args:
        max_size_bytes: Maximum bytes per segment.
        max_duration_seconds: Maximum seconds per segment.
        work_dir: Directory where segment files are written.
    """

    def __init__(
        self,
        max_size_bytes: int,
        max_duration_seconds: float,
        work_dir: str | Path,
    ):
        if max_size_bytes <= 0 or max_duration_seconds <= 0:
            raise ValueError("Segment limits must be positive")
        self.max_size_bytes = max_size_bytes
        self.max_duration_seconds = max_duration_seconds
        self.work_dir = Path(work_dir)

    @classmethod
    def from_config(cls, config: PodcastQAConfig) -> "AudioSegmenter":
        return cls(
            max_size_bytes=config.max_segment_size_bytes,
            max_duration_seconds=config.max_segment_duration_seconds,
            work_dir=config.audio_chunks_dir,
        )

    @log_function(logger_name="segmenter", log_execution_time=True)
    async def split(
        self, source_path: str | Path, duration_seconds: Optional[float] = None
    ) -> list[AudioSegment]:
        """Split `source_path` into ordered segments within both limits.

        Args:
            source_path: Episode audio file.
            duration_seconds: Known duration; probed with ffprobe when None.

        Returns:
            list[AudioSegment]: Segments in playback order, gap-free.

        Raises:
            MediaProbeError: If size or duration cannot be determined, or if a
                segment cannot be extracted. No segment files are left behind.
        """
        source = Path(source_path)
        try:
            size_bytes = os.path.getsize(source)
        except OSError as e:
            raise MediaProbeError(str(source), f"cannot stat file: {e}") from e

        if duration_seconds is None:
            duration_seconds = await probe_duration(source)

        await asyncio.to_thread(self.work_dir.mkdir, parents=True, exist_ok=True)

        windows = plan_segments(
            size_bytes, duration_seconds, self.max_size_bytes, self.max_duration_seconds
        )
        logger.info(
            f"{source.name}: {size_bytes:,} bytes, {duration_seconds:.1f}s -> "
            f"{len(windows)} segment(s)"
        )

        if len(windows) == 1:
            target = self._segment_path(source, 0)
            await asyncio.to_thread(shutil.copyfile, source, target)
            return [AudioSegment(0, str(target), 0.0, duration_seconds)]

        segments = []
        for i, (start, length) in enumerate(windows):
            target = self._segment_path(source, i)
            try:
                await extract_range(source, target, start, length)
            except MediaProbeError:
                self.cleanup(segments + [AudioSegment(i, str(target), start, length)])
                raise
            segments.append(AudioSegment(i, str(target), start, length))
            logger.debug(f"Segment {i + 1}/{len(windows)}: {start:.1f}s +{length:.1f}s")
        return segments

    def _segment_path(self, source: Path, index: int) -> Path:
        return self.work_dir / f"{source.stem}_chunk{index + 1}{source.suffix}"

    def cleanup(self, segments: list[AudioSegment]) -> None:
        """Delete segment files; missing files are ignored."""
        for segment in segments:
            try:
                os.remove(segment.path)
            except FileNotFoundError:
                pass
            except OSError as e:
                logger.warning(f"Could not remove segment {segment.path}: {e}")
