"""
Batch transcription of audio segments with bounded parallelism.

Segments are sent in batches of `max_workers`; every request in a batch runs
concurrently and the next batch starts only once the whole batch is done.
Results are stored by segment index, so the assembled transcript follows
playback order whatever order the requests complete in. A segment that fails
contributes nothing and is logged; it never aborts the episode.
"""

import asyncio
import logging
from pathlib import Path
from typing import Sequence

from podcast_qa.audio import AudioSegment, AudioSegmenter
from podcast_qa.exceptions import MissingCredentialError, UnparsableTranscriptionResponse
from podcast_qa.logger import log_function
from .providers import SegmentTranscriber


logger = logging.getLogger("transcription")


class TranscriptionOrchestrator:
    """Drive a SegmentTranscriber over an episode's segments.

    Args:
        transcriber: Provider adapter (primary/fallback handled there).
        max_workers: Batch size, i.e. maximum simultaneous requests.
    """

    def __init__(self, transcriber: SegmentTranscriber, max_workers: int = 10):
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self.transcriber = transcriber
        self.max_workers = max_workers

    async def _transcribe_one(self, segment: AudioSegment) -> str:
        try:
            result = await self.transcriber.transcribe(segment)
        except MissingCredentialError:
            raise
        except UnparsableTranscriptionResponse as e:
            logger.warning(f"Segment {segment.index} ({segment.path}): {e}")
            return ""
        except Exception as e:
            logger.warning(
                f"Segment {segment.index} ({segment.path}) failed, skipping: "
                f"{type(e).__name__}: {e}"
            )
            return ""
        return result.text.strip()

    async def transcribe_segments(self, segments: Sequence[AudioSegment]) -> str:
        """Transcribe segments batch by batch and join them in index order.

        Args:
            segments: Segments in playback order.

        Returns:
            str: Non-empty segment texts joined by single spaces.
        """
        texts = [""] * len(segments)
        total_batches = (len(segments) + self.max_workers - 1) // self.max_workers

        for batch_number, batch_start in enumerate(
            range(0, len(segments), self.max_workers), start=1
        ):
            batch = segments[batch_start:batch_start + self.max_workers]
            logger.info(
                f"Transcribing batch {batch_number}/{total_batches} "
                f"({len(batch)} segment(s))"
            )
            results = await asyncio.gather(*(self._transcribe_one(s) for s in batch))
            for offset, text in enumerate(results):
                texts[batch_start + offset] = text

        failed = sum(1 for text in texts if not text)
        if failed:
            logger.warning(f"{failed}/{len(segments)} segment(s) produced no text")

        return " ".join(text for text in texts if text)

    @log_function(logger_name="transcription", log_execution_time=True)
    async def transcribe_audio_file(
        self, audio_path: str | Path, segmenter: AudioSegmenter
    ) -> str:
        """Segment an audio file, transcribe it and delete the segment files.

        Raises:
            MediaProbeError: If the file cannot be probed or split.
        """
        segments = await segmenter.split(audio_path)
        try:
            return await self.transcribe_segments(segments)
        finally:
            segmenter.cleanup(segments)
