"""
Transcription provider adapter.

Provider responses come in several shapes: a plain string, a JSON envelope
with a "text" or "transcript" field, or an SDK object exposing `.text`.
decode_transcription_response() is the single place that turns those shapes
into a TranscriptionResult; anything else raises
UnparsableTranscriptionResponse.
"""

import asyncio
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Protocol

from openai import APIError, AsyncOpenAI

from podcast_qa.audio import AudioSegment
from podcast_qa.config import PodcastQAConfig
from podcast_qa.exceptions import (
    SegmentTranscriptionFailure,
    UnparsableTranscriptionResponse,
)


logger = logging.getLogger("transcription")

TEXT_FIELDS = ("text", "transcript")


@dataclass
class TranscriptionResult:
    """Normalized transcription output for one audio segment."""

    text: str
    model: Optional[str] = None
    source_shape: str = "plain"


def decode_transcription_response(
    payload: Any, model: Optional[str] = None
) -> TranscriptionResult:
    """Decode any supported provider payload into a TranscriptionResult.

    Args:
        payload: Raw provider response.
        model: Model that produced it (kept for logging).

    Returns:
        TranscriptionResult: Decoded text, stripped.

    Raises:
        UnparsableTranscriptionResponse: If no text can be found.
    """
    if isinstance(payload, str):
        stripped = payload.strip()
        if stripped.startswith("{"):
            try:
                envelope = json.loads(stripped)
            except json.JSONDecodeError:
                return TranscriptionResult(stripped, model, "plain")
            return decode_transcription_response(envelope, model)
        return TranscriptionResult(stripped, model, "plain")

    if isinstance(payload, dict):
        for key in TEXT_FIELDS:
            value = payload.get(key)
            if isinstance(value, str):
                return TranscriptionResult(value.strip(), model, key)
        raise UnparsableTranscriptionResponse(f"dict with keys {sorted(payload)}")

    for key in TEXT_FIELDS:
        value = getattr(payload, key, None)
        if isinstance(value, str):
            return TranscriptionResult(value.strip(), model, key)

    raise UnparsableTranscriptionResponse(type(payload).__name__)


class SegmentTranscriber(Protocol):
    async def transcribe(self, segment: AudioSegment) -> TranscriptionResult: ...


class OpenAITranscriber:
    """Transcribe audio segments with a primary model and one fallback model.

    Args:
        client: Async OpenAI client.
        model: Primary transcription model.
        fallback_model: Model tried once when the primary call fails.
        temperature: Sampling temperature sent to the provider.
    """

    def __init__(
        self,
        client: AsyncOpenAI,
        model: str = "gpt-4o-mini-transcribe",
        fallback_model: Optional[str] = "whisper-1",
        temperature: float = 0.2,
    ):
        self.client = client
        self.model = model
        self.fallback_model = fallback_model
        self.temperature = temperature

    @classmethod
    def from_config(cls, client: AsyncOpenAI, config: PodcastQAConfig) -> "OpenAITranscriber":
        return cls(
            client,
            model=config.transcription_model,
            fallback_model=config.transcription_fallback_model,
            temperature=config.transcription_temperature,
        )

    async def _request(self, path: Path, data: bytes, model: str) -> TranscriptionResult:
        response = await self.client.audio.transcriptions.create(
            model=model,
            file=(path.name, data),
            response_format="json",
            temperature=self.temperature,
        )
        return decode_transcription_response(response, model)

    async def transcribe(self, segment: AudioSegment) -> TranscriptionResult:
        """Transcribe one segment, retrying once on the fallback model.

        Raises:
            SegmentTranscriptionFailure: If the file cannot be read or both
                models fail.
            UnparsableTranscriptionResponse: If the provider answered with an
                unrecognized shape.
        """
        path = Path(segment.path)
        try:
            data = await asyncio.to_thread(path.read_bytes)
        except OSError as e:
            raise SegmentTranscriptionFailure(segment.index, e) from e

        try:
            return await self._request(path, data, self.model)
        except APIError as primary_error:
            if not self.fallback_model:
                raise SegmentTranscriptionFailure(segment.index, primary_error) from primary_error
            logger.warning(
                f"Segment {segment.index}: {self.model} failed ({primary_error}), "
                f"retrying with {self.fallback_model}"
            )

        try:
            return await self._request(path, data, self.fallback_model)
        except APIError as fallback_error:
            raise SegmentTranscriptionFailure(segment.index, fallback_error) from fallback_error
