"""Group speaker turns into chunks aligned to speaker changes.

Consumes normalized SpeakerTurn records and never parses speaker prefixes
itself. A chunk is closed when the speaker changes or when the next turn
would push it over the token budget.
"""

import logging
from dataclasses import dataclass
from typing import Sequence

from podcast_qa.transcription.normalize import SpeakerTurn
from .token_counter import count_tokens


@dataclass
class SpeakerChunk:
    """Chunk content plus the speaker and time range it covers."""

    content: str
    speaker: str
    start_time: float
    end_time: float

    def metadata(self) -> dict:
        return {
            "speaker": self.speaker,
            "start_time": self.start_time,
            "end_time": self.end_time,
        }


def _close(turns: list[SpeakerTurn]) -> SpeakerChunk:
    return SpeakerChunk(
        content=" ".join(turn.text for turn in turns),
        speaker=turns[0].speaker,
        start_time=turns[0].start,
        end_time=turns[-1].end,
    )


def chunk_speaker_turns(
    turns: Sequence[SpeakerTurn],
    max_tokens: int = 7000,
    encoding_name: str = "cl100k_base",
) -> list[SpeakerChunk]:
    """
    Chunk speaker turns by speaker change and token budget.

    A single turn larger than `max_tokens` becomes its own chunk.

    Args:
        turns: Normalized speaker turns in playback order.
        max_tokens: Token budget per chunk (default 7000).
        encoding_name: tiktoken encoding used for counting.

    Returns:
        list[SpeakerChunk]: Chunks in playback order.
    """
    logger = logging.getLogger("chunker")

    chunks: list[SpeakerChunk] = []
    current: list[SpeakerTurn] = []
    current_tokens = 0

    for turn in turns:
        turn_tokens = count_tokens(turn.text, encoding_name)
        if current and (
            turn.speaker != current[0].speaker
            or current_tokens + turn_tokens > max_tokens
        ):
            chunks.append(_close(current))
            current, current_tokens = [], 0

        current.append(turn)
        current_tokens += turn_tokens

    if current:
        chunks.append(_close(current))

    logger.info(f"Created {len(chunks)} speaker chunks from {len(turns)} turns")
    return chunks
