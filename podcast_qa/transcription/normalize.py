"""Normalize timed caption segments into speaker turns.

Caption-style transcripts arrive as `{start, duration, text}` segments where a
speaker change is marked by an inline "Name: text" prefix. This pass resolves
the speaker of every segment (a segment without a prefix belongs to the last
named speaker) and strips the prefix, so downstream chunking never has to
look at the raw format.
"""

import re
from dataclasses import dataclass
from typing import Any, Iterable


SPEAKER_PREFIX = re.compile(r"^([^:]+):")
UNKNOWN_SPEAKER = "Unknown"


@dataclass
class SpeakerTurn:
    """One timed piece of speech attributed to a speaker."""

    speaker: str
    text: str
    start: float
    end: float


def normalize_timed_segments(segments: Iterable[dict[str, Any]]) -> list[SpeakerTurn]:
    """
    Convert raw timed segments into SpeakerTurn records.

    Args:
        segments: Dicts with "text", "start" (seconds) and "duration" (seconds).

    Returns:
        list[SpeakerTurn]: One record per non-empty segment, in input order.

    Raises:
        KeyError: If a segment lacks "text" or "start".
    """
    turns = []
    last_speaker = UNKNOWN_SPEAKER

    for segment in segments:
        raw_text = str(segment["text"]).strip()
        start = float(segment["start"])
        end = start + float(segment.get("duration", 0.0))

        match = SPEAKER_PREFIX.match(raw_text)
        if match:
            speaker = match.group(1).strip()
            text = raw_text[match.end():].strip()
            last_speaker = speaker
        else:
            speaker = last_speaker
            text = raw_text

        if text:
            turns.append(SpeakerTurn(speaker=speaker, text=text, start=start, end=end))

    return turns
