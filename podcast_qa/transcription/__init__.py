"""
Transcription package.

providers.py : provider adapter and response decoding (TranscriptionResult)
orchestrator.py : batched, order-preserving segment transcription
transcript.py : transcript JSON artifacts
normalize.py : caption segments -> speaker turns
summarize.py : episode summary and guest extraction
"""

from .normalize import SpeakerTurn, normalize_timed_segments
from .orchestrator import TranscriptionOrchestrator
from .providers import (
    OpenAITranscriber,
    TranscriptionResult,
    decode_transcription_response,
)
from .summarize import EpisodeSummarizer, EpisodeSummary, parse_summary_response
from .transcript import Transcript, TranscriptRepository, segments_filename, transcript_filename

__all__ = [
    "SpeakerTurn",
    "normalize_timed_segments",
    "TranscriptionOrchestrator",
    "OpenAITranscriber",
    "TranscriptionResult",
    "decode_transcription_response",
    "EpisodeSummarizer",
    "EpisodeSummary",
    "parse_summary_response",
    "Transcript",
    "TranscriptRepository",
    "segments_filename",
    "transcript_filename",
]
