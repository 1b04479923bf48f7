"""Exceptions raised by the podcast QA pipeline and retrieval layer.

Exception Hierarchy:
    PodcastQAError (base)
    ├── MediaProbeError - duration/size of an audio file cannot be determined
    │   └── MediaToolMissingError - ffmpeg/ffprobe not installed
    ├── SegmentTranscriptionFailure - one segment failed on both models
    ├── UnparsableTranscriptionResponse - provider payload has no text
    ├── EmbeddingBatchFailure - the batched embedding request failed
    ├── PersistenceFailure - one store write failed
    └── MissingCredentialError - a required API key is absent

"No relevant content" is not an exception: retrieval returns a sentinel.
"""

from typing import Optional


class PodcastQAError(Exception):
    """Base exception for the podcast QA package."""


class MediaProbeError(PodcastQAError):
    """Raised when an audio file cannot be probed or split.

    Attributes:
        path: Audio file that failed
        reason: Human-readable cause (tool stderr, parse error, ...)
    """

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Cannot process media '{path}': {reason}")


class MediaToolMissingError(MediaProbeError):
    """Raised when the ffmpeg/ffprobe binaries are not on PATH."""

    def __init__(self, tool: str) -> None:
        self.tool = tool
        super().__init__(
            path=tool,
            reason=f"'{tool}' executable not found. Install ffmpeg and ensure it is on PATH",
        )


class SegmentTranscriptionFailure(PodcastQAError):
    """Raised when a segment fails on both the primary and fallback model."""

    def __init__(self, segment_index: int, cause: Optional[BaseException] = None) -> None:
        self.segment_index = segment_index
        self.cause = cause
        super().__init__(f"Transcription failed for segment {segment_index}: {cause}")


class UnparsableTranscriptionResponse(PodcastQAError):
    """Raised when a transcription payload carries no recognizable text field."""

    def __init__(self, payload_type: str) -> None:
        self.payload_type = payload_type
        super().__init__(f"Unrecognized transcription response shape: {payload_type}")


class EmbeddingBatchFailure(PodcastQAError):
    """Raised when the batched embedding request for an episode fails."""

    def __init__(self, episode_guid: Optional[str], cause: BaseException) -> None:
        self.episode_guid = episode_guid
        self.cause = cause
        super().__init__(f"Embedding batch failed for episode {episode_guid}: {cause}")


class PersistenceFailure(PodcastQAError):
    """Raised when a single row/point cannot be written to the store."""

    def __init__(self, what: str, cause: BaseException) -> None:
        self.what = what
        self.cause = cause
        super().__init__(f"Failed to persist {what}: {cause}")


class MissingCredentialError(PodcastQAError):
    """Raised when a required API key is not configured."""

    def __init__(self, variable: str) -> None:
        self.variable = variable
        super().__init__(
            f"{variable} is required. Set it in the environment or in the .env file"
        )
