"""Transcript records persisted as JSON artifacts.

One file per episode, `e{episode_number}_transcript.json`, holding
`{"guid", "title", "transcript"}`. The file doubles as the idempotency marker
for transcription: if it exists the episode is not sent to the provider again.

Episodes that come with timed captions also have
`e{episode_number}_segments.json`, a list of `{"start", "duration", "text"}`
segments whose text may carry "Speaker: " prefixes. They feed the
speaker-aware chunking path.
"""

import json
import logging
from dataclasses import asdict, dataclass
from typing import Any, Optional

from podcast_qa.storage import BaseStorage


logger = logging.getLogger("transcription")


@dataclass
class Transcript:
    guid: str
    title: str
    transcript: str

    def to_json(self) -> str:
        return json.dumps(asdict(self), ensure_ascii=False, indent=2)

    @classmethod
    def from_json(cls, raw: str) -> "Transcript":
        data = json.loads(raw)
        return cls(
            guid=str(data["guid"]),
            title=str(data.get("title", "")),
            transcript=str(data.get("transcript", "")),
        )


def transcript_filename(episode_number: int) -> str:
    return f"e{episode_number}_transcript.json"


def segments_filename(episode_number: int) -> str:
    return f"e{episode_number}_segments.json"


class TranscriptRepository:
    """Read and write transcript artifacts through a storage backend.

    Args:
        storage: Local or cloud storage backend.
        workspace: Workspace name/prefix for transcript files.
    """

    def __init__(self, storage: BaseStorage, workspace: str = "data/transcripts"):
        self.storage = storage
        self.workspace = storage.create_workspace(workspace)

    def exists(self, episode_number: int) -> bool:
        return self.storage.file_exist(self.workspace, transcript_filename(episode_number))

    def save(self, episode_number: int, transcript: Transcript) -> str:
        """Persist a transcript and return its path or URL."""
        location = self.storage.save_file(
            self.workspace, transcript_filename(episode_number), transcript.to_json()
        )
        logger.info(f"Saved transcript for episode {episode_number} to {location}")
        return location

    def load(self, episode_number: int) -> Optional[Transcript]:
        """Load a transcript, or None when no artifact exists."""
        try:
            raw = self.storage.read_file(self.workspace, transcript_filename(episode_number))
        except FileNotFoundError:
            return None
        return Transcript.from_json(raw)

    def save_segments(self, episode_number: int, segments: list[dict[str, Any]]) -> str:
        """Persist timed caption segments and return their path or URL."""
        location = self.storage.save_file(
            self.workspace,
            segments_filename(episode_number),
            json.dumps(segments, ensure_ascii=False, indent=2),
        )
        logger.info(f"Saved {len(segments)} timed segments for episode {episode_number}")
        return location

    def load_segments(self, episode_number: int) -> Optional[list[dict[str, Any]]]:
        """Load timed caption segments, or None when no artifact exists.

        Raises:
            ValueError: If the artifact is not a JSON list.
        """
        try:
            raw = self.storage.read_file(self.workspace, segments_filename(episode_number))
        except FileNotFoundError:
            return None
        segments = json.loads(raw)
        if not isinstance(segments, list):
            raise ValueError(
                f"Timed segments for episode {episode_number} must be a list, "
                f"got {type(segments).__name__}"
            )
        return segments
