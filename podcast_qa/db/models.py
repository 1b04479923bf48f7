"""
SQLAlchemy ORM models for the podcast QA system.

Models:
    Episode: One podcast installment with metadata, summary and processing status
    TranscriptChunk: A span of transcript text owned by exactly one Episode
    TimestampMixin: Provides automatic created_at/updated_at timestamps

Enums:
    ProcessingStage: Tracks episode processing pipeline stages

Vectors live in Qdrant: chunk vectors use the TranscriptChunk id as point id,
summary vectors use the Episode uuid. Relational rows hold the text.
"""

import json
from enum import Enum as PyEnum

from sqlalchemy import (
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()


class TimestampMixin:
    """
    Mixin to add automatic timestamp tracking to models.

    Both fields use database-level defaults (func.now()) for consistency.
    """

    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime, nullable=False, server_default=func.now(), onupdate=func.now()
    )


class ProcessingStage(str, PyEnum):
    """
    Enum representing processing stages of podcast episodes.

    Stages progress in order SYNCED → SUMMARIZED; each implies the previous
    ones are complete. ERROR marks an episode whose last run failed and is
    outside the ordering.
    """

    SYNCED = "synced"  # Episode row created from the feed
    AUDIO_DOWNLOADED = "audio_downloaded"  # Audio file on disk
    TRANSCRIBED = "transcribed"  # Transcript artifact written
    EMBEDDED = "embedded"  # Chunks and vectors stored
    SUMMARIZED = "summarized"  # Summary, guests and summary vector stored
    ERROR = "error"

    @classmethod
    def ordered(cls) -> list["ProcessingStage"]:
        return [stage for stage in cls if stage is not cls.ERROR]

    def reached(self, target: "ProcessingStage") -> bool:
        """True when this stage is at or past `target` in the pipeline order."""
        order = ProcessingStage.ordered()
        if self is ProcessingStage.ERROR or target is ProcessingStage.ERROR:
            return self is target
        return order.index(self) >= order.index(target)


class Episode(Base, TimestampMixin):
    """
    Represents a podcast episode with metadata and processing tracking.

    Attributes:
        uuid: Primary key (uuid4 string), also the summary vector point id
        guid: Stable external identifier from the feed, unique
        episode_number: Episode number within the podcast
        title: Episode title
        description: Show notes (truncated to 1000 chars)
        published_date: Publication date
        audio_url: Original audio file URL
        summary: Generated prose summary
        guests: JSON-encoded list of guest names
        processing_stage: Current stage in the pipeline
        audio_file_path: Local path to the downloaded audio
        transcript_path: Path or URL of the transcript artifact
        error_message: Last failure message, if any
    """

    __tablename__ = "episodes"

    uuid = Column(String, primary_key=True)
    guid = Column(String, nullable=False, unique=True, index=True)
    episode_number = Column(Integer, nullable=True, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    published_date = Column(DateTime, nullable=True)
    audio_url = Column(String, nullable=True)

    summary = Column(Text, nullable=True)
    guests = Column(Text, nullable=True)

    processing_stage = Column(
        Enum(ProcessingStage),
        nullable=False,
        default=ProcessingStage.SYNCED,
        server_default="SYNCED",
    )
    audio_file_path = Column(String, nullable=True)
    transcript_path = Column(String, nullable=True)
    error_message = Column(Text, nullable=True)

    chunks = relationship(
        "TranscriptChunk",
        back_populates="episode",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="TranscriptChunk.chunk_index",
    )

    @property
    def guest_list(self) -> list[str]:
        """Decoded guest names; malformed JSON yields an empty list."""
        if not self.guests:
            return []
        try:
            value = json.loads(self.guests)
        except (TypeError, ValueError):
            return []
        return [str(g) for g in value if isinstance(g, str) and g.strip()] if isinstance(value, list) else []

    def to_dict(self) -> dict:
        return {
            "uuid": self.uuid,
            "guid": self.guid,
            "episode_number": self.episode_number,
            "title": self.title,
            "description": self.description,
            "published_date": self.published_date.isoformat() if self.published_date else None,
            "audio_url": self.audio_url,
            "summary": self.summary,
            "guests": self.guest_list,
            "processing_stage": self.processing_stage.value if self.processing_stage else None,
        }

    def __repr__(self):
        return (
            f"<Episode(guid={self.guid}, episode_number={self.episode_number}, "
            f"title='{self.title}', stage={self.processing_stage})>"
        )


class TranscriptChunk(Base, TimestampMixin):
    """
    A contiguous span of one episode's transcript.

    Attributes:
        id: Primary key (uuid4 string), also the Qdrant point id
        episode_uuid: Owning episode; deleting the episode deletes its chunks
        chunk_index: Position within the episode
        content: Chunk text
        token_count: Token count of `content`
        speaker: Speaker name for speaker-aligned chunks
        start_time: Start offset in seconds for speaker-aligned chunks
        end_time: End offset in seconds for speaker-aligned chunks
    """

    __tablename__ = "transcript_chunks"

    id = Column(String, primary_key=True)
    episode_uuid = Column(
        String,
        ForeignKey("episodes.uuid", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    chunk_index = Column(Integer, nullable=False)
    content = Column(Text, nullable=False)
    token_count = Column(Integer, nullable=True)
    speaker = Column(String, nullable=True)
    start_time = Column(Float, nullable=True)
    end_time = Column(Float, nullable=True)

    episode = relationship("Episode", back_populates="chunks")

    def __repr__(self):
        return (
            f"<TranscriptChunk(id={self.id}, episode_uuid={self.episode_uuid}, "
            f"index={self.chunk_index}, tokens={self.token_count})>"
        )
