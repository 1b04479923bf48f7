"""
Database package for the podcast QA system.

Structure:
- models.py: SQLAlchemy ORM models (Episode, TranscriptChunk, ProcessingStage)
- database.py: Engine, session factory and SQLite settings (Database)
- qdrant_client.py: Async Qdrant helpers for chunk and summary vectors
- store.py: PodcastStore, the async storage interface used by the pipeline
  and the retrieval layer
"""

from .models import Base, Episode, ProcessingStage, TimestampMixin, TranscriptChunk
from .database import Database, validate_database_url
from .qdrant_client import (
    create_collection,
    delete_episode_points,
    get_qdrant_client,
    insert_one_point,
    search_similar,
)
from .store import ChunkMatch, EpisodeMatch, EpisodeMetadata, PodcastStore

__all__ = [
    # Models
    "Base",
    "Episode",
    "ProcessingStage",
    "TimestampMixin",
    "TranscriptChunk",
    # Relational database
    "Database",
    "validate_database_url",
    # Qdrant helpers
    "create_collection",
    "delete_episode_points",
    "get_qdrant_client",
    "insert_one_point",
    "search_similar",
    # Store
    "ChunkMatch",
    "EpisodeMatch",
    "EpisodeMetadata",
    "PodcastStore",
]
