"""
Configuration settings for the podcast QA system.

This module defines the PodcastQAConfig dataclass holding every tunable used
by ingestion (segmentation, transcription, chunking, embedding, summarization)
and serving (retrieval, chat agent). A single instance is built once, usually
with PodcastQAConfig.from_env(), and passed into each component.
"""

import os
from dataclasses import dataclass, field, fields
from typing import List, Optional

from dotenv import load_dotenv

from podcast_qa.exceptions import MissingCredentialError


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_list(name: str) -> List[str]:
    value = os.getenv(name, "")
    return [item.strip() for item in value.split(",") if item.strip()]


@dataclass
class PodcastQAConfig:
    """Configuration for the ingestion pipeline and the retrieval layer"""

    # Credentials and connections
    openai_api_key: Optional[str] = None
    database_url: str = "sqlite:///data/podcast_qa.db"
    qdrant_url: Optional[str] = "http://localhost:6333"
    qdrant_api_key: Optional[str] = None
    qdrant_collection_prefix: str = "podcast"
    feed_url: Optional[str] = None

    # Podcast identity (hosts are never reported as guests)
    podcast_name: str = "the podcast"
    host_names: List[str] = field(default_factory=list)

    # Audio segmentation limits
    max_segment_size_bytes: int = 5 * 1024 * 1024
    max_segment_duration_seconds: float = 600.0

    # Transcription
    transcription_model: str = "gpt-4o-mini-transcribe"
    transcription_fallback_model: str = "whisper-1"
    transcription_temperature: float = 0.2
    max_transcription_workers: int = 10

    # Chunking (token budgets measured with `encoding_name`)
    encoding_name: str = "cl100k_base"
    chunk_size: int = 300
    chunk_overlap: int = 50
    speaker_chunk_max_tokens: int = 7000

    # Embeddings
    embedding_model: str = "text-embedding-3-small"
    embedding_dimension: int = 1536

    # Summaries
    summary_model: str = "gpt-4o-mini"
    summary_max_chars: int = 15000

    # Retrieval and chat
    chat_model: str = "gpt-4o"
    chat_timeout_seconds: float = 30.0
    chat_max_tool_rounds: int = 5
    similarity_threshold: float = 0.1
    chunk_result_limit: int = 4
    summary_result_limit: int = 5
    keyword_result_limit: int = 10

    # Filesystem layout
    audio_dir: str = "data/audio"
    audio_chunks_dir: str = "data/audio_chunks"
    transcripts_dir: str = "data/transcripts"
    log_dir: str = "logs"
    use_cloud_storage: bool = False

    @classmethod
    def from_env(cls, **overrides) -> "PodcastQAConfig":
        """Build a configuration from the environment (and `.env` file).

        Keyword overrides take precedence over environment values, which take
        precedence over the dataclass defaults.

        Returns:
            PodcastQAConfig: The resolved configuration.
        """
        load_dotenv()
        values = {
            "openai_api_key": os.getenv("OPENAI_API_KEY"),
            "database_url": os.getenv("DATABASE_URL"),
            "qdrant_url": os.getenv("QDRANT_URL"),
            "qdrant_api_key": os.getenv("QDRANT_API_KEY"),
            "qdrant_collection_prefix": os.getenv("QDRANT_COLLECTION_PREFIX"),
            "feed_url": os.getenv("PODCAST_FEED_URL"),
            "podcast_name": os.getenv("PODCAST_NAME"),
            "host_names": _env_list("PODCAST_HOSTS") or None,
            "use_cloud_storage": _env_bool("USE_CLOUD_STORAGE"),
        }
        values = {key: value for key, value in values.items() if value is not None}
        known = {f.name for f in fields(cls)}
        unknown = set(overrides) - known
        if unknown:
            raise ValueError(f"Unknown configuration keys: {sorted(unknown)}")
        values.update(overrides)
        return cls(**values)

    def require_openai_key(self) -> str:
        """Return the OpenAI API key or fail fast.

        Raises:
            MissingCredentialError: If OPENAI_API_KEY is not configured.
        """
        if not self.openai_api_key:
            raise MissingCredentialError("OPENAI_API_KEY")
        return self.openai_api_key

    def validate(self) -> List[str]:
        """
        Validate numeric settings and return any error messages.

        Returns:
            List of validation error messages (empty if valid)
        """
        errors = []
        if self.chunk_size < 1:
            errors.append("chunk_size must be at least 1")
        if not 0 <= self.chunk_overlap < self.chunk_size:
            errors.append("chunk_overlap must be in [0, chunk_size)")
        if self.max_transcription_workers < 1:
            errors.append("max_transcription_workers must be at least 1")
        if self.max_segment_size_bytes <= 0:
            errors.append("max_segment_size_bytes must be positive")
        if self.max_segment_duration_seconds <= 0:
            errors.append("max_segment_duration_seconds must be positive")
        if self.embedding_dimension < 1:
            errors.append("embedding_dimension must be at least 1")
        return errors

    @property
    def chunks_collection(self) -> str:
        return f"{self.qdrant_collection_prefix}_chunks"

    @property
    def summaries_collection(self) -> str:
        return f"{self.qdrant_collection_prefix}_summaries"
