"""Shared fixtures and fakes for podcast_qa tests.

External services are replaced by fakes: Qdrant runs in local in-memory mode,
SQLite lives under tmp_path, and embeddings come from a deterministic
topic-counting embedder. Test modules import the helpers directly:

    from conftest import FakeEmbedder, make_store
"""

import asyncio
import logging
from datetime import datetime

import pytest

from podcast_qa.db import Database, EpisodeMetadata, PodcastStore, get_qdrant_client

TEST_DIMENSION = 8
TOPICS = ("rocket", "garden", "music", "finance", "hockey", "coffee", "travel")
LOGGER_NAMES = (
    "agent",
    "chunker",
    "database",
    "embedder",
    "ingestion",
    "pipeline",
    "qdrant_client",
    "retrieval",
    "segmenter",
    "summarizer",
    "transcription",
)


def topic_vector(text: str) -> list[float]:
    """One axis per topic word plus a small constant axis so no vector is zero."""
    lowered = text.lower()
    return [float(lowered.count(topic)) for topic in TOPICS] + [0.01]


class FakeEmbedder:
    """Stands in for EmbeddingGenerator; records every batch it receives."""

    def __init__(self, dimension: int = TEST_DIMENSION, encoding_name: str = "cl100k_base"):
        self.dimension = dimension
        self.encoding_name = encoding_name
        self.calls: list[list[str]] = []

    async def embed_texts(self, texts):
        self.calls.append(list(texts))
        return [topic_vector(text) for text in texts]

    async def embed_query(self, query: str):
        return (await self.embed_texts([query]))[0]


def make_store(tmp_path, dimension: int = TEST_DIMENSION) -> PodcastStore:
    return PodcastStore(
        Database(f"sqlite:///{tmp_path / 'podcast_qa_test.db'}"),
        get_qdrant_client(location=":memory:"),
        chunks_collection="test_chunks",
        summaries_collection="test_summaries",
        embedding_dimension=dimension,
    )


def episode_metadata(number: int, title: str = None, **fields) -> EpisodeMetadata:
    return EpisodeMetadata(
        guid=f"guid-{number}",
        title=title or f"Episode {number}",
        episode_number=number,
        published_date=datetime(2024, 1, number),
        audio_url=f"https://example.com/e{number}.mp3",
        **fields,
    )


def run(coro):
    return asyncio.run(coro)


@pytest.fixture(autouse=True, scope="session")
def quiet_loggers():
    """Give every package logger a handler so nothing writes log files."""
    for name in LOGGER_NAMES:
        logger = logging.getLogger(name)
        if not logger.handlers:
            logger.addHandler(logging.NullHandler())
    yield
