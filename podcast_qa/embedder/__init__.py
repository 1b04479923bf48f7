"""Embedding generation and per-chunk persistence."""

from .embed import (
    EmbeddingGenerator,
    embed_episode_chunks,
    embed_summary,
    normalize_query,
)

__all__ = [
    "EmbeddingGenerator",
    "embed_episode_chunks",
    "embed_summary",
    "normalize_query",
]
