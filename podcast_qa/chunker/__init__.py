from .token_counter import (
    count_tokens,
    truncate_to_tokens,
    tail_tokens,
    check_embedding_limits,
)
from .chunker import (
    create_overlapping_chunks,
    create_semantic_chunks,
    clean_chunk_artifacts,
    split_sentences,
    chunks_to_text,
)
from .speaker_chunker import SpeakerChunk, chunk_speaker_turns


__all__ = [
    # Token counting functions
    "count_tokens",
    "truncate_to_tokens",
    "tail_tokens",
    "check_embedding_limits",
    # Text chunkers
    "create_overlapping_chunks",
    "create_semantic_chunks",
    "clean_chunk_artifacts",
    "split_sentences",
    "chunks_to_text",
    # Speaker-aligned chunker
    "SpeakerChunk",
    "chunk_speaker_turns",
]
