import logging
import re
from typing import Any

from chonkie import RecursiveChunker, RecursiveLevel, RecursiveRules

from .token_counter import count_tokens, get_encoding, tail_tokens


SENTENCE_BOUNDARY = re.compile(r"(?<=[.!?])\s+")
LEADING_PUNCTUATION_WITH_SPACE = re.compile(r"^([.!?,;:]\s+)+")
LEADING_PUNCTUATION = re.compile(r"^([.!?,;:])+")

# Paragraph break, line break, sentence-ending punctuation, then words
SEMANTIC_LEVELS = [
    RecursiveLevel(delimiters=["\n\n"]),
    RecursiveLevel(delimiters=["\n"]),
    RecursiveLevel(delimiters=[".", "!", "?"]),
    RecursiveLevel(whitespace=True),
]


def chunks_to_text(chunks: list[Any]) -> list[str]:
    """
    Convert a list of chunk-like objects into their stripped text strings.

    Parameters:
        chunks (list[Any]): Objects that expose a `text` attribute.

    Returns:
        list[str]: Extracted and stripped text strings.
    """
    return [chunk.text.strip() for chunk in chunks]


def split_sentences(text: str) -> list[str]:
    """Split on whitespace that follows sentence-ending punctuation."""
    return [s for s in SENTENCE_BOUNDARY.split(text.strip()) if s]


def clean_chunk_artifacts(chunk: str) -> str:
    """Strip leading punctuation fragments left behind by boundary splitting.

    Example:
        >>> clean_chunk_artifacts(". , And then we ran.")
        'And then we ran.'
    """
    cleaned = chunk.strip()
    cleaned = LEADING_PUNCTUATION_WITH_SPACE.sub("", cleaned)
    cleaned = LEADING_PUNCTUATION.sub("", cleaned).lstrip()
    return cleaned


def _overlap_seed(
    previous_chunk: str,
    sentence: str,
    overlap_size: int,
    chunk_size: int,
    encoding_name: str,
) -> str:
    """Build the start of the next chunk: trailing words of the previous one + sentence.

    Overlap is measured in whitespace-delimited words. Words are dropped from
    the front of the overlap until the seed fits `chunk_size`; a sentence that
    is oversized on its own is returned without overlap.
    """
    words = previous_chunk.split()
    overlap_words = words[max(0, len(words) - overlap_size):] if overlap_size > 0 else []
    while overlap_words:
        seed = " ".join(overlap_words) + " " + sentence
        if count_tokens(seed, encoding_name) <= chunk_size:
            return seed
        overlap_words = overlap_words[1:]
    return sentence


def create_overlapping_chunks(
    text: str,
    chunk_size: int = 300,
    overlap_size: int = 50,
    encoding_name: str = "cl100k_base",
) -> list[str]:
    """
    Greedily pack sentences into chunks of at most `chunk_size` tokens.

    When the next sentence would overflow, the current chunk is closed and the
    next one starts with the last `overlap_size` words of the closed chunk,
    followed by that sentence. A sentence longer than `chunk_size` becomes its
    own oversized chunk instead of being truncated.

    Parameters:
        text (str): Transcript text.
        chunk_size (int): Token budget per chunk. Defaults to 300.
        overlap_size (int): Words carried over between chunks. Defaults to 50.
        encoding_name (str): tiktoken encoding used for counting.

    Returns:
        list[str]: Chunks in text order; `[text.strip()]` when the whole text fits.
    """
    logger = logging.getLogger("chunker")

    if chunk_size < 1:
        raise ValueError("chunk_size must be at least 1")
    if overlap_size < 0:
        raise ValueError("overlap_size must not be negative")

    stripped = text.strip()
    if not stripped:
        return []

    total_tokens = count_tokens(stripped, encoding_name)
    if total_tokens <= chunk_size:
        logger.info(f"Text fits within limit ({total_tokens} tokens), no chunking needed")
        return [stripped]

    chunks: list[str] = []
    current = ""

    for sentence in split_sentences(stripped):
        candidate = f"{current} {sentence}" if current else sentence
        if count_tokens(candidate, encoding_name) <= chunk_size:
            current = candidate
            continue

        if current:
            chunks.append(current.strip())
            current = _overlap_seed(
                current, sentence, overlap_size, chunk_size, encoding_name
            )
        else:
            # Oversized sentence on an empty chunk: keep it whole
            current = sentence

    if current:
        chunks.append(current.strip())

    logger.info(
        f"Created {len(chunks)} overlapping chunks from {total_tokens} tokens "
        f"(chunk_size={chunk_size}, overlap={overlap_size} words)"
    )
    return chunks


def create_semantic_chunks(
    text: str,
    chunk_size: int = 300,
    overlap_size: int = 50,
    encoding_name: str = "cl100k_base",
) -> list[str]:
    """
    Split text recursively on paragraph, line and sentence boundaries.

    Uses chonkie's RecursiveChunker with the same tiktoken encoding as the rest
    of the package. Pieces are sized to `chunk_size - overlap_size` tokens so
    that, once the trailing `overlap_size` tokens of the previous piece are
    prepended, each chunk stays close to `chunk_size`. Every chunk is then
    stripped of leading punctuation artifacts.

    Parameters:
        text (str): Transcript text.
        chunk_size (int): Token budget per chunk. Defaults to 300.
        overlap_size (int): Tokens carried over between chunks. Defaults to 50.
        encoding_name (str): tiktoken encoding used for counting.

    Returns:
        list[str]: Non-empty cleaned chunks in text order.
    """
    logger = logging.getLogger("chunker")

    if not 0 <= overlap_size < chunk_size:
        raise ValueError("overlap_size must be in [0, chunk_size)")

    if not text.strip():
        return []

    encoding = get_encoding(encoding_name)
    chunker = RecursiveChunker(
        encoding,
        chunk_size=chunk_size - overlap_size,
        rules=RecursiveRules(levels=SEMANTIC_LEVELS),
        min_characters_per_chunk=1,
    )
    pieces = chunks_to_text(chunker.chunk(text))

    chunks = []
    previous = ""
    for piece in pieces:
        if not piece:
            continue
        combined = piece
        if previous and overlap_size > 0:
            combined = tail_tokens(previous, overlap_size, encoding_name) + " " + piece
        previous = piece
        cleaned = clean_chunk_artifacts(combined)
        if cleaned:
            chunks.append(cleaned)

    logger.info(
        f"Created {len(chunks)} semantic chunks "
        f"(chunk_size={chunk_size}, overlap={overlap_size} tokens)"
    )
    return chunks
