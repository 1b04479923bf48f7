"""Token counting utilities shared by the chunkers and the embedder.

Every token budget in the package (chunk sizes, overlap, embedding request
limits) is measured with the functions below so that sizes agree across
components. Counts come from tiktoken's subword encodings, never from word
splitting.
"""

import functools
import logging

import tiktoken


# OpenAI embedding model limits
EMBEDDING_LIMITS = {
    "text-embedding-3-small": {
        "context_length": 8191,
        "batch_total": 300000,
        "batch_size": 2048,
        "dimensions": 1536,
    },
    "text-embedding-3-large": {
        "context_length": 8191,
        "batch_total": 300000,
        "batch_size": 2048,
        "dimensions": 3072,
    },
    "text-embedding-ada-002": {
        "context_length": 8191,
        "batch_total": 300000,
        "batch_size": 2048,
        "dimensions": 1536,
    },
}


@functools.lru_cache(maxsize=None)
def get_encoding(encoding_name: str = "cl100k_base") -> tiktoken.Encoding:
    """Return a cached tiktoken encoding.

    Raises:
        ValueError: If the encoding_name is not recognized.
    """
    try:
        return tiktoken.get_encoding(encoding_name)
    except ValueError as e:
        raise ValueError(f"Invalid encoding name: {encoding_name}") from e


def count_tokens(text: str, encoding_name: str = "cl100k_base") -> int:
    """Count the number of tokens in a text string.

    Args:
        text: The text string to count tokens for.
        encoding_name: The encoding to use. "cl100k_base" (default) matches the
            OpenAI embedding and chat models used by this package.

    Returns:
        The number of tokens in the text.

    Raises:
        ValueError: If the encoding_name is not recognized.

    Example:
        >>> count_tokens("Hello, world!")
        4
    """
    return len(get_encoding(encoding_name).encode(text))


def truncate_to_tokens(
    text: str, max_tokens: int, encoding_name: str = "cl100k_base"
) -> str:
    """Truncate text to fit within a maximum token count.

    Args:
        text: The text string to truncate.
        max_tokens: The maximum number of tokens allowed.
        encoding_name: The encoding to use (see count_tokens).

    Returns:
        The truncated text string that fits within max_tokens.
    """
    encoding = get_encoding(encoding_name)
    tokens = encoding.encode(text)

    if len(tokens) <= max_tokens:
        return text

    return encoding.decode(tokens[:max_tokens])


def tail_tokens(text: str, n_tokens: int, encoding_name: str = "cl100k_base") -> str:
    """Return the text spanned by the last `n_tokens` tokens of `text`."""
    if n_tokens <= 0:
        return ""
    encoding = get_encoding(encoding_name)
    tokens = encoding.encode(text)
    return encoding.decode(tokens[-n_tokens:])


def check_embedding_limits(
    texts: str | list[str],
    model: str = "text-embedding-3-small",
    encoding_name: str = "cl100k_base",
) -> dict[str, bool | int | list[str] | dict[str, int]]:
    """Check if text(s) fit within an OpenAI embedding model's request limits.

    Args:
        texts: A single text string or list of text strings.
        model: The embedding model name (default: "text-embedding-3-small").
        encoding_name: The encoding to use for token counting.

    Returns:
        A dictionary containing:
            - "fits": Whether all texts fit within limits (bool)
            - "total_tokens": Total token count across all texts (int)
            - "num_texts": Number of texts (int)
            - "max_text_tokens": Token count of longest text (int)
            - "issues": List of any limit violations (list[str])
            - "model_limits": The limits for the specified model (dict)

    Raises:
        ValueError: If the model name is not recognized.
    """
    logger = logging.getLogger("embedder")

    if model not in EMBEDDING_LIMITS:
        raise ValueError(
            f"Unknown embedding model: {model}. "
            f"Available models: {list(EMBEDDING_LIMITS.keys())}"
        )

    limits = EMBEDDING_LIMITS[model]
    texts_list = [texts] if isinstance(texts, str) else texts

    token_counts = [count_tokens(text, encoding_name) for text in texts_list]
    total_tokens = sum(token_counts)
    max_tokens = max(token_counts) if token_counts else 0
    num_texts = len(texts_list)

    issues = []
    if max_tokens > limits["context_length"]:
        issues.append(
            f"Longest text has {max_tokens} tokens, exceeds context length limit of {limits['context_length']}"
        )
    if total_tokens > limits["batch_total"]:
        issues.append(
            f"Total tokens {total_tokens} exceeds batch total limit of {limits['batch_total']}"
        )
    if num_texts > limits["batch_size"]:
        issues.append(
            f"Number of texts {num_texts} exceeds batch size limit of {limits['batch_size']}"
        )

    fits = len(issues) == 0
    if not fits:
        logger.warning(f"Embedding limit check failed for model {model}: {issues}")

    return {
        "fits": fits,
        "total_tokens": total_tokens,
        "num_texts": num_texts,
        "max_text_tokens": max_tokens,
        "issues": issues,
        "model_limits": limits,
    }
