import logging
from typing import Any, Dict, Optional, Sequence, Union

from openai import AsyncOpenAI

from podcast_qa.chunker import SpeakerChunk, check_embedding_limits, count_tokens
from podcast_qa.config import PodcastQAConfig
from podcast_qa.db import Episode, PodcastStore
from podcast_qa.exceptions import EmbeddingBatchFailure, PersistenceFailure
from podcast_qa.logger import log_function


logger = logging.getLogger("embedder")

ChunkInput = Union[str, SpeakerChunk]


def normalize_query(query: str) -> str:
    """Replace newline escape sequences (and real newlines) with spaces."""
    return query.replace("\\n", " ").replace("\n", " ")


class EmbeddingGenerator:
    """Turn texts into vectors with an OpenAI embedding model.

    Args:
        client: Async OpenAI client.
        model: Embedding model name.
        dimension: Expected vector size; every returned vector is checked.
        encoding_name: tiktoken encoding used for the request limit check.
    """

    def __init__(
        self,
        client: AsyncOpenAI,
        model: str = "text-embedding-3-small",
        dimension: int = 1536,
        encoding_name: str = "cl100k_base",
    ):
        self.client = client
        self.model = model
        self.dimension = dimension
        self.encoding_name = encoding_name

    @classmethod
    def from_config(cls, client: AsyncOpenAI, config: PodcastQAConfig) -> "EmbeddingGenerator":
        return cls(
            client,
            model=config.embedding_model,
            dimension=config.embedding_dimension,
            encoding_name=config.encoding_name,
        )

    @log_function(logger_name="embedder", log_args=False, log_execution_time=True)
    async def embed_texts(self, texts: Sequence[str]) -> list[list[float]]:
        """Embed a batch of texts with one request, preserving input order.

        Args:
            texts: Non-empty list of texts.

        Returns:
            list[list[float]]: One vector per input text.

        Raises:
            ValueError: If the batch breaks the model's request limits, or
                the provider returns the wrong number or size of vectors.
            openai.APIError: If the request fails.
        """
        if not texts:
            return []

        limit_check = check_embedding_limits(
            list(texts), model=self.model, encoding_name=self.encoding_name
        )
        if not limit_check["fits"]:
            raise ValueError(f"Text exceeds embedding limits: {limit_check['issues']}")

        logger.info(
            f"Embedding {len(texts)} text(s) with {self.model} "
            f"({limit_check['total_tokens']} tokens)"
        )
        response = await self.client.embeddings.create(model=self.model, input=list(texts))

        vectors = [item.embedding for item in sorted(response.data, key=lambda d: d.index)]
        if len(vectors) != len(texts):
            raise ValueError(f"Expected {len(texts)} embeddings, got {len(vectors)}")
        for vector in vectors:
            if len(vector) != self.dimension:
                raise ValueError(
                    f"Embedding has {len(vector)} dimensions, expected {self.dimension}"
                )
        return vectors

    async def embed_query(self, query: str) -> list[float]:
        """Embed a user query in the same space as stored chunks."""
        vectors = await self.embed_texts([normalize_query(query)])
        return vectors[0]


def _split_chunk(chunk: ChunkInput) -> tuple[str, dict]:
    if isinstance(chunk, SpeakerChunk):
        return chunk.content, chunk.metadata()
    return chunk, {}


@log_function(logger_name="embedder", log_execution_time=True)
async def embed_episode_chunks(
    store: PodcastStore,
    embedder: EmbeddingGenerator,
    episode: Episode,
    chunks: Sequence[ChunkInput],
    replace_existing: bool = True,
) -> Dict[str, Any]:
    """
    Embed an episode's chunks in one batch and persist each (chunk, vector) pair.

    Existing chunks of the episode are deleted first when `replace_existing`
    is set, so re-running the step does not duplicate rows. A pair that fails
    to persist is logged and counted; the remaining pairs are still written.

    Parameters:
        store: Storage collaborator.
        embedder: Embedding generator.
        episode: Owning episode (must already be stored).
        chunks: Plain text chunks or speaker-aligned chunks, in order.
        replace_existing: Delete previously stored chunks first.

    Returns:
        dict: Status dictionary containing:
            - success (bool): True when at least one chunk was stored, or
              there was nothing to store
            - inserted (int): Chunks persisted
            - failed (int): Chunks that could not be persisted
            - replaced (int): Previously stored chunks deleted
            - error (str | None): Last persistence error message

    Raises:
        EmbeddingBatchFailure: If the batched embedding request fails.
    """
    result: Dict[str, Any] = {
        "success": False,
        "inserted": 0,
        "failed": 0,
        "replaced": 0,
        "error": None,
    }

    pairs = [pair for pair in map(_split_chunk, chunks) if pair[0].strip()]
    if not pairs:
        logger.warning(f"Episode {episode.guid} has no chunk to embed")
        result["success"] = True
        return result

    texts = [text for text, _ in pairs]
    try:
        vectors = await embedder.embed_texts(texts)
    except Exception as e:
        logger.error(f"Embedding batch failed for episode {episode.guid}: {e}")
        raise EmbeddingBatchFailure(episode.guid, e) from e

    if replace_existing:
        result["replaced"] = await store.delete_episode_chunks(episode.guid)

    for index, ((text, metadata), vector) in enumerate(zip(pairs, vectors)):
        try:
            await store.insert_chunk(
                episode,
                chunk_index=index,
                content=text,
                embedding=vector,
                token_count=count_tokens(text, embedder.encoding_name),
                metadata=metadata,
            )
            result["inserted"] += 1
        except PersistenceFailure as e:
            logger.error(str(e))
            result["failed"] += 1
            result["error"] = str(e)

    result["success"] = result["inserted"] > 0
    logger.info(
        f"Episode {episode.guid}: {result['inserted']} chunk(s) stored, "
        f"{result['failed']} failed"
    )
    return result


async def embed_summary(
    embedder: EmbeddingGenerator, summary: str
) -> Optional[list[float]]:
    """Embed a summary text; empty summaries get no vector."""
    if not summary.strip():
        return None
    return (await embedder.embed_texts([summary]))[0]
