"""
Similarity retrieval over stored chunks and episode summaries.

Queries are embedded with the same model as the stored chunks and compared by
cosine similarity. Only matches strictly above the threshold are returned,
best first. An empty result is a normal outcome: chunk retrieval returns
NO_RELEVANT_CONTENT and summary retrieval returns {"episodes": []}.
"""

import logging
from typing import Any, Optional, Union

from podcast_qa.config import PodcastQAConfig
from podcast_qa.db import PodcastStore
from podcast_qa.embedder import EmbeddingGenerator
from podcast_qa.logger import log_function
from podcast_qa.observability import record_output, trace_span


logger = logging.getLogger("retrieval")

NO_RELEVANT_CONTENT_MESSAGE = "No relevant content found"


def no_relevant_content() -> dict:
    return {"content": NO_RELEVANT_CONTENT_MESSAGE}


def is_no_relevant_content(result: Any) -> bool:
    return isinstance(result, dict) and result.get("content") == NO_RELEVANT_CONTENT_MESSAGE


class RetrievalEngine:
    """Chunk-level, summary-level and keyword retrieval.

    Args:
        store: Storage collaborator holding chunks and summaries.
        embedder: Generator used to embed queries.
        threshold: Default minimum similarity (exclusive).
        chunk_limit: Default number of chunks returned.
        summary_limit: Default number of episodes returned.
        keyword_limit: Cap on keyword search results.
    """

    def __init__(
        self,
        store: PodcastStore,
        embedder: EmbeddingGenerator,
        threshold: float = 0.1,
        chunk_limit: int = 4,
        summary_limit: int = 5,
        keyword_limit: int = 10,
    ):
        self.store = store
        self.embedder = embedder
        self.threshold = threshold
        self.chunk_limit = chunk_limit
        self.summary_limit = summary_limit
        self.keyword_limit = keyword_limit

    @classmethod
    def from_config(
        cls, store: PodcastStore, embedder: EmbeddingGenerator, config: PodcastQAConfig
    ) -> "RetrievalEngine":
        return cls(
            store,
            embedder,
            threshold=config.similarity_threshold,
            chunk_limit=config.chunk_result_limit,
            summary_limit=config.summary_result_limit,
            keyword_limit=config.keyword_result_limit,
        )

    @log_function(logger_name="retrieval", log_execution_time=True)
    async def find_relevant_content(
        self,
        query: str,
        threshold: Optional[float] = None,
        limit: Optional[int] = None,
    ) -> Union[list[dict], dict]:
        """Return the chunks most similar to `query`.

        Args:
            query: Free-text user query.
            threshold: Minimum similarity (exclusive); defaults to the engine's.
            limit: Maximum number of chunks; defaults to the engine's. A limit of
                zero or less matches nothing.

        Returns:
            list[dict] | dict: Ranked chunk dicts (content, episode, similarity),
            or {"content": "No relevant content found"}.
        """
        threshold = self.threshold if threshold is None else threshold
        limit = self.chunk_limit if limit is None else limit
        if limit <= 0:
            return no_relevant_content()

        with trace_span(
            "retrieval.chunks", input={"query": query, "threshold": threshold, "limit": limit}
        ) as span:
            vector = await self.embedder.embed_query(query)
            matches = await self.store.query_chunks_by_similarity(vector, threshold, limit)
            logger.info(f"{len(matches)} chunk(s) above {threshold} for query: {query[:60]!r}")
            result = [match.to_dict() for match in matches] if matches else no_relevant_content()
            record_output(span, result)
        return result

    @log_function(logger_name="retrieval", log_execution_time=True)
    async def find_episodes_by_summary(
        self,
        query: str,
        threshold: Optional[float] = None,
        limit: Optional[int] = None,
    ) -> dict:
        """Return the episodes whose summary is most similar to `query`.

        Returns:
            dict: {"episodes": [...]} ranked by similarity, possibly empty.
        """
        threshold = self.threshold if threshold is None else threshold
        limit = self.summary_limit if limit is None else limit
        if limit <= 0:
            return {"episodes": []}

        with trace_span(
            "retrieval.summaries", input={"query": query, "threshold": threshold, "limit": limit}
        ) as span:
            vector = await self.embedder.embed_query(query)
            matches = await self.store.query_episodes_by_summary_similarity(
                vector, threshold, limit
            )
            logger.info(f"{len(matches)} episode(s) above {threshold} for query: {query[:60]!r}")
            result = {"episodes": [match.to_dict() for match in matches]}
            record_output(span, result)
        return result

    async def search_keyword(self, keyword: str, limit: Optional[int] = None) -> Union[list[dict], dict]:
        """Exact substring search over chunk text, capped and unranked.

        Returns:
            list[dict] | dict: Matching chunks, or the no-relevant-content sentinel.
        """
        keyword = keyword.strip()
        if not keyword:
            return no_relevant_content()
        limit = self.keyword_limit if limit is None else min(limit, self.keyword_limit)
        if limit <= 0:
            return no_relevant_content()
        rows = await self.store.search_chunks_by_keyword(keyword, limit)
        logger.info(f"{len(rows)} chunk(s) contain {keyword!r}")
        return rows if rows else no_relevant_content()
