"""
Qdrant vector database helpers.

Two collections per deployment, both cosine-distance and the embedding
model's dimension:
    {prefix}_chunks     one point per TranscriptChunk (point id = chunk id)
    {prefix}_summaries  one point per Episode summary (point id = episode uuid)

Cosine scores returned by Qdrant are similarities (1 - cosine distance),
higher is closer.

Usage:
    client = get_qdrant_client(url="http://localhost:6333")
    await create_collection(client, "podcast_chunks", dimension=1536)
"""

import logging
from typing import Any, Dict, Optional

from qdrant_client import AsyncQdrantClient
from qdrant_client.models import (
    Distance,
    FieldCondition,
    Filter,
    FilterSelector,
    MatchValue,
    PointStruct,
    ScoredPoint,
    VectorParams,
)

from podcast_qa.logger import log_function


qdrant_logger = logging.getLogger("qdrant_client")


def get_qdrant_client(
    url: Optional[str] = None,
    api_key: Optional[str] = None,
    location: Optional[str] = None,
) -> AsyncQdrantClient:
    """Create an async Qdrant client.

    Args:
        url: Qdrant server URL.
        api_key: Optional API key for Qdrant Cloud.
        location: ":memory:" for the embedded local mode (used in tests).
    """
    if location is not None:
        qdrant_logger.debug(f"Using local Qdrant at {location}")
        return AsyncQdrantClient(location=location)
    qdrant_logger.debug(f"Connecting to Qdrant at {url}")
    return AsyncQdrantClient(url=url, api_key=api_key)


def episode_filter(episode_uuid: str) -> Filter:
    return Filter(
        must=[FieldCondition(key="episode_uuid", match=MatchValue(value=episode_uuid))]
    )


@log_function(logger_name="qdrant_client", log_execution_time=True)
async def create_collection(
    client: AsyncQdrantClient,
    name: str,
    dimension: int = 1536,
    distance: Distance = Distance.COSINE,
) -> None:
    """
    Create a Qdrant collection if it does not exist.

    Args:
        client (AsyncQdrantClient): Active Qdrant client instance
        name (str): Name of the collection to create
        dimension (int): Vector dimension size (default: 1536)
        distance (Distance): Distance metric for similarity (default: COSINE)
    """
    if await client.collection_exists(collection_name=name):
        qdrant_logger.debug(f"Collection '{name}' already exists")
        return
    qdrant_logger.info(f"Creating Qdrant collection: {name} (dimension={dimension})")
    await client.create_collection(
        collection_name=name,
        vectors_config=VectorParams(size=dimension, distance=distance),
    )


async def insert_one_point(
    client: AsyncQdrantClient,
    collection_name: str,
    point_id: str,
    vector: list[float],
    payload: Optional[Dict[str, Any]] = None,
) -> None:
    """Upsert a single vector with its payload."""
    await client.upsert(
        collection_name=collection_name,
        points=[PointStruct(id=point_id, vector=vector, payload=payload or {})],
    )


async def delete_points(
    client: AsyncQdrantClient, collection_name: str, point_ids: list[str]
) -> None:
    if not point_ids:
        return
    await client.delete(collection_name=collection_name, points_selector=point_ids)


async def delete_episode_points(
    client: AsyncQdrantClient, collection_name: str, episode_uuid: str
) -> None:
    """Delete every point whose payload belongs to `episode_uuid`."""
    await client.delete(
        collection_name=collection_name,
        points_selector=FilterSelector(filter=episode_filter(episode_uuid)),
    )
    qdrant_logger.info(f"Deleted points of episode {episode_uuid} from '{collection_name}'")


async def search_similar(
    client: AsyncQdrantClient,
    collection_name: str,
    vector: list[float],
    limit: int,
    threshold: float,
) -> list[ScoredPoint]:
    """Return up to `limit` points with similarity strictly above `threshold`,
    best first."""
    response = await client.query_points(
        collection_name=collection_name,
        query=vector,
        limit=limit,
        with_payload=True,
        score_threshold=threshold,
    )
    points = [point for point in response.points if point.score > threshold]
    return sorted(points, key=lambda point: point.score, reverse=True)


async def count_points(client: AsyncQdrantClient, collection_name: str) -> int:
    result = await client.count(collection_name=collection_name, exact=True)
    return result.count
