"""
PodcastStore: relational rows plus vectors behind one async interface.

Episodes and chunk text live in SQL (SQLAlchemy); chunk vectors and summary
vectors live in Qdrant. Writes are single-row: there is no transaction
spanning several chunks, so an interrupted run can leave an episode
partially embedded. delete_episode_chunks() is the way back to a clean slate.

SQL work runs in a worker thread so callers can await it like the Qdrant
calls.
"""

import asyncio
import json
import logging
import os
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from qdrant_client import AsyncQdrantClient
from sqlalchemy import func

from podcast_qa.config import PodcastQAConfig
from podcast_qa.exceptions import PersistenceFailure
from podcast_qa.logger import log_function
from .database import Database
from .models import Episode, ProcessingStage, TranscriptChunk
from .qdrant_client import (
    count_points,
    create_collection,
    delete_episode_points,
    delete_points,
    get_qdrant_client,
    insert_one_point,
    search_similar,
)


logger = logging.getLogger("database")


@dataclass
class EpisodeMetadata:
    """Episode fields known at discovery time."""

    guid: str
    title: str
    episode_number: Optional[int] = None
    published_date: Optional[datetime] = None
    audio_url: Optional[str] = None
    description: Optional[str] = None


@dataclass
class ChunkMatch:
    id: str
    content: str
    episode_guid: str
    episode_title: str
    episode_number: Optional[int]
    similarity: float
    metadata: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "content": self.content,
            "episode_guid": self.episode_guid,
            "episode_title": self.episode_title,
            "episode_number": self.episode_number,
            "similarity": self.similarity,
            **self.metadata,
        }


@dataclass
class EpisodeMatch:
    guid: str
    title: str
    episode_number: Optional[int]
    summary: str
    guests: list[str]
    similarity: float

    def to_dict(self) -> dict:
        return {
            "guid": self.guid,
            "title": self.title,
            "episode_number": self.episode_number,
            "summary": self.summary,
            "guests": self.guests,
            "similarity": self.similarity,
        }


class PodcastStore:
    """Storage collaborator for ingestion and retrieval.

    Args:
        database: Relational database wrapper.
        qdrant: Async Qdrant client.
        chunks_collection: Collection holding chunk vectors.
        summaries_collection: Collection holding episode summary vectors.
        embedding_dimension: Vector size for both collections.
    """

    def __init__(
        self,
        database: Database,
        qdrant: AsyncQdrantClient,
        chunks_collection: str = "podcast_chunks",
        summaries_collection: str = "podcast_summaries",
        embedding_dimension: int = 1536,
    ):
        self.database = database
        self.qdrant = qdrant
        self.chunks_collection = chunks_collection
        self.summaries_collection = summaries_collection
        self.embedding_dimension = embedding_dimension

    @classmethod
    def from_config(
        cls, config: PodcastQAConfig, qdrant: Optional[AsyncQdrantClient] = None
    ) -> "PodcastStore":
        sqlite_path = config.database_url.partition(":///")[2]
        if config.database_url.startswith("sqlite") and sqlite_path not in ("", ":memory:"):
            os.makedirs(os.path.dirname(sqlite_path) or ".", exist_ok=True)
        return cls(
            Database(config.database_url),
            qdrant or get_qdrant_client(url=config.qdrant_url, api_key=config.qdrant_api_key),
            chunks_collection=config.chunks_collection,
            summaries_collection=config.summaries_collection,
            embedding_dimension=config.embedding_dimension,
        )

    @log_function(logger_name="database", log_execution_time=True)
    async def initialize(self) -> None:
        """Create tables and vector collections if missing.

        Raises:
            RuntimeError: If the database cannot be reached.
        """
        if not await asyncio.to_thread(self.database.check_connection):
            raise RuntimeError(f"Cannot connect to database {self.database.database_url}")
        await asyncio.to_thread(self.database.init_database)
        for name in (self.chunks_collection, self.summaries_collection):
            await create_collection(self.qdrant, name, dimension=self.embedding_dimension)

    async def close(self) -> None:
        await self.qdrant.close()
        self.database.engine.dispose()

    def _check_vector(self, vector: list[float]) -> None:
        if len(vector) != self.embedding_dimension:
            raise ValueError(
                f"Vector has {len(vector)} dimensions, expected {self.embedding_dimension}"
            )

    # ------------------------------------------------------------------
    # Episodes
    # ------------------------------------------------------------------

    async def insert_episode(self, metadata: EpisodeMetadata) -> tuple[Episode, bool]:
        """Insert an episode unless its guid already exists.

        Returns:
            tuple[Episode, bool]: The stored episode and whether it was created.
        """

        def _insert() -> tuple[Episode, bool]:
            with self.database.get_session() as session:
                existing = session.query(Episode).filter_by(guid=metadata.guid).first()
                if existing:
                    return existing, False
                episode = Episode(
                    uuid=str(uuid.uuid4()),
                    guid=metadata.guid,
                    episode_number=metadata.episode_number,
                    title=metadata.title,
                    description=metadata.description,
                    published_date=metadata.published_date,
                    audio_url=metadata.audio_url,
                    processing_stage=ProcessingStage.SYNCED,
                )
                session.add(episode)
                session.commit()
                session.refresh(episode)
                return episode, True

        episode, created = await asyncio.to_thread(_insert)
        if created:
            logger.info(f"Added episode {episode.guid}: {episode.title}")
        return episode, created

    async def find_episode_by_guid(self, guid: str) -> Optional[Episode]:
        def _find() -> Optional[Episode]:
            with self.database.get_session() as session:
                return session.query(Episode).filter_by(guid=guid).first()

        return await asyncio.to_thread(_find)

    async def find_episode_by_number(self, episode_number: int) -> Optional[Episode]:
        def _find() -> Optional[Episode]:
            with self.database.get_session() as session:
                return (
                    session.query(Episode)
                    .filter_by(episode_number=episode_number)
                    .first()
                )

        return await asyncio.to_thread(_find)

    async def list_episodes(
        self, limit: Optional[int] = None, newest_first: bool = False
    ) -> list[Episode]:
        def _list() -> list[Episode]:
            with self.database.get_session() as session:
                order = Episode.published_date.desc() if newest_first else Episode.published_date
                query = session.query(Episode).order_by(order, Episode.episode_number)
                if limit:
                    query = query.limit(limit)
                return query.all()

        return await asyncio.to_thread(_list)

    async def update_episode(self, guid: str, **fields: Any) -> bool:
        """Update the given columns of an episode.

        Returns:
            bool: False if no episode has this guid.
        """
        unknown = [name for name in fields if not hasattr(Episode, name)]
        if unknown:
            raise ValueError(f"Unknown episode fields: {unknown}")

        def _update() -> bool:
            with self.database.get_session() as session:
                episode = session.query(Episode).filter_by(guid=guid).first()
                if not episode:
                    return False
                for name, value in fields.items():
                    setattr(episode, name, value)
                session.commit()
                return True

        updated = await asyncio.to_thread(_update)
        if not updated:
            logger.error(f"Episode {guid} not found in database")
        return updated

    async def update_episode_summary(
        self,
        guid: str,
        summary: str,
        guests: list[str],
        embedding: Optional[list[float]] = None,
    ) -> bool:
        """Store summary and guests on the episode row and its summary vector.

        Returns:
            bool: False if no episode has this guid.
        """
        episode = await self.find_episode_by_guid(guid)
        if episode is None:
            logger.error(f"Episode {guid} not found in database")
            return False

        await self.update_episode(guid, summary=summary, guests=json.dumps(guests))

        if embedding is not None:
            self._check_vector(embedding)
            await insert_one_point(
                self.qdrant,
                self.summaries_collection,
                point_id=episode.uuid,
                vector=embedding,
                payload={
                    "episode_uuid": episode.uuid,
                    "guid": episode.guid,
                    "title": episode.title,
                    "episode_number": episode.episode_number,
                    "summary": summary,
                    "guests": guests,
                },
            )
        return True

    async def delete_episode(self, guid: str) -> bool:
        """Delete an episode, its chunks and all of its vectors.

        Returns:
            bool: False if no episode has this guid.
        """
        episode = await self.find_episode_by_guid(guid)
        if episode is None:
            return False

        await delete_episode_points(self.qdrant, self.chunks_collection, episode.uuid)
        await delete_points(self.qdrant, self.summaries_collection, [episode.uuid])

        def _delete() -> None:
            with self.database.get_session() as session:
                row = session.get(Episode, episode.uuid)
                if row is not None:
                    session.delete(row)
                    session.commit()

        await asyncio.to_thread(_delete)
        logger.info(f"Deleted episode {guid} with its chunks")
        return True

    # ------------------------------------------------------------------
    # Chunks
    # ------------------------------------------------------------------

    async def insert_chunk(
        self,
        episode: Episode,
        chunk_index: int,
        content: str,
        embedding: list[float],
        token_count: Optional[int] = None,
        metadata: Optional[dict] = None,
    ) -> str:
        """Insert one chunk row and its vector.

        Returns:
            str: The new chunk id.

        Raises:
            PersistenceFailure: If either write fails. A row whose vector
                could not be written is removed again.
        """
        self._check_vector(embedding)
        metadata = metadata or {}
        chunk_id = str(uuid.uuid4())

        def _insert_row() -> None:
            with self.database.get_session() as session:
                session.add(
                    TranscriptChunk(
                        id=chunk_id,
                        episode_uuid=episode.uuid,
                        chunk_index=chunk_index,
                        content=content,
                        token_count=token_count,
                        speaker=metadata.get("speaker"),
                        start_time=metadata.get("start_time"),
                        end_time=metadata.get("end_time"),
                    )
                )
                session.commit()

        def _delete_row() -> None:
            with self.database.get_session() as session:
                session.query(TranscriptChunk).filter_by(id=chunk_id).delete()
                session.commit()

        what = f"chunk {chunk_index} of episode {episode.guid}"
        try:
            await asyncio.to_thread(_insert_row)
        except Exception as e:
            raise PersistenceFailure(what, e) from e

        payload = {
            "episode_uuid": episode.uuid,
            "episode_guid": episode.guid,
            "title": episode.title,
            "episode_number": episode.episode_number,
            "chunk_index": chunk_index,
            "token_count": token_count,
            "text": content,
            **metadata,
        }
        try:
            await insert_one_point(
                self.qdrant, self.chunks_collection, chunk_id, embedding, payload
            )
        except Exception as e:
            await asyncio.to_thread(_delete_row)
            raise PersistenceFailure(what, e) from e
        return chunk_id

    async def delete_episode_chunks(self, guid: str) -> int:
        """Remove every chunk row and chunk vector of an episode.

        Returns:
            int: Number of chunk rows deleted.
        """
        episode = await self.find_episode_by_guid(guid)
        if episode is None:
            return 0

        await delete_episode_points(self.qdrant, self.chunks_collection, episode.uuid)

        def _delete() -> int:
            with self.database.get_session() as session:
                deleted = (
                    session.query(TranscriptChunk)
                    .filter_by(episode_uuid=episode.uuid)
                    .delete()
                )
                session.commit()
                return deleted

        deleted = await asyncio.to_thread(_delete)
        if deleted:
            logger.info(f"Deleted {deleted} existing chunk(s) of episode {guid}")
        return deleted

    async def get_episode_chunks(self, guid: str) -> list[str]:
        def _chunks() -> list[str]:
            with self.database.get_session() as session:
                rows = (
                    session.query(TranscriptChunk.content)
                    .join(Episode, Episode.uuid == TranscriptChunk.episode_uuid)
                    .filter(Episode.guid == guid)
                    .order_by(TranscriptChunk.chunk_index)
                    .all()
                )
                return [row[0] for row in rows]

        return await asyncio.to_thread(_chunks)

    async def search_chunks_by_keyword(self, keyword: str, limit: int = 10) -> list[dict]:
        """Case-insensitive substring match over chunk text, not ranked."""

        def _search() -> list[dict]:
            with self.database.get_session() as session:
                rows = (
                    session.query(TranscriptChunk, Episode)
                    .join(Episode, Episode.uuid == TranscriptChunk.episode_uuid)
                    .filter(TranscriptChunk.content.ilike(f"%{keyword}%"))
                    .limit(limit)
                    .all()
                )
                return [
                    {
                        "id": chunk.id,
                        "content": chunk.content,
                        "episode_guid": episode.guid,
                        "episode_title": episode.title,
                        "episode_number": episode.episode_number,
                    }
                    for chunk, episode in rows
                ]

        return await asyncio.to_thread(_search)

    # ------------------------------------------------------------------
    # Similarity
    # ------------------------------------------------------------------

    async def query_chunks_by_similarity(
        self, vector: list[float], threshold: float, limit: int
    ) -> list[ChunkMatch]:
        points = await search_similar(
            self.qdrant, self.chunks_collection, vector, limit, threshold
        )
        matches = []
        for point in points:
            payload = point.payload or {}
            extra = {
                key: payload[key]
                for key in ("speaker", "start_time", "end_time")
                if payload.get(key) is not None
            }
            matches.append(
                ChunkMatch(
                    id=str(point.id),
                    content=payload.get("text", ""),
                    episode_guid=payload.get("episode_guid", ""),
                    episode_title=payload.get("title", ""),
                    episode_number=payload.get("episode_number"),
                    similarity=point.score,
                    metadata=extra,
                )
            )
        return matches

    async def query_episodes_by_summary_similarity(
        self, vector: list[float], threshold: float, limit: int
    ) -> list[EpisodeMatch]:
        points = await search_similar(
            self.qdrant, self.summaries_collection, vector, limit, threshold
        )
        return [
            EpisodeMatch(
                guid=(point.payload or {}).get("guid", ""),
                title=(point.payload or {}).get("title", ""),
                episode_number=(point.payload or {}).get("episode_number"),
                summary=(point.payload or {}).get("summary", ""),
                guests=list((point.payload or {}).get("guests") or []),
                similarity=point.score,
            )
            for point in points
        ]

    # ------------------------------------------------------------------
    # Archive overview
    # ------------------------------------------------------------------

    async def list_guests(self) -> dict:
        """Every distinct guest with the episodes they appear in."""
        episodes = await self.list_episodes()
        appearances: dict[str, list[dict]] = {}
        for episode in episodes:
            for guest in episode.guest_list:
                appearances.setdefault(guest, []).append(
                    {"episode_number": episode.episode_number, "title": episode.title}
                )
        guests = [
            {"name": name, "episode_count": len(eps), "episodes": eps}
            for name, eps in appearances.items()
        ]
        return {"guests": guests, "total_guests": len(guests)}

    async def get_stats(self) -> dict:
        def _stats() -> dict:
            with self.database.get_session() as session:
                episode_count = session.query(func.count(Episode.uuid)).scalar() or 0
                chunk_count = session.query(func.count(TranscriptChunk.id)).scalar() or 0
                latest = (
                    session.query(Episode)
                    .order_by(Episode.published_date.desc(), Episode.episode_number.desc())
                    .first()
                )
                return {
                    "total_episodes": episode_count,
                    "total_chunks": chunk_count,
                    "latest_episode": latest.to_dict() if latest else None,
                }

        stats = await asyncio.to_thread(_stats)
        stats["indexed_vectors"] = await count_points(self.qdrant, self.chunks_collection)
        return stats
