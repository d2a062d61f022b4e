"""
Firestore vector store.

Uses native AsyncClient vector search (``find_nearest`` with cosine distance).
All queries are pre-filtered on user_id; the composite vector index must
include user_id (and group_key for group-filtered searches).

Storage Structure:
- Collection: rag_chunks, Document ID: {user_id}_{source_id}_{chunk_index}
  Fields: user_id, source_id, group_key, chunk_index, start_line, end_line,
  text, embedding (Vector), created_at
- Collection: messages, Document ID: {source_id}
  Fields: user_id, text, file_path, file_type
- Collection: files, Document ID: {source_id}
  Fields: user_id, file_name, file_path, file_mime, file_text
"""
from __future__ import annotations

import asyncio
from typing import Any, Optional

from google.cloud import firestore
from google.cloud.firestore_v1.base_vector_query import DistanceMeasure
from google.cloud.firestore_v1.vector import Vector

from ai_router.config import get_logger, settings
from ai_router.exceptions import VectorStoreError
from ai_router.providers.firestore import get_firestore_client
from .interface import (
    EMPTY_STATS,
    ChunkMatch,
    SourceMetadata,
    StoredChunk,
    VectorStoreInterface,
)

logger = get_logger("providers.vector_store.firestore")

DISTANCE_FIELD = "vector_distance"


class FirestoreVectorStore(VectorStoreInterface):
    """Firestore implementation scoped per user id."""

    def __init__(self, db: Optional[firestore.AsyncClient] = None):
        self._db = db
        self._initialized = db is not None

    @property
    def db(self) -> firestore.AsyncClient:
        if self._db is None:
            self._db = get_firestore_client()
        return self._db

    @property
    def chunks(self):
        return self.db.collection(settings.FIRESTORE_CHUNK_COLLECTION)

    async def initialize(self) -> None:
        try:
            await asyncio.wait_for(self.chunks.limit(1).get(), timeout=settings.VECTOR_QUERY_TIMEOUT_SECONDS)
        except Exception as e:
            logger.error("Firestore vector store initialization failed: %s", e)
            raise VectorStoreError("Vector store unreachable", details=str(e)) from e
        self._initialized = True
        logger.info("Firestore vector store ready (collection=%s)", settings.FIRESTORE_CHUNK_COLLECTION)

    def is_available(self) -> bool:
        return self._initialized and self._db is not None

    def get_provider_name(self) -> str:
        return "firestore"

    @staticmethod
    def _to_chunk(data: dict[str, Any], chunk_id: str) -> StoredChunk:
        embedding = data.get(settings.FIRESTORE_VECTOR_FIELD)
        return StoredChunk(
            chunk_id=chunk_id,
            user_id=int(data.get("user_id", 0)),
            source_id=str(data.get("source_id", "")),
            group_key=str(data.get("group_key", "")),
            chunk_index=int(data.get("chunk_index", 0)),
            text=data.get("text", ""),
            embedding=list(embedding) if embedding is not None else [],
            start_line=int(data.get("start_line", 0)),
            end_line=int(data.get("end_line", 0)),
            created_at=data.get("created_at"),
        )

    async def _count_source_chunks(self, user_id: int, source_id: str) -> int:
        query = self.chunks.where("user_id", "==", user_id).where("source_id", "==", source_id)
        return len([doc async for doc in query.select(["chunk_index"]).stream()])

    async def nearest(
        self,
        query_vector: list[float],
        user_id: int,
        *,
        limit: int,
        group_key: Optional[str] = None,
        max_distance: Optional[float] = None,
        exclude_source_id: Optional[str] = None,
    ) -> list[ChunkMatch]:
        if limit <= 0 or not query_vector:
            return []

        try:
            query = self.chunks.where("user_id", "==", user_id)
            if group_key is not None:
                query = query.where("group_key", "==", group_key)

            # Exclusion is applied after the vector query; widen the window by
            # the excluded source's chunk count so the limit still holds
            fetch_limit = limit
            if exclude_source_id is not None:
                fetch_limit += await self._count_source_chunks(user_id, exclude_source_id)
            fetch_limit = min(fetch_limit, settings.VECTOR_QUERY_MAX_RESULTS)

            vector_query = query.find_nearest(
                vector_field=settings.FIRESTORE_VECTOR_FIELD,
                query_vector=Vector(query_vector),
                distance_measure=DistanceMeasure.COSINE,
                limit=fetch_limit,
                distance_result_field=DISTANCE_FIELD,
                distance_threshold=max_distance,
            )
            docs = await asyncio.wait_for(vector_query.get(), timeout=settings.VECTOR_QUERY_TIMEOUT_SECONDS)
        except asyncio.TimeoutError as e:
            logger.warning("Vector query timed out for user=%s", user_id)
            raise VectorStoreError("Vector query timed out", details=str(e)) from e
        except Exception as e:
            logger.error("Vector query failed for user=%s: %s", user_id, e)
            raise VectorStoreError("Vector query failed", details=str(e)) from e

        matches: list[ChunkMatch] = []
        for doc in docs:
            data = doc.to_dict() or {}
            distance = float(data.pop(DISTANCE_FIELD, 1.0))
            chunk = self._to_chunk(data, doc.id)
            if exclude_source_id is not None and chunk.source_id == exclude_source_id:
                continue
            if max_distance is not None and distance > max_distance:
                continue
            matches.append(ChunkMatch(chunk=chunk, distance=distance))

        matches.sort(key=lambda m: m.distance)
        return matches[:limit]

    async def get_source_embedding(self, user_id: int, source_id: str) -> Optional[list[float]]:
        query = (
            self.chunks
            .where("user_id", "==", user_id)
            .where("source_id", "==", source_id)
            .order_by("chunk_index")
            .limit(1)
        )
        try:
            async for doc in query.stream():
                embedding = (doc.to_dict() or {}).get(settings.FIRESTORE_VECTOR_FIELD)
                return list(embedding) if embedding is not None else None
        except Exception as e:
            logger.error("Failed to read embedding of source=%s: %s", source_id, e)
            raise VectorStoreError("Failed to read source embedding", details=str(e)) from e
        return None

    async def _get_source(self, user_id: int, source_id: str) -> Optional[SourceMetadata]:
        message_doc, file_doc = await asyncio.gather(
            self.db.collection(settings.FIRESTORE_MESSAGE_COLLECTION).document(source_id).get(),
            self.db.collection(settings.FIRESTORE_FILE_COLLECTION).document(source_id).get(),
        )
        message = message_doc.to_dict() if message_doc.exists else None
        file = file_doc.to_dict() if file_doc.exists else None

        # Metadata of other users is never exposed
        if message and message.get("user_id") not in (None, user_id):
            message = None
        if file and file.get("user_id") not in (None, user_id):
            file = None
        if message is None and file is None:
            return None

        message = message or {}
        file = file or {}
        return SourceMetadata(
            source_id=source_id,
            message_text=message.get("text"),
            message_file_path=message.get("file_path"),
            message_file_type=message.get("file_type"),
            file_name=file.get("file_name"),
            file_path=file.get("file_path"),
            file_mime=file.get("file_mime"),
            file_text=file.get("file_text"),
        )

    async def get_sources(self, user_id: int, source_ids: list[str]) -> dict[str, SourceMetadata]:
        unique_ids = list(dict.fromkeys(source_ids))
        try:
            found = await asyncio.gather(*(self._get_source(user_id, sid) for sid in unique_ids))
        except Exception as e:
            logger.error("Failed to load source metadata: %s", e)
            raise VectorStoreError("Failed to load source metadata", details=str(e)) from e
        return {meta.source_id: meta for meta in found if meta is not None}

    async def get_user_stats(self, user_id: int) -> dict[str, int]:
        query = self.chunks.where("user_id", "==", user_id).select(["source_id", "group_key", "text"])
        sources: set[str] = set()
        groups: set[str] = set()
        total_chunks = 0
        total_chars = 0
        try:
            async for doc in query.stream():
                data = doc.to_dict() or {}
                sources.add(str(data.get("source_id", "")))
                groups.add(str(data.get("group_key", "")))
                total_chars += len(data.get("text", "") or "")
                total_chunks += 1
        except Exception as e:
            logger.error("Failed to compute stats for user=%s: %s", user_id, e)
            raise VectorStoreError("Failed to compute stats", details=str(e)) from e

        if total_chunks == 0:
            return dict(EMPTY_STATS)
        return {
            "total_documents": len(sources),
            "total_chunks": total_chunks,
            "total_groups": len(groups),
            "avg_chunk_size": int(total_chars / total_chunks),
        }

    async def store_chunks(self, chunks: list[StoredChunk]) -> int:
        """Batched upsert, committing every FIRESTORE_BATCH_SIZE writes."""
        batch = self.db.batch()
        count = 0
        try:
            for chunk in chunks:
                batch.set(self.chunks.document(chunk.chunk_id), {
                    "user_id": chunk.user_id,
                    "source_id": chunk.source_id,
                    "group_key": chunk.group_key,
                    "chunk_index": chunk.chunk_index,
                    "start_line": chunk.start_line,
                    "end_line": chunk.end_line,
                    "text": chunk.text,
                    settings.FIRESTORE_VECTOR_FIELD: Vector(chunk.embedding),
                    "created_at": chunk.created_at,
                })
                count += 1
                if count >= settings.FIRESTORE_BATCH_SIZE:
                    await batch.commit()
                    batch = self.db.batch()
                    count = 0
            if count > 0:
                await batch.commit()
        except Exception as e:
            logger.error("Failed to store chunks: %s", e)
            raise VectorStoreError("Failed to store chunks", details=str(e)) from e

        logger.info("Stored %d chunks", len(chunks))
        return len(chunks)

    async def delete_source(self, user_id: int, source_id: str) -> int:
        query = self.chunks.where("user_id", "==", user_id).where("source_id", "==", source_id)
        batch = self.db.batch()
        count = 0
        deleted = 0
        try:
            async for doc in query.stream():
                batch.delete(doc.reference)
                count += 1
                deleted += 1
                if count >= settings.FIRESTORE_BATCH_SIZE:
                    await batch.commit()
                    batch = self.db.batch()
                    count = 0
            if count > 0:
                await batch.commit()
        except Exception as e:
            logger.error("Failed to delete source=%s: %s", source_id, e)
            raise VectorStoreError("Failed to delete chunks", details=str(e)) from e

        logger.info("Deleted %d chunks for source=%s user=%s", deleted, source_id, user_id)
        return deleted

    async def close(self) -> None:
        # The client is shared with model configuration; the app closes it once
        self._db = None
        self._initialized = False
