"""
In-memory vector store.

Cosine distances computed with numpy over the user's partition. Used by tests
and local development; contents do not survive a restart.
"""
from __future__ import annotations

import threading
from typing import Optional

import numpy as np

from ai_router.config import get_logger
from .interface import (
    EMPTY_STATS,
    ChunkMatch,
    SourceMetadata,
    StoredChunk,
    VectorStoreInterface,
)

logger = get_logger("providers.vector_store.memory")


def cosine_distances(query: np.ndarray, matrix: np.ndarray) -> np.ndarray:
    """
    Cosine distance between ``query`` and each row of ``matrix``.

    Zero-norm rows (or a zero-norm query) get distance 1.0.
    """
    q_norm = np.linalg.norm(query)
    row_norms = np.linalg.norm(matrix, axis=1)
    denom = row_norms * q_norm
    with np.errstate(divide="ignore", invalid="ignore"):
        similarity = np.where(denom > 0, matrix @ query / np.where(denom > 0, denom, 1.0), 0.0)
    return 1.0 - np.clip(similarity, -1.0, 1.0)


class InMemoryVectorStore(VectorStoreInterface):
    """Dict-backed store; thread-safe for concurrent tasks."""

    def __init__(self):
        self._chunks: dict[tuple[int, str], StoredChunk] = {}
        self._sources: dict[tuple[int, str], SourceMetadata] = {}
        self._lock = threading.Lock()

    async def initialize(self) -> None:
        logger.info("In-memory vector store ready")

    def is_available(self) -> bool:
        return True

    def get_provider_name(self) -> str:
        return "memory"

    def add_source(self, user_id: int, metadata: SourceMetadata) -> None:
        """Register message/file metadata for enrichment."""
        with self._lock:
            self._sources[(user_id, metadata.source_id)] = metadata

    def _user_chunks(self, user_id: int) -> list[StoredChunk]:
        with self._lock:
            return [c for c in self._chunks.values() if c.user_id == user_id]

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

        dims = len(query_vector)
        candidates = [
            c for c in self._user_chunks(user_id)
            if (group_key is None or c.group_key == group_key)
            and (exclude_source_id is None or c.source_id != exclude_source_id)
            and len(c.embedding) == dims
        ]
        if not candidates:
            return []

        matrix = np.asarray([c.embedding for c in candidates], dtype=np.float64)
        distances = cosine_distances(np.asarray(query_vector, dtype=np.float64), matrix)

        order = np.argsort(distances, kind="stable")
        matches: list[ChunkMatch] = []
        for idx in order:
            distance = float(distances[idx])
            if max_distance is not None and distance > max_distance:
                break
            matches.append(ChunkMatch(chunk=candidates[idx], distance=distance))
            if len(matches) >= limit:
                break
        return matches

    async def get_source_embedding(self, user_id: int, source_id: str) -> Optional[list[float]]:
        chunks = [c for c in self._user_chunks(user_id) if c.source_id == source_id]
        if not chunks:
            return None
        return list(min(chunks, key=lambda c: c.chunk_index).embedding)

    async def get_sources(self, user_id: int, source_ids: list[str]) -> dict[str, SourceMetadata]:
        with self._lock:
            return {
                sid: self._sources[(user_id, sid)]
                for sid in source_ids
                if (user_id, sid) in self._sources
            }

    async def get_user_stats(self, user_id: int) -> dict[str, int]:
        chunks = self._user_chunks(user_id)
        if not chunks:
            return dict(EMPTY_STATS)
        return {
            "total_documents": len({c.source_id for c in chunks}),
            "total_chunks": len(chunks),
            "total_groups": len({c.group_key for c in chunks}),
            "avg_chunk_size": int(sum(len(c.text) for c in chunks) / len(chunks)),
        }

    async def store_chunks(self, chunks: list[StoredChunk]) -> int:
        with self._lock:
            for chunk in chunks:
                self._chunks[(chunk.user_id, chunk.chunk_id)] = chunk
        logger.debug("Stored %d chunks", len(chunks))
        return len(chunks)

    async def delete_source(self, user_id: int, source_id: str) -> int:
        with self._lock:
            doomed = [
                cid for cid, c in self._chunks.items()
                if c.user_id == user_id and c.source_id == source_id
            ]
            for cid in doomed:
                del self._chunks[cid]
        logger.info("Deleted %d chunks for source=%s user=%s", len(doomed), source_id, user_id)
        return len(doomed)

    async def close(self) -> None:
        with self._lock:
            self._chunks.clear()
            self._sources.clear()
