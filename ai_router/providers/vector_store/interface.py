"""
Abstract interface for the vector store.

The store owns chunk embeddings and computes cosine distances
(0 = identical, 2 = opposite); ranking and score conversion happen in
VectorSearchService. Every operation is scoped to a user id.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class StoredChunk:
    """One embedded chunk of a source message or file."""
    chunk_id: str
    user_id: int
    source_id: str
    group_key: str
    chunk_index: int
    text: str
    embedding: list[float]
    start_line: int = 0
    end_line: int = 0
    created_at: datetime = field(default_factory=_utcnow)


@dataclass
class ChunkMatch:
    """A stored chunk and its cosine distance to the query vector."""
    chunk: StoredChunk
    distance: float


@dataclass
class SourceMetadata:
    """Originating message / file data used to enrich search hits."""
    source_id: str
    message_text: Optional[str] = None
    message_file_path: Optional[str] = None
    message_file_type: Optional[str] = None
    file_name: Optional[str] = None
    file_path: Optional[str] = None
    file_mime: Optional[str] = None
    file_text: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "message_text": self.message_text,
            "message_file_path": self.message_file_path,
            "message_file_type": self.message_file_type,
            "file_name": self.file_name,
            "file_path": self.file_path,
            "file_mime": self.file_mime,
            "file_text": self.file_text,
        }


EMPTY_STATS: dict[str, int] = {
    "total_documents": 0,
    "total_chunks": 0,
    "total_groups": 0,
    "avg_chunk_size": 0,
}


class VectorStoreInterface(ABC):
    """Abstract interface for chunk storage and nearest-neighbour queries."""

    @abstractmethod
    async def initialize(self) -> None:
        """Open connections / verify the backend."""

    @abstractmethod
    def is_available(self) -> bool:
        """Check if the store can serve queries."""

    @abstractmethod
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
        """
        Nearest chunks of one user by cosine distance, ascending.

        Args:
            query_vector: Query embedding
            user_id: Owner partition to search
            limit: Maximum matches to return
            group_key: Restrict to one group (None = all groups)
            max_distance: Drop matches farther than this
            exclude_source_id: Drop chunks belonging to this source

        Raises:
            VectorStoreError: If the backend query fails
        """

    @abstractmethod
    async def get_source_embedding(self, user_id: int, source_id: str) -> Optional[list[float]]:
        """Embedding of the source's first chunk (lowest chunk_index), or None."""

    @abstractmethod
    async def get_sources(self, user_id: int, source_ids: list[str]) -> dict[str, SourceMetadata]:
        """Metadata for the given sources; unknown ids are omitted."""

    @abstractmethod
    async def get_user_stats(self, user_id: int) -> dict[str, int]:
        """total_documents, total_chunks, total_groups, avg_chunk_size."""

    @abstractmethod
    async def store_chunks(self, chunks: list[StoredChunk]) -> int:
        """Upsert chunks by chunk_id; returns the number written."""

    @abstractmethod
    async def delete_source(self, user_id: int, source_id: str) -> int:
        """Delete all chunks of a source; returns the number deleted."""

    @abstractmethod
    async def close(self) -> None:
        """Release backend resources."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Get the backend name (e.g. 'firestore', 'memory')."""
