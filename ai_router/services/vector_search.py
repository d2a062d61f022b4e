"""
Vector search service.

Semantic search and "more like this" over a user's embedded chunks.

Ranking:
- score = 1 - cosine distance, clamped to [0, 1]
- hits below min_score are dropped, the rest sorted by score descending and
  capped at limit
- enrichment with message/file metadata happens after ranking

Failures never propagate to callers: a missing embedding model, an embedding
error or a vector store error are logged and produce an empty result.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from ai_router.config import get_logger, settings
from ai_router.providers.model_config import ModelConfigProviderInterface
from ai_router.providers.vector_store import (
    ChunkMatch,
    StoredChunk,
    VectorStoreInterface,
)
from ai_router.providers.vector_store.interface import EMPTY_STATS
from .facade import AiFacade

logger = get_logger("services.vector_search")


@dataclass
class SearchResult:
    chunk_id: str
    source_id: str
    text: str
    score: float
    group_key: str
    start_line: int = 0
    end_line: int = 0
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "chunk_id": self.chunk_id,
            "source_id": self.source_id,
            "chunk_text": self.text,
            "score": self.score,
            "group_key": self.group_key,
            "start_line": self.start_line,
            "end_line": self.end_line,
            **self.metadata,
        }


@dataclass
class ChunkInput:
    """A chunk of a source to index; embedding is computed on indexing."""
    text: str
    start_line: int = 0
    end_line: int = 0


def _score(distance: float) -> float:
    return min(1.0, max(0.0, 1.0 - distance))


class VectorSearchService:
    """Semantic search over stored chunk embeddings."""

    def __init__(
        self,
        facade: AiFacade,
        model_config: ModelConfigProviderInterface,
        store: VectorStoreInterface,
    ):
        self.facade = facade
        self.model_config = model_config
        self.store = store

    def _rank(self, matches: list[ChunkMatch], min_score: float, limit: int) -> list[SearchResult]:
        results = [
            SearchResult(
                chunk_id=m.chunk.chunk_id,
                source_id=m.chunk.source_id,
                text=m.chunk.text,
                score=_score(m.distance),
                group_key=m.chunk.group_key,
                start_line=m.chunk.start_line,
                end_line=m.chunk.end_line,
            )
            for m in matches
        ]
        results = [r for r in results if r.score >= min_score]
        results.sort(key=lambda r: r.score, reverse=True)
        return results[:limit]

    async def _enrich(self, user_id: int, results: list[SearchResult]) -> list[SearchResult]:
        if not results:
            return results
        try:
            sources = await self.store.get_sources(user_id, [r.source_id for r in results])
        except Exception as e:
            # Enrichment is best effort; ranked hits are still returned
            logger.warning("Source enrichment failed for user=%s: %s", user_id, e)
            return results
        for result in results:
            meta = sources.get(result.source_id)
            if meta is not None:
                result.metadata = meta.to_dict()
        return results

    async def semantic_search(
        self,
        query: str,
        user_id: int,
        group_key: Optional[str] = None,
        limit: int | None = None,
        min_score: float | None = None,
    ) -> list[SearchResult]:
        """
        Semantic search using vector embeddings.

        Args:
            query: Search query
            user_id: Owner partition to search
            group_key: Optional group filter
            limit: Maximum results (default RAG_TOP_K)
            min_score: Minimum similarity 0-1 (default RAG_MIN_SCORE)

        Returns:
            Ranked results, best first; empty on any failure
        """
        limit = settings.RAG_TOP_K if limit is None else limit
        min_score = settings.RAG_MIN_SCORE if min_score is None else min_score
        if limit <= 0:
            return []

        try:
            model = await self.model_config.get_default_model("vectorize", user_id)
        except Exception as e:
            logger.error("Embedding model lookup failed for user=%s: %s", user_id, e)
            return []
        if model is None:
            logger.error("No embedding model configured for user=%s", user_id)
            return []

        logger.info(
            "Semantic search | user=%s query_length=%d model=%s provider=%s",
            user_id,
            len(query),
            model.name,
            model.provider,
        )

        try:
            query_vector = await self.facade.embed(
                query,
                user_id,
                {"provider": model.provider, "model": model.name},
            )
        except Exception as e:
            logger.error("Failed to embed query for user=%s: %s", user_id, e)
            return []
        if not query_vector:
            logger.error("Empty query embedding for user=%s", user_id)
            return []

        try:
            matches = await self.store.nearest(
                query_vector,
                user_id,
                limit=limit,
                group_key=group_key,
                max_distance=1.0 - min_score if min_score > 0 else None,
            )
        except Exception as e:
            logger.error("Semantic search failed for user=%s: %s", user_id, e)
            return []

        results = await self._enrich(user_id, self._rank(matches, min_score, limit))
        logger.info(
            "Semantic search completed | user=%s results=%d group=%s min_score=%.2f",
            user_id,
            len(results),
            group_key,
            min_score,
        )
        return results

    async def find_similar(
        self,
        source_id: str,
        user_id: int,
        limit: int | None = None,
    ) -> list[SearchResult]:
        """Chunks similar to a source's first chunk, excluding the source itself."""
        limit = settings.RAG_TOP_K if limit is None else limit
        if limit <= 0:
            return []

        try:
            vector = await self.store.get_source_embedding(user_id, source_id)
            if not vector:
                return []
            matches = await self.store.nearest(
                vector,
                user_id,
                limit=limit,
                exclude_source_id=source_id,
            )
        except Exception as e:
            logger.error("Find similar failed for source=%s user=%s: %s", source_id, user_id, e)
            return []

        return await self._enrich(user_id, self._rank(matches, 0.0, limit))

    async def get_stats(self, user_id: int) -> dict[str, int]:
        """total_documents, total_chunks, total_groups, avg_chunk_size."""
        try:
            return await self.store.get_user_stats(user_id)
        except Exception as e:
            logger.error("get_stats failed for user=%s: %s", user_id, e)
            return dict(EMPTY_STATS)

    async def index_source(
        self,
        user_id: int,
        source_id: str,
        chunks: list[ChunkInput],
        group_key: str,
        provider_name: Optional[str] = None,
    ) -> int:
        """
        Embed and store the chunks of one source.

        Chunk ids are ``<user_id>_<source_id>_<index>`` so re-indexing overwrites
        the same source of the same user only.
        Chunks whose embedding comes back empty are skipped.

        Raises:
            ProviderError: Embedding failed
            VectorStoreError: Storing failed
        """
        if not chunks:
            return 0

        options: dict[str, Any] = {}
        if provider_name is None:
            model = await self.model_config.get_default_model("vectorize", user_id)
            if model is not None:
                provider_name = model.provider
                options["model"] = model.name

        vectors = await self.facade.embed_batch(
            [c.text for c in chunks],
            user_id,
            provider_name=provider_name,
            options=options,
        )

        stored = [
            StoredChunk(
                chunk_id=f"{user_id}_{source_id}_{index}",
                user_id=user_id,
                source_id=source_id,
                group_key=group_key,
                chunk_index=index,
                text=chunk.text,
                embedding=vector,
                start_line=chunk.start_line,
                end_line=chunk.end_line,
            )
            for index, (chunk, vector) in enumerate(zip(chunks, vectors))
            if vector
        ]
        skipped = len(chunks) - len(stored)
        if skipped:
            logger.warning("Skipped %d chunk(s) with empty embeddings for source=%s", skipped, source_id)

        count = await self.store.store_chunks(stored)
        logger.info("Indexed source=%s user=%s chunks=%d group=%s", source_id, user_id, count, group_key)
        return count

    async def delete_source(self, user_id: int, source_id: str) -> int:
        return await self.store.delete_source(user_id, source_id)
