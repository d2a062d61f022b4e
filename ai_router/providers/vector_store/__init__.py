"""
Vector Store Providers - Factory module.

Supported backends:
- memory: numpy cosine search over an in-process dict
- firestore: native vector search (find_nearest, cosine)
"""

from ai_router.config import get_logger, settings
from ai_router.exceptions import ConfigurationError
from .interface import (
    EMPTY_STATS,
    ChunkMatch,
    SourceMetadata,
    StoredChunk,
    VectorStoreInterface,
)
from .memory_impl import InMemoryVectorStore

logger = get_logger("providers.vector_store")


def create_vector_store(backend: str | None = None) -> VectorStoreInterface:
    """
    Create the configured vector store backend (not yet initialized).

    Raises:
        ConfigurationError: If the backend name is unknown
    """
    backend = (backend or settings.VECTOR_STORE_PROVIDER).lower()

    if backend == "memory":
        store: VectorStoreInterface = InMemoryVectorStore()
    elif backend == "firestore":
        from .firestore_impl import FirestoreVectorStore
        store = FirestoreVectorStore()
    else:
        raise ConfigurationError(f"Unknown vector store provider: {backend}")

    logger.info("Vector store provider: %s", store.get_provider_name())
    return store


__all__ = [
    "create_vector_store",
    "ChunkMatch",
    "EMPTY_STATS",
    "InMemoryVectorStore",
    "SourceMetadata",
    "StoredChunk",
    "VectorStoreInterface",
]
