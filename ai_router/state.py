"""
Application state management.

AppState is the composition root: it builds every provider, the registry,
the circuit breaker, the facade and the vector search service once per
process and hands them to the HTTP layer.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

from fastapi import Request

from ai_router.config import get_logger
from ai_router.providers.ai import build_ai_providers
from ai_router.providers.ai.interface import Capability, ProviderMetadataInterface
from ai_router.providers.firestore import close_firestore_client
from ai_router.providers.model_config import ModelConfigProviderInterface, create_model_config_provider
from ai_router.providers.vector_store import VectorStoreInterface, create_vector_store
from ai_router.services.circuit_breaker import CircuitBreaker
from ai_router.services.facade import AiFacade
from ai_router.services.registry import ProviderRegistry
from ai_router.services.vector_search import VectorSearchService

logger = get_logger("state")


@dataclass
class AppState:
    """Central container for shared application resources."""
    model_config: ModelConfigProviderInterface
    vector_store: VectorStoreInterface
    registry: ProviderRegistry
    circuit_breaker: CircuitBreaker
    facade: AiFacade
    vector_search: VectorSearchService

    @classmethod
    def build(
        cls,
        providers: Iterable[ProviderMetadataInterface],
        model_config: ModelConfigProviderInterface,
        vector_store: VectorStoreInterface,
        circuit_breaker: Optional[CircuitBreaker] = None,
    ) -> "AppState":
        """Wire services from already constructed collaborators."""
        registry = ProviderRegistry(providers, model_config)
        breaker = circuit_breaker or CircuitBreaker()
        facade = AiFacade(registry, breaker, model_config)
        return cls(
            model_config=model_config,
            vector_store=vector_store,
            registry=registry,
            circuit_breaker=breaker,
            facade=facade,
            vector_search=VectorSearchService(facade, model_config, vector_store),
        )

    @classmethod
    async def create(cls) -> "AppState":
        """
        Create and initialize application state from settings.

        Raises:
            RuntimeError: If the vector store cannot be initialized.
        """
        model_config = create_model_config_provider()
        vector_store = create_vector_store()
        try:
            await vector_store.initialize()
        except Exception as e:
            logger.critical("Vector store failed to initialize: %s", e)
            raise RuntimeError("Critical Dependency Failed: vector store could not be initialized.") from e

        state = cls.build(build_ai_providers(), model_config, vector_store)
        logger.info(
            "Providers: chat=%s | embedding=%s | vision=%s | model_config=%s | vector_store=%s",
            state.registry.registered(Capability.CHAT),
            state.registry.registered(Capability.EMBEDDING),
            state.registry.registered(Capability.VISION),
            model_config.get_provider_name(),
            vector_store.get_provider_name(),
        )
        return state

    def is_ready(self) -> bool:
        """Ready when the vector store and at least one chat provider are usable."""
        chat_ready = any(
            p.is_available()
            for p in self.registry.all_providers()
            if Capability.CHAT in p.get_capabilities()
        )
        return chat_ready and self.vector_store.is_available()

    async def close(self) -> None:
        await self.vector_store.close()
        close_firestore_client()


def get_app_state(request: Request) -> AppState:
    """FastAPI dependency to get application state."""
    if not hasattr(request.app.state, "app_state"):
        raise RuntimeError("Application state not initialized")
    return request.app.state.app_state
