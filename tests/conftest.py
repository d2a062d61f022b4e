"""Shared fixtures: fake clock, sentinel-backed registry, breaker, facade and search service."""
from __future__ import annotations

from typing import Any, AsyncIterator

import pytest

from ai_router.providers.ai.interface import (
    ChatMessage,
    ChatProviderInterface,
    EmbeddingProviderInterface,
    VisionProviderInterface,
)
from ai_router.providers.ai.test_impl import TestProvider
from ai_router.providers.model_config.static_impl import StaticModelConfigProvider
from ai_router.providers.vector_store.memory_impl import InMemoryVectorStore
from ai_router.services.circuit_breaker import CircuitBreaker
from ai_router.services.facade import AiFacade
from ai_router.services.registry import ProviderRegistry
from ai_router.services.vector_search import VectorSearchService

DIMENSIONS = 32
THRESHOLD = 3
COOLDOWN = 30.0


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class ScriptedProvider(ChatProviderInterface, EmbeddingProviderInterface, VisionProviderInterface):
    """Configurable provider named 'ollama' by default."""

    def __init__(self, name: str = "ollama", available: bool = True):
        self.name = name
        self.available = available
        self.chunks: list[str] = ["Hel", "lo ", "wor", "ld", "!"]
        self.error: Exception | None = None
        self.calls = 0

    def get_name(self) -> str:
        return self.name

    def is_available(self) -> bool:
        return self.available

    def get_default_models(self) -> dict[str, str]:
        return {"chat": "llama3", "embedding": "bge-m3", "vision": "llava"}

    def _maybe_fail(self) -> None:
        self.calls += 1
        if self.error is not None:
            raise self.error

    async def chat(self, messages: list[ChatMessage], options: dict[str, Any]) -> str:
        self._maybe_fail()
        return "".join(self.chunks)

    async def chat_stream(self, messages: list[ChatMessage], options: dict[str, Any]) -> AsyncIterator[str]:
        self._maybe_fail()
        for chunk in self.chunks:
            yield chunk

    async def embed(self, text: str, options: dict[str, Any]) -> list[float]:
        self._maybe_fail()
        return [1.0, 0.0, 0.0]

    async def embed_batch(self, texts: list[str], options: dict[str, Any]) -> list[list[float]]:
        self._maybe_fail()
        return [[1.0, 0.0, 0.0] for _ in texts]

    def get_dimensions(self, model: str | None = None) -> int:
        return 3

    async def explain_image(self, image_path: str, prompt: str, options: dict[str, Any]) -> str:
        self._maybe_fail()
        return f"ollama sees {image_path}"

    async def extract_text_from_image(self, image_path: str) -> str:
        self._maybe_fail()
        return "text"


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def breaker(clock: FakeClock) -> CircuitBreaker:
    return CircuitBreaker(failure_threshold=THRESHOLD, cooldown_seconds=COOLDOWN, clock=clock)


@pytest.fixture
def test_provider() -> TestProvider:
    return TestProvider(dimensions=DIMENSIONS)


@pytest.fixture
def scripted() -> ScriptedProvider:
    return ScriptedProvider()


@pytest.fixture
def model_config() -> StaticModelConfigProvider:
    return StaticModelConfigProvider(
        default_providers={"chat": "test", "vectorize": "test", "pic2text": "test"},
        default_models={"chat": "test-model", "vectorize": "test-embedding", "pic2text": "test-vision"},
        capabilities={"ollama": {"chat", "vectorize", "pic2text"}},
    )


@pytest.fixture
def registry(scripted: ScriptedProvider, test_provider: TestProvider, model_config) -> ProviderRegistry:
    return ProviderRegistry(
        [scripted, test_provider],
        model_config,
        default_provider="test",
        sentinel_provider="test",
    )


@pytest.fixture
def facade(registry: ProviderRegistry, breaker: CircuitBreaker, model_config) -> AiFacade:
    return AiFacade(registry, breaker, model_config)


@pytest.fixture
def store() -> InMemoryVectorStore:
    return InMemoryVectorStore()


@pytest.fixture
def search(facade: AiFacade, model_config, store: InMemoryVectorStore) -> VectorSearchService:
    return VectorSearchService(facade, model_config, store)
