"""ProviderRegistry resolution and enablement cache tests."""
from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from ai_router.exceptions import (
    CapabilityDisabledError,
    ProviderNotFoundError,
    ProviderUnavailableError,
)
from ai_router.providers.ai.interface import Capability
from ai_router.providers.model_config import ModelConfigProviderInterface
from ai_router.services.registry import ProviderRegistry

from .conftest import ScriptedProvider


def _source(capabilities: dict) -> MagicMock:
    source = MagicMock(spec=ModelConfigProviderInterface)
    source.get_provider_capabilities = AsyncMock(return_value=capabilities)
    return source


@pytest.fixture
def ollama() -> ScriptedProvider:
    return ScriptedProvider("Ollama")


def _registry(providers, capabilities) -> ProviderRegistry:
    return ProviderRegistry(providers, _source(capabilities), default_provider="test", sentinel_provider="test")


class TestRegistration:
    def test_indexes_by_implemented_interfaces(self, ollama, test_provider):
        registry = _registry([ollama, test_provider], {})

        assert registry.registered(Capability.CHAT) == ["Ollama", "test"]
        assert registry.registered(Capability.SPEECH_TO_TEXT) == ["test"]
        assert registry.registered(Capability.VIDEO_GENERATION) == []

    def test_all_providers_unique_in_order(self, ollama, test_provider):
        registry = _registry([ollama, test_provider, ollama], {})
        assert registry.all_providers() == [ollama, test_provider]


class TestResolve:
    async def test_disabled_capability_is_rejected(self, ollama, test_provider):
        registry = _registry([ollama, test_provider], {"ollama": ["chat", "vectorize"]})

        assert await registry.get_chat_provider("ollama") is ollama
        assert await registry.get_embedding_provider("ollama") is ollama
        with pytest.raises(CapabilityDisabledError) as excinfo:
            await registry.get_vision_provider("ollama")
        assert excinfo.value.provider_name == "Ollama"
        assert "pic2text" in excinfo.value.message

    async def test_require_capability_false_skips_map(self, ollama):
        registry = _registry([ollama], {})
        assert await registry.get_vision_provider("ollama", require_capability=False) is ollama

    async def test_sentinel_bypasses_map(self, test_provider):
        registry = _registry([test_provider], {})
        assert await registry.get_vision_provider() is test_provider
        assert await registry.get_speech_to_text_provider("TEST") is test_provider

    async def test_unknown_name_lists_alternatives(self, ollama, test_provider):
        registry = _registry([ollama, test_provider], {})
        with pytest.raises(ProviderNotFoundError) as excinfo:
            await registry.get_chat_provider("anthropic")
        assert "Ollama" in excinfo.value.message
        assert excinfo.value.context == {"registered": ["Ollama", "test"]}

    async def test_nothing_registered_for_capability(self, test_provider):
        registry = _registry([test_provider], {})
        with pytest.raises(ProviderNotFoundError):
            await registry.get_video_generation_provider()

    async def test_unavailable_provider(self, test_provider):
        offline = ScriptedProvider("groq", available=False)
        registry = _registry([offline, test_provider], {"groq": ["chat"]})
        with pytest.raises(ProviderUnavailableError):
            await registry.get_chat_provider("groq")

    async def test_name_is_case_insensitive(self, ollama):
        registry = _registry([ollama], {"OLLAMA": ["CHAT"]})
        assert await registry.get_chat_provider("oLLaMa") is ollama

    async def test_default_provider_when_name_missing(self, ollama, test_provider):
        registry = _registry([ollama, test_provider], {})
        assert await registry.get_chat_provider() is test_provider


class TestListAvailable:
    async def test_filters_and_keeps_order(self, ollama, test_provider):
        offline = ScriptedProvider("groq", available=False)
        registry = _registry([ollama, offline, test_provider], {"ollama": ["chat"], "groq": ["chat"]})

        assert await registry.list_available(Capability.CHAT) == ["Ollama", "test"]
        assert await registry.list_available(Capability.CHAT, include_sentinel=False) == ["Ollama"]
        assert await registry.list_available(Capability.VISION) == ["test"]
        assert await registry.list_available(Capability.VISION, require_enabled=False) == ["Ollama", "test"]


class TestEnablementCache:
    async def test_loaded_lazily_once(self, ollama):
        source = _source({"Ollama": ["Chat"]})
        registry = ProviderRegistry([ollama], source, default_provider="test", sentinel_provider="test")

        assert registry.capability_snapshot() is None
        await registry.get_chat_provider("ollama")
        await registry.get_chat_provider("ollama")

        assert source.get_provider_capabilities.await_count == 1
        assert registry.capability_snapshot() == {"ollama": {"chat"}}

    async def test_invalidate_and_refresh_reload(self, ollama):
        source = _source({"ollama": ["chat"]})
        registry = ProviderRegistry([ollama], source, default_provider="test", sentinel_provider="test")
        await registry.get_chat_provider("ollama")

        source.get_provider_capabilities.return_value = {"ollama": ["chat", "pic2text"]}
        with pytest.raises(CapabilityDisabledError):
            await registry.get_vision_provider("ollama")

        registry.invalidate()
        assert registry.capability_snapshot() is None
        assert await registry.get_vision_provider("ollama") is ollama

        source.get_provider_capabilities.return_value = {}
        assert await registry.refresh() == {}
        with pytest.raises(CapabilityDisabledError):
            await registry.get_chat_provider("ollama")

    async def test_snapshot_is_a_copy(self, ollama):
        registry = _registry([ollama], {"ollama": ["chat"]})
        await registry.refresh()
        registry.capability_snapshot()["ollama"].add("pic2text")
        assert registry.capability_snapshot() == {"ollama": {"chat"}}
