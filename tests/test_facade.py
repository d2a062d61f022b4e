"""AiFacade tests: provider selection, streaming, error policy, vision fallback."""
from __future__ import annotations

import pytest

from ai_router.exceptions import (
    CapabilityDisabledError,
    CircuitOpenError,
    ProviderError,
    ValidationError,
)
from ai_router.providers.ai.interface import ChatMessage
from ai_router.providers.model_config.static_impl import StaticModelConfigProvider
from ai_router.services.facade import AiFacade
from ai_router.services.registry import ProviderRegistry

from .conftest import DIMENSIONS, THRESHOLD


@pytest.fixture
def user_routed_facade(scripted, test_provider, breaker) -> AiFacade:
    """Facade whose configuration routes every purpose to 'ollama'."""
    config = StaticModelConfigProvider(
        default_providers={"chat": "ollama", "vectorize": "ollama", "pic2text": "ollama"},
        default_models={"vectorize": "bge-m3"},
        capabilities={"ollama": {"chat", "vectorize", "pic2text"}},
    )
    registry = ProviderRegistry([scripted, test_provider], config, default_provider="test", sentinel_provider="test")
    return AiFacade(registry, breaker, config)


class TestChat:
    async def test_prompt_string_becomes_user_turn(self, facade):
        result = await facade.chat("hello there")

        assert result.provider == "test"
        assert result.model == "test-model"
        assert result.content.startswith("Hello!")
        assert result.usage == {}

    async def test_dict_messages_are_normalized(self, facade, scripted):
        result = await facade.chat(
            [{"role": "system", "content": "be brief"}, ChatMessage("user", "hi")],
            options={"provider": "ollama"},
        )
        assert result.provider == "ollama"
        assert result.content == "Hello world!"

    async def test_model_option_overrides_default(self, facade):
        result = await facade.chat("x", options={"model": "custom-model"})
        assert result.model == "custom-model"

    async def test_user_default_provider_is_used(self, user_routed_facade):
        result = await user_routed_facade.chat("hi", user_id=42)
        assert result.provider == "ollama"
        assert result.model == "llama3"

    async def test_explicit_provider_beats_user_default(self, user_routed_facade):
        result = await user_routed_facade.chat("hi", user_id=42, options={"provider": "test"})
        assert result.provider == "test"

    async def test_provider_failure_is_wrapped(self, facade, scripted):
        scripted.error = RuntimeError("connection reset")

        with pytest.raises(ProviderError) as excinfo:
            await facade.chat("hi", options={"provider": "ollama"})

        error = excinfo.value
        assert error.provider_name == "ollama"
        assert error.operation == "chat"
        assert isinstance(error.__cause__, RuntimeError)

    async def test_provider_errors_pass_unchanged(self, facade, scripted):
        original = ProviderError("rate limited", provider_name="ollama", status_code=429)
        scripted.error = original

        with pytest.raises(ProviderError) as excinfo:
            await facade.chat("hi", options={"provider": "ollama"})
        assert excinfo.value is original

    async def test_non_provider_router_errors_are_wrapped(self, facade, scripted):
        scripted.error = ValidationError("bad input")

        with pytest.raises(ProviderError) as excinfo:
            await facade.chat("hi", options={"provider": "ollama"})
        assert isinstance(excinfo.value.__cause__, ValidationError)

    async def test_resolution_errors_propagate(self, facade):
        facade.registry._capability_source = StaticModelConfigProvider(
            default_providers={}, default_models={}, capabilities={},
        )
        with pytest.raises(CapabilityDisabledError):
            await facade.chat("hi", options={"provider": "ollama"})

    async def test_open_circuit_has_no_fallback(self, facade, scripted, breaker):
        scripted.error = RuntimeError("down")
        for _ in range(THRESHOLD):
            with pytest.raises(ProviderError):
                await facade.chat("hi", options={"provider": "ollama"})

        calls = scripted.calls
        with pytest.raises(CircuitOpenError) as excinfo:
            await facade.chat("hi", options={"provider": "ollama"})

        assert scripted.calls == calls
        assert excinfo.value.provider_name == "ollama"
        assert breaker.get_status("ai_provider_ollama")["state"] == "open"


class TestChatStream:
    async def test_callback_receives_chunks_in_order(self, facade, scripted):
        received: list[str] = []

        result = await facade.chat_stream("hi", received.append, options={"provider": "ollama"})

        assert received == ["Hel", "lo ", "wor", "ld", "!"]
        assert result.provider == "ollama"
        assert result.model == "llama3"

    async def test_sentinel_stream_reassembles_response(self, facade, test_provider):
        received: list[str] = []
        await facade.chat_stream("hello", received.append)

        full = await test_provider.chat([ChatMessage("user", "hello")], {})
        assert "".join(received) == full

    async def test_stream_failure_shares_chat_circuit(self, facade, scripted, breaker):
        scripted.error = RuntimeError("stream broke")
        with pytest.raises(ProviderError) as excinfo:
            await facade.chat_stream("hi", lambda chunk: None, options={"provider": "ollama"})

        assert excinfo.value.operation == "chat_stream"
        assert breaker.get_status("ai_provider_ollama")["consecutive_failures"] == 1


class TestEmbedding:
    async def test_embed_is_deterministic(self, facade):
        first = await facade.embed("same text")
        second = await facade.embed("same text")

        assert len(first) == DIMENSIONS
        assert first == second
        assert first != await facade.embed("other text")

    async def test_embed_batch_is_index_aligned(self, facade):
        texts = ["a", "b", "a"]
        vectors = await facade.embed_batch(texts)

        assert len(vectors) == 3
        assert vectors[0] == vectors[2]
        assert vectors[0] == await facade.embed("a")

    async def test_embed_batch_empty(self, facade):
        assert await facade.embed_batch([]) == []

    async def test_embed_uses_provider_option(self, facade):
        assert await facade.embed("x", options={"provider": "ollama", "model": "bge-m3"}) == [1.0, 0.0, 0.0]

    async def test_embedding_has_its_own_circuit(self, user_routed_facade, scripted, breaker):
        scripted.error = RuntimeError("down")
        for _ in range(THRESHOLD):
            with pytest.raises(ProviderError):
                await user_routed_facade.embed("x", user_id=7)

        assert breaker.get_status("ai_provider_embedding_ollama")["state"] == "open"
        assert breaker.get_status("ai_provider_ollama")["state"] == "closed"
        with pytest.raises(CircuitOpenError):
            await user_routed_facade.embed_batch(["x"], user_id=7)


class TestAnalyzeImage:
    async def test_uses_configured_provider(self, user_routed_facade):
        result = await user_routed_facade.analyze_image("photos/cat.png", "describe", user_id=3)

        assert result.provider == "ollama"
        assert result.model == "llava"
        assert result.fallback_used is False
        assert "photos/cat.png" in result.content

    async def test_failure_without_open_circuit_raises(self, user_routed_facade, scripted):
        scripted.error = RuntimeError("gpu oom")
        with pytest.raises(ProviderError) as excinfo:
            await user_routed_facade.analyze_image("a.png", "describe", user_id=3)
        assert excinfo.value.operation == "vision"

    async def test_open_circuit_falls_back_to_sentinel(self, user_routed_facade, scripted, breaker):
        scripted.error = RuntimeError("gpu oom")
        for _ in range(THRESHOLD):
            with pytest.raises(ProviderError):
                await user_routed_facade.analyze_image("a.png", "describe", user_id=3)
        assert breaker.get_status("ai_provider_vision_ollama")["state"] == "open"

        result = await user_routed_facade.analyze_image("a.png", "describe", user_id=3)

        assert result.provider == "test"
        assert result.model == "test-vision"
        assert result.fallback_used is True
        assert result.content.startswith("Test image description")
