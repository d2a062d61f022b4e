"""
AI facade.

Single entry point for chat, streaming chat, embeddings and image analysis.
Each call picks a provider (explicit option, the user's configured default,
or the registry default), runs it through the circuit breaker and wraps
failures into ProviderError.

Circuit names:
- chat / chat_stream: ai_provider_<name>           (no fallback)
- embed / embed_batch: ai_provider_embedding_<name> (no fallback)
- analyze_image:      ai_provider_vision_<name>    (falls back to the sentinel)
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Awaitable, Callable, Optional, TypeVar

from ai_router.config import get_logger
from ai_router.exceptions import AiRouterError, CircuitOpenError, ProviderError
from ai_router.providers.ai.interface import (
    Capability,
    MessagesInput,
    ProviderMetadataInterface,
    normalize_messages,
)
from ai_router.providers.model_config import ModelConfigProviderInterface
from .circuit_breaker import CircuitBreaker
from .registry import ProviderRegistry

logger = get_logger("services.facade")

T = TypeVar("T")
ChunkCallback = Callable[[str], Any]


@dataclass
class ChatResult:
    content: str
    provider: str
    model: str
    usage: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class StreamResult:
    """Metadata returned once a stream has completed."""
    provider: str
    model: str
    usage: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class VisionResult:
    content: str
    provider: str  # provider that actually produced the content
    model: str
    fallback_used: bool = False

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _model_for(provider: ProviderMetadataInterface, capability: Capability, options: dict[str, Any]) -> str:
    return options.get("model") or provider.get_default_models().get(capability.value) or "unknown"


class AiFacade:
    """
    Provider-agnostic AI operations.

    Usage:
        facade = AiFacade(registry, breaker, model_config)
        result = await facade.chat("Hello", user_id=42)
        print(result.content, result.provider)
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        circuit_breaker: CircuitBreaker,
        model_config: ModelConfigProviderInterface,
    ):
        self.registry = registry
        self.circuit_breaker = circuit_breaker
        self.model_config = model_config

    async def _provider_name(
        self,
        explicit: Optional[str],
        user_id: Optional[int],
        purpose: str,
    ) -> Optional[str]:
        """Explicit name, else the user's configured default, else None (registry default)."""
        if explicit:
            return str(explicit).lower()
        if user_id is not None and user_id > 0:
            return await self.model_config.get_default_provider(user_id, purpose)
        return None

    async def _guarded(
        self,
        call: Callable[[], Awaitable[T]],
        provider_name: str,
        service_name: str,
        operation: str,
        fallback: Optional[Callable[[], Awaitable[T]]] = None,
    ) -> T:
        """Run through the breaker; wrap anything that is not already a provider error."""
        try:
            return await self.circuit_breaker.execute(call, service_name=service_name, fallback=fallback)
        except CircuitOpenError as e:
            e.provider_name = provider_name
            e.operation = operation
            raise
        except AiRouterError as e:
            if e.kind.is_provider_kind:
                raise
            logger.error("AI %s failed (provider=%s): %s", operation, provider_name, e)
            raise ProviderError(
                f"AI {operation} failed",
                provider_name=provider_name,
                operation=operation,
                details=e.message,
            ) from e
        except Exception as e:
            logger.error("AI %s failed (provider=%s): %s", operation, provider_name, e)
            raise ProviderError(
                f"AI {operation} failed",
                provider_name=provider_name,
                operation=operation,
                details=str(e),
            ) from e

    # -- chat ---------------------------------------------------------------

    async def chat(
        self,
        messages: MessagesInput,
        user_id: Optional[int] = None,
        options: Optional[dict[str, Any]] = None,
    ) -> ChatResult:
        """
        Non-streaming chat completion.

        Args:
            messages: Prompt string or list of {role, content} / ChatMessage
            user_id: Used to look up the user's default chat provider
            options: provider, model, temperature, max_tokens

        Raises:
            ProviderNotFoundError / ProviderUnavailableError / CapabilityDisabledError
            CircuitOpenError: Provider circuit is open
            ProviderError: The provider call failed
        """
        options = dict(options or {})
        name = await self._provider_name(options.pop("provider", None), user_id, "chat")
        provider = await self.registry.get_chat_provider(name)
        turns = normalize_messages(messages)
        provider_name = provider.get_name()

        logger.info(
            "AI chat request | provider=%s user=%s messages=%d",
            provider_name,
            user_id,
            len(turns),
        )
        content = await self._guarded(
            lambda: provider.chat(turns, options),
            provider_name,
            f"ai_provider_{provider_name}",
            "chat",
        )
        return ChatResult(
            content=content,
            provider=provider_name,
            model=_model_for(provider, Capability.CHAT, options),
        )

    async def chat_stream(
        self,
        messages: MessagesInput,
        chunk_callback: ChunkCallback,
        user_id: Optional[int] = None,
        options: Optional[dict[str, Any]] = None,
    ) -> StreamResult:
        """
        Streaming chat completion.

        ``chunk_callback`` is called once per chunk, in emission order, on the
        calling task. The returned StreamResult carries metadata only.
        """
        options = dict(options or {})
        name = await self._provider_name(options.pop("provider", None), user_id, "chat")
        provider = await self.registry.get_chat_provider(name)
        turns = normalize_messages(messages)
        provider_name = provider.get_name()

        logger.info(
            "AI chat stream | provider=%s user=%s messages=%d model=%s",
            provider_name,
            user_id,
            len(turns),
            options.get("model", "default"),
        )

        async def run_stream() -> int:
            count = 0
            async for chunk in provider.chat_stream(turns, options):
                chunk_callback(chunk)
                count += 1
            return count

        chunks = await self._guarded(
            run_stream,
            provider_name,
            f"ai_provider_{provider_name}",
            "chat_stream",
        )
        logger.debug("AI chat stream completed | provider=%s chunks=%d", provider_name, chunks)
        return StreamResult(
            provider=provider_name,
            model=_model_for(provider, Capability.CHAT, options),
        )

    # -- embedding ----------------------------------------------------------

    async def embed(
        self,
        text: str,
        user_id: Optional[int] = None,
        options: Optional[dict[str, Any]] = None,
    ) -> list[float]:
        """Embed one text; ``options`` may carry provider and model."""
        options = dict(options or {})
        name = await self._provider_name(options.pop("provider", None), user_id, "vectorize")
        provider = await self.registry.get_embedding_provider(name)
        provider_name = provider.get_name()

        logger.info(
            "AI embedding request | provider=%s user=%s text_length=%d",
            provider_name,
            user_id,
            len(text),
        )
        return await self._guarded(
            lambda: provider.embed(text, options),
            provider_name,
            f"ai_provider_embedding_{provider_name}",
            "embedding",
        )

    async def embed_batch(
        self,
        texts: list[str],
        user_id: Optional[int] = None,
        provider_name: Optional[str] = None,
        options: Optional[dict[str, Any]] = None,
    ) -> list[list[float]]:
        """Embed several texts; the result is index-aligned with ``texts``."""
        options = dict(options or {})
        name = await self._provider_name(provider_name or options.pop("provider", None), user_id, "vectorize")
        provider = await self.registry.get_embedding_provider(name)
        resolved = provider.get_name()

        logger.info("AI batch embedding request | provider=%s user=%s count=%d", resolved, user_id, len(texts))
        if not texts:
            return []
        return await self._guarded(
            lambda: provider.embed_batch(texts, options),
            resolved,
            f"ai_provider_embedding_{resolved}",
            "embedding",
        )

    # -- vision -------------------------------------------------------------

    async def analyze_image(
        self,
        image_path: str,
        prompt: str,
        user_id: Optional[int] = None,
    ) -> VisionResult:
        """
        Describe an image (path relative to the upload directory).

        While the provider's vision circuit is open the sentinel provider
        answers instead; the result reports which one did.
        """
        name = await self._provider_name(None, user_id, "pic2text")
        provider = await self.registry.get_vision_provider(name)
        provider_name = provider.get_name()

        logger.info(
            "AI vision request | provider=%s user=%s image=%s",
            provider_name,
            user_id,
            image_path.rsplit("/", 1)[-1],
        )

        async def primary() -> VisionResult:
            content = await provider.explain_image(image_path, prompt, {})
            return VisionResult(
                content=content,
                provider=provider_name,
                model=_model_for(provider, Capability.VISION, {}),
            )

        async def fallback() -> VisionResult:
            logger.warning("Using fallback vision provider (circuit open for %s)", provider_name)
            sentinel = await self.registry.get_vision_provider(self.registry.sentinel_name, require_capability=False)
            content = await sentinel.explain_image(image_path, prompt, {})
            return VisionResult(
                content=content,
                provider=sentinel.get_name(),
                model=_model_for(sentinel, Capability.VISION, {}),
                fallback_used=True,
            )

        return await self._guarded(
            primary,
            provider_name,
            f"ai_provider_vision_{provider_name}",
            "vision",
            fallback=fallback,
        )
