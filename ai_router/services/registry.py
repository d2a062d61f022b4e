"""
Provider registry.

Indexes provider instances by the capabilities their classes implement and
resolves a provider for a capability, checking local registration,
availability and administrative enablement.

Enablement cache lifecycle:
- None until the first resolve/list call loads it from the model
  configuration source
- kept for the process lifetime (no TTL)
- refresh() reloads immediately, invalidate() drops it so the next call
  reloads
"""
from __future__ import annotations

from typing import Iterable, Optional, cast

from ai_router.config import get_logger, settings
from ai_router.exceptions import (
    CapabilityDisabledError,
    ProviderNotFoundError,
    ProviderUnavailableError,
)
from ai_router.providers.ai.interface import (
    Capability,
    ChatProviderInterface,
    EmbeddingProviderInterface,
    FileAnalysisProviderInterface,
    ImageGenerationProviderInterface,
    ProviderMetadataInterface,
    SpeechToTextProviderInterface,
    TextToSpeechProviderInterface,
    VideoGenerationProviderInterface,
    VisionProviderInterface,
    capabilities_of,
)
from ai_router.providers.model_config import ModelConfigProviderInterface

logger = get_logger("services.registry")


class ProviderRegistry:
    """Capability-indexed provider lookup."""

    def __init__(
        self,
        providers: Iterable[ProviderMetadataInterface],
        capability_source: ModelConfigProviderInterface,
        default_provider: str | None = None,
        sentinel_provider: str | None = None,
    ):
        self._capability_source = capability_source
        self._default_provider = (default_provider or settings.DEFAULT_PROVIDER).lower()
        self._sentinel = (sentinel_provider or settings.SENTINEL_PROVIDER).lower()
        self._providers: list[ProviderMetadataInterface] = []
        self._by_capability: dict[Capability, list[ProviderMetadataInterface]] = {c: [] for c in Capability}
        self._enabled: Optional[dict[str, set[str]]] = None

        for provider in providers:
            self.register(provider)

    def register(self, provider: ProviderMetadataInterface) -> None:
        """Index a provider under every capability its class implements."""
        if any(p is provider for p in self._providers):
            return
        self._providers.append(provider)
        capabilities = list(capabilities_of(provider))
        for capability in capabilities:
            self._by_capability[capability].append(provider)
        logger.debug(
            "Registered provider %s for %s",
            provider.get_name(),
            ", ".join(c.value for c in capabilities) or "nothing",
        )

    @property
    def sentinel_name(self) -> str:
        return self._sentinel

    def is_sentinel(self, name: str) -> bool:
        return name.lower() == self._sentinel

    # -- enablement cache ---------------------------------------------------

    async def _capability_map(self) -> dict[str, set[str]]:
        if self._enabled is None:
            await self.refresh()
        return cast(dict[str, set[str]], self._enabled)

    async def refresh(self) -> dict[str, set[str]]:
        """Reload the enablement map from the configuration source."""
        raw = await self._capability_source.get_provider_capabilities()
        self._enabled = {
            name.lower(): {tag.lower() for tag in tags}
            for name, tags in raw.items()
        }
        logger.info(
            "Loaded provider capabilities: %s",
            {name: sorted(tags) for name, tags in self._enabled.items()},
        )
        return self.capability_snapshot() or {}

    def invalidate(self) -> None:
        """Drop the cached enablement map; the next lookup reloads it."""
        self._enabled = None
        logger.info("Provider capability cache invalidated")

    def capability_snapshot(self) -> Optional[dict[str, set[str]]]:
        """Copy of the cached enablement map, or None when not loaded."""
        if self._enabled is None:
            return None
        return {name: set(tags) for name, tags in self._enabled.items()}

    async def is_enabled(self, name: str, capability: Capability) -> bool:
        """Sentinel always passes; others need the capability tag in the map."""
        if self.is_sentinel(name):
            return True
        enabled = await self._capability_map()
        return capability.config_tag in enabled.get(name.lower(), set())

    # -- lookup -------------------------------------------------------------

    def registered(self, capability: Capability) -> list[str]:
        """Names registered locally for a capability, in registration order."""
        return [p.get_name() for p in self._by_capability[capability]]

    def all_providers(self) -> list[ProviderMetadataInterface]:
        return list(self._providers)

    async def resolve(
        self,
        capability: Capability,
        name: str | None = None,
        require_capability: bool = True,
    ) -> ProviderMetadataInterface:
        """
        Resolve a provider for a capability.

        Args:
            capability: Capability to serve
            name: Provider name (case-insensitive); default provider if None
            require_capability: Check the enablement map

        Raises:
            ProviderNotFoundError: Nothing registered, or name not registered
            ProviderUnavailableError: Provider reports unavailable
            CapabilityDisabledError: Enablement map denies the pair
        """
        candidates = self._by_capability[capability]
        if not candidates:
            raise ProviderNotFoundError(
                f"No providers registered for capability '{capability.value}'",
                operation=capability.value,
            )

        wanted = (name or self._default_provider).lower()
        provider = next((p for p in candidates if p.get_name().lower() == wanted), None)
        if provider is None:
            available = ", ".join(self.registered(capability))
            raise ProviderNotFoundError(
                f"Provider '{wanted}' not found for capability '{capability.value}'. "
                f"Registered: {available}",
                provider_name=wanted,
                operation=capability.value,
                context={"registered": self.registered(capability)},
            )

        if not provider.is_available():
            raise ProviderUnavailableError(
                f"Provider '{provider.get_name()}' is not available (missing credentials or service down)",
                provider_name=provider.get_name(),
                operation=capability.value,
                context={"status": provider.get_status()},
            )

        if require_capability and not await self.is_enabled(provider.get_name(), capability):
            raise CapabilityDisabledError(
                f"Provider '{provider.get_name()}' does not have capability '{capability.config_tag}' "
                "enabled. Enable a model with this capability for the provider.",
                provider_name=provider.get_name(),
                operation=capability.value,
                context={"capability_tag": capability.config_tag},
            )

        return provider

    async def list_available(
        self,
        capability: Capability,
        include_sentinel: bool = True,
        require_enabled: bool = True,
    ) -> list[str]:
        """Names of usable providers for a capability, in registration order."""
        names = []
        for provider in self._by_capability[capability]:
            name = provider.get_name()
            if not include_sentinel and self.is_sentinel(name):
                continue
            if not provider.is_available():
                continue
            if require_enabled and not await self.is_enabled(name, capability):
                continue
            names.append(name)
        return names

    # -- typed getters ------------------------------------------------------

    async def get_chat_provider(self, name: str | None = None, require_capability: bool = True) -> ChatProviderInterface:
        return cast(ChatProviderInterface, await self.resolve(Capability.CHAT, name, require_capability))

    async def get_embedding_provider(
        self, name: str | None = None, require_capability: bool = True
    ) -> EmbeddingProviderInterface:
        return cast(EmbeddingProviderInterface, await self.resolve(Capability.EMBEDDING, name, require_capability))

    async def get_vision_provider(
        self, name: str | None = None, require_capability: bool = True
    ) -> VisionProviderInterface:
        return cast(VisionProviderInterface, await self.resolve(Capability.VISION, name, require_capability))

    async def get_image_generation_provider(
        self, name: str | None = None, require_capability: bool = True
    ) -> ImageGenerationProviderInterface:
        return cast(
            ImageGenerationProviderInterface,
            await self.resolve(Capability.IMAGE_GENERATION, name, require_capability),
        )

    async def get_video_generation_provider(
        self, name: str | None = None, require_capability: bool = True
    ) -> VideoGenerationProviderInterface:
        return cast(
            VideoGenerationProviderInterface,
            await self.resolve(Capability.VIDEO_GENERATION, name, require_capability),
        )

    async def get_speech_to_text_provider(
        self, name: str | None = None, require_capability: bool = True
    ) -> SpeechToTextProviderInterface:
        return cast(
            SpeechToTextProviderInterface,
            await self.resolve(Capability.SPEECH_TO_TEXT, name, require_capability),
        )

    async def get_text_to_speech_provider(
        self, name: str | None = None, require_capability: bool = True
    ) -> TextToSpeechProviderInterface:
        return cast(
            TextToSpeechProviderInterface,
            await self.resolve(Capability.TEXT_TO_SPEECH, name, require_capability),
        )

    async def get_file_analysis_provider(
        self, name: str | None = None, require_capability: bool = True
    ) -> FileAnalysisProviderInterface:
        return cast(
            FileAnalysisProviderInterface,
            await self.resolve(Capability.FILE_ANALYSIS, name, require_capability),
        )
