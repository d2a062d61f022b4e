"""
Static model configuration.

Reads defaults and capability enablement from settings. Used for local
development and single-tenant deployments without a configuration database.
"""
from __future__ import annotations

from typing import Optional

from ai_router.config import settings
from .interface import ModelConfigProviderInterface, ModelInfo


class StaticModelConfigProvider(ModelConfigProviderInterface):
    """Settings-backed configuration; identical for every user."""

    def __init__(
        self,
        default_providers: dict[str, str] | None = None,
        default_models: dict[str, str] | None = None,
        capabilities: dict[str, set[str]] | None = None,
    ):
        self._providers = dict(settings.STATIC_DEFAULT_PROVIDERS if default_providers is None else default_providers)
        self._models = dict(settings.STATIC_DEFAULT_MODELS if default_models is None else default_models)
        self._capabilities = {
            name.lower(): {tag.lower() for tag in tags}
            for name, tags in (settings.STATIC_CAPABILITIES if capabilities is None else capabilities).items()
        }

    async def get_default_provider(self, user_id: Optional[int], purpose: str) -> str:
        return self._providers.get(purpose.lower(), settings.DEFAULT_PROVIDER)

    async def get_default_model(self, purpose: str, user_id: Optional[int] = None) -> Optional[ModelInfo]:
        purpose = purpose.lower()
        name = self._models.get(purpose)
        if not name:
            return None
        provider = self._providers.get(purpose, settings.DEFAULT_PROVIDER)
        return ModelInfo(model_id=f"{provider}:{name}", name=name, provider=provider, tag=purpose)

    async def get_provider_capabilities(self) -> dict[str, set[str]]:
        return {name: set(tags) for name, tags in self._capabilities.items()}

    def get_provider_name(self) -> str:
        return "static"
