"""
Model Configuration Providers - Factory module.

Supported backends:
- static: settings-driven defaults (local development, single tenant)
- firestore: per-user settings in the config/models collections
"""

from ai_router.config import get_logger, settings
from ai_router.exceptions import ConfigurationError
from .interface import PURPOSES, ModelConfigProviderInterface, ModelInfo

logger = get_logger("providers.model_config")


def create_model_config_provider(backend: str | None = None) -> ModelConfigProviderInterface:
    """
    Create the configured model configuration backend.

    Raises:
        ConfigurationError: If the backend name is unknown
    """
    backend = (backend or settings.MODEL_CONFIG_PROVIDER).lower()

    if backend == "static":
        from .static_impl import StaticModelConfigProvider
        provider: ModelConfigProviderInterface = StaticModelConfigProvider()
    elif backend == "firestore":
        from .firestore_impl import FirestoreModelConfigProvider
        provider = FirestoreModelConfigProvider()
    else:
        raise ConfigurationError(f"Unknown model config provider: {backend}")

    logger.info("Model config provider: %s", provider.get_provider_name())
    return provider


__all__ = [
    "create_model_config_provider",
    "ModelConfigProviderInterface",
    "ModelInfo",
    "PURPOSES",
]
