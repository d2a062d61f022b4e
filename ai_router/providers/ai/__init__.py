"""
AI Providers - Factory module for capability providers.

Every provider known to the router is constructed here and handed to the
ProviderRegistry at the composition root. Providers without credentials are
still built; they report themselves unavailable.
"""

from ai_router.config import get_logger
from .gemini_impl import GeminiProvider
from .groq_impl import GroqProvider
from .interface import (
    Capability,
    ChatMessage,
    ChatProviderInterface,
    EmbeddingProviderInterface,
    ProviderMetadataInterface,
    VisionProviderInterface,
    normalize_messages,
)
from .test_impl import TestProvider

logger = get_logger("providers.ai")


def build_ai_providers() -> list[ProviderMetadataInterface]:
    """Instantiate all providers in registration order."""
    providers: list[ProviderMetadataInterface] = [
        GroqProvider(),
        GeminiProvider(),
        TestProvider(),
    ]
    logger.info(
        "AI providers: %s",
        ", ".join(
            f"{p.get_name()}({'OK' if p.is_available() else 'UNAVAILABLE'})" for p in providers
        ),
    )
    return providers


__all__ = [
    "build_ai_providers",
    "Capability",
    "ChatMessage",
    "ChatProviderInterface",
    "EmbeddingProviderInterface",
    "GeminiProvider",
    "GroqProvider",
    "ProviderMetadataInterface",
    "TestProvider",
    "VisionProviderInterface",
    "normalize_messages",
]
