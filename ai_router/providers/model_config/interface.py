"""
Abstract interface for the model configuration source.

The router consumes three lookups from it:
- the user's default provider for a purpose (chat, vectorize, pic2text, ...)
- the user's default model for a purpose
- the administratively enabled capabilities of every provider
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

PURPOSES: frozenset[str] = frozenset({
    "chat", "vectorize", "pic2text", "text2pic",
    "text2vid", "sound2text", "text2sound", "analyze",
})


@dataclass(frozen=True)
class ModelInfo:
    """A configured model and the provider serving it."""
    model_id: str
    name: str       # model identifier sent to the provider (e.g. 'bge-m3')
    provider: str   # lowercase provider name (e.g. 'ollama')
    tag: str        # purpose tag (e.g. 'vectorize')


class ModelConfigProviderInterface(ABC):
    """Abstract interface for per-user model configuration."""

    @abstractmethod
    async def get_default_provider(self, user_id: Optional[int], purpose: str) -> str:
        """
        Default provider name for a user and purpose.

        Lookup order: user-specific setting, global setting, configured fallback.
        """

    @abstractmethod
    async def get_default_model(self, purpose: str, user_id: Optional[int] = None) -> Optional[ModelInfo]:
        """Default model for a purpose, or None if nothing is configured."""

    @abstractmethod
    async def get_provider_capabilities(self) -> dict[str, set[str]]:
        """Map of lowercase provider name to the set of enabled purpose tags."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Get the backend name (e.g. 'firestore', 'static')."""
