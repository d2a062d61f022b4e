"""
Abstract interfaces for AI providers.

Each capability has exactly one interface. A provider class implements every
interface it supports; the registry discovers its capabilities with
``isinstance`` checks instead of string tags.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, AsyncIterator, Iterable, Mapping, Sequence, Union


@dataclass
class ChatMessage:
    """Represents a single message in a conversation."""
    role: str  # "system", "user", "assistant"
    content: str


MessagesInput = Union[str, Sequence[Union[ChatMessage, Mapping[str, Any]]]]


def normalize_messages(messages: MessagesInput) -> list[ChatMessage]:
    """
    Convert a prompt string or a list of dicts/ChatMessages to ChatMessages.

    A bare string becomes a single user turn.
    """
    if isinstance(messages, str):
        return [ChatMessage(role="user", content=messages)]

    normalized: list[ChatMessage] = []
    for message in messages:
        if isinstance(message, ChatMessage):
            normalized.append(message)
        else:
            normalized.append(
                ChatMessage(
                    role=str(message.get("role", "user")),
                    content=str(message.get("content", "")),
                )
            )
    return normalized


class Capability(str, Enum):
    """Capability kinds a provider can serve."""

    CHAT = "chat"
    EMBEDDING = "embedding"
    VISION = "vision"
    IMAGE_GENERATION = "image_generation"
    VIDEO_GENERATION = "video_generation"
    SPEECH_TO_TEXT = "speech_to_text"
    TEXT_TO_SPEECH = "text_to_speech"
    FILE_ANALYSIS = "file_analysis"

    @property
    def config_tag(self) -> str:
        """Tag used by model configuration and the capability enablement map."""
        return _CONFIG_TAGS[self]

    @property
    def interface(self) -> type["ProviderMetadataInterface"]:
        """Provider interface a provider must implement to serve this capability."""
        return CAPABILITY_INTERFACES[self]


_CONFIG_TAGS: dict[Capability, str] = {
    Capability.CHAT: "chat",
    Capability.EMBEDDING: "vectorize",
    Capability.VISION: "pic2text",
    Capability.IMAGE_GENERATION: "text2pic",
    Capability.VIDEO_GENERATION: "text2vid",
    Capability.SPEECH_TO_TEXT: "sound2text",
    Capability.TEXT_TO_SPEECH: "text2sound",
    Capability.FILE_ANALYSIS: "analyze",
}


class ProviderMetadataInterface(ABC):
    """Metadata every provider exposes, regardless of capability."""

    @abstractmethod
    def get_name(self) -> str:
        """Lowercase provider name (e.g. 'groq', 'gemini', 'test')."""

    @abstractmethod
    def is_available(self) -> bool:
        """Check if the provider is usable (API keys present, client created)."""

    @abstractmethod
    def get_default_models(self) -> dict[str, str]:
        """Default model per capability value (e.g. {'chat': '...'})."""

    def get_status(self) -> dict[str, Any]:
        """Health information for monitoring."""
        return {"healthy": self.is_available()}

    def get_capabilities(self) -> list[Capability]:
        """Capabilities implemented by this provider class."""
        return list(capabilities_of(self))


class ChatProviderInterface(ProviderMetadataInterface):
    """Text chat completion."""

    @abstractmethod
    async def chat(self, messages: list[ChatMessage], options: dict[str, Any]) -> str:
        """
        Generate a non-streaming chat completion.

        Args:
            messages: Conversation turns
            options: model, temperature, max_tokens, ...

        Returns:
            Complete generated response
        """

    @abstractmethod
    def chat_stream(
        self,
        messages: list[ChatMessage],
        options: dict[str, Any],
    ) -> AsyncIterator[str]:
        """
        Generate a streaming chat completion.

        Yields:
            Content chunks in emission order
        """


class EmbeddingProviderInterface(ProviderMetadataInterface):
    """Text to vector."""

    @abstractmethod
    async def embed(self, text: str, options: dict[str, Any]) -> list[float]:
        """Embed a single text."""

    @abstractmethod
    async def embed_batch(self, texts: list[str], options: dict[str, Any]) -> list[list[float]]:
        """Embed several texts; the result is index-aligned with ``texts``."""

    @abstractmethod
    def get_dimensions(self, model: str | None = None) -> int:
        """Vector dimensions for a model."""


class VisionProviderInterface(ProviderMetadataInterface):
    """Image understanding."""

    @abstractmethod
    async def explain_image(self, image_path: str, prompt: str, options: dict[str, Any]) -> str:
        """Describe an image (path relative to the upload directory)."""

    @abstractmethod
    async def extract_text_from_image(self, image_path: str) -> str:
        """OCR an image."""


class ImageGenerationProviderInterface(ProviderMetadataInterface):

    @abstractmethod
    async def generate_image(self, prompt: str, options: dict[str, Any]) -> list[dict[str, Any]]:
        """Generate images; each item carries a ``url`` or ``b64_data``."""


class VideoGenerationProviderInterface(ProviderMetadataInterface):

    @abstractmethod
    async def generate_video(self, prompt: str, options: dict[str, Any]) -> dict[str, Any]:
        """Generate a video; returns at least a ``url``."""


class SpeechToTextProviderInterface(ProviderMetadataInterface):

    @abstractmethod
    async def transcribe(self, audio_path: str, options: dict[str, Any]) -> dict[str, Any]:
        """Transcribe audio; returns ``text`` plus optional ``language``/``duration``."""


class TextToSpeechProviderInterface(ProviderMetadataInterface):

    @abstractmethod
    async def synthesize(self, text: str, options: dict[str, Any]) -> str:
        """Synthesize speech; returns the path of the written audio file."""


class FileAnalysisProviderInterface(ProviderMetadataInterface):

    @abstractmethod
    async def analyze_file(self, file_path: str, file_type: str, options: dict[str, Any]) -> dict[str, Any]:
        """Extract text and a summary from a document."""


CAPABILITY_INTERFACES: dict[Capability, type[ProviderMetadataInterface]] = {
    Capability.CHAT: ChatProviderInterface,
    Capability.EMBEDDING: EmbeddingProviderInterface,
    Capability.VISION: VisionProviderInterface,
    Capability.IMAGE_GENERATION: ImageGenerationProviderInterface,
    Capability.VIDEO_GENERATION: VideoGenerationProviderInterface,
    Capability.SPEECH_TO_TEXT: SpeechToTextProviderInterface,
    Capability.TEXT_TO_SPEECH: TextToSpeechProviderInterface,
    Capability.FILE_ANALYSIS: FileAnalysisProviderInterface,
}


def capabilities_of(provider: ProviderMetadataInterface) -> Iterable[Capability]:
    """Capabilities a provider instance implements, in enum order."""
    return (c for c in Capability if isinstance(provider, CAPABILITY_INTERFACES[c]))
