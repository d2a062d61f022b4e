"""
Sentinel test provider.

Always available, implements every capability except video generation and
never touches the network. It backs unit tests, local development and the
vision fallback path.
"""
from __future__ import annotations

import hashlib
import random
from pathlib import PurePath
from typing import Any, AsyncIterator

from ai_router.config import settings
from .interface import (
    ChatMessage,
    ChatProviderInterface,
    EmbeddingProviderInterface,
    FileAnalysisProviderInterface,
    ImageGenerationProviderInterface,
    SpeechToTextProviderInterface,
    TextToSpeechProviderInterface,
    VisionProviderInterface,
)

STREAM_CHUNK_SIZE = 10


class TestProvider(
    ChatProviderInterface,
    EmbeddingProviderInterface,
    VisionProviderInterface,
    ImageGenerationProviderInterface,
    SpeechToTextProviderInterface,
    TextToSpeechProviderInterface,
    FileAnalysisProviderInterface,
):
    """
    Deterministic mock provider.

    Embeddings are pseudo-random vectors seeded from the SHA-256 of the text,
    so identical texts always embed identically.
    """

    __test__ = False  # not a pytest test class

    def __init__(self, dimensions: int | None = None):
        self._dimensions = dimensions or settings.EMBEDDING_DIMENSIONS

    # -- metadata -----------------------------------------------------------

    def get_name(self) -> str:
        return "test"

    def is_available(self) -> bool:
        return True

    def get_default_models(self) -> dict[str, str]:
        return {
            "chat": "test-model",
            "embedding": "test-embedding",
            "vision": "test-vision",
        }

    def get_status(self) -> dict[str, Any]:
        return {
            "healthy": True,
            "latency_ms": 0,
            "error_rate": 0.0,
        }

    # -- chat ---------------------------------------------------------------

    async def chat(self, messages: list[ChatMessage], options: dict[str, Any]) -> str:
        last = messages[-1].content if messages else "hello"
        user_message = last.strip().lower() or "hello"

        if "hello" in user_message:
            return "Hello! I'm the TestProvider. I return mock responses for testing."
        if "what can you do" in user_message:
            return "I can generate mock text, embeddings, image descriptions and transcripts."

        context_info = f" (Message #{len(messages)} in conversation)" if len(messages) > 1 else ""
        return (
            f"TestProvider response: I received your message '{user_message}'{context_info}. "
            "This is a mock response to test the system."
        )

    async def chat_stream(
        self,
        messages: list[ChatMessage],
        options: dict[str, Any],
    ) -> AsyncIterator[str]:
        response = await self.chat(messages, options)
        for start in range(0, len(response), STREAM_CHUNK_SIZE):
            yield response[start:start + STREAM_CHUNK_SIZE]

    # -- embedding ----------------------------------------------------------

    async def embed(self, text: str, options: dict[str, Any]) -> list[float]:
        digest = hashlib.sha256(text.encode("utf-8")).digest()
        rng = random.Random(int.from_bytes(digest[:8], "big", signed=False))
        return [rng.uniform(-1.0, 1.0) for _ in range(self._dimensions)]

    async def embed_batch(self, texts: list[str], options: dict[str, Any]) -> list[list[float]]:
        return [await self.embed(text, options) for text in texts]

    def get_dimensions(self, model: str | None = None) -> int:
        return self._dimensions

    # -- vision -------------------------------------------------------------

    async def explain_image(self, image_path: str, prompt: str, options: dict[str, Any]) -> str:
        return f"Test image description: A test image at {image_path}"

    async def extract_text_from_image(self, image_path: str) -> str:
        return "Extracted text from test image"

    # -- media --------------------------------------------------------------

    async def generate_image(self, prompt: str, options: dict[str, Any]) -> list[dict[str, Any]]:
        return [{
            "url": "https://via.placeholder.com/1024x1024?text=Test+Image",
            "revised_prompt": prompt,
        }]

    async def transcribe(self, audio_path: str, options: dict[str, Any]) -> dict[str, Any]:
        return {"text": "Test transcription", "language": "en", "duration": 10.0}

    async def synthesize(self, text: str, options: dict[str, Any]) -> str:
        return "/tmp/test_audio.mp3"

    async def analyze_file(self, file_path: str, file_type: str, options: dict[str, Any]) -> dict[str, Any]:
        return {
            "text": "Test file content",
            "summary": f"Test summary of {PurePath(file_path).name}",
            "metadata": {"pages": 1, "type": file_type},
        }
