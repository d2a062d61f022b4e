"""
Gemini provider implementation.

Uses Google's genai library for chat, streaming chat, text embeddings and
image understanding. Thread-safe round-robin over multiple API keys.
"""
from __future__ import annotations

import asyncio
import mimetypes
import threading
from typing import Any, AsyncIterator, List

from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from ai_router.config import get_logger, settings
from ai_router.exceptions import ProviderError
from ai_router.utils import resolve_upload_path, sanitize_for_embedding
from .interface import (
    ChatMessage,
    ChatProviderInterface,
    EmbeddingProviderInterface,
    VisionProviderInterface,
)

logger = get_logger("providers.gemini")


class GeminiProvider(ChatProviderInterface, EmbeddingProviderInterface, VisionProviderInterface):
    """
    Gemini provider with thread-safe round-robin API key rotation.

    Includes input sanitization for embeddings. Failures are translated to
    ProviderError and never retried in-process.
    """

    def __init__(self, api_keys: list[str] | None = None):
        self._clients: List[genai.Client] = []
        self._client_index = 0
        self._lock = threading.Lock()
        self._initialize_clients(settings.GEMINI_API_KEYS if api_keys is None else api_keys)

    def _initialize_clients(self, keys: list[str]) -> None:
        """Initialize Gemini clients from configured API keys."""
        if not keys:
            logger.warning("No Gemini API keys configured")
            return

        for key in keys:
            try:
                self._clients.append(genai.Client(api_key=key))
            except Exception as e:
                logger.error("Failed to init Gemini client for key ...%s: %s", key[-4:], e)

        if self._clients:
            logger.info(
                "Initialized %d Gemini client(s) (embedding dims: %d)",
                len(self._clients),
                settings.EMBEDDING_DIMENSIONS,
            )
        else:
            logger.warning("No Gemini clients initialized")

    def _get_client(self) -> genai.Client:
        """Get next client using thread-safe round-robin."""
        if not self._clients:
            raise ProviderError.missing_api_key("gemini", "GEMINI_API_KEYS_CSV")

        with self._lock:
            client = self._clients[self._client_index]
            self._client_index = (self._client_index + 1) % len(self._clients)
        return client

    # -- metadata -----------------------------------------------------------

    def get_name(self) -> str:
        return "gemini"

    def is_available(self) -> bool:
        return len(self._clients) > 0

    def get_default_models(self) -> dict[str, str]:
        return {
            "chat": settings.GEMINI_CHAT_MODEL,
            "embedding": settings.GEMINI_EMBEDDING_MODEL,
            "vision": settings.GEMINI_VISION_MODEL,
        }

    def get_status(self) -> dict[str, Any]:
        return {
            "healthy": self.is_available(),
            "clients": len(self._clients),
        }

    # -- error translation --------------------------------------------------

    @staticmethod
    def _translate_error(e: Exception, operation: str, model: str) -> ProviderError:
        if isinstance(e, asyncio.TimeoutError):
            return ProviderError(
                "Request timed out",
                provider_name="gemini",
                operation=operation,
                details=str(e) or "timeout",
            )
        if isinstance(e, genai_errors.APIError):
            if e.code == 429:
                return ProviderError(
                    "Rate limit/quota exceeded",
                    provider_name="gemini",
                    operation=operation,
                    status_code=429,
                    details=str(e),
                )
            if e.code == 404:
                return ProviderError.no_model_available(operation, "gemini", model)
            return ProviderError(
                f"API error {e.code}",
                provider_name="gemini",
                operation=operation,
                details=str(e),
            )
        return ProviderError("Gemini call failed", provider_name="gemini", operation=operation, details=str(e))

    # -- chat ---------------------------------------------------------------

    @staticmethod
    def _build_request(
        messages: list[ChatMessage],
        options: dict[str, Any],
    ) -> tuple[list[types.Content], types.GenerateContentConfig]:
        """Split system instruction from turns and map roles to user/model."""
        system_instruction = None
        contents: list[types.Content] = []

        for msg in messages:
            if msg.role == "system":
                system_instruction = msg.content
            else:
                role = "user" if msg.role == "user" else "model"
                contents.append(types.Content(role=role, parts=[types.Part(text=msg.content)]))

        config = types.GenerateContentConfig(
            temperature=options.get("temperature", settings.GENERATION_TEMPERATURE),
            max_output_tokens=options.get("max_tokens", settings.MAX_COMPLETION_TOKENS),
            system_instruction=system_instruction,
        )
        return contents, config

    async def chat(self, messages: list[ChatMessage], options: dict[str, Any]) -> str:
        model = options.get("model") or settings.GEMINI_CHAT_MODEL
        contents, config = self._build_request(messages, options)
        try:
            response = await asyncio.wait_for(
                self._get_client().aio.models.generate_content(
                    model=model,
                    contents=contents,
                    config=config,
                ),
                timeout=settings.CHAT_COMPLETION_TIMEOUT_SECONDS,
            )
        except ProviderError:
            raise
        except Exception as e:
            logger.error("Gemini chat failed (model=%s): %s", model, e)
            raise self._translate_error(e, "chat", model) from e
        return response.text or ""

    async def chat_stream(
        self,
        messages: list[ChatMessage],
        options: dict[str, Any],
    ) -> AsyncIterator[str]:
        model = options.get("model") or settings.GEMINI_CHAT_MODEL
        contents, config = self._build_request(messages, options)
        try:
            response = await asyncio.wait_for(
                self._get_client().aio.models.generate_content_stream(
                    model=model,
                    contents=contents,
                    config=config,
                ),
                timeout=settings.CHAT_COMPLETION_TIMEOUT_SECONDS,
            )
            async for chunk in response:
                if chunk.text:
                    yield chunk.text
        except ProviderError:
            raise
        except Exception as e:
            logger.error("Gemini stream failed (model=%s): %s", model, e)
            raise self._translate_error(e, "chat_stream", model) from e

    # -- embedding ----------------------------------------------------------

    async def _embed_contents(self, contents: list[str], model: str) -> list[list[float]]:
        try:
            response = await asyncio.wait_for(
                self._get_client().aio.models.embed_content(
                    model=model,
                    contents=contents,
                    config=types.EmbedContentConfig(
                        output_dimensionality=settings.EMBEDDING_DIMENSIONS,
                    ),
                ),
                timeout=settings.EMBEDDING_TIMEOUT_SECONDS,
            )
        except ProviderError:
            raise
        except Exception as e:
            logger.error("Gemini embedding failed (model=%s): %s", model, e)
            raise self._translate_error(e, "embedding", model) from e

        embeddings = response.embeddings or []
        if len(embeddings) != len(contents):
            raise ProviderError(
                "Embedding count mismatch",
                provider_name="gemini",
                operation="embedding",
                details=f"expected {len(contents)}, got {len(embeddings)}",
            )
        return [list(e.values or []) for e in embeddings]

    async def embed(self, text: str, options: dict[str, Any]) -> list[float]:
        model = options.get("model") or settings.GEMINI_EMBEDDING_MODEL
        text = sanitize_for_embedding(text)
        if not text:
            return []
        return (await self._embed_contents([text], model))[0]

    async def embed_batch(self, texts: list[str], options: dict[str, Any]) -> list[list[float]]:
        if not texts:
            return []
        model = options.get("model") or settings.GEMINI_EMBEDDING_MODEL

        sanitized = [sanitize_for_embedding(text) for text in texts]
        non_empty = [i for i, text in enumerate(sanitized) if text]
        vectors: list[list[float]] = [[] for _ in texts]
        if not non_empty:
            return vectors

        embedded = await self._embed_contents([sanitized[i] for i in non_empty], model)
        for index, vector in zip(non_empty, embedded):
            vectors[index] = vector
        return vectors

    def get_dimensions(self, model: str | None = None) -> int:
        return settings.EMBEDDING_DIMENSIONS

    # -- vision -------------------------------------------------------------

    async def explain_image(self, image_path: str, prompt: str, options: dict[str, Any]) -> str:
        model = options.get("model") or settings.GEMINI_VISION_MODEL
        path = resolve_upload_path(image_path)
        mime = mimetypes.guess_type(path.name)[0] or "image/jpeg"
        contents = [
            types.Part.from_bytes(data=path.read_bytes(), mime_type=mime),
            prompt or "Describe this image in detail.",
        ]
        try:
            response = await asyncio.wait_for(
                self._get_client().aio.models.generate_content(model=model, contents=contents),
                timeout=settings.CHAT_COMPLETION_TIMEOUT_SECONDS,
            )
        except ProviderError:
            raise
        except Exception as e:
            logger.error("Gemini vision failed (model=%s): %s", model, e)
            raise self._translate_error(e, "vision", model) from e
        return response.text or ""

    async def extract_text_from_image(self, image_path: str) -> str:
        return await self.explain_image(
            image_path,
            "Extract all readable text from this image. Return only the text.",
            {},
        )
