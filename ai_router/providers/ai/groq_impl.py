"""
Groq provider implementation.

Uses Groq's OpenAI-compatible API for fast inference: chat, streaming chat,
image understanding with multimodal Llama models, and Whisper transcription.
Thread-safe round-robin over multiple API keys.
"""
from __future__ import annotations

import asyncio
import base64
import mimetypes
import threading
from typing import Any, AsyncIterator, List

import groq

from ai_router.config import get_logger, settings
from ai_router.exceptions import ProviderError
from ai_router.utils import resolve_upload_path
from .interface import (
    ChatMessage,
    ChatProviderInterface,
    SpeechToTextProviderInterface,
    VisionProviderInterface,
)

logger = get_logger("providers.groq")


class GroqProvider(ChatProviderInterface, VisionProviderInterface, SpeechToTextProviderInterface):
    """
    Groq provider with thread-safe round-robin API key rotation.

    Supports multiple API keys for load balancing. Transient failures are not
    retried here; they surface as ProviderError and are accounted for by the
    circuit breaker.
    """

    def __init__(self, api_keys: list[str] | None = None):
        self._clients: List[groq.AsyncGroq] = []
        self._client_index = 0
        self._lock = threading.Lock()
        self._initialize_clients(settings.GROQ_API_KEYS if api_keys is None else api_keys)

    def _initialize_clients(self, keys: list[str]) -> None:
        """Initialize Groq clients from configured API keys."""
        if not keys:
            logger.warning("No Groq API keys configured")
            return

        for key in keys:
            try:
                self._clients.append(groq.AsyncGroq(api_key=key))
            except Exception as e:
                logger.error("Failed to init Groq client for key ...%s: %s", key[-4:], e)

        if self._clients:
            logger.info("Initialized %d Groq client(s)", len(self._clients))
        else:
            logger.warning("No Groq clients initialized")

    def _get_client(self) -> groq.AsyncGroq:
        """Get next client using thread-safe round-robin."""
        if not self._clients:
            raise ProviderError.missing_api_key("groq", "GROQ_API_KEY")

        with self._lock:
            client = self._clients[self._client_index]
            self._client_index = (self._client_index + 1) % len(self._clients)
        return client

    # -- metadata -----------------------------------------------------------

    def get_name(self) -> str:
        return "groq"

    def is_available(self) -> bool:
        return len(self._clients) > 0

    def get_default_models(self) -> dict[str, str]:
        return {
            "chat": settings.GROQ_CHAT_MODEL,
            "vision": settings.GROQ_VISION_MODEL,
            "speech_to_text": settings.GROQ_TRANSCRIPTION_MODEL,
        }

    def get_status(self) -> dict[str, Any]:
        return {
            "healthy": self.is_available(),
            "clients": len(self._clients),
        }

    # -- error translation --------------------------------------------------

    def _translate_error(self, e: Exception, operation: str, model: str) -> ProviderError:
        if isinstance(e, asyncio.TimeoutError):
            return ProviderError(
                "Generation timed out",
                provider_name="groq",
                operation=operation,
                details=f"Timeout after {settings.CHAT_COMPLETION_TIMEOUT_SECONDS}s",
            )
        if isinstance(e, groq.RateLimitError):
            return ProviderError(
                "Rate limit exceeded",
                provider_name="groq",
                operation=operation,
                status_code=429,
                details=str(e),
            )
        if isinstance(e, groq.NotFoundError):
            return ProviderError.no_model_available(operation, "groq", model)
        if isinstance(e, groq.APIStatusError):
            return ProviderError(
                f"API error {e.status_code}",
                provider_name="groq",
                operation=operation,
                details=str(e),
            )
        if isinstance(e, groq.APIError):
            return ProviderError("Groq API error", provider_name="groq", operation=operation, details=str(e))
        return ProviderError("Generation failed", provider_name="groq", operation=operation, details=str(e))

    # -- chat ---------------------------------------------------------------

    @staticmethod
    def _to_groq_messages(messages: list[ChatMessage]) -> list[dict]:
        return [{"role": msg.role, "content": msg.content} for msg in messages]

    async def chat(self, messages: list[ChatMessage], options: dict[str, Any]) -> str:
        model = options.get("model") or settings.GROQ_CHAT_MODEL
        try:
            response = await asyncio.wait_for(
                self._get_client().chat.completions.create(
                    model=model,
                    messages=self._to_groq_messages(messages),
                    temperature=options.get("temperature", settings.GENERATION_TEMPERATURE),
                    max_tokens=options.get("max_tokens", settings.MAX_COMPLETION_TOKENS),
                ),
                timeout=settings.CHAT_COMPLETION_TIMEOUT_SECONDS,
            )
        except ProviderError:
            raise
        except Exception as e:
            logger.error("Groq chat failed (model=%s): %s", model, e)
            raise self._translate_error(e, "chat", model) from e

        if not response.choices:
            return ""
        return response.choices[0].message.content or ""

    async def chat_stream(
        self,
        messages: list[ChatMessage],
        options: dict[str, Any],
    ) -> AsyncIterator[str]:
        model = options.get("model") or settings.GROQ_CHAT_MODEL
        try:
            stream = await asyncio.wait_for(
                self._get_client().chat.completions.create(
                    model=model,
                    messages=self._to_groq_messages(messages),
                    temperature=options.get("temperature", settings.GENERATION_TEMPERATURE),
                    max_tokens=options.get("max_tokens", settings.MAX_COMPLETION_TOKENS),
                    stream=True,
                ),
                timeout=settings.CHAT_COMPLETION_TIMEOUT_SECONDS,
            )
            async for chunk in stream:
                if chunk.choices and chunk.choices[0].delta.content:
                    yield chunk.choices[0].delta.content
        except ProviderError:
            raise
        except Exception as e:
            logger.error("Groq stream failed (model=%s): %s", model, e)
            raise self._translate_error(e, "chat_stream", model) from e

    # -- vision -------------------------------------------------------------

    async def explain_image(self, image_path: str, prompt: str, options: dict[str, Any]) -> str:
        model = options.get("model") or settings.GROQ_VISION_MODEL
        path = resolve_upload_path(image_path)
        mime = mimetypes.guess_type(path.name)[0] or "image/jpeg"
        data_url = f"data:{mime};base64,{base64.b64encode(path.read_bytes()).decode('ascii')}"

        content = [
            {"type": "text", "text": prompt or "Describe this image in detail."},
            {"type": "image_url", "image_url": {"url": data_url}},
        ]
        try:
            response = await asyncio.wait_for(
                self._get_client().chat.completions.create(
                    model=model,
                    messages=[{"role": "user", "content": content}],
                    temperature=options.get("temperature", settings.GENERATION_TEMPERATURE),
                    max_tokens=options.get("max_tokens", settings.MAX_COMPLETION_TOKENS),
                ),
                timeout=settings.CHAT_COMPLETION_TIMEOUT_SECONDS,
            )
        except ProviderError:
            raise
        except Exception as e:
            logger.error("Groq vision failed (model=%s): %s", model, e)
            raise self._translate_error(e, "vision", model) from e

        if not response.choices:
            return ""
        return response.choices[0].message.content or ""

    async def extract_text_from_image(self, image_path: str) -> str:
        return await self.explain_image(
            image_path,
            "Extract all readable text from this image. Return only the text.",
            {},
        )

    # -- speech to text -----------------------------------------------------

    async def transcribe(self, audio_path: str, options: dict[str, Any]) -> dict[str, Any]:
        model = options.get("model") or settings.GROQ_TRANSCRIPTION_MODEL
        path = resolve_upload_path(audio_path)
        try:
            result = await asyncio.wait_for(
                self._get_client().audio.transcriptions.create(
                    file=(path.name, path.read_bytes()),
                    model=model,
                    response_format="verbose_json",
                ),
                timeout=settings.CHAT_COMPLETION_TIMEOUT_SECONDS,
            )
        except ProviderError:
            raise
        except Exception as e:
            logger.error("Groq transcription failed (model=%s): %s", model, e)
            raise self._translate_error(e, "speech_to_text", model) from e

        return {
            "text": getattr(result, "text", ""),
            "language": getattr(result, "language", None),
            "duration": getattr(result, "duration", None),
        }
