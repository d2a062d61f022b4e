"""
Settings and logging for the AI router.

Every tunable (provider keys, breaker thresholds, backend selection, RAG
defaults) is a field on ``Settings`` and can be overridden from the
environment or a ``.env`` file. Secrets belong in the environment; defaults
live here. Invalid values abort startup.

Usage:
    from ai_router.config import settings, get_logger

    print(settings.CIRCUIT_FAILURE_THRESHOLD)
"""
from __future__ import annotations

import json
import logging
import re
from functools import cached_property, lru_cache
from pathlib import Path
from typing import ClassVar, Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Router settings, read from the environment first, then ``.env``, then the
    defaults below.

    Providers without credentials are still registered; they simply report
    themselves as unavailable and the registry refuses to hand them out.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        validate_default=True,
    )

    # =========================================================================
    # Server Configuration
    # =========================================================================

    HOST: str = Field(
        default="0.0.0.0",
        description="Server host (0.0.0.0 for external access, 127.0.0.1 for local only)",
    )
    PORT: int = Field(default=8080, ge=1, le=65535, description="Server port number")
    DEBUG: bool = Field(
        default=False,
        description="Debug mode - enables detailed error messages (NEVER use in production)",
    )
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging verbosity level",
    )

    # =========================================================================
    # Provider Selection
    # =========================================================================

    DEFAULT_PROVIDER: str = Field(
        default="test",
        description="Provider used when neither the caller nor the user config names one",
    )
    SENTINEL_PROVIDER: str = Field(
        default="test",
        description="Always-available stub provider; bypasses capability enablement",
    )

    # Groq Configuration (https://console.groq.com)
    GROQ_API_KEY: str | None = Field(default=None, description="Single Groq API key")
    GROQ_API_KEYS_CSV: str = Field(
        default="",
        description="Comma-separated Groq API keys for automatic load balancing",
    )
    GROQ_CHAT_MODEL: str = Field(
        default="meta-llama/llama-4-scout-17b-16e-instruct",
        description="Groq chat model identifier",
    )
    GROQ_VISION_MODEL: str = Field(
        default="meta-llama/llama-4-scout-17b-16e-instruct",
        description="Groq multimodal model used for image analysis",
    )
    GROQ_TRANSCRIPTION_MODEL: str = Field(
        default="whisper-large-v3-turbo",
        description="Groq speech-to-text model",
    )

    # Gemini Configuration (https://makersuite.google.com/app/apikey)
    GEMINI_API_KEYS_CSV: str = Field(
        default="",
        description="Comma-separated Gemini API keys for automatic load balancing",
    )
    GEMINI_CHAT_MODEL: str = Field(default="gemini-2.0-flash-lite", description="Gemini chat model")
    GEMINI_VISION_MODEL: str = Field(default="gemini-2.0-flash", description="Gemini vision model")
    GEMINI_EMBEDDING_MODEL: str = Field(
        default="gemini-embedding-001",
        description="Gemini embedding model",
    )

    # =========================================================================
    # Embedding Configuration
    # =========================================================================
    # Note: dimensions must match the stored vectors of the active corpus

    EMBEDDING_DIMENSIONS: int = Field(
        default=768,
        ge=1,
        description="Vector dimensions produced by embedding providers",
    )
    EMBEDDING_TIMEOUT_SECONDS: float = Field(
        default=10.0,
        gt=0,
        description="Maximum time to wait for embedding generation",
    )

    # =========================================================================
    # Chat / Vision Configuration
    # =========================================================================

    GENERATION_TEMPERATURE: float = Field(default=0.3, ge=0.0, le=2.0)
    MAX_COMPLETION_TOKENS: int = Field(default=4096, ge=1)
    CHAT_COMPLETION_TIMEOUT_SECONDS: float = Field(
        default=30.0,
        gt=0,
        description="Maximum time to wait for an LLM response before timeout",
    )
    MAX_MESSAGE_LENGTH: int = Field(
        default=10000,
        ge=1,
        description="Maximum text length passed to embedding models",
    )
    UPLOAD_DIR: Path = Field(
        default=Path("var/uploads"),
        description="Base directory for relative image/file paths",
    )

    # =========================================================================
    # Circuit Breaker Configuration
    # =========================================================================

    CIRCUIT_FAILURE_THRESHOLD: int = Field(
        default=5,
        ge=1,
        description="Consecutive failures before a service circuit opens",
    )
    CIRCUIT_COOLDOWN_SECONDS: float = Field(
        default=60.0,
        gt=0,
        description="Seconds an open circuit waits before admitting a probe",
    )

    # =========================================================================
    # Model Configuration Source
    # =========================================================================

    MODEL_CONFIG_PROVIDER: Literal["firestore", "static"] = Field(
        default="static",
        description="Where per-user defaults and capability enablement are read from",
    )
    MODEL_CONFIG_CACHE_TTL_SECONDS: int = Field(
        default=300,
        ge=0,
        description="TTL of cached per-user default lookups",
    )
    STATIC_DEFAULT_PROVIDERS_JSON: str = Field(
        default='{"chat": "test", "vectorize": "test", "pic2text": "test"}',
        description="Static purpose -> provider defaults (JSON object)",
    )
    STATIC_DEFAULT_MODELS_JSON: str = Field(
        default='{"chat": "test-model", "vectorize": "test-embedding", "pic2text": "test-vision"}',
        description="Static purpose -> model defaults (JSON object)",
    )
    STATIC_CAPABILITIES_JSON: str = Field(
        default='{"groq": ["chat", "pic2text", "sound2text"], "gemini": ["chat", "vectorize", "pic2text"]}',
        description="Static provider -> enabled capability tags (JSON object)",
    )
    FIRESTORE_CONFIG_COLLECTION: str = Field(default="config")
    FIRESTORE_MODELS_COLLECTION: str = Field(default="models")

    # =========================================================================
    # Vector Store Configuration
    # =========================================================================

    VECTOR_STORE_PROVIDER: Literal["firestore", "memory"] = Field(
        default="memory",
        description="Similarity-search backend",
    )
    FIREBASE_CREDS_BASE64: str | None = Field(
        default=None,
        description="Base64-encoded Firebase service account JSON (alternative to ADC)",
    )
    FIRESTORE_CHUNK_COLLECTION: str = Field(default="rag_chunks")
    FIRESTORE_MESSAGE_COLLECTION: str = Field(default="messages")
    FIRESTORE_FILE_COLLECTION: str = Field(default="files")
    FIRESTORE_VECTOR_FIELD: str = Field(default="embedding")
    FIRESTORE_BATCH_SIZE: int = Field(default=400, ge=1, le=500)
    VECTOR_QUERY_TIMEOUT_SECONDS: float = Field(default=8.0, gt=0)
    VECTOR_QUERY_MAX_RESULTS: int = Field(
        default=1000,
        ge=1,
        le=1000,
        description="Upper bound on neighbours fetched per similarity query",
    )

    # =========================================================================
    # RAG Configuration
    # =========================================================================

    RAG_TOP_K: int = Field(default=10, ge=1, le=100)
    RAG_MIN_SCORE: float = Field(default=0.3, ge=0.0, le=1.0)

    # =========================================================================
    # Validators
    # =========================================================================

    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def uppercase_log_level(cls, v: str) -> str:
        """Ensure LOG_LEVEL is uppercase."""
        return v.upper() if isinstance(v, str) else v

    @field_validator(
        "DEFAULT_PROVIDER",
        "SENTINEL_PROVIDER",
        "MODEL_CONFIG_PROVIDER",
        "VECTOR_STORE_PROVIDER",
        mode="before",
    )
    @classmethod
    def lowercase_provider(cls, v: str) -> str:
        """Ensure provider names are lowercase."""
        return v.lower() if isinstance(v, str) else v

    @model_validator(mode="after")
    def validate_static_json(self) -> "Settings":
        """Fail fast on malformed static model configuration."""
        for name in (
            "STATIC_DEFAULT_PROVIDERS_JSON",
            "STATIC_DEFAULT_MODELS_JSON",
            "STATIC_CAPABILITIES_JSON",
        ):
            try:
                value = json.loads(getattr(self, name))
            except json.JSONDecodeError as e:
                raise ValueError(f"{name} is not valid JSON: {e}") from e
            if not isinstance(value, dict):
                raise ValueError(f"{name} must be a JSON object")
        return self

    # =========================================================================
    # Computed Properties
    # =========================================================================

    @cached_property
    def GROQ_API_KEYS(self) -> list[str]:
        """Groq keys from GROQ_API_KEYS_CSV plus GROQ_API_KEY, in order, without duplicates."""
        keys: list[str] = []
        if self.GROQ_API_KEYS_CSV:
            keys.extend(k.strip() for k in self.GROQ_API_KEYS_CSV.split(",") if k.strip())
        if self.GROQ_API_KEY and self.GROQ_API_KEY not in keys:
            keys.append(self.GROQ_API_KEY)
        return list(dict.fromkeys(keys))

    @cached_property
    def GEMINI_API_KEYS(self) -> list[str]:
        """Gemini keys from GEMINI_API_KEYS_CSV, without duplicates."""
        if not self.GEMINI_API_KEYS_CSV:
            return []
        keys = [k.strip() for k in self.GEMINI_API_KEYS_CSV.split(",") if k.strip()]
        return list(dict.fromkeys(keys))

    @cached_property
    def STATIC_DEFAULT_PROVIDERS(self) -> dict[str, str]:
        return {k.lower(): str(v).lower() for k, v in json.loads(self.STATIC_DEFAULT_PROVIDERS_JSON).items()}

    @cached_property
    def STATIC_DEFAULT_MODELS(self) -> dict[str, str]:
        return {k.lower(): str(v) for k, v in json.loads(self.STATIC_DEFAULT_MODELS_JSON).items()}

    @cached_property
    def STATIC_CAPABILITIES(self) -> dict[str, set[str]]:
        raw = json.loads(self.STATIC_CAPABILITIES_JSON)
        return {k.lower(): {str(t).lower() for t in v} for k, v in raw.items()}


# =============================================================================
# Settings Factory with Caching
# =============================================================================

@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache for singleton behavior while allowing
    cache invalidation in tests.
    """
    return Settings()


settings = get_settings()


# =============================================================================
# Logging Configuration
# =============================================================================

class SanitizingFormatter(logging.Formatter):
    """
    Logging formatter that redacts sensitive information.

    Automatically redacts:
    - Bearer tokens
    - API keys
    - Tokens
    - Passwords
    """

    SENSITIVE_PATTERNS: ClassVar[list[tuple[re.Pattern[str], str]]] = [
        (re.compile(r'(Bearer\s+)[^\s]+', re.I), r'\1[REDACTED]'),
        (re.compile(r'(api[_-]?key["\']?\s*[:=]\s*["\']?)[^"\'\s]+', re.I), r'\1[REDACTED]'),
        (re.compile(r'(token["\']?\s*[:=]\s*["\']?)[^"\'\s]+', re.I), r'\1[REDACTED]'),
        (re.compile(r'(password["\']?\s*[:=]\s*["\']?)[^"\'\s]+', re.I), r'\1[REDACTED]'),
    ]

    def format(self, record: logging.LogRecord) -> str:
        """Format log record with sensitive data redaction."""
        message = super().format(record)
        for pattern, replacement in self.SENSITIVE_PATTERNS:
            message = pattern.sub(replacement, message)
        return message


def configure_logging(log_level: str = "INFO") -> None:
    """
    Configure application logging.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    log_format = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

    handler = logging.StreamHandler()
    handler.setFormatter(SanitizingFormatter(log_format))

    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        handlers=[handler],
        force=True,
    )

    # Suppress noisy third-party loggers
    for logger_name in ("httpx", "httpcore", "google", "urllib3", "grpc", "groq"):
        logging.getLogger(logger_name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """
    Get a configured logger instance.

    Args:
        name: Logger name (typically module name)

    Returns:
        Configured logging.Logger instance
    """
    return logging.getLogger(name)


configure_logging(settings.LOG_LEVEL)
