"""
Utility functions for the AI router.

Provides common functionality for:
- Input sanitization before text reaches an embedding model
- Awaiting values that may or may not be coroutines
- Resolving upload-relative file paths
"""
from __future__ import annotations

import inspect
import re
import unicodedata
from pathlib import Path
from typing import Awaitable, TypeVar

from ai_router.config import get_logger, settings
from ai_router.exceptions import ValidationError

logger = get_logger("utils")

T = TypeVar("T")


# =============================================================================
# Input Sanitization
# =============================================================================

_CONTROL_CHARS = re.compile(r'[\x00-\x08\x0b\x0c\x0e-\x1f\x7f-\x9f]')
_EXCESSIVE_WHITESPACE = re.compile(r'\s{10,}')


def sanitize_text(text: str, max_length: int | None = None) -> str:
    """
    NFC-normalize, drop control characters, collapse runs of whitespace and
    strip. Text longer than ``max_length`` is cut.
    """
    if not text:
        return ""

    text = unicodedata.normalize("NFC", text)
    text = _CONTROL_CHARS.sub("", text)
    text = _EXCESSIVE_WHITESPACE.sub(" ", text)
    text = text.strip()

    if max_length and len(text) > max_length:
        text = text[:max_length]
        logger.debug("Text truncated to %d characters", max_length)

    return text


def sanitize_for_embedding(text: str) -> str:
    """
    Sanitize text specifically for embedding generation.

    Additional processing:
    - Normalizes quotes and dashes
    - Collapses runs of blank lines
    """
    text = sanitize_text(text, max_length=settings.MAX_MESSAGE_LENGTH)

    if not text:
        return ""

    text = re.sub(r'[“”„]', '"', text)
    text = re.sub(r"[‘’`]", "'", text)
    text = re.sub(r'[–—]', '-', text)
    text = re.sub(r'\n{3,}', '\n\n', text)

    return text


# =============================================================================
# Async Helpers
# =============================================================================

async def maybe_await(value: T | Awaitable[T]) -> T:
    """Await ``value`` if it is awaitable, otherwise return it unchanged."""
    if inspect.isawaitable(value):
        return await value
    return value


# =============================================================================
# Paths
# =============================================================================

def resolve_upload_path(relative_path: str, base_dir: Path | None = None) -> Path:
    """
    Resolve a path relative to the upload directory.

    Raises:
        ValidationError: If the path escapes the upload directory
    """
    base = (base_dir or settings.UPLOAD_DIR).resolve()
    candidate = Path(relative_path)
    if not candidate.is_absolute():
        candidate = base / candidate
    candidate = candidate.resolve()

    if base != candidate and base not in candidate.parents:
        raise ValidationError(
            "File path is outside the upload directory",
            details=relative_path,
        )
    return candidate
