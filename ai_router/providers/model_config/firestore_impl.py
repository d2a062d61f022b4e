"""
Firestore-backed model configuration.

Storage Structure:
- Collection: config
  Fields: owner_id (int, 0 = global), group, setting, value
  - group 'ai',           setting 'default_<purpose>_provider' -> provider name
  - group 'DEFAULTMODEL', setting '<PURPOSE>'                   -> models doc id
- Collection: models
  Document ID: model id
  Fields: name, service (provider), tag (purpose)

Cache Strategy:
- Per-key LRU cache with TTL for user lookups
- The capability map is not cached here; the registry owns its lifecycle
"""
from __future__ import annotations

import threading
import time
from collections import OrderedDict
from typing import Any, Optional

from ai_router.config import get_logger, settings
from ai_router.exceptions import ConfigurationError
from ai_router.providers.firestore import get_firestore_client
from .interface import ModelConfigProviderInterface, ModelInfo

logger = get_logger("providers.model_config.firestore")

GLOBAL_OWNER_ID = 0

_MISSING = object()


class TTLCache:
    """
    Small LRU cache with per-entry TTL.

    - TTL-based expiration for freshness
    - Max entries limit to bound memory usage
    - None is a cacheable value (negative lookups are cached too)
    """

    def __init__(self, max_entries: int = 1000, ttl_seconds: int = 300):
        self._cache: OrderedDict[str, tuple[float, Any]] = OrderedDict()
        self._max_entries = max_entries
        self._ttl_seconds = ttl_seconds
        self._lock = threading.Lock()

    def get(self, key: str) -> Any:
        """Cached value, or the ``_MISSING`` sentinel on miss/expiry."""
        with self._lock:
            entry = self._cache.get(key)
            if entry is None:
                return _MISSING
            cached_at, value = entry
            if time.monotonic() - cached_at > self._ttl_seconds:
                del self._cache[key]
                return _MISSING
            self._cache.move_to_end(key)
            return value

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            while len(self._cache) >= self._max_entries:
                self._cache.popitem(last=False)
            self._cache[key] = (time.monotonic(), value)

    def invalidate_all(self) -> None:
        with self._lock:
            self._cache.clear()
        logger.info("Model config cache cleared")


class FirestoreModelConfigProvider(ModelConfigProviderInterface):
    """Model configuration read from Firestore with a TTL cache."""

    def __init__(self, db=None, ttl_seconds: int | None = None):
        self._db = db
        self._cache = TTLCache(
            ttl_seconds=settings.MODEL_CONFIG_CACHE_TTL_SECONDS if ttl_seconds is None else ttl_seconds,
        )

    @property
    def db(self):
        """Lazy initialization of Firestore client."""
        if self._db is None:
            self._db = get_firestore_client()
        return self._db

    def get_provider_name(self) -> str:
        return "firestore"

    def invalidate(self) -> None:
        self._cache.invalidate_all()

    async def _find_setting(self, owner_id: int, group: str, setting: str) -> Optional[str]:
        query = (
            self.db.collection(settings.FIRESTORE_CONFIG_COLLECTION)
            .where("owner_id", "==", owner_id)
            .where("group", "==", group)
            .where("setting", "==", setting)
            .limit(1)
        )
        async for doc in query.stream():
            value = (doc.to_dict() or {}).get("value")
            return str(value) if value not in (None, "") else None
        return None

    async def _lookup(self, user_id: Optional[int], group: str, setting: str) -> Optional[str]:
        """User-specific value first, then the global one (owner 0)."""
        cache_key = f"{user_id}:{group}:{setting}"
        cached = self._cache.get(cache_key)
        if cached is not _MISSING:
            return cached

        value = None
        try:
            if user_id:
                value = await self._find_setting(user_id, group, setting)
            if value is None:
                value = await self._find_setting(GLOBAL_OWNER_ID, group, setting)
        except Exception as e:
            logger.error("Config lookup failed (%s/%s, user=%s): %s", group, setting, user_id, e)
            raise ConfigurationError("Failed to read model configuration", details=str(e)) from e

        self._cache.set(cache_key, value)
        return value

    async def get_default_provider(self, user_id: Optional[int], purpose: str) -> str:
        purpose = purpose.lower()
        value = await self._lookup(user_id, "ai", f"default_{purpose}_provider")
        if value:
            return value.lower()

        # No provider setting; derive it from the default model if one exists
        model = await self.get_default_model(purpose, user_id)
        if model is not None:
            return model.provider
        return settings.DEFAULT_PROVIDER

    async def get_default_model(self, purpose: str, user_id: Optional[int] = None) -> Optional[ModelInfo]:
        purpose = purpose.lower()
        model_id = await self._lookup(user_id, "DEFAULTMODEL", purpose.upper())
        if not model_id:
            return None

        cache_key = f"model:{model_id}"
        cached = self._cache.get(cache_key)
        if cached is not _MISSING:
            return cached

        try:
            doc = await self.db.collection(settings.FIRESTORE_MODELS_COLLECTION).document(model_id).get()
        except Exception as e:
            logger.error("Model lookup failed for id=%s: %s", model_id, e)
            raise ConfigurationError("Failed to read model configuration", details=str(e)) from e

        info = None
        if doc.exists:
            data = doc.to_dict() or {}
            info = ModelInfo(
                model_id=model_id,
                name=str(data.get("name", "")),
                provider=str(data.get("service", "")).lower(),
                tag=str(data.get("tag", purpose)).lower(),
            )
        else:
            logger.warning("Default model %s for purpose=%s does not exist", model_id, purpose)

        self._cache.set(cache_key, info)
        return info

    async def get_provider_capabilities(self) -> dict[str, set[str]]:
        capabilities: dict[str, set[str]] = {}
        try:
            async for doc in self.db.collection(settings.FIRESTORE_MODELS_COLLECTION).stream():
                data = doc.to_dict() or {}
                service = str(data.get("service", "")).strip().lower()
                tag = str(data.get("tag", "")).strip().lower()
                if service and tag:
                    capabilities.setdefault(service, set()).add(tag)
        except Exception as e:
            logger.error("Failed to load provider capabilities: %s", e)
            raise ConfigurationError("Failed to load provider capabilities", details=str(e)) from e
        return capabilities
