"""
Shared Firestore AsyncClient.

Model configuration and the vector store may both live in Firestore; they
share one lazily created client so only one gRPC channel is opened.
"""
from __future__ import annotations

import base64
import json
import threading
from typing import Optional

from google.cloud import firestore
from google.oauth2 import service_account

from ai_router.config import get_logger, settings
from ai_router.exceptions import ConfigurationError

logger = get_logger("providers.firestore")

_client: Optional[firestore.AsyncClient] = None
_lock = threading.Lock()


def _load_credentials() -> Optional[service_account.Credentials]:
    """Decode FIREBASE_CREDS_BASE64 if configured, else fall back to ADC."""
    if not settings.FIREBASE_CREDS_BASE64:
        return None
    padded = settings.FIREBASE_CREDS_BASE64 + "=" * ((4 - len(settings.FIREBASE_CREDS_BASE64) % 4) % 4)
    try:
        info = json.loads(base64.b64decode(padded).decode("utf-8"))
    except (ValueError, UnicodeDecodeError) as e:
        raise ConfigurationError("Invalid FIREBASE_CREDS_BASE64", details=str(e)) from e
    return service_account.Credentials.from_service_account_info(info)


def get_firestore_client() -> firestore.AsyncClient:
    """Get (creating on first use) the process-wide Firestore AsyncClient."""
    global _client
    with _lock:
        if _client is None:
            credentials = _load_credentials()
            if credentials is not None:
                _client = firestore.AsyncClient(credentials=credentials, project=credentials.project_id)
            else:
                _client = firestore.AsyncClient()
            logger.info("Firestore AsyncClient initialized")
        return _client


def close_firestore_client() -> None:
    """Close the shared client's gRPC channel."""
    global _client
    with _lock:
        if _client is None:
            return
        try:
            _client.close()
            logger.info("Firestore connection closed")
        except Exception as e:
            logger.warning("Error closing Firestore client: %s", e)
        finally:
            _client = None
