"""
Custom exceptions for the AI router.

This module provides a consistent exception hierarchy for error handling
across all providers and services. Every exception carries an ``ErrorKind``;
the circuit breaker and the HTTP layer both derive their behavior from it
instead of branching on exception classes.

Exception Hierarchy:
    AiRouterError (base)
    ├── ConfigurationError (500)
    ├── ValidationError (400)
    ├── VectorStoreError (503)
    └── ProviderException (503)
        ├── ProviderNotFoundError (404)
        ├── ProviderUnavailableError (503)
        ├── CapabilityDisabledError (409)
        ├── CircuitOpenError (503)
        └── ProviderError (502)

Usage:
    from ai_router.exceptions import ProviderError

    raise ProviderError("Generation failed", provider_name="groq", operation="chat")
"""
from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    """Classification shared by breaker bookkeeping and the caller taxonomy."""

    PROVIDER_NOT_FOUND = "provider_not_found"
    PROVIDER_UNAVAILABLE = "provider_unavailable"
    CAPABILITY_DISABLED = "capability_disabled"
    CIRCUIT_OPEN = "circuit_open"
    PROVIDER_FAILURE = "provider_failure"
    CONFIGURATION = "configuration"
    VALIDATION = "validation"
    STORAGE = "storage"
    INTERNAL = "internal"

    @property
    def counts_against_circuit(self) -> bool:
        """Whether an error of this kind is recorded as a downstream failure."""
        return self in _CIRCUIT_FAILURE_KINDS

    @property
    def is_provider_kind(self) -> bool:
        """Whether the error already describes a provider-level outcome."""
        return self in _PROVIDER_KINDS


_CIRCUIT_FAILURE_KINDS = frozenset({
    ErrorKind.PROVIDER_FAILURE,
    ErrorKind.STORAGE,
    ErrorKind.INTERNAL,
})

_PROVIDER_KINDS = frozenset({
    ErrorKind.PROVIDER_NOT_FOUND,
    ErrorKind.PROVIDER_UNAVAILABLE,
    ErrorKind.CAPABILITY_DISABLED,
    ErrorKind.CIRCUIT_OPEN,
    ErrorKind.PROVIDER_FAILURE,
})


def classify(exc: BaseException) -> ErrorKind:
    """Return the ErrorKind of any exception (untyped ones are INTERNAL)."""
    if isinstance(exc, AiRouterError):
        return exc.kind
    return ErrorKind.INTERNAL


class AiRouterError(Exception):
    """
    Base exception for all router errors.

    Attributes:
        message: Human-readable error message
        status_code: HTTP status code for API response
        details: Additional error details (optional)
        error_code: Machine-readable error code (optional)
        kind: ErrorKind classification
    """

    default_message: str = "An error occurred"
    default_status_code: int = 500
    kind: ErrorKind = ErrorKind.INTERNAL

    def __init__(
        self,
        message: str | None = None,
        status_code: int | None = None,
        details: str | None = None,
        error_code: str | None = None,
    ) -> None:
        self.message = message or self.default_message
        self.status_code = status_code or self.default_status_code
        self.details = details
        self.error_code = error_code or self.__class__.__name__.upper()
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert exception to dictionary for API response.

        Returns:
            Dictionary with error details
        """
        result = {
            "error": self.error_code,
            "kind": self.kind.value,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(message={self.message!r}, status_code={self.status_code})"


# =============================================================================
# Configuration / Client Errors
# =============================================================================

class ConfigurationError(AiRouterError):
    """
    Raised when configuration is invalid or missing.

    Examples:
        - Missing required environment variables
        - Unknown backend selected in settings
    """

    default_message = "Configuration error"
    default_status_code = 500
    kind = ErrorKind.CONFIGURATION


class ValidationError(AiRouterError):
    """Raised when caller input is malformed (empty messages, bad paths)."""

    default_message = "Validation error"
    default_status_code = 400
    kind = ErrorKind.VALIDATION


class VectorStoreError(AiRouterError):
    """
    Raised when the similarity-search backend fails.

    Examples:
        - Connection failure
        - Query timeout
        - Missing vector index
    """

    default_message = "Vector store error"
    default_status_code = 503
    kind = ErrorKind.STORAGE


# =============================================================================
# Provider Errors
# =============================================================================

class ProviderException(AiRouterError):
    """
    Base class for everything that happens while selecting or calling a provider.

    Attributes:
        provider_name: Provider involved ("unknown" when not resolved yet)
        operation: Facade operation or capability being served
        context: Structured remediation hints (optional)
    """

    default_message = "AI provider error"
    default_status_code = 503
    kind = ErrorKind.PROVIDER_FAILURE

    def __init__(
        self,
        message: str | None = None,
        *,
        provider_name: str = "unknown",
        operation: str | None = None,
        context: dict[str, Any] | None = None,
        status_code: int | None = None,
        details: str | None = None,
    ) -> None:
        super().__init__(message, status_code=status_code, details=details)
        self.provider_name = provider_name
        self.operation = operation
        self.context = context

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["provider"] = self.provider_name
        if self.operation:
            result["operation"] = self.operation
        if self.context:
            result["context"] = self.context
        return result


class ProviderNotFoundError(ProviderException):
    """No provider is registered for the capability, or the name is unknown."""

    default_message = "Provider not found"
    default_status_code = 404
    kind = ErrorKind.PROVIDER_NOT_FOUND


class ProviderUnavailableError(ProviderException):
    """The provider is registered but not ready (missing keys, service down)."""

    default_message = "Provider unavailable"
    default_status_code = 503
    kind = ErrorKind.PROVIDER_UNAVAILABLE


class CapabilityDisabledError(ProviderException):
    """The capability is administratively disabled for this provider."""

    default_message = "Capability disabled for provider"
    default_status_code = 409
    kind = ErrorKind.CAPABILITY_DISABLED


class CircuitOpenError(ProviderException):
    """The breaker for a service is open and no fallback was supplied."""

    default_message = "Service temporarily unavailable"
    default_status_code = 503
    kind = ErrorKind.CIRCUIT_OPEN

    def __init__(
        self,
        service_name: str,
        retry_after: float,
        *,
        provider_name: str = "unknown",
    ) -> None:
        super().__init__(
            f"Service temporarily unavailable (circuit breaker is OPEN). "
            f"Please try again in {max(0, round(retry_after))} seconds.",
            provider_name=provider_name,
        )
        self.service_name = service_name
        self.retry_after = retry_after


class ProviderError(ProviderException):
    """
    Raised when a provider call fails unexpectedly.

    The original exception is chained as ``__cause__``.
    """

    default_message = "AI provider call failed"
    default_status_code = 502
    kind = ErrorKind.PROVIDER_FAILURE

    @classmethod
    def missing_api_key(cls, provider: str, env_var_name: str) -> "ProviderError":
        """Create a user-friendly error for a missing API key."""
        return cls(
            f"API key not configured for provider '{provider}'. "
            f"Please set the {env_var_name} environment variable.",
            provider_name=provider,
            context={
                "env_var": env_var_name,
                "setup_instructions": f"Add {env_var_name}=your-api-key to your .env file",
            },
        )

    @classmethod
    def no_model_available(
        cls,
        model_type: str,
        provider: str,
        requested_model: str | None = None,
    ) -> "ProviderError":
        """Create a user-friendly error for an unknown or missing model."""
        if requested_model:
            message = f"Model '{requested_model}' not found for provider '{provider}'."
        else:
            message = f"No {model_type} model available for provider '{provider}'."
        return cls(
            message,
            provider_name=provider,
            operation=model_type,
            context={"requested_model": requested_model} if requested_model else None,
        )
