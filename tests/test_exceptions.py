"""Exception hierarchy and ErrorKind classification tests."""
from __future__ import annotations

import pytest

from ai_router.exceptions import (
    AiRouterError,
    CapabilityDisabledError,
    CircuitOpenError,
    ConfigurationError,
    ErrorKind,
    ProviderError,
    ProviderNotFoundError,
    ProviderUnavailableError,
    ValidationError,
    VectorStoreError,
    classify,
)


@pytest.mark.parametrize(
    "error, status, counts",
    [
        (ProviderNotFoundError(), 404, False),
        (ProviderUnavailableError(), 503, False),
        (CapabilityDisabledError(), 409, False),
        (CircuitOpenError("svc", 10), 503, False),
        (ProviderError(), 502, True),
        (ConfigurationError(), 500, False),
        (ValidationError(), 400, False),
        (VectorStoreError(), 503, True),
    ],
)
def test_status_codes_and_circuit_accounting(error, status, counts):
    assert error.status_code == status
    assert error.kind.counts_against_circuit is counts


def test_untyped_exceptions_are_internal():
    assert classify(ValueError("x")) is ErrorKind.INTERNAL
    assert ErrorKind.INTERNAL.counts_against_circuit


def test_provider_kinds():
    assert ProviderError().kind.is_provider_kind
    assert CircuitOpenError("svc", 1).kind.is_provider_kind
    assert not ValidationError().kind.is_provider_kind
    assert not VectorStoreError().kind.is_provider_kind


def test_circuit_open_message():
    error = CircuitOpenError("ai_provider_groq", 29.6, provider_name="groq")
    assert "circuit breaker is OPEN" in error.message
    assert "try again in 30 seconds" in error.message
    assert error.to_dict()["provider"] == "groq"


def test_missing_api_key_context():
    error = ProviderError.missing_api_key("groq", "GROQ_API_KEY")

    assert "GROQ_API_KEY" in error.message
    assert error.context["env_var"] == "GROQ_API_KEY"
    body = error.to_dict()
    assert body["kind"] == "provider_failure"
    assert body["error"] == "PROVIDERERROR"


def test_no_model_available():
    assert "Model 'llama9' not found" in ProviderError.no_model_available("chat", "groq", "llama9").message
    generic = ProviderError.no_model_available("vision", "gemini")
    assert generic.message == "No vision model available for provider 'gemini'."
    assert generic.operation == "vision"


def test_base_defaults():
    error = AiRouterError()
    assert error.message == "An error occurred"
    assert error.to_dict() == {"error": "AIROUTERERROR", "kind": "internal", "message": "An error occurred"}
