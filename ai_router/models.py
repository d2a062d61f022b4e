"""
Pydantic models for operator endpoint responses.

Usage:
    from ai_router.models import HealthResponse, CircuitStatus
"""
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

API_VERSION = "1.0.0"


class ServiceStatus(str, Enum):
    """Status values for health checks."""
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"
    DEGRADED = "degraded"


class ErrorResponse(BaseModel):
    """
    Standard error response format.

    All API errors return this format for consistency.
    """

    model_config = ConfigDict(frozen=True)

    detail: str = Field(..., description="Error message")
    error_type: str = Field(
        ...,
        description="Error classification",
        examples=["ProviderError", "CircuitOpenError", "CapabilityDisabledError"],
    )
    kind: str | None = Field(default=None, description="ErrorKind value")
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the error occurred",
    )


class ProviderHealth(BaseModel):
    """Health status for a single AI provider."""

    name: str
    available: bool
    capabilities: list[str] = Field(default_factory=list)
    default_models: dict[str, str] = Field(default_factory=dict)
    status: dict[str, Any] = Field(default_factory=dict)


class HealthResponse(BaseModel):
    """Health check response with provider and backend statuses."""

    status: ServiceStatus = Field(..., description="Overall health status")
    providers: list[ProviderHealth] = Field(default_factory=list)
    services: dict[str, Any] = Field(..., description="Backend statuses")
    timestamp: str = Field(..., description="ISO 8601 timestamp")
    version: str = Field(default=API_VERSION, description="API version")


class ReadinessResponse(BaseModel):
    """Readiness probe response for container orchestration."""

    model_config = ConfigDict(frozen=True)

    ready: bool = Field(..., description="Whether the service is ready to accept requests")
    checks: dict[str, bool] = Field(default_factory=dict)


class PingResponse(BaseModel):
    """Simple ping response."""

    model_config = ConfigDict(frozen=True)

    status: str = Field(default="ok")


class CircuitStatus(BaseModel):
    """Snapshot of one circuit."""

    service_name: str
    state: str = Field(..., examples=["closed", "open", "half_open"])
    consecutive_failures: int
    retry_after_seconds: float
    probe_in_flight: bool
    failure_threshold: int
    cooldown_seconds: float


class CircuitsResponse(BaseModel):
    circuits: list[CircuitStatus] = Field(default_factory=list)


class CapabilityRefreshResponse(BaseModel):
    """Enablement map after an operator-triggered reload."""

    capabilities: dict[str, list[str]] = Field(
        default_factory=dict,
        description="Provider name to enabled capability tags",
        examples=[{"groq": ["chat", "pic2text"]}],
    )
    refreshed_at: str
