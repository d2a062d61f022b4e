"""
Health check endpoints.

Usage:
    GET /           - Full health check
    GET /health     - Full health check (alias)
    GET /ping       - Simple liveness probe
    GET /ready      - Readiness probe
"""
from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from ai_router.config import get_logger
from ai_router.models import (
    HealthResponse,
    PingResponse,
    ProviderHealth,
    ReadinessResponse,
    ServiceStatus,
)
from ai_router.providers.ai.interface import Capability
from ai_router.state import AppState, get_app_state

logger = get_logger("routes.health")

router = APIRouter(tags=["Health"])


@router.get(
    "/",
    response_model=HealthResponse,
    summary="Health check",
    responses={503: {"description": "Service is unhealthy"}},
)
@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check (alias)",
    responses={503: {"description": "Service is unhealthy"}},
)
async def health_check(state: AppState = Depends(get_app_state)) -> HealthResponse | JSONResponse:
    """
    Detailed health status of every provider and backend.

    - **healthy**: vector store up and a real chat provider available
    - **degraded**: only the sentinel provider can serve chat
    - **unhealthy**: vector store unavailable
    """
    registry = state.registry
    providers = [
        ProviderHealth(
            name=p.get_name(),
            available=p.is_available(),
            capabilities=[c.value for c in p.get_capabilities()],
            default_models=p.get_default_models(),
            status=p.get_status(),
        )
        for p in registry.all_providers()
    ]

    store_available = state.vector_store.is_available()
    real_chat = any(
        p.available and Capability.CHAT.value in p.capabilities and not registry.is_sentinel(p.name)
        for p in providers
    )

    if not store_available:
        overall = ServiceStatus.UNHEALTHY
    elif real_chat:
        overall = ServiceStatus.HEALTHY
    else:
        overall = ServiceStatus.DEGRADED

    snapshot = registry.capability_snapshot()
    response = HealthResponse(
        status=overall,
        providers=providers,
        services={
            "ready": state.is_ready(),
            "vector_store": {
                "provider": state.vector_store.get_provider_name(),
                "available": store_available,
            },
            "model_config": {"provider": state.model_config.get_provider_name()},
            "capabilities_loaded": snapshot is not None,
            "open_circuits": [
                name for name, s in state.circuit_breaker.get_all_statuses().items()
                if s["state"] != "closed"
            ],
        },
        timestamp=datetime.now(timezone.utc).isoformat(),
    )

    if overall == ServiceStatus.UNHEALTHY:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content=response.model_dump(mode="json"),
        )
    return response


@router.get("/ping", response_model=PingResponse, summary="Liveness probe")
async def ping() -> PingResponse:
    """Always 200 while the process is running; checks nothing."""
    return PingResponse(status="ok")


@router.get(
    "/ready",
    response_model=ReadinessResponse,
    summary="Readiness probe",
    responses={503: {"description": "Service is not ready"}},
)
async def readiness_check(state: AppState = Depends(get_app_state)) -> ReadinessResponse | JSONResponse:
    checks = {
        "chat": any(
            p.is_available()
            for p in state.registry.all_providers()
            if Capability.CHAT in p.get_capabilities()
        ),
        "vector_store": state.vector_store.is_available(),
    }
    response = ReadinessResponse(ready=all(checks.values()), checks=checks)

    if not response.ready:
        logger.warning("Readiness check failed: %s", checks)
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content=response.model_dump(),
        )
    return response
