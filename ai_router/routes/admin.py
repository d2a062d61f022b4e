"""
Operator endpoints.

Usage:
    GET  /circuits              - State of every circuit
    POST /circuits/reset        - Force circuits closed (?service_name=... for one)
    POST /capabilities/refresh  - Reload the provider enablement map
"""
from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Query

from ai_router.config import get_logger
from ai_router.models import CapabilityRefreshResponse, CircuitsResponse, CircuitStatus
from ai_router.state import AppState, get_app_state

logger = get_logger("routes.admin")

router = APIRouter(tags=["Operations"])


def _circuits(state: AppState) -> CircuitsResponse:
    return CircuitsResponse(
        circuits=[CircuitStatus(**s) for s in state.circuit_breaker.get_all_statuses().values()],
    )


@router.get("/circuits", response_model=CircuitsResponse, summary="Circuit breaker status")
async def list_circuits(state: AppState = Depends(get_app_state)) -> CircuitsResponse:
    return _circuits(state)


@router.post("/circuits/reset", response_model=CircuitsResponse, summary="Reset circuit breakers")
async def reset_circuits(
    state: AppState = Depends(get_app_state),
    service_name: str | None = Query(default=None, description="Reset only this circuit"),
) -> CircuitsResponse:
    state.circuit_breaker.reset(service_name)
    logger.warning("Circuits reset by operator: %s", service_name or "all")
    return _circuits(state)


@router.post(
    "/capabilities/refresh",
    response_model=CapabilityRefreshResponse,
    summary="Reload provider capabilities",
)
async def refresh_capabilities(state: AppState = Depends(get_app_state)) -> CapabilityRefreshResponse:
    """
    Reload the administratively enabled capabilities immediately.

    The map is otherwise cached for the process lifetime. Cached per-user
    model defaults are dropped as well.
    """
    invalidate = getattr(state.model_config, "invalidate", None)
    if invalidate is not None:
        invalidate()
    snapshot = await state.registry.refresh()
    return CapabilityRefreshResponse(
        capabilities={name: sorted(tags) for name, tags in snapshot.items()},
        refreshed_at=datetime.now(timezone.utc).isoformat(),
    )
