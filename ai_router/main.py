"""
FastAPI application entry point.

The AI router is a library first; this app is the thin operator surface
around it:
- Lifespan management (AppState startup/shutdown)
- Exception handlers mapping AiRouterError to JSON
- Health, readiness, circuit status and capability refresh routes

Usage:
    Run with uvicorn:
        uvicorn ai_router.main:app --host 0.0.0.0 --port 8080

    Or with the server.py entry point:
        python server.py
"""
from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from ai_router.config import get_logger, settings
from ai_router.exceptions import AiRouterError
from ai_router.models import API_VERSION, ErrorResponse
from ai_router.routes import admin, health
from ai_router.state import AppState

logger = get_logger("main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Startup builds AppState unless a test already installed one; shutdown
    closes backend connections.
    """
    logger.info("=" * 60)
    logger.info("AI Router Starting...")
    logger.info("=" * 60)
    logger.info(
        "Configuration | default_provider=%s | model_config=%s | vector_store=%s",
        settings.DEFAULT_PROVIDER,
        settings.MODEL_CONFIG_PROVIDER,
        settings.VECTOR_STORE_PROVIDER,
    )

    if not hasattr(app.state, "app_state"):
        try:
            app.state.app_state = await AppState.create()
        except Exception as exc:
            logger.critical("Startup failed: %s", exc, exc_info=True)
            raise
    logger.info("Server ready to accept requests")

    yield

    logger.info("Shutting down...")
    try:
        await app.state.app_state.close()
    except Exception as e:
        logger.error("Error during shutdown: %s", e)
    logger.info("Shutdown complete")


def configure_exception_handlers(application: FastAPI) -> None:
    """Configure exception handlers."""

    @application.exception_handler(AiRouterError)
    async def router_exception_handler(request: Request, exc: AiRouterError) -> JSONResponse:
        logger.warning(
            "AiRouterError | path=%s | type=%s | message=%s | details=%s",
            request.url.path,
            exc.__class__.__name__,
            exc.message,
            exc.details,
        )
        body = ErrorResponse(
            detail=exc.message,
            error_type=exc.__class__.__name__,
            kind=exc.kind.value,
        )
        return JSONResponse(status_code=exc.status_code, content=body.model_dump(mode="json"))

    @application.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "Unhandled exception | path=%s | type=%s | error=%s",
            request.url.path,
            type(exc).__name__,
            exc,
            exc_info=True,
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Internal server error", "error_type": "InternalError"},
        )


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application instance
    """
    application = FastAPI(
        title="AI Router",
        description="Capability-based AI provider routing with circuit breaking and vector search.",
        version=API_VERSION,
        lifespan=lifespan,
    )
    configure_exception_handlers(application)
    application.include_router(health.router)
    application.include_router(admin.router)
    return application


app = create_app()
