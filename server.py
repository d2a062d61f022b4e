"""
AI Router Server Entry Point.

All application logic is organized in the `ai_router` package.
"""
from ai_router.main import app

if __name__ == "__main__":
    import uvicorn
    from ai_router.config import settings

    uvicorn.run(
        "server:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower(),
    )
