"""
Main FastAPI application entry point.
"""
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from questline.api import api_router
from questline.api.deps import get_event_log, get_notifications
from questline.core.config import settings
from questline.core.exceptions import (
    AlreadyTerminal,
    CannotSkipRequiredStep,
    ConcurrentModification,
    PersistenceUnavailable,
    ProgressNotFound,
    QuestlineError,
    StepAlreadyCompleted,
    StepNotFound,
    TemplateNotFound,
    TemplateValidationError,
    UnknownBadge,
)
from questline.core.logging import setup_logging
from questline.middleware.request_id import RequestIdMiddleware
from questline.services.notifications import RedisProgressPublisher

# Setup logging
setup_logging()
logger = structlog.get_logger()

# Domain error -> HTTP status
ERROR_STATUS_CODES: dict[type[QuestlineError], int] = {
    TemplateNotFound: 404,
    ProgressNotFound: 404,
    StepNotFound: 404,
    UnknownBadge: 404,
    CannotSkipRequiredStep: 400,
    StepAlreadyCompleted: 400,
    AlreadyTerminal: 409,
    ConcurrentModification: 409,
    TemplateValidationError: 422,
    PersistenceUnavailable: 503,
}


def status_for(exc: QuestlineError) -> int:
    for error_type in type(exc).__mro__:
        if error_type in ERROR_STATUS_CODES:
            return ERROR_STATUS_CODES[error_type]
    return 400


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Starts the Redis progress listener when enabled and flushes pending
    analytics writes on shutdown.
    """
    logger.info(
        "Starting Questline API",
        version="1.0.0",
        debug=settings.api_debug,
        redis_enabled=settings.redis_enabled,
    )

    notifications = get_notifications()
    if isinstance(notifications, RedisProgressPublisher):
        try:
            await notifications.start_listener()
        except Exception as exc:
            # Local subscribers still work without cross-worker fan-out
            logger.warning("Failed to start Redis progress listener", error=str(exc))

    yield

    logger.info("Shutting down Questline API")
    await get_event_log().drain()
    if isinstance(notifications, RedisProgressPublisher):
        await notifications.close()


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    description="Gamified onboarding quests: templates, progress, points and badges",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(RequestIdMiddleware)


@app.exception_handler(QuestlineError)
async def questline_exception_handler(request: Request, exc: QuestlineError):
    """Map domain errors to HTTP responses."""
    status_code = status_for(exc)
    log = logger.error if status_code >= 500 else logger.info
    log(
        "Request failed",
        path=request.url.path,
        method=request.method,
        error=exc.message,
        error_type=type(exc).__name__,
        status=status_code,
    )
    return JSONResponse(
        status_code=status_code,
        content={
            "detail": exc.message,
            "error_type": type(exc).__name__,
            **{k: v for k, v in exc.context.items() if isinstance(v, (str, int, float, bool, type(None)))},
        },
    )


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    return JSONResponse(status_code=422, content={"detail": str(exc)})


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle unhandled exceptions."""
    logger.error(
        "Unhandled exception",
        path=request.url.path,
        method=request.method,
        error=str(exc),
        error_type=type(exc).__name__,
    )
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
    )


# Include API routes with /api prefix
app.include_router(api_router, prefix="/api")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "questline.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_debug,
    )
