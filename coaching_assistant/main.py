"""
FastAPI application entry point.

This module creates and configures the FastAPI application.
Using an application factory pattern (create_app function) because:
- Easier to test with different configurations
- Explicit about initialization order

For local development:
    uvicorn coaching_assistant.main:app --reload

For production:
    gunicorn coaching_assistant.main:app -w 4 -k uvicorn.workers.UvicornWorker
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api.routes import (
    clients,
    feedback,
    follow_ups,
    health,
    sessions,
    smart_suggestions,
    subscription,
    suggestions,
)
from .config.settings import get_settings
from .core.coaching.errors import (
    ClientAccessError,
    CoachingError,
    FeedbackWriteError,
    FollowUpAccessError,
    InvalidFeedbackError,
    ProviderError,
    ProviderUnavailable,
    SessionAccessError,
    SessionLoadTimeout,
    StrategistError,
    TransitionRejected,
)
from .infrastructure.subscription.client import SubscriptionError

# Configure logging
logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=logging.INFO,
)

logger = logging.getLogger(__name__)


# Domain errors and the status each one surfaces as. Looked up along the
# exception's MRO, so subclasses inherit their parent's status.
ERROR_STATUS: dict[type, int] = {
    SessionAccessError: 404,
    ClientAccessError: 404,
    FollowUpAccessError: 404,
    SessionLoadTimeout: 504,
    StrategistError: 502,
    ProviderError: 502,
    ProviderUnavailable: 503,
    SubscriptionError: 502,
    TransitionRejected: 409,
    InvalidFeedbackError: 422,
    FeedbackWriteError: 500,
    ValueError: 422,
}


def status_for(exc: Exception) -> Optional[int]:
    for cls in type(exc).__mro__:
        if cls in ERROR_STATUS:
            return ERROR_STATUS[cls]
    return None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Runs on startup and shutdown. FastAPI calls this automatically when
    the application starts/stops.
    """
    # Startup
    settings = get_settings()
    logging.getLogger().setLevel(settings.log_level.upper())

    logger.info(
        "Coaching Assistant API starting",
        extra={
            "version": settings.api_version,
            "mock_mode": settings.snowflake_mock_mode,
        }
    )

    # Validate configuration
    missing_fields = settings.validate_required_fields()
    if missing_fields:
        logger.error(
            "Missing required configuration",
            extra={"missing_fields": missing_fields}
        )
        # Readiness reports this; the process still starts

    yield

    # Shutdown
    logger.info("Coaching Assistant API shutting down")


def create_app() -> FastAPI:
    """
    Application factory.

    Creates and configures the FastAPI application.
    """
    settings = get_settings()

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        description="""
        AI-assisted coaching conversations about the people in your life.

        ## Features

        - Hold a coaching conversation about a client
        - Request a strategist analysis when the picture is complete
        - Pick up earlier sessions where they left off
        - Leave feedback and get suggestions for your coaching practice

        ## Authentication

        All endpoints require an API key in the `X-API-Key` header and the
        coach's id in the `X-User-Id` header.

        ## Workflow

        1. **Add a client**: `POST /api/v1/clients`
        2. **Start a session**: `POST /api/v1/sessions`
        3. **Talk it through**: `POST /api/v1/sessions/{session_id}/messages`
        4. **Get the analysis**: `POST /api/v1/sessions/{session_id}/analyze`
        5. **Leave feedback**: `POST /api/v1/feedback`
        """,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # CORS middleware
    # Configure allowed origins via CORS_ORIGINS environment variable
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(health.router, prefix="/health", tags=["Health"])
    app.include_router(clients.router, prefix="/api/v1/clients", tags=["Clients"])
    app.include_router(sessions.router, prefix="/api/v1/sessions", tags=["Sessions"])
    app.include_router(feedback.router, prefix="/api/v1/feedback", tags=["Feedback"])
    app.include_router(suggestions.router, prefix="/api/v1/suggestions", tags=["Suggestions"])
    app.include_router(
        smart_suggestions.router,
        prefix="/api/v1/smart-suggestions",
        tags=["Smart Suggestions"],
    )
    app.include_router(follow_ups.router, prefix="/api/v1/follow-ups", tags=["Follow-ups"])
    app.include_router(
        follow_ups.notifications_router,
        prefix="/api/v1/notifications",
        tags=["Notifications"],
    )
    app.include_router(
        subscription.router,
        prefix="/api/v1/subscription",
        tags=["Subscription"],
    )

    # Root endpoint
    @app.get("/", include_in_schema=False)
    async def root():
        """Root endpoint - points at the docs."""
        return {
            "message": "Coaching Assistant API",
            "version": settings.api_version,
            "docs": "/docs",
            "health": "/health",
        }

    @app.exception_handler(CoachingError)
    @app.exception_handler(SubscriptionError)
    @app.exception_handler(ValueError)
    async def domain_exception_handler(request: Request, exc: Exception):
        """Map domain errors to status codes. Messages are safe to show."""
        status_code = status_for(exc) or 500
        log = logger.error if status_code >= 500 else logger.info
        log(
            "Request failed",
            extra={
                "path": request.url.path,
                "method": request.method,
                "error_type": type(exc).__name__,
                "error": str(exc),
                "status_code": status_code,
            }
        )
        return JSONResponse(status_code=status_code, content={"detail": str(exc)})

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request, exc):
        """
        Catch-all exception handler.

        In production, this prevents stack traces from leaking to clients.
        We log the full error server-side but return a generic message.
        """
        logger.error(
            "Unhandled exception",
            extra={
                "path": request.url.path,
                "method": request.method,
                "error": str(exc),
            },
            exc_info=exc,
        )

        return JSONResponse(
            status_code=500,
            content={
                "detail": "Internal server error. Please contact support if this persists."
            }
        )

    logger.info(
        "FastAPI application created",
        extra={
            "title": settings.api_title,
            "version": settings.api_version,
        }
    )

    return app


# Create the application instance
# This is what uvicorn/gunicorn will import
app = create_app()


# For debugging/development
if __name__ == "__main__":
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "coaching_assistant.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level=settings.log_level.lower(),
    )
