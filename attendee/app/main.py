from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from attendee.app.api.questions import router as questions_router
from attendee.app.core.config import Settings, settings as default_settings
from attendee.app.core.logging import get_logger, setup_logging
from attendee.app.exceptions import RateLimitExceededError, SubmissionValidationError
from attendee.app.middleware.rate_limit import Clock
from attendee.app.middleware.security_headers import SecurityHeadersMiddleware
from attendee.app.services.admission import AdmissionGate


def create_app(settings: Settings | None = None, clock: Clock | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Settings to use instead of the environment-loaded ones
        clock: Millisecond clock for the rate limiters (tests)

    Returns:
        Configured FastAPI application instance
    """
    settings = settings or default_settings

    setup_logging()
    logger = get_logger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan context manager.

        Builds the rate limiter registry and admission gate once on startup;
        they are dropped with the application on shutdown.
        """
        gate = AdmissionGate.from_settings(settings, clock=clock)
        app.state.admission_gate = gate

        logger.info(
            "Application startup complete",
            extra={
                "action_classes": gate.registry.action_classes,
                "rate_limit_algorithm": settings.rate_limit_algorithm,
                "debug_mode": settings.debug,
            },
        )

        yield

        removed = gate.registry.cleanup()
        logger.info(f"Application shutdown complete ({removed} idle identities released)")

    app = FastAPI(
        title="Attendee API",
        description="Conference Q&A submissions with rate limiting and input sanitization",
        version="1.0.0",
        lifespan=lifespan,
    )

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["Retry-After"],
        max_age=600,
    )

    app.include_router(questions_router)

    @app.get("/health")
    async def health(request: Request) -> dict[str, Any]:
        """Health check endpoint."""
        gate: AdmissionGate = request.app.state.admission_gate
        return {"status": "ok", "action_classes": gate.registry.action_classes}

    @app.exception_handler(RateLimitExceededError)
    async def rate_limit_handler(request: Request, exc: RateLimitExceededError) -> JSONResponse:
        """Handle RateLimitExceededError and return HTTP 429 response."""
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "error": "rate_limit_exceeded",
                "message": exc.message,
                "retry_after": exc.retry_after,
            },
            headers={"Retry-After": str(exc.retry_after or 60)},
        )

    @app.exception_handler(SubmissionValidationError)
    async def validation_handler(request: Request, exc: SubmissionValidationError) -> JSONResponse:
        """Handle SubmissionValidationError and return HTTP 422 response."""
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "error": "validation_failed",
                "message": exc.message,
                "errors": exc.errors,
            },
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Global exception handler for unhandled exceptions.

        Never returns a traceback to the client; details are logged
        server-side only.
        """
        logger.exception(
            "Unhandled exception",
            extra={
                "path": request.url.path,
                "method": request.method,
                "exception_type": type(exc).__name__,
            },
        )

        if settings.debug:
            return JSONResponse(
                status_code=500,
                content={
                    "error": "internal_error",
                    "message": str(exc),
                    "exception_type": type(exc).__name__,
                },
            )

        return JSONResponse(
            status_code=500,
            content={
                "error": "internal_error",
                "message": "An internal error occurred. Please try again later.",
            },
        )

    return app


# Create the application instance
app = create_app()
