from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from bookmarketer.app.api.rate_limits import router as rate_limits_router
from bookmarketer.app.core.config import Settings, settings as default_settings
from bookmarketer.app.core.counter_store import CounterStore, create_counter_store
from bookmarketer.app.core.logging import get_log_context, get_logger, setup_logging
from bookmarketer.app.exceptions import AppException, RateLimitExceededError
from bookmarketer.app.middleware.rate_limit import FailureMode, build_rate_limiters
from bookmarketer.app.middleware.request_id import RequestIdMiddleware, get_request_id
from bookmarketer.app.services.ai_rate_limiter import AIServiceRateLimiter


def create_app(
    config: Optional[Settings] = None,
    store: Optional[CounterStore] = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    The application owns the counter store, the per-policy limiters and the
    AI-service limiter: all are built once in the lifespan and hung off
    ``app.state`` for the dependencies that need them.

    Args:
        config: Settings to use (defaults to the environment)
        store: Pre-built counter store (defaults to the configured backend)

    Returns:
        Configured FastAPI application instance
    """
    config = config or default_settings
    setup_logging()
    logger = get_logger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Build the rate limiting graph on startup, close the store on shutdown."""
        # A store handed in by the caller stays the caller's to close
        owns_store = store is None
        counter_store = store if store is not None else create_counter_store(config)
        failure_mode = (
            FailureMode.CLOSED if config.rate_limit_fail_closed else FailureMode.OPEN
        )

        app.state.settings = config
        app.state.counter_store = counter_store
        app.state.rate_limiters = build_rate_limiters(
            counter_store, failure_mode=failure_mode
        )
        app.state.ai_service_limiter = AIServiceRateLimiter(
            counter_store,
            window_ms=config.ai_service_window_seconds * 1000,
            max_requests=config.ai_service_max_requests,
            failure_mode=failure_mode,
        )

        logger.info(
            "Application startup complete",
            extra={
                "rate_limit_backend": config.rate_limit_backend,
                "failure_mode": failure_mode.value,
                "policies": sorted(app.state.rate_limiters),
            },
        )

        try:
            yield
        finally:
            if owns_store:
                await counter_store.close()
            logger.info("Application shutdown complete")

    app = FastAPI(
        title="Book Marketer Rate Limits",
        description="Fixed-window rate limiting for the book-marketing API",
        version="1.0.0",
        lifespan=lifespan,
    )

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=[
            "X-Request-ID",
            "X-RateLimit-Limit",
            "X-RateLimit-Remaining",
            "X-RateLimit-Reset",
            "Retry-After",
        ],
        max_age=600,
    )
    app.add_middleware(RequestIdMiddleware)

    app.include_router(rate_limits_router)

    @app.get("/health")
    async def health(request: Request) -> dict[str, Any]:
        """Health check with counter store status."""
        counter_store: CounterStore = request.app.state.counter_store
        reachable = await counter_store.ping()
        return {
            "status": "ok" if reachable else "degraded",
            "components": {
                "store": {
                    "status": "ok" if reachable else "error",
                    "type": config.rate_limit_backend,
                }
            },
        }

    @app.exception_handler(RateLimitExceededError)
    async def rate_limit_exceeded_handler(
        request: Request, exc: RateLimitExceededError
    ) -> JSONResponse:
        """Handle RateLimitExceededError and return HTTP 429 response."""
        body = exc.to_response()
        body["request_id"] = get_request_id(request)
        return JSONResponse(status_code=exc.status_code, content=body, headers=exc.headers)

    @app.exception_handler(AppException)
    async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
        """Handle remaining application errors with their status code."""
        logger.error(
            f"Unhandled application error: {exc.message}",
            extra=get_log_context(request_id=get_request_id(request)),
        )
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "error": exc.message},
        )

    return app


app = create_app()
