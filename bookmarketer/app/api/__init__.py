"""API routers for the rate limiting service."""

from bookmarketer.app.api.rate_limits import router as rate_limits_router

__all__ = ["rate_limits_router"]
