"""Middleware package for the rate limiting service."""

from bookmarketer.app.middleware.rate_limit import require_rate_limit
from bookmarketer.app.middleware.request_id import RequestIdMiddleware, get_request_id

__all__ = [
    "require_rate_limit",
    "RequestIdMiddleware",
    "get_request_id",
]
