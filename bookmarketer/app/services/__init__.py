"""Services for the rate limiting service."""

from bookmarketer.app.services.ai_rate_limiter import (
    AIServiceRateLimiter,
    get_ai_service_limiter,
)

__all__ = [
    "AIServiceRateLimiter",
    "get_ai_service_limiter",
]
