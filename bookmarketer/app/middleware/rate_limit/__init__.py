"""Rate limiting for the book-marketing API.

Fixed-window counters over a shared store, one named policy per endpoint
class, and an adapter that turns decisions into headers or 429 errors.
"""

# Re-export models
from bookmarketer.app.middleware.rate_limit.models import (
    FailureMode,
    KeyStrategy,
    RateLimitPolicy,
    RateLimitResult,
)

# Re-export limiter and registry
from bookmarketer.app.middleware.rate_limit.limiter import RateLimiter, get_client_ip
from bookmarketer.app.middleware.rate_limit.policies import (
    RATE_LIMIT_POLICIES,
    build_rate_limiters,
    get_policy,
)

# Re-export adapter
from bookmarketer.app.middleware.rate_limit.adapter import (
    create_rate_limit_middleware,
    rate_limit_headers,
    require_rate_limit,
)

__all__ = [
    # Models
    "FailureMode",
    "KeyStrategy",
    "RateLimitPolicy",
    "RateLimitResult",
    # Limiter
    "RateLimiter",
    "get_client_ip",
    # Registry
    "RATE_LIMIT_POLICIES",
    "build_rate_limiters",
    "get_policy",
    # Adapter
    "create_rate_limit_middleware",
    "rate_limit_headers",
    "require_rate_limit",
]
