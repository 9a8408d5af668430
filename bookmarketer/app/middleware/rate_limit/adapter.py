"""Throw-or-continue adapter between rate limiters and request handlers.

A handler asks the adapter before doing protected work. On success it gets
the X-RateLimit-* headers to merge into its response; over quota it gets a
RateLimitExceededError carrying status 429 and the same headers plus
Retry-After.
"""

from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Optional

from fastapi import Depends, Request, Response

from bookmarketer.app.core.config import Settings, settings
from bookmarketer.app.exceptions import RateLimitExceededError
from bookmarketer.app.middleware.rate_limit.limiter import RateLimiter
from bookmarketer.app.middleware.rate_limit.models import RateLimitResult

RateLimitCheck = Callable[..., Awaitable[Dict[str, str]]]


def format_reset(reset_time_ms: int) -> str:
    """Format an epoch-ms instant as ISO-8601 UTC, e.g. 2026-10-19T12:00:00.000Z."""
    moment = datetime.fromtimestamp(reset_time_ms / 1000, tz=timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def rate_limit_headers(result: RateLimitResult) -> Dict[str, str]:
    """Informational headers for a rate limit decision."""
    return {
        "X-RateLimit-Limit": str(result.limit),
        "X-RateLimit-Remaining": str(result.remaining),
        "X-RateLimit-Reset": format_reset(result.reset_time),
    }


def create_rate_limit_middleware(limiter: RateLimiter) -> RateLimitCheck:
    """Wrap a limiter into a check that returns headers or raises.

    Args:
        limiter: Limiter for the policy guarding the handler

    Returns:
        Async callable ``(request, identity=None) -> headers``
    """

    async def check(request: Any, identity: Optional[str] = None) -> Dict[str, str]:
        result = await limiter.check_limit(request, identity)
        headers = rate_limit_headers(result)

        if not result.allowed:
            headers["Retry-After"] = str(result.retry_after or 60)
            raise RateLimitExceededError(
                limit=result.limit,
                reset_time=result.reset_time,
                retry_after=result.retry_after,
                headers=headers,
                policy=limiter.policy.name,
            )

        return headers

    return check


def get_settings(request: Request) -> Settings:
    """Settings the running app was built with, else the environment's."""
    return getattr(request.app.state, "settings", settings)


def get_identity(request: Request) -> Optional[str]:
    """Authenticated user id forwarded by the auth proxy, if any."""
    header = get_settings(request).rate_limit_identity_header
    identity = request.headers.get(header, "").strip()
    return identity or None


def get_rate_limiter(request: Request, policy_name: str) -> RateLimiter:
    """Resolve a named limiter from the application state.

    Raises:
        KeyError: If no limiter is registered under that name.
    """
    limiters: Dict[str, RateLimiter] = request.app.state.rate_limiters
    try:
        return limiters[policy_name]
    except KeyError:
        raise KeyError(f"Unknown rate limit policy: {policy_name}") from None


def require_rate_limit(policy_name: str) -> Any:
    """FastAPI dependency enforcing a named policy on a route.

    Usage:
        @router.post("/books/upload", dependencies=[require_rate_limit("upload")])
        async def upload_book(...): ...

    Exceeding the quota raises RateLimitExceededError, which the app's
    exception handler turns into a 429 JSON response.
    """

    async def dependency(request: Request, response: Response) -> None:
        if not get_settings(request).rate_limit_enabled:
            return
        check = create_rate_limit_middleware(get_rate_limiter(request, policy_name))
        headers = await check(request, get_identity(request))
        response.headers.update(headers)

    return Depends(dependency)
