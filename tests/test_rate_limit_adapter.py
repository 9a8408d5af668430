"""Tests for the throw-or-continue rate limit adapter."""

import pytest

from bookmarketer.app.exceptions import RateLimitExceededError
from bookmarketer.app.middleware.rate_limit import (
    RateLimiter,
    RateLimitPolicy,
    RateLimitResult,
    create_rate_limit_middleware,
    rate_limit_headers,
)
from bookmarketer.app.middleware.rate_limit.adapter import format_reset


@pytest.fixture
def limiter(store, clock):
    policy = RateLimitPolicy(name="upload", window_ms=60 * 60 * 1000, max_requests=2)
    return RateLimiter(policy, store, clock=clock)


def test_format_reset():
    assert format_reset(0) == "1970-01-01T00:00:00.000Z"
    assert format_reset(1_760_875_200_123) == "2025-10-19T12:00:00.123Z"


def test_rate_limit_headers():
    result = RateLimitResult(allowed=True, limit=100, remaining=42, reset_time=0)
    assert rate_limit_headers(result) == {
        "X-RateLimit-Limit": "100",
        "X-RateLimit-Remaining": "42",
        "X-RateLimit-Reset": "1970-01-01T00:00:00.000Z",
    }


@pytest.mark.asyncio
async def test_returns_headers_when_allowed(limiter, clock, make_request):
    check = create_rate_limit_middleware(limiter)

    headers = await check(make_request(), "abc")

    assert headers["X-RateLimit-Limit"] == "2"
    assert headers["X-RateLimit-Remaining"] == "1"
    assert headers["X-RateLimit-Reset"] == format_reset(clock() + 60 * 60 * 1000)
    assert "Retry-After" not in headers


@pytest.mark.asyncio
async def test_raises_429_when_exceeded(limiter, make_request):
    check = create_rate_limit_middleware(limiter)
    await check(make_request(), "abc")
    await check(make_request(), "abc")

    with pytest.raises(RateLimitExceededError) as exc_info:
        await check(make_request(), "abc")

    error = exc_info.value
    assert error.status_code == 429
    assert error.policy == "upload"
    assert error.retry_after == 3600
    assert error.headers["Retry-After"] == "3600"
    assert error.headers["X-RateLimit-Remaining"] == "0"
    assert error.headers["X-RateLimit-Limit"] == "2"
    assert "X-RateLimit-Reset" in error.headers


@pytest.mark.asyncio
async def test_retry_after_defaults_to_60(make_request):
    class DenyingLimiter:
        policy = RateLimitPolicy(name="api", window_ms=1000, max_requests=1)

        async def check_limit(self, request, identity=None):
            return RateLimitResult(allowed=False, limit=1, remaining=0, reset_time=0)

    check = create_rate_limit_middleware(DenyingLimiter())
    with pytest.raises(RateLimitExceededError) as exc_info:
        await check(make_request())
    assert exc_info.value.headers["Retry-After"] == "60"


def test_error_response_body():
    error = RateLimitExceededError(
        limit=5,
        reset_time=0,
        retry_after=30,
        headers={"X-RateLimit-Reset": "1970-01-01T00:00:00.000Z"},
        policy="auth",
    )
    body = error.to_response()
    assert body["success"] is False
    assert body["code"] == "RATE_LIMIT_EXCEEDED"
    assert body["error"] == "Rate limit exceeded"
    assert body["details"] == {
        "policy": "auth",
        "limit": 5,
        "reset_time": "1970-01-01T00:00:00.000Z",
        "retry_after": 30,
    }
    assert body["suggestions"]
