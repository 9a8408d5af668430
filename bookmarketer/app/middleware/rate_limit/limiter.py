"""Fixed-window rate limiter over a shared counter store.

Time is cut into windows of ``window_ms``. Each policy + caller pair owns
one counter per window under ``rate_limit:<policy>:<key>:<window_index>``;
counters from earlier windows are unreachable and expire on their own.
"""

import time
from typing import Any, Callable, Mapping, Optional

from bookmarketer.app.core.counter_store import CounterStore
from bookmarketer.app.core.logging import get_log_context, get_logger
from bookmarketer.app.exceptions import StoreUnavailableError
from bookmarketer.app.middleware.rate_limit.models import (
    FailureMode,
    KeyStrategy,
    RateLimitPolicy,
    RateLimitResult,
)

logger = get_logger(__name__)

KEY_PREFIX = "rate_limit"


def _now_ms() -> int:
    return int(time.time() * 1000)


def get_client_ip(request: Any) -> str:
    """Return the caller address from proxy headers, or ``"unknown"``.

    Only ``x-forwarded-for`` (first hop) and ``x-real-ip`` are consulted;
    the socket peer of a proxied deployment is the proxy itself.
    """
    headers: Mapping[str, str] = getattr(request, "headers", None) or {}
    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        client_ip = forwarded.split(",")[0].strip()
        if client_ip:
            return client_ip
    return headers.get("x-real-ip") or "unknown"


class RateLimiter:
    """Fixed-window limiter for a single policy.

    Holds no mutable state of its own: all counters live in the store,
    which is the only synchronisation point between concurrent requests
    and between service instances.
    """

    def __init__(
        self,
        policy: RateLimitPolicy,
        store: CounterStore,
        failure_mode: FailureMode = FailureMode.OPEN,
        clock: Optional[Callable[[], int]] = None,
    ):
        """Initialize the limiter.

        Args:
            policy: Window and quota to enforce
            store: Shared counter store
            failure_mode: Decision to return when the store fails
            clock: Milliseconds-since-epoch source (defaults to wall clock)
        """
        self.policy = policy
        self.store = store
        self.failure_mode = failure_mode
        self._clock = clock or _now_ms

    def generate_key(self, request: Any = None, identity: Optional[str] = None) -> str:
        """Derive the caller key according to the policy's key strategy."""
        strategy = self.policy.key_strategy
        if strategy is KeyStrategy.CUSTOM:
            return self.policy.key_prefix
        if strategy is KeyStrategy.BY_IP:
            return f"{self.policy.key_prefix or 'ip'}:{get_client_ip(request)}"
        if identity:
            return f"user:{identity}"
        return f"ip:{get_client_ip(request)}"

    def store_key(self, key: str, window_index: int) -> str:
        return f"{KEY_PREFIX}:{self.policy.name}:{key}:{window_index}"

    async def check_limit(
        self, request: Any = None, identity: Optional[str] = None
    ) -> RateLimitResult:
        """Count this request against the caller's quota.

        Args:
            request: Inbound request exposing ``headers`` (may be None)
            identity: Authenticated user id, if any

        Returns:
            RateLimitResult; never raises, store failures resolve through
            the configured failure mode.
        """
        policy = self.policy
        key = self.generate_key(request, identity)
        now = self._clock()
        window_index = now // policy.window_ms
        reset_time = (window_index + 1) * policy.window_ms
        redis_key = self.store_key(key, window_index)

        try:
            current = await self.store.get(redis_key) or 0

            if current >= policy.max_requests:
                retry_after = -(-(reset_time - now) // 1000)
                logger.info(
                    "Rate limit exceeded",
                    extra=get_log_context(
                        policy=policy.name, rate_limit_key=key, retry_after=retry_after
                    ),
                )
                return RateLimitResult(
                    allowed=False,
                    limit=policy.max_requests,
                    remaining=0,
                    reset_time=reset_time,
                    retry_after=retry_after,
                )

            new_count = await self.store.incr(redis_key)

            # First hit in this window owns the expiry
            if new_count == 1:
                await self.store.expire(redis_key, policy.window_seconds)

            return RateLimitResult(
                allowed=True,
                limit=policy.max_requests,
                remaining=max(0, policy.max_requests - new_count),
                reset_time=reset_time,
            )

        except StoreUnavailableError as e:
            logger.error(
                f"Rate limit store error: {e}",
                extra=get_log_context(policy=policy.name, rate_limit_key=key),
            )
            return self._handle_store_failure(now)
        except Exception as e:
            logger.exception(
                f"Unexpected rate limit error: {e}",
                extra=get_log_context(policy=policy.name, rate_limit_key=key),
            )
            return self._handle_store_failure(now)

    def _handle_store_failure(self, now: int) -> RateLimitResult:
        """Resolve a store failure according to the failure mode."""
        policy = self.policy
        if self.failure_mode is FailureMode.CLOSED:
            logger.warning(
                f"Rate limiting fail-closed triggered for policy {policy.name}. "
                "Request denied."
            )
            return RateLimitResult(
                allowed=False,
                limit=policy.max_requests,
                remaining=0,
                reset_time=now + policy.window_ms,
                retry_after=policy.window_seconds,
            )

        logger.warning(
            f"Rate limiting fail-open triggered for policy {policy.name}. "
            "Request allowed without rate limit check."
        )
        return RateLimitResult(
            allowed=True,
            limit=policy.max_requests,
            remaining=policy.max_requests,
            reset_time=now + policy.window_ms,
        )
