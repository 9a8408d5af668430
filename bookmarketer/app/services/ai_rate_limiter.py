"""Process-wide throttle for outbound calls to the AI provider.

Unlike the inbound policies, this budget is shared by every user: it caps
how fast this process calls the provider no matter who triggered the call.
One instance is built in the application lifespan and injected where
outbound calls are made.
"""

import asyncio
from typing import Awaitable, Callable, Optional

from fastapi import Request

from bookmarketer.app.core.counter_store import CounterStore
from bookmarketer.app.core.logging import get_logger
from bookmarketer.app.exceptions import AIServiceRateLimitError
from bookmarketer.app.middleware.rate_limit.adapter import rate_limit_headers
from bookmarketer.app.middleware.rate_limit.limiter import RateLimiter
from bookmarketer.app.middleware.rate_limit.models import (
    FailureMode,
    KeyStrategy,
    RateLimitPolicy,
)

logger = get_logger(__name__)


class AIServiceRateLimiter:
    """Global fixed-window budget for outbound AI provider calls.

    Example:
        >>> limiter = AIServiceRateLimiter(store)
        >>> await limiter.acquire()  # raises AIServiceRateLimitError when spent
    """

    POLICY_NAME = "ai_service"

    def __init__(
        self,
        store: CounterStore,
        window_ms: int = 60 * 1000,
        max_requests: int = 60,
        failure_mode: FailureMode = FailureMode.OPEN,
        clock: Optional[Callable[[], int]] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.policy = RateLimitPolicy(
            name=self.POLICY_NAME,
            window_ms=window_ms,
            max_requests=max_requests,
            key_strategy=KeyStrategy.CUSTOM,
            key_prefix="global",
        )
        self._limiter = RateLimiter(
            self.policy, store, failure_mode=failure_mode, clock=clock
        )
        self._sleep = sleep

    async def acquire(self) -> None:
        """Take one outbound call slot.

        Raises:
            AIServiceRateLimitError: When the window's budget is spent;
                ``retry_after`` says how long to wait.
        """
        result = await self._limiter.check_limit()
        if not result.allowed:
            raise AIServiceRateLimitError(
                limit=result.limit,
                reset_time=result.reset_time,
                retry_after=result.retry_after,
                headers=rate_limit_headers(result),
            )

    async def acquire_with_wait(self, max_wait_seconds: float) -> None:
        """Take a slot, sleeping until the next window when the budget is spent.

        Args:
            max_wait_seconds: Total time the caller is willing to wait

        Raises:
            AIServiceRateLimitError: If no slot frees up within the budget.
        """
        waited = 0.0
        while True:
            try:
                await self.acquire()
                return
            except AIServiceRateLimitError as e:
                delay = float(e.retry_after or 1)
                if waited + delay > max_wait_seconds:
                    raise
                logger.info(
                    f"AI service budget spent, waiting {delay:.0f}s before retrying"
                )
                await self._sleep(delay)
                waited += delay


def get_ai_service_limiter(request: Request) -> AIServiceRateLimiter:
    """FastAPI dependency returning the limiter built at startup."""
    return request.app.state.ai_service_limiter
