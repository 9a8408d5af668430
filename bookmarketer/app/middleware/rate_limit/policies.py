"""Named rate limit policies for the product's endpoint classes."""

from types import MappingProxyType
from typing import Callable, Dict, Mapping, Optional

from bookmarketer.app.core.counter_store import CounterStore
from bookmarketer.app.middleware.rate_limit.limiter import RateLimiter
from bookmarketer.app.middleware.rate_limit.models import (
    FailureMode,
    KeyStrategy,
    RateLimitPolicy,
)

MINUTE_MS = 60 * 1000
HOUR_MS = 60 * MINUTE_MS


RATE_LIMIT_POLICIES: Mapping[str, RateLimitPolicy] = MappingProxyType({
    policy.name: policy
    for policy in (
        # General API traffic
        RateLimitPolicy(name="api", window_ms=15 * MINUTE_MS, max_requests=100),
        # Book file uploads
        RateLimitPolicy(name="upload", window_ms=HOUR_MS, max_requests=10),
        # AI book analysis
        RateLimitPolicy(name="ai_analysis", window_ms=HOUR_MS, max_requests=20),
        # Social content generation
        RateLimitPolicy(name="content_generation", window_ms=HOUR_MS, max_requests=50),
        # Publishing to social platforms
        RateLimitPolicy(name="publishing", window_ms=HOUR_MS, max_requests=30),
        # Sign-in attempts: per address, whoever claims to be signing in
        RateLimitPolicy(
            name="auth",
            window_ms=15 * MINUTE_MS,
            max_requests=5,
            key_strategy=KeyStrategy.BY_IP,
            key_prefix="auth",
        ),
    )
})


def get_policy(name: str) -> RateLimitPolicy:
    """Look up a policy by name.

    Raises:
        KeyError: If no policy has that name.
    """
    try:
        return RATE_LIMIT_POLICIES[name]
    except KeyError:
        raise KeyError(f"Unknown rate limit policy: {name}") from None


def build_rate_limiters(
    store: CounterStore,
    failure_mode: FailureMode = FailureMode.OPEN,
    clock: Optional[Callable[[], int]] = None,
) -> Dict[str, RateLimiter]:
    """Create one independent limiter per registered policy."""
    return {
        name: RateLimiter(policy, store, failure_mode=failure_mode, clock=clock)
        for name, policy in RATE_LIMIT_POLICIES.items()
    }
