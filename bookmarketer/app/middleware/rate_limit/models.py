"""Rate limiting data models.

This module contains the policy definition and the per-check result.
Policies are plain data so they can be listed over the API and logged.
"""

import enum
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional


class KeyStrategy(str, enum.Enum):
    """How a policy partitions its quota between callers."""

    BY_USER = "user"    # user:<identity>, falling back to ip:<address>
    BY_IP = "ip"        # <key_prefix or "ip">:<address>, identity ignored
    CUSTOM = "custom"   # the fixed key_prefix, one counter for everyone


class FailureMode(str, enum.Enum):
    """What the limiter answers when the counter store is unavailable."""

    OPEN = "open"
    CLOSED = "closed"


@dataclass(frozen=True)
class RateLimitPolicy:
    """Immutable fixed-window policy.

    Attributes:
        name: Registry name, also the counter namespace
        window_ms: Window length in milliseconds
        max_requests: Requests allowed per window
        key_strategy: How the counter key is derived from the request
        key_prefix: Prefix for BY_IP keys, or the whole key for CUSTOM
        skip_successful_requests: Declared for parity with client config; not enforced
        skip_failed_requests: Declared for parity with client config; not enforced
    """

    name: str
    window_ms: int
    max_requests: int
    key_strategy: KeyStrategy = KeyStrategy.BY_USER
    key_prefix: Optional[str] = None
    skip_successful_requests: bool = False
    skip_failed_requests: bool = False

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Policy name must not be empty")
        if self.window_ms < 1:
            raise ValueError("window_ms must be a positive integer")
        if self.max_requests < 1:
            raise ValueError("max_requests must be a positive integer")
        if self.key_strategy is KeyStrategy.CUSTOM and not self.key_prefix:
            raise ValueError("CUSTOM key strategy requires a key_prefix")

    @property
    def window_seconds(self) -> int:
        """Window length rounded up to whole seconds (store TTL unit)."""
        return -(-self.window_ms // 1000)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["key_strategy"] = self.key_strategy.value
        return data


@dataclass
class RateLimitResult:
    """Result of a rate limit check.

    ``reset_time`` is the epoch millisecond at which the current window
    ends; ``retry_after`` (seconds) is only set on denials.
    """
    allowed: bool
    limit: int
    remaining: int
    reset_time: int
    retry_after: Optional[int] = None

    @property
    def reset_at(self) -> datetime:
        return datetime.fromtimestamp(self.reset_time / 1000, tz=timezone.utc)
