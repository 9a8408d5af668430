"""Counter store abstraction for fixed-window rate limiting.

Provides a pluggable store with in-memory, Redis and Upstash REST
implementations. Every store offers the three primitives the rate limiter
needs: read a counter, atomically increment it, and set its expiry.
"""

from abc import ABC, abstractmethod
from collections import OrderedDict
from dataclasses import dataclass
import asyncio
import time
from typing import Any, Callable, Optional

import httpx
import redis.asyncio as aioredis
from redis.exceptions import RedisError

from bookmarketer.app.core.config import Settings
from bookmarketer.app.core.http_client import create_http_client
from bookmarketer.app.core.logging import get_logger
from bookmarketer.app.exceptions import ConfigurationError, StoreUnavailableError

logger = get_logger(__name__)


@dataclass
class _CounterEntry:
    """Internal counter entry with TTL tracking."""

    value: int
    expires_at: float | None = None

    def is_expired(self, now: float) -> bool:
        if self.expires_at is None:
            return False
        return now >= self.expires_at


class CounterStore(ABC):
    """Abstract base class for counter stores.

    Implementations must make ``incr`` atomic with respect to concurrent
    callers, including callers in other processes when the store is shared.
    Failures of the backing service are raised as StoreUnavailableError.
    """

    @abstractmethod
    async def get(self, key: str) -> int | None:
        """Return the current counter value, or None if absent or expired."""

    @abstractmethod
    async def incr(self, key: str) -> int:
        """Atomically increment the counter, creating it at 1 if absent.

        Returns:
            The counter value after the increment.
        """

    @abstractmethod
    async def expire(self, key: str, seconds: int) -> None:
        """Set the counter to expire ``seconds`` from now."""

    async def ping(self) -> bool:
        """Check that the store is reachable."""
        return True

    async def close(self) -> None:
        """Release client resources."""


class InMemoryCounterStore(CounterStore):
    """In-memory counter store with TTL support.

    This is the default store. It is not shared between processes, so it
    only suits single-instance deployments, local development and tests.

    Memory bound:
    - Each window writes a fresh key, so past windows are never read again
    - Once max_entries is reached, expired counters are swept on insert
    - If that is not enough, the oldest 20% of counters are evicted
    """

    DEFAULT_MAX_ENTRIES = 10000

    def __init__(
        self,
        clock: Optional[Callable[[], float]] = None,
        max_entries: int = DEFAULT_MAX_ENTRIES,
    ) -> None:
        """Initialize the in-memory store.

        Args:
            clock: Seconds-since-epoch source, defaults to time.time
            max_entries: Maximum number of counters kept in memory
        """
        self._data: OrderedDict[str, _CounterEntry] = OrderedDict()
        self._max_entries = max_entries
        self._lock = asyncio.Lock()
        self._clock = clock or time.time

    def _live_entry(self, key: str) -> _CounterEntry | None:
        entry = self._data.get(key)
        if entry is not None and entry.is_expired(self._clock()):
            del self._data[key]
            return None
        return entry

    def _remove_expired(self) -> int:
        now = self._clock()
        expired_keys = [
            key for key, entry in self._data.items() if entry.is_expired(now)
        ]
        for key in expired_keys:
            del self._data[key]
        return len(expired_keys)

    def _enforce_limit(self) -> None:
        """Make room for one new counter."""
        if len(self._data) < self._max_entries:
            return
        self._remove_expired()
        if len(self._data) >= self._max_entries:
            # Oldest counters belong to the oldest windows
            remove_count = max(1, int(self._max_entries * 0.2))
            for _ in range(remove_count):
                self._data.popitem(last=False)
            logger.warning(
                f"In-memory counter store full, evicted {remove_count} counters"
            )

    async def get(self, key: str) -> int | None:
        async with self._lock:
            entry = self._live_entry(key)
            return entry.value if entry is not None else None

    async def incr(self, key: str) -> int:
        async with self._lock:
            entry = self._live_entry(key)
            if entry is None:
                self._enforce_limit()
                entry = _CounterEntry(value=0)
                self._data[key] = entry
            entry.value += 1
            return entry.value

    async def expire(self, key: str, seconds: int) -> None:
        async with self._lock:
            entry = self._live_entry(key)
            if entry is not None:
                entry.expires_at = self._clock() + seconds

    async def cleanup_expired(self) -> int:
        """Remove all expired counters.

        Returns:
            Number of entries removed.
        """
        async with self._lock:
            return self._remove_expired()

    async def clear(self) -> None:
        async with self._lock:
            self._data.clear()


class RedisCounterStore(CounterStore):
    """Redis-based counter store shared by every service instance.

    Example:
        >>> store = RedisCounterStore("redis://localhost:6379/0")
        >>> await store.incr("rate_limit:api:user:abc:1917")
    """

    def __init__(
        self,
        redis_url: Optional[str] = None,
        redis_client: Optional[Any] = None,
        timeout: float = 2.0,
    ) -> None:
        """Initialize the Redis store.

        Args:
            redis_url: Redis connection URL (e.g., "redis://localhost:6379/0")
            redis_client: Optional pre-built client (used by tests)
            timeout: Socket timeout in seconds
        """
        if redis_client is None and not redis_url:
            raise ConfigurationError("Redis counter store requires a redis_url")
        self._redis_url = redis_url
        self._redis = redis_client
        self._timeout = timeout

    def _get_client(self) -> Any:
        if self._redis is None:
            self._redis = aioredis.from_url(
                self._redis_url,
                socket_timeout=self._timeout,
                socket_connect_timeout=self._timeout,
            )
        return self._redis

    async def get(self, key: str) -> int | None:
        try:
            value = await self._get_client().get(key)
        except RedisError as e:
            raise StoreUnavailableError("get", str(e)) from e
        return int(value) if value is not None else None

    async def incr(self, key: str) -> int:
        try:
            return int(await self._get_client().incr(key))
        except RedisError as e:
            raise StoreUnavailableError("incr", str(e)) from e

    async def expire(self, key: str, seconds: int) -> None:
        try:
            await self._get_client().expire(key, seconds)
        except RedisError as e:
            raise StoreUnavailableError("expire", str(e)) from e

    async def ping(self) -> bool:
        try:
            return bool(await self._get_client().ping())
        except RedisError:
            return False

    async def close(self) -> None:
        """Close the Redis connection."""
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None


class UpstashRestCounterStore(CounterStore):
    """Counter store speaking the Upstash Redis REST protocol.

    Each command is POSTed as a JSON array (``["INCR", key]``) with a bearer
    token; the reply is ``{"result": ...}`` or ``{"error": "..."}``.
    """

    def __init__(
        self,
        url: str,
        token: str,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        if not url or not token:
            raise ConfigurationError(
                "Upstash counter store requires both a REST URL and a token"
            )
        self._client = create_http_client(
            base_url=url, token=token, timeout=timeout, transport=transport
        )

    async def _command(self, *args: Any) -> Any:
        operation = str(args[0]).lower()
        try:
            response = await self._client.post("/", json=[str(a) for a in args])
            payload = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise StoreUnavailableError(operation, str(e)) from e

        if response.status_code >= 400 or "error" in payload:
            raise StoreUnavailableError(
                operation, str(payload.get("error", response.status_code))
            )
        return payload.get("result")

    async def get(self, key: str) -> int | None:
        value = await self._command("GET", key)
        return int(value) if value is not None else None

    async def incr(self, key: str) -> int:
        return int(await self._command("INCR", key))

    async def expire(self, key: str, seconds: int) -> None:
        await self._command("EXPIRE", key, seconds)

    async def ping(self) -> bool:
        try:
            return await self._command("PING") == "PONG"
        except StoreUnavailableError:
            return False

    async def close(self) -> None:
        await self._client.aclose()


def create_counter_store(config: Settings) -> CounterStore:
    """Build the counter store selected by ``rate_limit_backend``.

    Args:
        config: Application settings

    Returns:
        A CounterStore owned by the caller, who must close() it.

    Raises:
        ConfigurationError: If the selected backend lacks its credentials.
    """
    backend = config.rate_limit_backend
    if backend == "redis":
        logger.info("Using Redis counter store")
        return RedisCounterStore(config.redis_url, timeout=config.store_timeout_seconds)
    if backend == "upstash":
        logger.info("Using Upstash REST counter store")
        return UpstashRestCounterStore(
            config.upstash_redis_rest_url,
            config.upstash_redis_rest_token,
            timeout=config.store_timeout_seconds,
        )
    if backend == "memory":
        logger.info("Using in-memory counter store")
        return InMemoryCounterStore()
    raise ConfigurationError(f"Unknown rate limit backend: {backend}")
