"""Shared fixtures for rate limiting tests."""

import pytest

from bookmarketer.app.core.counter_store import CounterStore, InMemoryCounterStore
from bookmarketer.app.exceptions import StoreUnavailableError


class FakeClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, now_ms: int = 1_760_000_000_000):
        self.now_ms = now_ms

    def __call__(self) -> int:
        return self.now_ms

    def advance(self, ms: int) -> None:
        self.now_ms += ms


class FailingStore(CounterStore):
    """Store whose every call fails, as when the backing service is down."""

    def __init__(self, error: Exception | None = None):
        self.error = error or StoreUnavailableError("get", "connection refused")
        self.calls = 0

    async def get(self, key):
        self.calls += 1
        raise self.error

    async def incr(self, key):
        self.calls += 1
        raise self.error

    async def expire(self, key, seconds):
        self.calls += 1
        raise self.error

    async def ping(self):
        return False


class FakeRequest:
    """Minimal request: the limiter only reads headers."""

    def __init__(self, headers: dict | None = None):
        self.headers = {k.lower(): v for k, v in (headers or {}).items()}


@pytest.fixture
def clock():
    # Start exactly on a 1 h boundary so window arithmetic is easy to read
    return FakeClock(now_ms=480_000 * 3_600_000)


@pytest.fixture
def store():
    return InMemoryCounterStore()


@pytest.fixture
def failing_store():
    return FailingStore()


@pytest.fixture
def make_failing_store():
    """Factory for stores failing with a chosen error."""
    return FailingStore


@pytest.fixture
def make_request():
    """Factory for header-only requests."""
    return FakeRequest
