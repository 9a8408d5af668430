"""Core utilities for the rate limiting service."""

from bookmarketer.app.core.config import settings
from bookmarketer.app.core.counter_store import (
    CounterStore,
    InMemoryCounterStore,
    RedisCounterStore,
    UpstashRestCounterStore,
    create_counter_store,
)
from bookmarketer.app.core.logging import get_logger, setup_logging

__all__ = [
    "settings",
    "CounterStore",
    "InMemoryCounterStore",
    "RedisCounterStore",
    "UpstashRestCounterStore",
    "create_counter_store",
    "get_logger",
    "setup_logging",
]
