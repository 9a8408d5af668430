"""Tests for the named policy registry."""

import pytest

from bookmarketer.app.middleware.rate_limit import (
    RATE_LIMIT_POLICIES,
    FailureMode,
    KeyStrategy,
    build_rate_limiters,
    get_policy,
)


@pytest.mark.parametrize(
    ("name", "window_ms", "max_requests"),
    [
        ("api", 15 * 60 * 1000, 100),
        ("upload", 60 * 60 * 1000, 10),
        ("ai_analysis", 60 * 60 * 1000, 20),
        ("content_generation", 60 * 60 * 1000, 50),
        ("publishing", 60 * 60 * 1000, 30),
        ("auth", 15 * 60 * 1000, 5),
    ],
)
def test_policy_table(name, window_ms, max_requests):
    policy = get_policy(name)
    assert policy.window_ms == window_ms
    assert policy.max_requests == max_requests


def test_only_auth_is_keyed_by_ip():
    strategies = {name: p.key_strategy for name, p in RATE_LIMIT_POLICIES.items()}
    assert strategies.pop("auth") is KeyStrategy.BY_IP
    assert set(strategies.values()) == {KeyStrategy.BY_USER}
    assert get_policy("auth").key_prefix == "auth"


def test_registry_is_read_only():
    with pytest.raises(TypeError):
        RATE_LIMIT_POLICIES["api"] = get_policy("upload")


def test_unknown_policy():
    with pytest.raises(KeyError):
        get_policy("nope")


def test_build_rate_limiters_one_per_policy(store):
    limiters = build_rate_limiters(store, failure_mode=FailureMode.CLOSED)

    assert set(limiters) == set(RATE_LIMIT_POLICIES)
    assert len({id(limiter) for limiter in limiters.values()}) == len(limiters)
    for name, limiter in limiters.items():
        assert limiter.policy is RATE_LIMIT_POLICIES[name]
        assert limiter.failure_mode is FailureMode.CLOSED


@pytest.mark.asyncio
async def test_auth_shared_by_users_behind_one_address(store, clock, make_request):
    """Two users on the same IP exhaust one shared auth quota of 5."""
    limiters = build_rate_limiters(store, clock=clock)
    request = make_request({"X-Forwarded-For": "203.0.113.7"})

    for identity in ("alice", "bob", "alice", "bob", "alice"):
        result = await limiters["auth"].check_limit(request, identity)
        assert result.allowed is True

    result = await limiters["auth"].check_limit(request, "bob")
    assert result.allowed is False
    assert 0 < result.retry_after <= 15 * 60

    other_address = make_request({"X-Forwarded-For": "203.0.113.8"})
    assert (await limiters["auth"].check_limit(other_address, "bob")).allowed is True


@pytest.mark.asyncio
async def test_hourly_policies_keep_separate_counters(store, clock):
    """upload/ai_analysis/content_generation/publishing share a window length."""
    limiters = build_rate_limiters(store, clock=clock)

    for _ in range(10):
        await limiters["upload"].check_limit(identity="abc")
    assert (await limiters["upload"].check_limit(identity="abc")).allowed is False

    result = await limiters["ai_analysis"].check_limit(identity="abc")
    assert result.allowed is True
    assert result.remaining == 19
    result = await limiters["publishing"].check_limit(identity="abc")
    assert result.remaining == 29
