import pytest
from pydantic import ValidationError

from bookmarketer.app.core.config import Settings


def test_defaults() -> None:
    settings = Settings(_env_file=None)
    assert settings.rate_limit_enabled is True
    assert settings.rate_limit_backend == "memory"
    assert settings.rate_limit_fail_closed is False
    assert settings.ai_service_window_seconds == 60
    assert settings.ai_service_max_requests == 60


def test_backend_from_env(monkeypatch) -> None:
    monkeypatch.setenv("RATE_LIMIT_BACKEND", "Redis")
    monkeypatch.setenv("REDIS_URL", "redis://cache:6379/1")

    settings = Settings(_env_file=None)
    assert settings.rate_limit_backend == "redis"
    assert settings.redis_url == "redis://cache:6379/1"


def test_unknown_backend_rejected() -> None:
    with pytest.raises(ValidationError):
        Settings(_env_file=None, rate_limit_backend="memcached")


def test_upstash_requires_credentials(monkeypatch) -> None:
    monkeypatch.setenv("RATE_LIMIT_BACKEND", "upstash")
    monkeypatch.setenv("UPSTASH_REDIS_REST_URL", "https://example.upstash.io")
    monkeypatch.delenv("UPSTASH_REDIS_REST_TOKEN", raising=False)

    with pytest.raises(ValidationError, match="UPSTASH_REDIS_REST_TOKEN"):
        Settings(_env_file=None)

    monkeypatch.setenv("UPSTASH_REDIS_REST_TOKEN", "token")
    assert Settings(_env_file=None).rate_limit_backend == "upstash"


@pytest.mark.parametrize(
    "field", ["ai_service_window_seconds", "ai_service_max_requests"]
)
def test_ai_service_limits_positive(field: str) -> None:
    with pytest.raises(ValidationError):
        Settings(_env_file=None, **{field: 0})


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ('["http://localhost:3000"]', ["http://localhost:3000"]),
        ("https://a.example, https://b.example", ["https://a.example", "https://b.example"]),
        ("*", ["*"]),
        ("[]", []),
        ("", []),
    ],
)
def test_cors_origins_parsing_variants(monkeypatch, raw: str, expected: list[str]) -> None:
    monkeypatch.setenv("CORS_ORIGINS", raw)

    settings = Settings(_env_file=None)
    assert settings.cors_origins == expected
