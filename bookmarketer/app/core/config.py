import json
import re
from typing import Annotated, Any

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


RATE_LIMIT_BACKENDS = ("memory", "redis", "upstash")


def _parse_cors_origins(raw: Any) -> list[str]:
    if raw is None:
        return []
    if isinstance(raw, list):
        return [str(v).strip() for v in raw if str(v).strip()]

    raw = str(raw).strip()
    if not raw or raw == "[]":
        return []
    if raw == "*":
        return ["*"]

    # JSON list is the documented format; a bare comma separated list is accepted too.
    if raw.startswith("["):
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError:
            parsed = None
        if isinstance(parsed, list):
            return [str(v).strip() for v in parsed if str(v).strip()]

    origins: list[str] = []
    for part in re.split(r"[,\s]+", raw):
        if not part:
            continue
        if part == "*":
            return ["*"]
        if part not in origins:
            origins.append(part)
    return origins


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings can be configured via environment variables or .env file.
    """

    # Debug mode - enables detailed error responses
    debug: bool = False

    # Logging settings
    log_level: str = "INFO"
    log_format: str = "text"  # text | structured | json

    # Rate limiting settings
    rate_limit_enabled: bool = True
    rate_limit_backend: str = "memory"  # memory | redis | upstash
    rate_limit_fail_closed: bool = (
        False  # If True, deny requests when the counter store is unavailable
    )
    # Header carrying the authenticated user id set by the auth proxy
    rate_limit_identity_header: str = "X-User-ID"

    # Redis settings (rate_limit_backend=redis)
    redis_url: str = "redis://localhost:6379/0"

    # Upstash REST settings (rate_limit_backend=upstash)
    upstash_redis_rest_url: str = ""
    upstash_redis_rest_token: str = ""

    # Per-call timeout for the counter store client
    store_timeout_seconds: float = 2.0

    # Outbound AI provider throttling (process-wide)
    ai_service_window_seconds: int = 60
    ai_service_max_requests: int = 60
    ai_service_max_wait_seconds: float = 120.0

    # CORS settings
    cors_origins: Annotated[list[str], NoDecode] = ["*"]

    @field_validator("cors_origins", mode="before")
    @classmethod
    def decode_cors_origins(cls, v: Any) -> list[str]:
        return _parse_cors_origins(v)

    @field_validator("rate_limit_backend")
    @classmethod
    def validate_rate_limit_backend(cls, v: str) -> str:
        """Validate the counter store backend name."""
        backend = v.strip().lower()
        if backend not in RATE_LIMIT_BACKENDS:
            raise ValueError(
                f"rate_limit_backend must be one of {', '.join(RATE_LIMIT_BACKENDS)}"
            )
        return backend

    @field_validator("ai_service_window_seconds", "ai_service_max_requests")
    @classmethod
    def validate_rate_limit_positive(cls, v: int) -> int:
        """Validate rate limit values are positive."""
        if v < 1:
            raise ValueError("Rate limit values must be at least 1")
        return v

    @field_validator("store_timeout_seconds")
    @classmethod
    def validate_timeout_positive(cls, v: float) -> float:
        """Validate timeout values are positive."""
        if v <= 0:
            raise ValueError("Timeout values must be positive")
        return v

    @field_validator("ai_service_max_wait_seconds")
    @classmethod
    def validate_max_wait(cls, v: float) -> float:
        if v < 0:
            raise ValueError("ai_service_max_wait_seconds must not be negative")
        return v

    @model_validator(mode="after")
    def validate_store_credentials(self) -> "Settings":
        """Missing store credentials are a startup error, not a per-request one."""
        if self.rate_limit_backend == "upstash" and not (
            self.upstash_redis_rest_url and self.upstash_redis_rest_token
        ):
            raise ValueError(
                "UPSTASH_REDIS_REST_URL and UPSTASH_REDIS_REST_TOKEN are required "
                "when RATE_LIMIT_BACKEND=upstash"
            )
        if self.rate_limit_backend == "redis" and not self.redis_url:
            raise ValueError("REDIS_URL is required when RATE_LIMIT_BACKEND=redis")
        return self

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


# Global settings instance
settings = Settings()
