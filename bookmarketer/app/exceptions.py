"""Custom exceptions for the rate limiting service."""

from typing import Any, Dict, Optional


class AppException(Exception):
    """Base class for application exceptions with HTTP status code.

    All custom exceptions should inherit from this class and define
    their specific status_code for consistent HTTP response handling.
    """
    status_code: int = 500

    def __init__(self, message: str = "Internal error"):
        self.message = message
        super().__init__(message)


class RateLimitExceededError(AppException):
    """Raised when a caller has used up the quota of a rate limit policy.

    Carries the informational X-RateLimit-* headers plus Retry-After so the
    HTTP layer can answer 429 Too Many Requests without recomputing them.
    """
    status_code = 429

    USER_MESSAGE = "Too many requests. Please wait before trying again."

    def __init__(
        self,
        limit: int,
        reset_time: int,
        retry_after: Optional[int] = None,
        headers: Optional[Dict[str, str]] = None,
        policy: Optional[str] = None,
        message: str = "Rate limit exceeded",
    ):
        self.limit = limit
        self.reset_time = reset_time
        self.retry_after = retry_after
        self.headers = dict(headers or {})
        self.policy = policy
        super().__init__(message)

    def to_response(self) -> Dict[str, Any]:
        """Convert to API error body."""
        return {
            "success": False,
            "error": self.message,
            "code": "RATE_LIMIT_EXCEEDED",
            "message": self.USER_MESSAGE,
            "details": {
                "policy": self.policy,
                "limit": self.limit,
                "reset_time": self.headers.get("X-RateLimit-Reset"),
                "retry_after": self.retry_after,
            },
            "suggestions": [
                "Wait before making more requests",
                "Consider upgrading your plan for higher limits",
                "Implement request batching in your application",
            ],
        }


class AIServiceRateLimitError(RateLimitExceededError):
    """Raised when this process has used up its outbound AI provider budget.

    Callers should delay or queue the outbound call rather than drop it.
    """

    def __init__(
        self,
        limit: int,
        reset_time: int,
        retry_after: Optional[int] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        headers = dict(headers or {})
        headers.setdefault("Retry-After", str(retry_after or 60))
        super().__init__(
            limit=limit,
            reset_time=reset_time,
            retry_after=retry_after,
            headers=headers,
            policy="ai_service",
            message="AI service rate limit exceeded",
        )


class StoreUnavailableError(AppException):
    """Raised by counter stores when the backing service fails.

    Never surfaced to end users: the rate limiter absorbs it and applies
    its failure mode.
    """
    status_code = 503

    def __init__(self, operation: str, detail: str = ""):
        self.operation = operation
        message = f"Counter store {operation} failed"
        if detail:
            message += f": {detail}"
        super().__init__(message)


class ConfigurationError(AppException):
    """Raised at startup when the service is misconfigured."""
    status_code = 500
