"""Rate limit endpoints.

Product services that cannot embed the limiter call these endpoints
instead: one to consume a unit of a named policy for the caller, one to
take an outbound AI provider slot.
"""

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request, Response

from bookmarketer.app.middleware.rate_limit import (
    RATE_LIMIT_POLICIES,
    create_rate_limit_middleware,
    require_rate_limit,
)
from bookmarketer.app.middleware.rate_limit.adapter import (
    get_identity,
    get_rate_limiter,
    get_settings,
)
from bookmarketer.app.services.ai_rate_limiter import (
    AIServiceRateLimiter,
    get_ai_service_limiter,
)

router = APIRouter(prefix="/api", tags=["rate-limits"])


@router.get("/rate-limits", dependencies=[require_rate_limit("api")])
async def list_policies() -> dict[str, Any]:
    """List the named policies and their windows."""
    return {"policies": [policy.to_dict() for policy in RATE_LIMIT_POLICIES.values()]}


@router.post("/rate-limits/{policy_name}/check")
async def check_policy(
    policy_name: str, request: Request, response: Response
) -> dict[str, Any]:
    """Count one request against ``policy_name`` for the calling user or address."""
    try:
        limiter = get_rate_limiter(request, policy_name)
    except KeyError:
        raise HTTPException(
            status_code=404, detail=f"Unknown rate limit policy: {policy_name}"
        )

    check = create_rate_limit_middleware(limiter)
    headers = await check(request, get_identity(request))
    response.headers.update(headers)

    return {
        "allowed": True,
        "policy": policy_name,
        "limit": int(headers["X-RateLimit-Limit"]),
        "remaining": int(headers["X-RateLimit-Remaining"]),
        "reset_time": headers["X-RateLimit-Reset"],
    }


@router.post("/ai-service/acquire")
async def acquire_ai_slot(
    request: Request,
    wait: bool = False,
    ai_limiter: AIServiceRateLimiter = Depends(get_ai_service_limiter),
) -> dict[str, Any]:
    """Take one slot of the process-wide AI provider budget.

    With ``wait=true`` the call blocks until the next window (up to
    ``ai_service_max_wait_seconds``) instead of failing straight away.
    """
    if wait:
        max_wait = get_settings(request).ai_service_max_wait_seconds
        await ai_limiter.acquire_with_wait(max_wait)
    else:
        await ai_limiter.acquire()
    return {"acquired": True, "limit": ai_limiter.policy.max_requests}
