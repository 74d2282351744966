"""
Rate Limiting for the TrainCRM API
==================================
slowapi limiter keyed on the authenticated user, falling back to client IP.

Storage is in-process unless RATE_LIMIT_STORAGE_URI points at Redis
(required when running more than one worker).

Special endpoints have their own limits:
- /auth/login: 5 req/min (brute force protection)
- /auth/register: 3 req/min
- /crm/campaigns/{id}/send: 5 req/min (outbound email)
- /certificates/verify/{code}: 30 req/min (public lookup)
"""

from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from fastapi import Request
from fastapi.responses import JSONResponse

from traincrm.core.config import settings
from traincrm.core.logging_config import logger


def get_user_identifier(request: Request) -> str:
    """
    Rate limit key: authenticated user id when the auth dependency has run,
    otherwise the client IP address.
    """
    user_id = getattr(request.state, 'user_id', None)
    if user_id:
        return f"user:{user_id}"
    return f"ip:{get_remote_address(request)}"


limiter = Limiter(
    key_func=get_user_identifier,
    default_limits=[f"{settings.RATE_LIMIT_PER_MINUTE}/minute"],
    storage_uri=settings.RATE_LIMIT_STORAGE_URI or "memory://",
    strategy="fixed-window",
    enabled=settings.RATE_LIMIT_ENABLED,
)


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded):
    """JSON 429 with a Retry-After hint"""
    logger.warning(
        f"[RateLimit] Exceeded for {get_user_identifier(request)}: {exc.detail}",
        extra={"event_type": "rate_limit_exceeded", "http_path": request.url.path}
    )

    return JSONResponse(
        status_code=429,
        content={
            "detail": "Too many requests. Please slow down.",
            "code": "RATE_LIMIT_EXCEEDED",
            "limit": str(exc.detail),
        },
        headers={"Retry-After": "60"}
    )
