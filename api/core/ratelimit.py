"""Rate limiting configuration using slowapi.

SCALABILITY NOTES:
- Production MUST use Redis: set RATELIMIT_STORAGE_URI="redis://host:port/db"
- memory:// storage does NOT work with multiple workers/replicas
- Each replica maintains separate counters, effectively multiplying limits by N
"""

import logging

from fastapi import Request, Response
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.responses import JSONResponse

from core.config import get_settings

logger = logging.getLogger(__name__)

settings = get_settings()

if not settings.debug and settings.ratelimit_storage_uri == "memory://":
    logger.warning(
        "ratelimit.storage.in_memory",
        extra={
            "hint": "Set RATELIMIT_STORAGE_URI to a Redis URL when running "
            "more than one worker or replica"
        },
    )


def _get_request_identifier(request: Request) -> str:
    """Rate limit key: the session user if known, otherwise the client IP.

    Session users are keyed by ID so one account cannot spread requests
    over several addresses.
    """
    if hasattr(request.state, "user_id") and request.state.user_id:
        return f"user:{request.state.user_id}"

    if "session" in request.scope:
        user_id = request.session.get("user_id")
        if user_id:
            return f"user:{user_id}"

    return get_remote_address(request)


_using_redis = settings.ratelimit_storage_uri.startswith("redis://")

limiter = Limiter(
    key_func=_get_request_identifier,
    default_limits=["100/minute"],
    storage_uri=settings.ratelimit_storage_uri,
    # Degrade to per-process counters while Redis is unreachable
    in_memory_fallback_enabled=_using_redis,
    key_prefix="evc:",
)


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> Response:
    """Custom handler for rate limit exceeded errors."""
    logger.warning(
        "ratelimit.exceeded",
        extra={
            "identifier": _get_request_identifier(request),
            "limit": exc.detail,
        },
    )
    return JSONResponse(
        status_code=429,
        content={
            "detail": "Rate limit exceeded. Please slow down.",
            "code": "rate_limited",
            "retry_after": exc.detail,
        },
        headers={"Retry-After": str(getattr(exc, "retry_after", 60))},
    )


FEEDBACK_LIMIT = "10/minute"

CERTIFICATE_LIMIT = "10/minute"

VERIFY_LIMIT = "30/minute"
