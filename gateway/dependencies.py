from __future__ import annotations

import hmac
import logging

from fastapi import Depends, Header, HTTPException, Request, Response

from gateway.config import settings
from gateway.db.pool import get_connection
from gateway.services import api_key as api_key_service
from gateway.services.rate_limit import SlidingWindowRateLimiter
from gateway.services.recorder import RequestRecorder

logger = logging.getLogger(__name__)


async def get_db():
    """Yield a database connection from the pool."""
    async with get_connection() as conn:
        yield conn


def get_rate_limiter(request: Request) -> SlidingWindowRateLimiter:
    """Return the process-wide rate limiter owned by the application."""
    return request.app.state.rate_limiter


def get_recorder(request: Request) -> RequestRecorder:
    """Return the telemetry recorder owned by the application."""
    return request.app.state.recorder


async def require_api_key(
    request: Request,
    response: Response,
    limiter: SlidingWindowRateLimiter = Depends(get_rate_limiter),
) -> dict:
    """Admission pipeline: authenticate the caller, then apply its rate limit.

    Raises:
        AuthError: Missing, unknown/inactive key, or storage failure (401).
        RateLimitExceeded: The key's sliding window is full (429).
    """
    raw_key = request.headers.get(settings.API_KEY_HEADER)
    principal = await api_key_service.authenticate(raw_key)
    request.state.api_key_id = principal["id"]

    limit = principal.get("rate_limit") or settings.RATE_LIMIT_REQUESTS
    remaining = limiter.check(principal["id"], limit=limit, window=settings.RATE_LIMIT_WINDOW_SECONDS)

    response.headers["X-RateLimit-Limit"] = str(limit)
    response.headers["X-RateLimit-Remaining"] = str(remaining)
    return principal


async def require_admin(x_admin_token: str | None = Header(default=None, alias="X-Admin-Token")):
    """Guard admin routes when an ADMIN_TOKEN is configured.

    Raises:
        HTTPException 401: If the token is missing or wrong.
    """
    expected = settings.ADMIN_TOKEN
    if not expected:
        return
    if not x_admin_token or not hmac.compare_digest(x_admin_token, expected):
        raise HTTPException(status_code=401, detail="Unauthorized")
