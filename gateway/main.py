"""FastAPI application entry point.

Creates the app, owns the admission-pipeline state (rate limiter and
telemetry recorder), maps gateway errors to HTTP responses and wires up
routers.
"""

import asyncio
import logging
import math
from contextlib import asynccontextmanager, suppress

import aiomysql
import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from gateway.api.admin import router as admin_router
from gateway.api.health import router as health_router
from gateway.api.metrics import router as metrics_router
from gateway.api.readings import router as readings_router
from gateway.config import settings
from gateway.db.pool import close_pool, init_pool
from gateway.errors import AuthError, NotFoundError, RateLimitExceeded, StorageError
from gateway.middleware.body_limit import BodySizeLimitMiddleware
from gateway.middleware.request_logging import RequestLoggingMiddleware
from gateway.models.common import ErrorResponse
from gateway.services.rate_limit import SlidingWindowRateLimiter
from gateway.services.recorder import RequestRecorder

logger = logging.getLogger(__name__)

_MIN_ADMIN_TOKEN_LENGTH = 16

_HTTP_ERROR_CODES = {
    400: "bad_request",
    401: "unauthorized",
    403: "forbidden",
    404: "not_found",
    405: "method_not_allowed",
    413: "payload_too_large",
}


def _validate_admin_token() -> None:
    """Validate the admin token at startup.

    An empty token leaves the admin routes open and only logs a warning. A
    configured token shorter than 16 characters raises RuntimeError.
    """
    token = settings.ADMIN_TOKEN
    if not token:
        logger.warning("ADMIN_TOKEN is not set, admin routes are unauthenticated")
        return

    if len(token) < _MIN_ADMIN_TOKEN_LENGTH:
        raise RuntimeError("ADMIN_TOKEN must be at least 16 characters long.")


async def _evict_idle_windows(limiter: SlidingWindowRateLimiter, interval: float) -> None:
    """Sweep every limiter shard each ``interval`` seconds until cancelled."""
    while True:
        await asyncio.sleep(interval)
        limiter.evict_idle()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application startup and shutdown lifecycle."""
    # Configure logging
    logging.basicConfig(
        level=logging.DEBUG if settings.DEBUG else logging.INFO,
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    logging.getLogger("aiomysql").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    _validate_admin_token()

    # Startup
    logger.info("Connecting to database...")
    await init_pool(settings)
    await app.state.recorder.start()
    sweeper = asyncio.create_task(
        _evict_idle_windows(app.state.rate_limiter, settings.RATE_LIMIT_SWEEP_INTERVAL_SECONDS)
    )
    yield
    # Shutdown
    sweeper.cancel()
    with suppress(asyncio.CancelledError):
        await sweeper
    await app.state.recorder.stop(settings.RECORDER_SHUTDOWN_TIMEOUT_SECONDS)
    await close_pool()


app = FastAPI(
    title=settings.APP_NAME,
    lifespan=lifespan,
)

app.state.rate_limiter = SlidingWindowRateLimiter(
    shards=settings.RATE_LIMIT_SHARDS,
    sweep_interval=settings.RATE_LIMIT_SWEEP_INTERVAL_SECONDS,
)
app.state.recorder = RequestRecorder(max_queue_size=settings.RECORDER_QUEUE_SIZE)

# Added first so request logging wraps it and records refused bodies too.
app.add_middleware(BodySizeLimitMiddleware)
app.add_middleware(RequestLoggingMiddleware)


# ---------------------------------------------------------------------------
# Error responses
# ---------------------------------------------------------------------------


def _error(status_code: int, message: str, code: str, details=None, headers=None) -> JSONResponse:
    body = ErrorResponse(error=message, code=code, details=details)
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(exclude_none=True),
        headers=headers,
    )


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError):
    return _error(401, "Authentication error: API key is invalid or missing.", "unauthorized")


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    retry_after = max(1, math.ceil(exc.retry_after))
    return _error(
        429,
        "Rate limit exceeded. Please slow down.",
        "rate_limited",
        headers={"Retry-After": str(retry_after), "X-RateLimit-Limit": str(exc.limit)},
    )


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return _error(404, str(exc), "not_found")


@app.exception_handler(StorageError)
async def storage_error_handler(request: Request, exc: StorageError):
    return _error(500, str(exc), "storage_error")


@app.exception_handler(aiomysql.Error)
async def database_error_handler(request: Request, exc: aiomysql.Error):
    logger.error("Database error on %s %s: %r", request.method, request.url.path, exc)
    return _error(500, "Internal Server Error.", "storage_error")


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    details = [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg", "")} for err in exc.errors()
    ]
    return _error(400, "Request validation failed.", "validation_error", details=details)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    code = _HTTP_ERROR_CODES.get(exc.status_code, "error")
    return _error(exc.status_code, str(exc.detail), code, headers=exc.headers)


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------

app.include_router(health_router, tags=["health"])
app.include_router(metrics_router, tags=["metrics"])
app.include_router(admin_router, tags=["admin"])
app.include_router(readings_router, tags=["readings"])


def run() -> None:
    """Serve the application with uvicorn on SERVER_HOST:SERVER_PORT."""
    logger.info("Server starting on %s:%s", settings.SERVER_HOST, settings.SERVER_PORT)
    uvicorn.run(app, host=settings.SERVER_HOST, port=settings.SERVER_PORT)


if __name__ == "__main__":
    run()
