"""
Request telemetry middleware.

Wraps every request and, once the response is produced, hands one record
to the application's RequestRecorder when the request carried an API key.
The recorder only queues the record; persisting it happens off the
response path.
"""

from __future__ import annotations

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from gateway.config import settings

logger = logging.getLogger(__name__)

# Width of requests.endpoint.
MAX_ENDPOINT_LENGTH = 512


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Emits one telemetry record per keyed request with status and latency."""

    async def dispatch(self, request: Request, call_next) -> Response:
        start = time.perf_counter()
        response: Response | None = None

        try:
            response = await call_next(request)
            return response
        finally:
            elapsed_ms = int((time.perf_counter() - start) * 1000)
            raw_key = request.headers.get(settings.API_KEY_HEADER)
            if raw_key:
                status_code = response.status_code if response is not None else 500
                endpoint = request.url.path[:MAX_ENDPOINT_LENGTH]
                recorder = request.app.state.recorder
                # Set by the admission dependency when the key authenticated.
                api_key_id = getattr(request.state, "api_key_id", None)
                if api_key_id is not None:
                    recorder.record(api_key_id, endpoint, request.method, status_code, elapsed_ms)
                else:
                    recorder.record_for_key(
                        raw_key, endpoint, request.method, status_code, elapsed_ms
                    )
