"""
Request body size limit.

Runs ahead of routing so oversized bodies are refused before anything parses
them. A declared Content-Length over MAX_BODY_SIZE is answered with 413
without reading the body. Bodies sent without a length are counted chunk by
chunk as the application pulls them, and reading stops with 413 once the
limit is passed.
"""

from __future__ import annotations

import logging

from fastapi import HTTPException
from starlette.datastructures import Headers
from starlette.responses import JSONResponse
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from gateway.config import settings
from gateway.models.common import ErrorResponse

logger = logging.getLogger(__name__)


def _reject(status_code: int, message: str, code: str) -> JSONResponse:
    body = ErrorResponse(error=message, code=code)
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


class BodySizeLimitMiddleware:
    """Caps request bodies at ``settings.MAX_BODY_SIZE`` bytes."""

    def __init__(self, app: ASGIApp):
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        limit = settings.MAX_BODY_SIZE
        declared = Headers(scope=scope).get("content-length")
        if declared is not None:
            try:
                size = int(declared)
            except ValueError:
                await _reject(400, "Invalid Content-Length header", "bad_request")(
                    scope, receive, send
                )
                return
            if size > limit:
                logger.debug("Refusing %d byte body on %s", size, scope.get("path"))
                await _reject(413, "Request body too large", "payload_too_large")(
                    scope, receive, send
                )
                return

        received = 0

        async def limited_receive() -> Message:
            nonlocal received
            message = await receive()
            if message["type"] == "http.request":
                received += len(message.get("body", b""))
                if received > limit:
                    # Surfaces through the body parser and the app's HTTP error handler.
                    raise HTTPException(status_code=413, detail="Request body too large")
            return message

        await self.app(scope, limited_receive, send)
