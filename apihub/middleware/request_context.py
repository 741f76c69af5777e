"""Request context middleware for log correlation."""

from __future__ import annotations

import logging
import time
import uuid
from typing import Awaitable, Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from apihub.logging import reset_request_id, set_request_id

logger = logging.getLogger("apihub.http")


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Bind a request ID for the duration of each request and echo it back."""

    async def dispatch(  # type: ignore[override]
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
        token = set_request_id(request_id)
        request.state.request_id = request_id
        start = time.perf_counter()
        try:
            response = await call_next(request)
            logger.debug(
                "Request handled",
                extra={
                    "event": "http_request",
                    "path": request.url.path,
                    "status_code": response.status_code,
                    "duration_ms": round((time.perf_counter() - start) * 1000, 2),
                },
            )
        finally:
            reset_request_id(token)
        response.headers.setdefault("x-request-id", request_id)
        return response
