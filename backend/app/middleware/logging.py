"""Access logging: one JSON line per request, tagged with a request ID.

Server errors and slow requests are logged at WARNING; an exception escaping the
route is logged with the request ID and re-raised.
"""

import json
import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

logger = logging.getLogger("customs.access")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    def __init__(self, app: ASGIApp, slow_request_ms: float = 1000.0):
        super().__init__(app)
        self.slow_request_ms = slow_request_ms

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:8]
        request.state.request_id = request_id
        started = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception:
            logger.exception("Unhandled error [%s] %s %s", request_id, request.method, request.url.path)
            raise

        duration_ms = round((time.perf_counter() - started) * 1000, 1)
        entry = {
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "query": request.url.query or None,
            "status": response.status_code,
            "duration_ms": duration_ms,
        }
        level = logging.INFO
        if response.status_code >= 500 or duration_ms >= self.slow_request_ms:
            level = logging.WARNING
        logger.log(level, json.dumps(entry))

        response.headers["X-Request-ID"] = request_id
        return response
