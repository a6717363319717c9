import logging
import re
import time
import uuid
from typing import Awaitable, Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from app.core.logging_config import request_id_ctx_var

logger = logging.getLogger("app.request")

_REQUEST_ID_RE = re.compile(r"[A-Za-z0-9._-]{8,128}")
_QUIET_PATHS = frozenset({"/api/v1/health", "/api/v1/health/ready"})


def _request_id(request: Request) -> str:
    """Incoming ``X-Request-ID`` when well-formed, else a fresh id."""
    incoming = request.headers.get("X-Request-ID") or ""
    return incoming if _REQUEST_ID_RE.fullmatch(incoming) else uuid.uuid4().hex


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
        request_id = _request_id(request)
        token = request_id_ctx_var.set(request_id)
        request.state.request_id = request_id
        start = time.perf_counter()
        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id
            path = request.url.path
            extra = {
                "path": path,
                "method": request.method,
                "status_code": response.status_code,
                "duration_ms": round((time.perf_counter() - start) * 1000, 1),
            }
            if 300 <= response.status_code < 400:
                extra["location"] = response.headers.get("location")
            logger.log(logging.DEBUG if path in _QUIET_PATHS else logging.INFO, "request", extra=extra)
            return response
        finally:
            request_id_ctx_var.reset(token)
