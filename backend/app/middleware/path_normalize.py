from typing import Awaitable, Callable

from fastapi import Request, Response
from fastapi.responses import RedirectResponse
from starlette.middleware.base import BaseHTTPMiddleware

from app.services.routing import split_path
from app.services.slugs import is_reserved_top_segment, sanitize_segment


def normalized_public_path(path: str) -> str | None:
    """Sanitized form of a public path when it differs from ``path``, else ``None``."""
    if is_reserved_top_segment(path):
        return None
    segments = split_path(path)
    if not segments:
        return None
    sanitized = [sanitize_segment(segment) for segment in segments]
    if not all(sanitized) or sanitized == segments:
        return None
    return "/" + "/".join(sanitized)


class PathNormalizationMiddleware(BaseHTTPMiddleware):
    """308 public URLs with uppercase or stray characters onto their lowercase slug form."""

    async def dispatch(self, request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
        target = normalized_public_path(request.url.path)
        if target is None:
            return await call_next(request)
        if request.url.query:
            target = f"{target}?{request.url.query}"
        return RedirectResponse(target, status_code=308)
