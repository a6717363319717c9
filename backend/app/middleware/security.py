from typing import Awaitable, Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from app.services.site_settings import SITE_CONFIG_STATE_KEY, default_site_config


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
        response = await call_next(request)
        response.headers.setdefault("X-Content-Type-Options", "nosniff")
        response.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
        # Routes that loaded the stored site config leave it on the request state.
        config = getattr(request.state, SITE_CONFIG_STATE_KEY, None) or default_site_config()
        if not config.is_indexable:
            response.headers.setdefault("X-Robots-Tag", "noindex, nofollow")
        return response
