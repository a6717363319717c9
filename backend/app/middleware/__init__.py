from app.middleware.path_normalize import PathNormalizationMiddleware
from app.middleware.request_log import RequestLoggingMiddleware
from app.middleware.security import SecurityHeadersMiddleware

__all__ = ["PathNormalizationMiddleware", "RequestLoggingMiddleware", "SecurityHeadersMiddleware"]
