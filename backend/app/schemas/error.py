from typing import Any

from pydantic import BaseModel

VALIDATION_ERROR = "validation_error"
STORE_UNAVAILABLE = "store_unavailable"


class ErrorResponse(BaseModel):
    """JSON body of every error response. ``code`` is set when clients are expected to branch on it."""

    detail: Any
    code: str | None = None
