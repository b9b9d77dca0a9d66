"""
HTTP-aware exception classes.

Every error raised from a route or service ends up as a
``{"success": false, "error": ...}`` envelope with the matching status code
(see ``register_exception_handlers`` in ``kerala_riders.api``).
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import HTTPException, status


class ApiError(HTTPException):
    """Base API exception carrying a user-facing message."""

    status_code_default = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        detail: str,
        status_code: Optional[int] = None,
        headers: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            status_code=status_code or self.status_code_default,
            detail=detail,
            headers=headers,
        )


class BadRequest(ApiError):
    status_code_default = status.HTTP_400_BAD_REQUEST


class Unauthorized(ApiError):
    status_code_default = status.HTTP_401_UNAUTHORIZED

    def __init__(self, detail: str = "Authentication required"):
        super().__init__(detail, headers={"WWW-Authenticate": "Bearer"})


class Forbidden(ApiError):
    status_code_default = status.HTTP_403_FORBIDDEN


class NotFound(ApiError):
    status_code_default = status.HTTP_404_NOT_FOUND


class Conflict(ApiError):
    status_code_default = status.HTTP_409_CONFLICT


__all__ = [
    "ApiError",
    "BadRequest",
    "Conflict",
    "Forbidden",
    "NotFound",
    "Unauthorized",
]
