"""API assembly: routers and the JSON error envelope."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from ..services.identity import IdentityError
from .routers import ALL_ROUTERS

logger = logging.getLogger(__name__)


def _error(status_code: int, message: str, headers=None) -> JSONResponse:
    return JSONResponse(
        {"success": False, "error": message},
        status_code=status_code,
        headers=headers,
    )


async def _http_error(request: Request, exc: HTTPException) -> JSONResponse:
    return _error(exc.status_code, str(exc.detail), getattr(exc, "headers", None))


async def _identity_error(request: Request, exc: IdentityError) -> JSONResponse:
    status_code = exc.status_code if exc.status_code >= 400 else 400
    return _error(status_code, exc.message)


async def _validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    message = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
    return _error(400, f"Invalid request: {message}")


async def _unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _error(500, "An unexpected error occurred")


def register_exception_handlers(app: FastAPI) -> None:
    """Render every failure as ``{"success": false, "error": ...}``."""

    app.add_exception_handler(HTTPException, _http_error)
    app.add_exception_handler(IdentityError, _identity_error)
    app.add_exception_handler(RequestValidationError, _validation_error)
    app.add_exception_handler(Exception, _unexpected_error)


def register_routes(app: FastAPI) -> None:
    """Attach all application routers to the given app."""

    for router in ALL_ROUTERS:
        app.include_router(router)


__all__ = ["register_exception_handlers", "register_routes"]
