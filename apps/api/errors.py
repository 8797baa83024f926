"""Error envelope and exception handlers for the API."""

import logging
from typing import Any

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from core.config import settings

logger = logging.getLogger(__name__)


def validation_error(field: str, messages: list[str] | str) -> HTTPException:
    """400 carrying field-level messages."""
    if isinstance(messages, str):
        messages = [messages]
    return HTTPException(
        status_code=400,
        detail={
            "message": "Validation failed",
            "errors": [{"field": field, "message": message} for message in messages],
        },
    )


def _error_body(detail: Any) -> dict[str, Any]:
    if isinstance(detail, dict):
        return {"success": False, **detail}
    return {"success": False, "message": str(detail)}


def _field_name(loc: tuple[Any, ...]) -> str:
    # ("body", "age") -> "age"; ("query", "limit") -> "limit"
    parts = [str(p) for p in loc if p not in ("body", "query", "path")]
    return ".".join(parts) or "request"


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=_error_body(exc.detail), headers=exc.headers)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {"field": _field_name(tuple(error.get("loc", ()))), "message": error.get("msg", "Invalid value")}
        for error in exc.errors()
    ]
    return JSONResponse(status_code=400, content={"success": False, "message": "Validation failed", "errors": errors})


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    if settings.is_production:
        logger.error(f"Unhandled error on {request.method} {request.url.path}: {type(exc).__name__}")
    else:
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(status_code=500, content={"success": False, "message": "Internal server error"})


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
