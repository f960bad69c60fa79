# dreamlog/core/errors.py
"""
Error taxonomy and the handlers that render it.

Every error response is a JSON object with at least an ``error`` key;
500s also carry a ``message``.
"""
import logging
from typing import Any, Dict, Optional, Sequence

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from dreamlog.services.completion import CompletionError, CompletionTimeout

logger = logging.getLogger(__name__)


class ApiError(StarletteHTTPException):
    def __init__(
        self,
        status_code: int,
        error: str,
        message: Optional[str] = None,
        **extra: Any,
    ) -> None:
        detail: Dict[str, Any] = {"error": error}
        if message is not None:
            detail["message"] = message
        detail.update(extra)
        super().__init__(status_code=status_code, detail=detail)
        self.error = error


def unauthorized(message: Optional[str] = None) -> ApiError:
    return ApiError(status.HTTP_401_UNAUTHORIZED, "unauthorized", message)


def trial_expired() -> ApiError:
    return ApiError(status.HTTP_403_FORBIDDEN, "trial_expired", "Trial expired")


def validation_error(message: str) -> ApiError:
    return ApiError(status.HTTP_400_BAD_REQUEST, "validation_error", message)


def not_found(message: str) -> ApiError:
    return ApiError(status.HTTP_404_NOT_FOUND, "not_found", message)


def conflict(message: str) -> ApiError:
    return ApiError(status.HTTP_409_CONFLICT, "conflict", message)


def internal_error(message: str, reason: Optional[str] = None) -> ApiError:
    if reason:
        return ApiError(status.HTTP_500_INTERNAL_SERVER_ERROR, "internal_error", message, reason=reason)
    return ApiError(status.HTTP_500_INTERNAL_SERVER_ERROR, "internal_error", message)


def describe_errors(errors: Sequence[Dict[str, Any]]) -> str:
    """First validation problem as ``"loc: msg"``, or "Invalid JSON"."""
    if not errors:
        return "Invalid request"
    first = errors[0]
    if first.get("type") == "json_invalid":
        return "Invalid JSON"
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid value")
    return f"{location}: {message}" if location else message


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if isinstance(exc.detail, dict):
        content = exc.detail
    else:
        content = {"error": exc.detail}
    return JSONResponse(status_code=exc.status_code, content=content, headers=getattr(exc, "headers", None))


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": "validation_error", "message": describe_errors(exc.errors())},
    )


async def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.exception("Store failure on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "internal_error", "message": str(exc)},
    )


async def completion_error_handler(request: Request, exc: CompletionError) -> JSONResponse:
    reason = "upstream_timeout" if isinstance(exc, CompletionTimeout) else "upstream_error"
    logger.error("Completion service failure on %s: %s (%s)", request.url.path, exc, reason)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "internal_error", "message": str(exc), "reason": reason},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(SQLAlchemyError, database_error_handler)
    app.add_exception_handler(CompletionError, completion_error_handler)
