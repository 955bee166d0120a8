from __future__ import annotations
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from core_logging import get_logger, log_stage, record_error, current_request_id
from core_logging.error_codes import ErrorCode  # reuse codes; do not duplicate
from core_utils import jsonx
from core_utils.ids import generate_request_id


class ServiceError(Exception):
    """
    Base class for errors that map onto a client-visible JSON response.

    Subclasses set ``code`` and ``status_code``; the message becomes the
    ``error`` string of the body.
    """
    code: ErrorCode = ErrorCode.internal
    status_code: int = 500

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


def _request_id(request: Request) -> str:
    return (
        getattr(request.state, "request_id", None)
        or current_request_id()
        or generate_request_id()
    )


def error_body(message: str, code: ErrorCode | str, request_id: str, **extra: Any) -> dict:
    """
    Canonical error envelope: ``{"error": <message>, "code": ..., "request_id": ...}``.

    ``error`` stays a plain string so clients that only read ``error``
    keep working.
    """
    body: dict[str, Any] = {
        "error": message,
        "code": code.value if isinstance(code, ErrorCode) else str(code),
        "request_id": request_id,
    }
    body.update(jsonx.sanitize(extra))
    return body


def attach_standard_error_handlers(app: FastAPI, *, service: str) -> None:
    """
    Uniform error shaping:
      - ServiceError subclasses → their status code + envelope
      - 422: Pydantic validation
      - Starlette HTTP errors (JSON passthrough)
      - 500: Catch-all with the same envelope
    """
    logger = get_logger(service)

    @app.exception_handler(ServiceError)
    async def _service_exc_handler(request: Request, exc: ServiceError):
        req_id = _request_id(request)
        details = {k: v for k, v in jsonx.sanitize(exc.details).items() if k not in ("request_id", "status_code")}
        record_error(
            exc.code.value, where=request.url.path, message=exc.message,
            logger=logger, level="WARNING" if exc.status_code < 500 else "ERROR",
            request_id=req_id, status_code=exc.status_code,
            **details,
        )
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(exc.message, exc.code, req_id),
        )

    @app.exception_handler(RequestValidationError)
    async def _validation_exc_handler(request: Request, exc: RequestValidationError):
        req_id = _request_id(request)
        errors = jsonx.sanitize(exc.errors())
        log_stage(logger, "validation", "validation.failed",
                  request_id=req_id, errors=errors,
                  url=str(request.url), method=request.method)
        return JSONResponse(
            status_code=422,
            content=error_body("Request validation failed", ErrorCode.validation_failed, req_id,
                               details={"errors": errors}),
        )

    @app.exception_handler(StarletteHTTPException)
    async def _http_exc_handler(request: Request, exc: StarletteHTTPException):
        # Keep Starlette semantics but JSON-first body
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail, "request_id": _request_id(request)},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def _unhandled_exc_handler(request: Request, exc: Exception):
        req_id = _request_id(request)
        record_error(
            ErrorCode.internal.value, where=request.url.path, message=str(exc),
            logger=logger, request_id=req_id, error_type=exc.__class__.__name__,
        )
        return JSONResponse(
            status_code=500,
            content=error_body("Unexpected error", ErrorCode.internal, req_id,
                               details={"type": exc.__class__.__name__}),
        )

__all__ = ["ServiceError", "error_body", "attach_standard_error_handlers"]
