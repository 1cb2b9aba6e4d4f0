# backend/trailbook/errors.py
"""
Exception handlers producing the failure envelope::

    {"success": false, "message": str,
     "error": {"statusCode": int, "path": str, "timestamp": str, "details": ...}}
"""

import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from .core.exceptions import DomainException, ServiceException
from .core.timezone_utils import utc_now

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "Internal server error"


def _field_errors(errors: Any) -> list[Dict[str, str]]:
    """Every violated constraint as ``{field, message}``; ``body``/``query`` prefixes dropped."""
    result = []
    for error in errors:
        loc = [str(part) for part in error.get("loc", ())]
        if loc and loc[0] in {"body", "query", "path", "header"}:
            loc = loc[1:]
        result.append({"field": ".".join(loc) or "body", "message": str(error.get("msg", ""))})
    return result


def _failure(
    request: Request,
    status_code: int,
    message: str,
    details: Optional[Any] = None,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    body = {
        "success": False,
        "message": message,
        "error": {
            "statusCode": status_code,
            "path": request.url.path,
            "timestamp": utc_now().isoformat(),
            "details": jsonable_encoder(details) if details is not None else None,
        },
    }
    return JSONResponse(body, status_code=status_code, headers=headers)


def _message_from_detail(detail: Any) -> tuple[str, Optional[Any]]:
    if isinstance(detail, dict):
        message = detail.get("message") or detail.get("detail")
        return (message if isinstance(message, str) else "Error"), detail.get("details")
    if isinstance(detail, str):
        return detail, None
    return "Error", detail


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(DomainException)
    async def domain_exception_handler(request: Request, exc: DomainException) -> JSONResponse:
        if isinstance(exc, ServiceException):
            logger.error(f"Service failure on {request.url.path}: {exc.message}")
            return _failure(request, exc.status_code, GENERIC_ERROR_MESSAGE)
        logger.warning(f"{exc.code} on {request.url.path}: {exc.message}")
        details: Dict[str, Any] = {"code": exc.code}
        if exc.details:
            details.update(exc.details)
        return _failure(request, exc.status_code, exc.message, details)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        message, details = _message_from_detail(exc.detail)
        return _failure(request, exc.status_code, message, details, headers=getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def request_validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        errors = _field_errors(exc.errors())
        message = "; ".join(f"{e['field']}: {e['message']}" for e in errors) or "Validation failed"
        return _failure(request, 400, message, errors)

    @app.exception_handler(ValidationError)
    async def validation_exception_handler(request: Request, exc: ValidationError) -> JSONResponse:
        errors = _field_errors(exc.errors())
        return _failure(request, 400, "Validation failed", errors)

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=True)
        return _failure(request, 500, GENERIC_ERROR_MESSAGE)
