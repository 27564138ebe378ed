# app/core/errors.py
from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Optional

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException

logger = logging.getLogger(__name__)


class AppError(Exception):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "app_error"

    def __init__(self, message: str, status_code: Optional[int] = None, data: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.data = data
        if status_code is not None:
            self.status_code = status_code


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"


class ValidationError(AppError):
    code = "validation_error"


class InvalidTransitionError(ValidationError):
    code = "invalid_transition"


class PayoutIneligibleError(AppError):
    code = "payout_ineligible"


class InsufficientBalanceError(AppError):
    code = "insufficient_balance"

    def __init__(self, available: Decimal, requested: Decimal):
        super().__init__(
            f"Insufficient balance. Available: ${available:.2f}",
            data={"available": f"{available:.2f}", "requested": f"{requested:.2f}"},
        )
        self.available = available
        self.requested = requested


class ForbiddenError(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "forbidden"


class ConflictError(AppError):
    status_code = status.HTTP_409_CONFLICT
    code = "conflict"


class PersistenceError(AppError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "persistence_error"


def error_envelope(message: str, error: Optional[str] = None, data: Any = None) -> dict[str, Any]:
    body: dict[str, Any] = {"success": False, "message": message}
    if error is not None:
        body["error"] = error
    if data is not None:
        body["data"] = jsonable_encoder(data)
    return body


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def handle_app_error(_request: Request, err: AppError):
        if err.status_code >= 500:
            logger.error("%s: %s", err.code, err.message)
        return JSONResponse(
            status_code=err.status_code,
            content=error_envelope(err.message, err.code, err.data),
        )

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(_request: Request, err: RequestValidationError):
        errors = err.errors()
        first = errors[0] if errors else {}
        location = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        message = first.get("msg", "Invalid request")
        if location:
            message = f"{location}: {message}"
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=error_envelope(message, ValidationError.code),
        )

    @app.exception_handler(HTTPException)
    async def handle_http_exception(_request: Request, err: HTTPException):
        message = err.detail if isinstance(err.detail, str) else "Request failed"
        return JSONResponse(
            status_code=err.status_code,
            content=error_envelope(message, "http_error"),
            headers=getattr(err, "headers", None),
        )

    @app.exception_handler(SQLAlchemyError)
    async def handle_persistence_error(_request: Request, err: SQLAlchemyError):
        logger.exception("Database error")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=error_envelope("Internal server error", str(err)),
        )

    @app.exception_handler(Exception)
    async def handle_unexpected(_request: Request, err: Exception):
        logger.exception("Unhandled error")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=error_envelope("Internal server error", str(err)),
        )
