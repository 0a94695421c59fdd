"""
Application error taxonomy and the FastAPI handlers that turn errors into the
`{success: false, error, message?, details?}` envelope.
"""
import logging
from typing import Any, Optional

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from core.config import settings

logger = logging.getLogger(__name__)


class AppError(Exception):
    status_code: int = status.HTTP_400_BAD_REQUEST
    error: str = "Bad Request"

    def __init__(self, message: Optional[str] = None, *, details: Any = None):
        self.message = message or self.error
        self.details = details
        super().__init__(self.message)


class ValidationError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    error = "Validation Error"


class Unauthorized(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    error = "Unauthorized - Please log in"


class Forbidden(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    error = "Forbidden - Insufficient permissions"


class NotFound(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    error = "Not Found"


class Conflict(AppError):
    status_code = status.HTTP_409_CONFLICT
    error = "Conflict"


class InvalidQuantity(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    error = "Invalid quantity"


class InsufficientStock(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    error = "Insufficient warehouse stock"

    def __init__(self, available: int, requested: int):
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient warehouse stock. Available={available} requested={requested}",
            details={"available": available, "requested": requested},
        )


class StorageFailure(AppError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error = "Internal Server Error"


def _error_body(error: str, message: Optional[str] = None, details: Any = None) -> dict:
    body: dict = {"success": False, "error": error}
    if message and message != error:
        body["message"] = message
    if details is not None:
        body["details"] = jsonable_encoder(details)
    return body


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def _app_error(req: Request, exc: AppError):
        if isinstance(exc, StorageFailure):
            logger.error("storage failure on %s %s: %s", req.method, req.url.path, exc.message)
            message = exc.message if settings.is_development else "Something went wrong"
            return JSONResponse(status_code=exc.status_code, content=_error_body(exc.error, message))
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(exc.message, details=exc.details),
        )

    @app.exception_handler(HTTPException)
    async def _http_exc(req: Request, exc: HTTPException):
        detail = exc.detail
        # fastapi-users raises HTTPException with plain string codes (e.g. LOGIN_BAD_CREDENTIALS)
        error = detail if isinstance(detail, str) else "Request failed"
        details = None if isinstance(detail, str) else detail
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(error, details=details),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def _validation_exc(req: Request, exc: RequestValidationError):
        details = [
            {"loc": list(e.get("loc", ())), "msg": e.get("msg"), "type": e.get("type")}
            for e in exc.errors()
        ]
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=_error_body("Validation Error", "Request validation failed", details),
        )

    @app.exception_handler(Exception)
    async def _unhandled_exc(req: Request, exc: Exception):
        logger.exception("unhandled error on %s %s", req.method, req.url.path)
        message = str(exc) if settings.is_development else "Something went wrong"
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=_error_body("Internal Server Error", message),
        )
