"""
Domain error taxonomy + global exception handlers.

The services raise the typed errors below; the HTTP layer only translates
them.  The catch-all handlers prevent stack-trace leakage to clients.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

logger = logging.getLogger(__name__)


class PresenceError(Exception):
    status_code: int = 400
    code: str = "PRESENCE_ERROR"
    message: str = "Presence request rejected"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.message
        super().__init__(self.message)


# ── Token lifecycle ─────────────────────────────────────────────────
class InvalidToken(PresenceError):
    code = "INVALID_TOKEN"
    message = "Invalid QR code"


class TokenNotFound(PresenceError):
    status_code = 404
    code = "TOKEN_NOT_FOUND"
    message = "QR code not found"


class TokenExpired(PresenceError):
    code = "TOKEN_EXPIRED"
    message = "QR code expired"


class TokenAlreadyUsed(PresenceError):
    code = "TOKEN_ALREADY_USED"
    message = "QR code already used"


# ── Identity / state ────────────────────────────────────────────────
class EmployeeNotFound(PresenceError):
    status_code = 404
    code = "EMPLOYEE_NOT_FOUND"
    message = "Employee not found"


class DayAlreadyClosed(PresenceError):
    status_code = 409
    code = "DAY_ALREADY_CLOSED"
    message = "Already checked out for today"


class PresenceConflict(PresenceError):
    status_code = 409
    code = "PRESENCE_CONFLICT"
    message = "Another presence event for this employee is being processed"


# ── Corrections ─────────────────────────────────────────────────────
class RecordNotFound(PresenceError):
    status_code = 404
    code = "RECORD_NOT_FOUND"
    message = "Attendance record not found"


class InvalidCorrection(PresenceError):
    code = "INVALID_CORRECTION"
    message = "Invalid attendance correction"


class InternalError(PresenceError):
    status_code = 500
    code = "INTERNAL_ERROR"
    message = "Internal server error"


# ── Handlers ────────────────────────────────────────────────────────
async def _presence_error_handler(_request: Request, exc: PresenceError) -> JSONResponse:
    if exc.status_code >= 500:
        # detail was logged where the fault happened; keep it off the wire
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": InternalError.message, "code": exc.code, "success": False},
        )
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "code": exc.code, "success": False},
    )


async def _http_exception_handler(_request: Request, exc: HTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "success": False},
        headers=getattr(exc, "headers", None),
    )


async def _integrity_error_handler(_request: Request, exc: IntegrityError) -> JSONResponse:
    logger.error("Database integrity error: %s", exc, exc_info=True)
    return JSONResponse(
        status_code=409,
        content={"detail": "Database constraint violation", "success": False},
    )


async def _sqlalchemy_error_handler(_request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error("Database error: %s", exc, exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal database error", "success": False},
    )


async def _generic_exception_handler(_request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception: %s", exc)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error", "success": False},
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Attach all exception handlers to the FastAPI app."""
    app.add_exception_handler(PresenceError, _presence_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(HTTPException, _http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(IntegrityError, _integrity_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(SQLAlchemyError, _sqlalchemy_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, _generic_exception_handler)
