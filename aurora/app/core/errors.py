"""
Centralised error handling — exception hierarchy + FastAPI handlers.

Provides:
    • The SOS failure taxonomy as exception classes
    • Consistent JSON error response format
    • Automatic logging of unhandled errors
    • Request context in error responses (non-production)

The alert controller never lets these escape its public operations: a
failed trigger/cancel returns False and leaves the matching exception on
``controller.last_error``.  The HTTP layer re-raises that exception so the
handlers below render it.

Usage:
    from aurora.app.core.errors import NoContactsError, register_error_handlers

    raise NoContactsError()
"""

from __future__ import annotations

import logging
import traceback
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from aurora.app.core.config import settings

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════
# Exception Hierarchy
# ═══════════════════════════════════════════════════════════════════════════

class SOSError(Exception):
    """Base exception for all application errors."""

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        *,
        status_code: int = 500,
        error_code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details or {}


class AlreadyActiveError(SOSError):
    """A trigger arrived while another alert is in flight (409)."""

    def __init__(self, state: str):
        super().__init__(
            message="An SOS alert is already in progress",
            status_code=409,
            error_code="ALREADY_ACTIVE",
            details={"state": state},
        )


class NotArmedError(SOSError):
    """Cancel requested outside the countdown window (409)."""

    def __init__(self, state: str):
        super().__init__(
            message="No SOS countdown is running",
            status_code=409,
            error_code="NOT_ARMED",
            details={"state": state},
        )


class LocationUnavailableError(SOSError):
    """No usable location fix; trigger aborted before persisting (422)."""

    def __init__(self, reason: str = "no location fix"):
        super().__init__(
            message=f"Location unavailable: {reason}",
            status_code=422,
            error_code="LOCATION_UNAVAILABLE",
        )


class NoContactsError(SOSError):
    """Emergency roster is empty; trigger aborted before persisting (422)."""

    def __init__(self):
        super().__init__(
            message="No emergency contacts available",
            status_code=422,
            error_code="NO_CONTACTS",
        )


class NetworkSendError(SOSError):
    """Collector POST failed (502). Recovered by the SMS fallback."""

    def __init__(self, message: str = "", *, status_code: Optional[int] = None):
        details: Dict[str, Any] = {}
        if status_code is not None:
            details["http_status"] = status_code
        super().__init__(
            message=f"Network send failed: {message}",
            status_code=502,
            error_code="NETWORK_SEND_FAILED",
            details=details,
        )


class MessagingUnavailableError(SOSError):
    """No SMS provider on this device (503). Logged, never surfaced."""

    def __init__(self, provider: str):
        super().__init__(
            message=f"SMS messaging unavailable (provider={provider})",
            status_code=503,
            error_code="MESSAGING_UNAVAILABLE",
            details={"provider": provider},
        )


class PersistenceError(SOSError):
    """Alert store read/write failed (500)."""

    def __init__(self, operation: str, message: str = "", **details: Any):
        super().__init__(
            message=f"Alert store '{operation}' failed: {message}",
            status_code=500,
            error_code="PERSISTENCE_ERROR",
            details={"operation": operation, **details},
        )


class InvalidTransitionError(PersistenceError):
    """Status update on a row that is no longer pending."""

    def __init__(self, alert_id: int, current: str, requested: str):
        super().__init__(
            "update_status",
            f"alert {alert_id} is already {current}, refusing {requested}",
            alert_id=alert_id,
            current=current,
            requested=requested,
        )
        self.status_code = 409
        self.error_code = "INVALID_TRANSITION"


class StorageUnavailableError(SOSError):
    """Storage failed to initialise; service is degraded (503)."""

    def __init__(self, message: str = "Alert storage is not initialised"):
        super().__init__(
            message=message,
            status_code=503,
            error_code="STORAGE_UNAVAILABLE",
        )


class NotFoundError(SOSError):
    """Resource not found (404)."""

    def __init__(self, resource: str, **identifiers: Any):
        details = {"resource": resource, **identifiers}
        super().__init__(
            message=f"{resource} not found",
            status_code=404,
            error_code="NOT_FOUND",
            details=details,
        )


class ValidationError(SOSError):
    """Input validation failed (422)."""

    def __init__(self, message: str, *, field: Optional[str] = None, **details: Any):
        d = {**details}
        if field:
            d["field"] = field
        super().__init__(
            message=message,
            status_code=422,
            error_code="VALIDATION_ERROR",
            details=d,
        )


# ═══════════════════════════════════════════════════════════════════════════
# Error Response Builder
# ═══════════════════════════════════════════════════════════════════════════

def _build_error_response(
    status_code: int,
    error_code: str,
    message: str,
    details: Optional[Dict[str, Any]] = None,
    request: Optional[Request] = None,
) -> JSONResponse:
    """Build a consistent JSON error response."""
    body: Dict[str, Any] = {
        "error": {
            "code": error_code,
            "message": message,
            "status": status_code,
        }
    }

    if details:
        body["error"]["details"] = details

    # Include request path in non-production
    if request and not settings.is_production:
        body["error"]["path"] = str(request.url.path)
        body["error"]["method"] = request.method

    return JSONResponse(status_code=status_code, content=body)


# ═══════════════════════════════════════════════════════════════════════════
# FastAPI Exception Handlers
# ═══════════════════════════════════════════════════════════════════════════

def register_error_handlers(app: FastAPI) -> None:
    """Register all exception handlers on the FastAPI app."""

    @app.exception_handler(SOSError)
    async def handle_sos_error(request: Request, exc: SOSError):
        level = logging.ERROR if exc.status_code >= 500 else logging.WARNING
        logger.log(
            level,
            "SOS Error [%s]: %s | details=%s",
            exc.error_code, exc.message, exc.details,
        )
        return _build_error_response(
            exc.status_code, exc.error_code, exc.message,
            exc.details, request,
        )

    @app.exception_handler(ValueError)
    async def handle_value_error(request: Request, exc: ValueError):
        logger.warning("ValueError: %s", exc)
        return _build_error_response(
            422, "VALIDATION_ERROR", str(exc), request=request,
        )

    @app.exception_handler(Exception)
    async def handle_unhandled(request: Request, exc: Exception):
        logger.critical(
            "Unhandled exception: %s\n%s",
            exc, traceback.format_exc(),
        )
        message = str(exc) if settings.DEBUG else "Internal server error"
        details = (
            {"traceback": traceback.format_exc().split("\n")}
            if settings.DEBUG else None
        )
        return _build_error_response(
            500, "INTERNAL_ERROR", message, details, request,
        )
