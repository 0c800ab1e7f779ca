"""
Maps the domain error taxonomy onto HTTP responses.

Every handled error produces ``{"error", "reason", "detail"}``: ``error`` is
the sentence to show the user, ``reason`` the machine-readable code and
``detail`` the underlying message (generic outside development).
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from memoryvault.config import Settings, sanitize_error
from memoryvault.errors import (
    GatewayError,
    InsufficientData,
    MemoryVaultError,
    ProtocolError,
    SessionBusy,
    StoreError,
    StoreErrorReason,
)
from memoryvault.sessions.base import user_message

logger = logging.getLogger(__name__)


def status_for(exc: MemoryVaultError) -> int:
    if isinstance(exc, SessionBusy):
        return status.HTTP_409_CONFLICT
    if isinstance(exc, InsufficientData):
        return status.HTTP_422_UNPROCESSABLE_CONTENT
    if isinstance(exc, (GatewayError, ProtocolError)):
        return status.HTTP_502_BAD_GATEWAY
    if isinstance(exc, StoreError):
        if exc.reason == StoreErrorReason.NOT_INITIALIZED.value:
            return status.HTTP_503_SERVICE_UNAVAILABLE
        return status.HTTP_409_CONFLICT
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def error_body(exc: MemoryVaultError, environment: str) -> dict[str, str]:
    message = user_message(exc, environment)
    return {
        "error": message,
        "reason": exc.reason,
        "detail": sanitize_error(exc, environment, generic_message=message),
    }


def register_exception_handlers(app: FastAPI, settings: Settings) -> None:
    """Register handlers for MemoryVaultError and anything left unhandled."""
    environment = settings.environment

    @app.exception_handler(MemoryVaultError)
    async def domain_error_handler(request: Request, exc: MemoryVaultError) -> JSONResponse:
        code = status_for(exc)
        if code >= 500:
            logger.warning("%s %s failed: [%s] %s", request.method, request.url.path, exc.reason, exc.message)
        else:
            logger.info("%s %s refused: [%s] %s", request.method, request.url.path, exc.reason, exc.message)
        return JSONResponse(status_code=code, content=error_body(exc, environment))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": "An unexpected error occurred. Please try again.",
                "reason": "internal_error",
                "detail": sanitize_error(exc, environment),
            },
        )
