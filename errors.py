"""
Application error hierarchy and FastAPI exception handlers.

AppError is the base for all typed errors. The global exception handler
converts AppError subclasses to consistent JSON responses.

When the failing request carried a valid session credential, the handler
echoes it back as ``token`` so an unrelated failure never logs the caller out.

Non-AppError exceptions bubble up as 500s (with Sentry reporting in production).
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from shared.logging import get_logger

log = get_logger(__name__)


class AppError(Exception):
    """Base application error. All typed errors inherit from this."""

    status_code: int = 500
    error_code: str = "internal_error"

    def __init__(
        self,
        message: str,
        *,
        field: Optional[str] = None,
        details: Optional[Any] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.field = field
        self.details = details

    def to_dict(self) -> dict:
        payload: dict = {"error": self.message, "code": self.error_code}
        if self.field is not None:
            payload["field"] = self.field
        if self.details is not None:
            payload["details"] = self.details
        return payload


class ValidationError(AppError):
    status_code = 400
    error_code = "validation_error"


class InvalidOtpError(AppError):
    status_code = 400
    error_code = "invalid_otp"


class AuthenticationError(AppError):
    status_code = 401
    error_code = "authentication_error"


class ForbiddenError(AppError):
    """Trust-level gate not met (e.g. KYC level 2 step without level 1)."""

    status_code = 403
    error_code = "forbidden"


class NotFoundError(AppError):
    status_code = 404
    error_code = "not_found"


class ConflictError(AppError):
    status_code = 409
    error_code = "conflict"


class ExpiredError(AppError):
    status_code = 410
    error_code = "expired"


class UpstreamError(AppError):
    """A storage or notification collaborator failed."""

    status_code = 502
    error_code = "upstream_failure"


def _request_credential(request: Request) -> Optional[str]:
    token = getattr(request.state, "credential", None)
    if token:
        return token
    # Unguarded routes never verified the caller; check here
    tokens = getattr(request.app.state, "token_service", None)
    if tokens is None:
        return None
    return tokens.valid_token(request)


def _with_credential(request: Request, payload: dict) -> dict:
    token = _request_credential(request)
    if token:
        payload["token"] = token
    return payload


def register_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers on the FastAPI app."""

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content=_with_credential(request, exc.to_dict()),
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        error = ValidationError(
            "Missing or malformed request fields",
            details=jsonable_encoder(exc.errors(), exclude={"ctx", "url", "input"}),
        )
        return JSONResponse(
            status_code=error.status_code,
            content=_with_credential(request, error.to_dict()),
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        # Sentry integration: if sentry_sdk is initialized it will auto-capture
        # unhandled exceptions before this handler fires.
        log.error(
            "unhandled_exception",
            path=request.url.path,
            error=str(exc),
            error_type=type(exc).__name__,
        )
        return JSONResponse(
            status_code=500,
            content=_with_credential(
                request,
                {"error": "An internal server error occurred.", "code": "internal_error"},
            ),
        )
