"""
Application error hierarchy and FastAPI exception handlers.

AppError is the base for all typed errors. The global exception handler
converts AppError subclasses to consistent JSON responses.

The authentication errors below are the user-facing outcomes of the login,
token and two-factor flows. None of them is fatal; AccountLockedError is the
only one that asks the caller to wait before retrying.

Non-AppError exceptions bubble up as 500s (with Sentry reporting in production).
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
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


class AuthenticationError(AppError):
    status_code = 401
    error_code = "authentication_error"


class ForbiddenError(AppError):
    status_code = 403
    error_code = "forbidden"


class NotFoundError(AppError):
    status_code = 404
    error_code = "not_found"


class ConflictError(AppError):
    status_code = 409
    error_code = "conflict"


class RateLimitError(AppError):
    status_code = 429
    error_code = "rate_limit_exceeded"


class ExternalServiceError(AppError):
    """An outbound call (email, AI provider) failed for this request."""

    status_code = 502
    error_code = "external_service_error"


# ── Authentication & two-factor outcomes ─────────────────────────────────────


class InvalidCredentialsError(AuthenticationError):
    """Unknown email or wrong password; never says which."""

    error_code = "invalid_credentials"

    def __init__(self, message: str = "Invalid credentials", **kwargs: Any) -> None:
        super().__init__(message, **kwargs)


class EmailNotVerifiedError(ForbiddenError):
    error_code = "email_not_verified"

    def __init__(
        self, message: str = "Please verify your email first.", **kwargs: Any
    ) -> None:
        super().__init__(message, **kwargs)


class NotInitiatedError(AppError):
    status_code = 400
    error_code = "two_factor_not_initiated"


class AccountLockedError(AppError):
    status_code = 423
    error_code = "account_locked"

    def __init__(self, message: str, *, retry_after_minutes: int) -> None:
        super().__init__(message, details={"retry_after_minutes": retry_after_minutes})
        self.retry_after_minutes = retry_after_minutes


class InvalidCodeError(AppError):
    """Wrong or expired 2FA code. The two cases share one message."""

    status_code = 400
    error_code = "invalid_code"

    def __init__(
        self, message: str = "Invalid or expired code. Try again.", **kwargs: Any
    ) -> None:
        super().__init__(message, **kwargs)


class TooSoonError(RateLimitError):
    error_code = "too_soon"


class InvalidMethodError(AppError):
    status_code = 400
    error_code = "invalid_method"


class TokenExpiredOrInvalidError(AppError):
    status_code = 400
    error_code = "token_expired_or_invalid"


def register_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers on the FastAPI app."""

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        errors = [
            {
                "field": ".".join(str(p) for p in err.get("loc", ())[1:]) or None,
                "msg": err.get("msg"),
            }
            for err in exc.errors()
        ]
        return JSONResponse(
            status_code=400,
            content={
                "error": "Validation failed",
                "code": ValidationError.error_code,
                "details": errors,
            },
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
            content={"error": "An internal server error occurred.", "code": "internal_error"},
        )
