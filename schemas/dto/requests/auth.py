"""
Request DTOs for authentication endpoints.

RegisterRequest            — POST /api/auth/register
LoginRequest               — POST /api/auth/login
ForgotPasswordRequest      — POST /api/auth/forgot-password
ResetPasswordRequest       — POST /api/auth/reset-password/{token}
ResendVerificationRequest  — POST /api/auth/resend-verification
VerifyCodeRequest          — POST /api/auth/verify-2fa, /api/auth/verify-totp
ResendCodeRequest          — POST /api/auth/resend-2fa
ToggleTwoFactorRequest     — PUT  /api/auth/toggle-2fa
ConfirmTotpRequest         — POST /api/auth/confirm-totp
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from shared.validators import MIN_PASSWORD_LENGTH, normalize_email


class _EmailBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    email: EmailStr

    @field_validator("email", mode="after")
    @classmethod
    def _normalize(cls, v: str) -> str:
        return normalize_email(v)


class RegisterRequest(_EmailBody):
    """Request body for POST /api/auth/register."""

    name: str = Field(min_length=1)
    password: str = Field(min_length=MIN_PASSWORD_LENGTH)

    @field_validator("name")
    @classmethod
    def _name_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Name is required")
        return v


class LoginRequest(_EmailBody):
    """Request body for POST /api/auth/login."""

    password: str = Field(min_length=1)


class ForgotPasswordRequest(_EmailBody):
    """Request body for POST /api/auth/forgot-password."""


class ResendVerificationRequest(_EmailBody):
    """Request body for POST /api/auth/resend-verification."""


class ResetPasswordRequest(BaseModel):
    """Request body for POST /api/auth/reset-password/{token}."""

    model_config = ConfigDict(populate_by_name=True)

    password: str = Field(min_length=MIN_PASSWORD_LENGTH)


class VerifyCodeRequest(_EmailBody):
    """Request body for the email-code and authenticator-code checks.

    ``code`` may arrive as a number from some clients; it is always handled
    as a trimmed string.
    """

    code: str

    @field_validator("code", mode="before")
    @classmethod
    def _stringify(cls, v):
        return str(v).strip() if v is not None else v


class ResendCodeRequest(_EmailBody):
    """Request body for POST /api/auth/resend-2fa."""


class ToggleTwoFactorRequest(BaseModel):
    """Request body for PUT /api/auth/toggle-2fa.

    ``method`` is validated by the service so that an unknown method maps to
    the invalid-method error instead of a schema error.
    """

    model_config = ConfigDict(populate_by_name=True)

    enable: bool
    method: Optional[str] = None


class ConfirmTotpRequest(BaseModel):
    """Request body for POST /api/auth/confirm-totp."""

    model_config = ConfigDict(populate_by_name=True)

    code: str

    @field_validator("code", mode="before")
    @classmethod
    def _stringify(cls, v):
        return str(v).strip() if v is not None else v
