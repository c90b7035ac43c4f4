"""
Response DTOs for authentication endpoints.

UserProfileResponse   — public user shape, embedded in most auth responses
LoginResponse         — POST /api/auth/login (session or 2FA challenge)
SessionResponse       — email verification and 2FA verification successes
ProfileResponse       — GET/PUT /api/auth/profile, toggle-2fa, confirm-totp
EnableTotpResponse    — POST /api/auth/enable-totp
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict

from schemas.models.user import TwoFactorMethod, UserDoc


class UserProfileResponse(BaseModel):
    """Public view of a user; secrets and token hashes are never included."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: Optional[str] = None
    email: str
    role: str
    is_verified: bool
    is_2fa_enabled: bool
    two_factor_method: Optional[str] = None
    avatar: Optional[str] = None

    @classmethod
    def from_user(cls, user: UserDoc, backend_url: str) -> "UserProfileResponse":
        """Build the public view; relative avatar paths become absolute URLs."""
        avatar = user.avatar
        if avatar and not avatar.startswith(("http://", "https://")):
            avatar = f"{backend_url.rstrip('/')}/api/{avatar.lstrip('/')}"
        method = user.two_factor_method
        return cls(
            id=str(user.id),
            name=user.name,
            email=user.email,
            role=user.role,
            is_verified=user.is_verified,
            is_2fa_enabled=user.is_2fa_enabled,
            two_factor_method=None if method is TwoFactorMethod.NONE else method.value,
            avatar=avatar or None,
        )


class LoginResponse(BaseModel):
    """Response body for POST /api/auth/login (200).

    With 2FA active only ``requires_2fa`` and ``method`` are set; otherwise
    ``token`` and ``user`` carry the new session.
    """

    model_config = ConfigDict(populate_by_name=True)

    message: str
    requires_2fa: bool = False
    method: Optional[str] = None
    token: Optional[str] = None
    user: Optional[UserProfileResponse] = None


class SessionResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    message: str
    token: Optional[str] = None
    user: Optional[UserProfileResponse] = None


class ProfileResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: Optional[str] = None
    user: UserProfileResponse


class EnableTotpResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str
    qr_code_url: str
    otpauth_url: str
    secret: str
