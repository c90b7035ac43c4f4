"""
User document model.

Maps to the `users` MongoDB collection.

Token fields (verification_token, reset_password_token, temp_2fa_code) hold
SHA-256 digests only; the plaintext is emailed once and never stored.

Two-factor state:
- configuration: is_2fa_enabled, two_factor_method, two_factor_secret (totp only)
- runtime: temp_2fa_code / temp_2fa_expires (in-flight email challenge),
  failed_2fa_attempts and lock_until (shared by both methods),
  last_2fa_resend (resend throttle)
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import Field, field_validator

from schemas.models.base import MongoBaseModel
from shared.datetime_utils import ensure_utc, is_future


class TwoFactorMethod(str, Enum):
    NONE = "none"
    EMAIL = "email"
    TOTP = "totp"


class UserDoc(MongoBaseModel):
    """Document model for the `users` collection."""

    email: str
    name: Optional[str] = None
    password_hash: Optional[str] = None
    role: str = "user"
    avatar: Optional[str] = None

    is_verified: bool = False
    verification_token: Optional[str] = None
    verification_expires: Optional[datetime] = None

    reset_password_token: Optional[str] = None
    reset_password_expires: Optional[datetime] = None

    is_2fa_enabled: bool = False
    two_factor_method: TwoFactorMethod = TwoFactorMethod.NONE
    two_factor_secret: Optional[str] = None
    temp_2fa_code: Optional[str] = None
    temp_2fa_expires: Optional[datetime] = None
    failed_2fa_attempts: int = Field(default=0, ge=0)
    lock_until: Optional[datetime] = None
    last_2fa_resend: Optional[datetime] = None

    @field_validator("two_factor_method", mode="before")
    @classmethod
    def _null_method_is_none(cls, v):
        # documents written before the enum existed store null
        return TwoFactorMethod.NONE if v is None else v

    @field_validator(
        "verification_expires",
        "reset_password_expires",
        "temp_2fa_expires",
        "lock_until",
        "last_2fa_resend",
        "created_at",
        "updated_at",
    )
    @classmethod
    def _aware(cls, v):
        return ensure_utc(v)

    @property
    def active_two_factor_method(self) -> TwoFactorMethod:
        """The method login must challenge with; NONE whenever 2FA is off."""
        if not self.is_2fa_enabled:
            return TwoFactorMethod.NONE
        return self.two_factor_method

    def is_locked(self, now: datetime) -> bool:
        return is_future(self.lock_until, now)
