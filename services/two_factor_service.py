"""
Two-factor authentication: email one-time codes and TOTP authenticator apps.

Both methods share one failure counter on the user record. Every check runs
in the same order:

1. a pending challenge (email) or a configured secret (totp) must exist,
   otherwise NotInitiatedError
2. an active lockout rejects the attempt without consuming it
3. the code is compared; a failure is counted atomically and the threshold
   switches the response from InvalidCodeError to AccountLockedError
4. success clears the counter and lockout and finalizes the method

Wrong and expired email codes produce the same response; the log records
which one it was.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import NoReturn

import pyotp

from config import TwoFactorSettings
from errors import (
    AccountLockedError,
    ExternalServiceError,
    InvalidCodeError,
    NotInitiatedError,
    TooSoonError,
)
from infrastructure.email.protocol import EmailProvider
from infrastructure.qr import qr_data_url
from repositories.user_repository import UserRepository
from schemas.models.user import TwoFactorMethod, UserDoc
from services.token_service import SessionTokenService, issue_otp
from shared.crypto import token_matches
from shared.datetime_utils import is_future, minutes_until, utcnow
from shared.generators import generate_totp_secret
from shared.logging import get_logger
from shared.validators import normalize_email

log = get_logger(__name__)


@dataclass(frozen=True)
class VerifiedSession:
    user: UserDoc
    token: str


@dataclass(frozen=True)
class TotpEnrollment:
    secret: str
    otpauth_url: str
    qr_code_url: str


class TwoFactorService:
    def __init__(
        self,
        user_repo: UserRepository,
        email_provider: EmailProvider,
        session_tokens: SessionTokenService,
        settings: TwoFactorSettings,
    ) -> None:
        self._users = user_repo
        self._email = email_provider
        self._sessions = session_tokens
        self._settings = settings

    @property
    def _otp_ttl(self) -> timedelta:
        return timedelta(seconds=self._settings.otp_ttl_seconds)

    # ── Email one-time codes ─────────────────────────────────────────────────

    async def start_email_challenge(self, user: UserDoc) -> None:
        """Issue a login code, persist its hash, then email the plaintext.

        The code is stored before sending, so a delivery failure leaves a
        valid code behind that the user can get again through resend.
        """
        now = utcnow()
        otp = issue_otp(self._otp_ttl, now)
        await self._users.set_two_factor_code(user.id, otp.hashed, otp.expires_at)
        log.info("two_factor_code_issued", user_id=str(user.id))
        await self._deliver_code(user, otp.plaintext, resent=False)

    async def verify_email_code(self, email: str, code: str) -> VerifiedSession:
        user = await self._users.find_by_email(normalize_email(email))
        if user is None or not user.temp_2fa_code:
            raise NotInitiatedError("2FA not initiated")

        now = utcnow()
        self._ensure_not_locked(user, now)

        if not token_matches(code, user.temp_2fa_code):
            await self._record_failure(user, now, TwoFactorMethod.EMAIL, "wrong_code")
        if not is_future(user.temp_2fa_expires, now):
            await self._record_failure(user, now, TwoFactorMethod.EMAIL, "expired")

        updated = await self._users.record_two_factor_success(
            user.id, TwoFactorMethod.EMAIL, now, expected_code_hash=user.temp_2fa_code
        )
        if updated is None:
            await self._ensure_still_unlocked(user, now)
            # another request redeemed or replaced this code first
            log.warning("two_factor_code_already_used", user_id=str(user.id))
            raise InvalidCodeError()

        log.info("two_factor_verified", user_id=str(user.id), method="email")
        return VerifiedSession(updated, self._sessions.issue(str(updated.id), amr=["pwd", "otp"]))

    async def resend_email_code(self, email: str) -> None:
        user = await self._users.find_by_email(normalize_email(email))
        if user is None or user.active_two_factor_method is not TwoFactorMethod.EMAIL:
            raise NotInitiatedError("2FA not enabled for this user")

        now = utcnow()
        if user.is_locked(now):
            raise AccountLockedError(
                "Account locked. Cannot resend code right now.",
                retry_after_minutes=minutes_until(user.lock_until, now),
            )

        otp = issue_otp(self._otp_ttl, now)
        updated = await self._users.claim_resend_slot(
            user.id,
            now,
            timedelta(seconds=self._settings.resend_interval_seconds),
            otp.hashed,
            otp.expires_at,
        )
        if updated is None:
            raise TooSoonError(
                f"Please wait {self._settings.resend_interval_seconds}s before requesting again"
            )

        log.info("two_factor_code_resent", user_id=str(user.id))
        await self._deliver_code(user, otp.plaintext, resent=True)

    async def _deliver_code(self, user: UserDoc, code: str, *, resent: bool) -> None:
        sent = await self._email.send_two_factor_code(user.email, user.name, code, resent=resent)
        if not sent:
            raise ExternalServiceError("Failed to send 2FA code email")

    # ── TOTP ─────────────────────────────────────────────────────────────────

    async def verify_totp(self, email: str, code: str) -> VerifiedSession:
        user = await self._users.find_by_email(normalize_email(email))
        if user is None or not user.two_factor_secret:
            raise NotInitiatedError("TOTP not set up")

        updated = await self._check_totp(user, code)
        log.info("two_factor_verified", user_id=str(user.id), method="totp")
        return VerifiedSession(updated, self._sessions.issue(str(updated.id), amr=["pwd", "otp"]))

    async def enable_totp(self, user: UserDoc) -> TotpEnrollment:
        """Generate and store a fresh secret; enrollment completes on confirmation."""
        secret = generate_totp_secret()
        await self._users.update(
            user.id,
            {
                "two_factor_secret": secret,
                "two_factor_method": TwoFactorMethod.TOTP.value,
                "is_2fa_enabled": True,
                "temp_2fa_code": None,
                "temp_2fa_expires": None,
            },
        )
        otpauth_url = pyotp.TOTP(secret).provisioning_uri(
            name=user.email, issuer_name=self._settings.totp_issuer
        )
        log.info("totp_enrollment_started", user_id=str(user.id))
        return TotpEnrollment(secret, otpauth_url, qr_data_url(otpauth_url))

    async def confirm_totp_setup(self, user: UserDoc, code: str) -> UserDoc:
        current = await self._users.find_by_id(user.id)
        if current is None or not current.two_factor_secret:
            raise NotInitiatedError("TOTP setup not initiated")

        updated = await self._check_totp(current, code)
        log.info("totp_enrollment_confirmed", user_id=str(user.id))
        return updated

    def totp_matches(self, secret: str, code: str, now: datetime) -> bool:
        """RFC 6238 check (30 s step, 6 digits) allowing drift of ±valid_window steps."""
        if not code or not code.isdigit():
            return False
        return pyotp.TOTP(secret).verify(
            code, for_time=now, valid_window=self._settings.totp_valid_window
        )

    async def _check_totp(self, user: UserDoc, code: str) -> UserDoc:
        now = utcnow()
        self._ensure_not_locked(user, now)

        if not self.totp_matches(user.two_factor_secret, code, now):
            await self._record_failure(user, now, TwoFactorMethod.TOTP, "wrong_code")

        updated = await self._users.record_two_factor_success(user.id, TwoFactorMethod.TOTP, now)
        if updated is None:
            await self._ensure_still_unlocked(user, now)
            raise NotInitiatedError("TOTP not set up")
        return updated

    # ── Lockout ──────────────────────────────────────────────────────────────

    def _ensure_not_locked(self, user: UserDoc, now: datetime) -> None:
        if user.is_locked(now):
            minutes = minutes_until(user.lock_until, now)
            log.warning("two_factor_attempt_while_locked", user_id=str(user.id))
            raise AccountLockedError(
                f"Account temporarily locked. Try again in {minutes} minutes.",
                retry_after_minutes=minutes,
            )

    async def _ensure_still_unlocked(self, user: UserDoc, now: datetime) -> None:
        """Re-read *user* and raise if a concurrent failure locked the account."""
        current = await self._users.find_by_id(user.id)
        if current is not None:
            self._ensure_not_locked(current, now)

    async def _record_failure(
        self, user: UserDoc, now: datetime, method: TwoFactorMethod, reason: str
    ) -> NoReturn:
        updated = await self._users.record_two_factor_failure(
            user.id,
            now,
            self._settings.max_failed_attempts,
            timedelta(minutes=self._settings.lock_minutes),
        )
        if updated is None:
            await self._ensure_still_unlocked(user, now)
            raise InvalidCodeError()

        log.warning(
            "two_factor_failed",
            user_id=str(user.id),
            method=method.value,
            reason=reason,
            failed_attempts=updated.failed_2fa_attempts,
        )
        if updated.failed_2fa_attempts >= self._settings.max_failed_attempts:
            log.warning("two_factor_locked", user_id=str(user.id), lock_minutes=self._settings.lock_minutes)
            raise AccountLockedError(
                f"Too many failed attempts. Account locked for {self._settings.lock_minutes} minutes.",
                retry_after_minutes=self._settings.lock_minutes,
            )
        raise InvalidCodeError()
