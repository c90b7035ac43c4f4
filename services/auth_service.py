"""
Account lifecycle: registration, email verification, login, password reset,
profile and the two-factor on/off switch.

Login is a small state machine over the user's effective 2FA method:

    credentials checked ─┬─ method NONE  → SessionIssued
                         ├─ method EMAIL → code emailed, TwoFactorChallenge
                         └─ method TOTP  → TwoFactorChallenge

Verification and reset links may say "expired" distinctly from "invalid";
they are single-use 160-bit tokens so that distinction is not a guessing aid.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union

from pymongo.errors import DuplicateKeyError

from errors import (
    ConflictError,
    EmailNotVerifiedError,
    ExternalServiceError,
    InvalidCredentialsError,
    InvalidMethodError,
    NotFoundError,
    TokenExpiredOrInvalidError,
    ValidationError,
)
from infrastructure.email.protocol import EmailProvider
from repositories.user_repository import UserRepository
from schemas.models.user import TwoFactorMethod, UserDoc
from services.token_service import (
    RESET_TOKEN_TTL,
    VERIFICATION_TOKEN_TTL,
    SessionTokenService,
    issue_secure_token,
)
from services.two_factor_service import TwoFactorService
from shared.crypto import hash_password, hash_token, verify_password
from shared.datetime_utils import is_future, utcnow
from shared.logging import get_logger
from shared.validators import normalize_email, validate_password

log = get_logger(__name__)


@dataclass(frozen=True)
class SessionIssued:
    user: UserDoc
    token: str


@dataclass(frozen=True)
class TwoFactorChallenge:
    method: TwoFactorMethod


LoginOutcome = Union[SessionIssued, TwoFactorChallenge]


class AuthService:
    def __init__(
        self,
        user_repo: UserRepository,
        email_provider: EmailProvider,
        session_tokens: SessionTokenService,
        two_factor: TwoFactorService,
        client_url: str,
    ) -> None:
        self._users = user_repo
        self._email = email_provider
        self._sessions = session_tokens
        self._two_factor = two_factor
        self._client_url = client_url.rstrip("/")

    # ── Registration & email verification ────────────────────────────────────

    async def register(self, name: str, email: str, password: str) -> UserDoc:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Name is required", field="name")
        self._check_password(password)

        email = normalize_email(email)
        if await self._users.email_exists(email):
            raise ConflictError("User exists", field="email")

        token = issue_secure_token(VERIFICATION_TOKEN_TTL)
        user = UserDoc(
            email=email,
            name=name,
            password_hash=hash_password(password),
            verification_token=token.hashed,
            verification_expires=token.expires_at,
        )
        try:
            user = await self._users.insert(user)
        except DuplicateKeyError:
            raise ConflictError("User exists", field="email")

        log.info("user_registered", user_id=str(user.id))
        await self._send_verification(user, token.plaintext)
        return user

    async def verify_email(self, token: str) -> SessionIssued:
        user = await self._users.redeem_verification_token(hash_token(token), utcnow())
        if user is None:
            raise TokenExpiredOrInvalidError(
                "Invalid or expired token. Please request a new verification email."
            )
        log.info("email_verified", user_id=str(user.id))
        return SessionIssued(user, self._sessions.issue(str(user.id)))

    async def resend_verification(self, email: str) -> None:
        user = await self._users.find_by_email(normalize_email(email))
        if user is None:
            raise NotFoundError("User not found")
        if user.is_verified:
            raise ValidationError("User is already verified")

        token = issue_secure_token(VERIFICATION_TOKEN_TTL)
        await self._users.set_verification_token(user.id, token.hashed, token.expires_at)
        await self._send_verification(user, token.plaintext)

    async def _send_verification(self, user: UserDoc, plaintext: str) -> None:
        verify_url = f"{self._client_url}/verify-email/{plaintext}"
        if not await self._email.send_verification_email(user.email, user.name, verify_url):
            raise ExternalServiceError("Verification email could not be sent")

    # ── Login ────────────────────────────────────────────────────────────────

    async def login(self, email: str, password: str) -> LoginOutcome:
        user = await self._users.find_by_email(normalize_email(email))
        if user is None or not verify_password(password, user.password_hash or ""):
            log.info("login_failed", reason="invalid_credentials")
            raise InvalidCredentialsError()
        if not user.is_verified:
            raise EmailNotVerifiedError()

        method = user.active_two_factor_method
        if method is TwoFactorMethod.NONE:
            log.info("login_success", user_id=str(user.id))
            return SessionIssued(user, self._sessions.issue(str(user.id)))
        if method is TwoFactorMethod.EMAIL:
            await self._two_factor.start_email_challenge(user)
            return TwoFactorChallenge(method)
        if method is TwoFactorMethod.TOTP:
            return TwoFactorChallenge(method)
        raise ValueError(f"Unhandled two-factor method: {method!r}")

    # ── Password reset ───────────────────────────────────────────────────────

    async def forgot_password(self, email: str) -> None:
        """Email a reset link when the account exists.

        Unknown addresses and delivery failures return normally so the
        response never reveals whether an account exists.
        """
        user = await self._users.find_by_email(normalize_email(email))
        if user is None:
            log.info("password_reset_requested", found=False)
            return

        token = issue_secure_token(RESET_TOKEN_TTL)
        await self._users.set_reset_token(user.id, token.hashed, token.expires_at)
        reset_url = f"{self._client_url}/reset-password/{token.plaintext}"
        sent = await self._email.send_password_reset_email(user.email, user.name, reset_url)
        log.info("password_reset_requested", found=True, user_id=str(user.id), sent=sent)

    async def reset_password(self, token: str, password: str) -> None:
        self._check_password(password)
        token_hash = hash_token(token)
        now = utcnow()

        holder = await self._users.find_by_reset_token(token_hash)
        if holder is None:
            raise TokenExpiredOrInvalidError(
                "Invalid reset token", details={"reason": "invalid"}
            )
        if not is_future(holder.reset_password_expires, now):
            raise TokenExpiredOrInvalidError(
                "Reset token has expired", details={"reason": "expired"}
            )

        user = await self._users.redeem_reset_token(token_hash, now, hash_password(password))
        if user is None:
            # redeemed by a concurrent request
            raise TokenExpiredOrInvalidError(
                "Invalid reset token", details={"reason": "invalid"}
            )
        log.info("password_reset_completed", user_id=str(user.id))

    # ── Profile ──────────────────────────────────────────────────────────────

    async def get_profile(self, user: UserDoc) -> UserDoc:
        current = await self._users.find_by_id(user.id)
        if current is None:
            raise NotFoundError("User not found")
        return current

    async def update_profile(
        self,
        user: UserDoc,
        *,
        name: Optional[str] = None,
        role: Optional[str] = None,
        avatar: Optional[str] = None,
        avatar_filename: Optional[str] = None,
    ) -> UserDoc:
        """Update the given profile fields.

        ``avatar_filename`` (a freshly stored upload) wins over ``avatar``;
        ``avatar="null"`` removes the avatar, any other value is kept as a URL.
        """
        fields: dict = {}
        if name and name.strip():
            fields["name"] = name.strip()
        if role and role.strip():
            fields["role"] = role.strip()
        if avatar_filename:
            fields["avatar"] = f"uploads/{avatar_filename}"
        elif avatar == "null":
            fields["avatar"] = None
        elif avatar:
            fields["avatar"] = avatar

        if not fields:
            return await self.get_profile(user)
        updated = await self._users.update(user.id, fields)
        if updated is None:
            raise NotFoundError("User not found")
        log.info("profile_updated", user_id=str(user.id), fields=sorted(fields))
        return updated

    async def toggle_2fa(self, user: UserDoc, enable: bool, method: Optional[str]) -> UserDoc:
        if enable:
            if method == TwoFactorMethod.EMAIL.value:
                fields = {
                    "is_2fa_enabled": True,
                    "two_factor_method": TwoFactorMethod.EMAIL.value,
                    "two_factor_secret": None,
                    "temp_2fa_code": None,
                    "temp_2fa_expires": None,
                }
            elif method == TwoFactorMethod.TOTP.value:
                raise InvalidMethodError("Use /enable-totp endpoint for TOTP setup", field="method")
            else:
                raise InvalidMethodError("Invalid 2FA method", field="method")
        else:
            fields = {
                "is_2fa_enabled": False,
                "two_factor_method": TwoFactorMethod.NONE.value,
                "two_factor_secret": None,
                "temp_2fa_code": None,
                "temp_2fa_expires": None,
            }

        updated = await self._users.update(user.id, fields)
        if updated is None:
            raise NotFoundError("User not found")
        log.info(
            "two_factor_toggled",
            user_id=str(user.id),
            enabled=enable,
            method=updated.two_factor_method.value,
        )
        return updated

    def _check_password(self, password: str) -> None:
        ok, problems = validate_password(password)
        if not ok:
            raise ValidationError(problems[0], field="password", details=problems)
