"""
Shared test configuration.

Patches dotenv so pydantic-settings never reads the project's real .env file
during tests. Tests control config exclusively through monkeypatch.setenv().

Also provides an in-memory UserRepository with the same conditional-update
semantics as the MongoDB one, a controllable clock and a recording email
provider for the authentication and two-factor service tests.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import pytest
from bson import ObjectId

from config import JWTSettings, TwoFactorSettings
from schemas.models.user import TwoFactorMethod, UserDoc
from services.token_service import SessionTokenService
from services.two_factor_service import TwoFactorService
from shared.crypto import hash_password


@pytest.fixture(autouse=True)
def disable_dotenv_loading(monkeypatch):
    """Prevent pydantic-settings from loading .env files in all tests."""
    import pydantic_settings.sources.providers.dotenv as ps_dotenv

    monkeypatch.setattr(ps_dotenv, "dotenv_values", lambda *a, **kw: {})


# ── Fakes ─────────────────────────────────────────────────────────────────────


class FakeUserRepository:
    """Dict-backed stand-in for UserRepository."""

    def __init__(self) -> None:
        self.users: dict[ObjectId, UserDoc] = {}
        self.failure_calls = 0

    def _copy(self, user: Optional[UserDoc]) -> Optional[UserDoc]:
        return user.model_copy(deep=True) if user is not None else None

    def _apply(self, user_id: ObjectId, fields: dict[str, Any]) -> UserDoc:
        data = self.users[user_id].model_dump(by_alias=True)
        data.update(fields)
        self.users[user_id] = UserDoc.model_validate(data)
        return self._copy(self.users[user_id])

    def add(self, **fields) -> UserDoc:
        fields.setdefault("email", "ada@example.com")
        fields.setdefault("name", "Ada")
        fields.setdefault("is_verified", True)
        user = UserDoc(id=ObjectId(), **fields)
        self.users[user.id] = user
        return self._copy(user)

    def get(self, user_id: ObjectId) -> UserDoc:
        return self._copy(self.users[user_id])

    async def find_by_email(self, email: str) -> Optional[UserDoc]:
        return self._copy(next((u for u in self.users.values() if u.email == email), None))

    async def find_by_id(self, user_id: ObjectId) -> Optional[UserDoc]:
        return self._copy(self.users.get(user_id))

    async def email_exists(self, email: str) -> bool:
        return any(u.email == email for u in self.users.values())

    async def insert(self, doc: UserDoc) -> UserDoc:
        doc.id = ObjectId()
        self.users[doc.id] = doc.model_copy(deep=True)
        return doc

    async def update(self, user_id: ObjectId, fields: dict[str, Any]) -> Optional[UserDoc]:
        if user_id not in self.users:
            return None
        return self._apply(user_id, fields)

    async def set_verification_token(self, user_id, token_hash, expires_at) -> None:
        self._apply(user_id, {"verification_token": token_hash, "verification_expires": expires_at})

    async def redeem_verification_token(self, token_hash, now) -> Optional[UserDoc]:
        for u in self.users.values():
            if u.verification_token == token_hash and u.verification_expires > now:
                return self._apply(
                    u.id,
                    {"is_verified": True, "verification_token": None, "verification_expires": None},
                )
        return None

    async def set_reset_token(self, user_id, token_hash, expires_at) -> None:
        self._apply(user_id, {"reset_password_token": token_hash, "reset_password_expires": expires_at})

    async def find_by_reset_token(self, token_hash) -> Optional[UserDoc]:
        return self._copy(
            next((u for u in self.users.values() if u.reset_password_token == token_hash), None)
        )

    async def redeem_reset_token(self, token_hash, now, password_hash) -> Optional[UserDoc]:
        for u in self.users.values():
            if u.reset_password_token == token_hash and u.reset_password_expires > now:
                return self._apply(
                    u.id,
                    {
                        "password_hash": password_hash,
                        "reset_password_token": None,
                        "reset_password_expires": None,
                    },
                )
        return None

    async def set_two_factor_code(self, user_id, code_hash, expires_at) -> None:
        self._apply(user_id, {"temp_2fa_code": code_hash, "temp_2fa_expires": expires_at})

    async def claim_resend_slot(self, user_id, now, min_interval, code_hash, expires_at):
        user = self.users.get(user_id)
        if user is None:
            return None
        if user.last_2fa_resend is not None and user.last_2fa_resend > now - min_interval:
            return None
        return self._apply(
            user_id,
            {"temp_2fa_code": code_hash, "temp_2fa_expires": expires_at, "last_2fa_resend": now},
        )

    async def record_two_factor_failure(self, user_id, now, max_attempts, lock_duration):
        self.failure_calls += 1
        user = self.users.get(user_id)
        if user is None or user.is_locked(now):
            return None
        attempts = user.failed_2fa_attempts + 1
        fields: dict[str, Any] = {"failed_2fa_attempts": attempts}
        if attempts >= max_attempts:
            fields["lock_until"] = now + lock_duration
        return self._apply(user_id, fields)

    async def record_two_factor_success(self, user_id, method, now, expected_code_hash=None):
        user = self.users.get(user_id)
        if user is None or user.is_locked(now):
            return None
        fields: dict[str, Any] = {
            "failed_2fa_attempts": 0,
            "lock_until": None,
            "is_2fa_enabled": True,
            "two_factor_method": method.value,
        }
        if expected_code_hash is not None:
            if user.temp_2fa_code != expected_code_hash:
                return None
            fields.update(temp_2fa_code=None, temp_2fa_expires=None)
        return self._apply(user_id, fields)


class RecordingEmailProvider:
    """Collects outgoing mail instead of sending it."""

    def __init__(self, succeed: bool = True) -> None:
        self.succeed = succeed
        self.sent: list[dict[str, Any]] = []

    async def send_verification_email(self, email, user_name, verify_url) -> bool:
        self.sent.append({"kind": "verification", "to": email, "url": verify_url})
        return self.succeed

    async def send_password_reset_email(self, email, user_name, reset_url) -> bool:
        self.sent.append({"kind": "reset", "to": email, "url": reset_url})
        return self.succeed

    async def send_two_factor_code(self, email, user_name, code, resent=False) -> bool:
        self.sent.append({"kind": "2fa", "to": email, "code": code, "resent": resent})
        return self.succeed

    @property
    def last(self) -> dict[str, Any]:
        return self.sent[-1]


class Clock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


# ── Fixtures ──────────────────────────────────────────────────────────────────


@pytest.fixture
def clock(monkeypatch) -> Clock:
    """Freeze utcnow() inside the services at a fixed instant."""
    c = Clock(datetime(2025, 3, 10, 12, 0, 0, tzinfo=timezone.utc))
    for module in (
        "services.two_factor_service",
        "services.auth_service",
    ):
        monkeypatch.setattr(f"{module}.utcnow", c)
    return c


@pytest.fixture
def user_repo() -> FakeUserRepository:
    return FakeUserRepository()


@pytest.fixture
def email_provider() -> RecordingEmailProvider:
    return RecordingEmailProvider()


@pytest.fixture
def jwt_settings() -> JWTSettings:
    return JWTSettings(jwt_secret="unit-test-secret-with-enough-length-0123456789")


@pytest.fixture
def session_tokens(jwt_settings) -> SessionTokenService:
    return SessionTokenService(jwt_settings)


@pytest.fixture
def two_factor_settings() -> TwoFactorSettings:
    return TwoFactorSettings()


@pytest.fixture
def two_factor(user_repo, email_provider, session_tokens, two_factor_settings) -> TwoFactorService:
    return TwoFactorService(user_repo, email_provider, session_tokens, two_factor_settings)


@pytest.fixture
def password() -> str:
    return "correct horse"


@pytest.fixture
def make_user(user_repo, password):
    """Factory adding a verified user with a known password to the fake repo."""
    hashed = hash_password(password)

    def _make(**fields) -> UserDoc:
        fields.setdefault("password_hash", hashed)
        return user_repo.add(**fields)

    return _make


@pytest.fixture
def email_2fa_user(make_user) -> UserDoc:
    return make_user(is_2fa_enabled=True, two_factor_method=TwoFactorMethod.EMAIL)
