"""Tests for services/auth_service.py."""

from __future__ import annotations

from datetime import timedelta

import pytest
from pymongo.errors import DuplicateKeyError

from errors import (
    AccountLockedError,
    ConflictError,
    EmailNotVerifiedError,
    ExternalServiceError,
    InvalidCredentialsError,
    InvalidMethodError,
    NotFoundError,
    TokenExpiredOrInvalidError,
    ValidationError,
)
from schemas.models.user import TwoFactorMethod
from services.auth_service import AuthService, SessionIssued, TwoFactorChallenge
from shared.crypto import hash_token, verify_password


@pytest.fixture
def auth(user_repo, email_provider, session_tokens, two_factor) -> AuthService:
    return AuthService(
        user_repo, email_provider, session_tokens, two_factor, "http://client.test/"
    )


def _token_from_url(url: str) -> str:
    return url.rsplit("/", 1)[-1]


# ---------------------------------------------------------------------------
# Registration & verification
# ---------------------------------------------------------------------------


class TestRegister:
    async def test_creates_unverified_user_and_emails_link(
        self, clock, auth, user_repo, email_provider
    ):
        user = await auth.register("  Ada  ", "Ada@Example.COM", "secret1")

        stored = user_repo.get(user.id)
        assert stored.email == "ada@example.com"
        assert stored.name == "Ada"
        assert stored.is_verified is False
        assert verify_password("secret1", stored.password_hash)

        mail = email_provider.last
        assert mail["kind"] == "verification"
        assert mail["url"].startswith("http://client.test/verify-email/")
        plaintext = _token_from_url(mail["url"])
        assert stored.verification_token == hash_token(plaintext)

    async def test_duplicate_email_conflicts(self, clock, auth, make_user):
        make_user(email="ada@example.com")
        with pytest.raises(ConflictError, match="User exists"):
            await auth.register("Ada", "ADA@example.com", "secret1")

    async def test_insert_race_conflicts(self, clock, auth, user_repo, mocker):
        mocker.patch.object(user_repo, "insert", side_effect=DuplicateKeyError("dup"))
        with pytest.raises(ConflictError):
            await auth.register("Ada", "ada@example.com", "secret1")

    @pytest.mark.parametrize(
        "name,password,field",
        [("", "secret1", "name"), ("Ada", "short", "password"), ("Ada", "", "password")],
        ids=["missing_name", "short_password", "missing_password"],
    )
    async def test_rejects_invalid_input(self, clock, auth, name, password, field):
        with pytest.raises(ValidationError) as exc_info:
            await auth.register(name, "ada@example.com", password)
        assert exc_info.value.field == field

    async def test_email_failure_is_reported(self, clock, auth, user_repo, email_provider):
        email_provider.succeed = False
        with pytest.raises(ExternalServiceError):
            await auth.register("Ada", "ada@example.com", "secret1")
        assert len(user_repo.users) == 1


class TestVerifyEmail:
    async def test_valid_token_verifies_and_issues_session(
        self, clock, auth, user_repo, email_provider, session_tokens
    ):
        user = await auth.register("Ada", "ada@example.com", "secret1")
        token = _token_from_url(email_provider.last["url"])

        result = await auth.verify_email(token)

        assert isinstance(result, SessionIssued)
        assert session_tokens.verify(result.token)["sub"] == str(user.id)
        stored = user_repo.get(user.id)
        assert stored.is_verified is True
        assert stored.verification_token is None

    async def test_token_is_single_use(self, clock, auth, email_provider):
        await auth.register("Ada", "ada@example.com", "secret1")
        token = _token_from_url(email_provider.last["url"])
        await auth.verify_email(token)

        with pytest.raises(TokenExpiredOrInvalidError):
            await auth.verify_email(token)

    async def test_expired_token_rejected(self, clock, auth, make_user):
        make_user(
            is_verified=False,
            verification_token=hash_token("abc"),
            verification_expires=clock.now - timedelta(seconds=1),
        )
        with pytest.raises(TokenExpiredOrInvalidError):
            await auth.verify_email("abc")


class TestResendVerification:
    async def test_issues_new_link(self, clock, auth, user_repo, email_provider, make_user):
        user = make_user(is_verified=False)

        await auth.resend_verification("ada@example.com")

        token = _token_from_url(email_provider.last["url"])
        assert user_repo.get(user.id).verification_token == hash_token(token)

    async def test_unknown_user(self, clock, auth):
        with pytest.raises(NotFoundError):
            await auth.resend_verification("ghost@example.com")

    async def test_already_verified(self, clock, auth, make_user):
        make_user(is_verified=True)
        with pytest.raises(ValidationError, match="already verified"):
            await auth.resend_verification("ada@example.com")


# ---------------------------------------------------------------------------
# Login
# ---------------------------------------------------------------------------


class TestLogin:
    async def test_without_2fa_issues_session(self, clock, auth, make_user, password, email_provider):
        user = make_user()

        outcome = await auth.login("ada@example.com", password)

        assert isinstance(outcome, SessionIssued)
        assert outcome.user.id == user.id
        assert email_provider.sent == []

    async def test_email_method_sends_code(self, clock, auth, email_2fa_user, password, email_provider):
        outcome = await auth.login("ada@example.com", password)

        assert outcome == TwoFactorChallenge(TwoFactorMethod.EMAIL)
        assert email_provider.last["kind"] == "2fa"

    async def test_totp_method_only_challenges(self, clock, auth, make_user, password, email_provider):
        make_user(
            is_2fa_enabled=True, two_factor_method=TwoFactorMethod.TOTP, two_factor_secret="JBSWY3DPEHPK3PXP"
        )

        outcome = await auth.login("ada@example.com", password)

        assert outcome == TwoFactorChallenge(TwoFactorMethod.TOTP)
        assert email_provider.sent == []

    async def test_disabled_flag_overrides_stored_method(self, clock, auth, make_user, password):
        make_user(is_2fa_enabled=False, two_factor_method=TwoFactorMethod.EMAIL)
        assert isinstance(await auth.login("ada@example.com", password), SessionIssued)

    @pytest.mark.parametrize(
        "email,pwd",
        [("ada@example.com", "wrong-password"), ("ghost@example.com", "correct horse")],
        ids=["wrong_password", "unknown_email"],
    )
    async def test_bad_credentials_share_one_error(self, clock, auth, make_user, email, pwd):
        make_user()
        with pytest.raises(InvalidCredentialsError, match="Invalid credentials"):
            await auth.login(email, pwd)

    async def test_unverified_user_rejected(self, clock, auth, make_user, password):
        make_user(is_verified=False)
        with pytest.raises(EmailNotVerifiedError):
            await auth.login("ada@example.com", password)

    async def test_locked_email_user_can_still_reach_challenge(
        self, clock, auth, two_factor, make_user, password, email_provider
    ):
        make_user(
            is_2fa_enabled=True,
            two_factor_method=TwoFactorMethod.EMAIL,
            lock_until=clock.now + timedelta(minutes=5),
        )

        outcome = await auth.login("ada@example.com", password)

        assert isinstance(outcome, TwoFactorChallenge)
        with pytest.raises(AccountLockedError):
            await two_factor.verify_email_code("ada@example.com", email_provider.last["code"])


# ---------------------------------------------------------------------------
# Password reset
# ---------------------------------------------------------------------------


class TestPasswordReset:
    async def test_forgot_emails_reset_link(self, clock, auth, user_repo, make_user, email_provider):
        user = make_user()

        await auth.forgot_password("ADA@example.com")

        mail = email_provider.last
        assert mail["kind"] == "reset"
        assert mail["url"].startswith("http://client.test/reset-password/")
        assert user_repo.get(user.id).reset_password_token == hash_token(_token_from_url(mail["url"]))

    async def test_forgot_unknown_email_is_silent(self, clock, auth, email_provider):
        await auth.forgot_password("ghost@example.com")
        assert email_provider.sent == []

    async def test_forgot_send_failure_is_silent(self, clock, auth, make_user, email_provider):
        make_user()
        email_provider.succeed = False
        await auth.forgot_password("ada@example.com")

    async def test_reset_changes_password_once(self, clock, auth, user_repo, make_user, email_provider):
        user = make_user()
        await auth.forgot_password("ada@example.com")
        token = _token_from_url(email_provider.last["url"])

        await auth.reset_password(token, "brand-new-pass")

        stored = user_repo.get(user.id)
        assert verify_password("brand-new-pass", stored.password_hash)
        assert stored.reset_password_token is None
        with pytest.raises(TokenExpiredOrInvalidError) as exc_info:
            await auth.reset_password(token, "another-pass")
        assert exc_info.value.details == {"reason": "invalid"}

    async def test_reset_with_expired_token(self, clock, auth, make_user):
        make_user(
            reset_password_token=hash_token("tok"),
            reset_password_expires=clock.now - timedelta(minutes=1),
        )
        with pytest.raises(TokenExpiredOrInvalidError) as exc_info:
            await auth.reset_password("tok", "brand-new-pass")
        assert exc_info.value.details == {"reason": "expired"}

    async def test_reset_validates_password_first(self, clock, auth):
        with pytest.raises(ValidationError):
            await auth.reset_password("tok", "123")


# ---------------------------------------------------------------------------
# Profile & 2FA toggle
# ---------------------------------------------------------------------------


class TestProfile:
    async def test_update_name_and_role(self, clock, auth, make_user):
        user = make_user()
        updated = await auth.update_profile(user, name=" Grace ", role="teacher")
        assert updated.name == "Grace"
        assert updated.role == "teacher"

    async def test_uploaded_avatar_wins_over_url(self, clock, auth, make_user):
        user = make_user()
        updated = await auth.update_profile(
            user, avatar="https://cdn.test/a.png", avatar_filename="1700-me.png"
        )
        assert updated.avatar == "uploads/1700-me.png"

    async def test_null_avatar_clears_it(self, clock, auth, make_user):
        user = make_user(avatar="uploads/old.png")
        updated = await auth.update_profile(user, avatar="null")
        assert updated.avatar is None

    async def test_no_fields_returns_current(self, clock, auth, make_user):
        user = make_user(name="Ada")
        assert (await auth.update_profile(user)).name == "Ada"

    async def test_get_profile_missing_user(self, clock, auth, make_user, user_repo):
        user = make_user()
        del user_repo.users[user.id]
        with pytest.raises(NotFoundError):
            await auth.get_profile(user)


class TestToggle2FA:
    async def test_enable_email(self, clock, auth, make_user):
        user = make_user(two_factor_secret="OLDSECRET")
        updated = await auth.toggle_2fa(user, True, "email")
        assert updated.active_two_factor_method is TwoFactorMethod.EMAIL
        assert updated.two_factor_secret is None

    async def test_totp_must_use_enrollment(self, clock, auth, make_user):
        with pytest.raises(InvalidMethodError, match="enable-totp"):
            await auth.toggle_2fa(make_user(), True, "totp")

    @pytest.mark.parametrize("method", ["sms", None, ""], ids=["sms", "none", "empty"])
    async def test_unknown_method(self, clock, auth, make_user, method):
        with pytest.raises(InvalidMethodError, match="Invalid 2FA method"):
            await auth.toggle_2fa(make_user(), True, method)

    async def test_disable_clears_method_and_secret(self, clock, auth, make_user):
        user = make_user(
            is_2fa_enabled=True,
            two_factor_method=TwoFactorMethod.TOTP,
            two_factor_secret="JBSWY3DPEHPK3PXP",
        )
        updated = await auth.toggle_2fa(user, False, None)
        assert updated.is_2fa_enabled is False
        assert updated.two_factor_method is TwoFactorMethod.NONE
        assert updated.two_factor_secret is None
