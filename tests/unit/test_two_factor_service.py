"""Tests for services/two_factor_service.py — email codes, TOTP and lockout."""

from __future__ import annotations

from datetime import timedelta

import pyotp
import pytest

from errors import (
    AccountLockedError,
    ExternalServiceError,
    InvalidCodeError,
    NotInitiatedError,
    TooSoonError,
)
from schemas.models.user import TwoFactorMethod
from shared.crypto import hash_token


async def _issue_code(two_factor, email_provider, user) -> str:
    await two_factor.start_email_challenge(user)
    return email_provider.last["code"]


def _wrong(code: str) -> str:
    return "000000" if code != "000000" else "111111"


# ---------------------------------------------------------------------------
# Email one-time codes
# ---------------------------------------------------------------------------


class TestEmailCodeChallenge:
    async def test_start_stores_hash_and_emails_plaintext(
        self, clock, two_factor, user_repo, email_provider, email_2fa_user
    ):
        code = await _issue_code(two_factor, email_provider, email_2fa_user)

        stored = user_repo.get(email_2fa_user.id)
        assert len(code) == 6 and code.isdigit()
        assert stored.temp_2fa_code == hash_token(code)
        assert stored.temp_2fa_code != code
        assert stored.temp_2fa_expires == clock.now + timedelta(minutes=5)
        assert email_provider.last["resent"] is False

    async def test_correct_code_within_ttl_issues_session(
        self, clock, two_factor, user_repo, email_provider, email_2fa_user, session_tokens
    ):
        code = await _issue_code(two_factor, email_provider, email_2fa_user)
        clock.advance(minutes=4, seconds=59)

        result = await two_factor.verify_email_code(email_2fa_user.email, code)

        assert session_tokens.verify(result.token)["sub"] == str(email_2fa_user.id)
        stored = user_repo.get(email_2fa_user.id)
        assert stored.temp_2fa_code is None
        assert stored.temp_2fa_expires is None
        assert stored.failed_2fa_attempts == 0
        assert stored.lock_until is None

    async def test_email_lookup_is_case_insensitive(
        self, clock, two_factor, email_provider, email_2fa_user
    ):
        code = await _issue_code(two_factor, email_provider, email_2fa_user)
        result = await two_factor.verify_email_code("  ADA@Example.com ", code)
        assert result.user.id == email_2fa_user.id

    async def test_code_is_single_use(
        self, clock, two_factor, email_provider, email_2fa_user
    ):
        code = await _issue_code(two_factor, email_provider, email_2fa_user)
        await two_factor.verify_email_code(email_2fa_user.email, code)

        with pytest.raises(NotInitiatedError):
            await two_factor.verify_email_code(email_2fa_user.email, code)

    async def test_expired_and_wrong_codes_share_one_response(
        self, clock, two_factor, user_repo, email_provider, email_2fa_user
    ):
        code = await _issue_code(two_factor, email_provider, email_2fa_user)

        with pytest.raises(InvalidCodeError) as wrong:
            await two_factor.verify_email_code(email_2fa_user.email, _wrong(code))

        clock.advance(minutes=5, seconds=1)
        with pytest.raises(InvalidCodeError) as expired:
            await two_factor.verify_email_code(email_2fa_user.email, code)

        assert wrong.value.message == expired.value.message
        assert wrong.value.to_dict() == expired.value.to_dict()
        assert user_repo.get(email_2fa_user.id).failed_2fa_attempts == 2

    async def test_no_pending_code_is_not_initiated(self, clock, two_factor, email_2fa_user):
        with pytest.raises(NotInitiatedError):
            await two_factor.verify_email_code(email_2fa_user.email, "123456")

    async def test_unknown_email_is_not_initiated(self, clock, two_factor):
        with pytest.raises(NotInitiatedError):
            await two_factor.verify_email_code("ghost@example.com", "123456")

    async def test_delivery_failure_keeps_code_and_raises(
        self, clock, two_factor, user_repo, email_provider, email_2fa_user
    ):
        email_provider.succeed = False

        with pytest.raises(ExternalServiceError):
            await two_factor.start_email_challenge(email_2fa_user)

        assert user_repo.get(email_2fa_user.id).temp_2fa_code == hash_token(email_provider.last["code"])


# ---------------------------------------------------------------------------
# Lockout
# ---------------------------------------------------------------------------


class TestLockout:
    async def test_fifth_failure_locks_for_fifteen_minutes(
        self, clock, two_factor, user_repo, email_provider, email_2fa_user
    ):
        code = await _issue_code(two_factor, email_provider, email_2fa_user)

        for _ in range(4):
            with pytest.raises(InvalidCodeError):
                await two_factor.verify_email_code(email_2fa_user.email, _wrong(code))

        with pytest.raises(AccountLockedError) as exc_info:
            await two_factor.verify_email_code(email_2fa_user.email, _wrong(code))

        assert exc_info.value.status_code == 423
        assert exc_info.value.retry_after_minutes == 15
        assert "locked for 15 minutes" in exc_info.value.message
        stored = user_repo.get(email_2fa_user.id)
        assert stored.failed_2fa_attempts == 5
        assert stored.lock_until == clock.now + timedelta(minutes=15)

    async def test_attempt_while_locked_is_rejected_without_counting(
        self, clock, two_factor, user_repo, email_provider, email_2fa_user
    ):
        code = await _issue_code(two_factor, email_provider, email_2fa_user)
        for _ in range(4):
            with pytest.raises(InvalidCodeError):
                await two_factor.verify_email_code(email_2fa_user.email, _wrong(code))
        with pytest.raises(AccountLockedError):
            await two_factor.verify_email_code(email_2fa_user.email, _wrong(code))
        calls = user_repo.failure_calls

        clock.advance(minutes=1)
        # even the correct code is refused during the lock
        with pytest.raises(AccountLockedError) as exc_info:
            await two_factor.verify_email_code(email_2fa_user.email, code)

        assert exc_info.value.retry_after_minutes == 14
        assert "Try again in 14 minutes" in exc_info.value.message
        assert user_repo.failure_calls == calls
        assert user_repo.get(email_2fa_user.id).failed_2fa_attempts == 5

    async def test_failure_after_lock_expiry_relocks_immediately(
        self, clock, two_factor, user_repo, email_2fa_user
    ):
        user_repo.users[email_2fa_user.id] = user_repo.get(email_2fa_user.id).model_copy(
            update={
                "failed_2fa_attempts": 5,
                "lock_until": clock.now - timedelta(seconds=1),
                "temp_2fa_code": hash_token("246810"),
                "temp_2fa_expires": clock.now + timedelta(minutes=5),
            }
        )

        with pytest.raises(AccountLockedError):
            await two_factor.verify_email_code(email_2fa_user.email, "135790")

        stored = user_repo.get(email_2fa_user.id)
        assert stored.failed_2fa_attempts == 6
        assert stored.lock_until == clock.now + timedelta(minutes=15)

    async def test_success_after_lock_expiry_resets_counter(
        self, clock, two_factor, user_repo, email_2fa_user
    ):
        user_repo.users[email_2fa_user.id] = user_repo.get(email_2fa_user.id).model_copy(
            update={
                "failed_2fa_attempts": 5,
                "lock_until": clock.now - timedelta(seconds=1),
                "temp_2fa_code": hash_token("246810"),
                "temp_2fa_expires": clock.now + timedelta(minutes=5),
            }
        )

        await two_factor.verify_email_code(email_2fa_user.email, "246810")

        stored = user_repo.get(email_2fa_user.id)
        assert stored.failed_2fa_attempts == 0
        assert stored.lock_until is None

    async def test_concurrent_lock_reports_locked(
        self, clock, two_factor, user_repo, email_provider, email_2fa_user, mocker
    ):
        code = await _issue_code(two_factor, email_provider, email_2fa_user)

        async def locked_elsewhere(user_id, now, max_attempts, lock_duration):
            user_repo.users[user_id] = user_repo.users[user_id].model_copy(
                update={"failed_2fa_attempts": 5, "lock_until": now + lock_duration}
            )
            return None

        mocker.patch.object(user_repo, "record_two_factor_failure", side_effect=locked_elsewhere)

        with pytest.raises(AccountLockedError):
            await two_factor.verify_email_code(email_2fa_user.email, _wrong(code))

    async def test_lock_set_after_read_beats_correct_code(
        self, clock, two_factor, user_repo, email_provider, email_2fa_user, mocker
    ):
        code = await _issue_code(two_factor, email_provider, email_2fa_user)
        lock_until = clock.now + timedelta(minutes=15)
        read = user_repo.find_by_email

        async def read_then_lock(email):
            snapshot = await read(email)
            user_repo.users[snapshot.id] = snapshot.model_copy(
                update={"failed_2fa_attempts": 5, "lock_until": lock_until}
            )
            return snapshot

        mocker.patch.object(user_repo, "find_by_email", side_effect=read_then_lock)

        with pytest.raises(AccountLockedError):
            await two_factor.verify_email_code(email_2fa_user.email, code)

        stored = user_repo.get(email_2fa_user.id)
        assert stored.lock_until == lock_until
        assert stored.failed_2fa_attempts == 5
        assert stored.temp_2fa_code == hash_token(code)


# ---------------------------------------------------------------------------
# Resend throttle
# ---------------------------------------------------------------------------


class TestResendEmailCode:
    async def test_second_resend_within_interval_is_too_soon(
        self, clock, two_factor, email_provider, email_2fa_user
    ):
        await two_factor.resend_email_code(email_2fa_user.email)
        clock.advance(seconds=10)

        with pytest.raises(TooSoonError) as exc_info:
            await two_factor.resend_email_code(email_2fa_user.email)

        assert exc_info.value.status_code == 429
        assert "30s" in exc_info.value.message
        assert len(email_provider.sent) == 1

    async def test_resend_after_interval_replaces_code(
        self, clock, two_factor, user_repo, email_provider, email_2fa_user
    ):
        await two_factor.resend_email_code(email_2fa_user.email)
        first = email_provider.last["code"]
        clock.advance(seconds=31)

        await two_factor.resend_email_code(email_2fa_user.email)
        second = email_provider.last

        assert second["resent"] is True
        stored = user_repo.get(email_2fa_user.id)
        assert stored.temp_2fa_code == hash_token(second["code"])
        assert stored.last_2fa_resend == clock.now
        if first != second["code"]:
            with pytest.raises(InvalidCodeError):
                await two_factor.verify_email_code(email_2fa_user.email, first)

    async def test_resend_refused_while_locked(
        self, clock, two_factor, user_repo, email_provider, email_2fa_user
    ):
        user_repo.users[email_2fa_user.id] = user_repo.get(email_2fa_user.id).model_copy(
            update={"lock_until": clock.now + timedelta(minutes=10)}
        )

        with pytest.raises(AccountLockedError) as exc_info:
            await two_factor.resend_email_code(email_2fa_user.email)

        assert exc_info.value.retry_after_minutes == 10
        assert email_provider.sent == []

    async def test_resend_requires_email_method(self, clock, two_factor, make_user):
        user = make_user(is_2fa_enabled=False)
        with pytest.raises(NotInitiatedError):
            await two_factor.resend_email_code(user.email)


# ---------------------------------------------------------------------------
# TOTP
# ---------------------------------------------------------------------------


@pytest.fixture
def totp_user(make_user):
    return make_user(
        is_2fa_enabled=True,
        two_factor_method=TwoFactorMethod.TOTP,
        two_factor_secret=pyotp.random_base32(),
    )


class TestTotp:
    @pytest.mark.parametrize("offset", [-1, 0, 1], ids=["previous_step", "current_step", "next_step"])
    async def test_codes_within_drift_window_accepted(
        self, clock, two_factor, user_repo, totp_user, offset
    ):
        code = pyotp.TOTP(totp_user.two_factor_secret).at(clock.now, offset)

        result = await two_factor.verify_totp(totp_user.email, code)

        assert result.token
        assert user_repo.get(totp_user.id).failed_2fa_attempts == 0

    async def test_code_three_steps_ahead_rejected(self, clock, two_factor, user_repo, totp_user):
        code = pyotp.TOTP(totp_user.two_factor_secret).at(clock.now, 3)

        with pytest.raises(InvalidCodeError):
            await two_factor.verify_totp(totp_user.email, code)

        assert user_repo.get(totp_user.id).failed_2fa_attempts == 1

    @pytest.mark.parametrize("code", ["", "abcdef", "12 456"], ids=["empty", "letters", "space"])
    def test_non_numeric_codes_never_match(self, clock, two_factor, code):
        assert two_factor.totp_matches(pyotp.random_base32(), code, clock.now) is False

    async def test_verify_without_secret_is_not_initiated(self, clock, two_factor, make_user):
        user = make_user()
        with pytest.raises(NotInitiatedError):
            await two_factor.verify_totp(user.email, "123456")

    async def test_totp_failures_share_the_lockout_counter(
        self, clock, two_factor, user_repo, totp_user
    ):
        user_repo.users[totp_user.id] = user_repo.get(totp_user.id).model_copy(
            update={"failed_2fa_attempts": 4}
        )
        code = pyotp.TOTP(totp_user.two_factor_secret).at(clock.now, 5)

        with pytest.raises(AccountLockedError):
            await two_factor.verify_totp(totp_user.email, code)


class TestTotpEnrollment:
    async def test_enable_stores_secret_and_returns_qr(
        self, clock, two_factor, user_repo, make_user
    ):
        user = make_user()

        enrollment = await two_factor.enable_totp(user)

        stored = user_repo.get(user.id)
        assert stored.two_factor_secret == enrollment.secret
        assert stored.two_factor_method is TwoFactorMethod.TOTP
        assert enrollment.otpauth_url.startswith("otpauth://totp/")
        assert "issuer=AI%20Study%20Assistant" in enrollment.otpauth_url
        assert enrollment.qr_code_url.startswith("data:image/png;base64,")

    async def test_confirm_with_current_code_enables_totp(
        self, clock, two_factor, user_repo, make_user
    ):
        user = make_user()
        enrollment = await two_factor.enable_totp(user)
        code = pyotp.TOTP(enrollment.secret).at(clock.now)

        confirmed = await two_factor.confirm_totp_setup(user, code)

        assert confirmed.is_2fa_enabled is True
        assert confirmed.active_two_factor_method is TwoFactorMethod.TOTP

    async def test_confirm_before_enable_is_not_initiated(self, clock, two_factor, make_user):
        with pytest.raises(NotInitiatedError):
            await two_factor.confirm_totp_setup(make_user(), "123456")
