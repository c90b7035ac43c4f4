"""
Repository for the `users` collection.

Every state change the two-factor flow depends on is a single conditional
``find_one_and_update`` so concurrent requests against the same user can
neither under-count failures nor redeem one code twice.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Optional

from bson import ObjectId
from pymongo import ASCENDING, ReturnDocument

from repositories.base_repository import BaseRepository
from schemas.models.user import TwoFactorMethod, UserDoc
from shared.datetime_utils import utcnow
from shared.logging import get_logger

log = get_logger(__name__)


def _not_locked(now: datetime) -> dict:
    return {"$or": [{"lock_until": None}, {"lock_until": {"$lte": now}}]}


class UserRepository(BaseRepository[UserDoc]):
    model = UserDoc

    async def find_by_email(self, email: str) -> Optional[UserDoc]:
        return self._to_model(await self._col.find_one({"email": email}))

    async def email_exists(self, email: str) -> bool:
        return await self._col.count_documents({"email": email}, limit=1) > 0

    async def update(self, user_id: ObjectId, fields: dict[str, Any]) -> Optional[UserDoc]:
        """``$set`` *fields* on the user and return the updated document."""
        return await self._find_one_and_set({"_id": user_id}, fields)

    # ── Email verification / password reset tokens ───────────────────────────

    async def set_verification_token(
        self, user_id: ObjectId, token_hash: str, expires_at: datetime
    ) -> None:
        await self._col.update_one(
            {"_id": user_id},
            {
                "$set": {
                    "verification_token": token_hash,
                    "verification_expires": expires_at,
                    "updated_at": utcnow(),
                }
            },
        )

    async def redeem_verification_token(
        self, token_hash: str, now: datetime
    ) -> Optional[UserDoc]:
        """Mark the holder of an unexpired verification token as verified.

        The token is cleared in the same update so it can only be redeemed once.
        """
        return await self._find_one_and_set(
            {"verification_token": token_hash, "verification_expires": {"$gt": now}},
            {
                "is_verified": True,
                "verification_token": None,
                "verification_expires": None,
            },
        )

    async def set_reset_token(
        self, user_id: ObjectId, token_hash: str, expires_at: datetime
    ) -> None:
        await self._col.update_one(
            {"_id": user_id},
            {
                "$set": {
                    "reset_password_token": token_hash,
                    "reset_password_expires": expires_at,
                    "updated_at": utcnow(),
                }
            },
        )

    async def find_by_reset_token(self, token_hash: str) -> Optional[UserDoc]:
        return self._to_model(
            await self._col.find_one({"reset_password_token": token_hash})
        )

    async def redeem_reset_token(
        self, token_hash: str, now: datetime, password_hash: str
    ) -> Optional[UserDoc]:
        return await self._find_one_and_set(
            {
                "reset_password_token": token_hash,
                "reset_password_expires": {"$gt": now},
            },
            {
                "password_hash": password_hash,
                "reset_password_token": None,
                "reset_password_expires": None,
            },
        )

    # ── Two-factor runtime state ─────────────────────────────────────────────

    async def set_two_factor_code(
        self, user_id: ObjectId, code_hash: str, expires_at: datetime
    ) -> None:
        await self._col.update_one(
            {"_id": user_id},
            {
                "$set": {
                    "temp_2fa_code": code_hash,
                    "temp_2fa_expires": expires_at,
                    "updated_at": utcnow(),
                }
            },
        )

    async def claim_resend_slot(
        self,
        user_id: ObjectId,
        now: datetime,
        min_interval: timedelta,
        code_hash: str,
        expires_at: datetime,
    ) -> Optional[UserDoc]:
        """Store a fresh email code only if the last resend is old enough.

        Returns None when another resend happened within *min_interval*.
        """
        return await self._find_one_and_set(
            {
                "_id": user_id,
                "$or": [
                    {"last_2fa_resend": None},
                    {"last_2fa_resend": {"$lte": now - min_interval}},
                ],
            },
            {
                "temp_2fa_code": code_hash,
                "temp_2fa_expires": expires_at,
                "last_2fa_resend": now,
            },
        )

    async def record_two_factor_failure(
        self,
        user_id: ObjectId,
        now: datetime,
        max_attempts: int,
        lock_duration: timedelta,
    ) -> Optional[UserDoc]:
        """Atomically count one failed code and lock once *max_attempts* is reached.

        Users that are currently locked are excluded by the filter, so a
        request racing a lockout gets None instead of adding to the count.
        """
        attempts = {"$add": [{"$ifNull": ["$failed_2fa_attempts", 0]}, 1]}
        pipeline = [
            {"$set": {"failed_2fa_attempts": attempts, "updated_at": now}},
            {
                "$set": {
                    "lock_until": {
                        "$cond": [
                            {"$gte": ["$failed_2fa_attempts", max_attempts]},
                            now + lock_duration,
                            {"$ifNull": ["$lock_until", None]},
                        ]
                    }
                }
            },
        ]
        data = await self._col.find_one_and_update(
            {"_id": user_id, **_not_locked(now)},
            pipeline,
            return_document=ReturnDocument.AFTER,
        )
        return self._to_model(data)

    async def record_two_factor_success(
        self,
        user_id: ObjectId,
        method: TwoFactorMethod,
        now: datetime,
        expected_code_hash: Optional[str] = None,
    ) -> Optional[UserDoc]:
        """Reset the failure state and finalize *method* as the active 2FA method.

        A lock set by a concurrent failure wins: locked users are excluded by
        the filter. With *expected_code_hash* the update only applies while
        that code is still the pending one, which makes an emailed code
        single-use.
        """
        query: dict[str, Any] = {"_id": user_id, **_not_locked(now)}
        fields: dict[str, Any] = {
            "failed_2fa_attempts": 0,
            "lock_until": None,
            "is_2fa_enabled": True,
            "two_factor_method": method.value,
        }
        if expected_code_hash is not None:
            query["temp_2fa_code"] = expected_code_hash
            fields["temp_2fa_code"] = None
            fields["temp_2fa_expires"] = None
        return await self._find_one_and_set(query, fields)

    async def ensure_indexes(self) -> None:
        await self._col.create_index([("email", ASCENDING)], unique=True)
        await self._col.create_index([("verification_token", ASCENDING)], sparse=True)
        await self._col.create_index([("reset_password_token", ASCENDING)], sparse=True)
        log.info("indexes_ensured", collection="users")
