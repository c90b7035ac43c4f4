"""
Token issuance.

issue_secure_token / issue_otp  — single-use secrets delivered by email; only
                                  the SHA-256 digest is ever persisted.
SessionTokenService             — signs and verifies the bearer JWT returned
                                  after a successful login.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

import jwt

from config import JWTSettings
from errors import AuthenticationError
from shared.crypto import hash_token
from shared.datetime_utils import utcnow
from shared.generators import generate_otp_code, generate_secure_token

VERIFICATION_TOKEN_TTL = timedelta(hours=1)
RESET_TOKEN_TTL = timedelta(hours=1)
OTP_TTL = timedelta(minutes=5)


@dataclass(frozen=True)
class IssuedToken:
    plaintext: str
    hashed: str
    expires_at: datetime


def issue_secure_token(ttl: timedelta, now: Optional[datetime] = None) -> IssuedToken:
    """Issue a 160-bit hex token (email verification, password reset)."""
    plaintext = generate_secure_token()
    return IssuedToken(plaintext, hash_token(plaintext), (now or utcnow()) + ttl)


def issue_otp(ttl: timedelta = OTP_TTL, now: Optional[datetime] = None) -> IssuedToken:
    """Issue a 6-digit numeric code for email two-factor login."""
    code = generate_otp_code()
    return IssuedToken(code, hash_token(code), (now or utcnow()) + ttl)


class SessionTokenService:
    """Issues and verifies session JWTs.

    RS256 is used when both keys are configured, HS256 with ``jwt_secret``
    otherwise.
    """

    def __init__(self, settings: JWTSettings) -> None:
        self._settings = settings
        if settings.use_rs256:
            self._algorithm = "RS256"
            self._signing_key = settings.jwt_private_key
            self._verify_key = settings.jwt_public_key
        else:
            self._algorithm = "HS256"
            self._signing_key = settings.jwt_secret
            self._verify_key = settings.jwt_secret

    def issue(self, user_id: str, amr: Optional[list[str]] = None) -> str:
        """Sign a session token for *user_id*.

        ``amr`` lists the authentication methods used, e.g. ``["pwd", "otp"]``.
        """
        now = utcnow()
        claims = {
            "sub": str(user_id),
            "iat": int(now.timestamp()),
            "exp": int((now + timedelta(seconds=self._settings.session_ttl_seconds)).timestamp()),
            "iss": self._settings.jwt_issuer,
            "aud": self._settings.jwt_audience,
            "amr": amr or ["pwd"],
        }
        return jwt.encode(claims, self._signing_key, algorithm=self._algorithm)

    def verify(self, token: str) -> dict:
        """Decode *token*, raising AuthenticationError when it is not acceptable."""
        try:
            return jwt.decode(
                token,
                self._verify_key,
                algorithms=[self._algorithm],
                audience=self._settings.jwt_audience,
                issuer=self._settings.jwt_issuer,
                options={"require": ["sub", "exp", "iat"]},
            )
        except jwt.ExpiredSignatureError:
            raise AuthenticationError("Session expired, please log in again")
        except jwt.InvalidTokenError:
            raise AuthenticationError("Invalid session token")
