"""
Cryptographic helpers — password hashing and token hashing.

Uses argon2 for passwords (via argon2-cffi) and SHA-256 for token hashing.
Verification links, reset links and emailed 2FA codes are all stored as
SHA-256 digests so they can be looked up by hash without keeping the
plaintext.
"""

from __future__ import annotations

import hashlib
import hmac

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError

_password_hasher = PasswordHasher()


def hash_password(plain_password: str) -> str:
    """Hash *plain_password* with argon2id (salt and parameters embedded)."""
    return _password_hasher.hash(plain_password)


def verify_password(plain_password: str, password_hash: str) -> bool:
    """Return ``True`` when *plain_password* matches *password_hash*.

    Any failure (wrong password, malformed or empty hash) returns ``False``.
    """
    if not password_hash:
        return False
    try:
        return _password_hasher.verify(password_hash, plain_password)
    except (VerificationError, InvalidHashError):
        return False


def hash_token(token: str) -> str:
    """Return the hex-encoded SHA-256 digest of *token*.

    Deterministic, so the same plaintext always maps to the same stored value.
    """
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def token_matches(plain_token: str, stored_hash: str | None) -> bool:
    """Constant-time comparison of ``hash_token(plain_token)`` with *stored_hash*."""
    if not stored_hash:
        return False
    return hmac.compare_digest(hash_token(plain_token), stored_hash)
