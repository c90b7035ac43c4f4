"""
Random code and token generators — pure, side-effect-free functions.

All generators use the ``secrets`` module.
"""

from __future__ import annotations

import secrets

import pyotp

OTP_MIN = 100_000
OTP_MAX = 999_999


def generate_otp_code() -> str:
    """Generate a 6-digit numeric OTP in the range 100000–999999."""
    return str(OTP_MIN + secrets.randbelow(OTP_MAX - OTP_MIN + 1))


def generate_secure_token(num_bytes: int = 20) -> str:
    """Generate a hex token from *num_bytes* random bytes (160 bits by default)."""
    return secrets.token_hex(num_bytes)


def generate_totp_secret() -> str:
    """Generate a fresh base32 secret for an authenticator app."""
    return pyotp.random_base32()
