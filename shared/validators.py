"""
Input validators — framework-agnostic, pure functions.
"""

from __future__ import annotations

import re
from typing import List, Tuple

MIN_PASSWORD_LENGTH = 6
MAX_PASSWORD_LENGTH = 128


def normalize_email(email: str) -> str:
    """Strip and lower-case an email address for storage and lookups."""
    return (email or "").strip().lower()


def validate_password(password: str) -> Tuple[bool, List[str]]:
    """Validate a new password.

    Returns:
        Tuple of (is_valid, missing_requirements)
    """
    if not password:
        return False, ["Password is required"]

    missing = []
    if len(password) < MIN_PASSWORD_LENGTH:
        missing.append(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    if len(password) > MAX_PASSWORD_LENGTH:
        missing.append(f"Password must be at most {MAX_PASSWORD_LENGTH} characters")
    if re.search(r"[\x00-\x08\x0b\x0c\x0e-\x1f]", password):
        missing.append("Password contains invalid characters")

    return not missing, missing
