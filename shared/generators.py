"""
Random code and token generators — pure, side-effect-free functions.

All generators use cryptographically secure sources (``secrets`` module).
"""

from __future__ import annotations

import secrets
import string

_SPONSOR_ALPHABET = string.ascii_uppercase + string.digits


def generate_otp_code(length: int = 6) -> str:
    """Generate a cryptographically secure numeric OTP.

    Args:
        length: Number of digits (default 6).

    Returns:
        String of random decimal digits.
    """
    return "".join(secrets.choice(string.digits) for _ in range(length))


def generate_session_id(length: int = 32) -> str:
    """Generate an opaque, URL-safe verification session identifier.

    Args:
        length: Number of random bytes before base64 encoding (default 32).
    """
    return secrets.token_urlsafe(length)


def generate_sponsor_code(length: int = 8) -> str:
    """Generate a referral code handed out to a newly registered user.

    Uppercase letters and digits only, so it survives being read aloud.
    """
    return "".join(secrets.choice(_SPONSOR_ALPHABET) for _ in range(length))
