"""
Input validators and normalisers — framework-agnostic, pure functions.

Each validator either returns a normalised value or raises ``ValueError``
with a user-facing message; services translate that into ``ValidationError``.
"""

from __future__ import annotations

import re
from typing import Any, Optional

import validators as _validators

_PHONE_ALLOWED = re.compile(r"^\+?[0-9]{7,15}$")
_OTP_PATTERN = re.compile(r"^[0-9]{6}$")

_YES_ANSWERS = frozenset({"yes", "y", "true"})
_NO_ANSWERS = frozenset({"no", "n", "false"})


def normalize_email(email: str) -> str:
    """Lower-case and strip *email*, rejecting malformed addresses.

    Raises:
        ValueError: if the address does not look like an email.
    """
    cleaned = (email or "").strip().lower()
    if not cleaned or not _validators.email(cleaned):
        raise ValueError("A valid email address is required")
    return cleaned


def normalize_phone_number(phone_number: str) -> str:
    """Strip spaces, dashes and brackets; keep an optional leading ``+``."""
    cleaned = re.sub(r"[\s\-()]", "", phone_number or "")
    if not _PHONE_ALLOWED.match(cleaned):
        raise ValueError("A valid phone number is required")
    return cleaned


def is_valid_otp_format(otp: Optional[str]) -> bool:
    """Return True when *otp* is exactly six decimal digits."""
    return bool(otp) and bool(_OTP_PATTERN.match(otp))


def split_full_name(full_name: str) -> tuple[str, str]:
    """Split *full_name* into ``(first_name, last_name)``.

    The first whitespace-separated token is the first name; the remaining
    tokens form the last name. Single-token names are rejected.

    Raises:
        ValueError: if fewer than two tokens are present.
    """
    tokens = (full_name or "").split()
    if len(tokens) < 2:
        raise ValueError("Full name must contain both first and last names")
    return tokens[0], " ".join(tokens[1:])


def validate_document_url(url: Optional[str]) -> Optional[str]:
    """Accept an already-hosted artifact URL; ``None`` and blanks pass through as ``None``."""
    if url is None or not url.strip():
        return None
    url = url.strip()
    if not _validators.url(url):
        raise ValueError(f"Invalid document URL: {url}")
    return url


def parse_vehicle_answer(value: Any) -> bool:
    """Interpret a yes/no vehicle-ownership answer.

    Accepts booleans and the strings ``yes``/``no`` (case-insensitive).

    Raises:
        ValueError: for any other value.
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        answer = value.strip().lower()
        if answer in _YES_ANSWERS:
            return True
        if answer in _NO_ANSWERS:
            return False
    raise ValueError("Please select Yes or No for vehicle ownership")
