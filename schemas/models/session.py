"""
Verification session document model.

Maps to the `verification-sessions` MongoDB collection.

A session is the pending half of a registration: it exists between signup and
OTP confirmation and is keyed by an opaque session_id handed to the client.
otp_hash stores SHA-256(otp_code); the plain OTP is never stored.
A TTL index on created_at removes abandoned sessions.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional

from schemas.models.base import MongoBaseModel
from shared.datetime_utils import ensure_utc


class VerificationSessionDoc(MongoBaseModel):
    """Document model for the `verification-sessions` collection."""

    email: str
    phone_number: str
    session_id: str
    otp_hash: str
    display_name: Optional[str] = None
    created_at: datetime

    def expires_at(self, ttl_seconds: int) -> datetime:
        return ensure_utc(self.created_at) + timedelta(seconds=ttl_seconds)

    def is_expired(self, now: datetime, ttl_seconds: int) -> bool:
        return now > self.expires_at(ttl_seconds)
