"""
User document model.

Maps to the `users` MongoDB collection.

A user document only exists once the registration OTP has been confirmed, so
``is_verified`` is True for every document created by the registration flow.

Trust state:
- kyc_level 0: verified email/phone only
- kyc_level 1: identity document (front/back) and selfie captured
- kyc_level 2: driving license captured; vehicle/driver steps unlocked

Referral state:
- sponsor_id: this user's own referral code
- sponsor_by: the code of the referring user, or ROOT_SPONSOR
- sponsor_tree: cached list of direct children (mirror of sponsor_by edges)
- level: derived rank 0..4, only ever raised by the leveling engine
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

from schemas.models.base import MongoBaseModel, PyObjectId

KYC_LEVEL_NONE = 0
KYC_LEVEL_DOCUMENTS = 1
KYC_LEVEL_LICENSE = 2

ROLE_CUSTOMER = "customer"
ROLE_DRIVER = "driver"

ROOT_SPONSOR = "root"
MAX_SPONSOR_LEVEL = 4


class IdentityDocuments(BaseModel):
    """Front/back images of the national identity card."""

    front: Optional[str] = None
    back: Optional[str] = None


class UserDoc(MongoBaseModel):
    """Document model for the `users` collection."""

    first_name: str
    last_name: str
    email: str
    phone_number: str
    password_hash: str
    gender: Optional[str] = None
    country: Optional[str] = None

    is_verified: bool = False
    reset_otp_hash: Optional[str] = None
    reset_otp_expires: Optional[datetime] = None

    kyc_level: int = Field(default=KYC_LEVEL_NONE, ge=0, le=KYC_LEVEL_LICENSE)
    role: Literal["customer", "driver"] = ROLE_CUSTOMER
    identity_documents: IdentityDocuments = IdentityDocuments()
    selfie_image: Optional[str] = None
    license_image: Optional[str] = None

    sponsor_id: str
    sponsor_by: str = ROOT_SPONSOR
    sponsor_tree: list[PyObjectId] = []
    level: int = Field(default=0, ge=0, le=MAX_SPONSOR_LEVEL)

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @property
    def is_root_sponsored(self) -> bool:
        return self.sponsor_by == ROOT_SPONSOR
