"""
Response DTOs for registration and authentication endpoints.

UserProfileResponse    — user shape shared by verify/login/me
SponsoredUser          — one direct referral inside AuthResponse
SessionResponse        — POST /api/users/signup, /resend-otp  (200)
AuthResponse           — POST /api/users/verify-otp (201), /login (200)
ResetOtpSentResponse   — POST /api/users/forgot-password (200)
PasswordResetResponse  — POST /api/users/reset-password (200)
CurrentUserResponse    — GET /api/users/me (200)
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict

from schemas.models.user import UserDoc


class UserProfileResponse(BaseModel):
    """Public view of a user document; never includes hashes."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    first_name: str
    last_name: str
    email: str
    phone_number: str
    gender: Optional[str] = None
    country: Optional[str] = None
    is_verified: bool
    kyc_level: int
    role: str
    sponsor_id: str
    sponsor_by: str
    level: int

    @classmethod
    def from_user(cls, user: UserDoc) -> "UserProfileResponse":
        return cls(
            id=str(user.id),
            first_name=user.first_name,
            last_name=user.last_name,
            email=user.email,
            phone_number=user.phone_number,
            gender=user.gender,
            country=user.country,
            is_verified=user.is_verified,
            kyc_level=user.kyc_level,
            role=user.role,
            sponsor_id=user.sponsor_id,
            sponsor_by=user.sponsor_by,
            level=user.level,
        )


class SponsoredUser(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str


class SessionResponse(BaseModel):
    """Response body for signup and resend-otp."""

    model_config = ConfigDict(populate_by_name=True)

    message: str
    session_id: str


class AuthResponse(BaseModel):
    """Response body for verify-otp (201) and login (200)."""

    model_config = ConfigDict(populate_by_name=True)

    message: str
    token: str
    user_id: str
    sponsor_id: str
    level: int
    sponsor_tree: list[SponsoredUser]
    sponsored_users: str
    user: UserProfileResponse


class ResetOtpSentResponse(BaseModel):
    """Response body for forgot-password. Carries no credential."""

    model_config = ConfigDict(populate_by_name=True)

    message: str
    user_id: str


class PasswordResetResponse(BaseModel):
    """Response body for reset-password; the new credential is issued here."""

    model_config = ConfigDict(populate_by_name=True)

    message: str
    token: str
    user_id: Optional[str] = None


class CurrentUserResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user: UserProfileResponse
    sponsor_tree: list[SponsoredUser]
