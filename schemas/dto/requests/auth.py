"""
Request DTOs for registration and authentication endpoints.

SignupRequest          — POST /api/users/signup
ResendOtpRequest       — POST /api/users/resend-otp
VerifyOtpRequest       — POST /api/users/verify-otp
LoginRequest           — POST /api/users/login
ForgotPasswordRequest  — POST /api/users/forgot-password
ResetPasswordRequest   — POST /api/users/reset-password

Fields are snake_case; the camelCase names used by existing mobile clients
are accepted as aliases.
"""

from __future__ import annotations

from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator


def _alias(snake: str, camel: str) -> AliasChoices:
    return AliasChoices(snake, camel)


class SignupRequest(BaseModel):
    """Request body for POST /api/users/signup."""

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    first_name: str = Field(min_length=1, validation_alias=_alias("first_name", "firstName"))
    last_name: str = Field(min_length=1, validation_alias=_alias("last_name", "lastName"))
    email: str = Field(min_length=1)
    phone_number: str = Field(
        min_length=1, validation_alias=_alias("phone_number", "phoneNumber")
    )
    password: str = Field(min_length=1)
    sponsor_by: str = Field(min_length=1, validation_alias=_alias("sponsor_by", "sponsorBy"))
    gender: str = Field(min_length=1)


class ResendOtpRequest(BaseModel):
    """Request body for POST /api/users/resend-otp."""

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    session_id: str = Field(
        min_length=1, validation_alias=_alias("session_id", "tempId")
    )


class VerifyOtpRequest(BaseModel):
    """Request body for POST /api/users/verify-otp.

    Carries the registration fields that become the durable user, alongside
    the session identifier and the 6-digit OTP.
    """

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    session_id: str = Field(
        min_length=1, validation_alias=_alias("session_id", "tempId")
    )
    otp: str = Field(min_length=1)
    first_name: str = Field(min_length=1, validation_alias=_alias("first_name", "firstName"))
    last_name: str = Field(min_length=1, validation_alias=_alias("last_name", "lastName"))
    password: str = Field(min_length=1)
    sponsor_by: str = Field(min_length=1, validation_alias=_alias("sponsor_by", "sponsorBy"))
    gender: str = Field(min_length=1)


class LoginRequest(BaseModel):
    """Request body for POST /api/users/login. Either email or phone is required."""

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    email: Optional[str] = None
    phone_number: Optional[str] = Field(
        default=None, validation_alias=_alias("phone_number", "phoneNumber")
    )
    password: str = Field(min_length=1)

    @model_validator(mode="after")
    def _require_identifier(self) -> "LoginRequest":
        if not self.email and not self.phone_number:
            raise ValueError("Email or phone number is required")
        return self


class ForgotPasswordRequest(BaseModel):
    """Request body for POST /api/users/forgot-password."""

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    email: str = Field(min_length=1)


class ResetPasswordRequest(BaseModel):
    """Request body for POST /api/users/reset-password."""

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    user_id: str = Field(min_length=1, validation_alias=_alias("user_id", "userId"))
    reset_otp: str = Field(min_length=1, validation_alias=_alias("reset_otp", "resetOtp"))
    password: str = Field(min_length=1)
