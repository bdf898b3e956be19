"""
Login, password reset and current-user lookups for verified users.

Password reset uses its own hashed OTP on the user document with an
independent expiry window. It never touches kyc_level or the sponsor network.

Login also finishes a sponsor admission that registration could not complete.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Any, Optional

from config import RegistrationSettings
from errors import (
    AuthenticationError,
    ExpiredError,
    ForbiddenError,
    InvalidOtpError,
    NotFoundError,
    ValidationError,
)
from infrastructure.email.protocol import EmailProvider
from repositories.user_repository import UserRepository
from schemas.models.user import UserDoc
from services.notify import dispatch_best_effort
from services.referral.leveling import ReferralLevelingEngine
from shared.crypto import hash_password, hash_token, token_matches, verify_password
from shared.datetime_utils import ensure_utc, utcnow
from shared.generators import generate_otp_code
from shared.logging import get_logger
from shared.validators import (
    is_valid_otp_format,
    normalize_email,
    normalize_phone_number,
)

log = get_logger(__name__)

INVALID_CREDENTIALS = "Invalid email, phone number or password"


class AuthService:
    def __init__(
        self,
        users: UserRepository,
        leveling: ReferralLevelingEngine,
        email: EmailProvider,
        settings: RegistrationSettings,
        email_timeout_seconds: float = 5.0,
    ) -> None:
        self._users = users
        self._leveling = leveling
        self._email = email
        self._settings = settings
        self._email_timeout = email_timeout_seconds

    async def login(
        self, email: Optional[str], phone_number: Optional[str], password: str
    ) -> UserDoc:
        """Authenticate by email or phone number plus password.

        Raises:
            AuthenticationError: unknown identifier or wrong password.
            ForbiddenError: the account never completed verification.
        """
        user = await self._users.find_by_email_or_phone(
            _try(normalize_email, email), _try(normalize_phone_number, phone_number)
        )
        if user is None:
            log.info("login_failed", reason="unknown_user")
            raise AuthenticationError(INVALID_CREDENTIALS)
        if not user.is_verified:
            raise ForbiddenError("User not verified. Please complete registration.")
        if not verify_password(password, user.password_hash):
            log.info("login_failed", reason="bad_password", user_id=str(user.id))
            raise AuthenticationError(INVALID_CREDENTIALS)

        log.info("login_success", user_id=str(user.id))
        await self._repair_admission(user)
        return user

    async def forgot_password(self, email: str) -> UserDoc:
        """Store a fresh reset OTP for *email* and send it.

        Returns the user so the caller can echo its id for the reset step.
        """
        try:
            normalized = normalize_email(email)
        except ValueError as e:
            raise ValidationError(str(e), field="email")

        user = await self._users.find_by_email(normalized)
        if user is None:
            raise NotFoundError("User not found")

        otp_code = generate_otp_code()
        expires_at = utcnow() + timedelta(seconds=self._settings.reset_otp_ttl_seconds)
        await self._users.set_reset_otp(user.id, hash_token(otp_code), expires_at)
        log.info("password_reset_requested", user_id=str(user.id))

        await dispatch_best_effort(
            self._email.send_password_reset_otp(user.email, user.full_name, otp_code),
            timeout=self._email_timeout,
            event="password_reset_email",
            user_id=str(user.id),
        )
        return user

    async def reset_password(self, user_id: Any, reset_otp: str, password: str) -> UserDoc:
        """Replace the password if *reset_otp* matches and is still live.

        Raises:
            NotFoundError: unknown user id.
            ExpiredError: no reset pending, or its window has passed.
            InvalidOtpError: OTP mismatch.
        """
        user = await self._users.find_by_id(user_id)
        if user is None:
            raise NotFoundError("User not found")

        now = utcnow()
        if (
            not user.reset_otp_hash
            or user.reset_otp_expires is None
            or ensure_utc(user.reset_otp_expires) <= now
        ):
            raise ExpiredError("Reset OTP has expired. Please request a new one.")
        if not is_valid_otp_format(reset_otp) or not token_matches(
            reset_otp, user.reset_otp_hash
        ):
            raise InvalidOtpError("Invalid reset OTP")

        updated = await self._users.complete_password_reset(
            user.id, user.reset_otp_hash, hash_password(password), now
        )
        if updated is None:
            # Consumed or replaced between the read and the write
            raise ExpiredError("Reset OTP has expired. Please request a new one.")

        log.info("password_reset_completed", user_id=str(user.id))
        return updated

    async def _repair_admission(self, user: UserDoc) -> None:
        # Registration may have left the user out of its sponsor's tree
        try:
            await self._leveling.ensure_admitted(user)
        except Exception as e:
            log.error(
                "sponsor_admission_repair_failed",
                user_id=str(user.id),
                error=str(e),
                error_type=type(e).__name__,
            )

    async def get_user(self, user_id: Any) -> UserDoc:
        user = await self._users.find_by_id(user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    async def sponsored_users(self, user: UserDoc) -> list[UserDoc]:
        """Direct referrals of *user*, in the order they joined."""
        return await self._users.find_many(user.sponsor_tree)


def _try(normalize, value: Optional[str]) -> Optional[str]:
    # Malformed identifiers simply match nobody
    if not value:
        return None
    try:
        return normalize(value)
    except ValueError:
        return None
