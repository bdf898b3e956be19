"""
OTP-gated registration.

signup      → begin_session(): pending session + emailed OTP
resend-otp  → resend(): new OTP for the same session id
verify-otp  → consume(): session becomes a verified user, who is then
              admitted into the sponsor network before the call returns
              (a failed admission is retried once, then repaired at login)

Sessions expire otp_ttl_seconds after created_at. The check happens here on
every read; the TTL index only garbage-collects abandoned sessions.
"""

from __future__ import annotations

from typing import Callable

from pymongo.errors import DuplicateKeyError

from config import RegistrationSettings
from errors import (
    ConflictError,
    ExpiredError,
    InvalidOtpError,
    NotFoundError,
    ValidationError,
)
from infrastructure.email.protocol import EmailProvider
from repositories.session_repository import SessionRepository
from repositories.user_repository import UserRepository
from schemas.dto.requests.auth import SignupRequest, VerifyOtpRequest
from schemas.models.session import VerificationSessionDoc
from schemas.models.user import ROOT_SPONSOR, UserDoc
from services.notify import dispatch_best_effort
from services.referral.leveling import Promotion, ReferralLevelingEngine
from shared.crypto import hash_password, hash_token, token_matches
from shared.datetime_utils import utcnow
from shared.generators import (
    generate_otp_code,
    generate_session_id,
    generate_sponsor_code,
)
from shared.logging import get_logger
from shared.validators import (
    is_valid_otp_format,
    normalize_email,
    normalize_phone_number,
)

log = get_logger(__name__)

SPONSOR_CODE_ATTEMPTS = 3
ADMISSION_ATTEMPTS = 2

SESSION_NOT_FOUND = "Invalid or expired temporary session"
SESSION_EXPIRED = "OTP has expired. Please restart registration."
USER_EXISTS = "User already exists with this email or phone number"


def _normalized(fn: Callable[[str], str], value: str, field: str) -> str:
    try:
        return fn(value)
    except ValueError as e:
        raise ValidationError(str(e), field=field)


def _duplicate_key_fields(error: DuplicateKeyError) -> set[str]:
    return set((error.details or {}).get("keyPattern", {}).keys())


class RegistrationService:
    def __init__(
        self,
        sessions: SessionRepository,
        users: UserRepository,
        leveling: ReferralLevelingEngine,
        email: EmailProvider,
        settings: RegistrationSettings,
        email_timeout_seconds: float = 5.0,
    ) -> None:
        self._sessions = sessions
        self._users = users
        self._leveling = leveling
        self._email = email
        self._settings = settings
        self._email_timeout = email_timeout_seconds

    async def begin_session(self, request: SignupRequest) -> str:
        """Open (or overwrite) the pending session for the signup email.

        Returns:
            The opaque session id the client must present to verify.
        """
        email = _normalized(normalize_email, request.email, "email")
        phone_number = _normalized(
            normalize_phone_number, request.phone_number, "phone_number"
        )
        display_name = f"{request.first_name} {request.last_name}"

        session_id = generate_session_id()
        otp_code = generate_otp_code()
        try:
            await self._sessions.upsert(
                email=email,
                phone_number=phone_number,
                session_id=session_id,
                otp_hash=hash_token(otp_code),
                display_name=display_name,
                created_at=utcnow(),
            )
        except DuplicateKeyError:
            log.warning("otp_session_conflict", email=email)
            raise ConflictError(
                "This phone number is already pending verification for another email",
                field="phone_number",
            )

        log.info("otp_session_created", email=email, session_id=session_id)
        await dispatch_best_effort(
            self._email.send_registration_otp(email, display_name, otp_code),
            timeout=self._email_timeout,
            event="registration_otp_email",
            email=email,
        )
        return session_id

    async def resend(self, session_id: str) -> str:
        """Replace the OTP of a live session and email it again."""
        session = await self._sessions.find_by_session_id(session_id)
        if session is None:
            raise NotFoundError(SESSION_NOT_FOUND)

        now = utcnow()
        restart = self._settings.resend_restarts_window
        if not restart and session.is_expired(now, self._settings.otp_ttl_seconds):
            await self._sessions.delete(session_id)
            raise ExpiredError(SESSION_EXPIRED)

        otp_code = generate_otp_code()
        session = await self._sessions.refresh_otp(
            session_id, hash_token(otp_code), now if restart else None
        )
        if session is None:
            raise NotFoundError(SESSION_NOT_FOUND)

        log.info("otp_session_resent", email=session.email, window_restarted=restart)
        await dispatch_best_effort(
            self._email.send_registration_otp(
                session.email, session.display_name, otp_code, resend=True
            ),
            timeout=self._email_timeout,
            event="registration_otp_email",
            email=session.email,
        )
        return session_id

    async def consume(self, request: VerifyOtpRequest) -> UserDoc:
        """Turn a pending session into a verified, network-admitted user.

        Raises:
            NotFoundError: no such session, or it was consumed concurrently.
            ExpiredError: session older than the OTP window (it is deleted).
            InvalidOtpError: OTP mismatch.
            ConflictError: a user already holds the email or phone number.
            ValidationError: sponsor code does not exist.
        """
        session = await self._sessions.find_by_session_id(request.session_id)
        if session is None:
            raise NotFoundError(SESSION_NOT_FOUND)

        now = utcnow()
        if session.is_expired(now, self._settings.otp_ttl_seconds):
            await self._sessions.delete(session.session_id)
            log.info("otp_session_expired", email=session.email)
            raise ExpiredError(SESSION_EXPIRED)

        if not is_valid_otp_format(request.otp) or not token_matches(
            request.otp, session.otp_hash
        ):
            log.warning("otp_verification_failed", reason="mismatch", email=session.email)
            raise InvalidOtpError("Invalid OTP")

        if await self._users.find_by_email_or_phone(session.email, session.phone_number):
            log.warning("registration_failed", reason="user_exists", email=session.email)
            raise ConflictError(USER_EXISTS)

        sponsor_by = request.sponsor_by
        if sponsor_by != ROOT_SPONSOR and not await self._users.find_by_sponsor_id(
            sponsor_by
        ):
            raise ValidationError("Unknown sponsor code", field="sponsor_by")

        claimed = await self._sessions.claim(session.session_id, session.otp_hash)
        if claimed is None:
            # A concurrent verify (or a resend) got there first
            raise NotFoundError(SESSION_NOT_FOUND)

        try:
            user = await self._create_user(claimed, request)
        except ConflictError:
            raise
        except Exception:
            await self._sessions.restore(claimed)
            raise

        promotions = await self._admit(user)
        log.info(
            "user_registered",
            user_id=str(user.id),
            sponsor_by=user.sponsor_by,
            promotions=len(promotions),
        )
        return user

    async def _admit(self, user: UserDoc) -> list[Promotion]:
        # The user already exists and the session is gone, so a failed
        # admission is retried and then left for login to repair.
        for attempt in range(1, ADMISSION_ATTEMPTS + 1):
            try:
                return await self._leveling.admit(user)
            except Exception as e:
                log.error(
                    "sponsor_admission_failed",
                    user_id=str(user.id),
                    sponsor_by=user.sponsor_by,
                    attempt=attempt,
                    error=str(e),
                    error_type=type(e).__name__,
                )
        log.error("sponsor_admission_deferred", user_id=str(user.id), sponsor_by=user.sponsor_by)
        return []

    async def _create_user(
        self, session: VerificationSessionDoc, request: VerifyOtpRequest
    ) -> UserDoc:
        password_hash = hash_password(request.password)
        now = utcnow()
        for _ in range(SPONSOR_CODE_ATTEMPTS):
            user = UserDoc(
                first_name=request.first_name,
                last_name=request.last_name,
                email=session.email,
                phone_number=session.phone_number,
                password_hash=password_hash,
                gender=request.gender,
                is_verified=True,
                sponsor_id=generate_sponsor_code(),
                sponsor_by=request.sponsor_by,
                created_at=now,
                updated_at=now,
            )
            try:
                return await self._users.insert(user)
            except DuplicateKeyError as e:
                if "sponsor_id" in _duplicate_key_fields(e):
                    continue
                raise ConflictError(USER_EXISTS)
        raise ConflictError("Could not allocate a referral code, please retry")
