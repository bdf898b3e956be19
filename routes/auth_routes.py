"""
Registration and account routes.

POST /api/users/signup           start an OTP session
POST /api/users/resend-otp       new OTP for the same session
POST /api/users/verify-otp       OTP → verified user, admitted to the network
POST /api/users/login
POST /api/users/forgot-password  email a reset OTP (no credential issued)
POST /api/users/reset-password
POST /api/users/submit-kyc       multipart: KYC level 1       (auth)
POST /api/users/logout                                        (auth)
GET  /api/users/me                                            (auth)
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
from fastapi.responses import JSONResponse

from dependencies import (
    get_auth_service,
    get_current_user_id,
    get_kyc_service,
    get_registration_service,
    get_token_service,
)
from routes.responses import read_upload, respond
from schemas.dto.requests.auth import (
    ForgotPasswordRequest,
    LoginRequest,
    ResendOtpRequest,
    ResetPasswordRequest,
    SignupRequest,
    VerifyOtpRequest,
)
from schemas.dto.responses.auth import (
    AuthResponse,
    CurrentUserResponse,
    PasswordResetResponse,
    ResetOtpSentResponse,
    SessionResponse,
    SponsoredUser,
    UserProfileResponse,
)
from schemas.dto.responses.common import MessageResponse
from schemas.dto.responses.driver import KycResponse
from schemas.models.user import UserDoc
from services.auth_service import AuthService
from services.kyc_service import KycService
from services.registration_service import RegistrationService
from services.token_service import TokenService

router = APIRouter(prefix="/api/users", tags=["users"])


def _sponsored(users: list[UserDoc]) -> list[SponsoredUser]:
    return [SponsoredUser(id=str(u.id), name=u.full_name) for u in users]


def _auth_response(
    message: str, user: UserDoc, token: str, sponsored: list[UserDoc]
) -> AuthResponse:
    tree = _sponsored(sponsored)
    return AuthResponse(
        message=message,
        token=token,
        user_id=str(user.id),
        sponsor_id=user.sponsor_id,
        level=user.level,
        sponsor_tree=tree,
        sponsored_users=", ".join(s.name for s in tree) or "No sponsored users",
        user=UserProfileResponse.from_user(user),
    )


@router.post("/signup")
async def signup(
    body: SignupRequest,
    registration: RegistrationService = Depends(get_registration_service),
) -> JSONResponse:
    session_id = await registration.begin_session(body)
    return respond(
        SessionResponse(
            message="OTP sent to your email. Please verify to complete registration.",
            session_id=session_id,
        )
    )


@router.post("/resend-otp")
async def resend_otp(
    body: ResendOtpRequest,
    registration: RegistrationService = Depends(get_registration_service),
) -> JSONResponse:
    session_id = await registration.resend(body.session_id)
    return respond(
        SessionResponse(message="New OTP sent successfully", session_id=session_id)
    )


@router.post("/verify-otp")
async def verify_otp(
    body: VerifyOtpRequest,
    registration: RegistrationService = Depends(get_registration_service),
    tokens: TokenService = Depends(get_token_service),
) -> JSONResponse:
    user = await registration.consume(body)
    credential = tokens.issue(user.id)
    return respond(
        _auth_response(
            "Registration completed successfully", user, credential.token, []
        ),
        status_code=201,
        credential=credential,
    )


@router.post("/login")
async def login(
    body: LoginRequest,
    auth: AuthService = Depends(get_auth_service),
    tokens: TokenService = Depends(get_token_service),
) -> JSONResponse:
    user = await auth.login(body.email, body.phone_number, body.password)
    credential = tokens.issue(user.id)
    sponsored = await auth.sponsored_users(user)
    return respond(
        _auth_response("Login successful", user, credential.token, sponsored),
        credential=credential,
    )


@router.post("/forgot-password")
async def forgot_password(
    body: ForgotPasswordRequest,
    auth: AuthService = Depends(get_auth_service),
) -> JSONResponse:
    user = await auth.forgot_password(body.email)
    return respond(
        ResetOtpSentResponse(message="Reset OTP sent to email", user_id=str(user.id))
    )


@router.post("/reset-password")
async def reset_password(
    body: ResetPasswordRequest,
    auth: AuthService = Depends(get_auth_service),
    tokens: TokenService = Depends(get_token_service),
) -> JSONResponse:
    user = await auth.reset_password(body.user_id, body.reset_otp, body.password)
    credential = tokens.issue(user.id)
    return respond(
        PasswordResetResponse(
            message="Password reset successful",
            token=credential.token,
            user_id=str(user.id),
        ),
        credential=credential,
    )


@router.post("/submit-kyc")
async def submit_kyc(
    full_name: Optional[str] = Form(None, alias="fullName"),
    country: Optional[str] = Form(None),
    gender: Optional[str] = Form(None),
    front_image: Optional[UploadFile] = File(None, alias="frontImage"),
    back_image: Optional[UploadFile] = File(None, alias="backImage"),
    selfie_image: Optional[UploadFile] = File(None, alias="selfieImage"),
    user_id: str = Depends(get_current_user_id),
    kyc: KycService = Depends(get_kyc_service),
    tokens: TokenService = Depends(get_token_service),
) -> JSONResponse:
    user = await kyc.submit_level_one(
        user_id,
        full_name=full_name,
        country=country,
        gender=gender,
        front=await read_upload(front_image),
        back=await read_upload(back_image),
        selfie=await read_upload(selfie_image),
    )
    credential = tokens.issue(user.id)
    return respond(
        KycResponse(
            message="KYC Level 1 submitted successfully",
            kyc_level=user.kyc_level,
            token=credential.token,
        ),
        credential=credential,
    )


@router.post("/logout")
async def logout(
    user_id: str = Depends(get_current_user_id),
    tokens: TokenService = Depends(get_token_service),
) -> JSONResponse:
    response = respond(MessageResponse(message="Logged out successfully"))
    tokens.clear(response)
    return response


@router.get("/me")
async def current_user(
    user_id: str = Depends(get_current_user_id),
    auth: AuthService = Depends(get_auth_service),
) -> JSONResponse:
    user = await auth.get_user(user_id)
    sponsored = await auth.sponsored_users(user)
    return respond(
        CurrentUserResponse(
            user=UserProfileResponse.from_user(user),
            sponsor_tree=_sponsored(sponsored),
        )
    )
