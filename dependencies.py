"""
FastAPI dependency providers.

All injectable dependencies are defined here as plain functions used with
FastAPI's Depends() system. Services are built once in the app lifespan and
read back from app.state.
"""

from __future__ import annotations

from fastapi import Request

from config import AppSettings
from services.auth_service import AuthService
from services.kyc_service import KycService
from services.registration_service import RegistrationService
from services.token_service import TokenService


def get_settings(request: Request) -> AppSettings:
    """Return the AppSettings instance stored on app.state."""
    return request.app.state.settings


async def get_db(request: Request):
    """Return the async MongoDB database from app.state."""
    return request.app.state.db


def get_token_service(request: Request) -> TokenService:
    return request.app.state.token_service


def get_registration_service(request: Request) -> RegistrationService:
    return request.app.state.registration_service


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


def get_kyc_service(request: Request) -> KycService:
    return request.app.state.kyc_service


def get_current_user_id(request: Request) -> str:
    """Resolve the caller from a Bearer header or the session cookie.

    The verified token is kept on ``request.state.credential`` so error
    responses for this request can hand it back unchanged.

    Raises:
        AuthenticationError: missing, expired or invalid token.
    """
    tokens = get_token_service(request)
    token = tokens.from_request(request)
    user_id = tokens.verify(token)
    request.state.credential = token
    return user_id
