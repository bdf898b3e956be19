"""
FastAPI application factory.
create_app() is the single entry point for building the app.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import sentry_sdk
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pymongo.asynchronous.mongo_client import AsyncMongoClient

from config import AppSettings
from errors import register_error_handlers
from infrastructure.email.zeptomail import ZeptoMailProvider
from infrastructure.http_client import HttpClient
from infrastructure.storage.cloudinary import CloudinaryStorageProvider
from repositories.indexes import ensure_indexes
from repositories.session_repository import SessionRepository
from repositories.user_repository import UserRepository
from repositories.vehicle_repository import VehicleRepository
from routes.auth_routes import router as auth_router
from routes.driver_routes import router as driver_router
from routes.health_routes import router as health_router
from services.auth_service import AuthService
from services.kyc_service import KycService
from services.referral.leveling import ReferralLevelingEngine
from services.registration_service import RegistrationService
from services.token_service import TokenService
from shared.logging import get_logger, setup_logging

log = get_logger(__name__)


def create_app(settings: Optional[AppSettings] = None) -> FastAPI:
    """Create and return a fully configured FastAPI application."""
    if settings is None:
        settings = AppSettings()

    setup_logging(settings.logging, env=settings.env)

    # Initialise Sentry before anything else so it captures startup errors
    if settings.sentry.sentry_dsn:
        sentry_sdk.init(
            dsn=settings.sentry.sentry_dsn,
            send_default_pii=settings.sentry.sentry_send_pii,
            traces_sample_rate=settings.sentry.sentry_traces_sample_rate,
            profiles_sample_rate=settings.sentry.sentry_profile_sample_rate,
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        # ── Startup ──────────────────────────────────────────────────────────
        mongo_client: AsyncMongoClient = AsyncMongoClient(
            settings.db.mongodb_uri, tz_aware=True
        )
        db = mongo_client[settings.db.db_name]
        app.state.mongo_client = mongo_client
        app.state.db = db
        app.state.settings = settings

        # One HTTP client per collaborator so timeouts stay independent
        email_http = HttpClient(timeout=settings.email.email_timeout_seconds)
        storage_http = HttpClient(timeout=settings.storage.storage_timeout_seconds)

        registration_settings = settings.registration
        email = ZeptoMailProvider(
            settings.email,
            email_http,
            otp_ttl_minutes=registration_settings.otp_ttl_seconds // 60,
        )
        storage = CloudinaryStorageProvider(settings.storage, storage_http)

        users = UserRepository(db)
        leveling = ReferralLevelingEngine(users)
        app.state.token_service = TokenService(settings.jwt)
        app.state.registration_service = RegistrationService(
            SessionRepository(db),
            users,
            leveling,
            email,
            registration_settings,
            email_timeout_seconds=settings.email.email_timeout_seconds,
        )
        app.state.auth_service = AuthService(
            users,
            leveling,
            email,
            registration_settings,
            email_timeout_seconds=settings.email.email_timeout_seconds,
        )
        app.state.kyc_service = KycService(users, VehicleRepository(db), storage)

        await ensure_indexes(db, otp_ttl_seconds=registration_settings.otp_ttl_seconds)
        log.info("app_started", env=settings.env, db_name=settings.db.db_name)

        yield

        # ── Shutdown ─────────────────────────────────────────────────────────
        await email_http.aclose()
        await storage_http.aclose()
        await mongo_client.close()

    app = FastAPI(
        title=settings.app_name,
        version="1.0.0",
        docs_url=settings.docs_url,
        redoc_url=None,
        lifespan=lifespan,
    )

    # Credentials travel as a cookie, so CORS must allow them
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(app)
    app.include_router(health_router)
    app.include_router(auth_router)
    app.include_router(driver_router)

    return app
