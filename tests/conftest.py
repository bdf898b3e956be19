"""
Shared fixtures: in-memory repositories, fake collaborators and the services
wired on top of them.
"""

import os

import pytest
from bson import ObjectId

from config import JWTSettings, RegistrationSettings
from schemas.models.user import ROOT_SPONSOR, UserDoc
from services.auth_service import AuthService
from services.kyc_service import KycService
from services.referral.leveling import ReferralLevelingEngine
from services.registration_service import RegistrationService
from services.token_service import TokenService
from shared.crypto import hash_password
from shared.datetime_utils import utcnow
from tests.fakes import (
    TEST_PASSWORD,
    FakeEmailProvider,
    FakeSessionRepository,
    FakeStorageProvider,
    FakeUserRepository,
    FakeVehicleRepository,
)

# Ensure a MONGODB_URI is present so AppSettings can be instantiated
os.environ.setdefault("MONGODB_URI", "mongodb://localhost:27017/")


@pytest.fixture
def users():
    return FakeUserRepository()


@pytest.fixture
def sessions():
    return FakeSessionRepository()


@pytest.fixture
def vehicles():
    return FakeVehicleRepository()


@pytest.fixture
def email():
    return FakeEmailProvider()


@pytest.fixture
def storage():
    return FakeStorageProvider()


@pytest.fixture
def registration_settings():
    return RegistrationSettings(
        otp_ttl_seconds=600, reset_otp_ttl_seconds=600, resend_restarts_window=True
    )


@pytest.fixture
def jwt_settings():
    return JWTSettings(jwt_secret="test-secret", cookie_secure=False)


@pytest.fixture
def token_service(jwt_settings):
    return TokenService(jwt_settings)


@pytest.fixture
def leveling(users):
    return ReferralLevelingEngine(users)


@pytest.fixture
def registration(sessions, users, leveling, email, registration_settings):
    return RegistrationService(
        sessions, users, leveling, email, registration_settings, email_timeout_seconds=1.0
    )


@pytest.fixture
def auth(users, leveling, email, registration_settings):
    return AuthService(
        users, leveling, email, registration_settings, email_timeout_seconds=1.0
    )


@pytest.fixture
def kyc(users, vehicles, storage):
    return KycService(users, vehicles, storage)


@pytest.fixture(scope="session")
def password_hash():
    # argon2 is slow on purpose; hash once per run
    return hash_password(TEST_PASSWORD)


@pytest.fixture
def make_user(users, password_hash):
    """Seed a verified user directly into the fake repository."""
    counter = {"n": 0}

    def _make(sponsor_by: str = ROOT_SPONSOR, **overrides) -> UserDoc:
        counter["n"] += 1
        n = counter["n"]
        fields = dict(
            id=ObjectId(),
            first_name=f"User{n}",
            last_name="Test",
            email=f"user{n}@example.com",
            phone_number=f"+1555000{n:04d}",
            password_hash=password_hash,
            is_verified=True,
            sponsor_id=f"CODE{n:04d}",
            sponsor_by=sponsor_by,
            created_at=utcnow(),
        )
        fields.update(overrides)
        return users.add(UserDoc(**fields))

    return _make
