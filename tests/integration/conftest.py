"""
Integration test wiring: the real routers and error handlers on top of the
fake-backed services from the root conftest.
"""

from contextlib import asynccontextmanager

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from errors import register_error_handlers
from routes.auth_routes import router as auth_router
from routes.driver_routes import router as driver_router


@pytest.fixture
def app(registration, auth, kyc, token_service):
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.registration_service = registration
        app.state.auth_service = auth
        app.state.kyc_service = kyc
        app.state.token_service = token_service
        yield

    app = FastAPI(lifespan=lifespan)
    register_error_handlers(app)
    app.include_router(auth_router)
    app.include_router(driver_router)
    return app


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def bearer(token_service):
    """Authorization header for *user*."""

    def _bearer(user) -> dict:
        return {"Authorization": f"Bearer {token_service.issue(user.id).token}"}

    return _bearer
