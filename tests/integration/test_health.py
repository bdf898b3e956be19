"""Integration tests for GET /health."""

from contextlib import asynccontextmanager
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

from fastapi import FastAPI
from fastapi.testclient import TestClient

from config import EmailSettings, StorageSettings
from errors import register_error_handlers
from routes.health_routes import router as health_router


def _build_test_app(
    mongo_ok: bool = True,
    email_configured: bool = True,
    storage_configured: bool = True,
) -> FastAPI:
    """
    Build a minimal FastAPI app with a mocked DB and settings injected via
    lifespan. No real network connections are made.
    """
    mock_db = MagicMock()
    if mongo_ok:
        mock_db.client.admin.command = AsyncMock(return_value={"ok": 1})
    else:
        mock_db.client.admin.command = AsyncMock(
            side_effect=Exception("connection refused")
        )

    settings = SimpleNamespace(
        email=EmailSettings(zepto_api_token="tok" if email_configured else ""),
        storage=StorageSettings(
            cloudinary_cloud_name="demo" if storage_configured else "",
            cloudinary_api_key="123",
            cloudinary_api_secret="shh",
        ),
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.db = mock_db
        app.state.settings = settings
        yield

    app = FastAPI(lifespan=lifespan)
    register_error_handlers(app)
    app.include_router(health_router)
    return app


class TestHealthEndpoint:
    def test_healthy_when_everything_ok(self):
        app = _build_test_app()
        with TestClient(app) as client:
            resp = client.get("/health")
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "healthy"
        assert body["checks"] == {"mongodb": "ok", "email": "ok", "storage": "ok"}

    def test_unhealthy_when_mongo_fails(self):
        app = _build_test_app(mongo_ok=False)
        with TestClient(app) as client:
            resp = client.get("/health")
        assert resp.status_code == 503
        body = resp.json()
        assert body["status"] == "unhealthy"
        assert body["checks"]["mongodb"] == "error"

    def test_unhealthy_wins_over_degraded(self):
        app = _build_test_app(mongo_ok=False, email_configured=False)
        with TestClient(app) as client:
            resp = client.get("/health")
        assert resp.status_code == 503
        assert resp.json()["status"] == "unhealthy"

    def test_degraded_when_email_not_configured(self):
        app = _build_test_app(email_configured=False)
        with TestClient(app) as client:
            resp = client.get("/health")
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "degraded"
        assert body["checks"]["email"] == "not_configured"

    def test_degraded_when_storage_not_configured(self):
        app = _build_test_app(storage_configured=False)
        with TestClient(app) as client:
            resp = client.get("/health")
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "degraded"
        assert body["checks"]["storage"] == "not_configured"
