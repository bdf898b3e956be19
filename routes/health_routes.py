"""
Health check endpoint.

GET /health — checks MongoDB connectivity and reports which collaborators
are configured.
Rules:
- MongoDB failure → "unhealthy" (503) — the app cannot function without it.
- Email or storage not configured → "degraded" (200) — registration still
  works, but OTP mails or KYC uploads will fail.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from config import AppSettings
from dependencies import get_db, get_settings
from schemas.dto.responses.common import HealthResponse

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(
    db=Depends(get_db),
    settings: AppSettings = Depends(get_settings),
) -> JSONResponse:
    checks: dict[str, str] = {}
    overall = "healthy"

    try:
        await db.client.admin.command("ping")
        checks["mongodb"] = "ok"
    except Exception:
        checks["mongodb"] = "error"
        overall = "unhealthy"

    checks["email"] = "ok" if settings.email.zepto_api_token else "not_configured"
    checks["storage"] = "ok" if settings.storage.is_configured else "not_configured"
    if overall == "healthy" and "not_configured" in (checks["email"], checks["storage"]):
        overall = "degraded"

    status_code = 503 if overall == "unhealthy" else 200
    return JSONResponse(
        status_code=status_code,
        content=HealthResponse(status=overall, checks=checks).model_dump(),
    )
