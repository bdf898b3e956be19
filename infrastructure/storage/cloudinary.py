"""Cloudinary implementation of StorageProvider.

Uses the signed upload REST endpoint directly over HttpClient:

    POST https://api.cloudinary.com/v1_1/<cloud_name>/auto/upload

signature = SHA-1 of the alphabetically sorted signed params joined as
``k=v&k=v`` with the API secret appended. Only ``folder`` and ``timestamp``
are signed. Uploads are never retried here; any failure raises UpstreamError
so the enclosing KYC/vehicle operation aborts before writing anything.
"""

import hashlib
import time
from typing import Callable, Optional

from config import StorageSettings
from errors import UpstreamError
from infrastructure.http_client import HttpClient
from infrastructure.storage.protocol import UploadedFile
from shared.logging import get_logger

log = get_logger(__name__)

_CLOUDINARY_API_BASE = "https://api.cloudinary.com/v1_1"


def sign_params(params: dict[str, str], api_secret: str) -> str:
    to_sign = "&".join(f"{k}={params[k]}" for k in sorted(params))
    return hashlib.sha1(f"{to_sign}{api_secret}".encode("utf-8")).hexdigest()


class CloudinaryStorageProvider:
    def __init__(
        self,
        settings: StorageSettings,
        http_client: HttpClient,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        self._settings = settings
        self._http = http_client
        self._clock = clock or time.time

    @property
    def _upload_url(self) -> str:
        return f"{_CLOUDINARY_API_BASE}/{self._settings.cloudinary_cloud_name}/auto/upload"

    async def upload(self, file: UploadedFile, folder: str) -> str:
        if not self._settings.is_configured:
            log.error("storage_upload_failed", reason="not_configured", folder=folder)
            raise UpstreamError("File storage is not configured")
        if file.is_empty:
            raise UpstreamError(f"Refusing to upload empty file {file.filename!r}")

        signed = {"folder": folder, "timestamp": str(int(self._clock()))}
        data = {
            **signed,
            "api_key": self._settings.cloudinary_api_key,
            "signature": sign_params(signed, self._settings.cloudinary_api_secret),
        }
        files = {
            "file": (
                file.filename,
                file.content,
                file.content_type or "application/octet-stream",
            )
        }

        try:
            response = await self._http.post(self._upload_url, data=data, files=files)
        except Exception as e:
            log.error(
                "storage_upload_error",
                folder=folder,
                filename=file.filename,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise UpstreamError("File upload failed") from e

        if response.status_code not in (200, 201):
            log.error(
                "storage_upload_failed",
                folder=folder,
                filename=file.filename,
                status_code=response.status_code,
                response=response.text[:200],
            )
            raise UpstreamError("File upload was rejected by storage")

        url = response.json().get("secure_url")
        if not url:
            log.error("storage_upload_failed", folder=folder, reason="missing_secure_url")
            raise UpstreamError("File upload returned no URL")

        log.info("storage_upload_success", folder=folder, filename=file.filename)
        return url
