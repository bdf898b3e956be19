"""
Response helpers shared by the routers.

Successful mutations answer with a fresh credential: the token goes in the
JSON body and the same value is set as the session cookie.
"""

from __future__ import annotations

from typing import Optional

from fastapi import UploadFile
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from infrastructure.storage.protocol import UploadedFile
from services.token_service import Credential


def respond(
    body: BaseModel,
    *,
    status_code: int = 200,
    credential: Optional[Credential] = None,
) -> JSONResponse:
    response = JSONResponse(
        status_code=status_code, content=body.model_dump(mode="json")
    )
    if credential is not None:
        credential.attach(response)
    return response


async def read_upload(upload: Optional[UploadFile]) -> Optional[UploadedFile]:
    """Read a multipart part into memory; absent or empty parts become None."""
    if upload is None or not upload.filename:
        return None
    content = await upload.read()
    if not content:
        return None
    return UploadedFile(
        filename=upload.filename, content=content, content_type=upload.content_type
    )
