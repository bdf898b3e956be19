"""Repository for the `verification-sessions` collection."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from schemas.models.session import VerificationSessionDoc
from shared.logging import get_logger

log = get_logger(__name__)

COLLECTION = "verification-sessions"


class SessionRepository:
    def __init__(self, db) -> None:
        self._col = db[COLLECTION]

    async def upsert(
        self,
        *,
        email: str,
        phone_number: str,
        session_id: str,
        otp_hash: str,
        display_name: Optional[str],
        created_at: datetime,
    ) -> None:
        """Create the session for *email*, or overwrite the live one in place.

        Email and phone are the session's identity and are only written on
        insert; session_id, OTP and the expiry clock are replaced.

        Raises:
            DuplicateKeyError: when *phone_number* belongs to another pending email.
        """
        await self._col.update_one(
            {"email": email},
            {
                "$set": {
                    "session_id": session_id,
                    "otp_hash": otp_hash,
                    "display_name": display_name,
                    "created_at": created_at,
                },
                "$setOnInsert": {"email": email, "phone_number": phone_number},
            },
            upsert=True,
        )

    async def find_by_session_id(
        self, session_id: str
    ) -> Optional[VerificationSessionDoc]:
        doc = await self._col.find_one({"session_id": session_id})
        return VerificationSessionDoc.from_mongo(doc)

    async def refresh_otp(
        self, session_id: str, otp_hash: str, created_at: Optional[datetime] = None
    ) -> Optional[VerificationSessionDoc]:
        """Swap in a new OTP hash; restart the clock only when *created_at* is given."""
        update: dict = {"otp_hash": otp_hash}
        if created_at is not None:
            update["created_at"] = created_at
        doc = await self._col.find_one_and_update(
            {"session_id": session_id},
            {"$set": update},
            return_document=ReturnDocument.AFTER,
        )
        return VerificationSessionDoc.from_mongo(doc)

    async def claim(
        self, session_id: str, otp_hash: str
    ) -> Optional[VerificationSessionDoc]:
        """Atomically delete and return the session if the OTP still matches.

        Of two racing claims for the same session only one gets the document.
        """
        doc = await self._col.find_one_and_delete(
            {"session_id": session_id, "otp_hash": otp_hash}
        )
        return VerificationSessionDoc.from_mongo(doc)

    async def delete(self, session_id: str) -> None:
        await self._col.delete_one({"session_id": session_id})

    async def restore(self, session: VerificationSessionDoc) -> None:
        """Put back a claimed session after user creation failed downstream."""
        try:
            await self._col.insert_one(session.to_mongo())
        except DuplicateKeyError:
            # A fresh signup for the same email already replaced it
            log.info("session_restore_skipped", session_id=session.session_id)
