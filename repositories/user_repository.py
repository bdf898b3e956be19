"""Repository for the `users` collection.

Rank updates go through compare_and_set_level() so concurrent admissions
under the same sponsor never overwrite each other's promotion.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable, Optional

from bson import ObjectId
from pymongo import ReturnDocument

from schemas.models.base import to_object_id
from schemas.models.user import UserDoc

COLLECTION = "users"


class UserRepository:
    def __init__(self, db) -> None:
        self._col = db[COLLECTION]

    async def find_by_id(self, user_id: Any) -> Optional[UserDoc]:
        oid = to_object_id(user_id)
        if oid is None:
            return None
        return UserDoc.from_mongo(await self._col.find_one({"_id": oid}))

    async def find_by_email(self, email: str) -> Optional[UserDoc]:
        return UserDoc.from_mongo(await self._col.find_one({"email": email}))

    async def find_by_email_or_phone(
        self, email: Optional[str], phone_number: Optional[str]
    ) -> Optional[UserDoc]:
        clauses = []
        if email:
            clauses.append({"email": email})
        if phone_number:
            clauses.append({"phone_number": phone_number})
        if not clauses:
            return None
        return UserDoc.from_mongo(await self._col.find_one({"$or": clauses}))

    async def find_by_sponsor_id(self, sponsor_id: str) -> Optional[UserDoc]:
        return UserDoc.from_mongo(await self._col.find_one({"sponsor_id": sponsor_id}))

    async def find_many(self, user_ids: Iterable[ObjectId]) -> list[UserDoc]:
        ids = list(user_ids)
        if not ids:
            return []
        cursor = self._col.find({"_id": {"$in": ids}})
        docs = await cursor.to_list()
        by_id = {doc["_id"]: UserDoc.from_mongo(doc) for doc in docs}
        # Keep sponsor_tree order
        return [by_id[i] for i in ids if i in by_id]

    async def insert(self, user: UserDoc) -> UserDoc:
        """Insert *user* and return it with its generated id.

        Raises:
            DuplicateKeyError: on an email, phone or sponsor_id collision.
        """
        result = await self._col.insert_one(user.to_mongo())
        return user.model_copy(update={"id": result.inserted_id})

    async def update(
        self,
        user_id: ObjectId,
        fields: dict,
        *,
        raise_to: Optional[dict] = None,
        unset: Optional[Iterable[str]] = None,
    ) -> Optional[UserDoc]:
        """Apply ``$set`` *fields* (and ``$max`` *raise_to*); return the updated user."""
        update: dict = {}
        if fields:
            update["$set"] = fields
        if raise_to:
            update["$max"] = raise_to
        if unset:
            update["$unset"] = {name: "" for name in unset}
        doc = await self._col.find_one_and_update(
            {"_id": user_id}, update, return_document=ReturnDocument.AFTER
        )
        return UserDoc.from_mongo(doc)

    async def add_to_sponsor_tree(self, sponsor_oid: ObjectId, child_oid: ObjectId) -> None:
        await self._col.update_one(
            {"_id": sponsor_oid}, {"$addToSet": {"sponsor_tree": child_oid}}
        )

    async def count_children_at_level(self, sponsor_id: str, min_level: int) -> int:
        """Count direct referrals of *sponsor_id* whose rank is at least *min_level*."""
        return await self._col.count_documents(
            {"sponsor_by": sponsor_id, "level": {"$gte": min_level}}
        )

    async def compare_and_set_level(
        self, user_id: ObjectId, expected: int, new_level: int
    ) -> bool:
        result = await self._col.update_one(
            {"_id": user_id, "level": expected}, {"$set": {"level": new_level}}
        )
        return result.modified_count == 1

    async def count(self) -> int:
        return await self._col.estimated_document_count()

    async def set_reset_otp(
        self, user_id: ObjectId, otp_hash: str, expires_at: datetime
    ) -> None:
        await self._col.update_one(
            {"_id": user_id},
            {"$set": {"reset_otp_hash": otp_hash, "reset_otp_expires": expires_at}},
        )

    async def complete_password_reset(
        self,
        user_id: ObjectId,
        otp_hash: str,
        password_hash: str,
        now: datetime,
    ) -> Optional[UserDoc]:
        """Set the new password only if the reset OTP still matches and is live.

        The OTP is cleared in the same write, so it cannot be replayed.
        """
        doc = await self._col.find_one_and_update(
            {
                "_id": user_id,
                "reset_otp_hash": otp_hash,
                "reset_otp_expires": {"$gt": now},
            },
            {
                "$set": {
                    "password_hash": password_hash,
                    "reset_otp_hash": None,
                    "reset_otp_expires": None,
                    "updated_at": now,
                }
            },
            return_document=ReturnDocument.AFTER,
        )
        return UserDoc.from_mongo(doc)
