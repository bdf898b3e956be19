"""Repository for the `vehicles` collection."""

from __future__ import annotations

from typing import Any, Optional

from bson import ObjectId
from pymongo import DESCENDING, ReturnDocument

from schemas.models.base import to_object_id
from schemas.models.vehicle import VehicleDoc

COLLECTION = "vehicles"


class VehicleRepository:
    def __init__(self, db) -> None:
        self._col = db[COLLECTION]

    async def insert(self, vehicle: VehicleDoc) -> VehicleDoc:
        result = await self._col.insert_one(vehicle.to_mongo())
        return vehicle.model_copy(update={"id": result.inserted_id})

    async def find_for_user(
        self, vehicle_id: Any, user_id: ObjectId
    ) -> Optional[VehicleDoc]:
        oid = to_object_id(vehicle_id)
        if oid is None:
            return None
        doc = await self._col.find_one({"_id": oid, "user_id": user_id})
        return VehicleDoc.from_mongo(doc)

    async def list_for_user(self, user_id: ObjectId) -> list[VehicleDoc]:
        cursor = self._col.find({"user_id": user_id}).sort("created_at", DESCENDING)
        return [VehicleDoc.from_mongo(doc) for doc in await cursor.to_list()]

    async def update(
        self, vehicle_id: ObjectId, user_id: ObjectId, fields: dict
    ) -> Optional[VehicleDoc]:
        doc = await self._col.find_one_and_update(
            {"_id": vehicle_id, "user_id": user_id},
            {"$set": fields},
            return_document=ReturnDocument.AFTER,
        )
        return VehicleDoc.from_mongo(doc)
