"""Index definitions, applied once at startup from the app lifespan."""

from __future__ import annotations

from pymongo import ASCENDING, DESCENDING

from repositories import session_repository, user_repository, vehicle_repository
from shared.logging import get_logger

log = get_logger(__name__)


async def ensure_indexes(db, otp_ttl_seconds: int = 600) -> None:
    sessions = db[session_repository.COLLECTION]
    await sessions.create_index([("email", ASCENDING)], unique=True)
    await sessions.create_index([("phone_number", ASCENDING)], unique=True)
    await sessions.create_index([("session_id", ASCENDING)], unique=True)
    # Background expiry; the services also check created_at themselves
    await sessions.create_index(
        [("created_at", ASCENDING)], expireAfterSeconds=otp_ttl_seconds
    )

    users = db[user_repository.COLLECTION]
    await users.create_index([("email", ASCENDING)], unique=True)
    await users.create_index([("phone_number", ASCENDING)], unique=True)
    await users.create_index([("sponsor_id", ASCENDING)], unique=True)
    await users.create_index([("sponsor_by", ASCENDING), ("level", ASCENDING)])

    vehicles = db[vehicle_repository.COLLECTION]
    await vehicles.create_index(
        [("user_id", ASCENDING), ("created_at", DESCENDING)]
    )

    log.info("indexes_ensured", otp_ttl_seconds=otp_ttl_seconds)
