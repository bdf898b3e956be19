"""
Identity and driver onboarding transitions.

    Verified ─submit_level_one→ KYC1 ─upload_license→ KYC2 ─decide_vehicle→
        no  → driver (no vehicle)
        yes → register_vehicle → driver with vehicle

Every artifact is uploaded before anything is written, so a storage failure
leaves the user exactly as it was. kyc_level is only ever raised ($max).
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Optional

from errors import ForbiddenError, NotFoundError, ValidationError
from infrastructure.storage.protocol import StorageProvider, UploadedFile
from repositories.user_repository import UserRepository
from repositories.vehicle_repository import VehicleRepository
from schemas.dto.requests.driver import VehicleFields
from schemas.models.user import (
    KYC_LEVEL_DOCUMENTS,
    KYC_LEVEL_LICENSE,
    ROLE_DRIVER,
    UserDoc,
)
from schemas.models.vehicle import MAX_VEHICLE_IMAGES, RegistrationCard, VehicleDoc
from shared.datetime_utils import utcnow
from shared.logging import get_logger
from shared.validators import parse_vehicle_answer, split_full_name

log = get_logger(__name__)

KYC_FRONT_FOLDER = "kyc/front"
KYC_BACK_FOLDER = "kyc/back"
KYC_SELFIE_FOLDER = "kyc/selfie"
KYC_LICENSE_FOLDER = "kyc/license"
VEHICLE_FOLDER = "vehicles"

NEXT_STEP_VEHICLE_REGISTRATION = "vehicleRegistration"

# Single-artifact vehicle fields, in the order they are uploaded
_VEHICLE_ARTIFACTS = (
    "license_image",
    "registration_card_front",
    "registration_card_back",
    "road_authority_certificate",
    "insurance_certificate",
)

_VEHICLE_DETAILS = (
    "vehicle_owner_name",
    "company_name",
    "vehicle_plate_number",
    "vehicle_make_model",
    "chassis_number",
    "vehicle_color",
    "vehicle_type",
    "registration_expiry_date",
)


@dataclass
class VehicleUploads:
    """Files received alongside the vehicle form. A file wins over a URL field."""

    license_image: Optional[UploadedFile] = None
    registration_card_front: Optional[UploadedFile] = None
    registration_card_back: Optional[UploadedFile] = None
    road_authority_certificate: Optional[UploadedFile] = None
    insurance_certificate: Optional[UploadedFile] = None
    vehicle_images: list[UploadedFile] = field(default_factory=list)


@dataclass(frozen=True)
class VehicleDecision:
    user: UserDoc
    has_vehicle: bool

    @property
    def next_step(self) -> Optional[str]:
        return NEXT_STEP_VEHICLE_REGISTRATION if self.has_vehicle else None


def _present(file: Optional[UploadedFile]) -> bool:
    return file is not None and not file.is_empty


async def _upload_all(*uploads: Awaitable[str]) -> list[str]:
    """Run uploads concurrently. The first failure cancels the rest."""
    tasks = [asyncio.ensure_future(u) for u in uploads]
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


class KycService:
    def __init__(
        self,
        users: UserRepository,
        vehicles: VehicleRepository,
        storage: StorageProvider,
    ) -> None:
        self._users = users
        self._vehicles = vehicles
        self._storage = storage

    # ── KYC ─────────────────────────────────────────────────────────────────

    async def submit_level_one(
        self,
        user_id: Any,
        *,
        full_name: Optional[str],
        country: Optional[str],
        gender: Optional[str],
        front: Optional[UploadedFile],
        back: Optional[UploadedFile],
        selfie: Optional[UploadedFile],
    ) -> UserDoc:
        """Capture identity documents and a selfie; raise kyc_level to 1.

        Raises:
            ValidationError: missing field/artifact or a single-token name.
            NotFoundError: unknown user.
            UpstreamError: an artifact could not be stored.
        """
        if not full_name or not country or not (
            _present(front) and _present(back) and _present(selfie)
        ):
            raise ValidationError(
                "Full name, country, front/back document images and a selfie are required"
            )
        try:
            first_name, last_name = split_full_name(full_name)
        except ValueError as e:
            raise ValidationError(str(e), field="full_name")

        user = await self._get_user(user_id)

        front_url, back_url, selfie_url = await _upload_all(
            self._storage.upload(front, KYC_FRONT_FOLDER),
            self._storage.upload(back, KYC_BACK_FOLDER),
            self._storage.upload(selfie, KYC_SELFIE_FOLDER),
        )

        changes: dict = {
            "first_name": first_name,
            "last_name": last_name,
            "country": country,
            "identity_documents": {"front": front_url, "back": back_url},
            "selfie_image": selfie_url,
            "updated_at": utcnow(),
        }
        if gender:
            changes["gender"] = gender

        updated = await self._users.update(
            user.id, changes, raise_to={"kyc_level": KYC_LEVEL_DOCUMENTS}
        )
        if updated is None:
            raise NotFoundError("User not found")
        log.info("kyc_level_one_completed", user_id=str(user.id), kyc_level=updated.kyc_level)
        return updated

    async def upload_license(
        self, user_id: Any, license_image: Optional[UploadedFile]
    ) -> UserDoc:
        user = await self._get_user(user_id)
        if user.kyc_level < KYC_LEVEL_DOCUMENTS:
            raise ForbiddenError("Complete KYC Level 1 first")
        if not _present(license_image):
            raise ValidationError(
                "License image is required for KYC Level 2", field="license_image"
            )

        url = await self._storage.upload(license_image, KYC_LICENSE_FOLDER)
        updated = await self._users.update(
            user.id,
            {"license_image": url, "updated_at": utcnow()},
            raise_to={"kyc_level": KYC_LEVEL_LICENSE},
        )
        if updated is None:
            raise NotFoundError("User not found")
        log.info("kyc_level_two_completed", user_id=str(user.id))
        return updated

    # ── Driver / vehicle ────────────────────────────────────────────────────

    async def decide_vehicle(self, user_id: Any, has_vehicle: Any) -> VehicleDecision:
        """Record the vehicle-ownership answer.

        "no" makes the user a driver right away; "yes" changes nothing and
        points the client at vehicle registration.
        """
        user = await self._require_license(user_id)
        try:
            owns_vehicle = parse_vehicle_answer(has_vehicle)
        except ValueError as e:
            raise ValidationError(str(e), field="has_vehicle")

        if owns_vehicle:
            return VehicleDecision(user=user, has_vehicle=True)

        updated = await self._users.update(
            user.id, {"role": ROLE_DRIVER, "updated_at": utcnow()}
        )
        log.info("driver_role_granted", user_id=str(user.id), with_vehicle=False)
        return VehicleDecision(user=updated or user, has_vehicle=False)

    async def register_vehicle(
        self, user_id: Any, fields: VehicleFields, uploads: VehicleUploads
    ) -> tuple[VehicleDoc, UserDoc]:
        """Create a vehicle (every field optional) and make the user a driver.

        Each call creates a new vehicle record.
        """
        user = await self._require_license(user_id)
        artifacts = await self._resolve_artifacts(fields, uploads)

        now = utcnow()
        vehicle = VehicleDoc(
            user_id=user.id,
            license_image=artifacts.get("license_image"),
            registration_card=RegistrationCard(
                front=artifacts.get("registration_card_front"),
                back=artifacts.get("registration_card_back"),
            ),
            road_authority_certificate=artifacts.get("road_authority_certificate"),
            insurance_certificate=artifacts.get("insurance_certificate"),
            vehicle_images=artifacts.get("vehicle_images") or [],
            created_at=now,
            updated_at=now,
            **{name: getattr(fields, name) for name in _VEHICLE_DETAILS},
        )
        vehicle = await self._vehicles.insert(vehicle)

        updated = await self._users.update(user.id, {"role": ROLE_DRIVER, "updated_at": now})
        log.info(
            "vehicle_registered",
            user_id=str(user.id),
            vehicle_id=str(vehicle.id),
            images=len(vehicle.vehicle_images),
        )
        return vehicle, updated or user

    async def update_vehicle(
        self,
        user_id: Any,
        vehicle_id: Any,
        fields: VehicleFields,
        uploads: VehicleUploads,
    ) -> VehicleDoc:
        """Set only the provided fields on a vehicle owned by the caller."""
        user = await self._require_license(user_id)
        vehicle = await self._vehicles.find_for_user(vehicle_id, user.id)
        if vehicle is None:
            raise NotFoundError("Vehicle not found")

        artifacts = await self._resolve_artifacts(fields, uploads)
        changes: dict = {}
        for name, url in artifacts.items():
            if name == "registration_card_front":
                changes["registration_card.front"] = url
            elif name == "registration_card_back":
                changes["registration_card.back"] = url
            else:
                changes[name] = url
        for name in _VEHICLE_DETAILS:
            value = getattr(fields, name)
            if value is not None:
                changes[name] = value
        changes["updated_at"] = utcnow()

        updated = await self._vehicles.update(vehicle.id, user.id, changes)
        if updated is None:
            raise NotFoundError("Vehicle not found")
        log.info(
            "vehicle_updated",
            user_id=str(user.id),
            vehicle_id=str(vehicle.id),
            fields=sorted(k for k in changes if k != "updated_at"),
        )
        return updated

    async def list_vehicles(self, user_id: Any) -> tuple[UserDoc, list[VehicleDoc]]:
        user = await self._get_user(user_id)
        return user, await self._vehicles.list_for_user(user.id)

    # ── Helpers ─────────────────────────────────────────────────────────────

    async def _get_user(self, user_id: Any) -> UserDoc:
        user = await self._users.find_by_id(user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    async def _require_license(self, user_id: Any) -> UserDoc:
        user = await self._get_user(user_id)
        if user.kyc_level < KYC_LEVEL_LICENSE:
            raise ForbiddenError("Complete KYC Level 2 first")
        return user

    async def _resolve_artifacts(
        self, fields: VehicleFields, uploads: VehicleUploads
    ) -> dict:
        """Upload provided files and merge them with URL fields.

        Only artifacts that were supplied (as a file or a URL) appear in the
        result, so callers can tell "absent" from "cleared".
        """
        images = [f for f in uploads.vehicle_images if _present(f)]
        if len(images) > MAX_VEHICLE_IMAGES or (
            not images
            and fields.vehicle_images is not None
            and len(fields.vehicle_images) > MAX_VEHICLE_IMAGES
        ):
            raise ValidationError(
                f"At most {MAX_VEHICLE_IMAGES} vehicle images are allowed",
                field="vehicle_images",
            )

        named = [
            (name, getattr(uploads, name))
            for name in _VEHICLE_ARTIFACTS
            if _present(getattr(uploads, name))
        ]
        urls = await _upload_all(
            *(self._storage.upload(f, VEHICLE_FOLDER) for _, f in named),
            *(self._storage.upload(f, VEHICLE_FOLDER) for f in images),
        )

        resolved: dict = dict(zip((name for name, _ in named), urls))
        if images:
            resolved["vehicle_images"] = urls[len(named):]

        for name in _VEHICLE_ARTIFACTS:
            if name not in resolved and getattr(fields, name) is not None:
                resolved[name] = getattr(fields, name)
        if "vehicle_images" not in resolved and fields.vehicle_images is not None:
            resolved["vehicle_images"] = fields.vehicle_images
        return resolved
