"""Unit tests for KycService (identity levels, vehicle decision and vehicles)."""

import asyncio

import pytest

from errors import ForbiddenError, NotFoundError, UpstreamError, ValidationError
from infrastructure.storage.protocol import UploadedFile
from schemas.dto.requests.driver import VehicleFields
from services.kyc_service import KycService, VehicleUploads
from tests.fakes import FakeStorageProvider


# ── Helpers ───────────────────────────────────────────────────────────────────


def _file(name: str = "doc.jpg") -> UploadedFile:
    return UploadedFile(filename=name, content=b"\xff\xd8binary", content_type="image/jpeg")


class StalledStorage(FakeStorageProvider):
    """Fails one folder at once; every other upload waits until cancelled."""

    def __init__(self, fail_folder: str) -> None:
        super().__init__(fail_folder)
        self.cancelled: list[str] = []

    async def upload(self, file: UploadedFile, folder: str) -> str:
        if folder == self.fail_folder:
            await asyncio.sleep(0)
            raise UpstreamError("File upload failed")
        try:
            await asyncio.Event().wait()
        except asyncio.CancelledError:
            self.cancelled.append(file.filename)
            raise
        return ""


def _kyc1_kwargs(**overrides) -> dict:
    data = dict(
        full_name="Grace Brewster Hopper",
        country="US",
        gender="female",
        front=_file("front.jpg"),
        back=_file("back.jpg"),
        selfie=_file("selfie.jpg"),
    )
    data.update(overrides)
    return data


# ── KYC level 1 ───────────────────────────────────────────────────────────────


class TestSubmitLevelOne:
    async def test_raises_level_and_stores_artifacts(self, kyc, make_user, storage):
        user = make_user()
        updated = await kyc.submit_level_one(user.id, **_kyc1_kwargs())

        assert updated.kyc_level == 1
        assert updated.first_name == "Grace"
        assert updated.last_name == "Brewster Hopper"
        assert updated.country == "US"
        assert updated.identity_documents.front == "https://cdn.example.com/kyc/front/front.jpg"
        assert updated.identity_documents.back == "https://cdn.example.com/kyc/back/back.jpg"
        assert updated.selfie_image == "https://cdn.example.com/kyc/selfie/selfie.jpg"
        assert sorted(folder for folder, _ in storage.uploads) == [
            "kyc/back",
            "kyc/front",
            "kyc/selfie",
        ]

    async def test_never_lowers_level(self, kyc, make_user):
        user = make_user(kyc_level=2)
        updated = await kyc.submit_level_one(user.id, **_kyc1_kwargs())
        assert updated.kyc_level == 2

    async def test_single_token_name_rejected(self, kyc, make_user):
        user = make_user()
        with pytest.raises(ValidationError) as exc_info:
            await kyc.submit_level_one(user.id, **_kyc1_kwargs(full_name="Cher"))
        assert exc_info.value.field == "full_name"

    @pytest.mark.parametrize("missing", ["full_name", "country", "front", "back", "selfie"])
    async def test_missing_input_rejected(self, kyc, make_user, missing):
        user = make_user()
        with pytest.raises(ValidationError):
            await kyc.submit_level_one(user.id, **_kyc1_kwargs(**{missing: None}))

    async def test_unknown_user(self, kyc):
        with pytest.raises(NotFoundError):
            await kyc.submit_level_one("507f1f77bcf86cd799439011", **_kyc1_kwargs())

    async def test_upload_failure_leaves_user_unchanged(self, users, vehicles, make_user):
        kyc = KycService(users, vehicles, FakeStorageProvider(fail_folder="kyc/selfie"))
        user = make_user()

        with pytest.raises(UpstreamError):
            await kyc.submit_level_one(user.id, **_kyc1_kwargs())

        stored = users.get(user.id)
        assert stored.kyc_level == 0
        assert stored.selfie_image is None
        assert stored.first_name == user.first_name

    async def test_failed_upload_cancels_siblings(self, users, vehicles, make_user):
        storage = StalledStorage(fail_folder="kyc/selfie")
        kyc = KycService(users, vehicles, storage)
        user = make_user()

        with pytest.raises(UpstreamError):
            await kyc.submit_level_one(user.id, **_kyc1_kwargs())

        assert sorted(storage.cancelled) == ["back.jpg", "front.jpg"]
        assert users.get(user.id).kyc_level == 0


# ── KYC level 2 ───────────────────────────────────────────────────────────────


class TestUploadLicense:
    async def test_raises_level_to_two(self, kyc, make_user, storage):
        user = make_user(kyc_level=1)
        updated = await kyc.upload_license(user.id, _file("license.jpg"))

        assert updated.kyc_level == 2
        assert updated.license_image == "https://cdn.example.com/kyc/license/license.jpg"
        assert storage.uploads == [("kyc/license", "license.jpg")]

    async def test_requires_level_one(self, kyc, make_user, storage):
        user = make_user(kyc_level=0)
        with pytest.raises(ForbiddenError):
            await kyc.upload_license(user.id, _file())
        assert storage.uploads == []

    async def test_requires_file(self, kyc, make_user):
        user = make_user(kyc_level=1)
        with pytest.raises(ValidationError):
            await kyc.upload_license(user.id, None)

    async def test_empty_file_treated_as_missing(self, kyc, make_user):
        user = make_user(kyc_level=1)
        with pytest.raises(ValidationError):
            await kyc.upload_license(user.id, UploadedFile(filename="x.jpg", content=b""))

    async def test_upload_failure_keeps_level(self, users, vehicles, make_user):
        kyc = KycService(users, vehicles, FakeStorageProvider(fail_folder="kyc/license"))
        user = make_user(kyc_level=1)
        with pytest.raises(UpstreamError):
            await kyc.upload_license(user.id, _file())
        assert users.get(user.id).kyc_level == 1


# ── Vehicle decision ──────────────────────────────────────────────────────────


class TestDecideVehicle:
    @pytest.mark.parametrize("answer", ["no", "NO", " No ", False])
    async def test_no_vehicle_makes_driver(self, kyc, make_user, answer):
        user = make_user(kyc_level=2)
        decision = await kyc.decide_vehicle(user.id, answer)
        assert decision.has_vehicle is False
        assert decision.next_step is None
        assert decision.user.role == "driver"

    @pytest.mark.parametrize("answer", ["yes", "YES", True])
    async def test_yes_points_to_registration(self, kyc, make_user, users, answer):
        user = make_user(kyc_level=2)
        decision = await kyc.decide_vehicle(user.id, answer)
        assert decision.next_step == "vehicleRegistration"
        assert users.get(user.id).role == "customer"

    @pytest.mark.parametrize("answer", ["maybe", "", None, 1])
    async def test_invalid_answer(self, kyc, make_user, answer):
        user = make_user(kyc_level=2)
        with pytest.raises(ValidationError) as exc_info:
            await kyc.decide_vehicle(user.id, answer)
        assert "Yes or No" in exc_info.value.message

    @pytest.mark.parametrize("level", [0, 1])
    async def test_requires_level_two(self, kyc, make_user, level):
        user = make_user(kyc_level=level)
        with pytest.raises(ForbiddenError):
            await kyc.decide_vehicle(user.id, "no")


# ── Vehicles ──────────────────────────────────────────────────────────────────


class TestRegisterVehicle:
    async def test_empty_registration_is_allowed(self, kyc, make_user, vehicles):
        user = make_user(kyc_level=2)
        vehicle, updated = await kyc.register_vehicle(user.id, VehicleFields(), VehicleUploads())

        assert vehicle.id in vehicles.docs
        assert vehicle.user_id == user.id
        assert vehicle.vehicle_images == []
        assert vehicle.license_image is None
        assert updated.role == "driver"

    async def test_files_and_urls_are_merged(self, kyc, make_user, storage):
        user = make_user(kyc_level=2)
        fields = VehicleFields(
            vehicle_plate_number="ABC-123",
            insurance_certificate="https://files.example.com/insurance.pdf",
            registration_card_front="https://files.example.com/ignored.jpg",
        )
        uploads = VehicleUploads(
            registration_card_front=_file("card-front.jpg"),
            vehicle_images=[_file("a.jpg"), _file("b.jpg")],
        )

        vehicle, _ = await kyc.register_vehicle(user.id, fields, uploads)

        assert vehicle.vehicle_plate_number == "ABC-123"
        assert vehicle.insurance_certificate == "https://files.example.com/insurance.pdf"
        assert vehicle.registration_card.front == "https://cdn.example.com/vehicles/card-front.jpg"
        assert vehicle.vehicle_images == [
            "https://cdn.example.com/vehicles/a.jpg",
            "https://cdn.example.com/vehicles/b.jpg",
        ]
        assert all(folder == "vehicles" for folder, _ in storage.uploads)

    async def test_more_than_four_images_rejected(self, kyc, make_user, vehicles, storage):
        user = make_user(kyc_level=2)
        uploads = VehicleUploads(vehicle_images=[_file(f"{i}.jpg") for i in range(5)])
        with pytest.raises(ValidationError):
            await kyc.register_vehicle(user.id, VehicleFields(), uploads)
        assert vehicles.docs == {}
        assert storage.uploads == []

    async def test_reregistration_creates_new_record(self, kyc, make_user, vehicles):
        user = make_user(kyc_level=2)
        await kyc.register_vehicle(user.id, VehicleFields(), VehicleUploads())
        await kyc.register_vehicle(user.id, VehicleFields(), VehicleUploads())
        assert len(vehicles.docs) == 2

    async def test_requires_level_two(self, kyc, make_user, vehicles):
        user = make_user(kyc_level=1)
        with pytest.raises(ForbiddenError):
            await kyc.register_vehicle(user.id, VehicleFields(), VehicleUploads())
        assert vehicles.docs == {}

    async def test_upload_failure_creates_nothing(self, users, vehicles, make_user):
        kyc = KycService(users, vehicles, FakeStorageProvider(fail_folder="vehicles"))
        user = make_user(kyc_level=2)
        with pytest.raises(UpstreamError):
            await kyc.register_vehicle(
                user.id, VehicleFields(), VehicleUploads(license_image=_file())
            )
        assert vehicles.docs == {}
        assert users.get(user.id).role == "customer"

    async def test_failed_image_cancels_other_uploads(self, users, vehicles, make_user):
        class ImageFails(StalledStorage):
            async def upload(self, file, folder):
                if file.filename == "bad.jpg":
                    await asyncio.sleep(0)
                    raise UpstreamError("File upload failed")
                return await super().upload(file, "stalled")

        storage = ImageFails(fail_folder="none")
        kyc = KycService(users, vehicles, storage)
        user = make_user(kyc_level=2)
        uploads = VehicleUploads(
            license_image=_file("license.jpg"),
            vehicle_images=[_file("ok.jpg"), _file("bad.jpg")],
        )

        with pytest.raises(UpstreamError):
            await kyc.register_vehicle(user.id, VehicleFields(), uploads)

        assert sorted(storage.cancelled) == ["license.jpg", "ok.jpg"]
        assert vehicles.docs == {}


class TestUpdateVehicle:
    async def test_updates_only_provided_fields(self, kyc, make_user):
        user = make_user(kyc_level=2)
        vehicle, _ = await kyc.register_vehicle(
            user.id,
            VehicleFields(vehicle_color="red", vehicle_type="sedan"),
            VehicleUploads(registration_card_back=_file("back.jpg")),
        )

        updated = await kyc.update_vehicle(
            user.id,
            str(vehicle.id),
            VehicleFields(vehicle_color="blue"),
            VehicleUploads(registration_card_front=_file("front.jpg")),
        )

        assert updated.vehicle_color == "blue"
        assert updated.vehicle_type == "sedan"
        assert updated.registration_card.front == "https://cdn.example.com/vehicles/front.jpg"
        assert updated.registration_card.back == "https://cdn.example.com/vehicles/back.jpg"

    async def test_other_users_vehicle_not_found(self, kyc, make_user):
        owner = make_user(kyc_level=2)
        intruder = make_user(kyc_level=2)
        vehicle, _ = await kyc.register_vehicle(owner.id, VehicleFields(), VehicleUploads())

        with pytest.raises(NotFoundError):
            await kyc.update_vehicle(
                intruder.id, vehicle.id, VehicleFields(vehicle_color="x"), VehicleUploads()
            )

    async def test_malformed_vehicle_id(self, kyc, make_user):
        user = make_user(kyc_level=2)
        with pytest.raises(NotFoundError):
            await kyc.update_vehicle(user.id, "nope", VehicleFields(), VehicleUploads())


class TestListVehicles:
    async def test_lists_only_own_vehicles(self, kyc, make_user):
        user = make_user(kyc_level=2)
        other = make_user(kyc_level=2)
        await kyc.register_vehicle(user.id, VehicleFields(), VehicleUploads())
        await kyc.register_vehicle(other.id, VehicleFields(), VehicleUploads())

        owner, vehicles = await kyc.list_vehicles(user.id)
        assert owner.role == "driver"
        assert [v.user_id for v in vehicles] == [user.id]
