"""
Response DTOs for KYC and driver/vehicle endpoints.

KycResponse               — POST /api/users/submit-kyc, /api/drivers/upload-license
VehicleDecisionResponse   — POST /api/drivers/vehicle-decision
VehicleResponse           — a single vehicle
VehicleRegisteredResponse — POST /api/drivers/register-vehicle (201)
VehicleUpdatedResponse    — PATCH /api/drivers/vehicles/{vehicle_id}
VehicleListResponse       — GET /api/drivers/vehicles
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict

from schemas.models.vehicle import VehicleDoc


class KycResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str
    kyc_level: int
    token: str
    # Prompt shown after KYC level 2 asking whether the user owns a vehicle
    has_vehicle: Optional[str] = None


class VehicleDecisionResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str
    token: str
    role: Optional[str] = None
    next_step: Optional[str] = None


class VehicleResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    user_id: str
    license_image: Optional[str] = None
    registration_card_front: Optional[str] = None
    registration_card_back: Optional[str] = None
    road_authority_certificate: Optional[str] = None
    insurance_certificate: Optional[str] = None
    vehicle_owner_name: Optional[str] = None
    company_name: Optional[str] = None
    vehicle_plate_number: Optional[str] = None
    vehicle_make_model: Optional[str] = None
    chassis_number: Optional[str] = None
    vehicle_color: Optional[str] = None
    vehicle_type: Optional[str] = None
    vehicle_images: list[str] = []
    registration_expiry_date: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_vehicle(cls, vehicle: VehicleDoc) -> "VehicleResponse":
        return cls(
            id=str(vehicle.id),
            user_id=str(vehicle.user_id),
            license_image=vehicle.license_image,
            registration_card_front=vehicle.registration_card.front,
            registration_card_back=vehicle.registration_card.back,
            road_authority_certificate=vehicle.road_authority_certificate,
            insurance_certificate=vehicle.insurance_certificate,
            vehicle_owner_name=vehicle.vehicle_owner_name,
            company_name=vehicle.company_name,
            vehicle_plate_number=vehicle.vehicle_plate_number,
            vehicle_make_model=vehicle.vehicle_make_model,
            chassis_number=vehicle.chassis_number,
            vehicle_color=vehicle.vehicle_color,
            vehicle_type=vehicle.vehicle_type,
            vehicle_images=list(vehicle.vehicle_images),
            registration_expiry_date=vehicle.registration_expiry_date,
            created_at=vehicle.created_at,
            updated_at=vehicle.updated_at,
        )


class VehicleRegisteredResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str
    vehicle_id: str
    role: str
    token: str


class VehicleUpdatedResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str
    vehicle: VehicleResponse
    token: str


class VehicleListResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    vehicles: list[VehicleResponse]
    role: str
    kyc_level: int
