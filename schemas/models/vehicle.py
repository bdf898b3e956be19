"""
Vehicle document model.

Maps to the `vehicles` MongoDB collection.

Every descriptive field is optional: a driver may register a placeholder
vehicle and fill in details later through the update endpoint.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from schemas.models.base import MongoBaseModel, PyObjectId

MAX_VEHICLE_IMAGES = 4


class RegistrationCard(BaseModel):
    front: Optional[str] = None
    back: Optional[str] = None


class VehicleDoc(MongoBaseModel):
    """Document model for the `vehicles` collection."""

    user_id: PyObjectId
    license_image: Optional[str] = None
    registration_card: RegistrationCard = RegistrationCard()
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
