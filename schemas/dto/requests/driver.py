"""
Request DTOs for KYC and driver/vehicle endpoints.

VehicleDecisionRequest — POST /api/drivers/vehicle-decision
VehicleFields          — form fields of POST /api/drivers/register-vehicle and
                         PATCH /api/drivers/vehicles/{vehicle_id}

File uploads travel as multipart parts next to these fields and are handled
by the route layer; the URL fields below let a client reference artifacts it
has already hosted elsewhere.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from shared.datetime_utils import parse_datetime
from shared.validators import validate_document_url


class VehicleDecisionRequest(BaseModel):
    """Request body for POST /api/drivers/vehicle-decision.

    ``has_vehicle`` is deliberately untyped: ``"yes"``/``"no"`` and booleans
    are accepted, anything else is rejected by the service with a stable
    message rather than a schema error.
    """

    model_config = ConfigDict(populate_by_name=True)

    has_vehicle: Any = Field(
        default=None, validation_alias=AliasChoices("has_vehicle", "hasVehicle")
    )


class VehicleFields(BaseModel):
    """Optional descriptive data for a vehicle. Every field may be absent."""

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    license_image: Optional[str] = None
    registration_card_front: Optional[str] = None
    registration_card_back: Optional[str] = None
    road_authority_certificate: Optional[str] = None
    insurance_certificate: Optional[str] = None
    vehicle_images: Optional[list[str]] = None

    vehicle_owner_name: Optional[str] = None
    company_name: Optional[str] = None
    vehicle_plate_number: Optional[str] = None
    vehicle_make_model: Optional[str] = None
    chassis_number: Optional[str] = None
    vehicle_color: Optional[str] = None
    vehicle_type: Optional[str] = None
    registration_expiry_date: Optional[datetime] = None

    @field_validator(
        "license_image",
        "registration_card_front",
        "registration_card_back",
        "road_authority_certificate",
        "insurance_certificate",
        mode="before",
    )
    @classmethod
    def _validate_url(cls, v: Any) -> Optional[str]:
        if v is None:
            return None
        return validate_document_url(str(v))

    @field_validator("vehicle_images", mode="before")
    @classmethod
    def _validate_image_urls(cls, v: Any) -> Optional[list[str]]:
        if v is None:
            return None
        if isinstance(v, str):
            v = [v]
        urls = [validate_document_url(str(item)) for item in v]
        return [url for url in urls if url]

    @field_validator("registration_expiry_date", mode="before")
    @classmethod
    def _parse_expiry(cls, v: Any) -> Optional[datetime]:
        if v is None or v == "":
            return None
        parsed = parse_datetime(v)
        if parsed is None:
            raise ValueError("registration_expiry_date must be an ISO 8601 date")
        return parsed

    @field_validator(
        "vehicle_owner_name",
        "company_name",
        "vehicle_plate_number",
        "vehicle_make_model",
        "chassis_number",
        "vehicle_color",
        "vehicle_type",
        mode="after",
    )
    @classmethod
    def _blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        return v or None
