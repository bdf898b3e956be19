"""
Driver onboarding routes (all require a session credential).

POST  /api/drivers/upload-license            multipart: KYC level 2
POST  /api/drivers/vehicle-decision          {"hasVehicle": "yes" | "no"}
POST  /api/drivers/register-vehicle          multipart, every part optional
PATCH /api/drivers/vehicles/{vehicle_id}     multipart, only sent parts change
GET   /api/drivers/vehicles

Vehicle artifacts may be sent as files (licenseImage, vehicleImages, ...) or
as already-hosted URLs in the matching ``...Url`` form fields. A file wins
when both are present.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError

from dependencies import get_current_user_id, get_kyc_service, get_token_service
from errors import ValidationError
from routes.responses import read_upload, respond
from schemas.dto.requests.driver import VehicleDecisionRequest, VehicleFields
from schemas.dto.responses.driver import (
    KycResponse,
    VehicleDecisionResponse,
    VehicleListResponse,
    VehicleRegisteredResponse,
    VehicleResponse,
    VehicleUpdatedResponse,
)
from services.kyc_service import KycService, VehicleUploads
from services.token_service import TokenService

router = APIRouter(prefix="/api/drivers", tags=["drivers"])


async def vehicle_form(
    license_image: Optional[UploadFile] = File(None, alias="licenseImage"),
    registration_card_front: Optional[UploadFile] = File(
        None, alias="vehicleRegistrationCardFront"
    ),
    registration_card_back: Optional[UploadFile] = File(
        None, alias="vehicleRegistrationCardBack"
    ),
    road_authority_certificate: Optional[UploadFile] = File(
        None, alias="roadAuthorityCertificate"
    ),
    insurance_certificate: Optional[UploadFile] = File(
        None, alias="insuranceCertificate"
    ),
    vehicle_images: Optional[list[UploadFile]] = File(None, alias="vehicleImages"),
    license_image_url: Optional[str] = Form(None, alias="licenseImageUrl"),
    registration_card_front_url: Optional[str] = Form(
        None, alias="vehicleRegistrationCardFrontUrl"
    ),
    registration_card_back_url: Optional[str] = Form(
        None, alias="vehicleRegistrationCardBackUrl"
    ),
    road_authority_certificate_url: Optional[str] = Form(
        None, alias="roadAuthorityCertificateUrl"
    ),
    insurance_certificate_url: Optional[str] = Form(
        None, alias="insuranceCertificateUrl"
    ),
    vehicle_image_urls: Optional[list[str]] = Form(None, alias="vehicleImageUrls"),
    vehicle_owner_name: Optional[str] = Form(None, alias="vehicleOwnerName"),
    company_name: Optional[str] = Form(None, alias="companyName"),
    vehicle_plate_number: Optional[str] = Form(None, alias="vehiclePlateNumber"),
    vehicle_make_model: Optional[str] = Form(None, alias="vehicleMakeModel"),
    chassis_number: Optional[str] = Form(None, alias="chassisNumber"),
    vehicle_color: Optional[str] = Form(None, alias="vehicleColor"),
    vehicle_type: Optional[str] = Form(None, alias="vehicleType"),
    registration_expiry_date: Optional[str] = Form(
        None, alias="registrationExpiryDate"
    ),
) -> tuple[VehicleFields, VehicleUploads]:
    """Parse the shared vehicle multipart form into fields and files."""
    try:
        fields = VehicleFields(
            license_image=license_image_url,
            registration_card_front=registration_card_front_url,
            registration_card_back=registration_card_back_url,
            road_authority_certificate=road_authority_certificate_url,
            insurance_certificate=insurance_certificate_url,
            vehicle_images=vehicle_image_urls,
            vehicle_owner_name=vehicle_owner_name,
            company_name=company_name,
            vehicle_plate_number=vehicle_plate_number,
            vehicle_make_model=vehicle_make_model,
            chassis_number=chassis_number,
            vehicle_color=vehicle_color,
            vehicle_type=vehicle_type,
            registration_expiry_date=registration_expiry_date,
        )
    except PydanticValidationError as e:
        raise ValidationError(
            "Invalid vehicle fields",
            details=jsonable_encoder(
                e.errors(include_url=False, include_context=False, include_input=False)
            ),
        )

    images = []
    for upload in vehicle_images or []:
        file = await read_upload(upload)
        if file is not None:
            images.append(file)

    uploads = VehicleUploads(
        license_image=await read_upload(license_image),
        registration_card_front=await read_upload(registration_card_front),
        registration_card_back=await read_upload(registration_card_back),
        road_authority_certificate=await read_upload(road_authority_certificate),
        insurance_certificate=await read_upload(insurance_certificate),
        vehicle_images=images,
    )
    return fields, uploads


@router.post("/upload-license")
async def upload_license(
    license_image: Optional[UploadFile] = File(None, alias="licenseImage"),
    user_id: str = Depends(get_current_user_id),
    kyc: KycService = Depends(get_kyc_service),
    tokens: TokenService = Depends(get_token_service),
) -> JSONResponse:
    user = await kyc.upload_license(user_id, await read_upload(license_image))
    credential = tokens.issue(user.id)
    return respond(
        KycResponse(
            message="KYC Level 2 (License) uploaded successfully",
            kyc_level=user.kyc_level,
            token=credential.token,
            has_vehicle="Please select: Do you have a vehicle? (Yes/No)",
        ),
        credential=credential,
    )


@router.post("/vehicle-decision")
async def vehicle_decision(
    body: VehicleDecisionRequest,
    user_id: str = Depends(get_current_user_id),
    kyc: KycService = Depends(get_kyc_service),
    tokens: TokenService = Depends(get_token_service),
) -> JSONResponse:
    decision = await kyc.decide_vehicle(user_id, body.has_vehicle)
    credential = tokens.issue(decision.user.id)
    if decision.has_vehicle:
        body_out = VehicleDecisionResponse(
            message="Please register your vehicle (all fields are optional)",
            token=credential.token,
            next_step=decision.next_step,
        )
    else:
        body_out = VehicleDecisionResponse(
            message="Role updated to driver. You can switch back to customer and book rides.",
            token=credential.token,
            role=decision.user.role,
        )
    return respond(body_out, credential=credential)


@router.post("/register-vehicle")
async def register_vehicle(
    user_id: str = Depends(get_current_user_id),
    form: tuple[VehicleFields, VehicleUploads] = Depends(vehicle_form),
    kyc: KycService = Depends(get_kyc_service),
    tokens: TokenService = Depends(get_token_service),
) -> JSONResponse:
    fields, uploads = form
    vehicle, user = await kyc.register_vehicle(user_id, fields, uploads)
    credential = tokens.issue(user.id)
    return respond(
        VehicleRegisteredResponse(
            message="Vehicle registered successfully",
            vehicle_id=str(vehicle.id),
            role=user.role,
            token=credential.token,
        ),
        status_code=201,
        credential=credential,
    )


@router.patch("/vehicles/{vehicle_id}")
async def update_vehicle(
    vehicle_id: str,
    user_id: str = Depends(get_current_user_id),
    form: tuple[VehicleFields, VehicleUploads] = Depends(vehicle_form),
    kyc: KycService = Depends(get_kyc_service),
    tokens: TokenService = Depends(get_token_service),
) -> JSONResponse:
    fields, uploads = form
    vehicle = await kyc.update_vehicle(user_id, vehicle_id, fields, uploads)
    credential = tokens.issue(user_id)
    return respond(
        VehicleUpdatedResponse(
            message="Vehicle updated successfully",
            vehicle=VehicleResponse.from_vehicle(vehicle),
            token=credential.token,
        ),
        credential=credential,
    )


@router.get("/vehicles")
async def list_vehicles(
    user_id: str = Depends(get_current_user_id),
    kyc: KycService = Depends(get_kyc_service),
) -> JSONResponse:
    user, vehicles = await kyc.list_vehicles(user_id)
    return respond(
        VehicleListResponse(
            vehicles=[VehicleResponse.from_vehicle(v) for v in vehicles],
            role=user.role,
            kyc_level=user.kyc_level,
        )
    )
