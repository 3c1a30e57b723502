"""Driver accounts and the location heartbeat."""

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from ridehail.api.dependencies import get_db, get_verifier
from ridehail.api.middleware import limiter
from ridehail.api.routes.users import read_upload
from ridehail.api.schemas import DriverResponse, ErrorResponse, LocationUpdateRequest
from ridehail.config import settings
from ridehail.infrastructure.identity import IdentityVerifier
from ridehail.services.drivers import DriverRegistry

router = APIRouter(prefix="/drivers", tags=["drivers"])


@router.post(
    "/createDrivers",
    status_code=201,
    response_model=DriverResponse,
    summary="Register a driver from an identity token",
    responses={
        401: {"model": ErrorResponse},
        403: {"model": ErrorResponse, "description": "Token is not a driver"},
        409: {"model": ErrorResponse},
    },
)
@limiter.limit(settings.rate_limit)
async def create_driver(
    request: Request,
    token: str = Form(...),
    profile_image: Optional[UploadFile] = File(None, alias="profileImage"),
    license_image: Optional[UploadFile] = File(None, alias="licenseImage"),
    verifier: IdentityVerifier = Depends(get_verifier),
    db: AsyncSession = Depends(get_db),
):
    claims = await verifier.verify_claims(token)
    return await DriverRegistry(db).create_from_claims(
        claims,
        profile_image=await read_upload(profile_image),
        license_image=await read_upload(license_image),
    )


@router.get("/getDriverByClerkDriverId/{external_id}", response_model=DriverResponse)
@limiter.limit(settings.rate_limit)
async def get_driver_by_external_id(
    request: Request,
    external_id: str,
    db: AsyncSession = Depends(get_db),
):
    return await DriverRegistry(db).get_by_external_id(external_id)


@router.put(
    "/update-location/{external_id}",
    response_model=DriverResponse,
    summary="Driver position and availability heartbeat",
)
@limiter.limit(settings.rate_limit)
async def update_location(
    request: Request,
    external_id: str,
    body: LocationUpdateRequest,
    db: AsyncSession = Depends(get_db),
):
    return await DriverRegistry(db).upsert_location(
        external_id, body.latitude, body.longitude, body.is_online
    )


@router.get("/{driver_id}", response_model=DriverResponse)
@limiter.limit(settings.rate_limit)
async def get_driver(
    request: Request,
    driver_id: int,
    db: AsyncSession = Depends(get_db),
):
    return await DriverRegistry(db).get_by_id(driver_id)
