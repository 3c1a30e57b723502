"""Rider accounts, created from identity-provider tokens."""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from ridehail.api.dependencies import get_current_subject, get_db, get_verifier
from ridehail.api.middleware import limiter
from ridehail.api.schemas import ErrorResponse, RiderResponse
from ridehail.config import settings
from ridehail.infrastructure.identity import IdentityVerifier
from ridehail.services.riders import RiderService

router = APIRouter(prefix="/users", tags=["users"])


async def read_upload(upload: Optional[UploadFile]) -> Optional[bytes]:
    if upload is None:
        return None
    return await upload.read() or None


@router.post(
    "/createUsers",
    status_code=201,
    response_model=RiderResponse,
    summary="Register a rider from an identity token",
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
)
@limiter.limit(settings.rate_limit)
async def create_user(
    request: Request,
    token: str = Form(...),
    profile_image: Optional[UploadFile] = File(None, alias="profileImage"),
    verifier: IdentityVerifier = Depends(get_verifier),
    db: AsyncSession = Depends(get_db),
):
    claims = await verifier.verify_claims(token)
    return await RiderService(db).create_from_claims(
        claims, profile_image=await read_upload(profile_image)
    )


@router.get("/getUserByClerkUserId/{external_id}", response_model=RiderResponse)
@limiter.limit(settings.rate_limit)
async def get_user(
    request: Request,
    external_id: str,
    db: AsyncSession = Depends(get_db),
):
    return await RiderService(db).get_by_external_id(external_id)


@router.put(
    "/updateProfile",
    response_model=RiderResponse,
    summary="Update the caller's profile",
    responses={401: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit)
async def update_profile(
    request: Request,
    emergency_contact_name: Optional[str] = Form(
        None, alias="userEmergencyContactName"
    ),
    emergency_contact_number: Optional[str] = Form(
        None, alias="userEmergencyContactNumber"
    ),
    date_of_birth: Optional[date] = Form(None, alias="dateOfBirth"),
    profile_image: Optional[UploadFile] = File(None, alias="profileImage"),
    subject: str = Depends(get_current_subject),
    db: AsyncSession = Depends(get_db),
):
    return await RiderService(db).update_profile(
        subject,
        emergency_contact_name=emergency_contact_name,
        emergency_contact_number=emergency_contact_number,
        date_of_birth=date_of_birth,
        profile_image=await read_upload(profile_image),
    )
