"""
Ride endpoints
==============

POST /rides/rideRequest                       -- request a ride (quote + dispatch)
POST /rides/accept?rideId=&clerkDriverId=     -- first driver wins
POST /rides/start?rideId=                     -- driver picked the rider up
POST /rides/complete?rideId=                  -- final fare from the tracked route
POST /rides/cancel?rideId=                    -- cancel before the trip starts
GET  /rides/{ride_id}                         -- current state
POST /rides/{ride_id}/rating                  -- one rating per completed ride
"""

from fastapi import APIRouter, Depends, Query, Request

from ridehail.api.dependencies import get_ride_service
from ridehail.api.middleware import limiter
from ridehail.api.schemas import (
    ErrorResponse,
    RatingCreateRequest,
    RatingResponse,
    RideCreateRequest,
    RideResponse,
)
from ridehail.config import settings
from ridehail.services.rides import RideService

router = APIRouter(prefix="/rides", tags=["rides"])


@router.post(
    "/rideRequest",
    status_code=201,
    response_model=RideResponse,
    summary="Request a ride",
    responses={404: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit)
async def request_ride(
    request: Request,
    body: RideCreateRequest,
    service: RideService = Depends(get_ride_service),
):
    return await service.request(
        body.clerk_user_id,
        body.pickup_latitude,
        body.pickup_longitude,
        body.drop_latitude,
        body.drop_longitude,
        vehicle_type=body.vehicle_type,
        notes=body.notes,
        payment_mode=body.payment_mode,
    )


@router.post(
    "/accept",
    response_model=RideResponse,
    summary="Accept a pending ride",
    responses={
        400: {"model": ErrorResponse, "description": "Ride already taken"},
        404: {"model": ErrorResponse},
    },
)
@limiter.limit(settings.rate_limit)
async def accept_ride(
    request: Request,
    ride_id: int = Query(..., alias="rideId"),
    clerk_driver_id: str = Query(..., alias="clerkDriverId", min_length=1),
    service: RideService = Depends(get_ride_service),
):
    return await service.accept(ride_id, clerk_driver_id)


@router.post("/start", response_model=RideResponse, summary="Start an accepted ride")
@limiter.limit(settings.rate_limit)
async def start_ride(
    request: Request,
    ride_id: int = Query(..., alias="rideId"),
    service: RideService = Depends(get_ride_service),
):
    return await service.start(ride_id)


@router.post(
    "/complete",
    response_model=RideResponse,
    summary="Complete a ride",
    description="Re-prices the ride from its tracked route and closes it.",
)
@limiter.limit(settings.rate_limit)
async def complete_ride(
    request: Request,
    ride_id: int = Query(..., alias="rideId"),
    service: RideService = Depends(get_ride_service),
):
    return await service.complete(ride_id)


@router.post("/cancel", response_model=RideResponse, summary="Cancel a ride")
@limiter.limit(settings.rate_limit)
async def cancel_ride(
    request: Request,
    ride_id: int = Query(..., alias="rideId"),
    service: RideService = Depends(get_ride_service),
):
    return await service.cancel(ride_id)


@router.get("/{ride_id}", response_model=RideResponse, summary="Get a ride")
@limiter.limit(settings.rate_limit)
async def get_ride(
    request: Request,
    ride_id: int,
    service: RideService = Depends(get_ride_service),
):
    return await service.get(ride_id)


@router.post(
    "/{ride_id}/rating",
    status_code=201,
    response_model=RatingResponse,
    summary="Rate a completed ride",
    responses={409: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit)
async def rate_ride(
    request: Request,
    ride_id: int,
    body: RatingCreateRequest,
    service: RideService = Depends(get_ride_service),
):
    return await service.rate(ride_id, **body.model_dump())
