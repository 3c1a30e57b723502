"""Vehicle registration."""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ridehail.api.dependencies import get_db
from ridehail.api.middleware import limiter
from ridehail.api.schemas import ErrorResponse, VehicleCreateRequest, VehicleResponse
from ridehail.config import settings
from ridehail.services.vehicles import VehicleService

router = APIRouter(prefix="/vehicles", tags=["vehicles"])


@router.post(
    "/registerVehicle",
    status_code=201,
    response_model=VehicleResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit)
async def register_vehicle(
    request: Request,
    body: VehicleCreateRequest,
    db: AsyncSession = Depends(get_db),
):
    return await VehicleService(db).register(
        body.clerk_driver_id, **body.model_dump(exclude={"clerk_driver_id"})
    )


@router.get("/driver/{driver_id}", response_model=VehicleResponse)
@limiter.limit(settings.rate_limit)
async def get_vehicle_for_driver(
    request: Request,
    driver_id: int,
    db: AsyncSession = Depends(get_db),
):
    return await VehicleService(db).get_by_driver_id(driver_id)
