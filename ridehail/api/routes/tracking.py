"""Trip tracking: coordinate uploads and the distance travelled so far."""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import PlainTextResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ridehail.api.dependencies import get_db
from ridehail.api.middleware import limiter
from ridehail.api.schemas import DistanceResponse, TrackingUpdateRequest
from ridehail.config import settings
from ridehail.services.tracking import TrackingStore

router = APIRouter(prefix="/tracking", tags=["tracking"])


@router.post("/update", response_class=PlainTextResponse, summary="Record a position")
@limiter.limit(settings.rate_limit)
async def update_location(
    request: Request,
    body: TrackingUpdateRequest,
    db: AsyncSession = Depends(get_db),
):
    await TrackingStore(db).append_point(body.ride_id, body.latitude, body.longitude)
    return "Location updated"


@router.get(
    "/distance/{ride_id}",
    response_model=DistanceResponse,
    summary="Distance along the recorded route",
)
@limiter.limit(settings.rate_limit)
async def get_distance(
    request: Request,
    ride_id: int,
    db: AsyncSession = Depends(get_db),
):
    distance_km = await TrackingStore(db).polyline_distance(ride_id)
    return DistanceResponse(distance_km=distance_km)
