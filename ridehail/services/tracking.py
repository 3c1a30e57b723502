"""Per-ride coordinate log and the distance derived from it."""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from ridehail.domain.distance import polyline_km
from ridehail.domain.exceptions import NotFoundError
from ridehail.infrastructure.models import TrackPointModel
from ridehail.infrastructure.repositories import RideRepository, TrackingRepository


class TrackingStore:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.rides = RideRepository(session)
        self.points = TrackingRepository(session)

    async def _require_ride(self, ride_id: int) -> None:
        if await self.rides.get_by_id(ride_id) is None:
            raise NotFoundError("Ride not found")

    async def append_point(
        self, ride_id: int, lat: float, lng: float
    ) -> TrackPointModel:
        await self._require_ride(ride_id)
        point = await self.points.append(ride_id, lat, lng)
        await self.session.commit()
        return point

    async def polyline_distance(self, ride_id: int) -> float:
        """Kilometres along the recorded points, replayed in time order."""
        await self._require_ride(ride_id)
        points = await self.points.points_for_ride(ride_id)
        return polyline_km(
            (float(p.latitude), float(p.longitude)) for p in points
        )
