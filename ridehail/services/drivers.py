"""
Driver registry.

Owns driver onboarding from an identity token, the location heartbeat
(``upsert_location``) and the candidate search used by the dispatcher.
Location writes are last-writer-wins per driver row and never touch a
ride.
"""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ridehail.config import settings
from ridehail.domain.enums import UserType, VehicleType
from ridehail.domain.exceptions import ConflictError, ForbiddenError, NotFoundError
from ridehail.domain.matching import is_candidate, location_h3_cell, search_cells
from ridehail.infrastructure.database import server_now
from ridehail.infrastructure.identity import IdentityClaims
from ridehail.infrastructure.models import DriverModel
from ridehail.infrastructure.repositories import DriverRepository

logger = logging.getLogger(__name__)


class DriverRegistry:
    def __init__(
        self,
        session: AsyncSession,
        search_radius_km: float = settings.search_radius_km,
        h3_resolution: int = settings.h3_resolution,
    ):
        self.session = session
        self.drivers = DriverRepository(session)
        self.search_radius_km = search_radius_km
        self.h3_resolution = h3_resolution

    async def create_from_claims(
        self,
        claims: IdentityClaims,
        profile_image: Optional[bytes] = None,
        license_image: Optional[bytes] = None,
    ) -> DriverModel:
        if claims.user_type.lower() != UserType.DRIVER.value:
            raise ForbiddenError("Invalid userType for driver registration")
        if await self.drivers.get_by_external_id(claims.sub):
            raise ConflictError("Driver already exists with this external id")

        meta = claims.public_metadata
        driver = DriverModel(
            external_id=claims.sub,
            first_name=claims.first_name,
            last_name=claims.last_name,
            phone_number=claims.phone_number,
            user_type=UserType.DRIVER.value,
            profile_image=profile_image or None,
            license_image=license_image or None,
            referral_code=meta.referral_code,
            referred_by=meta.referred_by,
            is_online=False,
        )
        try:
            await self.drivers.create(driver)
            await self.session.commit()
        except IntegrityError as exc:
            await self.session.rollback()
            raise ConflictError("Driver conflicts with an existing record") from exc

        logger.info("Driver %s registered (id=%s)", driver.external_id, driver.id)
        return driver

    async def get_by_id(self, driver_id: int) -> DriverModel:
        driver = await self.drivers.get_by_id(driver_id)
        if driver is None:
            raise NotFoundError("Driver not found")
        return driver

    async def get_by_external_id(self, external_id: str) -> DriverModel:
        driver = await self.drivers.get_by_external_id(external_id)
        if driver is None:
            raise NotFoundError("Driver not found")
        return driver

    async def upsert_location(
        self, external_id: str, lat: float, lng: float, is_online: bool
    ) -> DriverModel:
        driver = await self.get_by_external_id(external_id)
        driver.current_latitude = lat
        driver.current_longitude = lng
        driver.is_online = is_online
        driver.h3_cell = location_h3_cell(lat, lng, self.h3_resolution)
        driver.last_location_update = server_now()
        await self.session.commit()
        return driver

    async def candidates(
        self,
        pickup_lat: float,
        pickup_lng: float,
        vehicle_type: Optional[VehicleType] = None,
    ) -> list[DriverModel]:
        """Online drivers within the search radius with a compatible vehicle."""
        pickup_lat, pickup_lng = float(pickup_lat), float(pickup_lng)
        cells = search_cells(
            pickup_lat, pickup_lng, self.search_radius_km, self.h3_resolution
        )
        rows = await self.drivers.get_in_cells(cells)
        return [
            driver
            for driver, driver_vehicle_type in rows
            if is_candidate(
                is_online=driver.is_online,
                driver_lat=driver.current_latitude,
                driver_lng=driver.current_longitude,
                driver_vehicle_type=driver_vehicle_type,
                pickup_lat=pickup_lat,
                pickup_lng=pickup_lng,
                radius_km=self.search_radius_km,
                vehicle_type=vehicle_type,
            )
        ]
