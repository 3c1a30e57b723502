"""Vehicle registration; one vehicle per driver."""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ridehail.domain.enums import VehicleType
from ridehail.domain.exceptions import ConflictError, NotFoundError
from ridehail.infrastructure.models import VehicleModel
from ridehail.infrastructure.repositories import DriverRepository, VehicleRepository

logger = logging.getLogger(__name__)


class VehicleService:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.drivers = DriverRepository(session)
        self.vehicles = VehicleRepository(session)

    async def register(self, driver_external_id: str, **fields: Any) -> VehicleModel:
        """*fields* are ``VehicleModel`` columns (type, plate, RC, insurance ...)."""
        driver = await self.drivers.get_by_external_id(driver_external_id)
        if driver is None:
            raise NotFoundError("Driver not found")
        if await self.vehicles.get_by_driver_id(driver.id):
            raise ConflictError("Driver already has a registered vehicle")

        vehicle = VehicleModel(driver_id=driver.id, **fields)
        try:
            await self.vehicles.create(vehicle)
            await self.session.commit()
        except IntegrityError as exc:
            await self.session.rollback()
            raise ConflictError("Vehicle identifiers already registered") from exc

        logger.info(
            "Vehicle %s (%s) registered for driver %s",
            vehicle.vehicle_number, VehicleType(vehicle.vehicle_type).value,
            driver.external_id,
        )
        return vehicle

    async def get_by_driver_id(self, driver_id: int) -> VehicleModel:
        vehicle = await self.vehicles.get_by_driver_id(driver_id)
        if vehicle is None:
            raise NotFoundError("Vehicle not found")
        return vehicle
