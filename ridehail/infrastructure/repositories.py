"""
Repository Pattern -- abstracts DB access so domain logic stays DB-agnostic.

Each repository receives an ``AsyncSession`` (unit-of-work) and exposes
domain-relevant queries only.  Status changes that must be atomic are
issued as conditional ``UPDATE ... WHERE status IN (...)`` statements
whose row count tells the caller whether it won.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Iterable, Optional

from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .database import server_now
from .models import (
    DriverModel,
    PaymentModel,
    RatingModel,
    RideModel,
    RiderModel,
    TrackPointModel,
    VehicleModel,
)
from ridehail.domain.enums import RideStatus, VehicleType


class RiderRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, rider: RiderModel) -> RiderModel:
        self.session.add(rider)
        await self.session.flush()
        return rider

    async def get_by_id(self, rider_id: int) -> Optional[RiderModel]:
        return await self.session.get(RiderModel, rider_id)

    async def get_by_external_id(self, external_id: str) -> Optional[RiderModel]:
        result = await self.session.execute(
            select(RiderModel).where(RiderModel.external_id == external_id)
        )
        return result.scalar_one_or_none()


class DriverRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, driver: DriverModel) -> DriverModel:
        self.session.add(driver)
        await self.session.flush()
        return driver

    async def get_by_id(self, driver_id: int) -> Optional[DriverModel]:
        return await self.session.get(DriverModel, driver_id)

    async def get_by_external_id(self, external_id: str) -> Optional[DriverModel]:
        result = await self.session.execute(
            select(DriverModel).where(DriverModel.external_id == external_id)
        )
        return result.scalar_one_or_none()

    async def get_in_cells(
        self, cells: Iterable[str]
    ) -> list[tuple[DriverModel, Optional[VehicleType]]]:
        """Online drivers in *cells* paired with their vehicle class."""
        result = await self.session.execute(
            select(DriverModel, VehicleModel.vehicle_type)
            .outerjoin(VehicleModel, VehicleModel.driver_id == DriverModel.id)
            .where(
                DriverModel.h3_cell.in_(list(cells)),
                DriverModel.is_online.is_(True),
            )
            .order_by(DriverModel.id)
        )
        return [(row[0], row[1]) for row in result.all()]


class VehicleRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, vehicle: VehicleModel) -> VehicleModel:
        self.session.add(vehicle)
        await self.session.flush()
        return vehicle

    async def get_by_driver_id(self, driver_id: int) -> Optional[VehicleModel]:
        result = await self.session.execute(
            select(VehicleModel).where(VehicleModel.driver_id == driver_id)
        )
        return result.scalar_one_or_none()


class RideRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, ride: RideModel) -> RideModel:
        self.session.add(ride)
        await self.session.flush()
        return ride

    async def get_by_id(self, ride_id: int) -> Optional[RideModel]:
        return await self.session.get(RideModel, ride_id)

    async def reload(self, ride_id: int) -> Optional[RideModel]:
        """Fetch bypassing the identity map (after a Core UPDATE)."""
        return await self.session.get(RideModel, ride_id, populate_existing=True)

    async def conditional_update(
        self,
        ride_id: int,
        from_statuses: Iterable[RideStatus],
        **values: Any,
    ) -> bool:
        """
        Compare-and-set: apply *values* only while the ride is in one of
        *from_statuses*.  Returns True if this call changed the row.
        """
        result = await self.session.execute(
            update(RideModel)
            .where(
                RideModel.id == ride_id,
                RideModel.status.in_(list(from_statuses)),
            )
            .values(updated_at=server_now(), **values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1


class TrackingRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def append(
        self, ride_id: int, latitude: Decimal, longitude: Decimal
    ) -> TrackPointModel:
        point = TrackPointModel(
            ride_id=ride_id,
            latitude=latitude,
            longitude=longitude,
            recorded_at=server_now(),
        )
        self.session.add(point)
        await self.session.flush()
        return point

    async def points_for_ride(self, ride_id: int) -> list[TrackPointModel]:
        result = await self.session.execute(
            select(TrackPointModel)
            .where(TrackPointModel.ride_id == ride_id)
            .order_by(TrackPointModel.recorded_at, TrackPointModel.id)
        )
        return list(result.scalars().all())


class PaymentRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, payment: PaymentModel) -> PaymentModel:
        self.session.add(payment)
        await self.session.flush()
        return payment

    async def get_by_ride_id(self, ride_id: int) -> Optional[PaymentModel]:
        result = await self.session.execute(
            select(PaymentModel).where(PaymentModel.ride_id == ride_id)
        )
        return result.scalar_one_or_none()

    async def get_by_order_for_update(self, order_id: str) -> Optional[PaymentModel]:
        """
        SELECT ... FOR UPDATE by gateway order id.

        The order id stays in ``gateway_order_id`` after a successful
        callback swaps ``transaction_id`` to the payment id, so replays
        still resolve.
        """
        result = await self.session.execute(
            select(PaymentModel)
            .where(
                or_(
                    PaymentModel.gateway_order_id == order_id,
                    PaymentModel.transaction_id == order_id,
                )
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    async def get_by_transaction_id(self, transaction_id: str) -> Optional[PaymentModel]:
        result = await self.session.execute(
            select(PaymentModel)
            .where(PaymentModel.transaction_id == transaction_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()


class RatingRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, rating: RatingModel) -> RatingModel:
        self.session.add(rating)
        await self.session.flush()
        return rating

    async def get_by_ride_id(self, ride_id: int) -> Optional[RatingModel]:
        result = await self.session.execute(
            select(RatingModel).where(RatingModel.ride_id == ride_id)
        )
        return result.scalar_one_or_none()
