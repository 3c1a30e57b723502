"""
Ride State Machine
==================

The single writer for a ride's ``status``, ``driver_external_id`` and
``fare``.

    PENDING --accept--> ACCEPTED --start--> STARTED --complete--> COMPLETED
       |                   |  \\_____________complete______________/
       +-----cancel--------+--------> CANCELLED

Concurrency safety
------------------
Every transition is a conditional ``UPDATE rides SET ... WHERE id = :id
AND status IN (:allowed)`` whose row count is inspected.  Two drivers
accepting the same ride concurrently both issue the UPDATE; the database
serialises them on the row and only the first matches ``PENDING``.  The
loser re-reads the ride to report ``already-taken`` (or ``not-found``).
A failed commit leaves the row untouched.

Events go out only after the commit, and a relay failure never rolls a
transition back.
"""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ridehail.domain.enums import (
    CASH_PAYMENT_MODES,
    RidePaymentStatus,
    RideStatus,
    VehicleType,
)
from ridehail.domain.exceptions import (
    AlreadyTakenError,
    ConflictError,
    InvalidStateError,
    NotFoundError,
)
from ridehail.domain.pricing import FareCalculator
from ridehail.domain.transitions import (
    InvalidStateTransition,
    can_transition_ride,
    ensure_ride_transition,
)
from ridehail.infrastructure.event_sink import (
    RIDE_ACCEPTED,
    RIDE_CANCELLED,
    RIDE_COMPLETED,
    EventSink,
    driver_room,
    ride_payload,
    rider_room,
)
from ridehail.infrastructure.models import RatingModel, RideModel
from ridehail.infrastructure.repositories import (
    DriverRepository,
    RatingRepository,
    RideRepository,
    RiderRepository,
)
from ridehail.services.dispatcher import Dispatcher
from ridehail.services.tracking import TrackingStore

logger = logging.getLogger(__name__)


def is_cash_mode(payment_mode: Optional[str]) -> bool:
    return (payment_mode or "").strip().upper() in CASH_PAYMENT_MODES


class RideService:
    def __init__(
        self,
        session: AsyncSession,
        events: EventSink,
        fares: FareCalculator,
        dispatcher: Optional[Dispatcher] = None,
        tracking: Optional[TrackingStore] = None,
    ):
        self.session = session
        self.events = events
        self.fares = fares
        self.dispatcher = dispatcher
        self.tracking = tracking or TrackingStore(session)
        self.rides = RideRepository(session)
        self.riders = RiderRepository(session)
        self.drivers = DriverRepository(session)

    # ── Queries ───────────────────────────────────────────────────────

    async def get(self, ride_id: int) -> RideModel:
        ride = await self.rides.get_by_id(ride_id)
        if ride is None:
            raise NotFoundError("Ride not found")
        return ride

    # ── Transitions ───────────────────────────────────────────────────

    async def request(
        self,
        rider_external_id: str,
        pickup_lat: float,
        pickup_lng: float,
        drop_lat: float,
        drop_lng: float,
        vehicle_type: Optional[VehicleType] = None,
        notes: Optional[str] = None,
        payment_mode: Optional[str] = None,
    ) -> RideModel:
        """Create a PENDING ride with a quoted fare, then dispatch it."""
        if await self.riders.get_by_external_id(rider_external_id) is None:
            raise NotFoundError("Rider not found")

        ride = RideModel(
            rider_external_id=rider_external_id,
            pickup_latitude=pickup_lat,
            pickup_longitude=pickup_lng,
            drop_latitude=drop_lat,
            drop_longitude=drop_lng,
            vehicle_type=vehicle_type,
            notes=notes or "",
            status=RideStatus.PENDING,
            fare=self.fares.quote(pickup_lat, pickup_lng, drop_lat, drop_lng),
            payment_status=RidePaymentStatus.PENDING,
            payment_mode=payment_mode.strip().upper() if payment_mode else None,
        )
        await self.rides.create(ride)
        await self.session.commit()
        logger.info(
            "Ride %s requested by %s (quote=%s)", ride.id, rider_external_id, ride.fare
        )

        if self.dispatcher is not None:
            try:
                await self.dispatcher.dispatch(ride)
            except Exception:
                # the ride is persisted and valid; drivers can still poll it
                logger.exception("Dispatch failed for ride %s", ride.id)
        return ride

    async def accept(self, ride_id: int, driver_external_id: str) -> RideModel:
        """First driver to flip PENDING -> ACCEPTED wins."""
        if await self.drivers.get_by_external_id(driver_external_id) is None:
            raise NotFoundError("Driver not found")

        won = await self.rides.conditional_update(
            ride_id,
            [RideStatus.PENDING],
            status=RideStatus.ACCEPTED,
            driver_external_id=driver_external_id,
        )
        if not won:
            await self.session.rollback()
            ride = await self.rides.reload(ride_id)
            if ride is None:
                raise NotFoundError("Ride not found")
            if RideStatus(ride.status) == RideStatus.CANCELLED:
                raise InvalidStateTransition("Ride was cancelled")
            logger.info(
                "Ride %s: accept by %s lost to %s",
                ride_id, driver_external_id, ride.driver_external_id,
            )
            raise AlreadyTakenError()

        await self.session.commit()
        ride = await self.rides.reload(ride_id)
        logger.info("Ride %s accepted by driver %s", ride_id, driver_external_id)

        await self.events.notify(
            RIDE_ACCEPTED, rider_room(ride.rider_external_id), ride_payload(ride)
        )
        return ride

    async def start(self, ride_id: int) -> RideModel:
        ride = await self._transition(ride_id, RideStatus.STARTED)
        logger.info("Ride %s started", ride_id)
        return ride

    async def cancel(self, ride_id: int) -> RideModel:
        ride = await self._transition(ride_id, RideStatus.CANCELLED)
        logger.info("Ride %s cancelled", ride_id)
        if ride.driver_external_id:
            await self.events.notify(
                RIDE_CANCELLED, driver_room(ride.driver_external_id), ride_payload(ride)
            )
        return ride

    async def complete(self, ride_id: int) -> RideModel:
        """
        Fix the final fare from the tracked polyline and close the ride.

        Cash rides are settled on the spot; everything else stays
        ``PENDING`` until the payment callback marks it paid.
        """
        ride = await self.get(ride_id)
        ensure_ride_transition(ride.status, RideStatus.COMPLETED)

        distance_km = await self.tracking.polyline_distance(ride_id)
        fare = self.fares.fare_for_distance(distance_km)
        payment_status = (
            RidePaymentStatus.PAID
            if is_cash_mode(ride.payment_mode)
            else RidePaymentStatus(ride.payment_status)
        )

        won = await self.rides.conditional_update(
            ride_id,
            [RideStatus.ACCEPTED, RideStatus.STARTED],
            status=RideStatus.COMPLETED,
            fare=fare,
            payment_status=payment_status,
        )
        if not won:
            await self.session.rollback()
            current = await self.rides.reload(ride_id)
            ensure_ride_transition(current.status, RideStatus.COMPLETED)
            raise InvalidStateTransition("Ride changed state concurrently")

        await self.session.commit()
        ride = await self.rides.reload(ride_id)
        logger.info(
            "Ride %s completed: %.3f km, fare %s", ride_id, distance_km, ride.fare
        )

        await self.events.notify(
            RIDE_COMPLETED, rider_room(ride.rider_external_id), ride_payload(ride)
        )
        return ride

    async def _transition(self, ride_id: int, new_status: RideStatus) -> RideModel:
        allowed_from = [
            status
            for status in RideStatus
            if can_transition_ride(status, new_status)
        ]
        won = await self.rides.conditional_update(
            ride_id, allowed_from, status=new_status
        )
        if not won:
            await self.session.rollback()
            ride = await self.rides.reload(ride_id)
            if ride is None:
                raise NotFoundError("Ride not found")
            ensure_ride_transition(ride.status, new_status)
            raise InvalidStateTransition("Ride changed state concurrently")

        await self.session.commit()
        return await self.rides.reload(ride_id)

    # ── Ratings ───────────────────────────────────────────────────────

    async def rate(
        self,
        ride_id: int,
        *,
        user_rating: Optional[int] = None,
        driver_rating: Optional[int] = None,
        user_feedback: Optional[str] = None,
        driver_feedback: Optional[str] = None,
    ) -> RatingModel:
        ride = await self.get(ride_id)
        if RideStatus(ride.status) != RideStatus.COMPLETED:
            raise InvalidStateError("Only completed rides can be rated")

        ratings = RatingRepository(self.session)
        if await ratings.get_by_ride_id(ride_id):
            raise ConflictError("already-rated")

        rider = await self.riders.get_by_external_id(ride.rider_external_id)
        driver = await self.drivers.get_by_external_id(ride.driver_external_id)
        if rider is None or driver is None:
            raise NotFoundError("Ride participants not found")

        rating = RatingModel(
            ride_id=ride_id,
            rider_id=rider.id,
            driver_id=driver.id,
            user_rating=user_rating,
            driver_rating=driver_rating,
            user_feedback=user_feedback,
            driver_feedback=driver_feedback,
        )
        try:
            await ratings.create(rating)
            await self.session.commit()
        except IntegrityError as exc:
            await self.session.rollback()
            raise ConflictError("already-rated") from exc
        return rating
