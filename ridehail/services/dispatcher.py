"""
Ride dispatch fan-out.

Resolves the candidate drivers for a freshly requested ride and pushes a
``ride_request`` to each driver's room.  Sends run concurrently; a
failed send is logged and does not stop the others.  Receiving the event
is not a reservation -- the accept compare-and-set decides the winner.
"""

from __future__ import annotations

import asyncio
import logging

from ridehail.infrastructure.event_sink import (
    RIDE_REQUEST,
    EventDeliveryError,
    EventSink,
    driver_room,
    ride_payload,
)
from ridehail.infrastructure.models import RideModel
from ridehail.services.drivers import DriverRegistry

logger = logging.getLogger(__name__)


class Dispatcher:
    def __init__(self, registry: DriverRegistry, events: EventSink):
        self.registry = registry
        self.events = events

    async def dispatch(self, ride: RideModel) -> list[str]:
        """Return the external ids of the drivers the event reached."""
        candidates = await self.registry.candidates(
            ride.pickup_latitude, ride.pickup_longitude, ride.vehicle_type
        )
        if not candidates:
            logger.info("Ride %s: no candidate drivers in range", ride.id)
            return []

        payload = ride_payload(ride)
        results = await asyncio.gather(
            *(
                self.events.emit(RIDE_REQUEST, driver_room(d.external_id), payload)
                for d in candidates
            ),
            return_exceptions=True,
        )

        notified: list[str] = []
        for driver, result in zip(candidates, results):
            if isinstance(result, EventDeliveryError):
                logger.warning(
                    "Ride %s: request not delivered to driver %s: %s",
                    ride.id, driver.external_id, result,
                )
            elif isinstance(result, BaseException):
                logger.error(
                    "Ride %s: unexpected error notifying driver %s",
                    ride.id, driver.external_id, exc_info=result,
                )
            else:
                notified.append(driver.external_id)

        logger.info(
            "Ride %s dispatched to %d/%d drivers",
            ride.id, len(notified), len(candidates),
        )
        return notified
