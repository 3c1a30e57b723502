"""
Realtime event relay client.

Events are ``{type, room, payload}`` JSON documents POSTed to the relay's
``/emit`` endpoint, which fans them out to the sockets joined to *room*.
Delivery is best-effort: transport errors and 5xx answers are retried
with exponential backoff up to ``max_attempts``; 4xx answers are not
retried.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from datetime import datetime
from decimal import Decimal
from typing import Any

import httpx

logger = logging.getLogger(__name__)

RIDE_REQUEST = "ride_request"
RIDE_ACCEPTED = "ride_accepted"
RIDE_COMPLETED = "ride_completed"
RIDE_CANCELLED = "ride_cancelled"

# wire name, model attribute
RIDE_PAYLOAD_FIELDS = (
    ("id", "id"),
    ("clerkUserId", "rider_external_id"),
    ("clerkDriverId", "driver_external_id"),
    ("pickupLatitude", "pickup_latitude"),
    ("pickupLongitude", "pickup_longitude"),
    ("dropLatitude", "drop_latitude"),
    ("dropLongitude", "drop_longitude"),
    ("vehicleType", "vehicle_type"),
    ("notes", "notes"),
    ("status", "status"),
    ("fare", "fare"),
    ("paymentStatus", "payment_status"),
    ("paymentMode", "payment_mode"),
    ("createdAt", "created_at"),
    ("updatedAt", "updated_at"),
)


def _json_value(value: Any) -> Any:
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def ride_payload(ride: Any) -> dict[str, Any]:
    """camelCase ride document pushed with every ride event."""
    return {
        key: _json_value(getattr(ride, attr))
        for key, attr in RIDE_PAYLOAD_FIELDS
    }


def driver_room(driver_external_id: str) -> str:
    return f"driver:{driver_external_id}"


def rider_room(rider_external_id: str) -> str:
    return f"user:{rider_external_id}"


class EventDeliveryError(Exception):
    """The relay could not be reached or refused the event."""


class EventSink:
    def __init__(
        self,
        client: httpx.AsyncClient,
        base_url: str,
        max_attempts: int = 3,
        backoff_seconds: float = 0.2,
    ):
        self.client = client
        self.emit_url = f"{base_url.rstrip('/')}/emit"
        self.max_attempts = max(1, max_attempts)
        self.backoff_seconds = backoff_seconds

    async def emit(self, event_type: str, room: str, payload: Any) -> None:
        """Deliver one event or raise ``EventDeliveryError``."""
        body = {"type": event_type, "room": room, "payload": payload}
        last_error = "no attempt made"

        for attempt in range(1, self.max_attempts + 1):
            try:
                response = await self.client.post(self.emit_url, json=body)
            except httpx.HTTPError as exc:
                last_error = f"{type(exc).__name__}: {exc}"
            else:
                if response.is_success:
                    logger.debug("Event [%s] sent to room [%s]", event_type, room)
                    return
                last_error = f"HTTP {response.status_code}: {response.text[:200]}"
                if response.status_code < 500:
                    break

            if attempt < self.max_attempts:
                delay = self.backoff_seconds * 2 ** (attempt - 1)
                logger.warning(
                    "Relay send [%s -> %s] failed (%s); retry %d/%d in %.2fs",
                    event_type, room, last_error,
                    attempt, self.max_attempts - 1, delay,
                )
                await asyncio.sleep(delay)

        raise EventDeliveryError(
            f"Failed to emit {event_type} to {room}: {last_error}"
        )

    async def notify(self, event_type: str, room: str, payload: Any) -> bool:
        """Fire-and-forget variant: log instead of raising."""
        try:
            await self.emit(event_type, room, payload)
        except EventDeliveryError:
            logger.warning("Dropped %s event for %s", event_type, room, exc_info=True)
            return False
        return True
