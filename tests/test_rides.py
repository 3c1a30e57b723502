"""Ride state machine against a real (SQLite) session."""

from decimal import Decimal

import pytest

from ridehail.domain.distance import haversine_km
from ridehail.domain.transitions import InvalidStateTransition
from ridehail.domain.enums import RidePaymentStatus, RideStatus, VehicleType
from ridehail.domain.exceptions import (
    AlreadyTakenError,
    ConflictError,
    InvalidStateError,
    NotFoundError,
)
from ridehail.domain.pricing import FareCalculator
from ridehail.services.dispatcher import Dispatcher
from ridehail.services.drivers import DriverRegistry
from ridehail.services.rides import RideService
from ridehail.services.tracking import TrackingStore
from tests.factories import DROP, PICKUP, add_driver, add_rider, offset_north


def make_service(session, events, with_dispatch=True) -> RideService:
    dispatcher = Dispatcher(DriverRegistry(session), events) if with_dispatch else None
    return RideService(
        session, events, FareCalculator(25, 8), dispatcher=dispatcher
    )


async def request_ride(service, rider="user_1", vehicle_type=VehicleType.CAB, **kw):
    return await service.request(
        rider, *PICKUP, *DROP, vehicle_type=vehicle_type, **kw
    )


@pytest.mark.asyncio
async def test_request_creates_pending_ride_with_quote(db_session, events):
    await add_rider(db_session)
    service = make_service(db_session, events)

    ride = await request_ride(service, notes="gate 3")

    expected = FareCalculator(25, 8).fare_for_distance(haversine_km(*PICKUP, *DROP))
    assert ride.id is not None
    assert ride.status == RideStatus.PENDING
    assert ride.driver_external_id is None
    assert ride.fare == expected
    assert ride.payment_status == RidePaymentStatus.PENDING

    fetched = await service.get(ride.id)
    assert fetched.rider_external_id == "user_1"
    assert fetched.notes == "gate 3"


@pytest.mark.asyncio
async def test_request_unknown_rider_is_not_found(db_session, events):
    with pytest.raises(NotFoundError):
        await request_ride(make_service(db_session, events), rider="nobody")


@pytest.mark.asyncio
async def test_request_dispatches_to_nearby_matching_drivers(db_session, events):
    await add_rider(db_session)
    await add_driver(db_session, "d_near", *PICKUP)
    await add_driver(db_session, "d_close", offset_north(PICKUP[0], 3.0), PICKUP[1])
    await add_driver(db_session, "d_far", offset_north(PICKUP[0], 6.0), PICKUP[1])
    await add_driver(db_session, "d_offline", *PICKUP, online=False)
    await add_driver(db_session, "d_bike", *PICKUP, vehicle_type=VehicleType.BIKE)

    await request_ride(make_service(db_session, events))

    assert sorted(events.rooms("ride_request")) == ["driver:d_close", "driver:d_near"]
    _, _, payload = events.sent[0]
    assert payload["status"] == "PENDING"
    assert payload["clerkUserId"] == "user_1"


@pytest.mark.asyncio
async def test_any_vehicle_class_reaches_every_nearby_driver(db_session, events):
    await add_rider(db_session)
    await add_driver(db_session, "d_cab", *PICKUP)
    await add_driver(db_session, "d_bike", *PICKUP, vehicle_type=VehicleType.BIKE)

    await request_ride(make_service(db_session, events), vehicle_type=None)

    assert sorted(events.rooms("ride_request")) == ["driver:d_bike", "driver:d_cab"]


@pytest.mark.asyncio
async def test_failed_dispatch_does_not_undo_the_ride(db_session, events):
    await add_rider(db_session)
    await add_driver(db_session, "d_down", *PICKUP)
    await add_driver(db_session, "d_up", *PICKUP)
    events.failing_rooms.add("driver:d_down")
    service = make_service(db_session, events)

    ride = await request_ride(service)

    assert events.rooms("ride_request") == ["driver:d_up"]
    assert (await service.get(ride.id)).status == RideStatus.PENDING


@pytest.mark.asyncio
async def test_accept_assigns_driver_and_notifies_rider(db_session, events):
    await add_rider(db_session)
    await add_driver(db_session, "d1")
    service = make_service(db_session, events, with_dispatch=False)
    ride = await request_ride(service)

    accepted = await service.accept(ride.id, "d1")

    assert accepted.status == RideStatus.ACCEPTED
    assert accepted.driver_external_id == "d1"
    assert events.rooms("ride_accepted") == ["user:user_1"]


@pytest.mark.asyncio
async def test_second_accept_is_already_taken(db_session, events):
    await add_rider(db_session)
    await add_driver(db_session, "d1")
    await add_driver(db_session, "d2")
    service = make_service(db_session, events, with_dispatch=False)
    ride = await request_ride(service)
    await service.accept(ride.id, "d1")

    with pytest.raises(AlreadyTakenError):
        await service.accept(ride.id, "d2")

    assert (await service.get(ride.id)).driver_external_id == "d1"
    assert events.rooms("ride_accepted") == ["user:user_1"]


@pytest.mark.asyncio
async def test_accept_missing_ride_is_not_found(db_session, events):
    await add_driver(db_session, "d1")
    with pytest.raises(NotFoundError):
        await make_service(db_session, events).accept(999, "d1")


@pytest.mark.asyncio
async def test_accept_by_unknown_driver_is_not_found(db_session, events):
    await add_rider(db_session)
    service = make_service(db_session, events, with_dispatch=False)
    ride = await request_ride(service)

    with pytest.raises(NotFoundError):
        await service.accept(ride.id, "ghost")
    assert (await service.get(ride.id)).status == RideStatus.PENDING


@pytest.mark.asyncio
async def test_accept_cancelled_ride_is_invalid_state(db_session, events):
    await add_rider(db_session)
    await add_driver(db_session, "d1")
    service = make_service(db_session, events, with_dispatch=False)
    ride = await request_ride(service)
    await service.cancel(ride.id)

    with pytest.raises(InvalidStateTransition):
        await service.accept(ride.id, "d1")


@pytest.mark.asyncio
async def test_start_requires_accepted(db_session, events):
    await add_rider(db_session)
    await add_driver(db_session, "d1")
    service = make_service(db_session, events, with_dispatch=False)
    ride = await request_ride(service)

    with pytest.raises(InvalidStateTransition):
        await service.start(ride.id)

    await service.accept(ride.id, "d1")
    started = await service.start(ride.id)
    assert started.status == RideStatus.STARTED


@pytest.mark.asyncio
async def test_cancel_after_accept_tells_the_driver(db_session, events):
    await add_rider(db_session)
    await add_driver(db_session, "d1")
    service = make_service(db_session, events, with_dispatch=False)
    ride = await request_ride(service)
    await service.accept(ride.id, "d1")

    cancelled = await service.cancel(ride.id)

    assert cancelled.status == RideStatus.CANCELLED
    assert events.rooms("ride_cancelled") == ["driver:d1"]


@pytest.mark.asyncio
async def test_cancel_started_ride_is_rejected(db_session, events):
    await add_rider(db_session)
    await add_driver(db_session, "d1")
    service = make_service(db_session, events, with_dispatch=False)
    ride = await request_ride(service)
    await service.accept(ride.id, "d1")
    await service.start(ride.id)

    with pytest.raises(InvalidStateTransition):
        await service.cancel(ride.id)


@pytest.mark.asyncio
async def test_complete_reprices_from_tracked_route(db_session, events):
    await add_rider(db_session)
    await add_driver(db_session, "d1")
    service = make_service(db_session, events, with_dispatch=False)
    ride = await request_ride(service)
    await service.accept(ride.id, "d1")

    tracking = TrackingStore(db_session)
    for km in (0.0, 1.0, 2.0):
        await tracking.append_point(ride.id, offset_north(PICKUP[0], km), PICKUP[1])

    completed = await service.complete(ride.id)

    assert completed.status == RideStatus.COMPLETED
    assert completed.fare == Decimal("41.00")
    assert completed.payment_status == RidePaymentStatus.PENDING
    assert events.rooms("ride_completed") == ["user:user_1"]


@pytest.mark.asyncio
async def test_complete_without_tracking_charges_base_fare(db_session, events):
    await add_rider(db_session)
    await add_driver(db_session, "d1")
    service = make_service(db_session, events, with_dispatch=False)
    ride = await request_ride(service)
    await service.accept(ride.id, "d1")

    completed = await service.complete(ride.id)
    assert completed.fare == Decimal("25.00")


@pytest.mark.asyncio
async def test_cash_ride_is_paid_on_completion(db_session, events):
    await add_rider(db_session)
    await add_driver(db_session, "d1")
    service = make_service(db_session, events, with_dispatch=False)
    ride = await request_ride(service, payment_mode="cash")
    await service.accept(ride.id, "d1")

    completed = await service.complete(ride.id)
    assert completed.payment_status == RidePaymentStatus.PAID


@pytest.mark.asyncio
async def test_complete_pending_ride_is_invalid_state(db_session, events):
    await add_rider(db_session)
    service = make_service(db_session, events, with_dispatch=False)
    ride = await request_ride(service)

    with pytest.raises(InvalidStateTransition):
        await service.complete(ride.id)
    assert (await service.get(ride.id)).status == RideStatus.PENDING


@pytest.mark.asyncio
async def test_complete_twice_keeps_final_fare(db_session, events):
    await add_rider(db_session)
    await add_driver(db_session, "d1")
    service = make_service(db_session, events, with_dispatch=False)
    ride = await request_ride(service)
    await service.accept(ride.id, "d1")
    first = await service.complete(ride.id)

    await TrackingStore(db_session).append_point(
        ride.id, offset_north(PICKUP[0], 10.0), PICKUP[1]
    )
    with pytest.raises(InvalidStateTransition):
        await service.complete(ride.id)
    assert (await service.get(ride.id)).fare == first.fare


@pytest.mark.asyncio
async def test_rate_completed_ride_once(db_session, events):
    await add_rider(db_session)
    await add_driver(db_session, "d1")
    service = make_service(db_session, events, with_dispatch=False)
    ride = await request_ride(service)
    await service.accept(ride.id, "d1")
    await service.complete(ride.id)

    rating = await service.rate(ride.id, user_rating=5, user_feedback="smooth")
    assert rating.id is not None
    assert rating.user_rating == 5

    with pytest.raises(ConflictError):
        await service.rate(ride.id, driver_rating=4)


@pytest.mark.asyncio
async def test_rate_unfinished_ride_is_rejected(db_session, events):
    await add_rider(db_session)
    service = make_service(db_session, events, with_dispatch=False)
    ride = await request_ride(service)

    with pytest.raises(InvalidStateError):
        await service.rate(ride.id, user_rating=3)
