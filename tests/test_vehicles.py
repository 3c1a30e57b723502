"""VehicleService: registration straight from plain column values."""

from datetime import date

import pytest

from ridehail.domain.enums import VehicleType
from ridehail.domain.exceptions import ConflictError, NotFoundError
from ridehail.services.vehicles import VehicleService
from tests.factories import add_driver


def vehicle_fields(tag: str = "1", **overrides):
    fields = dict(
        vehicle_type=VehicleType.AUTO,
        vehicle_number=f"KA-05-{tag}",
        vehicle_model="RE Compact",
        vehicle_brand="Bajaj",
        vehicle_color="Green",
        manufacturing_year=2022,
        rc_number=f"RC-A{tag}",
        insurance_number=f"INS-A{tag}",
        insurance_expiry_date=date(2030, 1, 1),
        pollution_certificate_number=f"PUC-A{tag}",
        pollution_expiry_date=date(2029, 1, 1),
    )
    fields.update(overrides)
    return fields


@pytest.mark.asyncio
async def test_register_links_vehicle_to_driver(db_session):
    driver = await add_driver(db_session, "d1", vehicle_type=None)
    driver_id = driver.id

    vehicle = await VehicleService(db_session).register("d1", **vehicle_fields())

    assert vehicle.driver_id == driver_id
    assert vehicle.vehicle_number == "KA-05-1"
    found = await VehicleService(db_session).get_by_driver_id(driver_id)
    assert found.vehicle_type == VehicleType.AUTO


@pytest.mark.asyncio
async def test_register_for_unknown_driver(db_session):
    with pytest.raises(NotFoundError):
        await VehicleService(db_session).register("ghost", **vehicle_fields())


@pytest.mark.asyncio
async def test_second_vehicle_is_a_conflict(db_session):
    await add_driver(db_session, "d1")
    with pytest.raises(ConflictError):
        await VehicleService(db_session).register("d1", **vehicle_fields("2"))


@pytest.mark.asyncio
async def test_duplicate_plate_is_a_conflict(db_session):
    await add_driver(db_session, "d1", vehicle_type=None)
    await add_driver(db_session, "d2", vehicle_type=None)
    service = VehicleService(db_session)
    await service.register("d1", **vehicle_fields("7"))

    with pytest.raises(ConflictError):
        await service.register("d2", **vehicle_fields("8", vehicle_number="KA-05-7"))
