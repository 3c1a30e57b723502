"""
Seed script -- populates the database with sample data for reviewers.

Run after migrations:
    python seed.py

Creates:
  - 6 sample riders
  - 8 sample drivers online around central Bengaluru, each with a vehicle
  - 5 sample rides (PENDING, ACCEPTED, COMPLETED cash and online)
  - earnings rows for the completed rides
"""

import asyncio
from datetime import date, timedelta
from decimal import Decimal

from sqlalchemy import text

from ridehail.config import settings
from ridehail.domain.enums import (
    Gender,
    PayoutStatus,
    RidePaymentStatus,
    RideStatus,
    VehicleType,
)
from ridehail.domain.matching import location_h3_cell
from ridehail.domain.pricing import FareCalculator, to_money
from ridehail.infrastructure.database import async_session_factory, engine, server_now
from ridehail.infrastructure.models import (
    DriverEarningModel,
    DriverModel,
    RideModel,
    RiderModel,
    VehicleModel,
)

# MG Road metro (approx)
CENTRE_LAT, CENTRE_LNG = 12.9756, 77.6050

COMMISSION_RATE = Decimal("20.00")


RIDERS = [
    {"ext": "user_seed_aarav", "first": "Aarav", "last": "Sharma", "phone": "+919800000001", "gender": Gender.MALE},
    {"ext": "user_seed_priya", "first": "Priya", "last": "Patel", "phone": "+919800000002", "gender": Gender.FEMALE},
    {"ext": "user_seed_rohan", "first": "Rohan", "last": "Mehta", "phone": "+919800000003", "gender": Gender.MALE},
    {"ext": "user_seed_sneha", "first": "Sneha", "last": "Gupta", "phone": "+919800000004", "gender": Gender.FEMALE},
    {"ext": "user_seed_ananya", "first": "Ananya", "last": "Reddy", "phone": "+919800000005", "gender": Gender.FEMALE},
    {"ext": "user_seed_karan", "first": "Karan", "last": "Joshi", "phone": "+919800000006", "gender": Gender.MALE},
]

DRIVERS = [
    {"ext": "driver_seed_01", "first": "Ravi", "last": "Kumar", "lat": 12.9760, "lng": 77.6055, "vehicle": VehicleType.CAB},
    {"ext": "driver_seed_02", "first": "Suresh", "last": "Gowda", "lat": 12.9716, "lng": 77.5946, "vehicle": VehicleType.AUTO},
    {"ext": "driver_seed_03", "first": "Imran", "last": "Khan", "lat": 12.9784, "lng": 77.6408, "vehicle": VehicleType.BIKE},
    {"ext": "driver_seed_04", "first": "Manju", "last": "Nath", "lat": 12.9352, "lng": 77.6245, "vehicle": VehicleType.CAB},
    {"ext": "driver_seed_05", "first": "Deepak", "last": "Rao", "lat": 12.9698, "lng": 77.7500, "vehicle": VehicleType.CAB},
    {"ext": "driver_seed_06", "first": "Farhan", "last": "Ali", "lat": 12.9810, "lng": 77.6100, "vehicle": VehicleType.AUTO},
    {"ext": "driver_seed_07", "first": "Naveen", "last": "Shetty", "lat": 12.9580, "lng": 77.6000, "vehicle": VehicleType.PARCEL},
    {"ext": "driver_seed_08", "first": "Prakash", "last": "Hegde", "lat": 13.1986, "lng": 77.7066, "vehicle": VehicleType.CAB},  # airport, out of range
]

RIDES = [
    # waiting for a driver
    {"rider": 0, "driver": None, "pickup": (12.9756, 77.6050), "drop": (12.9352, 77.6245),
     "vehicle": VehicleType.CAB, "status": RideStatus.PENDING, "mode": "ONLINE"},
    {"rider": 1, "driver": None, "pickup": (12.9716, 77.5946), "drop": (12.9784, 77.6408),
     "vehicle": None, "status": RideStatus.PENDING, "mode": "CASH"},
    # on the way
    {"rider": 2, "driver": 1, "pickup": (12.9716, 77.5946), "drop": (12.9591, 77.6974),
     "vehicle": VehicleType.AUTO, "status": RideStatus.ACCEPTED, "mode": "CASH"},
    # done
    {"rider": 3, "driver": 0, "pickup": (12.9756, 77.6050), "drop": (12.9279, 77.6271),
     "vehicle": VehicleType.CAB, "status": RideStatus.COMPLETED, "mode": "CASH"},
    {"rider": 4, "driver": 3, "pickup": (12.9352, 77.6245), "drop": (12.9716, 77.5946),
     "vehicle": VehicleType.CAB, "status": RideStatus.COMPLETED, "mode": "ONLINE"},
]


def earning_for(driver_id: int, ride: RideModel) -> DriverEarningModel:
    gross = to_money(ride.fare)
    commission = to_money(gross * COMMISSION_RATE / 100)
    net = gross - commission
    return DriverEarningModel(
        driver_id=driver_id,
        ride_id=ride.id,
        gross_amount=gross,
        commission_rate=COMMISSION_RATE,
        commission_amount=commission,
        net_earnings=net,
        incentive_amount=Decimal("0.00"),
        total_earnings=net,
        payout_status=PayoutStatus.PENDING,
    )


async def seed():
    fares = FareCalculator(settings.base_fare, settings.rate_per_km)

    async with async_session_factory() as session:
        # Check if already seeded
        result = await session.execute(text("SELECT count(*) FROM riders"))
        if result.scalar() > 0:
            print("Database already seeded. Skipping.")
            return

        # ── Riders ────────────────────────────────────────────────────
        rider_models = []
        for r in RIDERS:
            m = RiderModel(
                external_id=r["ext"],
                email=f"{r['first'].lower()}@example.com",
                phone_number=r["phone"],
                first_name=r["first"],
                last_name=r["last"],
                user_type="rider",
                gender=r["gender"],
            )
            session.add(m)
            rider_models.append(m)
        await session.flush()
        print(f"  Created {len(rider_models)} riders")

        # ── Drivers + vehicles ────────────────────────────────────────
        driver_models = []
        today = date.today()
        for i, d in enumerate(DRIVERS, start=1):
            m = DriverModel(
                external_id=d["ext"],
                first_name=d["first"],
                last_name=d["last"],
                phone_number=f"+919900000{i:03d}",
                user_type="driver",
                is_online=True,
                current_latitude=d["lat"],
                current_longitude=d["lng"],
                h3_cell=location_h3_cell(d["lat"], d["lng"], settings.h3_resolution),
                last_location_update=server_now(),
            )
            session.add(m)
            driver_models.append(m)
        await session.flush()

        for i, (d, m) in enumerate(zip(DRIVERS, driver_models), start=1):
            session.add(
                VehicleModel(
                    driver_id=m.id,
                    vehicle_type=d["vehicle"],
                    vehicle_number=f"KA01AB{1000 + i}",
                    vehicle_model="Seed",
                    vehicle_brand="Seed Motors",
                    vehicle_color="White",
                    manufacturing_year=2022,
                    rc_number=f"RC-SEED-{i:03d}",
                    insurance_number=f"INS-SEED-{i:03d}",
                    insurance_expiry_date=today + timedelta(days=365),
                    pollution_certificate_number=f"PUC-SEED-{i:03d}",
                    pollution_expiry_date=today + timedelta(days=180),
                )
            )
        await session.flush()
        print(f"  Created {len(driver_models)} drivers with vehicles")

        # ── Rides ─────────────────────────────────────────────────────
        earnings = 0
        for r in RIDES:
            driver = driver_models[r["driver"]] if r["driver"] is not None else None
            completed = r["status"] == RideStatus.COMPLETED
            paid = completed and r["mode"] == "CASH"
            ride = RideModel(
                rider_external_id=rider_models[r["rider"]].external_id,
                driver_external_id=driver.external_id if driver else None,
                pickup_latitude=r["pickup"][0],
                pickup_longitude=r["pickup"][1],
                drop_latitude=r["drop"][0],
                drop_longitude=r["drop"][1],
                vehicle_type=r["vehicle"],
                notes="",
                status=r["status"],
                fare=fares.quote(*r["pickup"], *r["drop"]),
                payment_status=RidePaymentStatus.PAID if paid else RidePaymentStatus.PENDING,
                payment_mode=r["mode"],
            )
            session.add(ride)
            await session.flush()
            if completed:
                session.add(earning_for(driver.id, ride))
                earnings += 1
        print(f"  Created {len(RIDES)} rides, {earnings} earnings rows")

        await session.commit()
        print("\nSeed complete!")


async def main():
    print("Seeding database...")
    await seed()
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
