"""
SQLAlchemy ORM models  (maps to PostgreSQL).

Tables
------
* ``riders``           -- passengers, keyed externally by identity ``sub``
* ``drivers``          -- drivers with online flag and last known position
* ``vehicles``         -- one per driver, carries the vehicle class
* ``rides``            -- trips; reference rider / driver by external id
* ``ride_tracking``    -- append-only coordinate log per ride
* ``payments``         -- gateway payment per ride (1:1)
* ``driver_earnings``  -- per-ride driver payout ledger
* ``ratings``          -- bidirectional rating per ride (1:1)

Indexes
-------
* **Unique** on every external identity and registration number.
* **B-Tree** on ``drivers.h3_cell`` / ``is_online`` for candidate search,
  ``ride_tracking (ride_id, recorded_at, id)`` for ordered replay and
  ``payments.transaction_id`` / ``gateway_order_id`` for callbacks.
"""

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    LargeBinary,
    Numeric,
    SmallInteger,
    String,
    Text,
)

from .database import Base, server_now
from ridehail.domain.enums import (
    Gender,
    PaymentMethod,
    PaymentStatus,
    PayoutStatus,
    RidePaymentStatus,
    RideStatus,
    VehicleStatus,
    VehicleType,
)

LAT = Numeric(10, 8)
LNG = Numeric(11, 8)
MONEY = Numeric(10, 2)


class RiderModel(Base):
    __tablename__ = "riders"

    id = Column(Integer, primary_key=True, autoincrement=True)
    external_id = Column(String(64), unique=True, nullable=False)
    email = Column(String(255), unique=True, nullable=True)
    phone_number = Column(String(32), unique=True, nullable=False)
    first_name = Column(String(120), nullable=False)
    last_name = Column(String(120), nullable=False)
    user_type = Column(String(20), nullable=False, default="rider")
    profile_image = Column(LargeBinary, nullable=True)
    date_of_birth = Column(Date, nullable=True)
    gender = Column(Enum(Gender), nullable=True)
    emergency_contact_name = Column(String(120), nullable=True)
    emergency_contact_number = Column(String(32), nullable=True)
    referral_code = Column(String(32), unique=True, nullable=True)
    referred_by = Column(String(32), nullable=True)

    created_at = Column(DateTime(timezone=True), default=server_now)
    updated_at = Column(
        DateTime(timezone=True), default=server_now, onupdate=server_now
    )


class DriverModel(Base):
    __tablename__ = "drivers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    external_id = Column(String(64), unique=True, nullable=False)
    first_name = Column(String(120), nullable=False)
    last_name = Column(String(120), nullable=False)
    phone_number = Column(String(32), nullable=False)
    user_type = Column(String(20), nullable=False, default="driver")
    profile_image = Column(LargeBinary, nullable=True)
    license_image = Column(LargeBinary, nullable=True)
    referral_code = Column(String(32), unique=True, nullable=True)
    referred_by = Column(String(32), nullable=True)

    is_online = Column(Boolean, default=False, nullable=False)
    current_latitude = Column(LAT, nullable=True)
    current_longitude = Column(LNG, nullable=True)
    h3_cell = Column(String(20), nullable=True)
    last_location_update = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), default=server_now)
    updated_at = Column(
        DateTime(timezone=True), default=server_now, onupdate=server_now
    )

    __table_args__ = (
        Index("idx_drivers_cell_online", "h3_cell", "is_online"),
    )


class VehicleModel(Base):
    __tablename__ = "vehicles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    driver_id = Column(
        Integer, ForeignKey("drivers.id"), unique=True, nullable=False
    )
    vehicle_type = Column(Enum(VehicleType), nullable=False)
    vehicle_number = Column(String(32), unique=True, nullable=False)
    vehicle_model = Column(String(80), nullable=False)
    vehicle_brand = Column(String(80), nullable=False)
    vehicle_color = Column(String(40), nullable=False)
    manufacturing_year = Column(Integer, nullable=False)
    rc_number = Column(String(64), unique=True, nullable=False)
    insurance_number = Column(String(64), unique=True, nullable=False)
    insurance_expiry_date = Column(Date, nullable=False)
    pollution_certificate_number = Column(String(64), unique=True, nullable=False)
    pollution_expiry_date = Column(Date, nullable=False)
    vehicle_status = Column(
        Enum(VehicleStatus), default=VehicleStatus.ACTIVE, nullable=False
    )

    created_at = Column(DateTime(timezone=True), default=server_now)


class RideModel(Base):
    __tablename__ = "rides"

    id = Column(Integer, primary_key=True, autoincrement=True)
    rider_external_id = Column(
        String(64), ForeignKey("riders.external_id"), nullable=False
    )
    driver_external_id = Column(
        String(64), ForeignKey("drivers.external_id"), nullable=True
    )

    pickup_latitude = Column(LAT, nullable=False)
    pickup_longitude = Column(LNG, nullable=False)
    drop_latitude = Column(LAT, nullable=False)
    drop_longitude = Column(LNG, nullable=False)

    vehicle_type = Column(Enum(VehicleType), nullable=True)  # NULL = any
    notes = Column(Text, nullable=True)
    status = Column(Enum(RideStatus), default=RideStatus.PENDING, nullable=False)
    fare = Column(MONEY, nullable=True)
    payment_status = Column(
        Enum(RidePaymentStatus),
        default=RidePaymentStatus.PENDING,
        nullable=False,
    )
    payment_mode = Column(String(20), nullable=True)

    created_at = Column(DateTime(timezone=True), default=server_now)
    updated_at = Column(
        DateTime(timezone=True), default=server_now, onupdate=server_now
    )

    __table_args__ = (
        Index("idx_rides_status", "status"),
        Index("idx_rides_rider", "rider_external_id"),
        Index("idx_rides_driver", "driver_external_id"),
    )


class TrackPointModel(Base):
    __tablename__ = "ride_tracking"

    id = Column(Integer, primary_key=True, autoincrement=True)
    ride_id = Column(Integer, ForeignKey("rides.id"), nullable=False)
    latitude = Column(LAT, nullable=False)
    longitude = Column(LNG, nullable=False)
    recorded_at = Column(DateTime(timezone=True), default=server_now, nullable=False)

    __table_args__ = (
        Index("idx_tracking_ride_time", "ride_id", "recorded_at", "id"),
    )


class PaymentModel(Base):
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    ride_id = Column(Integer, ForeignKey("rides.id"), unique=True, nullable=False)
    rider_external_id = Column(String(64), nullable=False)
    driver_external_id = Column(String(64), nullable=True)
    amount = Column(MONEY, nullable=False)
    payment_method = Column(Enum(PaymentMethod), nullable=False)
    payment_gateway = Column(String(40), nullable=True)
    gateway_order_id = Column(String(255), nullable=True)
    transaction_id = Column(String(255), nullable=True)
    gateway_response = Column(Text, nullable=True)
    payment_status = Column(
        Enum(PaymentStatus), default=PaymentStatus.PENDING, nullable=False
    )

    created_at = Column(DateTime(timezone=True), default=server_now)
    updated_at = Column(
        DateTime(timezone=True), default=server_now, onupdate=server_now
    )

    __table_args__ = (
        Index("idx_payments_transaction", "transaction_id"),
        Index("idx_payments_order", "gateway_order_id"),
    )


class DriverEarningModel(Base):
    __tablename__ = "driver_earnings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    driver_id = Column(Integer, ForeignKey("drivers.id"), nullable=False)
    ride_id = Column(Integer, ForeignKey("rides.id"), nullable=False)
    gross_amount = Column(MONEY, nullable=False)
    commission_rate = Column(Numeric(5, 2), nullable=False)
    commission_amount = Column(MONEY, nullable=False)
    net_earnings = Column(MONEY, nullable=False)
    incentive_amount = Column(MONEY, default=0)
    total_earnings = Column(MONEY, nullable=False)
    payout_status = Column(
        Enum(PayoutStatus), default=PayoutStatus.PENDING, nullable=False
    )
    payout_date = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=server_now)


class RatingModel(Base):
    __tablename__ = "ratings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    ride_id = Column(Integer, ForeignKey("rides.id"), unique=True, nullable=False)
    rider_id = Column(Integer, ForeignKey("riders.id"), nullable=False)
    driver_id = Column(Integer, ForeignKey("drivers.id"), nullable=False)
    user_rating = Column(SmallInteger, nullable=True)
    driver_rating = Column(SmallInteger, nullable=True)
    user_feedback = Column(Text, nullable=True)
    driver_feedback = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=server_now)
