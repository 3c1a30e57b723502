"""Initial schema: riders, drivers, vehicles, rides, tracking, payments.

Revision ID: 001
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = "001"
down_revision = None
branch_labels = None
depends_on = None

LAT = sa.Numeric(10, 8)
LNG = sa.Numeric(11, 8)
MONEY = sa.Numeric(10, 2)


def _timestamps(updated: bool = True) -> list:
    columns = [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        )
    ]
    if updated:
        columns.append(
            sa.Column(
                "updated_at",
                sa.DateTime(timezone=True),
                server_default=sa.func.now(),
            )
        )
    return columns


def upgrade() -> None:
    # ── riders ────────────────────────────────────────────────────────
    op.create_table(
        "riders",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("external_id", sa.String(64), unique=True, nullable=False),
        sa.Column("email", sa.String(255), unique=True, nullable=True),
        sa.Column("phone_number", sa.String(32), unique=True, nullable=False),
        sa.Column("first_name", sa.String(120), nullable=False),
        sa.Column("last_name", sa.String(120), nullable=False),
        sa.Column("user_type", sa.String(20), nullable=False),
        sa.Column("profile_image", sa.LargeBinary, nullable=True),
        sa.Column("date_of_birth", sa.Date, nullable=True),
        sa.Column(
            "gender",
            sa.Enum("MALE", "FEMALE", "OTHER", name="gender"),
            nullable=True,
        ),
        sa.Column("emergency_contact_name", sa.String(120), nullable=True),
        sa.Column("emergency_contact_number", sa.String(32), nullable=True),
        sa.Column("referral_code", sa.String(32), unique=True, nullable=True),
        sa.Column("referred_by", sa.String(32), nullable=True),
        *_timestamps(),
    )

    # ── drivers ───────────────────────────────────────────────────────
    op.create_table(
        "drivers",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("external_id", sa.String(64), unique=True, nullable=False),
        sa.Column("first_name", sa.String(120), nullable=False),
        sa.Column("last_name", sa.String(120), nullable=False),
        sa.Column("phone_number", sa.String(32), nullable=False),
        sa.Column("user_type", sa.String(20), nullable=False),
        sa.Column("profile_image", sa.LargeBinary, nullable=True),
        sa.Column("license_image", sa.LargeBinary, nullable=True),
        sa.Column("referral_code", sa.String(32), unique=True, nullable=True),
        sa.Column("referred_by", sa.String(32), nullable=True),
        sa.Column("is_online", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("current_latitude", LAT, nullable=True),
        sa.Column("current_longitude", LNG, nullable=True),
        sa.Column("h3_cell", sa.String(20), nullable=True),
        sa.Column("last_location_update", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index(
        "idx_drivers_cell_online", "drivers", ["h3_cell", "is_online"]
    )

    # ── vehicles ──────────────────────────────────────────────────────
    op.create_table(
        "vehicles",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "driver_id",
            sa.Integer,
            sa.ForeignKey("drivers.id"),
            unique=True,
            nullable=False,
        ),
        sa.Column(
            "vehicle_type",
            sa.Enum("BIKE", "AUTO", "CAB", "PARCEL", name="vehicletype"),
            nullable=False,
        ),
        sa.Column("vehicle_number", sa.String(32), unique=True, nullable=False),
        sa.Column("vehicle_model", sa.String(80), nullable=False),
        sa.Column("vehicle_brand", sa.String(80), nullable=False),
        sa.Column("vehicle_color", sa.String(40), nullable=False),
        sa.Column("manufacturing_year", sa.Integer, nullable=False),
        sa.Column("rc_number", sa.String(64), unique=True, nullable=False),
        sa.Column("insurance_number", sa.String(64), unique=True, nullable=False),
        sa.Column("insurance_expiry_date", sa.Date, nullable=False),
        sa.Column(
            "pollution_certificate_number", sa.String(64), unique=True, nullable=False
        ),
        sa.Column("pollution_expiry_date", sa.Date, nullable=False),
        sa.Column(
            "vehicle_status",
            sa.Enum("ACTIVE", "INACTIVE", "UNDER_VERIFICATION", name="vehiclestatus"),
            nullable=False,
            server_default="ACTIVE",
        ),
        *_timestamps(updated=False),
    )

    # ── rides ─────────────────────────────────────────────────────────
    op.create_table(
        "rides",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "rider_external_id",
            sa.String(64),
            sa.ForeignKey("riders.external_id"),
            nullable=False,
        ),
        sa.Column(
            "driver_external_id",
            sa.String(64),
            sa.ForeignKey("drivers.external_id"),
            nullable=True,
        ),
        sa.Column("pickup_latitude", LAT, nullable=False),
        sa.Column("pickup_longitude", LNG, nullable=False),
        sa.Column("drop_latitude", LAT, nullable=False),
        sa.Column("drop_longitude", LNG, nullable=False),
        sa.Column(
            "vehicle_type",
            postgresql.ENUM(name="vehicletype", create_type=False),
            nullable=True,
        ),
        sa.Column("notes", sa.Text, nullable=True),
        sa.Column(
            "status",
            sa.Enum(
                "PENDING", "ACCEPTED", "STARTED", "COMPLETED", "CANCELLED",
                name="ridestatus",
            ),
            nullable=False,
            server_default="PENDING",
        ),
        sa.Column("fare", MONEY, nullable=True),
        sa.Column(
            "payment_status",
            sa.Enum("PENDING", "PAID", "FAILED", name="ridepaymentstatus"),
            nullable=False,
            server_default="PENDING",
        ),
        sa.Column("payment_mode", sa.String(20), nullable=True),
        *_timestamps(),
    )
    op.create_index("idx_rides_status", "rides", ["status"])
    op.create_index("idx_rides_rider", "rides", ["rider_external_id"])
    op.create_index("idx_rides_driver", "rides", ["driver_external_id"])

    # ── ride_tracking ─────────────────────────────────────────────────
    op.create_table(
        "ride_tracking",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("ride_id", sa.Integer, sa.ForeignKey("rides.id"), nullable=False),
        sa.Column("latitude", LAT, nullable=False),
        sa.Column("longitude", LNG, nullable=False),
        sa.Column(
            "recorded_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )
    op.create_index(
        "idx_tracking_ride_time", "ride_tracking", ["ride_id", "recorded_at", "id"]
    )

    # ── payments ──────────────────────────────────────────────────────
    op.create_table(
        "payments",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "ride_id",
            sa.Integer,
            sa.ForeignKey("rides.id"),
            unique=True,
            nullable=False,
        ),
        sa.Column("rider_external_id", sa.String(64), nullable=False),
        sa.Column("driver_external_id", sa.String(64), nullable=True),
        sa.Column("amount", MONEY, nullable=False),
        sa.Column(
            "payment_method",
            sa.Enum("CASH", "ONLINE", "WALLET", name="paymentmethod"),
            nullable=False,
        ),
        sa.Column("payment_gateway", sa.String(40), nullable=True),
        sa.Column("gateway_order_id", sa.String(255), nullable=True),
        sa.Column("transaction_id", sa.String(255), nullable=True),
        sa.Column("gateway_response", sa.Text, nullable=True),
        sa.Column(
            "payment_status",
            sa.Enum("PENDING", "SUCCESS", "FAILED", "REFUNDED", name="paymentstatus"),
            nullable=False,
            server_default="PENDING",
        ),
        *_timestamps(),
    )
    op.create_index("idx_payments_transaction", "payments", ["transaction_id"])
    op.create_index("idx_payments_order", "payments", ["gateway_order_id"])

    # ── driver_earnings ───────────────────────────────────────────────
    op.create_table(
        "driver_earnings",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("driver_id", sa.Integer, sa.ForeignKey("drivers.id"), nullable=False),
        sa.Column("ride_id", sa.Integer, sa.ForeignKey("rides.id"), nullable=False),
        sa.Column("gross_amount", MONEY, nullable=False),
        sa.Column("commission_rate", sa.Numeric(5, 2), nullable=False),
        sa.Column("commission_amount", MONEY, nullable=False),
        sa.Column("net_earnings", MONEY, nullable=False),
        sa.Column("incentive_amount", MONEY, server_default="0"),
        sa.Column("total_earnings", MONEY, nullable=False),
        sa.Column(
            "payout_status",
            sa.Enum("PENDING", "PAID", "HOLD", name="payoutstatus"),
            nullable=False,
            server_default="PENDING",
        ),
        sa.Column("payout_date", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(updated=False),
    )

    # ── ratings ───────────────────────────────────────────────────────
    op.create_table(
        "ratings",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "ride_id", sa.Integer, sa.ForeignKey("rides.id"), unique=True, nullable=False
        ),
        sa.Column("rider_id", sa.Integer, sa.ForeignKey("riders.id"), nullable=False),
        sa.Column("driver_id", sa.Integer, sa.ForeignKey("drivers.id"), nullable=False),
        sa.Column("user_rating", sa.SmallInteger, nullable=True),
        sa.Column("driver_rating", sa.SmallInteger, nullable=True),
        sa.Column("user_feedback", sa.Text, nullable=True),
        sa.Column("driver_feedback", sa.Text, nullable=True),
        *_timestamps(updated=False),
        sa.CheckConstraint(
            "user_rating IS NULL OR user_rating BETWEEN 1 AND 5",
            name="ck_ratings_user_range",
        ),
        sa.CheckConstraint(
            "driver_rating IS NULL OR driver_rating BETWEEN 1 AND 5",
            name="ck_ratings_driver_range",
        ),
    )


def downgrade() -> None:
    op.drop_table("ratings")
    op.drop_table("driver_earnings")
    op.drop_table("payments")
    op.drop_table("ride_tracking")
    op.drop_table("rides")
    op.drop_table("vehicles")
    op.drop_table("drivers")
    op.drop_table("riders")
    for enum_name in (
        "payoutstatus", "paymentstatus", "paymentmethod", "ridepaymentstatus",
        "ridestatus", "vehiclestatus", "vehicletype", "gender",
    ):
        op.execute(f"DROP TYPE IF EXISTS {enum_name}")
