"""Pydantic request / response schemas for the REST API.

Wire names are camelCase (``clerkUserId``, ``pickupLatitude`` ...); the
Python side stays snake_case through alias generation.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer
from pydantic.alias_generators import to_camel

from ridehail.domain.enums import (
    Gender,
    PaymentMethod,
    PaymentStatus,
    RidePaymentStatus,
    RideStatus,
    VehicleStatus,
    VehicleType,
)

# Exact in Python, a JSON number on the wire
Money = Annotated[
    Decimal, PlainSerializer(float, return_type=float, when_used="json")
]


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# ── Requests ──────────────────────────────────────────────────────────


class RideCreateRequest(CamelModel):
    clerk_user_id: str = Field(..., min_length=1)
    pickup_latitude: float = Field(..., ge=-90, le=90)
    pickup_longitude: float = Field(..., ge=-180, le=180)
    drop_latitude: float = Field(..., ge=-90, le=90)
    drop_longitude: float = Field(..., ge=-180, le=180)
    vehicle_type: Optional[VehicleType] = None
    notes: Optional[str] = Field(None, max_length=2000)
    payment_mode: Optional[str] = Field(None, max_length=20)


class LocationUpdateRequest(CamelModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    is_online: bool


class TrackingUpdateRequest(CamelModel):
    ride_id: int
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class VehicleCreateRequest(CamelModel):
    clerk_driver_id: str = Field(..., min_length=1)
    vehicle_type: VehicleType
    vehicle_number: str = Field(..., min_length=1, max_length=32)
    vehicle_model: str = Field(..., min_length=1, max_length=80)
    vehicle_brand: str = Field(..., min_length=1, max_length=80)
    vehicle_color: str = Field(..., min_length=1, max_length=40)
    manufacturing_year: int = Field(..., ge=1950, le=2100)
    rc_number: str = Field(..., min_length=1, max_length=64)
    insurance_number: str = Field(..., min_length=1, max_length=64)
    insurance_expiry_date: date
    pollution_certificate_number: str = Field(..., min_length=1, max_length=64)
    pollution_expiry_date: date
    vehicle_status: VehicleStatus = VehicleStatus.ACTIVE


class GatewayOrderRequest(CamelModel):
    amount: Decimal = Field(..., gt=0)
    currency: str = "INR"
    receipt: str = "receipt#1"


class PaymentVerifyRequest(CamelModel):
    order_id: str = Field(..., min_length=1)
    payment_id: str = Field(..., min_length=1)
    signature: str


class RatingCreateRequest(CamelModel):
    user_rating: Optional[int] = Field(None, ge=1, le=5)
    driver_rating: Optional[int] = Field(None, ge=1, le=5)
    user_feedback: Optional[str] = Field(None, max_length=2000)
    driver_feedback: Optional[str] = Field(None, max_length=2000)


# ── Responses ─────────────────────────────────────────────────────────


class RiderResponse(CamelModel):
    id: int
    clerk_user_id: str = Field(validation_alias="external_id")
    email: Optional[str] = None
    phone_number: str
    first_name: str
    last_name: str
    user_type: str
    date_of_birth: Optional[date] = None
    gender: Optional[Gender] = None
    user_emergency_contact_name: Optional[str] = Field(
        None, validation_alias="emergency_contact_name"
    )
    user_emergency_contact_number: Optional[str] = Field(
        None, validation_alias="emergency_contact_number"
    )
    referral_code: Optional[str] = None
    referred_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class DriverResponse(CamelModel):
    id: int
    clerk_driver_id: str = Field(validation_alias="external_id")
    first_name: str
    last_name: str
    phone_number: str
    user_type: str
    referral_code: Optional[str] = None
    referred_by: Optional[str] = None
    is_online: bool
    current_latitude: Optional[float] = None
    current_longitude: Optional[float] = None
    last_location_update: Optional[datetime] = None


class VehicleResponse(CamelModel):
    id: int
    driver_id: int
    vehicle_type: VehicleType
    vehicle_number: str
    vehicle_model: str
    vehicle_brand: str
    vehicle_color: str
    manufacturing_year: int
    rc_number: str
    insurance_number: str
    insurance_expiry_date: date
    pollution_certificate_number: str
    pollution_expiry_date: date
    vehicle_status: VehicleStatus


class RideResponse(CamelModel):
    id: int
    clerk_user_id: str = Field(validation_alias="rider_external_id")
    clerk_driver_id: Optional[str] = Field(None, validation_alias="driver_external_id")
    pickup_latitude: float
    pickup_longitude: float
    drop_latitude: float
    drop_longitude: float
    vehicle_type: Optional[VehicleType] = None
    notes: Optional[str] = None
    status: RideStatus
    fare: Optional[Money] = None
    payment_status: RidePaymentStatus
    payment_mode: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class DistanceResponse(CamelModel):
    distance_km: float


class PaymentResponse(CamelModel):
    id: int
    ride_id: int
    clerk_user_id: str = Field(validation_alias="rider_external_id")
    clerk_driver_id: Optional[str] = Field(None, validation_alias="driver_external_id")
    amount: Money
    payment_method: PaymentMethod
    payment_gateway: Optional[str] = None
    transaction_id: Optional[str] = None
    gateway_response: Optional[str] = None
    payment_status: PaymentStatus
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class PaymentVerifyResponse(CamelModel):
    valid: bool
    payment: PaymentResponse


class RatingResponse(CamelModel):
    id: int
    ride_id: int
    user_rating: Optional[int] = None
    driver_rating: Optional[int] = None
    user_feedback: Optional[str] = None
    driver_feedback: Optional[str] = None
    created_at: Optional[datetime] = None


class HealthResponse(BaseModel):
    status: str = "ok"


class ErrorResponse(BaseModel):
    detail: str
    error: str

