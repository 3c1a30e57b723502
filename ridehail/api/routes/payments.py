"""
Payment endpoints
=================

POST /payments/createOrder              -- raw gateway order
POST /payments/createForRide/{rideId}   -- gateway order for a completed ride
GET  /payments/byRide/{rideId}          -- the ride's payment
POST /payments/verify                   -- checkout callback (signature check)
POST /payments/webhook                  -- gateway webhooks, always acknowledged
"""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, Header, Request

from ridehail.api.dependencies import get_payment_service
from ridehail.api.middleware import limiter
from ridehail.api.schemas import (
    ErrorResponse,
    GatewayOrderRequest,
    PaymentResponse,
    PaymentVerifyRequest,
    PaymentVerifyResponse,
)
from ridehail.config import settings
from ridehail.services.payments import PaymentService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["payments"])


@router.post(
    "/createOrder",
    summary="Create a bare gateway order",
    responses={502: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit)
async def create_order(
    request: Request,
    body: GatewayOrderRequest,
    service: PaymentService = Depends(get_payment_service),
) -> dict[str, Any]:
    return await service.create_order(body.amount, body.currency, body.receipt)


@router.post(
    "/createForRide/{ride_id}",
    response_model=PaymentResponse,
    summary="Open a gateway order for a completed ride",
    responses={
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse, "description": "Already paid"},
        502: {"model": ErrorResponse},
    },
)
@limiter.limit(settings.rate_limit)
async def create_for_ride(
    request: Request,
    ride_id: int,
    service: PaymentService = Depends(get_payment_service),
):
    return await service.create_for_ride(ride_id)


@router.get("/byRide/{ride_id}", response_model=PaymentResponse)
@limiter.limit(settings.rate_limit)
async def get_by_ride(
    request: Request,
    ride_id: int,
    service: PaymentService = Depends(get_payment_service),
):
    return await service.get_by_ride(ride_id)


@router.post(
    "/verify",
    response_model=PaymentVerifyResponse,
    summary="Verify a checkout callback",
    description=(
        "A signature mismatch is not an error: the response carries "
        "``valid: false`` and the pending payment is marked failed."
    ),
)
@limiter.limit(settings.rate_limit)
async def verify_payment(
    request: Request,
    body: PaymentVerifyRequest,
    service: PaymentService = Depends(get_payment_service),
):
    valid, payment = await service.verify_and_apply(
        body.order_id, body.payment_id, body.signature
    )
    return PaymentVerifyResponse(
        valid=valid, payment=PaymentResponse.model_validate(payment)
    )


@router.post("/webhook", summary="Gateway webhook receiver")
async def webhook(
    request: Request,
    x_razorpay_signature: Optional[str] = Header(None),
    service: PaymentService = Depends(get_payment_service),
) -> dict[str, str]:
    body = await request.body()
    await service.handle_webhook(body, x_razorpay_signature)
    return {"status": "received"}
