"""
Payment State Machine
=====================

    PENDING --valid signature--> SUCCESS --refund webhook--> REFUNDED
       |  \\
       |   +--tampered signature--> FAILED
       +--re-issued order--> PENDING

Order creation for a ride runs under a per-ride Redis lock so two
concurrent callers cannot open two gateway orders.  Callback handling
reads the payment row ``FOR UPDATE``; duplicate callbacks serialise on
that row and converge on the same terminal status.
"""

from __future__ import annotations

import json
import logging
from decimal import Decimal
from typing import Any, Optional

import redis.asyncio as aioredis
from sqlalchemy.ext.asyncio import AsyncSession

from ridehail.config import settings
from ridehail.domain.enums import (
    PaymentMethod,
    PaymentStatus,
    RidePaymentStatus,
    RideStatus,
)
from ridehail.domain.exceptions import (
    AlreadyPaidError,
    InvalidInputError,
    InvalidStateError,
    NotFoundError,
)
from ridehail.domain.transitions import ensure_payment_transition, is_settled
from ridehail.infrastructure.locks import DistributedLock
from ridehail.infrastructure.models import PaymentModel
from ridehail.infrastructure.payment_gateway import GATEWAY_LABEL, RazorpayClient
from ridehail.infrastructure.repositories import PaymentRepository, RideRepository

logger = logging.getLogger(__name__)

REFUND_EVENT = "refund.processed"


class PaymentService:
    def __init__(
        self,
        session: AsyncSession,
        gateway: RazorpayClient,
        redis: Optional[aioredis.Redis] = None,
    ):
        self.session = session
        self.gateway = gateway
        self.redis = redis
        self.payments = PaymentRepository(session)
        self.rides = RideRepository(session)

    async def create_order(
        self, amount: Decimal, currency: str = "INR", receipt: str = "receipt#1"
    ) -> dict[str, Any]:
        """Bare gateway order, not tied to any ride."""
        return await self.gateway.create_order(amount, currency, receipt)

    async def get_by_ride(self, ride_id: int) -> PaymentModel:
        payment = await self.payments.get_by_ride_id(ride_id)
        if payment is None:
            raise NotFoundError("Payment not found")
        return payment

    async def create_for_ride(self, ride_id: int) -> PaymentModel:
        if self.redis is None:
            return await self._create_for_ride(ride_id)
        async with DistributedLock.for_ride_payment(self.redis, ride_id):
            return await self._create_for_ride(ride_id)

    async def _create_for_ride(self, ride_id: int) -> PaymentModel:
        ride = await self.rides.get_by_id(ride_id)
        if ride is None:
            raise NotFoundError("Ride not found")
        if RidePaymentStatus(ride.payment_status) == RidePaymentStatus.PAID:
            raise AlreadyPaidError()
        if RideStatus(ride.status) != RideStatus.COMPLETED:
            raise InvalidStateError("Payment can only be created for a completed ride")
        if ride.fare is None:
            raise InvalidInputError("Ride has no fare")

        payment = await self.payments.get_by_ride_id(ride_id)
        if payment is not None:
            current = PaymentStatus(payment.payment_status)
            if is_settled(current):
                raise AlreadyPaidError()
            ensure_payment_transition(current, PaymentStatus.PENDING)

        order = await self.gateway.create_order(
            ride.fare, settings.currency, f"ride-{ride_id}"
        )
        order_id = str(order["id"])

        if payment is None:
            payment = PaymentModel(
                ride_id=ride_id,
                rider_external_id=ride.rider_external_id,
                driver_external_id=ride.driver_external_id,
                amount=ride.fare,
                payment_method=PaymentMethod.ONLINE,
                payment_gateway=GATEWAY_LABEL,
                payment_status=PaymentStatus.PENDING,
            )
            await self.payments.create(payment)
        payment.gateway_order_id = order_id
        payment.transaction_id = order_id
        payment.gateway_response = json.dumps(order)
        await self.session.commit()

        logger.info(
            "Payment %s for ride %s: order %s (%s %s)",
            payment.id, ride_id, order_id, ride.fare, settings.currency,
        )
        return payment

    async def verify_and_apply(
        self, order_id: str, payment_id: str, signature: Optional[str]
    ) -> tuple[bool, PaymentModel]:
        """
        Check the checkout callback signature and settle the payment.

        Returns ``(valid, payment)``.  A mismatch on a pending payment is
        recorded as ``FAILED``; settled payments are never downgraded.
        """
        valid = self.gateway.verify_payment_signature(order_id, payment_id, signature)

        payment = await self.payments.get_by_order_for_update(order_id)
        if payment is None:
            await self.session.rollback()
            raise NotFoundError("Payment not found")

        current = PaymentStatus(payment.payment_status)
        if current == PaymentStatus.PENDING:
            new_status = PaymentStatus.SUCCESS if valid else PaymentStatus.FAILED
            ensure_payment_transition(current, new_status)
            payment.payment_status = new_status
            if valid:
                payment.transaction_id = payment_id
                ride = await self.rides.get_by_id(payment.ride_id)
                if ride is not None:
                    ride.payment_status = RidePaymentStatus.PAID
            await self.session.commit()
            logger.info(
                "Payment %s for order %s -> %s",
                payment.id, order_id, payment.payment_status.value,
            )
        elif current == PaymentStatus.FAILED and valid:
            await self.session.rollback()
            raise InvalidStateError("Payment already failed")
        else:
            # replayed callback on a settled row; commit only releases the row lock
            await self.session.commit()
            if not valid:
                logger.warning(
                    "Rejected signature for settled payment %s (order %s)",
                    payment.id, order_id,
                )
        return valid, payment

    async def mark_refunded(self, transaction_id: str) -> Optional[PaymentModel]:
        payment = await self.payments.get_by_transaction_id(transaction_id)
        if payment is None:
            await self.session.rollback()
            logger.warning("Refund for unknown transaction %s", transaction_id)
            return None
        ensure_payment_transition(payment.payment_status, PaymentStatus.REFUNDED)
        payment.payment_status = PaymentStatus.REFUNDED
        await self.session.commit()
        logger.info("Payment %s refunded", payment.id)
        return payment

    async def handle_webhook(self, body: bytes, signature: Optional[str]) -> None:
        """
        Apply gateway webhooks we understand; everything else is only
        logged.  The endpoint acknowledges regardless so the gateway
        stops retrying.
        """
        if not self.gateway.verify_webhook_signature(body, signature):
            logger.warning("Ignoring webhook with a missing or bad signature")
            return
        try:
            event = json.loads(body)
        except ValueError:
            logger.warning("Ignoring webhook with a non-JSON body")
            return

        event_type = event.get("event") if isinstance(event, dict) else None
        if event_type != REFUND_EVENT:
            logger.info("Webhook %s received", event_type)
            return

        transaction_id = _dig(event, "payload", "refund", "entity", "payment_id")
        if not transaction_id:
            logger.warning("Refund webhook without a payment id")
            return
        try:
            await self.mark_refunded(transaction_id)
        except InvalidStateError as exc:
            await self.session.rollback()
            logger.warning("Refund for %s not applied: %s", transaction_id, exc)


def _dig(document: Any, *path: str) -> Any:
    for key in path:
        if not isinstance(document, dict):
            return None
        document = document.get(key)
    return document
