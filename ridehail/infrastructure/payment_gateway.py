"""
Razorpay gateway client.

* ``create_order`` -- POST ``/orders`` with HTTP basic auth; the amount
  goes over the wire in paise (x100, truncated).
* ``verify_payment_signature`` -- checkout callback check,
  ``hex(HMAC_SHA256(key_secret, order_id + "|" + payment_id))``.
* ``verify_webhook_signature`` -- webhook check,
  ``hex(HMAC_SHA256(webhook_secret, raw_body))``.

Both signature checks compare with ``hmac.compare_digest``.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
from decimal import Decimal
from typing import Any, Optional

import httpx

from ridehail.domain.exceptions import GatewayError

logger = logging.getLogger(__name__)

GATEWAY_LABEL = "Razorpay"


def to_minor_units(amount: Decimal) -> int:
    return int(Decimal(amount) * 100)


def _hex_hmac(secret: str, message: bytes) -> str:
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def _matches(expected: str, received: Optional[str]) -> bool:
    if not received:
        return False
    return hmac.compare_digest(expected.encode("utf-8"), received.encode("utf-8"))


class RazorpayClient:
    def __init__(
        self,
        client: httpx.AsyncClient,
        key_id: str,
        key_secret: str,
        base_url: str = "https://api.razorpay.com/v1",
        webhook_secret: str = "",
    ):
        self.client = client
        self.key_id = key_id
        self.key_secret = key_secret
        self.base_url = base_url.rstrip("/")
        self.webhook_secret = webhook_secret

    async def create_order(
        self, amount: Decimal, currency: str, receipt: str
    ) -> dict[str, Any]:
        body = {
            "amount": to_minor_units(amount),
            "currency": currency,
            "receipt": receipt,
            "payment_capture": 1,
        }
        try:
            response = await self.client.post(
                f"{self.base_url}/orders",
                json=body,
                auth=(self.key_id, self.key_secret),
            )
        except httpx.HTTPError as exc:
            logger.error("Gateway order request failed: %s", exc)
            raise GatewayError(f"Payment gateway unreachable: {exc}") from exc

        if not response.is_success:
            logger.error(
                "Gateway rejected order %s: HTTP %d %s",
                receipt, response.status_code, response.text[:500],
            )
            raise GatewayError(
                f"Failed to create gateway order: HTTP {response.status_code}"
            )

        try:
            order = response.json()
        except ValueError as exc:
            raise GatewayError("Gateway returned a non-JSON body") from exc
        if not isinstance(order, dict) or not order.get("id"):
            raise GatewayError("Gateway order response has no id")
        return order

    def verify_payment_signature(
        self, order_id: str, payment_id: str, signature: Optional[str]
    ) -> bool:
        expected = _hex_hmac(
            self.key_secret, f"{order_id}|{payment_id}".encode("utf-8")
        )
        return _matches(expected, signature)

    def verify_webhook_signature(self, body: bytes, signature: Optional[str]) -> bool:
        if not self.webhook_secret:
            return False
        return _matches(_hex_hmac(self.webhook_secret, body), signature)
