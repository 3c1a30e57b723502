"""
Fare Calculator  (Strategy Pattern)
===================================

Formula
-------
Fare = Base_Fare + Distance x Rate_Per_KM

* **Quoted fare**: distance is the straight pickup -> drop great circle,
  computed when the ride is requested.
* **Final fare**: distance is the tracked polyline, computed when the
  ride completes.

Amounts are ``Decimal`` with two fractional digits, rounded half-up.

Complexity: O(1) per price calculation.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from decimal import ROUND_HALF_UP, Decimal

from .distance import haversine_km

CENT = Decimal("0.01")


def to_money(value: Decimal | float | int | str) -> Decimal:
    """Quantize *value* to two decimal places."""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


# ── Strategy hierarchy ────────────────────────────────────────────────


class PricingStrategy(ABC):
    @abstractmethod
    def calculate(
        self, distance_km: Decimal, base_fare: Decimal, rate_per_km: Decimal
    ) -> Decimal: ...


class StandardPricing(PricingStrategy):
    def calculate(
        self, distance_km: Decimal, base_fare: Decimal, rate_per_km: Decimal
    ) -> Decimal:
        return to_money(base_fare + distance_km * rate_per_km)


# ── Calculator facade ─────────────────────────────────────────────────


class FareCalculator:
    """High-level API used by the ride state machine."""

    def __init__(
        self,
        base_fare: float | Decimal = 25,
        rate_per_km: float | Decimal = 8,
        strategy: PricingStrategy | None = None,
    ):
        self.base_fare = Decimal(str(base_fare))
        self.rate_per_km = Decimal(str(rate_per_km))
        self.strategy = strategy or StandardPricing()

    def fare_for_distance(self, distance_km: float | Decimal) -> Decimal:
        if distance_km < 0:
            raise ValueError("distance must be non-negative")
        return self.strategy.calculate(
            Decimal(str(distance_km)), self.base_fare, self.rate_per_km
        )

    def quote(
        self,
        pickup_lat: float,
        pickup_lng: float,
        drop_lat: float,
        drop_lng: float,
    ) -> Decimal:
        distance = haversine_km(pickup_lat, pickup_lng, drop_lat, drop_lng)
        return self.fare_for_distance(distance)
