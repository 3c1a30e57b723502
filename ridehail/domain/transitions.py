"""
Status state machines.

Rides move PENDING -> ACCEPTED -> STARTED -> COMPLETED, or to CANCELLED
before the trip starts.  Payments move PENDING -> SUCCESS | FAILED and
SUCCESS -> REFUNDED; terminal statuses never move backwards.  The
tables live in ``ridehail.domain.enums``; the services check every
status change here before issuing their conditional UPDATE.
"""

from __future__ import annotations

from .enums import PAYMENT_TRANSITIONS, RIDE_TRANSITIONS, PaymentStatus, RideStatus
from .exceptions import InvalidStateError


class InvalidStateTransition(InvalidStateError):
    """Raised when a status change violates a state machine."""


def can_transition_ride(current: RideStatus, new: RideStatus) -> bool:
    return new in RIDE_TRANSITIONS.get(RideStatus(current), set())


def ensure_ride_transition(current: RideStatus, new: RideStatus) -> None:
    if not can_transition_ride(current, new):
        raise InvalidStateTransition(
            f"Cannot transition ride from {RideStatus(current).value} to {new.value}"
        )


def ensure_payment_transition(current: PaymentStatus, new: PaymentStatus) -> None:
    allowed = PAYMENT_TRANSITIONS.get(PaymentStatus(current), set())
    if new not in allowed:
        raise InvalidStateTransition(
            f"Cannot transition payment from {PaymentStatus(current).value} "
            f"to {new.value}"
        )


def is_settled(status: PaymentStatus) -> bool:
    """Money has moved; the payment can no longer be re-issued."""
    return PaymentStatus(status) in (PaymentStatus.SUCCESS, PaymentStatus.REFUNDED)
