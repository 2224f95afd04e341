"""
Domain entities with business logic.

Patterns used
-------------
- **State Pattern** on bookings: ``BookingLifecycle`` enforces valid
  lifecycle transitions
  (PENDING -> CONFIRMED -> ASSIGNED -> IN_PROGRESS -> COMPLETED | CANCELLED)
  and the payment sub-lifecycle.  The ORM model mixes it in, so the same
  rules apply to persisted bookings.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from .enums import (
    BOOKING_TRANSITIONS,
    PAYMENT_TRANSITIONS,
    BookingStatus,
    PaymentStatus,
)


class InvalidStateTransition(Exception):
    """Raised when a booking or payment status change violates the state machine."""


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ── Value Object ──────────────────────────────────────────────────────


@dataclass(frozen=True)
class Location:
    latitude: float
    longitude: float


# ── Entities ──────────────────────────────────────────────────────────


class BookingLifecycle:
    """Status rules shared by anything that looks like a booking.

    Expects ``status``, ``payment_status``, ``driver_id``, ``assigned_at``,
    ``completed_at`` and ``cancelled_at`` attributes on the host class.
    """

    def can_transition_to(self, new_status: BookingStatus) -> bool:
        return new_status in BOOKING_TRANSITIONS.get(BookingStatus(self.status), set())

    def transition_to(
        self, new_status: BookingStatus, at: Optional[datetime] = None
    ) -> BookingStatus:
        """Move to *new_status* if the transition is legal, else raise.

        Returns the previous status.
        """
        old = BookingStatus(self.status)
        if not self.can_transition_to(new_status):
            raise InvalidStateTransition(
                f"Cannot transition from {old.value} to {new_status.value}"
            )
        at = at or utcnow()
        self.status = new_status
        if new_status == BookingStatus.COMPLETED:
            self.completed_at = at
        elif new_status == BookingStatus.CANCELLED:
            self.cancelled_at = at
        return old

    def set_payment_status(
        self, new_status: PaymentStatus, at: Optional[datetime] = None
    ) -> PaymentStatus:
        """Change the payment status; a paid PENDING booking is confirmed."""
        old = PaymentStatus(self.payment_status)
        if old == new_status:
            return old
        if new_status not in PAYMENT_TRANSITIONS.get(old, set()):
            raise InvalidStateTransition(
                f"Cannot change payment from {old.value} to {new_status.value}"
            )
        self.payment_status = new_status
        if (
            new_status == PaymentStatus.PAID
            and BookingStatus(self.status) == BookingStatus.PENDING
        ):
            self.transition_to(BookingStatus.CONFIRMED, at)
        return old

    def assign_driver(self, driver_id: int, at: Optional[datetime] = None) -> None:
        """Attach a driver; re-assignment is allowed while ASSIGNED."""
        current = BookingStatus(self.status)
        if current != BookingStatus.ASSIGNED:
            self.transition_to(BookingStatus.ASSIGNED, at)
        self.driver_id = driver_id
        self.assigned_at = at or utcnow()
