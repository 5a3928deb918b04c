# booking_engine/state_machine.py
"""
Reservation lifecycle.

    pending -> payment_pending -> confirmed -> completed
    pending | payment_pending -> expired
    payment_pending -> failed
    confirmed -> cancelled
    confirmed | completed -> refunded
    confirmed -> partially_refunded -> refunded

Anything else is rejected with IllegalTransition and leaves the booking
untouched.
"""

import logging
from datetime import datetime
from typing import Dict, FrozenSet, Optional

from .config import Settings, get_settings
from .errors import IllegalTransition
from .events import BookingTransitioned
from .models import Booking
from .schemas import BookingStatus, PaymentStatus

logger = logging.getLogger(__name__)

S = BookingStatus

TRANSITIONS: Dict[BookingStatus, FrozenSet[BookingStatus]] = {
    S.pending: frozenset({S.payment_pending, S.expired}),
    S.payment_pending: frozenset({S.confirmed, S.expired, S.failed}),
    S.confirmed: frozenset({S.completed, S.cancelled, S.refunded, S.partially_refunded}),
    S.completed: frozenset({S.refunded}),
    S.partially_refunded: frozenset({S.refunded}),
}

TERMINAL: FrozenSet[BookingStatus] = frozenset(
    {S.completed, S.cancelled, S.expired, S.failed, S.refunded}
)

# payment_status follows the booking into these states
PAYMENT_STATUS_ON_ENTRY: Dict[BookingStatus, PaymentStatus] = {
    S.confirmed: PaymentStatus.succeeded,
    S.failed: PaymentStatus.failed,
    S.expired: PaymentStatus.failed,
    S.refunded: PaymentStatus.refunded,
    S.partially_refunded: PaymentStatus.partially_refunded,
}


class BookingStateMachine:
    INITIAL = S.pending

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    @staticmethod
    def allowed(from_status: BookingStatus) -> FrozenSet[BookingStatus]:
        return TRANSITIONS.get(from_status, frozenset())

    def can_transition(self, from_status: BookingStatus, to_status: BookingStatus) -> bool:
        return to_status in self.allowed(from_status)

    def initialize(self, booking: Booking, at: datetime) -> BookingTransitioned:
        booking.status = self.INITIAL.value
        booking.payment_status = PaymentStatus.pending.value
        booking.updated_at = at
        return BookingTransitioned(
            booking_id=booking.id,
            provider_id=booking.provider_id,
            from_status=None,
            to_status=self.INITIAL.value,
            occurred_at=at,
        )

    def transition(
        self,
        booking: Booking,
        to_status: BookingStatus,
        at: datetime,
        payment_confirmed: bool = False,
    ) -> BookingTransitioned:
        """Move ``booking`` to ``to_status``.

        Confirmation additionally requires ``payment_confirmed``: only an
        external payment event may mark a booking paid.

        Raises:
            IllegalTransition: the edge is not in the table. The booking
                is not modified.
        """
        current = BookingStatus(booking.status)

        if not self.can_transition(current, to_status):
            self.reject(booking, current, to_status, "transition not allowed")
        if to_status == S.confirmed and not payment_confirmed:
            self.reject(booking, current, to_status, "confirmation requires a payment event")

        booking.status = to_status.value
        payment_status = PAYMENT_STATUS_ON_ENTRY.get(to_status)
        if payment_status is not None:
            booking.payment_status = payment_status.value
        booking.updated_at = at

        logger.info("Booking %s: %s -> %s", booking.id, current.value, to_status.value)
        return BookingTransitioned(
            booking_id=booking.id,
            provider_id=booking.provider_id,
            from_status=current.value,
            to_status=to_status.value,
            occurred_at=at,
        )

    def reject(
        self,
        booking: Booking,
        current: BookingStatus,
        to_status: BookingStatus,
        reason: str,
    ) -> None:
        level = logging.WARNING if self.settings.is_production else logging.ERROR
        logger.log(
            level,
            "Illegal transition for booking %s: %s -> %s (%s)",
            booking.id,
            current.value,
            to_status.value,
            reason,
        )
        raise IllegalTransition(
            f"Cannot move booking from {current.value} to {to_status.value}",
            details={
                "booking_id": booking.id,
                "from": current.value,
                "to": to_status.value,
                "reason": reason,
                "allowed": sorted(s.value for s in self.allowed(current)),
            },
        )
