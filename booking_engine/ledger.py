# booking_engine/ledger.py

from datetime import date, datetime, timedelta
from typing import Iterable, List, Optional

from sqlmodel import Session, select

from .errors import BookingNotFound
from .models import OCCUPYING_STATUSES, Booking, PaymentEvent

UNPAID_STATUSES = ("pending", "payment_pending")


class BookingLedger:
    """Query and write access to reservations.

    Writes go through ReservationManager only; everything here runs inside
    the caller's session and never commits.
    """

    def __init__(self, session: Session):
        self.session = session

    def get(self, booking_id: int) -> Booking:
        booking = self.session.get(Booking, booking_id)
        if booking is None:
            raise BookingNotFound("Booking not found", details={"booking_id": booking_id})
        return booking

    def occupying(self, provider_id: int, start: datetime, end: datetime) -> List[Booking]:
        """Bookings holding any part of ``[start, end)`` for the provider."""
        return list(
            self.session.exec(
                select(Booking)
                .where(Booking.provider_id == provider_id)
                .where(Booking.status.in_(OCCUPYING_STATUSES))
                .where(Booking.start_time < end)
                .where(Booking.end_time > start)
                .order_by(Booking.start_time)
            ).all()
        )

    def for_provider(
        self,
        provider_id: int,
        on_date: Optional[date] = None,
        statuses: Optional[Iterable[str]] = None,
    ) -> List[Booking]:
        stmt = select(Booking).where(Booking.provider_id == provider_id)
        if on_date is not None:
            day_start = datetime.combine(on_date, datetime.min.time())
            stmt = stmt.where(Booking.start_time >= day_start).where(
                Booking.start_time < day_start + timedelta(days=1)
            )
        if statuses is not None:
            stmt = stmt.where(Booking.status.in_(list(statuses)))
        return list(self.session.exec(stmt.order_by(Booking.start_time)).all())

    def for_client(self, client_id: int) -> List[Booking]:
        return list(
            self.session.exec(
                select(Booking)
                .where(Booking.client_id == client_id)
                .order_by(Booking.start_time)
            ).all()
        )

    def stale_unpaid(self, cutoff: datetime) -> List[Booking]:
        return list(
            self.session.exec(
                select(Booking)
                .where(Booking.status.in_(UNPAID_STATUSES))
                .where(Booking.created_at < cutoff)
                .order_by(Booking.provider_id, Booking.created_at)
            ).all()
        )

    def add(self, booking: Booking) -> Booking:
        self.session.add(booking)
        self.session.flush()
        return booking

    def payment_event(self, external_ref: str, kind: str) -> Optional[PaymentEvent]:
        return self.session.exec(
            select(PaymentEvent)
            .where(PaymentEvent.external_ref == external_ref)
            .where(PaymentEvent.kind == kind)
        ).first()

    def record_payment_event(
        self,
        booking: Booking,
        external_ref: str,
        kind: str,
        succeeded: bool = True,
        amount: Optional[int] = None,
        at: Optional[datetime] = None,
    ) -> PaymentEvent:
        event = PaymentEvent(
            external_ref=external_ref,
            booking_id=booking.id,
            kind=kind,
            succeeded=succeeded,
            amount=amount,
            received_at=at or datetime.now(),
        )
        self.session.add(event)
        return event
