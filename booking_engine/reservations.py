# booking_engine/reservations.py
"""
Reservation orchestration.

Slot listings are advisory. The authoritative overlap check happens in
``reserve`` while holding the provider's lock, in the same transaction
that inserts the booking. A partial unique index on
(provider_id, start_time) backs this up at the storage layer.
"""

import logging
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional, Sequence

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlmodel import Session, select

from .availability import AvailabilityStore
from .config import Settings, get_settings
from .context import RequestContext
from .core import add_minutes, minutes_between
from .errors import (
    AddonNotFound,
    IllegalTransition,
    InvalidDuration,
    PaymentFailed,
    ProviderClosed,
    ProviderNotFound,
    ServiceNotFound,
    SlotUnavailable,
    ValidationError,
)
from .events import BookingTransitioned, EventBus, booking_events
from .fees import FeeCalculator
from .ledger import UNPAID_STATUSES, BookingLedger
from .locks import ProviderLocks, provider_locks
from .models import Booking, Provider, Service, ServiceAddon
from .retry import RetryPolicy, retry_call
from .schemas import BookingStatus, PaymentMode
from .state_machine import TERMINAL, BookingStateMachine

logger = logging.getLogger(__name__)


class ReservationManager:
    def __init__(
        self,
        session: Session,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = datetime.now,
        events: EventBus = booking_events,
        locks: ProviderLocks = provider_locks,
        fees: Optional[FeeCalculator] = None,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        self.session = session
        self.settings = settings or get_settings()
        self.clock = clock
        self.events = events
        self.locks = locks
        self.fees = fees or FeeCalculator.from_settings(self.settings)
        self.retry_policy = retry_policy or RetryPolicy.from_settings(self.settings)
        self.availability = AvailabilityStore(session)
        self.ledger = BookingLedger(session)
        self.machine = BookingStateMachine(self.settings)

    # ------------------------------------------------------------------
    # Claiming a slot
    # ------------------------------------------------------------------

    def reserve(
        self,
        provider_id: int,
        service_id: int,
        start_time: datetime,
        ctx: RequestContext,
        payment_mode: PaymentMode = PaymentMode.full,
        notes: Optional[str] = None,
        addon_ids: Optional[Sequence[int]] = None,
    ) -> Booking:
        """Claim ``start_time`` for the service, or raise SlotUnavailable.

        Losing a race for the same interval raises SlotUnavailable; exactly
        one of two overlapping concurrent calls succeeds.
        """
        # 1) Provider and service; snapshot duration/price
        provider = self.session.get(Provider, provider_id)
        if provider is None:
            raise ProviderNotFound("Provider not found", details={"provider_id": provider_id})

        service = self.session.get(Service, service_id)
        if service is None or service.provider_id != provider_id or not service.is_active:
            raise ServiceNotFound(
                "Service not available",
                details={"provider_id": provider_id, "service_id": service_id},
            )
        duration = service.duration_minutes
        price = service.price
        if duration <= 0:
            raise InvalidDuration(
                "Service duration must be positive", details={"service_id": service_id}
            )

        addons = self._addons_for(provider_id, addon_ids or ())
        addon_total = sum(addon.price for addon in addons)

        # 2) Who is booking
        if ctx.client_id is None and ctx.guest is None:
            raise ValidationError("Guest contact details are required without an account")

        # 3) Re-derive the opening window and check containment
        start = self._normalize_start(start_time)
        end = add_minutes(start, duration)
        self._check_within_hours(provider_id, start, end)

        # 4) Expected charge
        fees = self.fees.compute(
            price, payment_mode, fee_exempt=provider.is_developer, addon_total=addon_total
        )

        guest = ctx.guest if ctx.client_id is None else None
        now = self.clock()
        booking = Booking(
            provider_id=provider_id,
            service_id=service_id,
            client_id=ctx.client_id,
            guest_name=guest.name if guest else None,
            guest_email=str(guest.email) if guest else None,
            guest_phone=guest.phone if guest else None,
            start_time=start,
            end_time=end,
            duration_minutes=duration,
            price=price,
            addon_total=addon_total,
            addon_ids=",".join(str(addon.id) for addon in addons) or None,
            payment_mode=PaymentMode(payment_mode).value,
            charge_total=fees.total,
            deposit_amount=fees.deposit_amount,
            platform_fee=fees.platform_fee,
            provider_payout=fees.provider_payout,
            due_at_service=fees.due_at_service,
            notes=notes,
            created_at=now,
            updated_at=now,
        )

        # 5) Atomic check-and-insert
        with self.locks.hold(provider_id):
            event = retry_call(
                self.retry_policy,
                lambda: self._claim(booking, now),
                retry_on=(OperationalError,),
            )

        self.session.refresh(booking)
        logger.info(
            "Reserved booking %s for provider %s at %s (%s, charge %s)",
            booking.id,
            provider_id,
            start.isoformat(),
            booking.payment_mode,
            booking.charge_total,
        )
        self.events.publish(event)
        return booking

    def _addons_for(self, provider_id: int, addon_ids: Sequence[int]) -> List[ServiceAddon]:
        addons: List[ServiceAddon] = []
        for addon_id in dict.fromkeys(addon_ids):
            addon = self.session.get(ServiceAddon, addon_id)
            if addon is None or addon.provider_id != provider_id or not addon.is_active:
                raise AddonNotFound(
                    "Add-on not available",
                    details={"provider_id": provider_id, "addon_id": addon_id},
                )
            addons.append(addon)
        return addons

    @staticmethod
    def _normalize_start(start_time: datetime) -> datetime:
        if start_time.second or start_time.microsecond:
            raise ValidationError(
                "Start time must be on a whole minute",
                details={"start_time": start_time.isoformat()},
            )
        if start_time.tzinfo is not None:
            # wall-clock local time, like every stored booking
            start_time = start_time.astimezone().replace(tzinfo=None)
        return start_time

    def _check_within_hours(self, provider_id: int, start: datetime, end: datetime) -> None:
        now = self.clock()
        if start < now:
            raise SlotUnavailable(
                "Cannot book an appointment in the past", details={"start_time": start.isoformat()}
            )

        window = self.availability.effective_window(provider_id, start.date())
        if window is None:
            raise ProviderClosed(
                "Provider is closed that day",
                details={"provider_id": provider_id, "date": start.date().isoformat()},
            )
        if start < window.start or end > window.end:
            raise SlotUnavailable(
                "Appointment must be within working hours",
                details={
                    "window_start": window.start.isoformat(),
                    "window_end": window.end.isoformat(),
                },
            )

        step = self.settings.slot_granularity_minutes
        if self.settings.enforce_slot_alignment and minutes_between(window.start, start) % step != 0:
            raise SlotUnavailable(
                f"Start time must be in {step}-minute increments",
                details={"granularity_minutes": step},
            )

    def _claim(self, booking: Booking, now: datetime) -> BookingTransitioned:
        try:
            # row lock on the provider where the database supports it
            self.session.exec(
                select(Provider).where(Provider.id == booking.provider_id).with_for_update()
            ).first()

            clash = self.ledger.occupying(booking.provider_id, booking.start_time, booking.end_time)
            if clash:
                held_by = clash[0].id
                self.session.rollback()
                logger.info(
                    "Slot %s for provider %s already held by booking %s",
                    booking.start_time.isoformat(),
                    booking.provider_id,
                    held_by,
                )
                raise SlotUnavailable(
                    "Appointment overlaps an existing appointment",
                    details={"start_time": booking.start_time.isoformat()},
                )

            self.ledger.add(booking)
            event = self.machine.initialize(booking, now)
            self.session.commit()
            return event
        except IntegrityError:
            self.session.rollback()
            logger.info("Unique start constraint rejected booking for provider %s", booking.provider_id)
            raise SlotUnavailable(
                "Appointment already exists for that start time",
                details={"start_time": booking.start_time.isoformat()},
            )
        except OperationalError:
            self.session.rollback()
            raise

    # ------------------------------------------------------------------
    # Payment lifecycle
    # ------------------------------------------------------------------

    def begin_payment(self, booking_id: int, external_ref: Optional[str] = None) -> Booking:
        """Charge initiated by the payment collaborator: pending -> payment_pending."""
        booking = self.ledger.get(booking_id)
        with self.locks.hold(booking.provider_id):
            self.session.refresh(booking)
            if booking.status == BookingStatus.payment_pending.value:
                return booking
            event = self.machine.transition(booking, BookingStatus.payment_pending, self.clock())
            if external_ref:
                booking.external_payment_ref = external_ref
            self._commit(booking)
        self.events.publish(event)
        return booking

    def confirm_payment(
        self,
        booking_id: int,
        succeeded: bool,
        external_ref: Optional[str] = None,
    ) -> Booking:
        """Apply the payment processor's verdict.

        Replays of the same ``external_ref``, repeats of an already
        applied outcome and failures reported for a booking that has
        already ended return the booking unchanged.
        """
        booking = self.ledger.get(booking_id)
        transitions: List[BookingTransitioned] = []

        with self.locks.hold(booking.provider_id):
            self.session.refresh(booking)
            now = self.clock()

            if external_ref and self.ledger.payment_event(external_ref, "charge") is not None:
                logger.info("Ignoring replayed payment event %s for booking %s", external_ref, booking_id)
                return booking

            outcome = BookingStatus.confirmed if succeeded else BookingStatus.failed
            if booking.status == outcome.value:
                logger.info("Booking %s already %s", booking_id, outcome.value)
                if external_ref:
                    self.ledger.record_payment_event(
                        booking, external_ref, "charge", succeeded, booking.charge_total, at=now
                    )
                    self._commit(booking)
                return booking

            if not succeeded and BookingStatus(booking.status) in TERMINAL:
                # nothing left to fail; acknowledge so the processor stops retrying
                logger.info(
                    "Recording late payment failure for %s booking %s", booking.status, booking_id
                )
                if external_ref:
                    self.ledger.record_payment_event(
                        booking, external_ref, "charge", False, booking.charge_total, at=now
                    )
                    self._commit(booking)
                return booking

            try:
                if booking.status == BookingStatus.pending.value:
                    transitions.append(
                        self.machine.transition(booking, BookingStatus.payment_pending, now)
                    )
                transitions.append(
                    self.machine.transition(booking, outcome, now, payment_confirmed=succeeded)
                )
            except IllegalTransition:
                self.session.rollback()
                raise

            if external_ref:
                booking.external_payment_ref = external_ref
                self.ledger.record_payment_event(
                    booking, external_ref, "charge", succeeded, booking.charge_total, at=now
                )
            self._commit(booking)

        if not succeeded:
            logger.warning("Payment failed for booking %s", booking_id)
        for event in transitions:
            self.events.publish(event)
        return booking

    def payment_status(self, booking_id: int) -> Booking:
        """Booking for a client polling its payment; raises when payment failed."""
        booking = self.ledger.get(booking_id)
        if booking.status == BookingStatus.failed.value:
            raise PaymentFailed(
                "Payment failed. Please choose a slot and try again.",
                details={"booking_id": booking_id},
            )
        return booking

    def refund(self, booking_id: int, amount: int, external_ref: str) -> Booking:
        """Record a refund reported by the payment processor."""
        if amount <= 0:
            raise ValidationError("Refund amount must be positive", details={"amount": amount})

        booking = self.ledger.get(booking_id)
        event: Optional[BookingTransitioned] = None

        with self.locks.hold(booking.provider_id):
            self.session.refresh(booking)
            if self.ledger.payment_event(external_ref, "refund") is not None:
                logger.info("Ignoring replayed refund %s for booking %s", external_ref, booking_id)
                return booking

            refunded = booking.refunded_amount + amount
            target = (
                BookingStatus.refunded
                if refunded >= booking.charge_total
                else BookingStatus.partially_refunded
            )
            now = self.clock()
            if booking.status != target.value:
                try:
                    event = self.machine.transition(booking, target, now)
                except IllegalTransition:
                    self.session.rollback()
                    raise

            booking.refunded_amount = min(refunded, booking.charge_total)
            booking.updated_at = now
            self.ledger.record_payment_event(booking, external_ref, "refund", True, amount, at=now)
            self._commit(booking)

        if event is not None:
            self.events.publish(event)
        return booking

    # ------------------------------------------------------------------
    # Provider / client actions
    # ------------------------------------------------------------------

    def cancel(self, booking_id: int) -> Booking:
        return self._simple_transition(booking_id, BookingStatus.cancelled)

    def complete(self, booking_id: int) -> Booking:
        booking = self.ledger.get(booking_id)
        if self.clock() < booking.end_time:
            self.machine.reject(
                booking,
                BookingStatus(booking.status),
                BookingStatus.completed,
                "service time has not passed",
            )
        return self._simple_transition(booking_id, BookingStatus.completed)

    def _simple_transition(self, booking_id: int, target: BookingStatus) -> Booking:
        booking = self.ledger.get(booking_id)
        with self.locks.hold(booking.provider_id):
            self.session.refresh(booking)
            event = self.machine.transition(booking, target, self.clock())
            self._commit(booking)
        self.events.publish(event)
        return booking

    # ------------------------------------------------------------------
    # Sweep
    # ------------------------------------------------------------------

    def expire_stale(self) -> List[int]:
        """Expire unpaid bookings older than the expiry window.

        Returns the ids that were expired; their intervals are free again.
        """
        now = self.clock()
        cutoff = now - timedelta(minutes=self.settings.pending_expiry_minutes)

        by_provider: Dict[int, List[int]] = {}
        for booking in self.ledger.stale_unpaid(cutoff):
            by_provider.setdefault(booking.provider_id, []).append(booking.id)

        expired: List[int] = []
        transitions: List[BookingTransitioned] = []
        for provider_id, booking_ids in by_provider.items():
            with self.locks.hold(provider_id):
                for booking_id in booking_ids:
                    booking = self.ledger.get(booking_id)
                    self.session.refresh(booking)
                    # payment may have landed since the query
                    if booking.status not in UNPAID_STATUSES:
                        continue
                    transitions.append(self.machine.transition(booking, BookingStatus.expired, now))
                    expired.append(booking_id)
                self.session.commit()

        if expired:
            logger.info("Expired %d unpaid bookings: %s", len(expired), expired)
        for event in transitions:
            self.events.publish(event)
        return expired

    def _commit(self, booking: Booking) -> None:
        self.session.add(booking)
        self.session.commit()
        self.session.refresh(booking)
