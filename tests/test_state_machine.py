"""Booking lifecycle transition table."""

from datetime import datetime

import pytest

from booking_engine.errors import IllegalTransition
from booking_engine.models import Booking
from booking_engine.schemas import BookingStatus, PaymentStatus
from booking_engine.state_machine import TERMINAL, BookingStateMachine

S = BookingStatus
WHEN = datetime(2030, 1, 7, 9, 0)

LEGAL = [
    (S.pending, S.payment_pending),
    (S.pending, S.expired),
    (S.payment_pending, S.confirmed),
    (S.payment_pending, S.expired),
    (S.payment_pending, S.failed),
    (S.confirmed, S.completed),
    (S.confirmed, S.cancelled),
    (S.confirmed, S.refunded),
    (S.confirmed, S.partially_refunded),
    (S.completed, S.refunded),
    (S.partially_refunded, S.refunded),
]


def booking_in(status: BookingStatus, payment_status: str = "pending") -> Booking:
    return Booking(
        id=1,
        provider_id=1,
        service_id=1,
        start_time=WHEN,
        end_time=WHEN,
        duration_minutes=30,
        price=5000,
        status=status.value,
        payment_status=payment_status,
    )


@pytest.fixture
def machine(settings):
    return BookingStateMachine(settings)


class TestTransitions:

    @pytest.mark.parametrize("from_status,to_status", LEGAL)
    def test_legal(self, machine, from_status, to_status):
        booking = booking_in(from_status)
        event = machine.transition(booking, to_status, WHEN, payment_confirmed=True)

        assert booking.status == to_status.value
        assert event.from_status == from_status.value
        assert event.to_status == to_status.value
        assert event.booking_id == 1

    @pytest.mark.parametrize(
        "from_status,to_status",
        [(a, b) for a in S for b in S if (a, b) not in LEGAL],
    )
    def test_everything_else_is_rejected(self, machine, from_status, to_status):
        booking = booking_in(from_status, payment_status="pending")

        with pytest.raises(IllegalTransition) as exc_info:
            machine.transition(booking, to_status, WHEN, payment_confirmed=True)

        assert booking.status == from_status.value
        assert booking.payment_status == "pending"
        assert exc_info.value.details["from"] == from_status.value

    @pytest.mark.parametrize("status", sorted(TERMINAL - {S.completed}, key=lambda s: s.value))
    def test_terminal_states_have_no_exits(self, machine, status):
        assert machine.allowed(status) == frozenset()

    def test_completed_can_only_be_refunded(self, machine):
        assert machine.allowed(S.completed) == frozenset({S.refunded})

    def test_confirmation_needs_a_payment_event(self, machine):
        booking = booking_in(S.payment_pending)
        with pytest.raises(IllegalTransition):
            machine.transition(booking, S.confirmed, WHEN)
        assert booking.status == S.payment_pending.value
        assert booking.payment_status == PaymentStatus.pending.value


class TestPaymentStatus:

    def test_confirmed_marks_payment_succeeded(self, machine):
        booking = booking_in(S.payment_pending)
        machine.transition(booking, S.confirmed, WHEN, payment_confirmed=True)
        assert booking.payment_status == PaymentStatus.succeeded.value

    @pytest.mark.parametrize("target", [S.failed, S.expired])
    def test_unpaid_exits_mark_payment_failed(self, machine, target):
        booking = booking_in(S.payment_pending)
        machine.transition(booking, target, WHEN)
        assert booking.payment_status == PaymentStatus.failed.value

    def test_cancel_keeps_payment_status(self, machine):
        booking = booking_in(S.confirmed, payment_status="succeeded")
        machine.transition(booking, S.cancelled, WHEN)
        assert booking.payment_status == "succeeded"

    def test_initialize(self, machine):
        booking = booking_in(S.confirmed, payment_status="succeeded")
        event = machine.initialize(booking, WHEN)
        assert booking.status == S.pending.value
        assert booking.payment_status == PaymentStatus.pending.value
        assert event.from_status is None
        assert event.to_status == "pending"
