# booking_engine/routers/payments_routes.py

from fastapi import APIRouter, Depends

from booking_engine.deps import get_reservation_manager, require_internal_caller
from booking_engine.reservations import ReservationManager
from booking_engine.schemas import (
    PaymentCallback,
    PaymentIntentIn,
    PaymentStatusPublic,
    RefundEvent,
    SweepResult,
)

# Called by the payment processor collaborator and the scheduler, not by users
router = APIRouter(
    tags=["payments"],
    dependencies=[Depends(require_internal_caller)],
)


def _payment_view(booking) -> dict:
    return {
        "booking_id": booking.id,
        "status": booking.status,
        "payment_status": booking.payment_status,
        "charge_total": booking.charge_total,
    }


@router.post("/reservations/{booking_id}/payment-intent", response_model=PaymentStatusPublic)
def start_payment(
    booking_id: int,
    body: PaymentIntentIn,
    manager: ReservationManager = Depends(get_reservation_manager),
):
    booking = manager.begin_payment(booking_id, body.external_payment_ref)
    return _payment_view(booking)


@router.post("/payments/callback", response_model=PaymentStatusPublic)
def payment_callback(
    event: PaymentCallback,
    manager: ReservationManager = Depends(get_reservation_manager),
):
    booking = manager.confirm_payment(event.booking_id, event.succeeded, event.external_payment_ref)
    return _payment_view(booking)


@router.post("/payments/refund", response_model=PaymentStatusPublic)
def payment_refund(
    event: RefundEvent,
    manager: ReservationManager = Depends(get_reservation_manager),
):
    booking = manager.refund(event.booking_id, event.amount, event.external_payment_ref)
    return _payment_view(booking)


@router.post("/maintenance/expire-sweep", response_model=SweepResult)
def expire_sweep(
    manager: ReservationManager = Depends(get_reservation_manager),
):
    expired = manager.expire_stale()
    return {"expired": len(expired), "booking_ids": expired}
