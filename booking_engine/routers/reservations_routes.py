# booking_engine/routers/reservations_routes.py

import hmac
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlmodel import Session

from booking_engine.auth import get_current_user, get_optional_user
from booking_engine.context import RequestContext, get_request_id
from booking_engine.db import get_session
from booking_engine.deps import get_reservation_manager, require_role
from booking_engine.ledger import BookingLedger
from booking_engine.models import Booking, Provider
from booking_engine.reservations import ReservationManager
from booking_engine.schemas import (
    FeeBreakdown,
    PaymentStatusPublic,
    ReservationCreate,
    ReservationCreated,
    ReservationPublic,
)

logger = logging.getLogger(__name__)

router = APIRouter(
    tags=["reservations"],
)


def _context_for(user: Optional[dict], body: ReservationCreate) -> RequestContext:
    # clients book as themselves; anyone else (barber or anonymous) books a guest
    if user is not None and user["role"] == "client":
        return RequestContext(
            request_id=get_request_id(),
            client_id=user["id"],
            user_email=user["email"],
            role=user["role"],
        )
    return RequestContext(
        request_id=get_request_id(),
        user_email=user["email"] if user else None,
        role=user["role"] if user else None,
        guest=body.guest,
    )


def _can_see(session: Session, booking: Booking, user: dict) -> bool:
    if booking.client_id is not None and booking.client_id == user["id"]:
        return True
    provider = session.get(Provider, booking.provider_id)
    return provider is not None and provider.user_email == user["email"]


def _owned_booking(session: Session, booking_id: int, user: dict) -> Booking:
    booking = BookingLedger(session).get(booking_id)
    if not _can_see(session, booking, user):
        raise HTTPException(status_code=403, detail="Forbidden")
    return booking


@router.post(
    "/providers/{provider_id}/reservations",
    response_model=ReservationCreated,
    status_code=201,
)
def create_reservation(
    provider_id: int,
    body: ReservationCreate,
    user: Optional[dict] = Depends(get_optional_user),
    manager: ReservationManager = Depends(get_reservation_manager),
):
    ctx = _context_for(user, body)
    booking = manager.reserve(
        provider_id,
        body.service_id,
        body.start_time,
        ctx,
        payment_mode=body.payment_mode,
        notes=body.notes,
        addon_ids=body.addon_ids,
    )
    return {
        "booking_id": booking.id,
        "charge_amount": booking.charge_total,
        "status": booking.status,
        "fees": FeeBreakdown(
            total=booking.charge_total,
            deposit_amount=booking.deposit_amount,
            platform_fee=booking.platform_fee,
            provider_payout=booking.provider_payout,
            due_at_service=booking.due_at_service,
            addon_total=booking.addon_total,
        ),
        "guest_token": booking.guest_token,
    }


@router.get("/reservations/{booking_id}", response_model=ReservationPublic)
def get_reservation(
    booking_id: int,
    session: Session = Depends(get_session),
    current_user: dict = Depends(get_current_user),
):
    return _owned_booking(session, booking_id, current_user)


@router.get("/reservations/{booking_id}/payment", response_model=PaymentStatusPublic)
def reservation_payment_status(
    booking_id: int,
    token: Optional[str] = Query(default=None),
    user: Optional[dict] = Depends(get_optional_user),
    manager: ReservationManager = Depends(get_reservation_manager),
):
    # guests poll this after checkout with the token handed out at reserve;
    # failed payments come back as 402
    booking = manager.ledger.get(booking_id)
    has_token = token is not None and hmac.compare_digest(
        token.encode(), booking.guest_token.encode()
    )
    if not has_token and not (user is not None and _can_see(manager.session, booking, user)):
        raise HTTPException(status_code=403, detail="Forbidden")

    booking = manager.payment_status(booking_id)
    return {
        "booking_id": booking.id,
        "status": booking.status,
        "payment_status": booking.payment_status,
        "charge_total": booking.charge_total,
    }


@router.post("/reservations/{booking_id}/cancel", response_model=ReservationPublic)
def cancel_reservation(
    booking_id: int,
    session: Session = Depends(get_session),
    current_user: dict = Depends(get_current_user),
    manager: ReservationManager = Depends(get_reservation_manager),
):
    # client who booked OR the provider
    _owned_booking(session, booking_id, current_user)
    return manager.cancel(booking_id)


@router.post("/reservations/{booking_id}/complete", response_model=ReservationPublic)
def complete_reservation(
    booking_id: int,
    session: Session = Depends(get_session),
    current_user: dict = Depends(get_current_user),
    manager: ReservationManager = Depends(get_reservation_manager),
):
    require_role(current_user, "barber")
    _owned_booking(session, booking_id, current_user)
    return manager.complete(booking_id)


@router.get("/clients/me/reservations", response_model=List[ReservationPublic])
def list_my_reservations(
    session: Session = Depends(get_session),
    current_user: dict = Depends(get_current_user),
):
    require_role(current_user, "client")
    return BookingLedger(session).for_client(current_user["id"])
