# booking_engine/deps.py

import hmac
from datetime import datetime
from typing import Callable, Optional

from fastapi import Depends, Header, HTTPException
from sqlmodel import Session

from .auth import get_current_user
from .config import Settings, get_settings
from .db import get_session
from .models import Provider
from .provisioning import get_provider_for
from .reservations import ReservationManager


def require_role(user: dict, role: str):
    if user["role"] != role:
        raise HTTPException(status_code=403, detail="Forbidden")


def get_clock() -> Callable[[], datetime]:
    return datetime.now


def get_reservation_manager(
    session: Session = Depends(get_session),
    settings: Settings = Depends(get_settings),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> ReservationManager:
    return ReservationManager(session, settings=settings, clock=clock)


def get_current_provider(
    session: Session = Depends(get_session),
    current_user: dict = Depends(get_current_user),
) -> Provider:
    require_role(current_user, "barber")
    provider = get_provider_for(session, current_user["email"])
    if provider is None:
        raise HTTPException(status_code=409, detail="Provider profile has not been provisioned")
    return provider


def require_internal_caller(
    x_internal_key: Optional[str] = Header(default=None),
    settings: Settings = Depends(get_settings),
) -> None:
    # payment webhook and cron sweep only
    expected = settings.internal_api_key.encode()
    if x_internal_key is None or not hmac.compare_digest(x_internal_key.encode(), expected):
        raise HTTPException(status_code=401, detail="Invalid internal key")
