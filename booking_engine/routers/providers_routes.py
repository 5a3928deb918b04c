# booking_engine/routers/providers_routes.py

from datetime import date, datetime
from typing import Callable, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Response
from sqlmodel import Session, select

from booking_engine.availability import AvailabilityStore
from booking_engine.config import Settings, get_settings
from booking_engine.db import get_session
from booking_engine.deps import get_clock, get_current_provider
from booking_engine.errors import AddonNotFound, ProviderNotFound, ServiceNotFound
from booking_engine.ledger import BookingLedger
from booking_engine.models import Provider, Service, ServiceAddon, SpecialHours, WeeklyAvailability
from booking_engine.schemas import (
    AddonCreate,
    AddonPublic,
    AddonUpdate,
    ProviderPublic,
    ReservationPublic,
    ServiceCreate,
    ServicePublic,
    ServiceUpdate,
    SlotsResponse,
    SpecialHoursIn,
    SpecialHoursPublic,
    WeeklyAvailabilityIn,
    WeeklyAvailabilityPublic,
)
from booking_engine.slots import SlotResolver

router = APIRouter(
    prefix="/providers",
    tags=["providers"],
)


@router.get("/me", response_model=ProviderPublic)
def get_my_provider(provider: Provider = Depends(get_current_provider)):
    return provider


@router.get("/me/weekly", response_model=List[WeeklyAvailabilityPublic])
def get_my_weekly_schedule(
    session: Session = Depends(get_session),
    provider: Provider = Depends(get_current_provider),
):
    return AvailabilityStore(session).weekly_schedule(provider.id)


@router.put("/me/weekly", response_model=WeeklyAvailabilityPublic)
def upsert_weekly_day(
    entry: WeeklyAvailabilityIn,
    session: Session = Depends(get_session),
    provider: Provider = Depends(get_current_provider),
):
    # one row per weekday
    db_entry = AvailabilityStore(session).weekly(provider.id, entry.day_of_week)
    if db_entry is None:
        db_entry = WeeklyAvailability(provider_id=provider.id, **entry.model_dump())
    else:
        db_entry.start_time = entry.start_time
        db_entry.end_time = entry.end_time
        db_entry.enabled = entry.enabled

    session.add(db_entry)
    session.commit()
    session.refresh(db_entry)
    return db_entry


@router.get("/me/special-hours", response_model=List[SpecialHoursPublic])
def list_special_hours(
    from_date: Optional[date] = None,
    session: Session = Depends(get_session),
    provider: Provider = Depends(get_current_provider),
):
    stmt = select(SpecialHours).where(SpecialHours.provider_id == provider.id)
    if from_date is not None:
        stmt = stmt.where(SpecialHours.date >= from_date)
    return session.exec(stmt.order_by(SpecialHours.date)).all()


@router.put("/me/special-hours", response_model=SpecialHoursPublic)
def upsert_special_hours(
    entry: SpecialHoursIn,
    session: Session = Depends(get_session),
    provider: Provider = Depends(get_current_provider),
):
    db_entry = AvailabilityStore(session).special(provider.id, entry.date)
    if db_entry is None:
        db_entry = SpecialHours(provider_id=provider.id, date=entry.date)

    db_entry.is_closed = entry.is_closed
    db_entry.start_time = None if entry.is_closed else entry.start_time
    db_entry.end_time = None if entry.is_closed else entry.end_time

    session.add(db_entry)
    session.commit()
    session.refresh(db_entry)
    return db_entry


@router.delete("/me/special-hours/{on_date}", status_code=204)
def delete_special_hours(
    on_date: date,
    session: Session = Depends(get_session),
    provider: Provider = Depends(get_current_provider),
):
    db_entry = AvailabilityStore(session).special(provider.id, on_date)
    if db_entry is None:
        raise HTTPException(status_code=404, detail="No special hours for that date")
    session.delete(db_entry)
    session.commit()
    return Response(status_code=204)


@router.post("/me/services", response_model=ServicePublic, status_code=201)
def create_service(
    service: ServiceCreate,
    session: Session = Depends(get_session),
    provider: Provider = Depends(get_current_provider),
):
    db_service = Service(provider_id=provider.id, **service.model_dump())
    session.add(db_service)
    session.commit()
    session.refresh(db_service)
    return db_service


@router.patch("/me/services/{service_id}", response_model=ServicePublic)
def update_service(
    service_id: int,
    changes: ServiceUpdate,
    session: Session = Depends(get_session),
    provider: Provider = Depends(get_current_provider),
):
    # existing bookings keep their own price/duration snapshot
    db_service = session.get(Service, service_id)
    if db_service is None or db_service.provider_id != provider.id:
        raise ServiceNotFound("Service not found", details={"service_id": service_id})

    for field, value in changes.model_dump(exclude_unset=True).items():
        setattr(db_service, field, value)

    session.add(db_service)
    session.commit()
    session.refresh(db_service)
    return db_service


@router.get("/me/addons", response_model=List[AddonPublic])
def list_my_addons(
    session: Session = Depends(get_session),
    provider: Provider = Depends(get_current_provider),
):
    return session.exec(
        select(ServiceAddon).where(ServiceAddon.provider_id == provider.id).order_by(ServiceAddon.id)
    ).all()


@router.post("/me/addons", response_model=AddonPublic, status_code=201)
def create_addon(
    addon: AddonCreate,
    session: Session = Depends(get_session),
    provider: Provider = Depends(get_current_provider),
):
    db_addon = ServiceAddon(provider_id=provider.id, **addon.model_dump())
    session.add(db_addon)
    session.commit()
    session.refresh(db_addon)
    return db_addon


@router.patch("/me/addons/{addon_id}", response_model=AddonPublic)
def update_addon(
    addon_id: int,
    changes: AddonUpdate,
    session: Session = Depends(get_session),
    provider: Provider = Depends(get_current_provider),
):
    db_addon = session.get(ServiceAddon, addon_id)
    if db_addon is None or db_addon.provider_id != provider.id:
        raise AddonNotFound("Add-on not found", details={"addon_id": addon_id})

    for field, value in changes.model_dump(exclude_unset=True).items():
        setattr(db_addon, field, value)

    session.add(db_addon)
    session.commit()
    session.refresh(db_addon)
    return db_addon


@router.get("/me/reservations", response_model=List[ReservationPublic])
def list_my_reservations(
    on_date: Optional[date] = None,
    status: Optional[str] = None,
    session: Session = Depends(get_session),
    provider: Provider = Depends(get_current_provider),
):
    statuses = [status] if status else None
    return BookingLedger(session).for_provider(provider.id, on_date=on_date, statuses=statuses)


@router.get("/{provider_id}/services", response_model=List[ServicePublic])
def list_services(
    provider_id: int,
    session: Session = Depends(get_session),
):
    if session.get(Provider, provider_id) is None:
        raise ProviderNotFound("Provider not found", details={"provider_id": provider_id})
    return session.exec(
        select(Service)
        .where(Service.provider_id == provider_id)
        .where(Service.is_active == True)  # noqa: E712
        .order_by(Service.id)
    ).all()


@router.get("/{provider_id}/addons", response_model=List[AddonPublic])
def list_addons(
    provider_id: int,
    session: Session = Depends(get_session),
):
    if session.get(Provider, provider_id) is None:
        raise ProviderNotFound("Provider not found", details={"provider_id": provider_id})
    return session.exec(
        select(ServiceAddon)
        .where(ServiceAddon.provider_id == provider_id)
        .where(ServiceAddon.is_active == True)  # noqa: E712
        .order_by(ServiceAddon.id)
    ).all()


@router.get("/{provider_id}/slots", response_model=SlotsResponse)
def provider_slots(
    provider_id: int,
    date: date,
    service_id: int,
    include_unavailable: bool = False,
    session: Session = Depends(get_session),
    settings: Settings = Depends(get_settings),
    clock: Callable[[], datetime] = Depends(get_clock),
):
    # 1) Lookup provider and service
    if session.get(Provider, provider_id) is None:
        raise ProviderNotFound("Provider not found", details={"provider_id": provider_id})
    service = session.get(Service, service_id)
    if service is None or service.provider_id != provider_id or not service.is_active:
        raise ServiceNotFound(
            "Service not available",
            details={"provider_id": provider_id, "service_id": service_id},
        )

    # 2) Resolve against hours and current bookings
    resolver = SlotResolver(
        AvailabilityStore(session),
        BookingLedger(session),
        granularity_minutes=settings.slot_granularity_minutes,
        clock=clock,
    )
    slots = resolver.resolve(provider_id, date, service.duration_minutes)

    return {
        "provider_id": provider_id,
        "date": date,
        "service_id": service_id,
        "duration_minutes": service.duration_minutes,
        "slots": list(slots) if include_unavailable else slots.available(),
    }
