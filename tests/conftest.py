"""Shared test fixtures and helpers."""

from datetime import date, datetime, time, timedelta
from typing import List, Optional

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session

from booking_engine.config import Settings, get_settings
from booking_engine.db import get_session, init_db, make_engine
from booking_engine.deps import get_clock
from booking_engine.events import BookingTransitioned, EventBus
from booking_engine.locks import ProviderLocks
from booking_engine.main import app
from booking_engine.models import Booking, Provider, Service, ServiceAddon, WeeklyAvailability
from booking_engine.reservations import ReservationManager
from booking_engine.schemas import GuestContact

# Sunday noon; the following day is a Monday
NOW = datetime(2030, 1, 6, 12, 0)
MONDAY = date(2030, 1, 7)
TUESDAY = date(2030, 1, 8)
SATURDAY = date(2030, 1, 12)


class FrozenClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class RecordingBus(EventBus):
    def __init__(self) -> None:
        super().__init__()
        self.seen: List[BookingTransitioned] = []
        self.subscribe(self.seen.append)


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        internal_api_key="test-internal-key",
        retry_backoff_seconds=0,
    )


@pytest.fixture
def engine(tmp_path):
    engine = make_engine(f"sqlite:///{tmp_path / 'booking.db'}")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def clock():
    return FrozenClock(NOW)


@pytest.fixture
def bus():
    return RecordingBus()


@pytest.fixture
def locks():
    return ProviderLocks()


def make_provider(session: Session, email: str = "barber@example.com", is_developer: bool = False) -> Provider:
    provider = Provider(user_email=email, display_name=email.split("@")[0], is_developer=is_developer)
    session.add(provider)
    session.commit()
    session.refresh(provider)
    for day in range(5):
        session.add(
            WeeklyAvailability(
                provider_id=provider.id,
                day_of_week=day,
                start_time=time(9, 0),
                end_time=time(17, 0),
            )
        )
    session.commit()
    return provider


def make_service(session: Session, provider: Provider, duration: int = 30, price: int = 5000) -> Service:
    service = Service(provider_id=provider.id, name=f"cut {duration}", duration_minutes=duration, price=price)
    session.add(service)
    session.commit()
    session.refresh(service)
    return service


def make_addon(session: Session, provider: Provider, name: str = "Beard trim", price: int = 1500) -> ServiceAddon:
    addon = ServiceAddon(provider_id=provider.id, name=name, price=price)
    session.add(addon)
    session.commit()
    session.refresh(addon)
    return addon


def make_booking(
    session: Session,
    provider: Provider,
    service: Service,
    start: datetime,
    status: str = "confirmed",
    created_at: Optional[datetime] = None,
) -> Booking:
    booking = Booking(
        provider_id=provider.id,
        service_id=service.id,
        guest_name="Walk In",
        guest_email="walkin@example.com",
        guest_phone="5551234567",
        start_time=start,
        end_time=start + timedelta(minutes=service.duration_minutes),
        duration_minutes=service.duration_minutes,
        price=service.price,
        status=status,
        payment_status="succeeded" if status == "confirmed" else "pending",
        created_at=created_at or NOW,
    )
    session.add(booking)
    session.commit()
    session.refresh(booking)
    return booking


def at(on_date: date, hour: int, minute: int = 0) -> datetime:
    return datetime.combine(on_date, time(hour, minute))


@pytest.fixture
def provider(session):
    return make_provider(session)


@pytest.fixture
def haircut(session, provider):
    return make_service(session, provider, duration=30, price=5000)


@pytest.fixture
def guest():
    return GuestContact(name="Jamie Doe", email="jamie@example.com", phone="(555) 123-4567")


@pytest.fixture
def manager(session, settings, clock, bus, locks):
    return ReservationManager(session, settings=settings, clock=clock, events=bus, locks=locks)


@pytest.fixture
def client(engine, settings, clock):
    def _session():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_session] = _session
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_clock] = lambda: clock
    yield TestClient(app)
    app.dependency_overrides.clear()
