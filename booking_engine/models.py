# booking_engine/models.py

import secrets
from datetime import datetime, date as Date, time
from typing import Optional

from sqlalchemy import Index, UniqueConstraint, text
from sqlmodel import SQLModel, Field

# statuses that hold a provider's time
OCCUPYING_STATUSES = ("pending", "payment_pending", "confirmed", "completed")

_occupying_sql = "status IN ({})".format(", ".join(f"'{s}'" for s in OCCUPYING_STATUSES))


class User(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    email: str = Field(index=True, unique=True)
    password_hash: str
    role: str # barber or client


class Provider(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    user_email: str = Field(index=True, unique=True)
    display_name: str
    is_developer: bool = False
    created_at: datetime = Field(default_factory=datetime.now)


class Service(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    provider_id: int = Field(foreign_key="provider.id", index=True)
    name: str
    duration_minutes: int
    price: int  # cents
    is_active: bool = True


class ServiceAddon(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    provider_id: int = Field(foreign_key="provider.id", index=True)
    name: str
    price: int  # cents
    is_active: bool = True


class WeeklyAvailability(SQLModel, table=True):
    __table_args__ = (
        UniqueConstraint("provider_id", "day_of_week", name="uq_provider_weekday"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    provider_id: int = Field(foreign_key="provider.id", index=True)
    day_of_week: int  # 0=Mon ... 6=Sun
    start_time: time
    end_time: time
    enabled: bool = True


class SpecialHours(SQLModel, table=True):
    __table_args__ = (
        UniqueConstraint("provider_id", "date", name="uq_provider_special_date"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    provider_id: int = Field(foreign_key="provider.id", index=True)
    date: Date = Field(index=True)
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    is_closed: bool = False


class Booking(SQLModel, table=True):
    __table_args__ = (
        Index(
            "uq_provider_active_start",
            "provider_id",
            "start_time",
            unique=True,
            sqlite_where=text(_occupying_sql),
            postgresql_where=text(_occupying_sql),
        ),
        Index("ix_booking_provider_interval", "provider_id", "start_time", "end_time"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    provider_id: int = Field(foreign_key="provider.id", index=True)
    service_id: int = Field(foreign_key="service.id")

    client_id: Optional[int] = Field(default=None, foreign_key="user.id", index=True)
    guest_name: Optional[str] = None
    guest_email: Optional[str] = None
    guest_phone: Optional[str] = None

    start_time: datetime
    end_time: datetime
    duration_minutes: int  # snapshot
    price: int  # snapshot, cents
    addon_total: int = 0  # snapshot, cents
    addon_ids: Optional[str] = None  # comma separated, as selected

    payment_mode: str = "full"
    status: str = "pending"
    payment_status: str = "pending"

    charge_total: int = 0
    deposit_amount: int = 0
    platform_fee: int = 0
    provider_payout: int = 0
    due_at_service: int = 0
    refunded_amount: int = 0

    external_payment_ref: Optional[str] = Field(default=None, index=True)
    notes: Optional[str] = None
    guest_token: str = Field(default_factory=lambda: secrets.token_urlsafe(24))

    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)


class PaymentEvent(SQLModel, table=True):
    __table_args__ = (
        UniqueConstraint("external_ref", "kind", name="uq_payment_event_ref_kind"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    external_ref: str = Field(index=True)
    booking_id: int = Field(foreign_key="booking.id", index=True)
    kind: str  # charge or refund
    succeeded: bool = True
    amount: Optional[int] = None
    received_at: datetime = Field(default_factory=datetime.now)
