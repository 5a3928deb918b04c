# booking_engine/schemas.py

import re
from datetime import date, datetime, time
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

PHONE_DIGITS = re.compile(r"^\+?\d{7,15}$")


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class UserRole(str, Enum):
    barber = "barber"
    client = "client"


class PaymentMode(str, Enum):
    full = "full"
    fee_only = "fee_only"


class BookingStatus(str, Enum):
    pending = "pending"
    payment_pending = "payment_pending"
    confirmed = "confirmed"
    completed = "completed"
    cancelled = "cancelled"
    expired = "expired"
    failed = "failed"
    refunded = "refunded"
    partially_refunded = "partially_refunded"


class PaymentStatus(str, Enum):
    pending = "pending"
    succeeded = "succeeded"
    failed = "failed"
    refunded = "refunded"
    partially_refunded = "partially_refunded"


class UserPublic(BaseModel):
    id: int
    email: str
    role: UserRole


class UserCreate(BaseModel):
    email: str
    password: str = Field(min_length=8, max_length=72)
    role: UserRole
    display_name: Optional[str] = None


class GuestContact(BaseModel):
    name: str
    email: EmailStr
    phone: str

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("name must not be blank")
        return v

    @field_validator("phone")
    @classmethod
    def phone_digits(cls, v: str) -> str:
        cleaned = re.sub(r"[\s().-]", "", v)
        if not PHONE_DIGITS.match(cleaned):
            raise ValueError("phone must contain 7 to 15 digits")
        return cleaned


class TimeSlot(BaseModel):
    start: datetime
    end: datetime
    available: bool

    @model_validator(mode="after")
    def start_before_end(self):
        if self.start >= self.end:
            raise ValueError("slot start must be before its end")
        return self


class SlotsResponse(BaseModel):
    provider_id: int
    date: date
    service_id: int
    duration_minutes: int
    slots: List[TimeSlot]


class FeeBreakdown(BaseModel):
    total: int
    deposit_amount: int
    platform_fee: int
    provider_payout: int
    due_at_service: int = 0
    addon_total: int = 0


class WeeklyAvailabilityIn(BaseModel):
    day_of_week: int = Field(ge=0, le=6)     # 0=Mon ... 6=Sun
    start_time: time
    end_time: time
    enabled: bool = True

    @model_validator(mode="after")
    def start_before_end(self):
        if self.start_time >= self.end_time:
            raise ValueError("start_time must be before end_time")
        return self


class WeeklyAvailabilityPublic(WeeklyAvailabilityIn):
    provider_id: int


class SpecialHoursIn(BaseModel):
    date: date
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    is_closed: bool = False

    @model_validator(mode="after")
    def hours_when_open(self):
        if self.is_closed:
            return self
        if self.start_time is None or self.end_time is None:
            raise ValueError("start_time and end_time are required unless is_closed")
        if self.start_time >= self.end_time:
            raise ValueError("start_time must be before end_time")
        return self


class SpecialHoursPublic(SpecialHoursIn):
    id: int
    provider_id: int


class ProviderPublic(BaseModel):
    id: int
    user_email: str
    display_name: str
    is_developer: bool


class ServiceCreate(BaseModel):
    name: str
    duration_minutes: int = Field(gt=0)
    price: int = Field(ge=0)   # cents


class ServiceUpdate(BaseModel):
    name: Optional[str] = None
    duration_minutes: Optional[int] = Field(default=None, gt=0)
    price: Optional[int] = Field(default=None, ge=0)
    is_active: Optional[bool] = None


class ServicePublic(BaseModel):
    id: int
    provider_id: int
    name: str
    duration_minutes: int
    price: int
    is_active: bool


class AddonCreate(BaseModel):
    name: str
    price: int = Field(ge=0)   # cents


class AddonUpdate(BaseModel):
    name: Optional[str] = None
    price: Optional[int] = Field(default=None, ge=0)
    is_active: Optional[bool] = None


class AddonPublic(BaseModel):
    id: int
    provider_id: int
    name: str
    price: int
    is_active: bool


class ReservationCreate(BaseModel):
    service_id: int
    start_time: datetime
    payment_mode: PaymentMode = PaymentMode.full
    addon_ids: List[int] = Field(default_factory=list)
    guest: Optional[GuestContact] = None
    notes: Optional[str] = Field(default=None, max_length=500)


class ReservationPublic(BaseModel):
    id: int
    provider_id: int
    service_id: int
    client_id: Optional[int]
    guest_name: Optional[str]
    start_time: datetime
    end_time: datetime
    duration_minutes: int
    price: int
    addon_total: int
    payment_mode: PaymentMode
    status: BookingStatus
    payment_status: PaymentStatus
    charge_total: int
    deposit_amount: int
    platform_fee: int
    provider_payout: int
    due_at_service: int
    refunded_amount: int
    created_at: datetime


class ReservationCreated(BaseModel):
    booking_id: int
    charge_amount: int
    status: BookingStatus
    fees: FeeBreakdown
    guest_token: str  # required to poll payment status without an account


class PaymentIntentIn(BaseModel):
    external_payment_ref: Optional[str] = None


class PaymentCallback(BaseModel):
    booking_id: int
    succeeded: bool
    external_payment_ref: str = Field(min_length=1)


class RefundEvent(BaseModel):
    booking_id: int
    amount: int = Field(gt=0)
    external_payment_ref: str = Field(min_length=1)


class PaymentStatusPublic(BaseModel):
    booking_id: int
    status: BookingStatus
    payment_status: PaymentStatus
    charge_total: int


class SweepResult(BaseModel):
    expired: int
    booking_ids: List[int]
