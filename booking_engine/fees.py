# booking_engine/fees.py

from typing import Optional

from .config import Settings, get_settings
from .errors import ValidationError
from .schemas import FeeBreakdown, PaymentMode


class FeeCalculator:
    """Charge breakdown for a booking, all amounts in cents.

    full: the client pays the service price and any add-ons up front.
    fee_only: the client pays the fixed booking fee up front; the rest of
    the price and all add-ons are paid to the provider in person.

    The platform keeps ``platform_share_percent`` of the booking fee in
    both modes; the provider receives whatever else is charged.
    """

    def __init__(self, booking_fee_cents: int = 338, platform_share_percent: int = 60):
        if booking_fee_cents < 0:
            raise ValueError("booking_fee_cents must be >= 0")
        if not 0 <= platform_share_percent <= 100:
            raise ValueError("platform_share_percent must be within 0..100")
        self.booking_fee_cents = booking_fee_cents
        self.platform_share_percent = platform_share_percent

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "FeeCalculator":
        settings = settings or get_settings()
        return cls(settings.booking_fee_cents, settings.platform_share_percent)

    def platform_share(self, fee: int) -> int:
        # round half up in integer cents
        return (fee * self.platform_share_percent + 50) // 100

    def compute(
        self,
        service_price: int,
        payment_mode: PaymentMode,
        fee_exempt: bool = False,
        addon_total: int = 0,
    ) -> FeeBreakdown:
        if service_price < 0:
            raise ValidationError("Service price cannot be negative", details={"price": service_price})
        if addon_total < 0:
            raise ValidationError("Add-on total cannot be negative", details={"addon_total": addon_total})

        fee = 0 if fee_exempt else self.booking_fee_cents
        mode = PaymentMode(payment_mode)

        if mode == PaymentMode.full:
            total = service_price + addon_total
            deposit = 0
            due_at_service = 0
        else:
            total = fee
            deposit = fee
            due_at_service = max(service_price - fee, 0) + addon_total

        platform_fee = min(self.platform_share(fee), total)
        return FeeBreakdown(
            total=total,
            deposit_amount=deposit,
            platform_fee=platform_fee,
            provider_payout=total - platform_fee,
            due_at_service=due_at_service,
            addon_total=addon_total,
        )
