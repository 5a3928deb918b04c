# booking_engine/availability.py
"""Read side of a provider's opening hours.

Special hours for an exact date override the weekly pattern entirely. No
row, or a disabled weekly row, means the provider is closed that date.
"""

from datetime import date
from typing import List, Optional

from sqlmodel import Session, select

from .core import Window, window_for
from .models import SpecialHours, WeeklyAvailability


class AvailabilityStore:
    def __init__(self, session: Session):
        self.session = session

    def weekly(self, provider_id: int, day_of_week: int) -> Optional[WeeklyAvailability]:
        return self.session.exec(
            select(WeeklyAvailability)
            .where(WeeklyAvailability.provider_id == provider_id)
            .where(WeeklyAvailability.day_of_week == day_of_week)
        ).first()

    def weekly_schedule(self, provider_id: int) -> List[WeeklyAvailability]:
        return list(
            self.session.exec(
                select(WeeklyAvailability)
                .where(WeeklyAvailability.provider_id == provider_id)
                .order_by(WeeklyAvailability.day_of_week)
            ).all()
        )

    def special(self, provider_id: int, on_date: date) -> Optional[SpecialHours]:
        return self.session.exec(
            select(SpecialHours)
            .where(SpecialHours.provider_id == provider_id)
            .where(SpecialHours.date == on_date)
        ).first()

    def effective_window(self, provider_id: int, on_date: date) -> Optional[Window]:
        """Opening window for ``on_date`` or None when closed."""
        # 1) Exact-date override wins
        special = self.special(provider_id, on_date)
        if special is not None:
            if special.is_closed:
                return None
            return window_for(on_date, special.start_time, special.end_time)

        # 2) Weekly pattern for that weekday
        weekly = self.weekly(provider_id, on_date.weekday())
        if weekly is None or not weekly.enabled:
            return None
        return window_for(on_date, weekly.start_time, weekly.end_time)
