"""Effective availability window resolution."""

from datetime import time

from booking_engine.availability import AvailabilityStore
from booking_engine.models import SpecialHours, WeeklyAvailability

from conftest import MONDAY, SATURDAY, TUESDAY, at


class TestEffectiveWindow:

    def test_weekly_pattern(self, session, provider):
        window = AvailabilityStore(session).effective_window(provider.id, MONDAY)
        assert window == (at(MONDAY, 9), at(MONDAY, 17))

    def test_no_weekly_row_means_closed(self, session, provider):
        assert AvailabilityStore(session).effective_window(provider.id, SATURDAY) is None

    def test_disabled_weekday_is_closed(self, session, provider):
        store = AvailabilityStore(session)
        row = store.weekly(provider.id, TUESDAY.weekday())
        row.enabled = False
        session.add(row)
        session.commit()

        assert store.effective_window(provider.id, TUESDAY) is None

    def test_special_hours_override_weekly(self, session, provider):
        session.add(
            SpecialHours(provider_id=provider.id, date=MONDAY, start_time=time(12, 0), end_time=time(14, 0))
        )
        session.commit()

        window = AvailabilityStore(session).effective_window(provider.id, MONDAY)
        assert window == (at(MONDAY, 12), at(MONDAY, 14))

    def test_special_closure_wins(self, session, provider):
        session.add(SpecialHours(provider_id=provider.id, date=MONDAY, is_closed=True))
        session.commit()

        assert AvailabilityStore(session).effective_window(provider.id, MONDAY) is None

    def test_special_hours_open_a_closed_weekday(self, session, provider):
        session.add(
            SpecialHours(provider_id=provider.id, date=SATURDAY, start_time=time(10, 0), end_time=time(13, 0))
        )
        session.commit()

        window = AvailabilityStore(session).effective_window(provider.id, SATURDAY)
        assert window == (at(SATURDAY, 10), at(SATURDAY, 13))

    def test_override_applies_to_exact_date_only(self, session, provider):
        session.add(SpecialHours(provider_id=provider.id, date=MONDAY, is_closed=True))
        session.commit()

        assert AvailabilityStore(session).effective_window(provider.id, TUESDAY) is not None

    def test_weekly_schedule_is_ordered(self, session, provider):
        session.add(
            WeeklyAvailability(provider_id=provider.id, day_of_week=6, start_time=time(8), end_time=time(9))
        )
        session.commit()

        days = [row.day_of_week for row in AvailabilityStore(session).weekly_schedule(provider.id)]
        assert days == [0, 1, 2, 3, 4, 6]
