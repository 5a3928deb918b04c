# booking_engine/core.py

from datetime import date, datetime, time, timedelta
from typing import NamedTuple, Optional


class Window(NamedTuple):
    start: datetime
    end: datetime


def overlaps(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    # half-open intervals: touching ends do not overlap
    return a_start < b_end and b_start < a_end


def window_for(on_date: date, start: Optional[time], end: Optional[time]) -> Optional[Window]:
    if start is None or end is None or start >= end:
        return None
    return Window(datetime.combine(on_date, start), datetime.combine(on_date, end))


def add_minutes(moment: datetime, minutes: int) -> datetime:
    return moment + timedelta(minutes=minutes)


def minutes_between(start: datetime, end: datetime) -> int:
    return int((end - start).total_seconds() // 60)
