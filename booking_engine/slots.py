# booking_engine/slots.py

from datetime import date, datetime, timedelta
from typing import Callable, Iterator, List, Optional, Sequence, Tuple

from .availability import AvailabilityStore
from .core import Window, overlaps
from .errors import InvalidDuration
from .ledger import BookingLedger
from .schemas import TimeSlot


class SlotSequence:
    """Candidate start times for one provider/date/duration.

    Iterating generates slots lazily from a snapshot of the ledger taken
    when the sequence was built, so iterating twice yields the same slots.
    """

    def __init__(
        self,
        window: Optional[Window],
        duration_minutes: int,
        granularity_minutes: int,
        busy: Sequence[Tuple[datetime, datetime]] = (),
        not_before: Optional[datetime] = None,
    ):
        self.window = window
        self.duration = timedelta(minutes=duration_minutes)
        self.step = timedelta(minutes=granularity_minutes)
        self.busy = tuple(busy)
        self.not_before = not_before

    def __iter__(self) -> Iterator[TimeSlot]:
        if self.window is None:
            return
        current = self.window.start
        last_start = self.window.end - self.duration
        while current <= last_start:
            slot_end = current + self.duration
            taken = any(overlaps(current, slot_end, b_start, b_end) for b_start, b_end in self.busy)
            started = self.not_before is not None and current < self.not_before
            yield TimeSlot(start=current, end=slot_end, available=not (taken or started))
            current += self.step

    def available(self) -> List[TimeSlot]:
        return [slot for slot in self if slot.available]


class SlotResolver:
    def __init__(
        self,
        availability: AvailabilityStore,
        ledger: BookingLedger,
        granularity_minutes: int = 30,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.availability = availability
        self.ledger = ledger
        self.granularity_minutes = granularity_minutes
        self.clock = clock

    def resolve(
        self,
        provider_id: int,
        on_date: date,
        duration_minutes: int,
        granularity_minutes: Optional[int] = None,
    ) -> SlotSequence:
        """Bookable time windows for a provider on a date.

        Advisory only: the result can be stale as soon as it is returned.
        ReservationManager repeats the overlap check when claiming.
        """
        step = granularity_minutes or self.granularity_minutes
        if duration_minutes <= 0:
            raise InvalidDuration(
                "Duration must be positive", details={"duration_minutes": duration_minutes}
            )
        if step <= 0:
            raise InvalidDuration(
                "Granularity must be positive", details={"granularity_minutes": step}
            )

        # 1) Past dates and closed days produce no slots
        now = self.clock()
        if on_date < now.date():
            return SlotSequence(None, duration_minutes, step)
        window = self.availability.effective_window(provider_id, on_date)
        if window is None:
            return SlotSequence(None, duration_minutes, step)

        # 2) Snapshot everything holding time inside the window
        busy = [
            (b.start_time, b.end_time)
            for b in self.ledger.occupying(provider_id, window.start, window.end)
        ]
        # starts already behind the clock are listed but not bookable
        return SlotSequence(window, duration_minutes, step, busy, not_before=now)
