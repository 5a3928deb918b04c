# booking_engine/events.py
"""Booking domain events.

Notification collaborators subscribe to the bus; the engine does not know
how (or whether) they deliver anything.
"""

import logging
import threading
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BookingTransitioned:
    """Fired after a booking changes status and the change is committed."""

    booking_id: int
    provider_id: int
    from_status: Optional[str]  # None for the initial state
    to_status: str
    occurred_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


Handler = Callable[[BookingTransitioned], None]


class EventBus:
    def __init__(self) -> None:
        self._handlers: List[Handler] = []
        self._lock = threading.Lock()

    def subscribe(self, handler: Handler) -> Callable[[], None]:
        with self._lock:
            self._handlers.append(handler)

        def unsubscribe() -> None:
            with self._lock:
                if handler in self._handlers:
                    self._handlers.remove(handler)

        return unsubscribe

    def publish(self, event: BookingTransitioned) -> None:
        with self._lock:
            handlers = list(self._handlers)
        for handler in handlers:
            try:
                handler(event)
            except Exception:
                # the transition is already committed
                logger.exception(
                    "Event handler %r failed for booking %s (%s -> %s)",
                    handler,
                    event.booking_id,
                    event.from_status,
                    event.to_status,
                )


booking_events = EventBus()
