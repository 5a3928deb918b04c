# booking_engine/context.py
"""Request-scoped caller context.

The caller identity (authenticated client or guest contact details) is
carried explicitly into the reservation flow instead of being read from
ambient session state. A request id is also kept in a contextvar so every
log line emitted while serving a request can be correlated.
"""

import logging
import uuid
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import Optional

from .schemas import GuestContact

_request_id: ContextVar[str] = ContextVar("request_id", default="-")


def new_request_id() -> str:
    return uuid.uuid4().hex[:12]


def set_request_id(request_id: str) -> None:
    _request_id.set(request_id)


def get_request_id() -> str:
    return _request_id.get()


class RequestIdFilter(logging.Filter):
    """Injects request_id into every log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = _request_id.get()  # type: ignore[attr-defined]
        return True


def configure_logging(level: str = "INFO") -> None:
    handler = logging.StreamHandler()
    handler.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)s [%(request_id)s] %(name)s: %(message)s")
    )
    handler.addFilter(RequestIdFilter())

    root = logging.getLogger("booking_engine")
    root.handlers = [handler]
    root.setLevel(level.upper())
    root.propagate = False


@dataclass(frozen=True)
class RequestContext:
    """Who is making the request.

    Exactly one of ``client_id`` / ``guest`` is set for reservation calls.
    ``user_email`` and ``role`` are populated for authenticated callers.
    """

    request_id: str = field(default_factory=new_request_id)
    client_id: Optional[int] = None
    user_email: Optional[str] = None
    role: Optional[str] = None
    guest: Optional[GuestContact] = None

    @property
    def is_guest(self) -> bool:
        return self.client_id is None and self.guest is not None

    @property
    def is_authenticated(self) -> bool:
        return self.user_email is not None
