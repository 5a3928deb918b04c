# booking_engine/errors.py
"""Scheduling error taxonomy.

Domain code raises these; the app renders them with one handler using the
class's ``status_code``.
"""

from typing import Any, Dict, Optional


class SchedulingError(Exception):
    status_code: int = 400

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_detail(self) -> Dict[str, Any]:
        return {"message": self.message, "code": self.code, "details": self.details}


class ServiceNotFound(SchedulingError):
    status_code = 404


class ProviderNotFound(SchedulingError):
    status_code = 404


class BookingNotFound(SchedulingError):
    status_code = 404


class AddonNotFound(SchedulingError):
    status_code = 404


class InvalidDuration(SchedulingError):
    status_code = 422


class SlotUnavailable(SchedulingError):
    """The requested interval is taken or outside the provider's hours.

    Expected outcome of two clients racing for one slot; not a failure.
    """

    status_code = 409


class ProviderClosed(SlotUnavailable):
    """No opening window on the requested date."""


class IllegalTransition(SchedulingError):
    status_code = 409


class PaymentFailed(SchedulingError):
    status_code = 402


class ValidationError(SchedulingError):
    status_code = 422
