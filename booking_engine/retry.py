# booking_engine/retry.py

import logging
import time
from dataclasses import dataclass
from typing import Callable, Iterator, Optional, Tuple, Type, TypeVar

from .config import Settings, get_settings

logger = logging.getLogger(__name__)

R = TypeVar("R")


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    backoff_seconds: float = 0.05
    multiplier: float = 2.0

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "RetryPolicy":
        settings = settings or get_settings()
        return cls(
            max_attempts=settings.retry_max_attempts,
            backoff_seconds=settings.retry_backoff_seconds,
            multiplier=settings.retry_backoff_multiplier,
        )

    def delays(self) -> Iterator[float]:
        """Wait before each retry (max_attempts - 1 values)."""
        for attempt in range(self.max_attempts - 1):
            yield self.backoff_seconds * (self.multiplier ** attempt)


def retry_call(
    policy: RetryPolicy,
    fn: Callable[[], R],
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    sleep: Callable[[float], None] = time.sleep,
) -> R:
    """Call ``fn`` until it succeeds or attempts run out.

    Only exceptions in ``retry_on`` are retried; the last one is re-raised.
    """
    delays = policy.delays()
    attempt = 1
    while True:
        try:
            return fn()
        except retry_on as exc:
            wait = next(delays, None)
            if wait is None:
                logger.error(
                    "All %d attempts failed for %s: %s",
                    policy.max_attempts,
                    getattr(fn, "__name__", fn),
                    exc,
                )
                raise
            logger.warning(
                "Attempt %d/%d failed for %s: %s. Retrying in %.2fs",
                attempt,
                policy.max_attempts,
                getattr(fn, "__name__", fn),
                exc,
                wait,
            )
            sleep(wait)
            attempt += 1
