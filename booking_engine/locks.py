# booking_engine/locks.py

import logging
import threading
from contextlib import contextmanager
from typing import Dict, Iterator

logger = logging.getLogger(__name__)


class ProviderLocks:
    """One mutex per provider.

    Writes for the same provider are serialized; different providers only
    share the registry guard for the dict lookup.
    """

    def __init__(self) -> None:
        self._locks: Dict[int, threading.Lock] = {}
        self._guard = threading.Lock()

    def lock_for(self, provider_id: int) -> threading.Lock:
        lock = self._locks.get(provider_id)
        if lock is not None:
            return lock
        with self._guard:
            lock = self._locks.get(provider_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[provider_id] = lock
            return lock

    @contextmanager
    def hold(self, provider_id: int) -> Iterator[None]:
        lock = self.lock_for(provider_id)
        with lock:
            logger.debug("Holding booking lock for provider %s", provider_id)
            yield


provider_locks = ProviderLocks()
