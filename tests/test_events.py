"""Event bus and per-provider locks."""

import threading
import time
from datetime import datetime

import pytest

from booking_engine.events import BookingTransitioned, EventBus
from booking_engine.locks import ProviderLocks


def event(to_status="confirmed"):
    return BookingTransitioned(
        booking_id=1,
        provider_id=1,
        from_status="payment_pending",
        to_status=to_status,
        occurred_at=datetime(2030, 1, 7, 9, 0),
    )


class TestEventBus:

    def test_subscribers_receive_events(self):
        bus = EventBus()
        seen = []
        bus.subscribe(seen.append)
        bus.publish(event())
        assert seen == [event()]

    def test_unsubscribe(self):
        bus = EventBus()
        seen = []
        unsubscribe = bus.subscribe(seen.append)
        unsubscribe()
        bus.publish(event())
        assert seen == []

    def test_failing_subscriber_does_not_stop_others(self, caplog):
        bus = EventBus()
        seen = []

        def broken(_):
            raise RuntimeError("sms gateway down")

        bus.subscribe(broken)
        bus.subscribe(seen.append)
        bus.publish(event())

        assert seen == [event()]
        assert "sms gateway down" in caplog.text

    def test_to_dict(self):
        data = event().to_dict()
        assert data["to_status"] == "confirmed"
        assert data["from_status"] == "payment_pending"


class TestProviderLocks:

    def test_same_provider_same_lock(self):
        locks = ProviderLocks()
        assert locks.lock_for(1) is locks.lock_for(1)
        assert locks.lock_for(1) is not locks.lock_for(2)

    def test_different_providers_do_not_block(self):
        locks = ProviderLocks()
        entered = threading.Event()

        with locks.hold(1):
            def other():
                with locks.hold(2):
                    entered.set()

            t = threading.Thread(target=other)
            t.start()
            assert entered.wait(timeout=5)
            t.join()

    def test_same_provider_is_serialized(self):
        locks = ProviderLocks()
        order = []

        def worker(name):
            with locks.hold(7):
                order.append(f"{name}-in")
                time.sleep(0.05)
                order.append(f"{name}-out")

        threads = [threading.Thread(target=worker, args=(n,)) for n in ("a", "b")]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        # no interleaving
        assert order[0][0] == order[1][0]
        assert order[2][0] == order[3][0]
