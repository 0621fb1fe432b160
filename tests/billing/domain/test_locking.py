"""Tests for per-key update locks."""

import threading
import time

from billing.invoice.locking import KeyedLocks


def test_same_key_is_serialized():
    locks = KeyedLocks()
    active = []
    overlaps = []

    def worker():
        with locks.hold("invoice-1"):
            active.append(1)
            if len(active) > 1:
                overlaps.append(True)
            time.sleep(0.01)
            active.pop()

    threads = [threading.Thread(target=worker) for _ in range(5)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert overlaps == []
    assert len(locks) == 0


def test_different_keys_do_not_block_each_other():
    locks = KeyedLocks()
    with locks.hold("invoice-1"):
        acquired = threading.Event()

        def other():
            with locks.hold("invoice-2"):
                acquired.set()

        thread = threading.Thread(target=other)
        thread.start()
        thread.join(timeout=1)
        assert acquired.is_set()
        assert len(locks) == 1


def test_lock_is_released_on_error():
    locks = KeyedLocks()
    try:
        with locks.hold("invoice-1"):
            raise RuntimeError("boom")
    except RuntimeError:
        pass
    assert len(locks) == 0
    with locks.hold("invoice-1"):
        assert len(locks) == 1
