"""Per-invoice serialization of read-modify-write updates.

Invoices are independent, so each invoice id gets its own lock; there is no
cross-invoice locking. Locks are reference counted and dropped once nobody
holds or waits on them.
"""

import threading
from contextlib import contextmanager

from protean.utils.globals import current_domain

from billing.utils.logging import add_context, clear_context


class KeyedLocks:
    """A lock per key, created on demand."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}
        self._users: dict[str, int] = {}

    @contextmanager
    def hold(self, key: str):
        key = str(key)
        with self._guard:
            lock = self._locks.setdefault(key, threading.Lock())
            self._users[key] = self._users.get(key, 0) + 1
        lock.acquire()
        try:
            yield
        finally:
            lock.release()
            with self._guard:
                self._users[key] -= 1
                if self._users[key] == 0:
                    del self._users[key]
                    del self._locks[key]

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


_invoice_locks = KeyedLocks()


@contextmanager
def invoice_lock(invoice_id: str):
    """Hold the update lock for ``invoice_id`` for the duration of the block."""
    with _invoice_locks.hold(f"invoice:{invoice_id}"):
        yield


@contextmanager
def named_lock(name: str):
    """Lock for non-invoice resources such as a webhook event id or number sequence."""
    with _invoice_locks.hold(name):
        yield


@contextmanager
def invoice_update(invoice_id: str):
    """Hold ``invoice_id``'s update lock with the id bound to log records."""
    with invoice_lock(invoice_id):
        add_context(invoice_id=str(invoice_id))
        try:
            yield
        finally:
            clear_context("invoice_id")


def process_locked(invoice_id: str, command):
    """Run ``command`` synchronously while holding ``invoice_id``'s update lock.

    The lock spans the whole unit of work, so the commit has landed before
    the next writer for the same invoice loads it.
    """
    with invoice_update(invoice_id):
        return current_domain.process(command, asynchronous=False)
