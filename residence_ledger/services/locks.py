"""
Per-debtor lock registry.

Allocations for the same debtor run one at a time inside this
process; allocations for different debtors never wait on each
other. Cross-process safety comes from the row lock and version
counter taken inside the unit of work.
"""

import threading
from contextlib import contextmanager


class DebtorLockRegistry:

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}

    def lock_for(self, debtor_id: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(debtor_id)
            if lock is None:
                lock = self._locks[debtor_id] = threading.Lock()
            return lock

    @contextmanager
    def hold(self, debtor_id: str):
        lock = self.lock_for(debtor_id)
        with lock:
            yield


# Shared by every allocation service in the process
debtor_locks = DebtorLockRegistry()
