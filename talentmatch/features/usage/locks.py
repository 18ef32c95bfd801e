"""Per-user serialization for ledger and entitlement writes."""

import threading
from contextlib import contextmanager
from typing import Dict


class UserLockRegistry:
    """
    One lock per user plus a count of in-flight (admitted, uncommitted)
    requests. Different users never contend.

    A user's lock is dropped once nobody holds or waits on it and no
    reservation is outstanding, so the registry only tracks active users.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[int, threading.RLock] = {}
        self._holders: Dict[int, int] = {}
        self._reservations: Dict[int, int] = {}

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    def _evict_if_idle(self, user_id: int) -> None:
        # Caller holds _guard
        if user_id not in self._holders and user_id not in self._reservations:
            self._locks.pop(user_id, None)

    @contextmanager
    def hold(self, user_id: int):
        with self._guard:
            lock = self._locks.get(user_id)
            if lock is None:
                lock = threading.RLock()
                self._locks[user_id] = lock
            self._holders[user_id] = self._holders.get(user_id, 0) + 1
        try:
            with lock:
                yield
        finally:
            with self._guard:
                remaining = self._holders[user_id] - 1
                if remaining:
                    self._holders[user_id] = remaining
                else:
                    del self._holders[user_id]
                    self._evict_if_idle(user_id)

    def pending(self, user_id: int) -> int:
        with self._guard:
            return self._reservations.get(user_id, 0)

    def reserve(self, user_id: int) -> int:
        with self._guard:
            count = self._reservations.get(user_id, 0) + 1
            self._reservations[user_id] = count
            return count

    def release(self, user_id: int) -> int:
        with self._guard:
            count = self._reservations.get(user_id, 0) - 1
            if count <= 0:
                self._reservations.pop(user_id, None)
                self._evict_if_idle(user_id)
                return 0
            self._reservations[user_id] = count
            return count
