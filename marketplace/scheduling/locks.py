from contextlib import contextmanager
from threading import Lock
from typing import Iterator
from weakref import WeakValueDictionary


class SpecialistLockRegistry:
    """Hands out one mutex per specialist so bookings for them run one at a time.

    Entries live only while some caller holds a reference to the lock.
    """

    def __init__(self) -> None:
        self._registry_lock = Lock()
        self._locks: WeakValueDictionary[int, Lock] = WeakValueDictionary()

    def _lock_for(self, specialist_id: int) -> Lock:
        with self._registry_lock:
            lock = self._locks.get(specialist_id)
            if lock is None:
                lock = Lock()
                self._locks[specialist_id] = lock
            return lock

    @contextmanager
    def hold(self, specialist_id: int) -> Iterator[None]:
        lock = self._lock_for(specialist_id)
        with lock:
            yield
