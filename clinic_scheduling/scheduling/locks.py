from contextlib import contextmanager
from datetime import date
from threading import Lock
from typing import Iterator

from clinic_scheduling.scheduling.errors import ConcurrentBookingConflict


BookingKey = tuple[int, date]


class BookingLockTable:
    """One lock per (dentist_id, clinic-local day)."""

    def __init__(self) -> None:
        self._guard = Lock()
        self._locks: dict[BookingKey, Lock] = {}

    def _lock_for(self, key: BookingKey) -> Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = Lock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def hold(self, *keys: BookingKey, timeout: float | None = None) -> Iterator[None]:
        # Sorted acquisition keeps two multi-day holders from deadlocking.
        acquired: list[Lock] = []
        try:
            for key in sorted(set(keys)):
                lock = self._lock_for(key)
                if not lock.acquire(timeout=-1 if timeout is None else timeout):
                    raise ConcurrentBookingConflict(
                        f'Another booking for dentist {key[0]} on {key[1].isoformat()} is in progress.'
                    )
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()
