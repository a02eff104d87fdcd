from __future__ import annotations

from contextlib import contextmanager
from threading import Lock
from typing import Dict, Hashable, Iterator, Tuple

LockKey = Tuple[Hashable, ...]


class AggregateLocks:
    """
    In-process mutual exclusion per aggregate.

    Keys look like ("round", 3), ("batch", 17), ("buyer", 3, 42) or
    ("roster",). Several keys are always taken in sorted order so two
    writers touching overlapping aggregates cannot deadlock.
    """

    def __init__(self) -> None:
        self._guard = Lock()
        self._locks: Dict[LockKey, Lock] = {}

    def _lock_for(self, key: LockKey) -> Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = Lock()
                self._locks[key] = lock
            return lock

    @staticmethod
    def _sort_key(key: LockKey) -> Tuple[str, ...]:
        return tuple(str(part) for part in key)

    @contextmanager
    def hold(self, *keys: LockKey) -> Iterator[None]:
        ordered = sorted(set(keys), key=self._sort_key)
        acquired = []
        try:
            for key in ordered:
                lock = self._lock_for(key)
                lock.acquire()
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()

    def clear(self) -> None:
        """Forget idle locks, e.g. after a game reset."""
        with self._guard:
            for key in [k for k, lock in self._locks.items() if not lock.locked()]:
                self._locks.pop(key, None)

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


aggregate_locks = AggregateLocks()
