"""
Per-project mutual exclusion for dataset mutations.

Every mutating command holds its project's lock for the duration of the
store call, so a move and a delete of the same image (or a label delete
racing a move into that label) run one after the other.
"""

import threading
from collections.abc import Iterator
from contextlib import contextmanager


class ProjectLocks:
    def __init__(self):
        self._locks: dict[str, threading.RLock] = {}
        self._registry_lock = threading.Lock()

    def _lock_for(self, project: str) -> threading.RLock:
        with self._registry_lock:
            lock = self._locks.get(project)
            if lock is None:
                lock = threading.RLock()
                self._locks[project] = lock
            return lock

    @contextmanager
    def hold(self, project: str) -> Iterator[None]:
        """Context manager; the lock is released on every exit path."""
        lock = self._lock_for(project)
        lock.acquire()
        try:
            yield
        finally:
            lock.release()
