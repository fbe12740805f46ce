"""
Per-innings writer locks.

Only one append / undo / edit may run against an innings at a time. Within a
process this registry serializes them; across processes the unique
(innings_id, sequence) constraint on ball_events rejects a duplicate sequence.
"""
import threading
from contextlib import contextmanager


class InningsLockRegistry:
    """Hands out one lock per (match_id, innings_number)"""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: dict[tuple[int, int], threading.Lock] = {}

    def lock_for(self, match_id: int, innings_number: int) -> threading.Lock:
        key = (match_id, innings_number)
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    @contextmanager
    def hold(self, match_id: int, innings_number: int):
        lock = self.lock_for(match_id, innings_number)
        with lock:
            yield

    def __len__(self):
        return len(self._locks)


# Process-wide registry used by the ingestion service
innings_locks = InningsLockRegistry()
