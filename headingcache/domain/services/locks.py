"""Per-(patient, heading) mutual exclusion.

Multi-step index mutations for one patient's heading (merge, revert of a
record, session read-path fill) must not interleave, or a reader can see a
pointer whose canonical record is gone.
"""

import threading
from contextlib import contextmanager
from typing import Iterator, Union


class KeyedLocks:
    """Lazily created re-entrant lock per (patientId, heading)."""

    def __init__(self):
        self._locks: dict[tuple[str, str], threading.RLock] = {}
        self._guard = threading.Lock()

    def get(self, patient_id: Union[int, str], heading: str) -> threading.RLock:
        key = (str(patient_id), heading)
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.RLock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def hold(self, patient_id: Union[int, str], heading: str) -> Iterator[None]:
        with self.get(patient_id, heading):
            yield

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)
