from __future__ import annotations

import threading
from collections import deque
from typing import Deque, Iterable, List, Optional

from .outcomes import Outcome


class HistoryBuffer:
    """Thread-safe, most-recent-first store of outcomes with id dedup.

    One writer (the ingestor) pushes; any number of readers take snapshots.
    The oldest entry is evicted once capacity is reached.
    """

    def __init__(self, capacity: int = 20) -> None:
        if capacity < 1:
            raise ValueError("capacity must be positive")
        self._capacity: int = capacity
        # Left end is the most recent outcome
        self._buffer: Deque[Outcome] = deque(maxlen=capacity)
        self._lock = threading.RLock()

    def push(self, outcome: Outcome) -> bool:
        """Store ``outcome`` unless its id is already held. Returns True if stored."""
        with self._lock:
            if any(o.id == outcome.id for o in self._buffer):
                return False
            self._buffer.appendleft(outcome)
            return True

    def seed(self, newest_first: Iterable[Outcome]) -> int:
        """Bulk-load a newest-first batch, oldest pushed first. Returns count stored."""
        batch = list(newest_first)[: self._capacity]
        stored = 0
        with self._lock:
            for outcome in reversed(batch):
                if self.push(outcome):
                    stored += 1
        return stored

    def size(self) -> int:
        with self._lock:
            return len(self._buffer)

    __len__ = size

    def __contains__(self, outcome_id: object) -> bool:
        with self._lock:
            return any(o.id == str(outcome_id) for o in self._buffer)

    def capacity(self) -> int:
        return self._capacity

    def all(self) -> List[Outcome]:
        with self._lock:
            return list(self._buffer)

    def window(self, k: int) -> List[Outcome]:
        """The ``k`` most recent outcomes, most recent first."""
        if k < 0 or k > self._capacity:
            raise ValueError(f"window size must be within 0..{self._capacity}")
        with self._lock:
            return list(self._buffer)[:k]

    def chronological(self, k: int) -> List[Outcome]:
        """Same window as :meth:`window` but oldest first."""
        return list(reversed(self.window(k)))

    def latest(self) -> Optional[Outcome]:
        with self._lock:
            return self._buffer[0] if self._buffer else None

    def clear(self) -> None:
        with self._lock:
            self._buffer.clear()
