from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Iterator, List, Set


class InFlightGuard:
    """At most one in-flight exchange per key.

    A second request for a busy key is rejected, not queued.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._in_flight: Set[str] = set()

    def try_admit(self, key: str) -> bool:
        with self._lock:
            if key in self._in_flight:
                return False
            self._in_flight.add(key)
            return True

    def release(self, key: str) -> None:
        with self._lock:
            self._in_flight.discard(key)

    def is_busy(self, key: str) -> bool:
        with self._lock:
            return key in self._in_flight

    def in_flight(self) -> List[str]:
        with self._lock:
            return sorted(self._in_flight)

    @contextmanager
    def admission(self, key: str) -> Iterator[bool]:
        """Yield whether `key` was admitted; an admitted key is released on exit, however the block ends."""
        admitted = self.try_admit(key)
        try:
            yield admitted
        finally:
            if admitted:
                self.release(key)
