"""
Inbound event deduplication.

Slack retries deliveries it thinks were lost, so the same event id can
arrive more than once. Ids are remembered for a fixed window and then
forgotten.
"""

import threading
import time
from typing import Callable, Dict


class EventDeduplicator:
    """
    TTL set of recently seen event ids.

    ``check_and_add`` is atomic: of two concurrent arrivals of the same id,
    exactly one sees it as new.

    Args:
        ttl_seconds: How long an id is remembered
        clock: Monotonic time source (injectable for tests)
    """

    def __init__(self, ttl_seconds: float = 120.0, clock: Callable[[], float] = time.monotonic):
        self._ttl = ttl_seconds
        self._clock = clock
        self._seen: Dict[str, float] = {}
        self._lock = threading.Lock()

    def check_and_add(self, event_id: str) -> bool:
        """Record ``event_id``; True if it was not seen within the window"""
        with self._lock:
            now = self._clock()
            self._evict(now)
            if event_id in self._seen:
                return False
            self._seen[event_id] = now
            return True

    def __len__(self) -> int:
        with self._lock:
            self._evict(self._clock())
            return len(self._seen)

    def _evict(self, now: float) -> None:
        expired = [eid for eid, seen_at in self._seen.items() if now - seen_at >= self._ttl]
        for eid in expired:
            del self._seen[eid]
