# gridsync/state/registry.py

from __future__ import annotations

import time
from typing import Optional


class ClientRegistry:
    """Last-seen times of client ids, for an approximate live-user count.

    Separate from PresenceTracker: a tab that only polls is live
    without showing a cursor. Both use the same configured timeout.
    """

    def __init__(self, timeout_seconds: float):
        self.timeout_seconds = timeout_seconds
        self._last_seen: dict[str, float] = {}

    def touch(self, client_id: str, now: Optional[float] = None) -> None:
        self._last_seen[client_id] = time.time() if now is None else now

    def remove(self, client_id: str) -> bool:
        return self._last_seen.pop(client_id, None) is not None

    def sweep(self, now: Optional[float] = None) -> list[str]:
        now = time.time() if now is None else now
        expired = [cid for cid, seen in self._last_seen.items() if now - seen > self.timeout_seconds]
        for cid in expired:
            del self._last_seen[cid]
        return expired

    def count(self, now: Optional[float] = None) -> int:
        """Live cardinality. With `now`, stale entries are swept first."""
        if now is not None:
            self.sweep(now)
        return len(self._last_seen)

    def __contains__(self, client_id: object) -> bool:
        return client_id in self._last_seen
