# gridsync/state/update_log.py
# Bounded, monotonically numbered log of every accepted update

from __future__ import annotations

import time
from collections import deque
from dataclasses import dataclass
from typing import Any, Optional

DEFAULT_CAPACITY = 100


@dataclass(frozen=True)
class UpdateRecord:
    """One log entry. `timestamp` is epoch seconds."""

    id: int
    timestamp: float
    payload: Any
    client_id: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": int(self.timestamp * 1000),
            "clientId": self.client_id,
            "payload": self.payload.to_wire(),
        }


class UpdateLog:
    """
    Append-only ring buffer of update records.

    Ids start at 1 and grow by exactly one per append; eviction drops the
    oldest records but never rewinds the counter, so an id is never reused.
    A cursor older than the retained window silently misses what fell off.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self._records: deque[UpdateRecord] = deque(maxlen=capacity)
        self._last_id = 0

    def append(self, payload: Any, client_id: Optional[str] = None, now: Optional[float] = None) -> UpdateRecord:
        self._last_id += 1
        record = UpdateRecord(
            id=self._last_id,
            timestamp=time.time() if now is None else now,
            payload=payload,
            client_id=client_id,
        )
        self._records.append(record)  # deque(maxlen) evicts the oldest
        return record

    def query(self, since_id: int) -> list[UpdateRecord]:
        """Records with id > since_id, ascending."""
        if since_id >= self._last_id:
            return []
        return [r for r in self._records if r.id > since_id]

    @property
    def latest_id(self) -> int:
        """Id of the newest record ever appended (0 when empty)."""
        return self._last_id

    @property
    def oldest_id(self) -> Optional[int]:
        return self._records[0].id if self._records else None

    def __len__(self) -> int:
        return len(self._records)
