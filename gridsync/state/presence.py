# gridsync/state/presence.py
# Ephemeral per-client cursor/focus records with timeout eviction

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Optional

from gridsync.constants import PresenceColor


@dataclass
class PresenceRecord:
    client_id: str
    color: Optional[PresenceColor]
    position: Any
    last_seen: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "clientId": self.client_id,
            "color": self.color.value if self.color is not None else None,
            "position": self.position.to_wire() if self.position is not None else None,
            "lastSeen": int(self.last_seen * 1000),
        }


class PresenceTracker:
    """
    Presence records keyed by client id.

    A client is Active while it has a record and Absent otherwise; a null
    heartbeat, `remove` or a sweep moves it back to Absent and the next
    non-null heartbeat makes it Active again. Two tabs sharing an id share a
    record, last heartbeat wins.
    """

    def __init__(self, timeout_seconds: float):
        self.timeout_seconds = timeout_seconds
        self._records: dict[str, PresenceRecord] = {}

    def heartbeat(
        self,
        client_id: str,
        color: Optional[PresenceColor],
        position: Any,
        now: Optional[float] = None,
    ) -> Optional[PresenceRecord]:
        """Upsert, or delete when position is None. Returns the live record."""
        if position is None:
            self._records.pop(client_id, None)
            return None
        record = PresenceRecord(
            client_id=client_id,
            color=color,
            position=position,
            last_seen=time.time() if now is None else now,
        )
        self._records[client_id] = record
        return record

    def touch(self, client_id: str, now: Optional[float] = None) -> bool:
        """Refresh last_seen of an existing record; never creates one."""
        record = self._records.get(client_id)
        if record is None:
            return False
        record.last_seen = time.time() if now is None else now
        return True

    def remove(self, client_id: str) -> bool:
        return self._records.pop(client_id, None) is not None

    def sweep(self, now: Optional[float] = None) -> list[str]:
        """Evict records idle for longer than the timeout; returns their ids."""
        now = time.time() if now is None else now
        expired = [
            client_id
            for client_id, record in self._records.items()
            if now - record.last_seen > self.timeout_seconds
        ]
        for client_id in expired:
            del self._records[client_id]
        return expired

    def get(self, client_id: str) -> Optional[PresenceRecord]:
        return self._records.get(client_id)

    def snapshot(self) -> list[PresenceRecord]:
        return list(self._records.values())

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, client_id: object) -> bool:
        return client_id in self._records
