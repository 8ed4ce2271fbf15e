# gridsync/state/context.py
# One object owning all shared server state, handed to every request handler

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, Optional

from gridsync.constants import PresenceColor
from gridsync.schemas.updates import MutationPayload, PresenceUpdate
from gridsync.state.presence import PresenceTracker
from gridsync.state.registry import ClientRegistry
from gridsync.state.store import StateStore
from gridsync.state.update_log import DEFAULT_CAPACITY, UpdateLog, UpdateRecord

logger = logging.getLogger(__name__)

DEFAULT_CLIENT_TIMEOUT = 10.0


class SyncContext:
    """
    Shared state of one running server: store, update log, presence tracker
    and client registry behind a single coarse lock.

    Every public method takes the lock for its whole body, so a mutation and
    the log record describing it are always observed together.
    """

    def __init__(
        self,
        client_timeout_seconds: float = DEFAULT_CLIENT_TIMEOUT,
        log_capacity: int = DEFAULT_CAPACITY,
        clock: Callable[[], float] = time.time,
    ):
        self.client_timeout_seconds = client_timeout_seconds
        self.clock = clock
        self.store = StateStore()
        self.log = UpdateLog(capacity=log_capacity)
        self.presence = PresenceTracker(timeout_seconds=client_timeout_seconds)
        self.registry = ClientRegistry(timeout_seconds=client_timeout_seconds)
        self._lock = threading.RLock()
        self._last_reported_count: Optional[int] = None

    @classmethod
    def from_settings(cls, settings) -> "SyncContext":
        return cls(
            client_timeout_seconds=settings.CLIENT_TIMEOUT_SECONDS,
            log_capacity=settings.UPDATE_LOG_CAPACITY,
        )

    # --- writes ---

    def apply_update(self, payload: Any, client_id: Optional[str] = None) -> UpdateRecord:
        """Apply one validated payload and log it. Presence payloads become heartbeats."""
        if isinstance(payload, PresenceUpdate):
            identity = client_id or payload.client_id
            if not identity:
                raise ValueError("presence-update needs a client id")
            return self.heartbeat(identity, payload.color, payload.position)
        return self._mutate(payload, client_id)

    def _mutate(self, payload: MutationPayload, client_id: Optional[str]) -> UpdateRecord:
        with self._lock:
            now = self.clock()
            if client_id:
                self.registry.touch(client_id, now)
                self.presence.touch(client_id, now)
            self.store.apply_mutation(payload)
            record = self.log.append(payload, client_id=client_id, now=now)
            logger.debug("update %s applied: %s", record.id, payload.type)
            return record

    def heartbeat(
        self,
        client_id: str,
        color: Optional[PresenceColor],
        position: Any,
    ) -> UpdateRecord:
        with self._lock:
            now = self.clock()
            self.registry.touch(client_id, now)
            self.presence.heartbeat(client_id, color, position, now)
            payload = PresenceUpdate(client_id=client_id, color=color, position=position)
            return self.log.append(payload, client_id=client_id, now=now)

    def disconnect(self, client_id: str) -> Optional[UpdateRecord]:
        """Forget a client. Returns the "left" record when it had a presence."""
        with self._lock:
            self.registry.remove(client_id)
            if not self.presence.remove(client_id):
                return None
            payload = PresenceUpdate(client_id=client_id, color=None, position=None)
            return self.log.append(payload, client_id=client_id, now=self.clock())

    def sweep(self) -> tuple[list[str], list[str]]:
        """Evict timed-out presence and liveness entries.

        Each evicted presence is announced in the log with a null position.
        Returns (presence_evicted, registry_evicted).
        """
        with self._lock:
            now = self.clock()
            gone = self.presence.sweep(now)
            for client_id in gone:
                payload = PresenceUpdate(client_id=client_id, color=None, position=None)
                self.log.append(payload, client_id=None, now=now)
            stale = self.registry.sweep(now)
            if gone or stale:
                logger.info("sweep evicted presence=%s clients=%s", gone, stale)
            return gone, stale

    def touch(self, client_id: Optional[str]) -> None:
        if not client_id:
            return
        with self._lock:
            self.registry.touch(client_id, self.clock())

    # --- reads ---

    def snapshot(self, client_id: Optional[str] = None) -> dict[str, Any]:
        """Full state for a newly synchronizing client."""
        self.touch(client_id)
        self.sweep()
        with self._lock:
            state = self.store.get_snapshot()
            state["clientCount"] = self.registry.count()
            state["userPresence"] = [r.to_dict() for r in self.presence.snapshot()]
            return state

    def updates_since(self, since_id: int, client_id: Optional[str] = None) -> dict[str, Any]:
        """Records after a cursor plus the live client count, reported out of band."""
        self.touch(client_id)
        self.sweep()
        with self._lock:
            records = self.log.query(since_id)
            count = self.registry.count()
            if count != self._last_reported_count:
                logger.info("live client count %s -> %s", self._last_reported_count, count)
                self._last_reported_count = count
            return {
                "updates": [r.to_dict() for r in records],
                "liveClientCount": count,
            }

    def live_client_count(self) -> int:
        with self._lock:
            return self.registry.count()

    def stats(self) -> dict[str, int]:
        """One consistent reading for health checks and gauges, taken after a sweep."""
        with self._lock:
            self.sweep()
            return {
                "latest_id": self.log.latest_id,
                "retained": len(self.log),
                "live_clients": self.registry.count(),
                "presence_records": len(self.presence),
            }
