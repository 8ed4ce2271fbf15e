# gridsync/client/view.py
# What one tab believes the shared state is

from __future__ import annotations

import logging
import threading
from typing import Any, Optional

from pydantic import ValidationError as PayloadError

from gridsync.constants import cell_key
from gridsync.schemas.updates import (
    ClearAll,
    ClueDelete,
    CluesBulkUpdate,
    ClueUpdate,
    GridUpdate,
    PresenceUpdate,
    parse_update_payload,
)
from gridsync.state.store import StateStore

logger = logging.getLogger(__name__)

# slot -> value, where a slot is ("cell", key), ("clue", direction, number) or ("all",)
Slots = dict[tuple, Any]


class LocalView:
    """
    Local copy of grid, clues and other users' presence.

    Grid and clue records go through the same StateStore the server uses,
    so applying the log in id order reproduces the server's maps. The tab's
    own presence echoes are dropped.

    The poll thread and the caller's thread both use the view, so every
    read and write holds one lock.
    """

    def __init__(self, own_client_id: str):
        self.own_client_id = own_client_id
        self.store = StateStore()
        self.presence: dict[str, dict[str, Any]] = {}
        self.client_count = 0
        self._lock = threading.RLock()

    def load_snapshot(self, snapshot: dict[str, Any]) -> None:
        with self._lock:
            self.store.load(snapshot.get("grid") or {}, snapshot.get("clues") or {})
            self.presence = {
                p["clientId"]: p
                for p in snapshot.get("userPresence") or []
                if p.get("clientId") and p["clientId"] != self.own_client_id
            }
            self.client_count = int(snapshot.get("clientCount") or 0)

    def apply(self, record: dict[str, Any]) -> bool:
        """Apply one update record. Returns False when it was skipped."""
        try:
            payload = parse_update_payload(record.get("payload"))
        except PayloadError:
            # unknown or malformed records are absorbed, never fatal
            logger.warning("skipping unreadable update id=%s", record.get("id"))
            return False
        return self.apply_payload(payload)

    def apply_payload(self, payload: Any) -> bool:
        with self._lock:
            if isinstance(payload, PresenceUpdate):
                if payload.client_id == self.own_client_id:
                    return False
                if payload.position is None:
                    self.presence.pop(payload.client_id, None)
                else:
                    self.presence[payload.client_id] = {
                        "clientId": payload.client_id,
                        "color": payload.color.value if payload.color is not None else None,
                        "position": payload.position.to_wire(),
                    }
                return True
            self.store.apply_mutation(payload)
            return True

    # --- optimistic edits ---

    def apply_local(self, payload: Any) -> tuple[Slots, Slots]:
        """Apply a local edit and return (before, after) for every slot it wrote."""
        with self._lock:
            before = self._read_slots(payload)
            self.store.apply_mutation(payload)
            return before, self._read_slots(payload)

    def revert(self, undo: tuple[Slots, Slots]) -> None:
        """Undo an edit the server refused.

        A slot is only put back while it still holds what the edit wrote;
        a newer record that landed there in the meantime wins.
        """
        before, after = undo
        with self._lock:
            for slot, old in before.items():
                if self._read(slot) != after[slot]:
                    continue
                self._write(slot, old)

    def _slots(self, payload: Any) -> list[tuple]:
        if isinstance(payload, GridUpdate):
            return [("cell", payload.key)]
        if isinstance(payload, (ClueUpdate, ClueDelete)):
            return [("clue", payload.direction, payload.number)]
        if isinstance(payload, CluesBulkUpdate):
            return [
                ("clue", direction, str(number))
                for direction, entries in payload.clues.items()
                for number in entries
            ]
        if isinstance(payload, ClearAll):
            return [("all",)]
        return []

    def _read_slots(self, payload: Any) -> Slots:
        return {slot: self._read(slot) for slot in self._slots(payload)}

    def _read(self, slot: tuple) -> Any:
        if slot[0] == "cell":
            return self.store.get_cell(slot[1])
        if slot[0] == "clue":
            return self.store.get_clue(slot[1], slot[2])
        return self.store.get_snapshot()

    def _write(self, slot: tuple, value: Any) -> None:
        if slot[0] == "cell":
            self.store.put_cell(slot[1], value)
        elif slot[0] == "clue":
            self.store.put_clue(slot[1], slot[2], value)
        else:
            self.store.load(value["grid"], value["clues"])

    # --- reads ---

    def cell(self, row: int, col: int) -> Optional[dict[str, Any]]:
        with self._lock:
            return self.store.get_cell(cell_key(row, col))

    def clue(self, direction: str, number) -> Optional[str]:
        with self._lock:
            return self.store.get_clue(direction, str(number))

    def others(self) -> dict[str, dict[str, Any]]:
        """Copy of the other tabs' presence, keyed by client id."""
        with self._lock:
            return {client_id: dict(p) for client_id, p in self.presence.items()}

    @property
    def grid(self) -> dict[str, dict[str, Any]]:
        with self._lock:
            return self.store.get_snapshot()["grid"]

    @property
    def clues(self) -> dict[str, dict[str, str]]:
        with self._lock:
            return self.store.get_snapshot()["clues"]
