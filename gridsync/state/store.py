# gridsync/state/store.py
# Authoritative grid and clue maps, mutated only through typed payloads

from __future__ import annotations

import copy
import logging
from typing import Any

from gridsync.constants import DIRECTIONS
from gridsync.schemas.updates import (
    ClearAll,
    ClueDelete,
    CluesBulkUpdate,
    ClueUpdate,
    GridUpdate,
    MutationPayload,
)

logger = logging.getLogger(__name__)


def _empty_clues() -> dict[str, dict[str, str]]:
    return {direction: {} for direction in DIRECTIONS}


class StateStore:
    """
    Grid and clue maps for one shared puzzle.

    The store is a dumb key/value holder: it enforces the cell and clue
    invariants but never checks crossword legality, and it trusts whatever
    direction a payload names. Each payload touches its map entries with
    plain assignments, so a single mutation is never half applied.
    """

    def __init__(self) -> None:
        self._grid: dict[str, dict[str, Any]] = {}
        self._clues: dict[str, dict[str, str]] = _empty_clues()

    def apply_mutation(self, payload: MutationPayload) -> None:
        if isinstance(payload, GridUpdate):
            self._set_cell(payload)
        elif isinstance(payload, ClueUpdate):
            self._set_clue(payload.direction, payload.number, payload.text)
        elif isinstance(payload, ClueDelete):
            self._delete_clue(payload.direction, payload.number)
        elif isinstance(payload, CluesBulkUpdate):
            self._merge_clues(payload.clues)
        elif isinstance(payload, ClearAll):
            self.clear()
        else:
            raise TypeError(f"not a state mutation: {type(payload).__name__}")

    def _set_cell(self, payload: GridUpdate) -> None:
        cell = payload.value
        if cell.is_black:
            # black squares carry neither a letter nor a number
            self._grid[payload.key] = {"value": "", "isBlack": True, "clueNumber": None}
        else:
            self._grid[payload.key] = {
                "value": cell.value,
                "isBlack": False,
                "clueNumber": cell.clue_number,
            }

    def _set_clue(self, direction: str, number: str, text: str) -> None:
        if not text.strip():
            self._delete_clue(direction, number)
            return
        self._clues.setdefault(direction, {})[number] = text

    def _delete_clue(self, direction: str, number: str) -> None:
        self._clues.get(direction, {}).pop(number, None)

    def _merge_clues(self, clues: dict[str, dict[str, str]]) -> None:
        """Independent write per entry; blank texts are skipped, not deleted."""
        for direction, entries in clues.items():
            for number, text in entries.items():
                if not text.strip():
                    logger.debug("bulk clue import skipped blank %s/%s", direction, number)
                    continue
                self._clues.setdefault(direction, {})[str(number)] = text

    def clear(self) -> None:
        self._grid.clear()
        self._clues = _empty_clues()

    def load(self, grid: dict[str, dict[str, Any]], clues: dict[str, dict[str, str]]) -> None:
        """Replace everything with a snapshot (used by sync clients)."""
        self._grid = copy.deepcopy(grid)
        self._clues = _empty_clues()
        for direction, entries in copy.deepcopy(clues).items():
            self._clues[direction] = entries

    def put_cell(self, key: str, cell: dict[str, Any] | None) -> None:
        """Set one cell exactly as given; None removes it."""
        if cell is None:
            self._grid.pop(key, None)
        else:
            self._grid[key] = dict(cell)

    def put_clue(self, direction: str, number: str, text: str | None) -> None:
        """Set one clue exactly as given; None removes it."""
        if text is None:
            self._delete_clue(direction, str(number))
        else:
            self._clues.setdefault(direction, {})[str(number)] = text

    # --- reads ---

    def get_cell(self, key: str) -> dict[str, Any] | None:
        cell = self._grid.get(key)
        return dict(cell) if cell is not None else None

    def get_clue(self, direction: str, number: str) -> str | None:
        return self._clues.get(direction, {}).get(str(number))

    def get_snapshot(self) -> dict[str, Any]:
        """Deep copy of grid and clues, safe to hand to another thread."""
        return {
            "grid": copy.deepcopy(self._grid),
            "clues": copy.deepcopy(self._clues),
        }
