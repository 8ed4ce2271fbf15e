# gridsync/client/sync_client.py
# Polling client: one instance per tab

from __future__ import annotations

import logging
import threading
import time
import uuid
from typing import Any, Callable, Optional

import requests

from gridsync.client.view import LocalView
from gridsync.constants import CLIENT_ID_HEADER, GRID_SIZE, PresenceColor, cell_key
from gridsync.schemas.updates import (
    POSITION_ADAPTER,
    CellPosition,
    CellValue,
    ClearAll,
    ClueDelete,
    ClueRef,
    CluePosition,
    CluesBulkUpdate,
    ClueUpdate,
    GridUpdate,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 5.0


class SyncError(Exception):
    """The server answered, but not with success."""

    def __init__(self, status_code: int, body: Any = None):
        self.status_code = status_code
        self.body = body
        super().__init__(f"server returned {status_code}: {body}")


class SyncClient:
    """
    Keeps a LocalView in step with the server's update log.

    `cursor` is the highest update id applied locally. It only ever moves
    forward, so a response that lists records out of order can never rewind
    it. Local edits are applied to the view at once and pushed immediately;
    their echoes come back through the log and re-apply harmlessly, which
    keeps every tab's view in the server's global order.

    `session` is anything with requests-style get/post (a requests.Session by
    default).
    """

    def __init__(
        self,
        base_url: str,
        client_id: Optional[str] = None,
        color: PresenceColor | str = PresenceColor.BLUE,
        session: Any = None,
        poll_interval: float = 1.0,
        heartbeat_interval: float = 3.0,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        on_update: Optional[Callable[[dict[str, Any]], None]] = None,
        on_status: Optional[Callable[[bool], None]] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.client_id = client_id or uuid.uuid4().hex
        self.color = PresenceColor(color)
        self.session = session if session is not None else requests.Session()
        self.poll_interval = poll_interval
        self.heartbeat_interval = heartbeat_interval
        self.timeout = timeout
        self.on_update = on_update
        self.on_status = on_status

        self.view = LocalView(self.client_id)
        self.cursor = 0
        self.connected = False
        self.position: Any = None
        self._last_heartbeat = 0.0
        self._stashed_numbers: dict[str, int] = {}
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    # --- transport ---

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def _headers(self) -> dict[str, str]:
        return {CLIENT_ID_HEADER: self.client_id}

    def _check(self, response) -> Any:
        try:
            body = response.json()
        except ValueError:
            body = None
        if response.status_code >= 400:
            raise SyncError(response.status_code, body)
        if not isinstance(body, dict):
            # e.g. a proxy's HTML page answering for the server
            raise SyncError(response.status_code, "response body is not a JSON object")
        return body

    def _get(self, path: str, params: Optional[dict[str, Any]] = None) -> Any:
        response = self.session.get(
            self._url(path), params=params, headers=self._headers(), timeout=self.timeout
        )
        return self._check(response)

    def _post(self, path: str, body: dict[str, Any]) -> Any:
        response = self.session.post(
            self._url(path), json=body, headers=self._headers(), timeout=self.timeout
        )
        return self._check(response)

    def _set_connected(self, connected: bool) -> None:
        if connected != self.connected:
            self.connected = connected
            logger.info("client %s %s", self.client_id, "connected" if connected else "connection error")
            if self.on_status is not None:
                self.on_status(connected)

    # --- sync ---

    def load_initial_state(self) -> None:
        snapshot = self._get("/api/state")
        self.view.load_snapshot(snapshot)
        self._set_connected(True)

    def poll_once(self) -> list[dict[str, Any]]:
        """Fetch and apply everything after the cursor. Returns the records seen."""
        body = self._get("/api/updates", params={"since": self.cursor})
        updates = body.get("updates") or []
        records = [r for r in updates if isinstance(r, dict) and isinstance(r.get("id"), int)]
        if len(records) != len(updates):
            logger.warning("skipping %d update records without an id", len(updates) - len(records))
        records.sort(key=lambda r: r["id"])
        for record in records:
            self.view.apply(record)
            self.advance_cursor(record["id"])
            if self.on_update is not None:
                self.on_update(record)
        if body.get("liveClientCount") is not None:
            self.view.client_count = int(body["liveClientCount"])
        self._set_connected(True)
        return records

    def advance_cursor(self, record_id: int) -> int:
        self.cursor = max(self.cursor, int(record_id))
        return self.cursor

    def push(self, payload) -> bool:
        """Apply locally, then send. Returns False when the edit did not reach the server.

        An unreachable server leaves the edit in the view. An edit the server
        refuses is taken back out.
        """
        undo = self.view.apply_local(payload)
        try:
            self._post("/api/update", payload.to_wire())
        except requests.RequestException as e:
            logger.warning("failed to send %s: %s", payload.type, e)
            self._set_connected(False)
            return False
        except SyncError as e:
            logger.warning("server refused %s: %s", payload.type, e)
            self.view.revert(undo)
            return False
        return True

    # --- edits ---

    def _check_bounds(self, row: int, col: int) -> None:
        if not (0 <= row < GRID_SIZE and 0 <= col < GRID_SIZE):
            raise ValueError(f"cell ({row}, {col}) is outside the {GRID_SIZE}x{GRID_SIZE} grid")

    def set_letter(self, row: int, col: int, letter: str) -> bool:
        """Type (or erase, with "") a letter. The cell keeps its clue number."""
        self._check_bounds(row, col)
        letter = (letter or "").strip().upper()
        if len(letter) > 1:
            raise ValueError("a cell holds at most one letter")
        current = self.view.cell(row, col) or {}
        if current.get("isBlack"):
            raise ValueError(f"cell ({row}, {col}) is black")
        cell = CellValue(value=letter, is_black=False, clue_number=current.get("clueNumber"))
        return self.push(GridUpdate(key=cell_key(row, col), value=cell))

    def toggle_black(self, row: int, col: int) -> bool:
        """Blacken a white cell or restore a black one.

        The clue number a cell loses when it turns black is remembered here
        and sent back on the toggle that whitens it again.
        """
        self._check_bounds(row, col)
        key = cell_key(row, col)
        current = self.view.cell(row, col) or {}
        if current.get("isBlack"):
            cell = CellValue(value="", is_black=False, clue_number=self._stashed_numbers.get(key))
            sent = self.push(GridUpdate(key=key, value=cell))
            if sent:
                self._stashed_numbers.pop(key, None)
            return sent
        if current.get("clueNumber") is not None:
            self._stashed_numbers[key] = current["clueNumber"]
        return self.push(GridUpdate(key=key, value=CellValue(value="", is_black=True)))

    def set_clue(self, direction: str, number, text: str) -> bool:
        return self.push(ClueUpdate(direction=direction, number=number, text=text))

    def delete_clue(self, direction: str, number) -> bool:
        return self.push(ClueDelete(direction=direction, number=number))

    def import_clues(self, clues: dict[str, dict[Any, str]]) -> bool:
        """Merge many clues at once. Blank texts are skipped, not deleted."""
        normalized = {
            direction: {str(number): text for number, text in entries.items()}
            for direction, entries in clues.items()
        }
        return self.push(CluesBulkUpdate(clues=normalized))

    def clear_all(self) -> bool:
        self._stashed_numbers.clear()
        return self.push(ClearAll())

    # --- presence ---

    def move_to(self, position) -> bool:
        """Announce the cell or clue this tab is focused on (None for idle)."""
        if isinstance(position, dict):
            position = POSITION_ADAPTER.validate_python(position)
        self.position = position
        return self.heartbeat()

    def focus_cell(self, row: int, col: int, direction: Optional[str] = None, number=None) -> bool:
        self._check_bounds(row, col)
        clue = ClueRef(direction=direction, number=number) if direction and number is not None else None
        return self.move_to(CellPosition(row=row, col=col, clue=clue))

    def focus_clue(self, direction: str, number) -> bool:
        return self.move_to(CluePosition(direction=direction, number=number))

    def go_idle(self) -> bool:
        return self.move_to(None)

    def heartbeat(self) -> bool:
        body = {
            "clientId": self.client_id,
            "color": self.color.value,
            "position": self.position.to_wire() if self.position is not None else None,
        }
        try:
            self._post("/api/presence", body)
        except requests.RequestException as e:
            logger.warning("presence heartbeat failed: %s", e)
            self._set_connected(False)
            return False
        self._last_heartbeat = time.monotonic()
        return True

    def disconnect(self) -> None:
        """Stop polling and tell the server this tab is gone."""
        self.stop()
        try:
            self._post("/api/disconnect", {"clientId": self.client_id})
        except (requests.RequestException, SyncError) as e:
            logger.warning("disconnect not delivered: %s", e)

    # --- poll loop ---

    def tick(self) -> None:
        """One scheduled step: keep presence alive, then poll. Never raises."""
        try:
            if self.position is not None and time.monotonic() - self._last_heartbeat >= self.heartbeat_interval:
                self.heartbeat()
            self.poll_once()
        except (requests.RequestException, SyncError, ValueError) as e:
            logger.warning("poll failed: %s", e)
            self._set_connected(False)
        except Exception as e:
            # a bad response must never end the poll loop
            logger.exception("unexpected poll failure: %s", e)
            self._set_connected(False)

    def _run(self) -> None:
        try:
            self.load_initial_state()
        except (requests.RequestException, SyncError, ValueError) as e:
            logger.warning("initial state load failed: %s", e)
            self._set_connected(False)
        except Exception as e:
            logger.exception("unexpected initial load failure: %s", e)
            self._set_connected(False)
        # two quick polls right after load, then the fixed interval
        self.tick()
        self.tick()
        while not self._stop.wait(self.poll_interval):
            self.tick()

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name=f"gridsync-{self.client_id[:8]}", daemon=True)
        self._thread.start()

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop.set()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout)
        self._thread = None
