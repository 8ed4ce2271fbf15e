# tests/unit/test_sync_context.py
# Unit tests for request-level operations on the shared SyncContext

import threading

import pytest

from gridsync.constants import PresenceColor
from gridsync.schemas.updates import (
    CellPosition,
    CellValue,
    ClearAll,
    ClueUpdate,
    GridUpdate,
    PresenceUpdate,
)
from gridsync.state.context import SyncContext

TIMEOUT = 10.0


def _letter(key="0-0", letter="A"):
    return GridUpdate(key=key, value=CellValue(value=letter))


class TestMutations:

    def test_mutation_is_logged_with_its_origin(self, context):
        record = context.apply_update(_letter(), client_id="tab-a")
        assert record.id == 1
        assert record.client_id == "tab-a"
        assert context.store.get_cell("0-0")["value"] == "A"
        assert "tab-a" in context.registry

    def test_mutation_without_client_id_is_accepted(self, context):
        context.apply_update(_letter())
        assert context.log.latest_id == 1
        assert context.live_client_count() == 0

    def test_clear_all_is_a_single_record(self, context):
        for col in range(5):
            context.apply_update(_letter(f"0-{col}"))
        context.apply_update(ClueUpdate(direction="across", number="1", text="X"))
        context.apply_update(ClearAll())
        body = context.updates_since(6)
        assert [u["payload"]["type"] for u in body["updates"]] == ["clear-all"]
        assert context.snapshot()["grid"] == {}

    def test_mutation_refreshes_existing_presence(self, context, clock):
        context.heartbeat("tab-a", PresenceColor.RED, CellPosition(row=0, col=0))
        clock.advance(8)
        context.apply_update(_letter(), client_id="tab-a")
        clock.advance(8)
        context.sweep()
        assert "tab-a" in context.presence

    def test_presence_payload_through_update_becomes_heartbeat(self, context):
        payload = PresenceUpdate(client_id="tab-b", color=PresenceColor.GREEN, position=CellPosition(row=4, col=4))
        record = context.apply_update(payload)
        assert record.payload.client_id == "tab-b"
        assert context.presence.get("tab-b").color is PresenceColor.GREEN

    def test_presence_payload_needs_an_identity(self, context):
        with pytest.raises(ValueError):
            context.apply_update(PresenceUpdate(position=None))


class TestPresence:

    def test_heartbeat_is_logged_for_other_clients(self, context):
        context.heartbeat("tab-a", PresenceColor.RED, CellPosition(row=2, col=3))
        body = context.updates_since(0)
        payload = body["updates"][0]["payload"]
        assert payload["type"] == "presence-update"
        assert payload["clientId"] == "tab-a"
        assert payload["position"]["row"] == 2

    def test_null_heartbeat_removes_and_is_logged(self, context):
        context.heartbeat("tab-a", PresenceColor.RED, CellPosition(row=2, col=3))
        context.heartbeat("tab-a", PresenceColor.RED, None)
        assert "tab-a" not in context.presence
        last = context.updates_since(1)["updates"][-1]
        assert last["payload"]["position"] is None

    def test_disconnect_removes_presence_and_liveness(self, context):
        context.heartbeat("tab-a", PresenceColor.RED, CellPosition(row=2, col=3))
        record = context.disconnect("tab-a")
        assert record is not None and record.payload.position is None
        assert "tab-a" not in context.presence
        assert "tab-a" not in context.registry

    def test_disconnect_without_presence_logs_nothing(self, context):
        context.touch("tab-a")
        assert context.disconnect("tab-a") is None
        assert context.log.latest_id == 0

    def test_sweep_announces_timed_out_presence(self, context, clock):
        context.heartbeat("tab-a", PresenceColor.RED, CellPosition(row=0, col=0))
        clock.advance(TIMEOUT + 1)
        gone, stale = context.sweep()
        assert gone == ["tab-a"]
        assert stale == ["tab-a"]
        last = context.updates_since(1)["updates"][-1]
        assert last["payload"] == {
            "type": "presence-update",
            "clientId": "tab-a",
            "color": None,
            "position": None,
        }


class TestReads:

    def test_snapshot_shape(self, context):
        context.apply_update(_letter(), client_id="tab-a")
        context.heartbeat("tab-b", PresenceColor.BLUE, CellPosition(row=1, col=1))
        snapshot = context.snapshot("tab-c")
        assert set(snapshot) == {"grid", "clues", "clientCount", "userPresence"}
        assert snapshot["clientCount"] == 3
        assert [p["clientId"] for p in snapshot["userPresence"]] == ["tab-b"]

    def test_poll_scenario_between_two_clients(self, context):
        context.apply_update(GridUpdate(key="0-0", value=CellValue(value="A", is_black=False)), client_id="A")
        first = context.updates_since(0, client_id="B")
        assert len(first["updates"]) == 1
        record = first["updates"][0]
        assert record["payload"]["key"] == "0-0"
        assert record["payload"]["value"]["value"] == "A"
        assert record["payload"]["value"]["isBlack"] is False
        cursor = record["id"]
        assert context.updates_since(cursor, client_id="B")["updates"] == []

    def test_live_count_is_out_of_band(self, context):
        context.touch("a")
        context.touch("b")
        body = context.updates_since(0)
        assert body["updates"] == []
        assert body["liveClientCount"] == 2

    def test_count_drops_after_timeout(self, context, clock):
        context.touch("a")
        clock.advance(TIMEOUT + 1)
        assert context.updates_since(0)["liveClientCount"] == 0


def test_concurrent_appends_get_unique_contiguous_ids():
    context = SyncContext(client_timeout_seconds=TIMEOUT, log_capacity=1000)
    ids = []
    ids_lock = threading.Lock()

    def writer(n):
        for i in range(50):
            record = context.apply_update(_letter(f"{n}-{i % 15}", "A"), client_id=f"w{n}")
            with ids_lock:
                ids.append(record.id)

    threads = [threading.Thread(target=writer, args=(n,)) for n in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(ids) == list(range(1, 401))
    assert [r.id for r in context.log.query(0)] == list(range(1, 401))


class TestStats:

    def test_stats_reflect_log_and_clients(self, context):
        context.apply_update(_letter(), client_id="a")
        context.heartbeat("b", PresenceColor.RED, CellPosition(row=0, col=0))
        assert context.stats() == {
            "latest_id": 2,
            "retained": 2,
            "live_clients": 2,
            "presence_records": 1,
        }

    def test_stats_sweep_before_reading(self, context, clock):
        context.heartbeat("a", PresenceColor.RED, CellPosition(row=0, col=0))
        clock.advance(TIMEOUT + 1)
        stats = context.stats()
        assert stats["live_clients"] == 0
        assert stats["presence_records"] == 0
        # the eviction itself is announced in the log
        assert stats["latest_id"] == 2
