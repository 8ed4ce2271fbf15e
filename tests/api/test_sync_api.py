# tests/api/test_sync_api.py
# HTTP-level tests of the sync protocol through FastAPI's TestClient

import pytest

from gridsync.config import Settings
from gridsync.main import create_app
from gridsync.state.context import SyncContext

pytestmark = pytest.mark.api

A = {"X-Client-ID": "client-a"}
B = {"X-Client-ID": "client-b"}


def _grid_update(key="0-0", letter="A", is_black=False):
    return {"type": "grid-update", "key": key, "value": {"value": letter, "isBlack": is_black}}


class TestUpdateAndPoll:

    def test_write_then_poll_from_another_client(self, api):
        response = api.post("/api/update", json=_grid_update(), headers=A)
        assert response.status_code == 200
        assert response.json() == {"success": True}

        body = api.get("/api/updates", params={"since": 0}, headers=B).json()
        assert len(body["updates"]) == 1
        record = body["updates"][0]
        assert record["payload"] == {
            "type": "grid-update",
            "key": "0-0",
            "value": {"value": "A", "isBlack": False, "clueNumber": None},
        }
        assert record["clientId"] == "client-a"

        cursor = record["id"]
        again = api.get("/api/updates", params={"since": cursor}, headers=B).json()
        assert again["updates"] == []
        assert again["liveClientCount"] == 2

    def test_empty_clue_text_deletes(self, api):
        api.post("/api/update", json={"type": "clue-update", "direction": "across", "number": "5", "text": "OCEAN (5)"})
        assert api.get("/api/state").json()["clues"]["across"] == {"5": "OCEAN (5)"}

        api.post("/api/update", json={"type": "clue-update", "direction": "across", "number": "5", "text": ""})
        assert "5" not in api.get("/api/state").json()["clues"]["across"]

    def test_black_square_clears_letter(self, api):
        api.post("/api/update", json=_grid_update("4-4", "Q"))
        api.post("/api/update", json=_grid_update("4-4", "Q", is_black=True))
        cell = api.get("/api/state").json()["grid"]["4-4"]
        assert cell == {"value": "", "isBlack": True, "clueNumber": None}

    def test_clear_all_reaches_pollers_as_one_record(self, api, context):
        for col in range(15):
            api.post("/api/update", json=_grid_update(f"0-{col}", "A"))
        cursor = context.log.latest_id
        api.post("/api/update", json={"type": "clear-all"})

        updates = api.get("/api/updates", params={"since": cursor}).json()["updates"]
        assert [u["payload"]["type"] for u in updates] == ["clear-all"]
        state = api.get("/api/state").json()
        assert state["grid"] == {}
        assert state["clues"] == {"across": {}, "down": {}}

    def test_bulk_import_skips_blank_entries(self, api):
        api.post("/api/update", json={"type": "clue-update", "direction": "down", "number": 2, "text": "OLD"})
        api.post("/api/update", json={
            "type": "clues-update-bulk",
            "clues": {"across": {"1": "NEW"}, "down": {"2": ""}},
        })
        clues = api.get("/api/state").json()["clues"]
        assert clues == {"across": {"1": "NEW"}, "down": {"2": "OLD"}}

    def test_window_is_bounded(self, settings, clock):
        context = SyncContext(client_timeout_seconds=10.0, log_capacity=100, clock=clock)
        from fastapi.testclient import TestClient
        api = TestClient(create_app(settings=settings, context=context))
        for i in range(120):
            api.post("/api/update", json=_grid_update(f"{i // 15}-{i % 15}", "A"))
        updates = api.get("/api/updates", params={"since": 0}).json()["updates"]
        assert len(updates) == 100
        assert updates[0]["id"] == 21
        assert updates[-1]["id"] == 120


class TestRejections:

    def test_malformed_json_is_400_and_not_logged(self, api, context):
        response = api.post("/api/update", content=b"{not json", headers={"Content-Type": "application/json"})
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"
        assert context.log.latest_id == 0

    def test_unknown_tag_is_400(self, api, context):
        response = api.post("/api/update", json={"type": "client-count", "count": 4})
        assert response.status_code == 400
        assert context.log.latest_id == 0

    def test_unknown_direction_is_400(self, api, context):
        response = api.post("/api/update", json={"type": "clue-update", "direction": "up", "number": "1", "text": "X"})
        assert response.status_code == 400
        assert "up" not in context.store.get_snapshot()["clues"]

    def test_multi_letter_cell_is_400(self, api, context):
        response = api.post("/api/update", json=_grid_update("0-0", "QU"))
        assert response.status_code == 400
        assert context.store.get_cell("0-0") is None

    def test_presence_update_without_identity_is_400(self, api):
        response = api.post("/api/update", json={"type": "presence-update", "position": None})
        assert response.status_code == 400

    def test_presence_requires_header(self, api):
        response = api.post("/api/presence", json={"clientId": "x", "color": "red", "position": None})
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "MISSING_CLIENT_ID"

    def test_disconnect_requires_header(self, api):
        response = api.post("/api/disconnect", json={"clientId": "x"})
        assert response.status_code == 400

    def test_non_integer_cursor_is_400(self, api):
        response = api.get("/api/updates", params={"since": "latest"})
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    def test_unexpected_error_is_500(self, settings, context, monkeypatch):
        from fastapi.testclient import TestClient

        def explode(*args, **kwargs):
            raise RuntimeError("boom")

        monkeypatch.setattr(context, "snapshot", explode)
        api = TestClient(create_app(settings=settings, context=context), raise_server_exceptions=False)
        response = api.get("/api/state")
        assert response.status_code == 500
        assert response.json()["error"]["code"] == "INTERNAL_ERROR"


class TestPresence:

    def test_heartbeat_shows_in_snapshot_and_feed(self, api):
        body = {"clientId": "client-a", "color": "orange", "position": {"kind": "cell", "row": 3, "col": 4}}
        assert api.post("/api/presence", json=body, headers=A).status_code == 200

        state = api.get("/api/state", headers=B).json()
        assert state["clientCount"] == 2
        assert state["userPresence"][0]["clientId"] == "client-a"
        assert state["userPresence"][0]["position"]["row"] == 3

        feed = api.get("/api/updates", params={"since": 0}, headers=B).json()["updates"]
        assert feed[-1]["payload"]["type"] == "presence-update"
        assert feed[-1]["payload"]["color"] == "orange"

    def test_null_position_clears(self, api):
        api.post("/api/presence", json={"color": "red", "position": {"kind": "clue", "direction": "down", "number": 3}}, headers=A)
        api.post("/api/presence", json={"color": "red", "position": None}, headers=A)
        assert api.get("/api/state").json()["userPresence"] == []

    def test_header_is_the_identity(self, api):
        api.post("/api/presence", json={"clientId": "spoofed", "color": "red", "position": {"kind": "cell", "row": 0, "col": 0}}, headers=A)
        presence = api.get("/api/state").json()["userPresence"]
        assert [p["clientId"] for p in presence] == ["client-a"]

    def test_disconnect_announces_departure(self, api, context):
        api.post("/api/presence", json={"color": "red", "position": {"kind": "cell", "row": 0, "col": 0}}, headers=A)
        assert api.post("/api/disconnect", json={"clientId": "client-a"}, headers=A).status_code == 200
        last = api.get("/api/updates", params={"since": 0}, headers=B).json()["updates"][-1]
        assert last["payload"]["clientId"] == "client-a"
        assert last["payload"]["position"] is None
        assert "client-a" not in context.registry

    def test_timed_out_presence_is_swept_on_read(self, api, clock):
        api.post("/api/presence", json={"color": "red", "position": {"kind": "cell", "row": 0, "col": 0}}, headers=A)
        clock.advance(11)
        state = api.get("/api/state", headers=B).json()
        assert state["userPresence"] == []
        assert state["clientCount"] == 1

    def test_presence_via_update_endpoint(self, api):
        payload = {"type": "presence-update", "clientId": "client-z", "color": "pink", "position": {"kind": "cell", "row": 1, "col": 1}}
        assert api.post("/api/update", json=payload).status_code == 200
        assert api.get("/api/state").json()["userPresence"][0]["clientId"] == "client-z"


class TestStaticAndOps:

    def test_index_served_at_root(self, api):
        response = api.get("/")
        assert response.status_code == 200
        assert "crossword" in response.text

    def test_static_file(self, api):
        response = api.get("/script.js")
        assert response.status_code == 200
        assert "console.log" in response.text

    def test_unknown_static_path_is_404(self, api):
        assert api.get("/no-such-file.css").status_code == 404

    def test_missing_static_dir_means_404(self, tmp_path, context):
        from fastapi.testclient import TestClient
        settings = Settings(_env_file=None, STATIC_PATH=str(tmp_path / "absent"), LOGS_PATH=str(tmp_path / "logs"))
        api = TestClient(create_app(settings=settings, context=context))
        assert api.get("/index.html").status_code == 404

    def test_health(self, api):
        assert api.get("/health/live").json() == {"status": "alive"}
        assert api.get("/health/ready").json() == {"status": "ready"}
        body = api.get("/health").json()
        assert body["status"] == "healthy"
        assert "sync_state" in body["checks"]

    def test_tracing_enabled_app_still_serves(self, settings, context):
        from fastapi.testclient import TestClient
        traced = settings.model_copy(update={"OTEL_ENABLED": True})
        api = TestClient(create_app(settings=traced, context=context))
        assert api.get("/health/live").status_code == 200
        assert api.post("/api/update", json=_grid_update(), headers=A).status_code == 200

    def test_metrics_exposition(self, api):
        api.post("/api/update", json=_grid_update(), headers=A)
        response = api.get("/metrics")
        assert response.status_code == 200
        assert "gridsync_live_clients" in response.text
        assert "gridsync_updates_appended_total" in response.text

    def test_metrics_gauges_are_swept(self, api, clock):
        api.post("/api/presence", json={"color": "red", "position": {"kind": "cell", "row": 0, "col": 0}}, headers=A)
        clock.advance(11)
        text = api.get("/metrics").text
        assert "gridsync_live_clients 0.0" in text
        assert "gridsync_presence_records 0.0" in text
