# tests/conftest.py
# Shared fixtures: a controllable clock, an isolated SyncContext per test,
# and a FastAPI TestClient built around that context.

import pytest
from fastapi.testclient import TestClient

from gridsync.config import Settings
from gridsync.main import create_app
from gridsync.state.context import SyncContext

CLIENT_TIMEOUT = 10.0


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> float:
        self.now += seconds
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def context(clock):
    return SyncContext(client_timeout_seconds=CLIENT_TIMEOUT, log_capacity=100, clock=clock)


@pytest.fixture
def static_dir(tmp_path):
    root = tmp_path / "static"
    root.mkdir()
    (root / "index.html").write_text("<html><body>crossword</body></html>", encoding="utf-8")
    (root / "script.js").write_text("console.log('grid');", encoding="utf-8")
    return root


@pytest.fixture
def settings(tmp_path, static_dir):
    return Settings(
        STATIC_PATH=str(static_dir),
        LOGS_PATH=str(tmp_path / "logs"),
        CLIENT_TIMEOUT_SECONDS=CLIENT_TIMEOUT,
    )


@pytest.fixture
def api(settings, context):
    """TestClient without lifespan: no background sweeper, sweeps happen per request."""
    app = create_app(settings=settings, context=context)
    return TestClient(app, raise_server_exceptions=False)
