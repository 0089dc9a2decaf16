"""Tests for building the uvicorn server around the dashboard app."""

import pytest
import uvicorn

from activity_timer.config import TimerSettings
from activity_timer.server_runner import build_server, dashboard_url

pytestmark = pytest.mark.integration


@pytest.mark.parametrize("host, expected", [
    ("127.0.0.1", "http://127.0.0.1:8765"),
    ("0.0.0.0", "http://127.0.0.1:8765"),
    ("localhost", "http://localhost:8765"),
])
def test_dashboard_url(host, expected):
    assert dashboard_url(host, 8765) == expected


def test_build_server(db_path):
    server = build_server(
        host="127.0.0.1",
        port=9000,
        db_path=db_path,
        settings=TimerSettings.from_intervals(0.5),
        display=None,
        log_level="warning",
    )
    try:
        assert isinstance(server, uvicorn.Server)
        assert server.config.port == 9000
        assert server.config.app.state.db_path == db_path
        assert server.config.app.state.timer.settings.tick_interval.total_seconds() == 0.5
    finally:
        server.config.app.state.store.close()
