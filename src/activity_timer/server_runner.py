"""Run the dashboard API under uvicorn."""

from __future__ import annotations

import logging
import threading
import webbrowser
from pathlib import Path
from typing import Optional

import uvicorn

from .config import DisplaySettings, TimerSettings
from .webapp import create_app

logger = logging.getLogger(__name__)

BROWSER_DELAY_SECONDS = 1.0


def dashboard_url(host: str, port: int) -> str:
    # A wildcard bind is still reached through the loopback address.
    visible_host = "127.0.0.1" if host in ("0.0.0.0", "::", "") else host
    return f"http://{visible_host}:{port}"


def build_server(
    *,
    host: str,
    port: int,
    db_path: Optional[Path],
    settings: Optional[TimerSettings],
    display: Optional[DisplaySettings],
    log_level: str,
) -> uvicorn.Server:
    app = create_app(db_path=db_path, settings=settings, display=display)
    config = uvicorn.Config(
        app,
        host=host,
        port=port,
        log_level=log_level,
        access_log=log_level == "debug",
    )
    return uvicorn.Server(config)


def run_dashboard(
    *,
    host: str = "127.0.0.1",
    port: int = 8765,
    db_path: Optional[Path] = None,
    settings: Optional[TimerSettings] = None,
    display: Optional[DisplaySettings] = None,
    open_browser: bool = True,
    log_level: str = "info",
) -> None:
    """Serve the dashboard until interrupted, optionally opening a browser tab."""
    server = build_server(
        host=host,
        port=port,
        db_path=db_path,
        settings=settings,
        display=display,
        log_level=log_level,
    )
    url = dashboard_url(host, port)
    if open_browser:
        opener = threading.Timer(BROWSER_DELAY_SECONDS, _open_browser, args=(url,))
        opener.daemon = True
        opener.start()

    logger.info("Dashboard listening on %s", url)
    server.run()


def _open_browser(url: str) -> None:
    try:
        webbrowser.open(url)
    except webbrowser.Error:
        logger.exception("Failed to launch browser for %s", url)
