"""Serve the rekap JSON API on a local port."""

from __future__ import annotations

import logging
import threading
import webbrowser
from typing import Optional

import uvicorn

from .config import RekapConfig
from .webapp import create_app

logger = logging.getLogger(__name__)

# uvicorn needs a moment to bind before the tab can load.
BROWSER_DELAY_SECONDS = 1.0


def dashboard_url(host: str, port: int, *, demo: bool = False) -> str:
    url = f"http://{host}:{port}/api/summary"
    return f"{url}?demo=true" if demo else url


def run_dashboard(
    *,
    host: str = "127.0.0.1",
    port: int = 8765,
    config: Optional[RekapConfig] = None,
    open_browser: bool = True,
    demo: bool = False,
    log_level: str = "info",
) -> None:
    """Serve the API until interrupted, optionally opening the summary once it is up."""
    app = create_app(config=config)
    url = dashboard_url(host, port, demo=demo)
    logger.info("Serving rekap summary at %s", url)

    if open_browser:
        timer = threading.Timer(BROWSER_DELAY_SECONDS, _open_summary, args=(url,))
        timer.daemon = True
        timer.start()

    uvicorn.run(app, host=host, port=port, log_level=log_level)


def _open_summary(url: str) -> None:
    try:
        opened = webbrowser.open(url)
    except webbrowser.Error:
        logger.exception("Failed to launch browser for %s", url)
        return
    if not opened:
        logger.warning("No browser available to open %s", url)
