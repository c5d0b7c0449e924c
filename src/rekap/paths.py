"""Helpers for locating application directories and macOS data sources."""

from __future__ import annotations

from pathlib import Path

from platformdirs import PlatformDirs


APP_NAME = "rekap"
APP_AUTHOR = "rekap"


def _dirs() -> PlatformDirs:
    return PlatformDirs(appname=APP_NAME, appauthor=APP_AUTHOR)


def get_data_dir() -> Path:
    """Return the base directory for persistent data."""
    path = Path(_dirs().user_data_path)
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_config_path() -> Path:
    return Path(_dirs().user_config_path) / "config.yaml"


def get_knowledge_db_path() -> Path:
    """Screen Time event store; readable only with Full Disk Access."""
    return Path.home() / "Library" / "Application Support" / "Knowledge" / "knowledgeC.db"


def get_chrome_history_path() -> Path:
    return (
        Path.home()
        / "Library"
        / "Application Support"
        / "Google"
        / "Chrome"
        / "Default"
        / "History"
    )


def get_edge_history_path() -> Path:
    return (
        Path.home()
        / "Library"
        / "Application Support"
        / "Microsoft Edge"
        / "Default"
        / "History"
    )


def get_safari_history_path() -> Path:
    return Path.home() / "Library" / "Safari" / "History.db"
