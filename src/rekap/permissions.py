"""Checks for the macOS permissions that unlock the richer data sources."""

from __future__ import annotations

import logging
import shutil
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Optional

from .errors import RekapError
from .paths import get_knowledge_db_path
from .system import Deadline, run_command, run_osascript

logger = logging.getLogger(__name__)

FULL_DISK_ACCESS_PANE = (
    "x-apple.systempreferences:com.apple.preference.security?Privacy_AllFiles"
)
ACCESSIBILITY_PANE = (
    "x-apple.systempreferences:com.apple.preference.security?Privacy_Accessibility"
)

_ACCESSIBILITY_SCRIPT = """
tell application "System Events"
    try
        get name of first process
        return "true"
    on error
        return "false"
    end try
end tell
"""

_MUSIC_SCRIPT = """
tell application "Music"
    try
        get player state
        return "true"
    on error
        return "false"
    end try
end tell
"""


@dataclass(frozen=True, slots=True)
class Capabilities:
    full_disk_access: bool
    accessibility: bool
    now_playing: bool

    def as_dict(self) -> dict[str, bool]:
        return asdict(self)


def check_full_disk_access(path: Optional[Path] = None) -> bool:
    """Whether the Screen Time store can actually be read."""
    path = Path(path) if path else get_knowledge_db_path()
    try:
        with path.open("rb") as handle:
            handle.read(1)
    except OSError:
        return False
    return True


def _script_says_true(script: str, deadline: Optional[Deadline]) -> bool:
    try:
        return run_osascript(script, deadline) == "true"
    except RekapError as exc:
        logger.debug("Permission probe failed: %s", exc)
        return False


def check_accessibility(deadline: Optional[Deadline] = None) -> bool:
    return _script_says_true(_ACCESSIBILITY_SCRIPT, deadline)


def check_now_playing(deadline: Optional[Deadline] = None) -> bool:
    if _script_says_true(_MUSIC_SCRIPT, deadline):
        return True
    return shutil.which("nowplaying-cli") is not None


def check_capabilities(
    deadline: Optional[Deadline] = None, knowledge_db: Optional[Path] = None
) -> Capabilities:
    return Capabilities(
        full_disk_access=check_full_disk_access(knowledge_db),
        accessibility=check_accessibility(deadline),
        now_playing=check_now_playing(deadline),
    )


def capability_matrix(caps: Capabilities) -> dict[str, bool]:
    """Which summary sections each permission unlocks."""
    return {
        "uptime": True,
        "battery": True,
        "screen_on": caps.full_disk_access,
        "apps": caps.full_disk_access,
        "focus_streak": caps.full_disk_access,
        "notifications": caps.full_disk_access,
        "accessibility": caps.accessibility,
        "media": caps.now_playing,
    }


def format_capabilities(caps: Capabilities) -> str:
    def line(ok: bool, name: str, granted: str, missing: str) -> str:
        mark = "✓" if ok else "✗"
        return f"{mark} {name:<15} ({granted if ok else missing})"

    fda = caps.full_disk_access
    return "\n".join(
        [
            line(True, "uptime", "kernel boot time", ""),
            line(True, "battery", "power management", ""),
            line(fda, "screen_on", "Full Disk Access", "needs Full Disk Access"),
            line(fda, "apps", "Screen Time data", "needs Full Disk Access"),
            line(fda, "focus_streak", "Screen Time data", "needs Full Disk Access"),
            line(caps.accessibility, "accessibility", "UI element access", "not granted"),
            line(caps.now_playing, "media", "Now Playing", "Music app or nowplaying-cli"),
        ]
    )


def open_settings_pane(pane: str = FULL_DISK_ACCESS_PANE) -> bool:
    try:
        run_command(["open", pane])
    except RekapError as exc:
        logger.warning("Could not open System Settings: %s", exc)
        return False
    return True
