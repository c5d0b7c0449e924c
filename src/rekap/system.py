"""Subprocess helpers bounded by a shared collection deadline."""

from __future__ import annotations

import logging
import subprocess
import time
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional, Sequence

from .errors import ProbeTimeout, SourceUnavailable

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Deadline:
    """A point on the monotonic clock shared by every probe of one run."""

    expires_at: float

    @classmethod
    def after(cls, delay: timedelta) -> "Deadline":
        return cls(time.monotonic() + delay.total_seconds())

    def remaining(self) -> float:
        return max(0.0, self.expires_at - time.monotonic())

    @property
    def expired(self) -> bool:
        return time.monotonic() >= self.expires_at

    def check(self, what: str) -> None:
        if self.expired:
            raise ProbeTimeout(f"deadline elapsed before {what}")


def run_command(
    args: Sequence[str],
    deadline: Optional[Deadline] = None,
    *,
    check: bool = True,
) -> str:
    """Run a command and return its stdout, honoring the deadline."""
    label = args[0] if args else "command"
    timeout: Optional[float] = None
    if deadline is not None:
        deadline.check(label)
        timeout = deadline.remaining()
    try:
        completed = subprocess.run(
            list(args),
            capture_output=True,
            text=True,
            timeout=timeout,
            check=False,
        )
    except FileNotFoundError as exc:
        raise SourceUnavailable(f"{label} not found") from exc
    except subprocess.TimeoutExpired as exc:
        raise ProbeTimeout(f"{label} did not finish before the deadline") from exc
    except OSError as exc:
        raise SourceUnavailable(f"failed to run {label}: {exc}") from exc

    if check and completed.returncode != 0:
        logger.debug(
            "%s exited with %s: %s", label, completed.returncode, completed.stderr.strip()
        )
        raise SourceUnavailable(f"{label} exited with status {completed.returncode}")
    return completed.stdout


def run_osascript(script: str, deadline: Optional[Deadline] = None) -> str:
    return run_command(["osascript", "-e", script], deadline).strip()
