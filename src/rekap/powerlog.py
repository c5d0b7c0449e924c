"""Reconstruct sleep, display and charging state from power-management logs.

The parsers take raw ``pmset -g log`` text so they can be exercised without a
Mac; the probes in :mod:`rekap.probes` supply the live output.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, tzinfo
from enum import Enum
from typing import Iterator, Optional

from .models import StateTransition, TransitionKind

TIMESTAMP_FMT = "%Y-%m-%d %H:%M:%S"

_TIMESTAMP_PATTERN = re.compile(r"^(\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2})")
_ANY_TIMESTAMP_PATTERN = re.compile(r"(\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2})")
_SLEEP_PATTERN = re.compile(r"\bSleep\b")
_WAKE_PATTERN = re.compile(r"\bWake\b")
_CHARGE_PATTERN = re.compile(r"Using (AC|Batt).*?Charge:\s*(\d+)")

MIN_LOCK_DURATION = timedelta(minutes=1)


def _parse_timestamp(
    line: str, day_prefix: str, tz: Optional[tzinfo], *, anchored: bool = True
) -> Optional[datetime]:
    if anchored:
        match = _TIMESTAMP_PATTERN.match(line)
    else:
        match = _ANY_TIMESTAMP_PATTERN.search(line)
    if not match:
        return None
    stamp = match.group(1)
    if not stamp.startswith(day_prefix):
        return None
    try:
        parsed = datetime.strptime(stamp, TIMESTAMP_FMT)
    except ValueError:
        return None
    return parsed.replace(tzinfo=tz)


# -- sleep / wake ------------------------------------------------------------


class SleepState(Enum):
    AWAKE = "awake"
    SLEEPING = "sleeping"


@dataclass(slots=True)
class SleepTracker:
    """Two-state machine accumulating time spent asleep."""

    state: SleepState = SleepState.AWAKE
    sleep_start: Optional[datetime] = None
    total: timedelta = field(default_factory=timedelta)

    def advance(self, event: StateTransition) -> None:
        if self.state is SleepState.AWAKE and event.kind is TransitionKind.SLEEP:
            self.state = SleepState.SLEEPING
            self.sleep_start = event.timestamp
        elif (
            self.state is SleepState.SLEEPING
            and event.kind is TransitionKind.WAKE
            and self.sleep_start is not None
        ):
            self.total += event.timestamp - self.sleep_start
            self.state = SleepState.AWAKE
            self.sleep_start = None

    def finish(self, end: datetime) -> timedelta:
        """Close an unterminated sleep at ``end`` and return the total."""
        if self.state is SleepState.SLEEPING and self.sleep_start is not None:
            self.total += max(end - self.sleep_start, timedelta(0))
            self.state = SleepState.AWAKE
            self.sleep_start = None
        return self.total


def classify_sleep_line(line: str, state: SleepState) -> Optional[TransitionKind]:
    """Transition a line causes from ``state``.

    Wake lines usually mention the sleep they end ("Wake from Normal Sleep"),
    so a wake line never opens a sleep and a line only closes one while asleep.
    """
    if (
        state is SleepState.AWAKE
        and _SLEEP_PATTERN.search(line)
        and not _WAKE_PATTERN.search(line)
    ):
        return TransitionKind.SLEEP
    if state is SleepState.SLEEPING and _WAKE_PATTERN.search(line):
        return TransitionKind.WAKE
    return None


def sleep_wake_events(
    output: str, start: datetime, end: datetime
) -> Iterator[StateTransition]:
    """Yield the effective sleep/wake transitions from today's lines inside [start, end]."""
    day_prefix = start.strftime("%Y-%m-%d")
    state = SleepState.AWAKE
    for line in output.splitlines():
        timestamp = _parse_timestamp(line, day_prefix, start.tzinfo)
        if timestamp is None or timestamp < start or timestamp > end:
            continue
        kind = classify_sleep_line(line, state)
        if kind is not None:
            state = (
                SleepState.SLEEPING if kind is TransitionKind.SLEEP else SleepState.AWAKE
            )
            yield StateTransition(kind=kind, timestamp=timestamp)


def parse_sleep_duration(output: str, start: datetime, end: datetime) -> timedelta:
    """Total time asleep between ``start`` and ``end`` according to the log."""
    tracker = SleepTracker()
    for event in sleep_wake_events(output, start, end):
        tracker.advance(event)
    return tracker.finish(end)


# -- display on / off --------------------------------------------------------


class DisplayState(Enum):
    OFF = "off"
    ON = "on"


@dataclass(slots=True)
class DisplayTracker:
    """Accumulates screen-on time and lock cycles from display transitions."""

    state: DisplayState = DisplayState.OFF
    on_since: Optional[datetime] = None
    off_since: Optional[datetime] = None
    on_time: timedelta = field(default_factory=timedelta)
    locks: list[tuple[datetime, datetime]] = field(default_factory=list)

    def advance(self, event: StateTransition) -> None:
        if event.kind is TransitionKind.DISPLAY_ON:
            if self.state is DisplayState.ON:
                return
            self.state = DisplayState.ON
            self.on_since = event.timestamp
            if self.off_since is not None:
                if event.timestamp - self.off_since >= MIN_LOCK_DURATION:
                    self.locks.append((self.off_since, event.timestamp))
                self.off_since = None
        elif event.kind is TransitionKind.DISPLAY_OFF:
            if self.state is DisplayState.ON and self.on_since is not None:
                self.on_time += event.timestamp - self.on_since
                self.state = DisplayState.OFF
                self.on_since = None
            self.off_since = event.timestamp

    def finish(self, now: datetime) -> timedelta:
        if self.state is DisplayState.ON and self.on_since is not None:
            self.on_time += max(now - self.on_since, timedelta(0))
            self.on_since = None
            self.state = DisplayState.OFF
        return self.on_time


@dataclass(frozen=True, slots=True)
class DisplaySummary:
    screen_on_minutes: int
    lock_count: int
    avg_mins_between_locks: int


def classify_display_line(line: str) -> Optional[TransitionKind]:
    lowered = line.lower()
    if "display is turned on" in lowered or (
        "backlight level" in lowered and "level 0" not in lowered
    ):
        return TransitionKind.DISPLAY_ON
    if "display is turned off" in lowered or "display sleep" in lowered:
        return TransitionKind.DISPLAY_OFF
    return None


def parse_display_activity(output: str, day: date, now: datetime) -> DisplaySummary:
    """Summarize screen-on minutes and lock cycles for ``day``."""
    tracker = DisplayTracker()
    day_prefix = day.strftime("%Y-%m-%d")
    for line in output.splitlines():
        if "display" not in line.lower():
            continue
        timestamp = _parse_timestamp(line, day_prefix, now.tzinfo, anchored=False)
        if timestamp is None:
            continue
        kind = classify_display_line(line)
        if kind is not None:
            tracker.advance(StateTransition(kind=kind, timestamp=timestamp))

    on_time = tracker.finish(now)
    locks = tracker.locks
    avg_between = 0
    if len(locks) > 1:
        between = sum(
            (locks[i + 1][0] - locks[i][1] for i in range(len(locks) - 1)),
            timedelta(0),
        )
        avg_between = int(between.total_seconds() / 60 / (len(locks) - 1))
    return DisplaySummary(
        screen_on_minutes=int(on_time.total_seconds() // 60),
        lock_count=len(locks),
        avg_mins_between_locks=avg_between,
    )


# -- battery -----------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ChargeHistory:
    start_pct: Optional[int]
    plug_count: int


def parse_charge_log(output: str, day: date) -> ChargeHistory:
    """First charge reading of ``day`` and the number of battery-to-AC transitions."""
    day_prefix = day.strftime("%Y-%m-%d")
    start_pct: Optional[int] = None
    plug_count = 0
    last_source: Optional[str] = None
    for line in output.splitlines():
        match = _TIMESTAMP_PATTERN.match(line)
        if not match or not match.group(1).startswith(day_prefix):
            continue
        charge = _CHARGE_PATTERN.search(line)
        if not charge:
            continue
        source, pct = charge.group(1), int(charge.group(2))
        if start_pct is None:
            start_pct = pct
        if source == "AC" and last_source == "Batt":
            plug_count += 1
        last_source = source
    return ChargeHistory(start_pct=start_pct, plug_count=plug_count)
