"""Threshold heuristics that flag signs of an unhealthy workday."""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional

from .config import BurnoutSettings
from .models import (
    AppsPayload,
    BrowsersPayload,
    BurnoutWarning,
    FocusPayload,
    ProbeResult,
    ScreenPayload,
    Severity,
    WarningType,
)


def check_long_day(
    screen: ProbeResult[ScreenPayload], settings: BurnoutSettings
) -> Optional[BurnoutWarning]:
    if not screen.available or screen.payload is None:
        return None
    hours = screen.payload.screen_on_minutes // 60
    if hours < settings.long_day_hours:
        return None
    return BurnoutWarning(
        type=WarningType.LONG_DAY,
        message=f"Long work day: {hours}h+ screen time",
        severity=Severity.MEDIUM,
        metric_value=hours,
    )


def check_high_switching(
    apps: ProbeResult[AppsPayload], settings: BurnoutSettings
) -> Optional[BurnoutWarning]:
    if not apps.available or apps.payload is None or apps.payload.switching is None:
        return None
    rate = int(apps.payload.switching.switches_per_hour)
    if rate <= 0 or rate < settings.switches_per_hour:
        return None
    return BurnoutWarning(
        type=WarningType.HIGH_SWITCHING,
        message=f"High task switching: {rate} app switches/hour",
        severity=Severity.MEDIUM,
        metric_value=rate,
    )


def check_tab_overload(
    browsers: ProbeResult[BrowsersPayload], settings: BurnoutSettings
) -> Optional[BurnoutWarning]:
    if not browsers.available or browsers.payload is None:
        return None
    tabs = browsers.payload.total_tabs
    if tabs < settings.max_tabs:
        return None
    return BurnoutWarning(
        type=WarningType.TAB_OVERLOAD,
        message=f"Browser overload: {tabs} open tabs",
        severity=Severity.LOW,
        metric_value=tabs,
    )


def check_late_night(
    focus: ProbeResult[FocusPayload], settings: BurnoutSettings, now: datetime
) -> Optional[BurnoutWarning]:
    if now.hour >= settings.late_night_end_hour:
        return None
    if not focus.available or focus.payload is None:
        return None
    minutes = focus.payload.late_night_minutes
    if not minutes:
        return None
    return BurnoutWarning(
        type=WarningType.LATE_NIGHT,
        message=f"Late night work: {minutes} minutes past midnight",
        severity=Severity.HIGH,
        metric_value=minutes,
    )


def check_no_breaks(
    focus: ProbeResult[FocusPayload], settings: BurnoutSettings
) -> Optional[BurnoutWarning]:
    if not focus.available or focus.payload is None:
        return None
    minutes = focus.payload.longest_active_minutes
    if minutes < settings.no_break_hours * 60:
        return None
    return BurnoutWarning(
        type=WarningType.NO_BREAKS,
        message=f"No breaks: {minutes // 60}h+ continuous focus",
        severity=Severity.HIGH,
        metric_value=minutes // 60,
    )


def evaluate_burnout(
    *,
    screen: ProbeResult[ScreenPayload],
    apps: ProbeResult[AppsPayload],
    browsers: ProbeResult[BrowsersPayload],
    focus: ProbeResult[FocusPayload],
    settings: Optional[BurnoutSettings] = None,
    now: Optional[datetime] = None,
) -> list[BurnoutWarning]:
    """Run every check; each one only looks at its own source."""
    settings = settings or BurnoutSettings()
    now = now or datetime.now().astimezone()
    candidates = (
        check_long_day(screen, settings),
        check_high_switching(apps, settings),
        check_tab_overload(browsers, settings),
        check_late_night(focus, settings, now),
        check_no_breaks(focus, settings),
    )
    return [warning for warning in candidates if warning is not None]


def sort_by_severity(warnings: Iterable[BurnoutWarning]) -> list[BurnoutWarning]:
    return sorted(warnings, key=lambda warning: warning.severity.rank)
