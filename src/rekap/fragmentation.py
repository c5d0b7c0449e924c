"""Context fragmentation score and context-overload detection."""

from __future__ import annotations

from typing import Optional

from .config import FragmentationThresholds
from .models import (
    AppsPayload,
    BrowsersPayload,
    ContextOverload,
    FragmentationBreakdown,
    FragmentationLevel,
    FragmentationResult,
    ProbeResult,
)

# (low, high, weight): a factor scores 0 at ``low`` and its full weight at ``high``.
APPS_RAMP = (3.0, 9.0, 30.0)
TABS_RAMP = (10.0, 30.0, 25.0)
DOMAINS_RAMP = (5.0, 13.0, 25.0)
SWITCHES_RAMP = (1.0, 4.0, 20.0)

OVERLOAD_MAX_APPS = 5
OVERLOAD_MAX_TABS = 30
OVERLOAD_MAX_DOMAINS = 10


def normalize(value: float, low: float, high: float) -> float:
    """Linear ramp from 0 at ``low`` to 1 at ``high``, clamped outside."""
    if value <= low:
        return 0.0
    if value >= high:
        return 1.0
    return (value - low) / (high - low)


def weighted_score(breakdown: FragmentationBreakdown) -> float:
    total = 0.0
    for value, (low, high, weight) in (
        (breakdown.unique_apps, APPS_RAMP),
        (breakdown.total_tabs, TABS_RAMP),
        (breakdown.unique_domains, DOMAINS_RAMP),
        (breakdown.app_switches_per_hour, SWITCHES_RAMP),
    ):
        total += normalize(float(value), low, high) * weight
    return total


def level_for(score: int, thresholds: FragmentationThresholds) -> FragmentationLevel:
    if score <= thresholds.focused_max:
        return FragmentationLevel.FOCUSED
    if score <= thresholds.moderate_max:
        return FragmentationLevel.MODERATE
    return FragmentationLevel.FRAGMENTED


def score_breakdown(
    breakdown: FragmentationBreakdown,
    thresholds: Optional[FragmentationThresholds] = None,
) -> FragmentationResult:
    """Score an already assembled breakdown."""
    thresholds = (thresholds or FragmentationThresholds()).validated()
    score = min(100, max(0, round(weighted_score(breakdown))))
    return FragmentationResult(
        score=score,
        level=level_for(score, thresholds),
        breakdown=breakdown,
        available=True,
    )


def calculate_fragmentation(
    apps: ProbeResult[AppsPayload],
    browsers: ProbeResult[BrowsersPayload],
    thresholds: Optional[FragmentationThresholds] = None,
) -> FragmentationResult:
    """Build the breakdown from probe results and score it.

    The switch rate comes from adjacent-interval transitions; when switching
    statistics are unavailable that factor contributes nothing.
    """
    if not apps.available and not browsers.available:
        return FragmentationResult()

    unique_apps = 0
    switches_per_hour = 0.0
    if apps.available and apps.payload is not None:
        unique_apps = len(apps.payload.top_apps)
        if apps.payload.switching is not None:
            switches_per_hour = apps.payload.switching.switches_per_hour

    total_tabs = 0
    unique_domains = 0
    if browsers.available and browsers.payload is not None:
        total_tabs = browsers.payload.total_tabs
        unique_domains = len(browsers.payload.top_domains)

    breakdown = FragmentationBreakdown(
        unique_apps=unique_apps,
        total_tabs=total_tabs,
        unique_domains=unique_domains,
        app_switches_per_hour=switches_per_hour,
    )
    return score_breakdown(breakdown, thresholds)


def check_context_overload(
    apps: ProbeResult[AppsPayload], browsers: ProbeResult[BrowsersPayload]
) -> ContextOverload:
    """Flag too many simultaneously active apps, tabs or domains."""
    active_apps = len(apps.payload.top_apps) if apps.payload else 0
    total_tabs = browsers.payload.total_tabs if browsers.payload else 0
    unique_domains = len(browsers.payload.top_domains) if browsers.payload else 0

    apps_over = active_apps > OVERLOAD_MAX_APPS
    tabs_over = total_tabs > OVERLOAD_MAX_TABS
    domains_over = unique_domains > OVERLOAD_MAX_DOMAINS
    if not (apps_over or tabs_over or domains_over):
        return ContextOverload()

    if apps_over and tabs_over:
        message = f"{_count(active_apps, 'app')} + {_count(total_tabs, 'tab')} active"
    elif apps_over:
        message = f"{_count(active_apps, 'app')} active"
    elif tabs_over:
        message = f"{_count(total_tabs, 'tab')} active"
    else:
        message = f"{_count(unique_domains, 'domain')} active"
    return ContextOverload(
        is_overloaded=True,
        active_apps=active_apps,
        total_tabs=total_tabs,
        unique_domains=unique_domains,
        message=message,
    )


def _count(value: int, singular: str) -> str:
    return f"1 {singular}" if value == 1 else f"{value} {singular}s"
