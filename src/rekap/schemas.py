"""Stable JSON projection of a snapshot.

Sections whose source was unavailable are omitted rather than emitted as
null; dump with ``exclude_none=True`` (see :func:`render_json`).
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel

from . import __version__
from .fragmentation import check_context_overload
from .models import Snapshot


class UptimeSection(BaseModel):
    awake_minutes: int
    boot_time_unix: int


class BatterySection(BaseModel):
    start_pct: int
    current_pct: int
    plug_events: int
    is_plugged: bool


class ScreenSection(BaseModel):
    screen_on_minutes: int
    lock_count: int
    avg_mins_between_locks: int


class AppEntry(BaseModel):
    name: str
    minutes: int
    bundle_id: str


class AppsSection(BaseModel):
    top_apps: list[AppEntry]
    total_switches: int = 0
    switches_per_hour: float = 0.0
    avg_mins_between_switches: float = 0.0


class FocusSection(BaseModel):
    streak_minutes: int
    app_name: str


class MediaSection(BaseModel):
    track: str
    app: str


class NetworkSection(BaseModel):
    interface: str
    network_name: str
    bytes_received: int
    bytes_sent: int
    since_boot: bool


class BrowserTabsSection(BaseModel):
    tabs: int


class BrowsersSection(BaseModel):
    total_tabs: int
    chrome: Optional[BrowserTabsSection] = None
    safari: Optional[BrowserTabsSection] = None
    edge: Optional[BrowserTabsSection] = None
    urls_visited: int
    top_domain: Optional[str] = None
    top_domain_visits: Optional[int] = None
    work_visits: int
    distraction_visits: int
    neutral_visits: int
    issues_viewed: Optional[list[str]] = None


class NotificationEntry(BaseModel):
    name: str
    count: int


class NotificationsSection(BaseModel):
    total: int
    top_apps: Optional[list[NotificationEntry]] = None


class FragmentationSection(BaseModel):
    score: int
    level: str


class IssueEntry(BaseModel):
    id: str
    tracker: str
    url: str
    visit_count: int


class IssuesSection(BaseModel):
    issues: list[IssueEntry]


class WarningEntry(BaseModel):
    type: str
    severity: str
    message: str


class BurnoutSection(BaseModel):
    warnings: list[WarningEntry]


class ContextOverloadSection(BaseModel):
    is_overloaded: bool
    message: Optional[str] = None


class SnapshotDocument(BaseModel):
    version: str
    date: str
    collected_at: str
    uptime: Optional[UptimeSection] = None
    battery: Optional[BatterySection] = None
    screen: Optional[ScreenSection] = None
    apps: Optional[AppsSection] = None
    focus: Optional[FocusSection] = None
    media: Optional[MediaSection] = None
    network: Optional[NetworkSection] = None
    browsers: Optional[BrowsersSection] = None
    notifications: Optional[NotificationsSection] = None
    fragmentation: Optional[FragmentationSection] = None
    issues: Optional[IssuesSection] = None
    burnout: Optional[BurnoutSection] = None
    context_overload: ContextOverloadSection


def _browsers_section(snapshot: Snapshot) -> Optional[BrowsersSection]:
    payload = snapshot.browsers.payload
    if not snapshot.browsers.available or payload is None:
        return None
    per_browser = {}
    for key in ("chrome", "safari", "edge"):
        browser = getattr(payload, key)
        if browser is not None and browser.tabs_available:
            per_browser[key] = BrowserTabsSection(tabs=browser.tab_count)
    return BrowsersSection(
        total_tabs=payload.total_tabs,
        urls_visited=payload.total_urls_visited,
        top_domain=payload.top_history_domain or None,
        top_domain_visits=payload.top_domain_visits or None,
        work_visits=payload.work_visits,
        distraction_visits=payload.distraction_visits,
        neutral_visits=payload.neutral_visits,
        issues_viewed=list(payload.all_issue_ids) or None,
        **per_browser,
    )


def build_document(snapshot: Snapshot, version: str = __version__) -> SnapshotDocument:
    """Project a snapshot onto the JSON document shape."""
    doc = SnapshotDocument(
        version=version,
        date=snapshot.day.isoformat(),
        collected_at=snapshot.collected_at.isoformat(),
        context_overload=ContextOverloadSection(is_overloaded=False),
    )

    if snapshot.uptime.available and snapshot.uptime.payload:
        uptime = snapshot.uptime.payload
        doc.uptime = UptimeSection(
            awake_minutes=uptime.awake_minutes,
            boot_time_unix=int(uptime.boot_time.timestamp()),
        )

    if snapshot.battery.available and snapshot.battery.payload:
        battery = snapshot.battery.payload
        doc.battery = BatterySection(
            start_pct=battery.start_pct,
            current_pct=battery.current_pct,
            plug_events=battery.plug_count,
            is_plugged=battery.is_plugged,
        )

    if snapshot.screen.available and snapshot.screen.payload:
        screen = snapshot.screen.payload
        doc.screen = ScreenSection(
            screen_on_minutes=screen.screen_on_minutes,
            lock_count=screen.lock_count,
            avg_mins_between_locks=screen.avg_mins_between_locks,
        )

    if snapshot.apps.available and snapshot.apps.payload:
        apps = snapshot.apps.payload
        doc.apps = AppsSection(
            top_apps=[
                AppEntry(name=app.name, minutes=app.minutes, bundle_id=app.bundle_id)
                for app in apps.top_apps
            ]
        )
        if apps.switching is not None:
            doc.apps.total_switches = apps.switching.total_switches
            doc.apps.switches_per_hour = apps.switching.switches_per_hour
            doc.apps.avg_mins_between_switches = apps.switching.avg_mins_between

    focus = snapshot.focus.payload
    if snapshot.focus.available and focus and focus.streak_minutes > 0:
        doc.focus = FocusSection(streak_minutes=focus.streak_minutes, app_name=focus.app_name)

    if snapshot.media.available and snapshot.media.payload:
        media = snapshot.media.payload
        doc.media = MediaSection(track=media.track, app=media.app)

    if snapshot.network.available and snapshot.network.payload:
        network = snapshot.network.payload
        doc.network = NetworkSection(
            interface=network.interface,
            network_name=network.network_name,
            bytes_received=network.bytes_received,
            bytes_sent=network.bytes_sent,
            since_boot=network.since_boot,
        )

    doc.browsers = _browsers_section(snapshot)

    if snapshot.notifications.available and snapshot.notifications.payload:
        notifications = snapshot.notifications.payload
        doc.notifications = NotificationsSection(
            total=notifications.total,
            top_apps=[
                NotificationEntry(name=app.name, count=app.count)
                for app in notifications.top_apps
            ]
            or None,
        )

    if snapshot.fragmentation.available and snapshot.fragmentation.level is not None:
        doc.fragmentation = FragmentationSection(
            score=snapshot.fragmentation.score,
            level=snapshot.fragmentation.level.value,
        )

    if snapshot.issues.available and snapshot.issues.payload and snapshot.issues.payload.issues:
        doc.issues = IssuesSection(
            issues=[
                IssueEntry(
                    id=issue.id,
                    tracker=issue.tracker,
                    url=issue.url,
                    visit_count=issue.visit_count,
                )
                for issue in snapshot.issues.payload.issues
            ]
        )

    if snapshot.burnout:
        doc.burnout = BurnoutSection(
            warnings=[
                WarningEntry(
                    type=warning.type.value,
                    severity=warning.severity.value,
                    message=warning.message,
                )
                for warning in snapshot.burnout
            ]
        )

    overload = check_context_overload(snapshot.apps, snapshot.browsers)
    doc.context_overload = ContextOverloadSection(
        is_overloaded=overload.is_overloaded,
        message=overload.message or None,
    )
    return doc


def render_json(snapshot: Snapshot, *, indent: Optional[int] = 2) -> str:
    return build_document(snapshot).model_dump_json(indent=indent, exclude_none=True)
