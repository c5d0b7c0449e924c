"""Console renderings of a snapshot: the human summary and key=value lines."""

from __future__ import annotations

from typing import Iterable

from .browsers import BROWSER_SOURCES
from .burnout import sort_by_severity
from .fragmentation import check_context_overload
from .models import Snapshot, WarningType
from .network import format_bytes

EMPTY_MESSAGE = (
    "No activity data available. Run 'rekap doctor' to check permissions."
)
APPS_HINT = "Run 'rekap init' to enable Full Disk Access for app tracking"

WARNING_ICONS = {
    WarningType.LONG_DAY: "⏰",
    WarningType.HIGH_SWITCHING: "🔄",
    WarningType.TAB_OVERLOAD: "📑",
    WarningType.LATE_NIGHT: "🌙",
    WarningType.NO_BREAKS: "😰",
}

FRAGMENTATION_ICONS = {"focused": "🟢", "moderate": "🟡", "fragmented": "🔴"}


class SummaryPrinter:
    """Render human-readable summaries in the console."""

    def __init__(self, snapshot: Snapshot) -> None:
        self.snapshot = snapshot

    def print_daily_summary(self, title: str = "📊 Today's rekap") -> None:
        if self.snapshot.is_empty:
            print(EMPTY_MESSAGE)
            return
        print(title)
        print("-" * 40)
        for line in summary_lines(self.snapshot):
            print(line)


def summary_lines(snapshot: Snapshot) -> list[str]:
    lines: list[str] = []
    overload = check_context_overload(snapshot.apps, snapshot.browsers)
    if overload.is_overloaded:
        lines += [f"⚠️  Context overload: {overload.message}", ""]

    lines += _system_lines(snapshot)
    lines += _productivity_lines(snapshot)
    lines += _media_and_network_lines(snapshot)
    lines += _browser_lines(snapshot)
    lines += _notification_lines(snapshot)

    if snapshot.fragmentation.available and snapshot.fragmentation.level is not None:
        level = snapshot.fragmentation.level.value
        lines += [
            "",
            "CONTEXT FRAGMENTATION",
            f"  {FRAGMENTATION_ICONS[level]} {snapshot.fragmentation.score}/100 ({level})",
        ]

    issues = snapshot.issues.payload.issues if snapshot.issues.payload else []
    if snapshot.issues.available and issues:
        lines += ["", "ISSUES/TICKETS"]
        for issue in issues[:10]:
            lines.append(
                f"  🎫 {issue.id} ({issue.tracker}, "
                f"{_plural(issue.visit_count, 'visit')})"
            )

    if snapshot.burnout:
        lines += ["", "WELLNESS CHECK"]
        for warning in sort_by_severity(snapshot.burnout):
            lines.append(f"  {WARNING_ICONS.get(warning.type, '⚠️')} {warning.message}")

    if not snapshot.apps.available and snapshot.apps.error:
        lines += ["", APPS_HINT]
    return lines


def _system_lines(snapshot: Snapshot) -> list[str]:
    lines = ["SYSTEM"]
    uptime = snapshot.uptime.payload
    if snapshot.uptime.available and uptime:
        lines.append(
            f"  ⏰ Active since {uptime.boot_time.strftime('%H:%M')} • {uptime.formatted}"
        )

    battery = snapshot.battery.payload
    if snapshot.battery.available and battery:
        status = "plugged in" if battery.is_plugged else "discharging"
        if battery.start_pct != battery.current_pct:
            text = f"{battery.start_pct}% → {battery.current_pct}% • {status}"
        else:
            text = f"{battery.current_pct}% • {status}"
        lines.append(f"  🔋 {text}")
        if battery.plug_count:
            lines.append(f"  🔌 {battery.plug_count} plug event(s) today")

    screen = snapshot.screen.payload
    if snapshot.screen.available and screen:
        lines.append(f"  💻 {format_minutes(screen.screen_on_minutes)} screen-on")
        if screen.lock_count:
            locks = _plural(screen.lock_count, "time")
            if screen.avg_mins_between_locks:
                lines.append(
                    f"  🔒 Screen locked {locks} "
                    f"(avg {format_minutes(screen.avg_mins_between_locks)} between breaks)"
                )
            else:
                lines.append(f"  🔒 Screen locked {locks} today")
    return lines


def _productivity_lines(snapshot: Snapshot) -> list[str]:
    focus = snapshot.focus.payload
    has_streak = snapshot.focus.available and focus and focus.streak_minutes > 0
    apps = snapshot.apps.payload
    has_apps = snapshot.apps.available and apps and apps.top_apps
    if not (has_streak or has_apps):
        return []
    lines = ["", "PRODUCTIVITY"]
    if has_streak:
        lines.append(
            f"  ⏱️  Best focus: {format_minutes(focus.streak_minutes)} in {focus.app_name}"
        )
    if has_apps:
        for app in apps.top_apps[:3]:
            lines.append(f"  📱 {app.name} • {format_minutes(app.minutes)}")
        if apps.switching is not None:
            lines.append(
                f"  🔄 {apps.switching.total_switches} app switches "
                f"({apps.switching.switches_per_hour:.1f}/hour)"
            )
    return lines


def _media_and_network_lines(snapshot: Snapshot) -> list[str]:
    lines: list[str] = []
    media = snapshot.media.payload
    if snapshot.media.available and media:
        lines += ["", "NOW PLAYING", f'  🎵 "{media.track}" in {media.app}']

    network = snapshot.network.payload
    if snapshot.network.available and network:
        suffix = " since boot" if network.since_boot else ""
        lines += [
            "",
            "NETWORK ACTIVITY",
            f'  🌐 {network.interface}: "{network.network_name}" • '
            f"{format_bytes(network.bytes_received)} down / "
            f"{format_bytes(network.bytes_sent)} up{suffix}",
        ]
    return lines


def _browser_lines(snapshot: Snapshot) -> list[str]:
    browsers = snapshot.browsers.payload
    if not snapshot.browsers.available or browsers is None:
        return []
    if not (browsers.total_tabs or browsers.total_urls_visited):
        return []
    lines = ["", "BROWSER ACTIVITY"]

    if browsers.total_urls_visited:
        text = f"{browsers.total_urls_visited} URLs visited today"
        if browsers.top_history_domain:
            text += (
                f" • Top: {browsers.top_history_domain} "
                f"({_plural(browsers.top_domain_visits, 'visit')})"
            )
        lines.append(f"  📊 {text}")
        if browsers.all_issue_ids:
            lines.append(f"  🎫 Issues viewed: {format_issue_ids(browsers.all_issue_ids)}")

    if browsers.total_tabs:
        text = f"{browsers.total_tabs} tabs open"
        for source in BROWSER_SOURCES:
            browser = getattr(browsers, source.key)
            if browser is not None and browser.tabs_available:
                text += f" • {source.name}: {browser.tab_count}"
        lines.append(f"  🌐 {text}")
        ranked = sorted(browsers.top_domains.items(), key=lambda item: (-item[1], item[0]))
        if ranked:
            lines.append("  📑 Top tab domains:")
            for domain, count in ranked[:5]:
                lines.append(f"       {domain} ({_plural(count, 'tab')})")

    categorized = (
        browsers.work_visits + browsers.distraction_visits + browsers.neutral_visits
    )
    if categorized:
        lines.append("  📊 Domain breakdown:")
        for label, value in (
            ("Work", browsers.work_visits),
            ("Distraction", browsers.distraction_visits),
            ("Neutral", browsers.neutral_visits),
        ):
            lines.append(f"       {label}: {value} visits ({value * 100 // categorized}%)")
    return lines


def _notification_lines(snapshot: Snapshot) -> list[str]:
    notifications = snapshot.notifications.payload
    if not snapshot.notifications.available or not notifications or not notifications.total:
        return []
    lines = [
        "",
        "NOTIFICATIONS",
        f"  🔔 {_plural(notifications.total, 'notification')} today",
    ]
    if notifications.top_apps:
        lines.append("  📱 Top interrupting apps:")
        for app in notifications.top_apps[:3]:
            lines.append(f"       {app.name} ({_plural(app.count, 'notification')})")
    return lines


def quiet_lines(snapshot: Snapshot) -> list[str]:
    """``key=value`` lines for scripting; unavailable sections are skipped."""
    out: list[str] = []

    def emit(key: str, value: object) -> None:
        if isinstance(value, bool):
            value = int(value)
        out.append(f"{key}={value}")

    if snapshot.uptime.available and snapshot.uptime.payload:
        emit("awake_minutes", snapshot.uptime.payload.awake_minutes)
        emit("boot_time", int(snapshot.uptime.payload.boot_time.timestamp()))

    if snapshot.battery.available and snapshot.battery.payload:
        battery = snapshot.battery.payload
        emit("battery_start_pct", battery.start_pct)
        emit("battery_now_pct", battery.current_pct)
        emit("plug_events", battery.plug_count)
        emit("is_plugged", battery.is_plugged)

    if snapshot.screen.available and snapshot.screen.payload:
        screen = snapshot.screen.payload
        emit("screen_on_minutes", screen.screen_on_minutes)
        if screen.lock_count:
            emit("screen_lock_count", screen.lock_count)
            emit("avg_mins_between_locks", screen.avg_mins_between_locks)

    if snapshot.apps.available and snapshot.apps.payload:
        for index, app in enumerate(snapshot.apps.payload.top_apps[:3], start=1):
            emit(f"top_app_{index}", app.name)
            emit(f"top_app_{index}_minutes", app.minutes)
        switching = snapshot.apps.payload.switching
        if switching is not None:
            emit("app_switches", switching.total_switches)
            emit("app_switches_per_hour", f"{switching.switches_per_hour:.1f}")

    focus = snapshot.focus.payload
    if snapshot.focus.available and focus and focus.streak_minutes > 0:
        emit("focus_streak_minutes", focus.streak_minutes)
        emit("focus_streak_app", focus.app_name)

    if snapshot.media.available and snapshot.media.payload:
        emit("media_track", snapshot.media.payload.track)
        emit("media_app", snapshot.media.payload.app)

    if snapshot.network.available and snapshot.network.payload:
        network = snapshot.network.payload
        emit("network_interface", network.interface)
        emit("network_name", network.network_name)
        emit("network_bytes_received", network.bytes_received)
        emit("network_bytes_sent", network.bytes_sent)

    if snapshot.browsers.available and snapshot.browsers.payload:
        browsers = snapshot.browsers.payload
        emit("browser_total_tabs", browsers.total_tabs)
        for source in BROWSER_SOURCES:
            browser = getattr(browsers, source.key)
            if browser is not None and browser.tabs_available:
                emit(f"browser_{source.key}_tabs", browser.tab_count)
        if browsers.work_visits + browsers.distraction_visits + browsers.neutral_visits:
            emit("browser_work_visits", browsers.work_visits)
            emit("browser_distraction_visits", browsers.distraction_visits)
            emit("browser_neutral_visits", browsers.neutral_visits)
        if browsers.total_urls_visited:
            emit("browser_urls_visited", browsers.total_urls_visited)
        if browsers.top_history_domain:
            emit("browser_top_domain", browsers.top_history_domain)
            emit("browser_top_domain_visits", browsers.top_domain_visits)
        if browsers.all_issue_ids:
            emit("browser_issues_viewed", len(browsers.all_issue_ids))

    if snapshot.notifications.available and snapshot.notifications.payload:
        notifications = snapshot.notifications.payload
        emit("notifications_total", notifications.total)
        for index, app in enumerate(notifications.top_apps[:3], start=1):
            emit(f"notification_app_{index}", app.name)
            emit(f"notification_app_{index}_count", app.count)

    if snapshot.fragmentation.available and snapshot.fragmentation.level is not None:
        emit("fragmentation_score", snapshot.fragmentation.score)
        emit("fragmentation_level", snapshot.fragmentation.level.value)

    if snapshot.issues.available and snapshot.issues.payload:
        issues = snapshot.issues.payload.issues
        emit("issues_count", len(issues))
        for index, issue in enumerate(issues[:10], start=1):
            emit(f"issue_{index}_id", issue.id)
            emit(f"issue_{index}_tracker", issue.tracker)
            emit(f"issue_{index}_visits", issue.visit_count)

    for warning in sort_by_severity(snapshot.burnout):
        emit(f"burnout_{warning.type.value}", warning.metric_value)

    overload = check_context_overload(snapshot.apps, snapshot.browsers)
    emit("context_overload", overload.is_overloaded)
    if overload.is_overloaded:
        emit("context_overload_message", overload.message)
    return out


def format_minutes(minutes: int) -> str:
    hours, mins = divmod(int(minutes), 60)
    if hours and mins:
        return f"{hours}h {mins}m"
    if hours:
        return f"{hours}h"
    return f"{mins}m"


def format_issue_ids(issue_ids: Iterable[str], limit: int = 3) -> str:
    ids = list(issue_ids)
    if len(ids) > limit:
        return ", ".join(ids[:limit]) + f" (+{len(ids) - limit} more)"
    return ", ".join(ids)


def _plural(count: int, noun: str) -> str:
    return f"{count} {noun}" if count == 1 else f"{count} {noun}s"
