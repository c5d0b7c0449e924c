"""Best-effort probes for system state, app usage and media.

Each probe receives a :class:`ProbeContext` and either returns a
:class:`~rekap.models.ProbeResult` or raises a :class:`~rekap.errors.RekapError`
that the collector turns into an unavailable result.
"""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from pathlib import Path
from typing import Optional

import psutil

from .config import RekapConfig
from .db import (
    fetch_intervals,
    fetch_notification_counts,
    fetch_usage_totals,
    store_connection,
)
from .errors import RekapError, SourceUnavailable
from .intervals import (
    app_switching_stats,
    filter_subjects,
    longest_active_span,
    longest_focus_streak,
    minutes_between,
)
from .models import (
    ActivityInterval,
    AppsPayload,
    AppUsage,
    BatteryPayload,
    FocusPayload,
    MediaPayload,
    NotificationApp,
    NotificationsPayload,
    ProbeResult,
    ScreenPayload,
    UptimePayload,
)
from .paths import get_knowledge_db_path
from .powerlog import parse_charge_log, parse_display_activity, parse_sleep_duration
from .system import Deadline, run_command, run_osascript

logger = logging.getLogger(__name__)

TOP_APPS_LIMIT = 10


@dataclass(slots=True)
class ProbeContext:
    """Read-only inputs shared by all probes of one collection pass."""

    config: RekapConfig
    deadline: Deadline
    now: datetime
    knowledge_db: Path = field(default_factory=get_knowledge_db_path)
    data_dir: Optional[Path] = None

    @property
    def midnight(self) -> datetime:
        return self.now.replace(hour=0, minute=0, second=0, microsecond=0)


class AppNameResolver:
    """Turns bundle identifiers into display names, caching per instance."""

    def __init__(self, deadline: Optional[Deadline] = None, *, use_finder: bool = True) -> None:
        self._deadline = deadline
        self._use_finder = use_finder
        self._cache: dict[str, str] = {}

    def resolve(self, bundle_id: str) -> str:
        cached = self._cache.get(bundle_id)
        if cached is None:
            cached = self._lookup(bundle_id)
            self._cache[bundle_id] = cached
        return cached

    def _lookup(self, bundle_id: str) -> str:
        if self._use_finder:
            script = (
                'tell application "Finder" to get name of application file id '
                f'"{bundle_id}"'
            )
            try:
                name = run_osascript(script, self._deadline)
            except RekapError as exc:
                logger.debug("Finder lookup failed for %s: %s", bundle_id, exc)
            else:
                if name:
                    return name.removesuffix(".app")
        return fallback_app_name(bundle_id)


def fallback_app_name(bundle_id: str) -> str:
    """``com.microsoft.VSCode`` -> ``VSCode``."""
    return bundle_id.rsplit(".", 1)[-1] or bundle_id


def read_power_log(deadline: Optional[Deadline]) -> str:
    return run_command(["pmset", "-g", "log"], deadline)


# -- system ------------------------------------------------------------------


def collect_uptime(ctx: ProbeContext) -> ProbeResult[UptimePayload]:
    try:
        boot_time = datetime.fromtimestamp(psutil.boot_time()).astimezone(ctx.now.tzinfo)
    except (OSError, RuntimeError) as exc:
        raise SourceUnavailable(f"failed to read boot time: {exc}") from exc

    awake_start = max(boot_time, ctx.midnight)
    awake = ctx.now - awake_start
    try:
        log_text = read_power_log(ctx.deadline)
    except RekapError as exc:
        logger.debug("Power log unavailable, not subtracting sleep: %s", exc)
    else:
        awake -= parse_sleep_duration(log_text, awake_start, ctx.now)
    awake = max(awake, timedelta(0))

    return ProbeResult.ok(
        UptimePayload(
            boot_time=boot_time,
            awake_minutes=int(awake.total_seconds() // 60),
        )
    )


def collect_battery(ctx: ProbeContext) -> ProbeResult[BatteryPayload]:
    try:
        battery = psutil.sensors_battery()
    except (AttributeError, OSError, RuntimeError) as exc:
        raise SourceUnavailable(f"failed to read battery status: {exc}") from exc
    if battery is None:
        raise SourceUnavailable("no battery found")

    current = int(round(battery.percent))
    start_pct: Optional[int] = None
    plug_count = 0
    try:
        history = parse_charge_log(read_power_log(ctx.deadline), ctx.now.date())
    except RekapError as exc:
        logger.debug("Charge history unavailable: %s", exc)
    else:
        start_pct = history.start_pct
        plug_count = history.plug_count

    return ProbeResult.ok(
        BatteryPayload(
            start_pct=start_pct if start_pct is not None else current,
            current_pct=current,
            plug_count=plug_count,
            is_plugged=bool(battery.power_plugged),
        )
    )


def collect_screen(ctx: ProbeContext) -> ProbeResult[ScreenPayload]:
    estimate = int((ctx.now - ctx.midnight).total_seconds() // 60)
    try:
        log_text = read_power_log(ctx.deadline)
    except RekapError as exc:
        return ProbeResult.ok(
            ScreenPayload(screen_on_minutes=estimate),
            note=f"pmset log unavailable, using rough estimate: {exc}",
        )

    summary = parse_display_activity(log_text, ctx.now.date(), ctx.now)
    payload = ScreenPayload(
        screen_on_minutes=summary.screen_on_minutes,
        lock_count=summary.lock_count,
        avg_mins_between_locks=summary.avg_mins_between_locks,
    )
    if payload.screen_on_minutes == 0:
        payload.screen_on_minutes = estimate
        return ProbeResult.ok(payload, note="no display events parsed, using estimate")
    return ProbeResult.ok(payload)


# -- Screen Time store -------------------------------------------------------


def _usage_intervals(
    ctx: ProbeContext, names: AppNameResolver
) -> list[ActivityInterval]:
    with store_connection(ctx.knowledge_db, ctx.deadline) as conn:
        intervals = fetch_intervals(conn, ctx.midnight, ctx.now)
    return _drop_excluded(intervals, ctx.config.tracking.exclude_apps, names)


def _drop_excluded(
    intervals: list[ActivityInterval], excluded_names: list[str], names: AppNameResolver
) -> list[ActivityInterval]:
    if not excluded_names:
        return intervals
    excluded = set(excluded_names)
    hidden = {
        interval.subject
        for interval in intervals
        if names.resolve(interval.subject) in excluded
    }
    return filter_subjects(intervals, hidden)


def collect_apps(ctx: ProbeContext) -> ProbeResult[AppsPayload]:
    names = AppNameResolver(ctx.deadline)
    excluded = ctx.config.tracking.exclude_apps
    with store_connection(ctx.knowledge_db, ctx.deadline) as conn:
        totals = fetch_usage_totals(conn, ctx.midnight, ctx.now)
        intervals = fetch_intervals(conn, ctx.midnight, ctx.now)

    top_apps: list[AppUsage] = []
    for bundle_id, seconds in totals:
        if len(top_apps) >= TOP_APPS_LIMIT:
            break
        name = names.resolve(bundle_id)
        if name in excluded:
            continue
        minutes = int(seconds // 60)
        if minutes > 0:
            top_apps.append(AppUsage(name=name, minutes=minutes, bundle_id=bundle_id))

    if not top_apps:
        raise SourceUnavailable("no app usage recorded today")

    switching = app_switching_stats(_drop_excluded(intervals, excluded, names))
    return ProbeResult.ok(
        AppsPayload(top_apps=top_apps, excluded_apps=list(excluded), switching=switching)
    )


def collect_focus(ctx: ProbeContext) -> ProbeResult[FocusPayload]:
    names = AppNameResolver(ctx.deadline)
    intervals = _usage_intervals(ctx, names)
    if not intervals:
        raise SourceUnavailable("no app activity recorded today")
    streak = longest_focus_streak(intervals)

    settings = ctx.config.burnout
    late_night: Optional[int] = None
    if ctx.now.hour < settings.late_night_end_hour:
        late_night = minutes_between(
            intervals,
            ctx.midnight,
            ctx.midnight + timedelta(hours=settings.late_night_end_hour),
        )

    return ProbeResult.ok(
        FocusPayload(
            streak_minutes=streak.minutes if streak else 0,
            app_name=names.resolve(streak.subject) if streak else "",
            bundle_id=streak.subject if streak else "",
            longest_active_minutes=longest_active_span(intervals, settings.no_break_gap),
            late_night_minutes=late_night,
        )
    )


def collect_notifications(ctx: ProbeContext) -> ProbeResult[NotificationsPayload]:
    names = AppNameResolver(ctx.deadline)
    with store_connection(ctx.knowledge_db, ctx.deadline) as conn:
        counts = fetch_notification_counts(conn, ctx.midnight, ctx.now)
    apps = [
        NotificationApp(name=names.resolve(bundle_id), count=count, bundle_id=bundle_id)
        for bundle_id, count in counts
    ]
    return ProbeResult.ok(
        NotificationsPayload(total=sum(app.count for app in apps), top_apps=apps)
    )


# -- media -------------------------------------------------------------------

_MUSIC_SCRIPT = """
tell application "Music"
    if it is running then
        if player state is not stopped then
            return (name of current track) & "|Music"
        end if
    end if
end tell
return ""
"""

_SPOTIFY_SCRIPT = """
tell application "Spotify"
    if it is running then
        if player state is playing then
            return (name of current track) & " - " & (artist of current track) & "|Spotify"
        end if
    end if
end tell
return ""
"""


def parse_now_playing(output: str) -> Optional[MediaPayload]:
    track, sep, app = output.strip().rpartition("|")
    if not sep or not track or not app:
        return None
    return MediaPayload(track=track, app=app)


def _nowplaying_field(name: str, deadline: Deadline) -> str:
    value = run_command(["nowplaying-cli", "get", name], deadline).strip()
    return "" if value == "null" else value


def collect_media(ctx: ProbeContext) -> ProbeResult[MediaPayload]:
    for script in (_MUSIC_SCRIPT, _SPOTIFY_SCRIPT):
        try:
            media = parse_now_playing(run_osascript(script, ctx.deadline))
        except RekapError as exc:
            logger.debug("AppleScript media query failed: %s", exc)
            continue
        if media is not None:
            return ProbeResult.ok(media)

    if shutil.which("nowplaying-cli"):
        title = _nowplaying_field("title", ctx.deadline)
        app = _nowplaying_field("app", ctx.deadline)
        if title and app:
            try:
                artist = _nowplaying_field("artist", ctx.deadline)
            except RekapError:
                artist = ""
            track = f"{title} - {artist}" if artist else title
            return ProbeResult.ok(MediaPayload(track=track, app=app))

    raise SourceUnavailable("no media playing or media info unavailable")
