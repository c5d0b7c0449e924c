"""Fixed sample snapshot for screenshots and trying rekap without permissions."""

from __future__ import annotations

from datetime import datetime, timedelta
from itertools import cycle, islice
from typing import Optional

from .collector import score_snapshot
from .config import RekapConfig
from .models import (
    AppsPayload,
    AppUsage,
    BatteryPayload,
    BrowserPayload,
    BrowsersPayload,
    BrowserTab,
    FocusPayload,
    IssuesPayload,
    IssueVisit,
    MediaPayload,
    NetworkPayload,
    NotificationApp,
    NotificationsPayload,
    ProbeResult,
    ScreenPayload,
    Snapshot,
    SwitchingStats,
    UptimePayload,
)

DEMO_TAB_DOMAINS = {
    "github.com": 8,
    "stackoverflow.com": 6,
    "mail.google.com": 5,
    "chatgpt.com": 4,
    "youtube.com": 3,
    "docs.python.org": 3,
    "reddit.com": 2,
    "twitter.com": 2,
    "linear.app": 2,
}


def _demo_tabs(count: int) -> list[BrowserTab]:
    return [
        BrowserTab(title=f"{domain} tab", url=f"https://{domain}/", domain=domain)
        for domain in islice(cycle(DEMO_TAB_DOMAINS), count)
    ]


def _demo_browser(name: str, tab_count: int) -> BrowserPayload:
    return BrowserPayload(browser=name, tabs_available=True, tabs=_demo_tabs(tab_count))


def build_demo_snapshot(
    config: Optional[RekapConfig] = None, now: Optional[datetime] = None
) -> Snapshot:
    config = config or RekapConfig()
    now = now or datetime.now().astimezone()

    snapshot = Snapshot(day=now.date(), collected_at=now)
    snapshot.uptime = ProbeResult.ok(
        UptimePayload(boot_time=now - timedelta(hours=8), awake_minutes=287)
    )
    snapshot.battery = ProbeResult.ok(
        BatteryPayload(start_pct=92, current_pct=68, plug_count=1, is_plugged=False)
    )
    snapshot.screen = ProbeResult.ok(ScreenPayload(screen_on_minutes=660))
    snapshot.apps = ProbeResult.ok(
        AppsPayload(
            top_apps=[
                AppUsage("VS Code", 142, "com.microsoft.VSCode"),
                AppUsage("Safari", 89, "com.apple.Safari"),
                AppUsage("Slack", 52, "com.tinyspeck.slackmacgap"),
                AppUsage("Terminal", 38, "com.apple.Terminal"),
                AppUsage("Chrome", 27, "com.google.Chrome"),
                AppUsage("Notion", 18, "com.notion.Notion"),
                AppUsage("Discord", 12, "com.discord.Discord"),
            ],
            switching=SwitchingStats(
                total_switches=58, avg_mins_between=4.9, switches_per_hour=12.1
            ),
        )
    )
    snapshot.focus = ProbeResult.ok(
        FocusPayload(
            streak_minutes=87,
            app_name="VS Code",
            bundle_id="com.microsoft.VSCode",
            longest_active_minutes=135,
        )
    )
    snapshot.media = ProbeResult.ok(
        MediaPayload(track="Blinding Lights - The Weeknd", app="Spotify")
    )
    snapshot.network = ProbeResult.ok(
        NetworkPayload(
            interface="en0",
            network_name="Home-5GHz",
            bytes_received=2_469_606_195,
            bytes_sent=471_859_200,
            since_boot=False,
        )
    )
    snapshot.browsers = ProbeResult.ok(
        BrowsersPayload(
            chrome=_demo_browser("Chrome", 58),
            safari=_demo_browser("Safari", 42),
            edge=_demo_browser("Edge", 25),
            total_tabs=125,
            top_domains=dict(DEMO_TAB_DOMAINS),
            work_visits=19,
            distraction_visits=7,
            neutral_visits=9,
            total_urls_visited=147,
            all_issue_ids=["PROJ-123", "PROJ-456", "org/repo#89"],
            top_history_domain="github.com",
            top_domain_visits=34,
        )
    )
    snapshot.notifications = ProbeResult.ok(
        NotificationsPayload(
            total=47,
            top_apps=[
                NotificationApp("Slack", 18, "com.tinyspeck.slackmacgap"),
                NotificationApp("Mail", 12, "com.apple.mail"),
                NotificationApp("Messages", 9, "com.apple.MobileSMS"),
            ],
        )
    )
    snapshot.issues = ProbeResult.ok(
        IssuesPayload(
            issues=[
                IssueVisit(
                    "PROJ-123", "Jira", "https://company.atlassian.net/browse/PROJ-123", 8
                ),
                IssueVisit(
                    "github.com/acme/rekap/issues/42",
                    "GitHub",
                    "https://github.com/acme/rekap/issues/42",
                    5,
                ),
                IssueVisit("ENG-789", "Linear", "https://linear.app/acme/issue/ENG-789", 3),
            ]
        )
    )
    return score_snapshot(snapshot, config)
