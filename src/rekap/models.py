"""Domain models for a day's activity snapshot."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class ActivityInterval:
    """A span of recorded usage for one subject (usually a bundle identifier)."""

    subject: str
    start: datetime
    end: datetime

    @property
    def duration_seconds(self) -> float:
        return (self.end - self.start).total_seconds()


class TransitionKind(str, Enum):
    SLEEP = "sleep"
    WAKE = "wake"
    DISPLAY_ON = "display_on"
    DISPLAY_OFF = "display_off"


@dataclass(frozen=True, slots=True)
class StateTransition:
    kind: TransitionKind
    timestamp: datetime


@dataclass(slots=True)
class ProbeResult(Generic[T]):
    """Envelope returned by every probe.

    ``error`` is diagnostic only; a result can be available and still carry a
    note explaining that its payload is an estimate.
    """

    available: bool = False
    error: Optional[str] = None
    payload: Optional[T] = None

    @classmethod
    def ok(cls, payload: T, note: Optional[str] = None) -> "ProbeResult[T]":
        return cls(available=True, error=note, payload=payload)

    @classmethod
    def failed(cls, error: object) -> "ProbeResult[T]":
        return cls(available=False, error=str(error), payload=None)


@dataclass(slots=True)
class UptimePayload:
    boot_time: datetime
    awake_minutes: int

    @property
    def formatted(self) -> str:
        hours, mins = divmod(self.awake_minutes, 60)
        if hours:
            return f"{hours}h {mins}m awake"
        return f"{mins}m awake"


@dataclass(slots=True)
class BatteryPayload:
    start_pct: int
    current_pct: int
    plug_count: int
    is_plugged: bool


@dataclass(slots=True)
class ScreenPayload:
    screen_on_minutes: int
    lock_count: int = 0
    avg_mins_between_locks: int = 0


@dataclass(slots=True)
class AppUsage:
    name: str
    minutes: int
    bundle_id: str


@dataclass(slots=True)
class SwitchingStats:
    total_switches: int
    avg_mins_between: float
    switches_per_hour: float


@dataclass(slots=True)
class AppsPayload:
    top_apps: list[AppUsage]
    excluded_apps: list[str] = field(default_factory=list)
    switching: Optional[SwitchingStats] = None


@dataclass(frozen=True, slots=True)
class FocusStreak:
    minutes: int
    subject: str


@dataclass(slots=True)
class FocusPayload:
    streak_minutes: int
    app_name: str
    bundle_id: str
    longest_active_minutes: int = 0
    late_night_minutes: Optional[int] = None


@dataclass(slots=True)
class MediaPayload:
    track: str
    app: str


@dataclass(slots=True)
class NetworkPayload:
    interface: str
    network_name: str
    bytes_received: int
    bytes_sent: int
    since_boot: bool


@dataclass(slots=True)
class BrowserTab:
    title: str
    url: str
    domain: str


@dataclass(slots=True)
class BrowserHistory:
    urls_visited: int = 0
    top_domain: str = ""
    top_domain_visits: int = 0
    issue_ids: list[str] = field(default_factory=list)
    domains: dict[str, int] = field(default_factory=dict)


@dataclass(slots=True)
class BrowserPayload:
    browser: str
    tabs_available: bool = False
    tabs: list[BrowserTab] = field(default_factory=list)
    domains: dict[str, int] = field(default_factory=dict)
    history: BrowserHistory = field(default_factory=BrowserHistory)

    @property
    def tab_count(self) -> int:
        return len(self.tabs)


@dataclass(slots=True)
class BrowsersPayload:
    chrome: Optional[BrowserPayload] = None
    safari: Optional[BrowserPayload] = None
    edge: Optional[BrowserPayload] = None
    total_tabs: int = 0
    top_domains: dict[str, int] = field(default_factory=dict)
    work_visits: int = 0
    distraction_visits: int = 0
    neutral_visits: int = 0
    total_urls_visited: int = 0
    all_issue_ids: list[str] = field(default_factory=list)
    top_history_domain: str = ""
    top_domain_visits: int = 0


@dataclass(slots=True)
class NotificationApp:
    name: str
    count: int
    bundle_id: str


@dataclass(slots=True)
class NotificationsPayload:
    total: int
    top_apps: list[NotificationApp] = field(default_factory=list)


@dataclass(slots=True)
class IssueVisit:
    id: str
    tracker: str
    url: str
    visit_count: int


@dataclass(slots=True)
class IssuesPayload:
    issues: list[IssueVisit] = field(default_factory=list)


class DomainCategory(str, Enum):
    WORK = "work"
    DISTRACTION = "distraction"
    NEUTRAL = "neutral"


class FragmentationLevel(str, Enum):
    FOCUSED = "focused"
    MODERATE = "moderate"
    FRAGMENTED = "fragmented"


@dataclass(frozen=True, slots=True)
class FragmentationBreakdown:
    unique_apps: int = 0
    total_tabs: int = 0
    unique_domains: int = 0
    app_switches_per_hour: float = 0.0


@dataclass(slots=True)
class FragmentationResult:
    score: int = 0
    level: Optional[FragmentationLevel] = None
    breakdown: FragmentationBreakdown = field(default_factory=FragmentationBreakdown)
    available: bool = False


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return {"high": 0, "medium": 1, "low": 2}[self.value]


class WarningType(str, Enum):
    LONG_DAY = "long_day"
    HIGH_SWITCHING = "high_switching"
    TAB_OVERLOAD = "tab_overload"
    LATE_NIGHT = "late_night"
    NO_BREAKS = "no_breaks"


@dataclass(frozen=True, slots=True)
class BurnoutWarning:
    type: WarningType
    message: str
    severity: Severity
    metric_value: int


@dataclass(frozen=True, slots=True)
class ContextOverload:
    is_overloaded: bool = False
    active_apps: int = 0
    total_tabs: int = 0
    unique_domains: int = 0
    message: str = ""


@dataclass(slots=True)
class Snapshot:
    """Everything gathered during one run."""

    day: date
    collected_at: datetime
    uptime: ProbeResult[UptimePayload] = field(default_factory=ProbeResult)
    battery: ProbeResult[BatteryPayload] = field(default_factory=ProbeResult)
    screen: ProbeResult[ScreenPayload] = field(default_factory=ProbeResult)
    apps: ProbeResult[AppsPayload] = field(default_factory=ProbeResult)
    focus: ProbeResult[FocusPayload] = field(default_factory=ProbeResult)
    media: ProbeResult[MediaPayload] = field(default_factory=ProbeResult)
    network: ProbeResult[NetworkPayload] = field(default_factory=ProbeResult)
    browsers: ProbeResult[BrowsersPayload] = field(default_factory=ProbeResult)
    notifications: ProbeResult[NotificationsPayload] = field(default_factory=ProbeResult)
    issues: ProbeResult[IssuesPayload] = field(default_factory=ProbeResult)
    fragmentation: FragmentationResult = field(default_factory=FragmentationResult)
    burnout: list[BurnoutWarning] = field(default_factory=list)

    def probe_results(self) -> dict[str, ProbeResult]:
        return {name: getattr(self, name) for name in PROBE_NAMES}

    @property
    def is_empty(self) -> bool:
        """True when no source produced any data at all."""
        return not any(result.available for result in self.probe_results().values())


PROBE_NAMES = (
    "uptime",
    "battery",
    "screen",
    "apps",
    "focus",
    "media",
    "network",
    "browsers",
    "notifications",
    "issues",
)
