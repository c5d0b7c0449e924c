"""Open browser tabs, today's browsing history and issue-tracker visits."""

from __future__ import annotations

import logging
import re
import sqlite3
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Iterable, Optional

import psutil

from .config import DomainSettings
from .db import attach_deadline, copied_database, query, to_core_data
from .domains import categorize, extract_domain
from .errors import RekapError, SourceUnavailable
from .models import (
    BrowserHistory,
    BrowserPayload,
    BrowsersPayload,
    BrowserTab,
    DomainCategory,
    IssuesPayload,
    IssueVisit,
    ProbeResult,
)
from .paths import get_chrome_history_path, get_edge_history_path, get_safari_history_path
from .probes import ProbeContext
from .system import Deadline, run_osascript

logger = logging.getLogger(__name__)

# Chromium stores visit times as microseconds since this instant.
WEBKIT_EPOCH = datetime(1601, 1, 1, tzinfo=timezone.utc)

TAB_SEPARATOR = ":::"
FIELD_SEPARATOR = "|||"

_CHROMIUM_HISTORY_SQL = """
    SELECT u.url AS url, COUNT(*) AS visits
    FROM urls u
    JOIN visits v ON u.id = v.url
    WHERE v.visit_time >= ? AND v.visit_time < ?
    GROUP BY u.url
    ORDER BY visits DESC
"""

_SAFARI_HISTORY_SQL = """
    SELECT hi.url AS url, COUNT(*) AS visits
    FROM history_items hi
    JOIN history_visits hv ON hi.id = hv.history_item
    WHERE hv.visit_time >= ? AND hv.visit_time < ?
    GROUP BY hi.url
    ORDER BY visits DESC
"""


def to_webkit(value: datetime) -> int:
    if value.tzinfo is None:
        value = value.astimezone()
    delta = value - WEBKIT_EPOCH
    return (delta.days * 86_400 + delta.seconds) * 1_000_000 + delta.microseconds


@dataclass(frozen=True, slots=True)
class BrowserSource:
    """How to reach one browser's tabs and history."""

    name: str
    app_name: str
    title_property: str
    history_path: Callable[[], Path]
    history_sql: str
    timestamp: Callable[[datetime], float]

    @property
    def key(self) -> str:
        return self.name.lower()


BROWSER_SOURCES = (
    BrowserSource(
        name="Chrome",
        app_name="Google Chrome",
        title_property="title of t",
        history_path=get_chrome_history_path,
        history_sql=_CHROMIUM_HISTORY_SQL,
        timestamp=to_webkit,
    ),
    BrowserSource(
        name="Safari",
        app_name="Safari",
        title_property="name of t",
        history_path=get_safari_history_path,
        history_sql=_SAFARI_HISTORY_SQL,
        timestamp=to_core_data,
    ),
    BrowserSource(
        name="Edge",
        app_name="Microsoft Edge",
        title_property="title of t",
        history_path=get_edge_history_path,
        history_sql=_CHROMIUM_HISTORY_SQL,
        timestamp=to_webkit,
    ),
)


# -- open tabs -----------------------------------------------------------------


def is_running(app_name: str) -> bool:
    for process in psutil.process_iter(["name"]):
        try:
            if process.info["name"] == app_name:
                return True
        except psutil.Error:
            continue
    return False


def tab_script(source: BrowserSource) -> str:
    return f"""
tell application "{source.app_name}"
    if it is running then
        set tabList to {{}}
        repeat with w in windows
            repeat with t in tabs of w
                set end of tabList to ({source.title_property}) & "{FIELD_SEPARATOR}" & (URL of t)
            end repeat
        end repeat
        set AppleScript's text item delimiters to "{TAB_SEPARATOR}"
        set tabText to tabList as text
        set AppleScript's text item delimiters to ""
        return tabText
    end if
end tell
return ""
"""


def parse_tab_output(output: str) -> list[BrowserTab]:
    tabs: list[BrowserTab] = []
    for chunk in output.strip().split(TAB_SEPARATOR):
        if not chunk:
            continue
        parts = chunk.split(FIELD_SEPARATOR)
        if len(parts) != 2:
            continue
        title, url = (part.strip() for part in parts)
        tabs.append(BrowserTab(title=title, url=url, domain=extract_domain(url)))
    return tabs


def list_tabs(source: BrowserSource, deadline: Optional[Deadline]) -> Optional[list[BrowserTab]]:
    """Return open tabs, or None when the browser is not running."""
    if not is_running(source.app_name):
        return None
    output = run_osascript(tab_script(source), deadline)
    if not output:
        return None
    return parse_tab_output(output)


# -- history -------------------------------------------------------------------


def read_history(
    path: Path,
    sql: str,
    start: float,
    end: float,
    deadline: Optional[Deadline] = None,
) -> list[tuple[str, int]]:
    """Return (url, visits) pairs from a temporary copy of a history database."""
    with copied_database(path, prefix="rekap-history-") as copy:
        try:
            conn = sqlite3.connect(copy)
        except sqlite3.Error as exc:
            raise SourceUnavailable(f"failed to open {path.name}: {exc}") from exc
        try:
            conn.row_factory = sqlite3.Row
            if deadline is not None:
                attach_deadline(conn, deadline)
            rows = query(conn, sql, (start, end))
        finally:
            conn.close()
    return [(str(row["url"]), int(row["visits"] or 0)) for row in rows if row["url"]]


def read_browser_history(
    source: BrowserSource,
    start: datetime,
    end: datetime,
    deadline: Optional[Deadline] = None,
) -> list[tuple[str, int]]:
    return read_history(
        source.history_path(),
        source.history_sql,
        source.timestamp(start),
        source.timestamp(end),
        deadline,
    )


def summarize_history(rows: Iterable[tuple[str, int]]) -> BrowserHistory:
    history = BrowserHistory()
    domains: Counter[str] = Counter()
    issue_ids: dict[str, None] = {}
    for url, visits in rows:
        history.urls_visited += 1
        domain = extract_domain(url)
        if domain:
            domains[domain] += visits
        if is_issue_url(url):
            issue_ids.setdefault(extract_issue_identifier(url), None)
    history.domains = dict(domains)
    history.issue_ids = list(issue_ids)
    top = _top_entry(domains)
    if top is not None:
        history.top_domain, history.top_domain_visits = top
    return history


def _top_entry(counts: Counter[str]) -> Optional[tuple[str, int]]:
    ranked = sorted(
        (item for item in counts.items() if item[1] > 0),
        key=lambda item: (-item[1], item[0]),
    )
    return ranked[0] if ranked else None


# -- issue identifiers -------------------------------------------------------

_ISSUE_URL_PATTERNS = (
    re.compile(r"(atlassian\.net|jira\.[^/]+)/browse/[A-Z]+-\d+"),
    re.compile(r"github\.com/.+/(issues|pull)/\d+"),
    re.compile(r"linear\.app/.+/issue/"),
    re.compile(r"gitlab\.com/.+/(issues|merge_requests)/\d+"),
    re.compile(r"bitbucket\.org/.+/issues/\d+"),
    re.compile(r"dev\.azure\.com/.+/_?workitems/(?:edit/)?\d+"),
)

_JIRA_KEY_RE = re.compile(r"/browse/([A-Z]+-\d+)")
_GITHUB_REF_RE = re.compile(r"github\.com/([^/]+/[^/]+)/(issues|pull)/(\d+)")
_LINEAR_REF_RE = re.compile(r"linear\.app/[^/]+/issue/([^/?]+)")
_GITLAB_REF_RE = re.compile(
    r"gitlab\.com/([^/]+/[^/]+)(?:/-)?/(issues|merge_requests)/(\d+)"
)
_BITBUCKET_REF_RE = re.compile(r"bitbucket\.org/([^/]+/[^/]+)/issues/(\d+)")
_AZURE_REF_RE = re.compile(r"dev\.azure\.com/[^/]+/[^/]+/_?workitems/(?:edit/)?(\d+)")


def is_issue_url(url: str) -> bool:
    return any(pattern.search(url) for pattern in _ISSUE_URL_PATTERNS)


def extract_issue_identifier(url: str) -> str:
    """Short reference for an issue URL, e.g. ``PROJ-123`` or ``owner/repo#42``."""
    if match := _JIRA_KEY_RE.search(url):
        return match.group(1)
    if match := _GITHUB_REF_RE.search(url):
        return f"{match.group(1)}#{match.group(3)}"
    if match := _LINEAR_REF_RE.search(url):
        return match.group(1)
    if match := _GITLAB_REF_RE.search(url):
        marker = "#" if match.group(2) == "issues" else "!"
        return f"{match.group(1)}{marker}{match.group(3)}"
    if match := _BITBUCKET_REF_RE.search(url):
        return f"{match.group(1)}#{match.group(2)}"
    if match := _AZURE_REF_RE.search(url):
        return f"WI-{match.group(1)}"
    return url


@dataclass(frozen=True, slots=True)
class IssueTracker:
    name: str
    pattern: re.Pattern
    id_group: int


ISSUE_TRACKERS = (
    IssueTracker("GitHub", re.compile(r"github\.com/([^/]+)/([^/]+)/issues/(\d+)"), 0),
    IssueTracker("Jira", re.compile(r"([^/]+\.)?atlassian\.net/browse/([A-Z]+-\d+)"), 2),
    IssueTracker("Linear", re.compile(r"linear\.app/([^/]+/)?issue/([A-Z]+-[A-Z0-9]+)"), 2),
    IssueTracker("GitLab", re.compile(r"gitlab\.com/([^/]+)/([^/]+)/-/issues/(\d+)"), 0),
    IssueTracker(
        "Azure DevOps",
        re.compile(r"dev\.azure\.com/([^/]+)/([^/]+)/_workitems/edit/(\d+)"),
        3,
    ),
)


def match_issue(url: str) -> Optional[tuple[str, str]]:
    """Return (tracker, issue id) for the first tracker that recognises ``url``."""
    for tracker in ISSUE_TRACKERS:
        match = tracker.pattern.search(url)
        if match:
            return tracker.name, match.group(tracker.id_group)
    return None


def merge_issues(rows: Iterable[tuple[str, int]], into: Optional[dict] = None) -> dict:
    """Fold (url, visits) rows into a ``(tracker, id) -> IssueVisit`` map."""
    issues: dict[tuple[str, str], IssueVisit] = into if into is not None else {}
    for url, visits in rows:
        matched = match_issue(url)
        if matched is None:
            continue
        existing = issues.get(matched)
        if existing is not None:
            existing.visit_count += visits
        else:
            tracker, issue_id = matched
            issues[matched] = IssueVisit(
                id=issue_id, tracker=tracker, url=url, visit_count=visits
            )
    return issues


# -- probes --------------------------------------------------------------------


def collect_browser(source: BrowserSource, ctx: ProbeContext) -> BrowserPayload:
    payload = BrowserPayload(browser=source.name)
    try:
        tabs = list_tabs(source, ctx.deadline)
    except RekapError as exc:
        logger.debug("%s tabs unavailable: %s", source.name, exc)
        tabs = None
    if tabs is not None:
        payload.tabs_available = True
        payload.tabs = tabs
        payload.domains = dict(Counter(tab.domain for tab in tabs if tab.domain))

    try:
        rows = read_browser_history(source, ctx.midnight, ctx.now, ctx.deadline)
    except RekapError as exc:
        logger.debug("%s history unavailable: %s", source.name, exc)
    else:
        payload.history = summarize_history(rows)
    return payload


def aggregate_browsers(
    results: Iterable[BrowserPayload], domain_settings: DomainSettings
) -> BrowsersPayload:
    aggregate = BrowsersPayload()
    tab_domains: Counter[str] = Counter()
    history_domains: Counter[str] = Counter()
    issue_ids: set[str] = set()
    for result in results:
        setattr(aggregate, result.browser.lower(), result)
        aggregate.total_tabs += result.tab_count
        tab_domains.update(result.domains)
        aggregate.total_urls_visited += result.history.urls_visited
        history_domains.update(result.history.domains)
        issue_ids.update(result.history.issue_ids)

    aggregate.top_domains = dict(tab_domains)
    for domain, count in tab_domains.items():
        category = categorize(domain, domain_settings)
        if category is DomainCategory.WORK:
            aggregate.work_visits += count
        elif category is DomainCategory.DISTRACTION:
            aggregate.distraction_visits += count
        else:
            aggregate.neutral_visits += count

    aggregate.all_issue_ids = sorted(issue_ids)
    top = _top_entry(history_domains)
    if top is not None:
        aggregate.top_history_domain, aggregate.top_domain_visits = top
    return aggregate


def collect_browsers(
    ctx: ProbeContext, sources: tuple[BrowserSource, ...] = BROWSER_SOURCES
) -> ProbeResult[BrowsersPayload]:
    with ThreadPoolExecutor(
        max_workers=len(sources), thread_name_prefix="rekap-browser"
    ) as executor:
        results = list(executor.map(lambda source: collect_browser(source, ctx), sources))

    if not any(result.tabs_available for result in results):
        raise SourceUnavailable("no supported browser is running")
    return ProbeResult.ok(aggregate_browsers(results, ctx.config.domains))


def collect_issues(
    ctx: ProbeContext, sources: tuple[BrowserSource, ...] = BROWSER_SOURCES
) -> ProbeResult[IssuesPayload]:
    issues: dict = {}
    for source in sources:
        try:
            rows = read_browser_history(source, ctx.midnight, ctx.now, ctx.deadline)
        except RekapError as exc:
            logger.debug("%s history unavailable for issues: %s", source.name, exc)
            continue
        merge_issues(rows, into=issues)

    visits = sorted(
        (issue for issue in issues.values() if issue.visit_count > 0),
        key=lambda issue: issue.visit_count,
        reverse=True,
    )
    if not visits:
        raise SourceUnavailable("no issue tracker visits today")
    return ProbeResult.ok(IssuesPayload(issues=visits))
