import json
from datetime import datetime

from rekap import __version__
from rekap.demo import build_demo_snapshot
from rekap.models import FocusPayload, NotificationsPayload, ProbeResult, Snapshot
from rekap.schemas import build_document, render_json

AFTERNOON = datetime(2026, 3, 10, 14, 0).astimezone()


def empty_snapshot():
    return Snapshot(day=AFTERNOON.date(), collected_at=AFTERNOON)


def test_empty_snapshot_keeps_only_header_and_overload():
    document = json.loads(render_json(empty_snapshot()))
    assert document == {
        "version": __version__,
        "date": "2026-03-10",
        "collected_at": AFTERNOON.isoformat(),
        "context_overload": {"is_overloaded": False},
    }


def test_demo_document_sections():
    document = json.loads(render_json(build_demo_snapshot(now=AFTERNOON)))
    assert document["uptime"]["awake_minutes"] == 287
    assert document["battery"] == {
        "start_pct": 92,
        "current_pct": 68,
        "plug_events": 1,
        "is_plugged": False,
    }
    assert document["apps"]["top_apps"][0] == {
        "name": "VS Code",
        "minutes": 142,
        "bundle_id": "com.microsoft.VSCode",
    }
    assert document["apps"]["switches_per_hour"] == 12.1
    assert document["browsers"]["chrome"] == {"tabs": 58}
    assert document["browsers"]["top_domain"] == "github.com"
    assert document["browsers"]["issues_viewed"] == ["PROJ-123", "PROJ-456", "org/repo#89"]
    assert document["fragmentation"]["level"] == "fragmented"
    assert [warning["type"] for warning in document["burnout"]["warnings"]] == [
        "long_day",
        "tab_overload",
    ]
    assert document["context_overload"] == {
        "is_overloaded": True,
        "message": "7 apps + 125 tabs active",
    }
    assert document["issues"]["issues"][0]["id"] == "PROJ-123"


def test_empty_optional_lists_are_omitted():
    snapshot = empty_snapshot()
    snapshot.notifications = ProbeResult.ok(NotificationsPayload(total=0))
    document = build_document(snapshot).model_dump(exclude_none=True)
    assert document["notifications"] == {"total": 0}


def test_unavailable_sections_are_omitted_even_with_payload():
    snapshot = build_demo_snapshot(now=AFTERNOON)
    snapshot.media.available = False
    document = build_document(snapshot, version="test")
    assert document.media is None
    assert document.version == "test"


def test_focus_without_streak_is_omitted():
    snapshot = empty_snapshot()
    snapshot.focus = ProbeResult.ok(
        FocusPayload(streak_minutes=0, app_name="", bundle_id="", longest_active_minutes=300)
    )
    assert build_document(snapshot).focus is None
