from rekap import permissions
from rekap.errors import SourceUnavailable
from rekap.permissions import (
    Capabilities,
    capability_matrix,
    check_capabilities,
    check_full_disk_access,
    format_capabilities,
    open_settings_pane,
)


def test_full_disk_access_means_store_is_readable(tmp_path):
    store = tmp_path / "knowledgeC.db"
    assert not check_full_disk_access(store)
    store.write_bytes(b"SQLite format 3\x00")
    assert check_full_disk_access(store)


def test_check_capabilities(monkeypatch, tmp_path):
    answers = {"System Events": "true", "Music": "false"}

    def fake_osascript(script, deadline=None):
        for app, answer in answers.items():
            if app in script:
                return answer
        raise SourceUnavailable("unknown script")

    monkeypatch.setattr(permissions, "run_osascript", fake_osascript)
    monkeypatch.setattr(permissions.shutil, "which", lambda name: None)
    caps = check_capabilities(knowledge_db=tmp_path / "missing.db")
    assert caps == Capabilities(full_disk_access=False, accessibility=True, now_playing=False)


def test_nowplaying_cli_counts_as_media_access(monkeypatch, tmp_path):
    def no_osascript(script, deadline=None):
        raise SourceUnavailable("osascript not found")

    monkeypatch.setattr(permissions, "run_osascript", no_osascript)
    monkeypatch.setattr(permissions.shutil, "which", lambda name: "/usr/local/bin/" + name)
    caps = check_capabilities(knowledge_db=tmp_path / "missing.db")
    assert not caps.accessibility
    assert caps.now_playing


def test_capability_matrix_and_formatting():
    caps = Capabilities(full_disk_access=False, accessibility=True, now_playing=False)
    matrix = capability_matrix(caps)
    assert matrix["uptime"] and matrix["battery"]
    assert not matrix["apps"]
    text = format_capabilities(caps)
    assert "✓ uptime" in text
    assert "✗ apps" in text
    assert "needs Full Disk Access" in text
    assert "✓ accessibility" in text


def test_open_settings_pane_reports_failure(monkeypatch):
    def failing(args, deadline=None):
        raise SourceUnavailable("open not found")

    monkeypatch.setattr(permissions, "run_command", failing)
    assert not open_settings_pane()
