import json
from datetime import datetime

import pytest
from typer.testing import CliRunner

from rekap import __version__, cli, permissions
from rekap.models import Snapshot
from rekap.permissions import Capabilities
from rekap.reporting import EMPTY_MESSAGE

runner = CliRunner()


@pytest.fixture
def config_path(tmp_path):
    return tmp_path / "config.yaml"


def invoke(config_path, *args):
    return runner.invoke(cli.app, ["--config", str(config_path), *args])


def test_demo_json(config_path):
    result = invoke(config_path, "demo", "--json")
    assert result.exit_code == 0
    document = json.loads(result.stdout)
    assert document["version"] == __version__
    assert document["browsers"]["total_tabs"] == 125


def test_demo_quiet(config_path):
    result = invoke(config_path, "demo", "--quiet")
    assert result.exit_code == 0
    assert "top_app_1=VS Code" in result.stdout.splitlines()


def test_demo_summary_has_title(config_path):
    result = invoke(config_path, "demo")
    assert result.exit_code == 0
    assert "rekap demo mode" in result.stdout


def test_json_and_quiet_are_exclusive(config_path):
    result = invoke(config_path, "demo", "--json", "--quiet")
    assert result.exit_code == 2


def test_default_command_prints_summary(monkeypatch, config_path):
    now = datetime(2026, 3, 10, 14, 0).astimezone()
    monkeypatch.setattr(cli, "_collect", lambda config: Snapshot(day=now.date(), collected_at=now))
    result = invoke(config_path)
    assert result.exit_code == 0
    assert EMPTY_MESSAGE in result.stdout


def test_config_write_then_print(config_path):
    config_path.write_text("burnout:\n  max_tabs: 60\n", encoding="utf-8")
    result = invoke(config_path, "config", "--write")
    assert result.exit_code == 0
    assert str(config_path) in result.stdout
    written = config_path.read_text(encoding="utf-8")
    assert "max_tabs: 60" in written
    assert "deadline_seconds" in written

    result = invoke(config_path, "config")
    assert result.stdout.strip() == str(config_path)


def test_doctor(monkeypatch, config_path):
    monkeypatch.setattr(
        permissions,
        "check_capabilities",
        lambda: Capabilities(full_disk_access=True, accessibility=True, now_playing=False),
    )
    result = invoke(config_path, "doctor")
    assert result.exit_code == 0
    assert "✓ apps" in result.stdout
    assert "✗ media" in result.stdout


def test_web_passes_demo_flag(monkeypatch, config_path):
    from rekap import server_runner

    received = {}
    monkeypatch.setattr(server_runner, "run_dashboard", lambda **kwargs: received.update(kwargs))
    result = invoke(config_path, "web", "--demo", "--no-open-browser", "--port", "9002")
    assert result.exit_code == 0
    assert received["demo"] is True
    assert received["open_browser"] is False
    assert received["port"] == 9002
