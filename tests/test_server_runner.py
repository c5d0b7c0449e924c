import logging

from rekap import server_runner
from rekap.config import RekapConfig
from rekap.server_runner import _open_summary, dashboard_url, run_dashboard


def test_dashboard_url():
    assert dashboard_url("127.0.0.1", 8765) == "http://127.0.0.1:8765/api/summary"
    assert (
        dashboard_url("localhost", 9000, demo=True)
        == "http://localhost:9000/api/summary?demo=true"
    )


def test_run_dashboard_serves_app(monkeypatch):
    calls = {}

    def fake_run(app, **kwargs):
        calls["title"] = app.title
        calls.update(kwargs)

    monkeypatch.setattr(server_runner.uvicorn, "run", fake_run)
    run_dashboard(port=9001, config=RekapConfig(), open_browser=False, log_level="warning")
    assert calls == {"title": "rekap", "host": "127.0.0.1", "port": 9001, "log_level": "warning"}


def test_open_summary_warns_without_browser(monkeypatch, caplog):
    monkeypatch.setattr(server_runner.webbrowser, "open", lambda url: False)
    with caplog.at_level(logging.WARNING, logger="rekap.server_runner"):
        _open_summary("http://127.0.0.1:8765/api/summary")
    assert "No browser available" in caplog.text
