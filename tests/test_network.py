from datetime import date, datetime, timedelta
from types import SimpleNamespace

import pytest

from rekap import network
from rekap.errors import ParseFailure, SourceUnavailable
from rekap.network import (
    NetworkBaseline,
    baseline_path,
    collect_network,
    format_bytes,
    get_active_interface,
    interface_kind,
    load_baseline,
    parse_default_interface,
    parse_ssid,
    prune_baselines,
    save_baseline,
    usage_since_baseline,
)

ROUTE_OUTPUT = """\
   route to: default
destination: default
       mask: default
    gateway: 192.168.1.1
  interface: en0
      flags: <UP,GATEWAY,DONE,STATIC,PRCLONING>
"""

HARDWARE_PORTS = """\
Hardware Port: Wi-Fi
Device: en0
Ethernet Address: aa:bb:cc:dd:ee:ff

Hardware Port: Thunderbolt Ethernet Slot 1
Device: en5
"""


def test_parse_default_interface():
    assert parse_default_interface(ROUTE_OUTPUT) == "en0"
    assert parse_default_interface("route: writing to routing socket: not in table") is None


@pytest.mark.parametrize(
    "interface, expected",
    [
        ("en0", "WiFi"),
        ("en5", "Ethernet"),
        ("bridge100", "Bridge"),
        ("utun3", "VPN"),
        ("ipsec0", "VPN"),
        ("lo0", "Ethernet"),
    ],
)
def test_interface_kind(interface, expected):
    assert interface_kind(interface, HARDWARE_PORTS if interface == "en0" else "") == expected


def test_parse_ssid_from_airport_and_networksetup():
    airport = "     agrCtlRSSI: -52\n          BSSID: 1:2:3\n           SSID: Office Net\n"
    assert parse_ssid(airport) == "Office Net"
    assert parse_ssid("Current Wi-Fi Network: Home\n") == "Home"
    assert parse_ssid("You are not associated with an AirPort network.") is None


def test_get_active_interface_reads_route_and_ports(monkeypatch):
    outputs = {"route": ROUTE_OUTPUT, "networksetup": HARDWARE_PORTS}
    monkeypatch.setattr(network, "run_command", lambda args, deadline=None: outputs[args[0]])
    assert get_active_interface(None) == ("en0", "WiFi")


def test_get_active_interface_requires_interface(monkeypatch):
    monkeypatch.setattr(network, "run_command", lambda args, deadline=None: "gateway: 10.0.0.1")
    with pytest.raises(ParseFailure, match="failed to parse interface"):
        get_active_interface(None)


def make_baseline(interface="en0", received=1000, sent=500, when=None):
    return NetworkBaseline(
        interface=interface,
        bytes_received=received,
        bytes_sent=sent,
        timestamp=when or datetime(2026, 3, 10, 9, 0).astimezone(),
    )


def test_usage_since_baseline():
    baseline = make_baseline()
    assert usage_since_baseline("en0", 1500, 800, baseline) == (500, 300, False)
    assert usage_since_baseline("en0", 1500, 800, None) == (1500, 800, True)
    assert usage_since_baseline("en1", 1500, 800, baseline) == (1500, 800, True)
    # Counters reset after a reboot.
    assert usage_since_baseline("en0", 100, 50, baseline) == (100, 50, True)


def test_baseline_file_round_trip(tmp_path):
    path = baseline_path(date(2026, 3, 10), tmp_path)
    assert path.name == "network-2026-03-10.json"
    baseline = make_baseline()
    save_baseline(path, baseline)
    assert load_baseline(path) == baseline
    assert list(tmp_path.glob("*.tmp")) == []


def test_unreadable_baseline_is_ignored(tmp_path):
    path = tmp_path / "network-2026-03-10.json"
    assert load_baseline(path) is None
    path.write_text("{not json", encoding="utf-8")
    assert load_baseline(path) is None


def test_prune_keeps_last_week(tmp_path):
    for name in ("network-2026-03-01.json", "network-2026-03-09.json", "network-notes.json"):
        (tmp_path / name).write_text("{}", encoding="utf-8")
    removed = prune_baselines(tmp_path, date(2026, 3, 10))
    assert [path.name for path in removed] == ["network-2026-03-01.json"]
    assert sorted(path.name for path in tmp_path.iterdir()) == [
        "network-2026-03-09.json",
        "network-notes.json",
    ]


def test_collect_network_stores_baseline_then_reports_delta(monkeypatch, make_context):
    monkeypatch.setattr(network, "get_active_interface", lambda deadline: ("en0", "WiFi"))
    monkeypatch.setattr(network, "get_wifi_ssid", lambda interface, deadline: "Office Net")
    counters = {"en0": SimpleNamespace(bytes_recv=10_000, bytes_sent=4_000)}
    monkeypatch.setattr(network.psutil, "net_io_counters", lambda pernic=False: counters)

    ctx = make_context(hour=9)
    first = collect_network(ctx).payload
    assert first.since_boot
    assert first.network_name == "Office Net"
    assert first.bytes_received == 10_000

    counters["en0"] = SimpleNamespace(bytes_recv=15_000, bytes_sent=4_500)
    later = make_context(hour=10)
    second = collect_network(later).payload
    assert not second.since_boot
    assert (second.bytes_received, second.bytes_sent) == (5_000, 500)


def test_collect_network_missing_interface_stats(monkeypatch, make_context):
    monkeypatch.setattr(network, "get_active_interface", lambda deadline: ("en7", "Ethernet"))
    monkeypatch.setattr(network.psutil, "net_io_counters", lambda pernic=False: {})
    with pytest.raises(SourceUnavailable, match="en7"):
        collect_network(make_context())


@pytest.mark.parametrize(
    "value, expected",
    [
        (512, "512 B"),
        (1536, "1.5 KB"),
        (5 * 1024 * 1024, "5.0 MB"),
        (2 * 1024**3, "2.0 GB"),
    ],
)
def test_format_bytes(value, expected):
    assert format_bytes(value) == expected


def test_baseline_timestamp_drives_pruning(tmp_path):
    old = tmp_path / "network-2026-02-01.json"
    old.write_text("{}", encoding="utf-8")
    when = datetime(2026, 3, 10, 9, 0).astimezone() + timedelta(minutes=1)
    save_baseline(baseline_path(when.date(), tmp_path), make_baseline(when=when))
    assert not old.exists()
