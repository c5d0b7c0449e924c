"""Active network interface and today's traffic on it."""

from __future__ import annotations

import logging
import os
import re
import tempfile
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Optional

import psutil
from pydantic import BaseModel, ValidationError

from .errors import ParseFailure, RekapError, SourceUnavailable
from .models import NetworkPayload, ProbeResult
from .paths import get_data_dir
from .probes import ProbeContext
from .system import Deadline, run_command

logger = logging.getLogger(__name__)

AIRPORT_PATH = (
    "/System/Library/PrivateFrameworks/Apple80211.framework/Versions/Current/"
    "Resources/airport"
)
BASELINE_RETENTION = timedelta(days=7)

_INTERFACE_RE = re.compile(r"interface:\s*(\w+)")
_SSID_RE = re.compile(r"^\s*SSID:\s*(.+)$", re.MULTILINE)
_CURRENT_NETWORK_RE = re.compile(r"Current Wi-Fi Network:\s*(.+)")
_BASELINE_NAME_RE = re.compile(r"^network-(\d{4}-\d{2}-\d{2})\.json$")


class NetworkBaseline(BaseModel):
    """First reading of the day; later readings are reported relative to it."""

    interface: str
    bytes_received: int
    bytes_sent: int
    timestamp: datetime


def parse_default_interface(route_output: str) -> Optional[str]:
    match = _INTERFACE_RE.search(route_output)
    return match.group(1) if match else None


def interface_kind(interface: str, hardware_ports: str = "") -> str:
    """Classify an interface name as WiFi, Ethernet, Bridge or VPN."""
    if interface.startswith("en"):
        if "Wi-Fi" in hardware_ports and interface in hardware_ports:
            return "WiFi"
        return "Ethernet"
    if interface.startswith("bridge"):
        return "Bridge"
    if interface.startswith(("utun", "ipsec")):
        return "VPN"
    return "Ethernet"


def parse_ssid(output: str) -> Optional[str]:
    """Read the SSID from ``airport -I`` or ``networksetup -getairportnetwork`` output."""
    for pattern in (_SSID_RE, _CURRENT_NETWORK_RE):
        match = pattern.search(output)
        if match and match.group(1).strip():
            return match.group(1).strip()
    return None


def get_active_interface(deadline: Optional[Deadline]) -> tuple[str, str]:
    interface = parse_default_interface(
        run_command(["route", "-n", "get", "default"], deadline)
    )
    if interface is None:
        raise ParseFailure("failed to parse interface from route output")

    hardware_ports = ""
    if interface.startswith("en"):
        try:
            hardware_ports = run_command(
                ["networksetup", "-listallhardwareports"], deadline
            )
        except RekapError as exc:
            logger.debug("Could not list hardware ports: %s", exc)
    return interface, interface_kind(interface, hardware_ports)


def get_wifi_ssid(interface: str, deadline: Optional[Deadline]) -> Optional[str]:
    for args in (
        [AIRPORT_PATH, "-I"],
        ["networksetup", "-getairportnetwork", interface],
    ):
        try:
            ssid = parse_ssid(run_command(args, deadline))
        except RekapError as exc:
            logger.debug("SSID lookup via %s failed: %s", args[0], exc)
            continue
        if ssid:
            return ssid
    return None


def get_interface_counters(interface: str) -> tuple[int, int]:
    try:
        counters = psutil.net_io_counters(pernic=True)
    except (OSError, RuntimeError) as exc:
        raise SourceUnavailable(f"failed to read interface counters: {exc}") from exc
    stats = counters.get(interface)
    if stats is None:
        raise SourceUnavailable(f"no stats found for interface {interface}")
    return stats.bytes_recv, stats.bytes_sent


# -- baseline files ------------------------------------------------------------


def baseline_path(day: date, data_dir: Optional[Path] = None) -> Path:
    directory = Path(data_dir) if data_dir else get_data_dir()
    return directory / f"network-{day.isoformat()}.json"


def load_baseline(path: Path) -> Optional[NetworkBaseline]:
    try:
        return NetworkBaseline.model_validate_json(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return None
    except (OSError, ValidationError) as exc:
        logger.debug("Ignoring unreadable network baseline %s: %s", path, exc)
        return None


def save_baseline(path: Path, baseline: NetworkBaseline) -> None:
    """Write the baseline atomically and prune files past the retention window."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(
        prefix="network-baseline-", suffix=".tmp", dir=path.parent
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(baseline.model_dump_json())
        os.replace(tmp_name, path)
    except OSError:
        Path(tmp_name).unlink(missing_ok=True)
        raise
    prune_baselines(path.parent, baseline.timestamp.date())


def prune_baselines(directory: Path, today: date) -> list[Path]:
    cutoff = today - BASELINE_RETENTION
    removed: list[Path] = []
    for entry in directory.glob("network-*.json"):
        match = _BASELINE_NAME_RE.match(entry.name)
        if not match:
            continue
        try:
            day = date.fromisoformat(match.group(1))
        except ValueError:
            continue
        if day < cutoff:
            entry.unlink(missing_ok=True)
            removed.append(entry)
    return removed


def usage_since_baseline(
    interface: str,
    bytes_received: int,
    bytes_sent: int,
    baseline: Optional[NetworkBaseline],
) -> tuple[int, int, bool]:
    """Return (received, sent, since_boot).

    Without a usable baseline the raw counters are reported as since-boot
    values; the caller should then store a fresh baseline.
    """
    if baseline is None or baseline.interface != interface:
        return bytes_received, bytes_sent, True
    received = bytes_received - baseline.bytes_received
    sent = bytes_sent - baseline.bytes_sent
    if received < 0 or sent < 0:
        # Counters went backwards: the machine rebooted since the baseline.
        return bytes_received, bytes_sent, True
    return received, sent, False


def collect_network(ctx: ProbeContext) -> ProbeResult[NetworkPayload]:
    interface, kind = get_active_interface(ctx.deadline)
    network_name = kind
    if kind == "WiFi":
        network_name = get_wifi_ssid(interface, ctx.deadline) or "WiFi"

    bytes_received, bytes_sent = get_interface_counters(interface)
    path = baseline_path(ctx.now.date(), ctx.data_dir)
    received, sent, since_boot = usage_since_baseline(
        interface, bytes_received, bytes_sent, load_baseline(path)
    )
    if since_boot:
        try:
            save_baseline(
                path,
                NetworkBaseline(
                    interface=interface,
                    bytes_received=bytes_received,
                    bytes_sent=bytes_sent,
                    timestamp=ctx.now,
                ),
            )
        except OSError as exc:
            logger.debug("Could not store network baseline: %s", exc)

    return ProbeResult.ok(
        NetworkPayload(
            interface=interface,
            network_name=network_name,
            bytes_received=received,
            bytes_sent=sent,
            since_boot=since_boot,
        )
    )


def format_bytes(value: int) -> str:
    """Human-readable binary size: ``512 B``, ``1.5 KB``, ``2.0 GB``."""
    unit = 1024
    if value < unit:
        return f"{value} B"
    size = float(value)
    for suffix in ("KB", "MB", "GB", "TB"):
        size /= unit
        if size < unit or suffix == "TB":
            return f"{size:.1f} {suffix}"
    return f"{size:.1f} TB"
