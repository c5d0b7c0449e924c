"""Runs every probe concurrently under one deadline and scores the result."""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional, Sequence

from .browsers import collect_browsers, collect_issues
from .burnout import evaluate_burnout
from .config import RekapConfig
from .errors import ProbeTimeout, RekapError
from .fragmentation import calculate_fragmentation
from .models import PROBE_NAMES, ProbeResult, Snapshot
from .network import collect_network
from .paths import get_knowledge_db_path
from .probes import (
    ProbeContext,
    collect_apps,
    collect_battery,
    collect_focus,
    collect_media,
    collect_notifications,
    collect_screen,
    collect_uptime,
)
from .system import Deadline

logger = logging.getLogger(__name__)

# Extra time granted after the deadline for probes to notice it and report.
JOIN_GRACE_SECONDS = 0.5


@dataclass(frozen=True, slots=True)
class Probe:
    """A named source whose result fills the Snapshot field of the same name."""

    name: str
    collect: Callable[[ProbeContext], ProbeResult]


DEFAULT_PROBES: tuple[Probe, ...] = (
    Probe("uptime", collect_uptime),
    Probe("battery", collect_battery),
    Probe("screen", collect_screen),
    Probe("apps", collect_apps),
    Probe("focus", collect_focus),
    Probe("media", collect_media),
    Probe("network", collect_network),
    Probe("browsers", collect_browsers),
    Probe("notifications", collect_notifications),
    Probe("issues", collect_issues),
)


def run_probe(probe: Probe, ctx: ProbeContext) -> ProbeResult:
    """Invoke one probe, converting any failure into an unavailable result."""
    try:
        result = probe.collect(ctx)
    except RekapError as exc:
        logger.debug("Probe %s unavailable: %s", probe.name, exc)
        return ProbeResult.failed(exc)
    except Exception as exc:
        logger.exception("Probe %s failed unexpectedly.", probe.name)
        return ProbeResult.failed(f"unexpected error: {exc}")
    if not isinstance(result, ProbeResult):
        logger.error("Probe %s returned %r instead of a ProbeResult.", probe.name, result)
        return ProbeResult.failed("probe returned no result")
    return result


def run_probes(probes: Sequence[Probe], ctx: ProbeContext) -> dict[str, ProbeResult]:
    """Fan out one worker per probe and join when all finish or the deadline passes."""
    results: dict[str, ProbeResult] = {}
    if not probes:
        return results

    executor = ThreadPoolExecutor(max_workers=len(probes), thread_name_prefix="rekap-probe")
    try:
        futures: dict[Future, Probe] = {
            executor.submit(run_probe, probe, ctx): probe for probe in probes
        }
        done, pending = wait(
            futures, timeout=ctx.deadline.remaining() + JOIN_GRACE_SECONDS
        )
        for future in done:
            results[futures[future].name] = future.result()
        for future in pending:
            name = futures[future].name
            future.cancel()
            logger.debug("Probe %s did not finish before the deadline.", name)
            results[name] = ProbeResult.failed(
                ProbeTimeout(f"{name} did not finish before the deadline")
            )
    finally:
        executor.shutdown(wait=False, cancel_futures=True)
    return results


def score_snapshot(snapshot: Snapshot, config: RekapConfig) -> Snapshot:
    """Fill in the derived fragmentation score and burnout warnings."""
    snapshot.fragmentation = calculate_fragmentation(
        snapshot.apps, snapshot.browsers, config.fragmentation
    )
    snapshot.burnout = evaluate_burnout(
        screen=snapshot.screen,
        apps=snapshot.apps,
        browsers=snapshot.browsers,
        focus=snapshot.focus,
        settings=config.burnout,
        now=snapshot.collected_at,
    )
    return snapshot


class SnapshotCollector:
    """Collects one day's snapshot from every available source."""

    def __init__(
        self,
        config: Optional[RekapConfig] = None,
        *,
        probes: Sequence[Probe] = DEFAULT_PROBES,
        knowledge_db: Optional[Path] = None,
        data_dir: Optional[Path] = None,
        clock: Callable[[], datetime] = lambda: datetime.now().astimezone(),
    ) -> None:
        self.config = config or RekapConfig()
        self.probes = tuple(probes)
        self.knowledge_db = Path(knowledge_db) if knowledge_db else get_knowledge_db_path()
        self.data_dir = data_dir
        self._clock = clock

    def collect(self) -> Snapshot:
        now = self._clock()
        ctx = ProbeContext(
            config=self.config,
            deadline=Deadline.after(self.config.collection.deadline),
            now=now,
            knowledge_db=self.knowledge_db,
            data_dir=self.data_dir,
        )
        logger.debug(
            "Collecting %d probes with a %.1fs deadline.",
            len(self.probes),
            self.config.collection.deadline.total_seconds(),
        )
        results = run_probes(self.probes, ctx)
        snapshot = Snapshot(day=now.date(), collected_at=now)
        for name, result in results.items():
            if name not in PROBE_NAMES:
                logger.warning("Ignoring result of unknown probe %s.", name)
                continue
            setattr(snapshot, name, result)
        if snapshot.is_empty:
            logger.info("No data source was available.")
        return score_snapshot(snapshot, self.config)


def collect_snapshot(config: Optional[RekapConfig] = None) -> Snapshot:
    return SnapshotCollector(config).collect()
