"""SQLite access to the Screen Time event store and copied browser databases."""

from __future__ import annotations

import logging
import os
import shutil
import sqlite3
import tempfile
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Iterator, Optional

from .errors import ProbeTimeout, SourceUnavailable
from .models import ActivityInterval
from .system import Deadline

logger = logging.getLogger(__name__)


# Core Data timestamps count seconds from this instant instead of the Unix epoch.
CORE_DATA_EPOCH = datetime(2001, 1, 1, tzinfo=timezone.utc)

APP_USAGE_STREAM = "/app/usage"
NOTIFICATION_STREAM = "/notification/usage"

# Excluded from focus streaks and switching statistics.
SYSTEM_SUBJECTS = frozenset(
    {
        "com.apple.finder",
        "com.apple.systempreferences",
        "com.apple.preferences",
        "com.apple.dock",
        "com.apple.notificationcenterui",
        "com.apple.Spotlight",
    }
)

_PROGRESS_STEPS = 1000


def to_core_data(value: datetime) -> float:
    """Convert a wall-clock datetime to seconds since the Core Data epoch."""
    if value.tzinfo is None:
        value = value.astimezone()
    return (value - CORE_DATA_EPOCH).total_seconds()


def from_core_data(seconds: float) -> datetime:
    """Convert Core Data seconds back into a local, timezone-aware datetime."""
    return (CORE_DATA_EPOCH + timedelta(seconds=seconds)).astimezone()


def open_store(path: Path, deadline: Optional[Deadline] = None) -> sqlite3.Connection:
    """Open an event store read-only; raises SourceUnavailable when it cannot be read."""
    path = Path(path)
    if not path.exists():
        raise SourceUnavailable(
            "Screen Time database not found (requires Full Disk Access)"
        )
    try:
        conn = sqlite3.connect(f"{path.resolve().as_uri()}?mode=ro", uri=True)
        conn.execute("SELECT 1 FROM sqlite_master LIMIT 1")
    except sqlite3.Error as exc:
        raise SourceUnavailable(f"failed to open Screen Time database: {exc}") from exc
    conn.row_factory = sqlite3.Row
    if deadline is not None:
        attach_deadline(conn, deadline)
    return conn


@contextmanager
def store_connection(
    path: Path, deadline: Optional[Deadline] = None
) -> Iterator[sqlite3.Connection]:
    conn = open_store(path, deadline)
    try:
        yield conn
    finally:
        conn.close()


def attach_deadline(conn: sqlite3.Connection, deadline: Deadline) -> None:
    """Abort long-running statements once the shared deadline has passed."""
    conn.set_progress_handler(lambda: 1 if deadline.expired else 0, _PROGRESS_STEPS)


@contextmanager
def copied_database(source: Path, prefix: str = "rekap-") -> Iterator[Path]:
    """Copy a database owned by another process to a temp file for the block's duration."""
    source = Path(source)
    if not source.exists():
        raise SourceUnavailable(f"{source.name} not found")
    fd, tmp_name = tempfile.mkstemp(prefix=prefix, suffix=".db")
    os.close(fd)
    tmp_path = Path(tmp_name)
    try:
        try:
            shutil.copyfile(source, tmp_path)
        except OSError as exc:
            raise SourceUnavailable(f"failed to copy {source.name}: {exc}") from exc
        yield tmp_path
    finally:
        tmp_path.unlink(missing_ok=True)


def query(
    conn: sqlite3.Connection, sql: str, params: tuple = ()
) -> list[sqlite3.Row]:
    try:
        return list(conn.execute(sql, params))
    except sqlite3.OperationalError as exc:
        if "interrupted" in str(exc):
            raise ProbeTimeout("database query interrupted by the deadline") from exc
        raise SourceUnavailable(f"failed to query database: {exc}") from exc
    except sqlite3.DatabaseError as exc:
        raise SourceUnavailable(f"failed to query database: {exc}") from exc


def fetch_intervals(
    conn: sqlite3.Connection,
    window_start: datetime,
    window_end: datetime,
    *,
    exclude_subjects: frozenset[str] = SYSTEM_SUBJECTS,
) -> list[ActivityInterval]:
    """Return app usage intervals inside [window_start, window_end), oldest first."""
    rows = query(
        conn,
        """
        SELECT ZVALUESTRING AS subject, ZSTARTDATE AS start_date, ZENDDATE AS end_date
        FROM ZOBJECT
        WHERE ZSTREAMNAME = ?
            AND ZSTARTDATE >= ?
            AND ZENDDATE <= ?
            AND ZVALUESTRING IS NOT NULL
            AND ZVALUESTRING != ''
        ORDER BY ZSTARTDATE ASC
        """,
        (APP_USAGE_STREAM, to_core_data(window_start), to_core_data(window_end)),
    )
    intervals: list[ActivityInterval] = []
    for row in rows:
        subject = row["subject"]
        if subject in exclude_subjects:
            continue
        try:
            start = float(row["start_date"])
            end = float(row["end_date"])
        except (TypeError, ValueError):
            logger.debug("Skipping unreadable interval row for %s", subject)
            continue
        if end < start:
            continue
        intervals.append(
            ActivityInterval(
                subject=str(subject),
                start=from_core_data(start),
                end=from_core_data(end),
            )
        )
    return intervals


def fetch_usage_totals(
    conn: sqlite3.Connection, window_start: datetime, window_end: datetime
) -> list[tuple[str, float]]:
    """Return (bundle id, seconds) pairs ordered by total usage."""
    rows = query(
        conn,
        """
        SELECT ZVALUESTRING AS bundle_id, SUM(ZENDDATE - ZSTARTDATE) AS seconds
        FROM ZOBJECT
        WHERE ZSTREAMNAME = ?
            AND ZSTARTDATE >= ?
            AND ZENDDATE <= ?
            AND ZVALUESTRING IS NOT NULL
            AND ZVALUESTRING != ''
        GROUP BY ZVALUESTRING
        ORDER BY seconds DESC
        """,
        (APP_USAGE_STREAM, to_core_data(window_start), to_core_data(window_end)),
    )
    return [(row["bundle_id"], float(row["seconds"] or 0)) for row in rows]


def fetch_notification_counts(
    conn: sqlite3.Connection, window_start: datetime, window_end: datetime
) -> list[tuple[str, int]]:
    """Return (bundle id, received notifications) pairs, busiest first."""
    rows = query(
        conn,
        """
        SELECT
            COALESCE(sm.Z_DKNOTIFICATIONAPPMETADATAKEY__BUNDLEIDENTIFIER, 'unknown')
                AS bundle_id,
            COUNT(*) AS notification_count
        FROM ZOBJECT zo
        LEFT JOIN ZSTRUCTUREDMETADATA sm ON zo.ZSTRUCTUREDMETADATA = sm.Z_PK
        WHERE zo.ZSTREAMNAME = ?
            AND zo.ZSTARTDATE >= ?
            AND zo.ZSTARTDATE <= ?
            AND zo.ZVALUESTRING = 'Receive'
        GROUP BY bundle_id
        ORDER BY notification_count DESC
        """,
        (NOTIFICATION_STREAM, to_core_data(window_start), to_core_data(window_end)),
    )
    return [(row["bundle_id"], int(row["notification_count"])) for row in rows]
