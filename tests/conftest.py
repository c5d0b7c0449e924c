import sqlite3
from datetime import datetime, timedelta
from pathlib import Path

import pytest

from rekap.config import RekapConfig
from rekap.db import APP_USAGE_STREAM, NOTIFICATION_STREAM, to_core_data
from rekap.models import ActivityInterval
from rekap.probes import ProbeContext
from rekap.system import Deadline

STORE_SCHEMA = """
CREATE TABLE ZSTRUCTUREDMETADATA (
    Z_PK INTEGER PRIMARY KEY,
    Z_DKNOTIFICATIONAPPMETADATAKEY__BUNDLEIDENTIFIER VARCHAR
);
CREATE TABLE ZOBJECT (
    Z_PK INTEGER PRIMARY KEY,
    ZSTREAMNAME VARCHAR,
    ZVALUESTRING VARCHAR,
    ZSTARTDATE TIMESTAMP,
    ZENDDATE TIMESTAMP,
    ZSTRUCTUREDMETADATA INTEGER
);
"""


class KnowledgeStore:
    """Builds a minimal Screen Time store with the same tables macOS uses."""

    def __init__(self, path: Path) -> None:
        self.path = path
        with sqlite3.connect(path) as conn:
            conn.executescript(STORE_SCHEMA)

    def add_usage(self, bundle_id, start: datetime, end: datetime) -> None:
        with sqlite3.connect(self.path) as conn:
            conn.execute(
                "INSERT INTO ZOBJECT (ZSTREAMNAME, ZVALUESTRING, ZSTARTDATE, ZENDDATE) "
                "VALUES (?, ?, ?, ?)",
                (APP_USAGE_STREAM, bundle_id, to_core_data(start), to_core_data(end)),
            )

    def add_notification(self, bundle_id, when: datetime, value: str = "Receive") -> None:
        with sqlite3.connect(self.path) as conn:
            cursor = conn.execute(
                "INSERT INTO ZSTRUCTUREDMETADATA "
                "(Z_DKNOTIFICATIONAPPMETADATAKEY__BUNDLEIDENTIFIER) VALUES (?)",
                (bundle_id,),
            )
            conn.execute(
                "INSERT INTO ZOBJECT "
                "(ZSTREAMNAME, ZVALUESTRING, ZSTARTDATE, ZENDDATE, ZSTRUCTUREDMETADATA) "
                "VALUES (?, ?, ?, ?, ?)",
                (
                    NOTIFICATION_STREAM,
                    value,
                    to_core_data(when),
                    to_core_data(when),
                    cursor.lastrowid,
                ),
            )


@pytest.fixture
def day_start() -> datetime:
    return datetime(2026, 3, 10).astimezone()


@pytest.fixture
def knowledge_store(tmp_path) -> KnowledgeStore:
    return KnowledgeStore(tmp_path / "knowledgeC.db")


@pytest.fixture
def make_context(tmp_path, day_start):
    def factory(config=None, *, hour=14, knowledge_db=None, seconds=30):
        return ProbeContext(
            config=config or RekapConfig(),
            deadline=Deadline.after(timedelta(seconds=seconds)),
            now=day_start + timedelta(hours=hour),
            knowledge_db=knowledge_db or tmp_path / "knowledgeC.db",
            data_dir=tmp_path / "data",
        )

    return factory


def span(subject: str, base: datetime, start_min: float, end_min: float) -> ActivityInterval:
    return ActivityInterval(
        subject=subject,
        start=base + timedelta(minutes=start_min),
        end=base + timedelta(minutes=end_min),
    )
