from datetime import datetime, timedelta, timezone

import pytest

from rekap.db import (
    CORE_DATA_EPOCH,
    attach_deadline,
    copied_database,
    fetch_intervals,
    fetch_notification_counts,
    fetch_usage_totals,
    from_core_data,
    open_store,
    query,
    store_connection,
    to_core_data,
)
from rekap.errors import ProbeTimeout, SourceUnavailable
from rekap.system import Deadline


def test_core_data_epoch_conversion():
    assert to_core_data(CORE_DATA_EPOCH) == 0
    assert to_core_data(datetime(2001, 1, 2, tzinfo=timezone.utc)) == 86400
    assert from_core_data(3600) == datetime(2001, 1, 1, 1, tzinfo=timezone.utc)


def test_missing_store_is_unavailable(tmp_path):
    with pytest.raises(SourceUnavailable, match="Full Disk Access"):
        open_store(tmp_path / "knowledgeC.db")


def test_fetch_intervals_skips_system_apps_and_other_days(knowledge_store, day_start):
    morning = day_start + timedelta(hours=9)
    knowledge_store.add_usage("com.microsoft.VSCode", morning, morning + timedelta(minutes=30))
    knowledge_store.add_usage(
        "com.apple.finder", morning + timedelta(minutes=30), morning + timedelta(minutes=31)
    )
    knowledge_store.add_usage(
        "com.tinyspeck.slackmacgap",
        morning + timedelta(minutes=31),
        morning + timedelta(minutes=40),
    )
    knowledge_store.add_usage(
        "com.apple.Safari", day_start - timedelta(hours=2), day_start - timedelta(hours=1)
    )

    with store_connection(knowledge_store.path) as conn:
        intervals = fetch_intervals(conn, day_start, day_start + timedelta(days=1))

    assert [i.subject for i in intervals] == [
        "com.microsoft.VSCode",
        "com.tinyspeck.slackmacgap",
    ]
    assert intervals[0].start == morning
    assert intervals[0].duration_seconds == 1800


def test_fetch_usage_totals_orders_by_time(knowledge_store, day_start):
    base = day_start + timedelta(hours=10)
    knowledge_store.add_usage("com.apple.Safari", base, base + timedelta(minutes=5))
    knowledge_store.add_usage("com.apple.mail", base + timedelta(minutes=5), base + timedelta(minutes=25))
    knowledge_store.add_usage("com.apple.Safari", base + timedelta(minutes=25), base + timedelta(minutes=30))

    with store_connection(knowledge_store.path) as conn:
        totals = fetch_usage_totals(conn, day_start, day_start + timedelta(days=1))

    assert totals == [("com.apple.mail", 1200.0), ("com.apple.Safari", 600.0)]


def test_fetch_notification_counts_only_received(knowledge_store, day_start):
    noon = day_start + timedelta(hours=12)
    for minute in range(3):
        knowledge_store.add_notification("com.tinyspeck.slackmacgap", noon + timedelta(minutes=minute))
    knowledge_store.add_notification("com.apple.mail", noon)
    knowledge_store.add_notification("com.apple.mail", noon, value="Dismiss")

    with store_connection(knowledge_store.path) as conn:
        counts = fetch_notification_counts(conn, day_start, day_start + timedelta(days=1))

    assert counts == [("com.tinyspeck.slackmacgap", 3), ("com.apple.mail", 1)]


def test_expired_deadline_interrupts_long_query(knowledge_store):
    with store_connection(knowledge_store.path) as conn:
        attach_deadline(conn, Deadline(expires_at=0))
        with pytest.raises(ProbeTimeout):
            query(
                conn,
                "WITH RECURSIVE n(x) AS (SELECT 1 UNION ALL SELECT x + 1 FROM n "
                "WHERE x < 10000000) SELECT COUNT(*) FROM n",
            )


def test_bad_query_is_unavailable(knowledge_store):
    with store_connection(knowledge_store.path) as conn:
        with pytest.raises(SourceUnavailable):
            query(conn, "SELECT * FROM missing_table")


def test_copied_database_removes_temp_copy(knowledge_store):
    with copied_database(knowledge_store.path) as copy:
        assert copy.exists()
        assert copy != knowledge_store.path
    assert not copy.exists()


def test_copied_database_requires_source(tmp_path):
    with pytest.raises(SourceUnavailable):
        with copied_database(tmp_path / "History"):
            pass
