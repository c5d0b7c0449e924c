from datetime import datetime, timedelta

import pytest

from conftest import span
from rekap.intervals import (
    app_switching_stats,
    filter_subjects,
    longest_active_span,
    longest_focus_streak,
    minutes_between,
)

BASE = datetime(2026, 3, 10, 9, 0).astimezone()


def test_single_interval_streak_is_its_own_duration():
    streak = longest_focus_streak([span("com.microsoft.VSCode", BASE, 0, 42)])
    assert streak is not None
    assert streak.minutes == 42
    assert streak.subject == "com.microsoft.VSCode"


def test_streak_joins_same_subject_across_short_gaps():
    intervals = [
        span("code", BASE, 0, 20),
        span("code", BASE, 20.5, 40),
        span("code", BASE, 40.9, 50),
    ]
    streak = longest_focus_streak(intervals)
    assert streak.minutes == 48


def test_streak_breaks_at_one_minute_gap():
    intervals = [span("code", BASE, 0, 20), span("code", BASE, 21, 45)]
    streak = longest_focus_streak(intervals)
    assert streak.minutes == 24


def test_streak_breaks_on_subject_change_and_picks_true_maximum():
    intervals = [
        span("code", BASE, 0, 30),
        span("slack", BASE, 30, 35),
        span("code", BASE, 35, 50),
        span("code", BASE, 50, 90),
        span("safari", BASE, 90, 100),
    ]
    streak = longest_focus_streak(intervals)
    assert streak.subject == "code"
    assert streak.minutes == 55


def test_streak_tie_keeps_earliest_run():
    intervals = [span("first", BASE, 0, 10), span("second", BASE, 10, 20)]
    assert longest_focus_streak(intervals).subject == "first"


@pytest.mark.parametrize(
    "intervals",
    [[], [span("code", BASE, 0, 0.5)]],
    ids=["empty", "sub-minute"],
)
def test_no_streak_without_a_full_minute(intervals):
    assert longest_focus_streak(intervals) is None


def test_switching_needs_two_intervals():
    assert app_switching_stats([]) is None
    assert app_switching_stats([span("code", BASE, 0, 10)]) is None


def test_switching_without_changes_reports_zero():
    stats = app_switching_stats([span("code", BASE, 0, 10), span("code", BASE, 10, 20)])
    assert stats.total_switches == 0
    assert stats.switches_per_hour == 0
    assert stats.avg_mins_between == 0


def test_switching_counts_adjacent_changes():
    intervals = [
        span("code", BASE, 0, 10),
        span("slack", BASE, 10, 20),
        span("code", BASE, 20, 30),
    ]
    stats = app_switching_stats(intervals)
    assert stats.total_switches == 2
    assert stats.switches_per_hour == pytest.approx(4.0)
    assert stats.avg_mins_between == 0


def test_switching_average_gap():
    stats = app_switching_stats([span("code", BASE, 0, 10), span("slack", BASE, 12, 20)])
    assert stats.total_switches == 1
    assert stats.avg_mins_between == pytest.approx(2.0)
    assert stats.switches_per_hour == pytest.approx(3.0)


def test_active_span_bridges_short_gaps():
    intervals = [span("code", BASE, 0, 60), span("slack", BASE, 70, 130)]
    assert longest_active_span(intervals) == 130


def test_active_span_breaks_at_gap_tolerance():
    intervals = [span("code", BASE, 0, 60), span("slack", BASE, 75, 100)]
    assert longest_active_span(intervals) == 60


def test_active_span_uses_furthest_end_for_overlaps():
    intervals = [
        span("code", BASE, 0, 100),
        span("slack", BASE, 10, 20),
        span("mail", BASE, 30, 40),
        span("code", BASE, 105, 110),
    ]
    assert longest_active_span(intervals) == 110


def test_active_span_custom_tolerance():
    intervals = [span("code", BASE, 0, 30), span("code", BASE, 35, 60)]
    assert longest_active_span(intervals, timedelta(minutes=2)) == 30
    assert longest_active_span([]) == 0


def test_minutes_between_clips_to_window():
    intervals = [span("code", BASE, -30, 30), span("code", BASE, 50, 80)]
    assert minutes_between(intervals, BASE, BASE + timedelta(minutes=60)) == 40


def test_filter_subjects():
    intervals = [span("code", BASE, 0, 10), span("music", BASE, 10, 20)]
    assert [i.subject for i in filter_subjects(intervals, {"music"})] == ["code"]
    assert filter_subjects(intervals, set()) == intervals
