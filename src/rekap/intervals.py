"""Analyses over ordered activity intervals."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional, Sequence

from .models import ActivityInterval, FocusStreak, SwitchingStats

STREAK_GAP_TOLERANCE = timedelta(minutes=1)
NO_BREAK_GAP_TOLERANCE = timedelta(minutes=15)


def longest_focus_streak(
    intervals: Sequence[ActivityInterval],
    gap_tolerance: timedelta = STREAK_GAP_TOLERANCE,
) -> Optional[FocusStreak]:
    """Return the longest run of same-subject intervals separated by short gaps.

    A run continues only while the subject repeats and the gap since the
    previous interval ended stays under ``gap_tolerance``. The earliest run
    wins ties. Returns ``None`` when no run lasts at least one whole minute.
    """
    best_seconds = 0.0
    best_subject: Optional[str] = None
    current_seconds = 0.0
    current_subject: Optional[str] = None
    last_end: Optional[datetime] = None

    for interval in intervals:
        continues = (
            interval.subject == current_subject
            and last_end is not None
            and interval.start - last_end < gap_tolerance
        )
        if continues:
            current_seconds += interval.duration_seconds
        else:
            if current_subject is not None and current_seconds > best_seconds:
                best_seconds = current_seconds
                best_subject = current_subject
            current_subject = interval.subject
            current_seconds = interval.duration_seconds
        last_end = interval.end

    if current_subject is not None and current_seconds > best_seconds:
        best_seconds = current_seconds
        best_subject = current_subject

    minutes = int(best_seconds // 60)
    if best_subject is None or minutes <= 0:
        return None
    return FocusStreak(minutes=minutes, subject=best_subject)


def app_switching_stats(intervals: Sequence[ActivityInterval]) -> Optional[SwitchingStats]:
    """Count subject changes between adjacent intervals.

    Needs at least two intervals; with fewer there is no rate to report.
    """
    if len(intervals) < 2:
        return None

    switches = 0
    total_gap_seconds = 0.0
    for previous, current in zip(intervals, intervals[1:]):
        if current.subject != previous.subject:
            switches += 1
            total_gap_seconds += (current.start - previous.end).total_seconds()

    active_seconds = (intervals[-1].end - intervals[0].start).total_seconds()
    switches_per_hour = switches / (active_seconds / 3600.0) if active_seconds > 0 else 0.0
    avg_mins_between = total_gap_seconds / switches / 60.0 if switches else 0.0
    return SwitchingStats(
        total_switches=switches,
        avg_mins_between=avg_mins_between,
        switches_per_hour=switches_per_hour,
    )


def longest_active_span(
    intervals: Sequence[ActivityInterval],
    gap_tolerance: timedelta = NO_BREAK_GAP_TOLERANCE,
) -> int:
    """Minutes of the longest stretch of activity with no gap reaching ``gap_tolerance``."""
    if not intervals:
        return 0

    longest = timedelta(0)
    span_start = intervals[0].start
    span_end = intervals[0].end
    for interval in intervals[1:]:
        if interval.start - span_end < gap_tolerance:
            span_end = max(span_end, interval.end)
            continue
        longest = max(longest, span_end - span_start)
        span_start = interval.start
        span_end = interval.end
    longest = max(longest, span_end - span_start)
    return int(longest.total_seconds() // 60)


def minutes_between(
    intervals: Sequence[ActivityInterval], start: datetime, end: datetime
) -> int:
    """Total minutes of activity recorded inside [start, end)."""
    total = 0.0
    for interval in intervals:
        clipped_start = max(interval.start, start)
        clipped_end = min(interval.end, end)
        if clipped_end > clipped_start:
            total += (clipped_end - clipped_start).total_seconds()
    return int(total // 60)


def filter_subjects(
    intervals: Sequence[ActivityInterval], excluded: set[str]
) -> list[ActivityInterval]:
    if not excluded:
        return list(intervals)
    return [interval for interval in intervals if interval.subject not in excluded]
