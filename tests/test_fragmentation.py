import pytest

from rekap.config import FragmentationThresholds
from rekap.fragmentation import (
    calculate_fragmentation,
    check_context_overload,
    normalize,
    score_breakdown,
)
from rekap.models import (
    AppsPayload,
    AppUsage,
    BrowsersPayload,
    FragmentationBreakdown,
    FragmentationLevel,
    ProbeResult,
    SwitchingStats,
)


def apps_result(count, switches_per_hour=None):
    switching = None
    if switches_per_hour is not None:
        switching = SwitchingStats(
            total_switches=1, avg_mins_between=1.0, switches_per_hour=switches_per_hour
        )
    apps = [AppUsage(name=f"App {i}", minutes=10, bundle_id=f"app.{i}") for i in range(count)]
    return ProbeResult.ok(AppsPayload(top_apps=apps, switching=switching))


def browsers_result(tabs, domains):
    return ProbeResult.ok(
        BrowsersPayload(
            total_tabs=tabs,
            top_domains={f"site{i}.com": 1 for i in range(domains)},
        )
    )


def test_calm_day_scores_focused():
    result = calculate_fragmentation(apps_result(2, 1.0), browsers_result(5, 2))
    assert result.available
    assert result.score == 0
    assert result.level is FragmentationLevel.FOCUSED


def test_busy_day_scores_fragmented():
    result = calculate_fragmentation(apps_result(15, 8.0), browsers_result(50, 20))
    assert result.score == 100
    assert result.level is FragmentationLevel.FRAGMENTED
    assert result.breakdown.unique_domains == 20


def test_midpoint_scores_moderate():
    breakdown = FragmentationBreakdown(
        unique_apps=6, total_tabs=20, unique_domains=9, app_switches_per_hour=2.5
    )
    result = score_breakdown(breakdown)
    assert result.score == 50
    assert result.level is FragmentationLevel.MODERATE


@pytest.mark.parametrize("field", ["unique_apps", "total_tabs", "unique_domains"])
def test_score_never_drops_when_a_factor_grows(field):
    previous = -1
    for value in range(0, 40):
        breakdown = FragmentationBreakdown(**{field: value})
        score = score_breakdown(breakdown).score
        assert 0 <= score <= 100
        assert score >= previous
        previous = score


def test_normalize_clamps():
    assert normalize(-5, 1, 4) == 0.0
    assert normalize(10, 1, 4) == 1.0
    assert normalize(2.5, 1, 4) == pytest.approx(0.5)


def test_invalid_thresholds_fall_back_to_defaults():
    thresholds = FragmentationThresholds(focused_max=70, moderate_max=60, fragmented_min=61)
    assert thresholds.validated() == FragmentationThresholds()
    repaired = FragmentationThresholds(focused_max=-1, moderate_max=50, fragmented_min=51)
    assert repaired.validated().focused_max == 30


def test_custom_thresholds_change_level():
    breakdown = FragmentationBreakdown(unique_apps=6, total_tabs=30)
    assert score_breakdown(breakdown).level is FragmentationLevel.MODERATE
    thresholds = FragmentationThresholds(focused_max=40, moderate_max=50, fragmented_min=51)
    assert score_breakdown(breakdown, thresholds).level is FragmentationLevel.FOCUSED


def test_unavailable_without_apps_or_browsers():
    result = calculate_fragmentation(ProbeResult.failed("no"), ProbeResult.failed("no"))
    assert not result.available
    assert result.level is None


def test_switching_factor_ignored_when_unavailable():
    result = calculate_fragmentation(apps_result(3), ProbeResult.failed("no browsers"))
    assert result.available
    assert result.breakdown.app_switches_per_hour == 0.0
    assert result.score == 0


@pytest.mark.parametrize(
    "apps, tabs, domains, message",
    [
        (7, 45, 4, "7 apps + 45 tabs active"),
        (7, 10, 4, "7 apps active"),
        (3, 31, 4, "31 tabs active"),
        (3, 10, 11, "11 domains active"),
    ],
)
def test_context_overload_messages(apps, tabs, domains, message):
    overload = check_context_overload(apps_result(apps), browsers_result(tabs, domains))
    assert overload.is_overloaded
    assert overload.message == message


def test_no_overload_at_limits():
    overload = check_context_overload(apps_result(5), browsers_result(30, 10))
    assert not overload.is_overloaded
    assert overload.message == ""
