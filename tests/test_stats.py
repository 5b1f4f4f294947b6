from datetime import datetime

import pytest

from plantenergy.analysis.stats import (
    ScopeStats,
    aggregate,
    breakdown,
    compare_periods,
    get_consumption_breakdown,
    get_consumption_stats,
)
from plantenergy.errors import ValidationError
from plantenergy.models import ConsumptionReading, Scope, ScopeKind
from plantenergy.store import save_readings


def reading(kwh, ts=datetime(2026, 1, 1, 10), device_id="d1"):
    return ConsumptionReading(device_id=device_id, timestamp=ts, consumption_kwh=kwh)


def test_aggregate_empty():
    """No readings gives zeros, not an error."""
    stats = aggregate([])
    assert stats.count == 0
    assert stats.total == 0
    assert stats.average == 0
    assert stats.max == 0
    assert stats.min == 0


def test_aggregate_basic():
    stats = aggregate([reading(10), reading(20), reading(30)])
    assert stats.total == 60
    assert stats.average == 20
    assert stats.max == 30
    assert stats.min == 10
    assert stats.count == 3


def test_aggregate_average_between_min_and_max():
    stats = aggregate([reading(v) for v in (0.4, 12.5, 3.3, 7.0, 0.0, 99.9)])
    assert stats.min <= stats.average <= stats.max


def test_aggregate_time_range_is_half_open():
    readings = [
        reading(1, datetime(2026, 1, 1, 0)),
        reading(2, datetime(2026, 1, 1, 12)),
        reading(4, datetime(2026, 1, 2, 0)),
    ]
    stats = aggregate(readings, datetime(2026, 1, 1), datetime(2026, 1, 2))
    assert stats.count == 2
    assert stats.total == 3


def test_scope_requires_exactly_one_filter():
    with pytest.raises(ValidationError, match="At least one"):
        Scope.from_filters()
    with pytest.raises(ValidationError, match="more than one"):
        Scope.from_filters(device_id="d1", plant_id="p1")
    assert Scope.from_filters(area_id="a1") == Scope(ScopeKind.AREA, "a1")


def test_scope_rejects_unknown_kind():
    with pytest.raises(ValidationError, match="Unknown scope kind"):
        Scope("building", "b1")
    with pytest.raises(ValidationError):
        Scope(ScopeKind.PLANT, "")


def test_stats_by_scope(db_path):
    """Area and plant scopes cover the devices below them."""
    ts = datetime(2026, 1, 1, 10)
    save_readings(
        [reading(10, ts, "d1"), reading(20, ts, "d2"), reading(40, ts, "d3"), reading(80, ts, "d4")],
        db_path,
    )

    assert get_consumption_stats(Scope("device", "d1"), db_path=db_path).stats.total == 10
    assert get_consumption_stats(Scope("area", "a1"), db_path=db_path).stats.total == 30
    plant = get_consumption_stats(Scope("plant", "p1"), db_path=db_path).stats
    assert plant.total == 70
    assert plant.count == 3
    assert plant.max == 40


def test_stats_rejects_inverted_period(db_path):
    with pytest.raises(ValidationError, match="Start date"):
        get_consumption_stats(
            Scope("device", "d1"), datetime(2026, 2, 1), datetime(2026, 1, 1), db_path=db_path
        )


def test_stats_empty_scope(db_path):
    result = get_consumption_stats(Scope("device", "d4"), datetime(2026, 1, 1), datetime(2026, 2, 1), db_path)
    assert result.stats.count == 0
    assert result.period_start == datetime(2026, 1, 1)


def _period(total):
    return ScopeStats(
        scope=Scope("device", "d1"),
        period_start=datetime(2026, 1, 1),
        period_end=datetime(2026, 2, 1),
        stats=aggregate([reading(total)]) if total else aggregate([]),
    )


def test_compare_periods():
    result = compare_periods(_period(200), _period(250))
    assert result.absolute_difference == 50
    assert result.percentage_difference == pytest.approx(25.0)


def test_compare_periods_from_zero():
    result = compare_periods(_period(0), _period(100))
    assert result.absolute_difference == 100
    assert result.percentage_difference == 0


def test_breakdown_daily_and_monthly():
    readings = [
        reading(1, datetime(2026, 1, 1, 1)),
        reading(2, datetime(2026, 1, 1, 23)),
        reading(4, datetime(2026, 1, 2, 8)),
        reading(8, datetime(2026, 2, 3, 8)),
    ]

    daily = breakdown(readings, "daily")
    assert [b.period_start for b in daily] == [
        datetime(2026, 1, 1),
        datetime(2026, 1, 2),
        datetime(2026, 2, 3),
    ]
    assert [b.consumption_kwh for b in daily] == [3, 4, 8]
    assert daily[0].readings_count == 2

    monthly = breakdown(readings, "monthly")
    assert [(b.period_start, b.consumption_kwh) for b in monthly] == [
        (datetime(2026, 1, 1), 7),
        (datetime(2026, 2, 1), 8),
    ]


def test_breakdown_weekly_starts_on_monday():
    # 2026-01-01 is a Thursday
    buckets = breakdown([reading(5, datetime(2026, 1, 1, 12))], "weekly")
    assert buckets[0].period_start == datetime(2025, 12, 29)


def test_breakdown_unknown_granularity(db_path):
    with pytest.raises(ValidationError, match="granularity"):
        get_consumption_breakdown(Scope("device", "d1"), granularity="yearly", db_path=db_path)
