"""Consumption statistics over a scope and time range."""

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from pathlib import Path
from typing import Iterable

from ..errors import ValidationError
from ..models import ConsumptionReading, Scope, wall_clock
from ..store import fetch_readings

GRANULARITIES = ("hourly", "daily", "weekly", "monthly")


@dataclass
class ConsumptionStats:
    """Sum, mean, max, min and count of a set of readings.

    All figures are 0 when there are no readings.
    """

    total: float = 0.0
    average: float = 0.0
    max: float = 0.0
    min: float = 0.0
    count: int = 0


@dataclass
class ScopeStats:
    """Statistics of a scope over a period."""

    scope: Scope
    period_start: datetime
    period_end: datetime
    stats: ConsumptionStats


@dataclass
class PeriodComparison:
    period1: ScopeStats
    period2: ScopeStats
    absolute_difference: float
    percentage_difference: float


@dataclass
class BreakdownBucket:
    period_start: datetime
    consumption_kwh: float
    readings_count: int


@dataclass
class ConsumptionBreakdown:
    scope: Scope
    granularity: str
    stats: ConsumptionStats
    buckets: list[BreakdownBucket] = field(default_factory=list)


def filter_readings(
    readings: Iterable[ConsumptionReading],
    start: datetime | None = None,
    end: datetime | None = None,
) -> list[ConsumptionReading]:
    """Keep readings with start <= timestamp < end (either bound optional)."""
    start = start and wall_clock(start)
    end = end and wall_clock(end)
    return [
        r
        for r in readings
        if (start is None or r.timestamp >= start) and (end is None or r.timestamp < end)
    ]


def aggregate(
    readings: Iterable[ConsumptionReading],
    start: datetime | None = None,
    end: datetime | None = None,
) -> ConsumptionStats:
    """Aggregate readings into total/average/max/min/count.

    The average is the plain mean of the reading values, not time weighted.
    """
    values = [r.consumption_kwh for r in filter_readings(readings, start, end)]
    if not values:
        return ConsumptionStats()

    total = sum(values)
    return ConsumptionStats(
        total=total,
        average=total / len(values),
        max=max(values),
        min=min(values),
        count=len(values),
    )


def _check_period(start: datetime | None, end: datetime | None) -> None:
    if start and end and start > end:
        raise ValidationError("Start date must be before or equal to end date")


def get_consumption_stats(
    scope: Scope,
    start: datetime | None = None,
    end: datetime | None = None,
    db_path: Path | None = None,
) -> ScopeStats:
    """Get consumption statistics for a scope from the database."""
    _check_period(start, end)
    readings = fetch_readings(scope, start, end, db_path)
    return ScopeStats(
        scope=scope,
        period_start=start or datetime.fromtimestamp(0),
        period_end=end or datetime.now(),
        stats=aggregate(readings),
    )


def compare_periods(period1: ScopeStats, period2: ScopeStats) -> PeriodComparison:
    """Compare the totals of two periods; percentage is relative to period1."""
    absolute = period2.stats.total - period1.stats.total
    percentage = absolute / period1.stats.total * 100 if period1.stats.total > 0 else 0.0
    return PeriodComparison(
        period1=period1,
        period2=period2,
        absolute_difference=absolute,
        percentage_difference=percentage,
    )


def compare_consumption(
    scope: Scope,
    period1: tuple[datetime, datetime],
    period2: tuple[datetime, datetime],
    db_path: Path | None = None,
) -> PeriodComparison:
    """Compare consumption of one scope between two periods."""
    return compare_periods(
        get_consumption_stats(scope, *period1, db_path=db_path),
        get_consumption_stats(scope, *period2, db_path=db_path),
    )


def bucket_start(ts: datetime, granularity: str) -> datetime:
    """Truncate a timestamp to the start of its hour, day, ISO week or month."""
    if granularity == "hourly":
        return ts.replace(minute=0, second=0, microsecond=0)
    day = ts.replace(hour=0, minute=0, second=0, microsecond=0)
    if granularity == "daily":
        return day
    if granularity == "weekly":
        return day - timedelta(days=day.weekday())
    if granularity == "monthly":
        return day.replace(day=1)
    raise ValidationError(f"Unknown granularity: {granularity} (expected one of {', '.join(GRANULARITIES)})")


def breakdown(readings: Iterable[ConsumptionReading], granularity: str = "daily") -> list[BreakdownBucket]:
    """Sum readings per hour, day, week or month, ordered by time."""
    totals: dict[datetime, float] = defaultdict(float)
    counts: dict[datetime, int] = defaultdict(int)
    for r in readings:
        key = bucket_start(r.timestamp, granularity)
        totals[key] += r.consumption_kwh
        counts[key] += 1

    return [
        BreakdownBucket(period_start=key, consumption_kwh=totals[key], readings_count=counts[key])
        for key in sorted(totals)
    ]


def get_consumption_breakdown(
    scope: Scope,
    start: datetime | None = None,
    end: datetime | None = None,
    granularity: str = "daily",
    db_path: Path | None = None,
) -> ConsumptionBreakdown:
    """Get statistics plus a per-period breakdown for a scope.

    Defaults to the last 30 days.
    """
    end = end or datetime.now()
    start = start or end - timedelta(days=30)
    _check_period(start, end)
    if granularity not in GRANULARITIES:
        raise ValidationError(f"Unknown granularity: {granularity} (expected one of {', '.join(GRANULARITIES)})")

    readings = fetch_readings(scope, start, end, db_path)
    return ConsumptionBreakdown(
        scope=scope,
        granularity=granularity,
        stats=aggregate(readings),
        buckets=breakdown(readings, granularity),
    )
