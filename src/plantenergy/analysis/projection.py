"""Projection of future consumption from a device's recent history."""

from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path

from ..errors import ValidationError
from ..models import Scope, ScopeKind
from ..store import fetch_readings
from .stats import ConsumptionStats, aggregate

# Confidence tiers by average readings per day over the history window
LOW_CONFIDENCE_READINGS_PER_DAY = 2
HIGH_CONFIDENCE_READINGS_PER_DAY = 10

DEFAULT_HISTORICAL_DAYS = 30
DEFAULT_PROJECTION_DAYS = 30


@dataclass
class ConsumptionProjection:
    historical_average: float  # kWh per day
    projected_total: float
    projected_daily: float
    confidence: str  # 'low', 'medium' or 'high'


def classify_confidence(readings_count: int, historical_days: int) -> str:
    """Classify sample density: <2 readings/day is low, <10 medium, else high."""
    if readings_count < historical_days * LOW_CONFIDENCE_READINGS_PER_DAY:
        return "low"
    if readings_count < historical_days * HIGH_CONFIDENCE_READINGS_PER_DAY:
        return "medium"
    return "high"


def project(
    stats: ConsumptionStats,
    historical_days: int = DEFAULT_HISTORICAL_DAYS,
    projection_days: int = DEFAULT_PROJECTION_DAYS,
) -> ConsumptionProjection:
    """Extrapolate the daily average of a history window over a future window."""
    if historical_days <= 0:
        raise ValidationError("historical_days must be positive")
    if projection_days < 0:
        raise ValidationError("projection_days cannot be negative")

    daily_average = stats.total / historical_days
    return ConsumptionProjection(
        historical_average=daily_average,
        projected_total=daily_average * projection_days,
        projected_daily=daily_average,
        confidence=classify_confidence(stats.count, historical_days),
    )


def project_consumption(
    device_id: str,
    historical_days: int = DEFAULT_HISTORICAL_DAYS,
    projection_days: int = DEFAULT_PROJECTION_DAYS,
    now: datetime | None = None,
    db_path: Path | None = None,
) -> ConsumptionProjection:
    """Project a device's consumption from its last `historical_days` of readings."""
    if historical_days <= 0:
        raise ValidationError("historical_days must be positive")

    end = now or datetime.now()
    start = end - timedelta(days=historical_days)
    readings = fetch_readings(Scope(ScopeKind.DEVICE, device_id), start, end, db_path)
    return project(aggregate(readings), historical_days, projection_days)
