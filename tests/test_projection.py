from datetime import datetime, timedelta

import pytest

from plantenergy.analysis.projection import classify_confidence, project, project_consumption
from plantenergy.analysis.stats import ConsumptionStats
from plantenergy.errors import ValidationError
from plantenergy.models import ConsumptionReading
from plantenergy.store import save_readings


@pytest.mark.parametrize(
    "count,expected",
    [
        (0, "low"),
        (59, "low"),
        (60, "medium"),  # exactly 2 readings/day
        (299, "medium"),
        (300, "high"),  # exactly 10 readings/day
        (1000, "high"),
    ],
)
def test_confidence_tiers(count, expected):
    assert classify_confidence(count, 30) == expected


def test_project_daily_average():
    stats = ConsumptionStats(total=300, average=5, max=10, min=1, count=60)
    result = project(stats, historical_days=30, projection_days=7)
    assert result.historical_average == 10
    assert result.projected_daily == 10
    assert result.projected_total == 70
    assert result.confidence == "medium"


def test_project_no_history():
    result = project(ConsumptionStats(), 30, 30)
    assert result.projected_total == 0
    assert result.confidence == "low"


def test_project_zero_projection_days():
    result = project(ConsumptionStats(total=30, count=30), 30, 0)
    assert result.projected_total == 0
    assert result.projected_daily == 1


def test_project_rejects_bad_windows():
    with pytest.raises(ValidationError):
        project(ConsumptionStats(), 0, 30)
    with pytest.raises(ValidationError):
        project(ConsumptionStats(), 30, -1)


def test_project_consumption_from_db(db_path):
    now = datetime(2026, 3, 31, 12)
    # 10 days x 4 readings of 2.5 kWh inside the window, one old reading outside it
    readings = [
        ConsumptionReading(device_id="d1", timestamp=now - timedelta(days=d) + timedelta(hours=h), consumption_kwh=2.5)
        for d in range(1, 11)
        for h in range(4)
    ]
    readings.append(ConsumptionReading(device_id="d1", timestamp=now - timedelta(days=40), consumption_kwh=500))
    save_readings(readings, db_path)

    result = project_consumption("d1", historical_days=10, projection_days=30, now=now, db_path=db_path)
    assert result.historical_average == pytest.approx(10.0)
    assert result.projected_total == pytest.approx(300.0)
    assert result.confidence == "medium"
