from datetime import datetime, timedelta

import pytest

from plantenergy.analysis.anomalies import detect_anomalies, detect_anomalies_from_db
from plantenergy.errors import ValidationError
from plantenergy.models import ConsumptionReading
from plantenergy.store import save_readings


def make_readings(values, device_id="d1", start=datetime(2026, 1, 1)):
    return [
        ConsumptionReading(device_id=device_id, timestamp=start + timedelta(hours=i), consumption_kwh=v)
        for i, v in enumerate(values)
    ]


def test_requires_ten_readings():
    with pytest.raises(ValidationError, match="minimum 10"):
        detect_anomalies(make_readings([1.0] * 9))

    result = detect_anomalies(make_readings([1.0] * 10))
    assert result.anomalies == []


def test_identical_readings_have_no_anomalies():
    """Zero deviation flags nothing, even with a zero threshold."""
    result = detect_anomalies(make_readings([5.0] * 12), threshold=0)
    assert result.stddev == 0
    assert result.mean == 5.0
    assert result.anomalies == []


def test_detects_outlier():
    # mean 19, population stddev 27: the spike has z = 3, the rest z = 1/3
    readings = make_readings([10.0] * 9 + [100.0])
    result = detect_anomalies(readings)

    assert result.mean == pytest.approx(19.0)
    assert result.stddev == pytest.approx(27.0)
    assert result.threshold == 2.0
    assert result.anomalies == [readings[-1]]


def test_threshold_is_exclusive():
    readings = make_readings([10.0] * 9 + [100.0])
    assert detect_anomalies(readings, threshold=3.5).anomalies == []
    assert len(detect_anomalies(readings, threshold=0.3).anomalies) == 10


def test_low_outlier_is_flagged():
    readings = make_readings([50.0] * 11 + [0.0])
    result = detect_anomalies(readings)
    assert result.anomalies == [readings[-1]]


def test_from_db_uses_device_and_range(db_path):
    save_readings(make_readings([10.0] * 9 + [100.0], device_id="d1"), db_path)
    save_readings(make_readings([1000.0] * 10, device_id="d2"), db_path)

    result = detect_anomalies_from_db("d1", db_path=db_path)
    assert len(result.anomalies) == 1
    assert result.anomalies[0].consumption_kwh == 100.0

    # Only the first five hours fall in range
    with pytest.raises(ValidationError):
        detect_anomalies_from_db("d1", datetime(2026, 1, 1), datetime(2026, 1, 1, 5), db_path=db_path)
