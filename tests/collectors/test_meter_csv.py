"""Tests for the CSV meter reading importer."""

from datetime import datetime

import pytest
from plantenergy.collectors import meter_csv
from plantenergy.errors import NotFoundError, ValidationError
from plantenergy.models import ConsumptionSource, Scope
from plantenergy.store import fetch_readings

CSV_TEXT = """device_id,timestamp,consumption_kwh,source,voltage,current,power_factor,temperature,notes
d1,2026-01-10T08:00:00,12.5,modbus,380,40,0.82,31.5,
d1,2026-01-10T09:00:00,13.25,,,,,,shift change
d2,2026-01-10T08:00:00,4.0,MQTT,,,,,
"""


@pytest.fixture
def csv_file(tmp_path):
    path = tmp_path / "readings.csv"
    path.write_text(CSV_TEXT)
    return path


def test_parse_csv(csv_file):
    readings = meter_csv.parse_csv(csv_file)

    assert len(readings) == 3
    first = readings[0]
    assert first.device_id == "d1"
    assert first.timestamp == datetime(2026, 1, 10, 8)
    assert first.consumption_kwh == 12.5
    assert first.source == ConsumptionSource.MODBUS
    assert first.voltage == 380.0
    assert first.power_factor == 0.82
    assert first.notes is None

    # Empty optional columns
    assert readings[1].source == ConsumptionSource.MANUAL
    assert readings[1].voltage is None
    assert readings[1].notes == "shift change"
    assert readings[2].source == ConsumptionSource.MQTT


def test_parse_minimal_columns(tmp_path):
    path = tmp_path / "minimal.csv"
    path.write_text("device_id,timestamp,consumption_kwh\nd3,2026-01-10 08:00,1.5\n")

    readings = meter_csv.parse_csv(path)

    assert readings[0].timestamp == datetime(2026, 1, 10, 8)
    assert readings[0].source == ConsumptionSource.MANUAL


def test_import_offset_timestamps(tmp_path, db_path):
    path = tmp_path / "offsets.csv"
    path.write_text(
        "device_id,timestamp,consumption_kwh\n"
        "d1,2026-01-10T08:00:00+00:00,1.0\n"
        "d2,2026-01-10T08:00:00Z,2.0\n"
        "d3,2026-01-10T08:00:00-03:00,3.0\n"
    )

    assert meter_csv.import_from_csv(path, db_path) == {"imported": 3, "skipped": 0}

    # Offsets are dropped, the clock reading is kept as written
    readings = fetch_readings(Scope("plant", "p1"), datetime(2026, 1, 10), datetime(2026, 1, 11), db_path)
    assert [r.timestamp for r in readings] == [datetime(2026, 1, 10, 8)] * 3
    assert all(r.timestamp.tzinfo is None for r in readings)


def test_parse_row_errors():
    with pytest.raises(ValidationError, match="Line 4: missing consumption_kwh"):
        meter_csv.parse_row({"device_id": "d1", "timestamp": "2026-01-10T08:00:00"}, 4)
    with pytest.raises(ValidationError, match="Line 2: unknown source"):
        meter_csv.parse_row(
            {"device_id": "d1", "timestamp": "2026-01-10T08:00:00", "consumption_kwh": "1", "source": "zigbee"}, 2
        )
    with pytest.raises(ValidationError, match="Line 3"):
        meter_csv.parse_row({"device_id": "d1", "timestamp": "yesterday", "consumption_kwh": "1"}, 3)


def test_import_from_csv(csv_file, db_path):
    result = meter_csv.import_from_csv(csv_file, db_path)
    assert result == {"imported": 3, "skipped": 0}

    # Re-importing the same file only skips
    result = meter_csv.import_from_csv(csv_file, db_path)
    assert result == {"imported": 0, "skipped": 3}

    assert len(fetch_readings(Scope("area", "a1"), db_path=db_path)) == 3


def test_import_unknown_device(tmp_path, db_path):
    path = tmp_path / "ghost.csv"
    path.write_text("device_id,timestamp,consumption_kwh\nghost,2026-01-10T08:00:00,1.0\n")

    with pytest.raises(NotFoundError, match="ghost"):
        meter_csv.import_from_csv(path, db_path)


def test_import_rejects_negative(tmp_path, db_path):
    path = tmp_path / "negative.csv"
    path.write_text("device_id,timestamp,consumption_kwh\nd1,2026-01-10T08:00:00,-3\n")

    with pytest.raises(ValidationError, match="negative"):
        meter_csv.import_from_csv(path, db_path)
