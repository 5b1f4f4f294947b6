"""Meter reading importer for CSV exports.

CSV format: device_id, timestamp, consumption_kwh, and optionally
source, voltage, current, power_factor, temperature, notes.
"""

import csv
from pathlib import Path

from ..errors import ValidationError
from ..models import ConsumptionReading, ConsumptionSource, parse_timestamp
from ..readings import import_readings


def _optional_float(value: str | None) -> float | None:
    if value is None or value.strip() == "":
        return None
    return float(value)


def parse_row(row: dict, line: int) -> ConsumptionReading:
    """Parse one CSV row into a reading."""
    for column in ("device_id", "timestamp", "consumption_kwh"):
        if not row.get(column):
            raise ValidationError(f"Line {line}: missing {column}")

    try:
        source = ConsumptionSource((row.get("source") or ConsumptionSource.MANUAL.value).upper())
    except ValueError:
        raise ValidationError(f"Line {line}: unknown source {row['source']!r}") from None

    try:
        return ConsumptionReading(
            device_id=row["device_id"],
            timestamp=parse_timestamp(row["timestamp"]),
            consumption_kwh=float(row["consumption_kwh"]),
            source=source,
            voltage=_optional_float(row.get("voltage")),
            current=_optional_float(row.get("current")),
            power_factor=_optional_float(row.get("power_factor")),
            temperature=_optional_float(row.get("temperature")),
            notes=row.get("notes") or None,
        )
    except ValueError as e:
        raise ValidationError(f"Line {line}: {e}") from e


def parse_csv(csv_path: Path) -> list[ConsumptionReading]:
    """Parse a meter reading CSV file."""
    with open(csv_path, newline="") as f:
        reader = csv.DictReader(f)
        # Line 1 is the header
        return [parse_row(row, line) for line, row in enumerate(reader, start=2)]


def import_from_csv(csv_path: Path, db_path: Path | None = None) -> dict:
    """Import consumption readings from a CSV file.

    Returns dict with 'imported' and 'skipped' counts.
    """
    return import_readings(parse_csv(csv_path), db_path)
