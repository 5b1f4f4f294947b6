"""Validation and storage of newly recorded consumption readings."""

import logging
from datetime import datetime
from pathlib import Path

from .errors import NotFoundError, ValidationError
from .models import ConsumptionReading, wall_clock
from .store import device_exists, save_readings

logger = logging.getLogger(__name__)

# Readings above this are suspicious but may be legitimate in heavy industry
HIGH_CONSUMPTION_KWH = 10000
# Allowed relative gap between V*A*pf and the reported consumption
POWER_FACTOR_TOLERANCE = 0.5


def validate_reading(reading: ConsumptionReading, now: datetime | None = None) -> None:
    """Check a new reading before it is stored.

    Rejects negative consumption, timestamps in the future and power factors
    outside [0, 1]. Very high consumption and electrical metrics that disagree
    with the consumption are only logged.
    """
    now = wall_clock(now) if now else datetime.now()

    if reading.consumption_kwh < 0:
        raise ValidationError(f"Consumption cannot be negative: {reading.consumption_kwh}")
    if reading.timestamp > now:
        raise ValidationError(f"Reading timestamp is in the future: {reading.timestamp.isoformat()}")
    if reading.power_factor is not None and not 0 <= reading.power_factor <= 1:
        raise ValidationError(f"Power factor must be between 0 and 1: {reading.power_factor}")

    if reading.consumption_kwh > HIGH_CONSUMPTION_KWH:
        logger.warning(
            "High consumption value detected: %s kWh for device %s",
            reading.consumption_kwh, reading.device_id,
        )

    if reading.voltage and reading.current and reading.power_factor:
        real_power = reading.voltage * reading.current * reading.power_factor
        if abs(real_power - reading.consumption_kwh * 1000) > real_power * POWER_FACTOR_TOLERANCE:
            logger.warning(
                "Power factor figures for device %s at %s seem inconsistent with reported consumption",
                reading.device_id, reading.timestamp.isoformat(),
            )


def import_readings(
    readings: list[ConsumptionReading], db_path: Path | None = None, now: datetime | None = None
) -> dict:
    """Validate and save readings.

    Every reading is checked before anything is written. Returns dict with
    'imported' and 'skipped' counts.
    """
    known_devices: set[str] = set()
    for reading in readings:
        if reading.device_id not in known_devices:
            if not device_exists(reading.device_id, db_path):
                raise NotFoundError(f"Device not found: {reading.device_id}")
            known_devices.add(reading.device_id)
        validate_reading(reading, now)

    return save_readings(readings, db_path)
