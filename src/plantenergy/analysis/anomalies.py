"""Z-score based anomaly detection on device consumption."""

import logging
import math
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from ..errors import ValidationError
from ..models import ConsumptionReading, Scope, ScopeKind
from ..store import fetch_readings

logger = logging.getLogger(__name__)

MIN_ANOMALY_SAMPLES = 10
DEFAULT_ANOMALY_THRESHOLD = 2.0  # standard deviations


@dataclass
class AnomalyResult:
    anomalies: list[ConsumptionReading]
    mean: float
    stddev: float
    threshold: float


def detect_anomalies(
    readings: list[ConsumptionReading], threshold: float = DEFAULT_ANOMALY_THRESHOLD
) -> AnomalyResult:
    """Flag readings lying more than `threshold` standard deviations from the mean.

    Uses the population standard deviation. At least MIN_ANOMALY_SAMPLES
    readings are required. When every reading has the same value the
    deviation is 0 and nothing is flagged.
    """
    if len(readings) < MIN_ANOMALY_SAMPLES:
        raise ValidationError(
            f"Not enough data points for anomaly detection "
            f"(minimum {MIN_ANOMALY_SAMPLES} required, got {len(readings)})"
        )

    values = [r.consumption_kwh for r in readings]
    mean = sum(values) / len(values)
    stddev = math.sqrt(sum((v - mean) ** 2 for v in values) / len(values))

    if stddev == 0:
        anomalies = []
    else:
        anomalies = [r for r in readings if abs(r.consumption_kwh - mean) / stddev > threshold]

    logger.debug(
        "%d of %d readings beyond %.2f stddev (mean=%.3f, stddev=%.3f)",
        len(anomalies), len(readings), threshold, mean, stddev,
    )
    return AnomalyResult(anomalies=anomalies, mean=mean, stddev=stddev, threshold=threshold)


def detect_anomalies_from_db(
    device_id: str,
    start: datetime | None = None,
    end: datetime | None = None,
    threshold: float = DEFAULT_ANOMALY_THRESHOLD,
    db_path: Path | None = None,
) -> AnomalyResult:
    """Detect anomalies in a device's stored readings."""
    readings = fetch_readings(Scope(ScopeKind.DEVICE, device_id), start, end, db_path)
    return detect_anomalies(readings, threshold)
