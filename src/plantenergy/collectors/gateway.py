"""Telemetry gateway collector.

Pulls readings that a plant's telemetry gateway (bridging MODBUS, OPC-UA,
MQTT and other field protocols) exposes over its REST API:

    GET {base_url}/api/readings?device_id=...&from=...&to=...

    {"readings": [{"device_id": "...", "timestamp": "...", "consumption_kwh": 1.2,
                   "protocol": "MODBUS", "voltage": 380.0, ...}]}
"""

from datetime import datetime, timedelta
from pathlib import Path
from typing import Any

import httpx

from ..config import get_gateway_token, get_gateway_url
from ..models import ConsumptionReading, ConsumptionSource, parse_timestamp
from ..readings import import_readings

DEFAULT_TIMEOUT = 30.0


class GatewayError(Exception):
    """Base exception for telemetry gateway collector errors."""
    pass


def _source(protocol: str | None) -> ConsumptionSource:
    if not protocol:
        return ConsumptionSource.IOT
    try:
        return ConsumptionSource(protocol.upper().replace("-", "_"))
    except ValueError:
        raise GatewayError(f"Unknown protocol from gateway: {protocol}") from None


def parse_readings(data: dict[str, Any]) -> list[ConsumptionReading]:
    """Convert a gateway response body into readings."""
    readings = []
    for item in data.get("readings", []):
        try:
            readings.append(
                ConsumptionReading(
                    device_id=item["device_id"],
                    timestamp=parse_timestamp(item["timestamp"]),
                    consumption_kwh=float(item["consumption_kwh"]),
                    source=_source(item.get("protocol")),
                    voltage=item.get("voltage"),
                    current=item.get("current"),
                    power_factor=item.get("power_factor"),
                    temperature=item.get("temperature"),
                )
            )
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise GatewayError(f"Malformed reading from gateway: {item}") from e
    return readings


def fetch_readings(
    device_id: str,
    start: datetime,
    end: datetime,
    base_url: str | None = None,
    token: str | None = None,
    client: httpx.Client | None = None,
) -> list[ConsumptionReading]:
    """Fetch a device's readings for [start, end) from the gateway."""
    base_url = base_url or get_gateway_url()
    token = token if token is not None else get_gateway_token()
    headers = {"Authorization": f"Bearer {token}"} if token else {}

    params = {
        "device_id": device_id,
        "from": start.isoformat(),
        "to": end.isoformat(),
    }

    owns_client = client is None
    client = client or httpx.Client(timeout=DEFAULT_TIMEOUT)
    try:
        response = client.get(f"{base_url}/api/readings", params=params, headers=headers)
        response.raise_for_status()
        data = response.json()
    except httpx.HTTPStatusError as e:
        raise GatewayError(f"HTTP error from gateway: {e.response.status_code}") from e
    except httpx.HTTPError as e:
        raise GatewayError(f"Network error connecting to gateway: {e}") from e
    finally:
        if owns_client:
            client.close()

    return parse_readings(data)


def fetch_and_import(
    device_id: str,
    days: int = 1,
    end: datetime | None = None,
    db_path: Path | None = None,
    base_url: str | None = None,
    token: str | None = None,
    client: httpx.Client | None = None,
) -> dict:
    """Fetch the last `days` of a device's readings and store them.

    Returns dict with 'imported' and 'skipped' counts.
    """
    end = end or datetime.now()
    start = end - timedelta(days=days)
    readings = fetch_readings(device_id, start, end, base_url, token, client)
    return import_readings(readings, db_path)
