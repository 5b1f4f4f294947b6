"""Storage access for readings, tariff profiles, scopes and simulations.

This is the only module the analytics code reads data through. Database
errors are not caught here; they reach the caller unchanged.
"""

import logging
import sqlite3
from datetime import datetime
from pathlib import Path

from .db import get_connection
from .errors import NotFoundError
from .models import (
    ConsumptionReading,
    ConsumptionSource,
    Scope,
    ScopeKind,
    Simulation,
    SimulationType,
    TariffProfile,
    wall_clock,
)

logger = logging.getLogger(__name__)

SCOPE_TABLES = {
    ScopeKind.PLANT: "plants",
    ScopeKind.AREA: "areas",
    ScopeKind.DEVICE: "devices",
}


def format_timestamp(dt: datetime) -> str:
    """Serialize a datetime the way it is stored.

    Fixed microsecond precision keeps stored values and query bounds in the
    same lexical order as the datetimes. UTC offsets are dropped.
    """
    return wall_clock(dt).isoformat(timespec="microseconds")


def _reading_from_row(row: sqlite3.Row) -> ConsumptionReading:
    return ConsumptionReading(
        id=row["id"],
        device_id=row["device_id"],
        timestamp=datetime.fromisoformat(row["timestamp"]),
        consumption_kwh=row["consumption_kwh"],
        source=ConsumptionSource(row["source"]),
        voltage=row["voltage"],
        current=row["current"],
        power_factor=row["power_factor"],
        temperature=row["temperature"],
        notes=row["notes"],
    )


def fetch_readings(
    scope: Scope,
    start: datetime | None = None,
    end: datetime | None = None,
    db_path: Path | None = None,
) -> list[ConsumptionReading]:
    """Fetch readings for a device, area or plant within [start, end).

    Area and plant scopes cover every device below them. Readings are
    returned in timestamp order.
    """
    query = """SELECT r.id, r.device_id, r.timestamp, r.consumption_kwh, r.source,
                      r.voltage, r.current, r.power_factor, r.temperature, r.notes
               FROM consumption_readings r
               JOIN devices d ON d.id = r.device_id
               JOIN areas a ON a.id = d.area_id"""

    if scope.kind == ScopeKind.DEVICE:
        query += " WHERE r.device_id = ?"
    elif scope.kind == ScopeKind.AREA:
        query += " WHERE d.area_id = ?"
    else:
        query += " WHERE a.plant_id = ?"
    params: list = [scope.id]

    if start:
        query += " AND r.timestamp >= ?"
        params.append(format_timestamp(start))
    if end:
        query += " AND r.timestamp < ?"
        params.append(format_timestamp(end))

    query += " ORDER BY r.timestamp, r.id"

    with get_connection(db_path) as conn:
        rows = conn.execute(query, params).fetchall()

    logger.debug("Fetched %d readings for %s", len(rows), scope)
    return [_reading_from_row(row) for row in rows]


def save_readings(readings: list[ConsumptionReading], db_path: Path | None = None) -> dict:
    """Save consumption readings to the database.

    Returns dict with 'imported' and 'skipped' counts.
    """
    imported = 0
    skipped = 0

    with get_connection(db_path) as conn:
        for reading in readings:
            try:
                conn.execute(
                    """INSERT INTO consumption_readings
                       (device_id, timestamp, consumption_kwh, source,
                        voltage, current, power_factor, temperature, notes)
                       VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                    (
                        reading.device_id,
                        format_timestamp(reading.timestamp),
                        reading.consumption_kwh,
                        reading.source.value,
                        reading.voltage,
                        reading.current,
                        reading.power_factor,
                        reading.temperature,
                        reading.notes,
                    ),
                )
                imported += 1
            except sqlite3.IntegrityError:
                # Same device and timestamp already recorded
                skipped += 1

        conn.commit()

    return {"imported": imported, "skipped": skipped}


def scope_exists(scope: Scope, db_path: Path | None = None) -> bool:
    """Check whether the plant, area or device a scope points at exists."""
    table = SCOPE_TABLES[scope.kind]
    with get_connection(db_path) as conn:
        row = conn.execute(f"SELECT 1 FROM {table} WHERE id = ?", (scope.id,)).fetchone()
    return row is not None


def require_scope(scope: Scope, db_path: Path | None = None) -> None:
    """Raise NotFoundError unless the scope's entity exists."""
    if not scope_exists(scope, db_path):
        raise NotFoundError(f"{scope.kind.value.capitalize()} not found: {scope.id}")


def device_exists(device_id: str, db_path: Path | None = None) -> bool:
    return scope_exists(Scope(ScopeKind.DEVICE, device_id), db_path)


def fetch_tariff_profile(supplier_id: str, db_path: Path | None = None) -> TariffProfile:
    """Fetch the tariff profile of an energy supplier."""
    with get_connection(db_path) as conn:
        row = conn.execute(
            "SELECT * FROM energy_suppliers WHERE id = ?", (supplier_id,)
        ).fetchone()

    if not row:
        raise NotFoundError(f"Energy supplier not found: {supplier_id}")

    return TariffProfile(
        supplier_id=row["id"],
        name=row["name"],
        base_tariff=row["tariff_kwh"],
        peak_tariff=row["tariff_peak_kwh"],
        peak_start=row["peak_start_time"],
        peak_end=row["peak_end_time"],
        green_flag_value=row["green_flag_value"],
        yellow_flag_value=row["yellow_flag_value"],
        red_flag_1_value=row["red_flag_1_value"],
        red_flag_2_value=row["red_flag_2_value"],
        current_flag=row["current_flag"],
    )


def fetch_plant_tariff_profile(plant_id: str, db_path: Path | None = None) -> TariffProfile | None:
    """Fetch the tariff profile of the supplier linked to a plant, if any."""
    with get_connection(db_path) as conn:
        row = conn.execute(
            """SELECT s.id FROM plants p
               JOIN energy_suppliers s ON s.id = p.supplier_id
               WHERE p.id = ?""",
            (plant_id,),
        ).fetchone()

    if not row:
        return None
    return fetch_tariff_profile(row["id"], db_path)


def _simulation_from_row(row: sqlite3.Row) -> Simulation:
    return Simulation(
        id=row["id"],
        user_id=row["user_id"],
        name=row["name"],
        description=row["description"],
        simulation_type=SimulationType(row["simulation_type"]),
        scope=Scope(row["scope"], row["scope_id"]),
        start_date=datetime.fromisoformat(row["start_date"]),
        end_date=datetime.fromisoformat(row["end_date"]),
        estimated_consumption=row["estimated_consumption"],
        estimated_cost=row["estimated_cost"],
        average_daily_usage=row["average_daily_usage"],
        tariff_used=row["tariff_used"],
        flag_used=row["flag_used"],
        real_consumption=row["real_consumption"],
        variance=row["variance"],
        created_at=datetime.fromisoformat(row["created_at"]),
    )


def fetch_simulations(user_id: str, db_path: Path | None = None) -> list[Simulation]:
    """Fetch all simulations of a user in the order they were created."""
    with get_connection(db_path) as conn:
        rows = conn.execute(
            "SELECT * FROM simulations WHERE user_id = ? ORDER BY created_at, id",
            (user_id,),
        ).fetchall()
    return [_simulation_from_row(row) for row in rows]


def fetch_simulation(simulation_id: int, db_path: Path | None = None) -> Simulation:
    with get_connection(db_path) as conn:
        row = conn.execute(
            "SELECT * FROM simulations WHERE id = ?", (simulation_id,)
        ).fetchone()

    if not row:
        raise NotFoundError(f"Simulation not found: {simulation_id}")
    return _simulation_from_row(row)


def save_simulation(simulation: Simulation, db_path: Path | None = None) -> int:
    """Insert a simulation. Returns the new simulation id."""
    with get_connection(db_path) as conn:
        cursor = conn.execute(
            """INSERT INTO simulations
               (user_id, name, description, simulation_type, scope, scope_id,
                start_date, end_date, estimated_consumption, estimated_cost,
                average_daily_usage, tariff_used, flag_used, real_consumption,
                variance, created_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                simulation.user_id,
                simulation.name,
                simulation.description,
                simulation.simulation_type.value,
                simulation.scope.kind.value,
                simulation.scope.id,
                format_timestamp(simulation.start_date),
                format_timestamp(simulation.end_date),
                simulation.estimated_consumption,
                simulation.estimated_cost,
                simulation.average_daily_usage,
                simulation.tariff_used,
                simulation.flag_used,
                simulation.real_consumption,
                simulation.variance,
                format_timestamp(simulation.created_at),
            ),
        )
        conn.commit()
        return cursor.lastrowid


def update_real_consumption(
    simulation_id: int, real_consumption: float, variance: float, db_path: Path | None = None
) -> None:
    """Store the real consumption of a simulation together with its variance."""
    with get_connection(db_path) as conn:
        cursor = conn.execute(
            "UPDATE simulations SET real_consumption = ?, variance = ? WHERE id = ?",
            (real_consumption, variance, simulation_id),
        )
        conn.commit()
        if cursor.rowcount == 0:
            raise NotFoundError(f"Simulation not found: {simulation_id}")
