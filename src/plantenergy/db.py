"""Database connection and schema management."""

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from .config import get_db_path

SCHEMA = """
-- Energy suppliers and their tariff configuration
CREATE TABLE IF NOT EXISTS energy_suppliers (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    tariff_kwh REAL NOT NULL,
    tariff_peak_kwh REAL,
    peak_start_time TEXT,
    peak_end_time TEXT,
    green_flag_value REAL NOT NULL DEFAULT 0,
    yellow_flag_value REAL NOT NULL DEFAULT 0,
    red_flag_1_value REAL NOT NULL DEFAULT 0,
    red_flag_2_value REAL NOT NULL DEFAULT 0,
    current_flag TEXT NOT NULL DEFAULT 'green'
);

-- Scope hierarchy: plant > area > device
CREATE TABLE IF NOT EXISTS plants (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    supplier_id TEXT,
    FOREIGN KEY (supplier_id) REFERENCES energy_suppliers(id)
);

CREATE TABLE IF NOT EXISTS areas (
    id TEXT PRIMARY KEY,
    plant_id TEXT NOT NULL,
    name TEXT NOT NULL,
    FOREIGN KEY (plant_id) REFERENCES plants(id)
);

CREATE TABLE IF NOT EXISTS devices (
    id TEXT PRIMARY KEY,
    area_id TEXT NOT NULL,
    name TEXT NOT NULL,
    power_kw REAL,
    FOREIGN KEY (area_id) REFERENCES areas(id)
);

-- Metered consumption readings
CREATE TABLE IF NOT EXISTS consumption_readings (
    id INTEGER PRIMARY KEY,
    device_id TEXT NOT NULL,
    timestamp TEXT NOT NULL,
    consumption_kwh REAL NOT NULL,
    source TEXT NOT NULL DEFAULT 'MANUAL',
    voltage REAL,
    current REAL,
    power_factor REAL,
    temperature REAL,
    notes TEXT,
    UNIQUE(device_id, timestamp),
    FOREIGN KEY (device_id) REFERENCES devices(id)
);

-- What-if simulations
CREATE TABLE IF NOT EXISTS simulations (
    id INTEGER PRIMARY KEY,
    user_id TEXT NOT NULL,
    name TEXT NOT NULL,
    description TEXT,
    simulation_type TEXT NOT NULL,
    scope TEXT NOT NULL,
    scope_id TEXT NOT NULL,
    start_date TEXT NOT NULL,
    end_date TEXT NOT NULL,
    estimated_consumption REAL NOT NULL,
    estimated_cost REAL NOT NULL,
    average_daily_usage REAL,
    tariff_used REAL NOT NULL,
    flag_used TEXT,
    real_consumption REAL,
    variance REAL,
    created_at TEXT NOT NULL
);

-- Indexes for common queries
CREATE INDEX IF NOT EXISTS idx_readings_device ON consumption_readings(device_id, timestamp);
CREATE INDEX IF NOT EXISTS idx_readings_timestamp ON consumption_readings(timestamp);
CREATE INDEX IF NOT EXISTS idx_devices_area ON devices(area_id);
CREATE INDEX IF NOT EXISTS idx_areas_plant ON areas(plant_id);
CREATE INDEX IF NOT EXISTS idx_simulations_user ON simulations(user_id, created_at);
"""


@contextmanager
def get_connection(db_path: Path | None = None) -> Iterator[sqlite3.Connection]:
    """Get a database connection with row factory enabled."""
    path = db_path or get_db_path()
    conn = sqlite3.connect(path)
    conn.row_factory = sqlite3.Row
    try:
        yield conn
    finally:
        conn.close()


def init_db(db_path: Path | None = None) -> None:
    """Initialize the database schema."""
    with get_connection(db_path) as conn:
        conn.executescript(SCHEMA)
        conn.commit()


def get_stats(db_path: Path | None = None) -> dict:
    """Get database statistics."""
    with get_connection(db_path) as conn:
        stats = {}

        row = conn.execute(
            "SELECT COUNT(*) as count, MIN(timestamp) as earliest, MAX(timestamp) as latest FROM consumption_readings"
        ).fetchone()
        stats["consumption_readings"] = {
            "count": row["count"],
            "earliest": row["earliest"],
            "latest": row["latest"],
        }

        # By source
        rows = conn.execute(
            "SELECT source, COUNT(*) as count FROM consumption_readings GROUP BY source"
        ).fetchall()
        stats["readings_by_source"] = {row["source"]: row["count"] for row in rows}

        for table in ("energy_suppliers", "plants", "areas", "devices"):
            row = conn.execute(f"SELECT COUNT(*) as count FROM {table}").fetchone()
            stats[table] = {"count": row["count"]}

        row = conn.execute(
            "SELECT COUNT(*) as count, COUNT(real_consumption) as with_real FROM simulations"
        ).fetchone()
        stats["simulations"] = {"count": row["count"], "with_real": row["with_real"]}

        return stats
