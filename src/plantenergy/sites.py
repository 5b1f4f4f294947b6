"""Loading energy suppliers and the plant/area/device hierarchy from YAML."""

from dataclasses import dataclass, field
from pathlib import Path

import yaml

from .config import get_site_config_path
from .db import get_connection
from .models import TariffFlag, TariffProfile


@dataclass
class Device:
    id: str
    name: str
    power_kw: float | None = None


@dataclass
class Area:
    id: str
    name: str
    devices: list[Device] = field(default_factory=list)


@dataclass
class Plant:
    id: str
    name: str
    supplier_id: str | None = None
    areas: list[Area] = field(default_factory=list)


@dataclass
class SiteConfig:
    suppliers: list[TariffProfile]
    plants: list[Plant]


def _clock(value) -> str | None:
    """Normalize a HH:MM value from YAML.

    Unquoted 18:00 is read by YAML 1.1 as the sexagesimal integer 1080.
    """
    if value is None:
        return None
    if isinstance(value, int):
        return f"{value // 60:02d}:{value % 60:02d}"
    return str(value)


def load_site_from_yaml(config_path: Path | None = None) -> SiteConfig:
    """Load supplier and plant definitions from YAML config file."""
    path = config_path or get_site_config_path()
    with open(path) as f:
        data = yaml.safe_load(f) or {}

    suppliers = []
    for s in data.get("suppliers", []):
        flags = s.get("flags", {})
        suppliers.append(
            TariffProfile(
                supplier_id=str(s["id"]),
                name=s["name"],
                base_tariff=float(s["tariff_kwh"]),
                peak_tariff=float(s["tariff_peak_kwh"]) if s.get("tariff_peak_kwh") is not None else None,
                peak_start=_clock(s.get("peak_start")),
                peak_end=_clock(s.get("peak_end")),
                green_flag_value=float(flags.get("green", 0)),
                yellow_flag_value=float(flags.get("yellow", 0)),
                red_flag_1_value=float(flags.get("red1", 0)),
                red_flag_2_value=float(flags.get("red2", 0)),
                current_flag=s.get("current_flag", TariffFlag.GREEN.value),
            )
        )

    plants = [
        Plant(
            id=str(p["id"]),
            name=p["name"],
            supplier_id=str(p["supplier"]) if p.get("supplier") else None,
            areas=[
                Area(
                    id=str(a["id"]),
                    name=a["name"],
                    devices=[
                        Device(id=str(d["id"]), name=d["name"], power_kw=d.get("power_kw"))
                        for d in a.get("devices", [])
                    ],
                )
                for a in p.get("areas", [])
            ],
        )
        for p in data.get("plants", [])
    ]

    return SiteConfig(suppliers=suppliers, plants=plants)


def save_site_to_db(site: SiteConfig, db_path: Path | None = None) -> dict:
    """Save suppliers and the plant hierarchy. Returns counts per entity."""
    counts = {"suppliers": 0, "plants": 0, "areas": 0, "devices": 0}
    with get_connection(db_path) as conn:
        for s in site.suppliers:
            conn.execute(
                """INSERT OR REPLACE INTO energy_suppliers
                   (id, name, tariff_kwh, tariff_peak_kwh, peak_start_time, peak_end_time,
                    green_flag_value, yellow_flag_value, red_flag_1_value, red_flag_2_value,
                    current_flag)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    s.supplier_id,
                    s.name,
                    s.base_tariff,
                    s.peak_tariff,
                    s.peak_start,
                    s.peak_end,
                    s.green_flag_value,
                    s.yellow_flag_value,
                    s.red_flag_1_value,
                    s.red_flag_2_value,
                    s.current_flag,
                ),
            )
            counts["suppliers"] += 1

        for plant in site.plants:
            conn.execute(
                "INSERT OR REPLACE INTO plants (id, name, supplier_id) VALUES (?, ?, ?)",
                (plant.id, plant.name, plant.supplier_id),
            )
            counts["plants"] += 1
            for area in plant.areas:
                conn.execute(
                    "INSERT OR REPLACE INTO areas (id, plant_id, name) VALUES (?, ?, ?)",
                    (area.id, plant.id, area.name),
                )
                counts["areas"] += 1
                for device in area.devices:
                    conn.execute(
                        "INSERT OR REPLACE INTO devices (id, area_id, name, power_kw) VALUES (?, ?, ?, ?)",
                        (device.id, area.id, device.name, device.power_kw),
                    )
                    counts["devices"] += 1
        conn.commit()
    return counts
