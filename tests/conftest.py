import pytest

from plantenergy.db import init_db
from plantenergy.models import TariffProfile
from plantenergy.sites import Area, Device, Plant, SiteConfig, save_site_to_db


@pytest.fixture
def supplier():
    return TariffProfile(
        supplier_id="sup",
        name="Test Supplier",
        base_tariff=0.9,
        peak_tariff=1.2,
        peak_start="18:00",
        peak_end="21:00",
        green_flag_value=0.1,
        yellow_flag_value=0.2,
        red_flag_1_value=0.3,
        red_flag_2_value=0.4,
        current_flag="green",
    )


@pytest.fixture
def db_path(tmp_path, supplier):
    """A database with two plants.

    p1 (supplied by 'sup'): a1 -> d1, d2; a2 -> d3
    p2 (no supplier):       a3 -> d4
    """
    path = tmp_path / "test.db"
    init_db(path)
    site = SiteConfig(
        suppliers=[supplier],
        plants=[
            Plant(
                id="p1",
                name="Plant 1",
                supplier_id="sup",
                areas=[
                    Area(id="a1", name="Area 1", devices=[Device("d1", "Device 1"), Device("d2", "Device 2")]),
                    Area(id="a2", name="Area 2", devices=[Device("d3", "Device 3", power_kw=50)]),
                ],
            ),
            Plant(
                id="p2",
                name="Plant 2",
                areas=[Area(id="a3", name="Area 3", devices=[Device("d4", "Device 4")])],
            ),
        ],
    )
    save_site_to_db(site, path)
    return path
