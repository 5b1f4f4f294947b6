import logging
from datetime import datetime

import pytest

from plantenergy.errors import NotFoundError, ValidationError
from plantenergy.models import TariffProfile
from plantenergy.tariffs import (
    calculate_cost,
    calculate_supplier_cost,
    check_peak_time,
    check_supplier_peak_time,
    estimate_costs,
    get_flag_value,
)


@pytest.fixture
def profile():
    return TariffProfile(
        supplier_id="cemig",
        name="CEMIG",
        base_tariff=0.75,
        peak_tariff=1.20,
        peak_start="18:00",
        peak_end="21:00",
        green_flag_value=0.0,
        yellow_flag_value=0.1,
        red_flag_1_value=0.2,
        red_flag_2_value=0.3,
        current_flag="yellow",
    )


class TestCheckPeakTime:
    def test_inside_window(self, profile):
        info = check_peak_time(profile, datetime(2026, 3, 2, 19, 30))
        assert info.has_peak_time
        assert info.is_peak_time
        assert info.peak_start == "18:00"
        assert info.peak_end == "21:00"

    def test_window_is_half_open(self, profile):
        assert check_peak_time(profile, datetime(2026, 3, 2, 18, 0)).is_peak_time
        assert check_peak_time(profile, datetime(2026, 3, 2, 20, 59)).is_peak_time
        assert not check_peak_time(profile, datetime(2026, 3, 2, 21, 0)).is_peak_time
        assert not check_peak_time(profile, datetime(2026, 3, 2, 17, 59)).is_peak_time

    def test_no_window(self, profile):
        profile.peak_end = None
        info = check_peak_time(profile, datetime(2026, 3, 2, 19, 0))
        assert not info.has_peak_time
        assert not info.is_peak_time
        assert info.peak_start is None

    def test_overnight_window_never_matches(self, profile):
        profile.peak_start = "22:00"
        profile.peak_end = "06:00"
        assert not check_peak_time(profile, datetime(2026, 3, 2, 23, 0)).is_peak_time
        assert not check_peak_time(profile, datetime(2026, 3, 2, 3, 0)).is_peak_time


class TestCalculateCost:
    def test_regular_peak_and_flag(self, profile):
        result = calculate_cost(profile, 100, 20)
        assert result.consumption == 120
        assert result.base_cost == pytest.approx(75.0)
        assert result.peak_cost == pytest.approx(24.0)
        assert result.flag_cost == pytest.approx(12.0)
        assert result.total_cost == pytest.approx(111.0)
        assert result.breakdown.regular_consumption == 100
        assert result.breakdown.peak_consumption == 20
        assert result.tariff_info.current_flag == "yellow"
        assert result.tariff_info.flag_value == 0.1

    def test_total_is_sum_of_parts(self, profile):
        result = calculate_cost(profile, 37.5, 4.25)
        assert result.total_cost == pytest.approx(result.base_cost + result.peak_cost + result.flag_cost)

    def test_peak_ignored_without_peak_tariff(self, profile):
        profile.peak_tariff = None
        result = calculate_cost(profile, 100, 20)
        assert result.peak_cost == 0
        assert result.tariff_info.peak_tariff is None
        # flag surcharge still covers the peak quantity
        assert result.flag_cost == pytest.approx(12.0)

    def test_zero_peak_tariff_is_configured(self, profile):
        profile.peak_tariff = 0.0
        result = calculate_cost(profile, 100, 20)
        assert result.peak_cost == 0
        assert result.tariff_info.peak_tariff == 0.0

    def test_unknown_flag_uses_green(self, profile, caplog):
        profile.current_flag = "purple"
        profile.green_flag_value = 0.05
        with caplog.at_level(logging.WARNING):
            result = calculate_cost(profile, 100)
        assert result.flag_cost == pytest.approx(5.0)
        assert result.tariff_info.current_flag == "green"
        assert "purple" in caplog.text

    @pytest.mark.parametrize(
        "flag,value",
        [("green", 0.0), ("yellow", 0.1), ("red1", 0.2), ("red2", 0.3)],
    )
    def test_flag_values(self, profile, flag, value):
        profile.current_flag = flag
        assert get_flag_value(profile) == value

    def test_negative_consumption(self, profile):
        with pytest.raises(ValidationError):
            calculate_cost(profile, -1)
        with pytest.raises(ValidationError):
            calculate_cost(profile, 10, -1)


def test_estimate_costs(profile):
    estimate = estimate_costs(profile, 100, 20)
    assert estimate.daily_cost == pytest.approx(111.0)
    assert estimate.monthly_cost == estimate.daily_cost * 30
    assert estimate.annual_cost == estimate.daily_cost * 365


def test_supplier_lookups(db_path):
    result = calculate_supplier_cost("sup", 100, db_path=db_path)
    assert result.base_cost == pytest.approx(90.0)
    assert result.flag_cost == pytest.approx(10.0)

    assert check_supplier_peak_time("sup", datetime(2026, 1, 1, 18, 30), db_path).is_peak_time

    with pytest.raises(NotFoundError, match="nope"):
        calculate_supplier_cost("nope", 100, db_path=db_path)
