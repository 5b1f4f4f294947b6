"""Tariff peak-time checks and cost calculation."""

import logging
from dataclasses import dataclass
from datetime import datetime, time
from pathlib import Path

from .errors import ValidationError
from .models import TariffFlag, TariffProfile
from .store import fetch_tariff_profile

logger = logging.getLogger(__name__)

# Flat multipliers for the monthly/annual estimate (not calendar aware)
DAYS_PER_MONTH = 30
DAYS_PER_YEAR = 365


@dataclass
class PeakTimeInfo:
    has_peak_time: bool
    peak_start: str | None
    peak_end: str | None
    is_peak_time: bool


@dataclass
class CostBreakdown:
    regular_consumption: float
    peak_consumption: float
    regular_cost: float
    peak_cost: float
    flag_cost: float


@dataclass
class TariffInfo:
    base_tariff: float
    peak_tariff: float | None
    current_flag: str
    flag_value: float


@dataclass
class CostCalculation:
    """Cost of a consumption quantity, with everything used to derive it."""

    consumption: float
    base_cost: float
    peak_cost: float
    flag_cost: float
    total_cost: float
    breakdown: CostBreakdown
    tariff_info: TariffInfo


@dataclass
class CostEstimate:
    daily_cost: float
    monthly_cost: float
    annual_cost: float


def parse_time(time_str: str) -> time:
    """Parse HH:MM string to time object."""
    parts = time_str.split(":")
    return time(int(parts[0]), int(parts[1]))


def minute_of_day(t: time | datetime) -> int:
    return t.hour * 60 + t.minute


def check_peak_time(profile: TariffProfile, timestamp: datetime | None = None) -> PeakTimeInfo:
    """Check whether a timestamp falls in the profile's peak window.

    The window is [peak_start, peak_end) on the wall clock of the timestamp;
    date and timezone are ignored. A window whose end is not after its start
    never matches.
    """
    if not profile.peak_start or not profile.peak_end:
        return PeakTimeInfo(has_peak_time=False, peak_start=None, peak_end=None, is_peak_time=False)

    timestamp = timestamp or datetime.now()
    start = minute_of_day(parse_time(profile.peak_start))
    end = minute_of_day(parse_time(profile.peak_end))
    current = minute_of_day(timestamp)

    return PeakTimeInfo(
        has_peak_time=True,
        peak_start=profile.peak_start,
        peak_end=profile.peak_end,
        is_peak_time=start <= current < end,
    )


def resolve_flag(flag: str) -> TariffFlag:
    """Map a stored flag name to a TariffFlag.

    Unrecognized names resolve to GREEN rather than failing.
    """
    try:
        return TariffFlag(flag)
    except ValueError:
        logger.warning("Unrecognized tariff flag %r, using green", flag)
        return TariffFlag.GREEN


def flag_surcharge(profile: TariffProfile, flag: TariffFlag) -> float:
    match flag:
        case TariffFlag.GREEN:
            return profile.green_flag_value
        case TariffFlag.YELLOW:
            return profile.yellow_flag_value
        case TariffFlag.RED_1:
            return profile.red_flag_1_value
        case TariffFlag.RED_2:
            return profile.red_flag_2_value


def get_flag_value(profile: TariffProfile) -> float:
    """Get the per-kWh surcharge of the profile's current flag."""
    return flag_surcharge(profile, resolve_flag(profile.current_flag))


def calculate_cost(
    profile: TariffProfile, regular_consumption: float, peak_consumption: float = 0.0
) -> CostCalculation:
    """Calculate the cost of regular and peak consumption under a tariff.

    Peak consumption is only charged when the profile has a peak tariff. The
    flag surcharge applies to regular and peak consumption alike.
    """
    if regular_consumption < 0 or peak_consumption < 0:
        raise ValidationError("Consumption cannot be negative")

    base_cost = regular_consumption * profile.base_tariff

    peak_cost = 0.0
    if profile.peak_tariff is not None:
        peak_cost = peak_consumption * profile.peak_tariff

    flag = resolve_flag(profile.current_flag)
    flag_value = flag_surcharge(profile, flag)
    total_consumption = regular_consumption + peak_consumption
    flag_cost = total_consumption * flag_value

    total_cost = base_cost + peak_cost + flag_cost

    return CostCalculation(
        consumption=total_consumption,
        base_cost=base_cost,
        peak_cost=peak_cost,
        flag_cost=flag_cost,
        total_cost=total_cost,
        breakdown=CostBreakdown(
            regular_consumption=regular_consumption,
            peak_consumption=peak_consumption,
            regular_cost=base_cost,
            peak_cost=peak_cost,
            flag_cost=flag_cost,
        ),
        tariff_info=TariffInfo(
            base_tariff=profile.base_tariff,
            peak_tariff=profile.peak_tariff,
            current_flag=flag.value,
            flag_value=flag_value,
        ),
    )


def estimate_costs(
    profile: TariffProfile, daily_consumption: float, daily_peak_consumption: float = 0.0
) -> CostEstimate:
    """Estimate monthly and annual cost from average daily consumption."""
    daily = calculate_cost(profile, daily_consumption, daily_peak_consumption)
    return CostEstimate(
        daily_cost=daily.total_cost,
        monthly_cost=daily.total_cost * DAYS_PER_MONTH,
        annual_cost=daily.total_cost * DAYS_PER_YEAR,
    )


def check_supplier_peak_time(
    supplier_id: str, timestamp: datetime | None = None, db_path: Path | None = None
) -> PeakTimeInfo:
    """Check peak time for a stored supplier."""
    return check_peak_time(fetch_tariff_profile(supplier_id, db_path), timestamp)


def calculate_supplier_cost(
    supplier_id: str,
    regular_consumption: float,
    peak_consumption: float = 0.0,
    db_path: Path | None = None,
) -> CostCalculation:
    """Calculate cost under a stored supplier's tariff."""
    return calculate_cost(fetch_tariff_profile(supplier_id, db_path), regular_consumption, peak_consumption)


def estimate_supplier_costs(
    supplier_id: str,
    daily_consumption: float,
    daily_peak_consumption: float = 0.0,
    db_path: Path | None = None,
) -> CostEstimate:
    """Estimate monthly/annual cost under a stored supplier's tariff."""
    return estimate_costs(fetch_tariff_profile(supplier_id, db_path), daily_consumption, daily_peak_consumption)
