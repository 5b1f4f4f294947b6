"""Automatic simulation drafts and variance against real consumption."""

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path

from ..errors import ValidationError
from ..models import (
    ConsumptionReading,
    Scope,
    ScopeKind,
    Simulation,
    SimulationType,
    TariffFlag,
    TariffProfile,
    wall_clock,
)
from ..store import (
    fetch_plant_tariff_profile,
    fetch_readings,
    fetch_simulation,
    require_scope,
    save_simulation,
    update_real_consumption,
)
from ..tariffs import calculate_cost
from .stats import aggregate

logger = logging.getLogger(__name__)

DEFAULT_TARIFF_KWH = 0.75
MIN_ADJUSTMENT_FACTOR = 0.1
MAX_ADJUSTMENT_FACTOR = 10.0


@dataclass
class SimulationCalculation:
    period_days: int
    historical_daily_average: float
    adjustment_factor: float
    base_consumption: float
    adjusted_consumption: float
    base_cost: float
    flag_cost: float
    total_cost: float


@dataclass
class SimulationDraft:
    """An unsaved simulation with the figures it was computed from."""

    name: str
    description: str
    simulation_type: SimulationType
    scope: Scope
    estimated_consumption: float
    estimated_cost: float
    start_date: datetime
    end_date: datetime
    average_daily_usage: float  # kWh per hour
    tariff_used: float
    flag_used: str
    calculation: SimulationCalculation

    def to_simulation(self, user_id: str) -> Simulation:
        return Simulation(
            user_id=user_id,
            name=self.name,
            description=self.description,
            simulation_type=self.simulation_type,
            scope=self.scope,
            start_date=self.start_date,
            end_date=self.end_date,
            estimated_consumption=self.estimated_consumption,
            estimated_cost=self.estimated_cost,
            average_daily_usage=self.average_daily_usage,
            tariff_used=self.tariff_used,
            flag_used=self.flag_used,
        )


def fallback_tariff() -> TariffProfile:
    """A fresh default-rate profile for scopes without a resolvable supplier tariff."""
    return TariffProfile(
        supplier_id="default",
        name="Default tariff",
        base_tariff=DEFAULT_TARIFF_KWH,
        current_flag=TariffFlag.GREEN.value,
    )


def calculate_variance(estimated: float, real: float) -> float:
    """Percentage deviation of real from estimated consumption (0 if estimated is 0)."""
    if estimated == 0:
        return 0.0
    return (real - estimated) / estimated * 100


def period_days(start: datetime, end: datetime) -> int:
    """Length of [start, end) in days, rounded up."""
    return math.ceil((end - start) / timedelta(days=1))


def lookback_window(start: datetime, end: datetime) -> tuple[datetime, datetime]:
    """The window of the same number of days immediately before start."""
    return start - timedelta(days=period_days(start, end)), start


def validate_request(start: datetime, end: datetime, adjustment_factor: float) -> None:
    if start >= end:
        raise ValidationError("Start date must be before end date")
    if not MIN_ADJUSTMENT_FACTOR <= adjustment_factor <= MAX_ADJUSTMENT_FACTOR:
        raise ValidationError(
            f"Adjustment factor must be between {MIN_ADJUSTMENT_FACTOR} and {MAX_ADJUSTMENT_FACTOR}"
        )


def build_simulation(
    scope: Scope,
    start: datetime,
    end: datetime,
    historical_readings: list[ConsumptionReading],
    tariff: TariffProfile | None = None,
    adjustment_factor: float = 1.0,
) -> SimulationDraft:
    """Build a simulation draft from the readings of the lookback window.

    Readings outside the lookback window are ignored. Without a tariff the
    fixed fallback rate and green flag are used.
    """
    start, end = wall_clock(start), wall_clock(end)
    validate_request(start, end, adjustment_factor)

    days = period_days(start, end)
    stats = aggregate(historical_readings, *lookback_window(start, end))

    historical_daily_average = stats.total / days
    base_consumption = historical_daily_average * days
    adjusted_consumption = base_consumption * adjustment_factor

    cost = calculate_cost(tariff or fallback_tariff(), adjusted_consumption)

    return SimulationDraft(
        name=f"Auto-calculated simulation ({scope.kind.value})",
        description=f"Based on {days} days of historical data with {adjustment_factor}x adjustment",
        simulation_type=SimulationType.CONSUMPTION_PROJECTION,
        scope=scope,
        estimated_consumption=adjusted_consumption,
        estimated_cost=cost.total_cost,
        start_date=start,
        end_date=end,
        average_daily_usage=historical_daily_average / 24,
        tariff_used=cost.tariff_info.base_tariff,
        flag_used=cost.tariff_info.current_flag,
        calculation=SimulationCalculation(
            period_days=days,
            historical_daily_average=historical_daily_average,
            adjustment_factor=adjustment_factor,
            base_consumption=base_consumption,
            adjusted_consumption=adjusted_consumption,
            base_cost=cost.base_cost,
            flag_cost=cost.flag_cost,
            total_cost=cost.total_cost,
        ),
    )


def auto_calculate_simulation(
    scope: Scope,
    start: datetime,
    end: datetime,
    adjustment_factor: float = 1.0,
    db_path: Path | None = None,
) -> SimulationDraft:
    """Build a simulation draft for a stored scope.

    Only plant scopes resolve their supplier's tariff; area and device scopes
    always use the fallback rate.
    """
    start, end = wall_clock(start), wall_clock(end)
    validate_request(start, end, adjustment_factor)
    require_scope(scope, db_path)

    history_start, history_end = lookback_window(start, end)
    readings = fetch_readings(scope, history_start, history_end, db_path)

    tariff = None
    if scope.kind == ScopeKind.PLANT:
        tariff = fetch_plant_tariff_profile(scope.id, db_path)
    if tariff is None:
        logger.info("No supplier tariff for %s, using default %.2f/kWh", scope, DEFAULT_TARIFF_KWH)

    return build_simulation(scope, start, end, readings, tariff, adjustment_factor)


def record_real_consumption(
    simulation_id: int, real_consumption: float, db_path: Path | None = None
) -> Simulation:
    """Store the real consumption of a simulation and recompute its variance."""
    if real_consumption < 0:
        raise ValidationError("Real consumption cannot be negative")

    simulation = fetch_simulation(simulation_id, db_path)
    variance = calculate_variance(simulation.estimated_consumption, real_consumption)
    update_real_consumption(simulation_id, real_consumption, variance, db_path)

    simulation.real_consumption = real_consumption
    simulation.variance = variance
    return simulation


def save_draft(draft: SimulationDraft, user_id: str, db_path: Path | None = None) -> int:
    """Save a simulation draft for a user. Returns the simulation id."""
    return save_simulation(draft.to_simulation(user_id), db_path)
