"""Data models for plants, consumption readings, tariffs and simulations."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from .errors import ValidationError


class ScopeKind(str, Enum):
    """The level of the plant hierarchy a query or simulation targets."""

    PLANT = "plant"
    AREA = "area"
    DEVICE = "device"


class ConsumptionSource(str, Enum):
    """Where a consumption reading came from."""

    MANUAL = "MANUAL"
    IOT = "IOT"
    MODBUS = "MODBUS"
    ETHERNET_IP = "ETHERNET_IP"
    PROFIBUS = "PROFIBUS"
    MQTT = "MQTT"
    OPC_UA = "OPC_UA"


class TariffFlag(str, Enum):
    """Colour-coded surcharge band of a supplier."""

    GREEN = "green"
    YELLOW = "yellow"
    RED_1 = "red1"
    RED_2 = "red2"


class SimulationType(str, Enum):
    CONSUMPTION_PROJECTION = "consumption_projection"
    COST_ESTIMATION = "cost_estimation"
    SCENARIO_COMPARISON = "scenario_comparison"
    COST_BENEFIT_ANALYSIS = "cost_benefit_analysis"
    WHAT_IF_ANALYSIS = "what_if_analysis"


@dataclass(frozen=True)
class Scope:
    """A plant, area or device, identified by kind and id."""

    kind: ScopeKind
    id: str

    def __post_init__(self):
        try:
            kind = ScopeKind(self.kind)
        except ValueError:
            raise ValidationError(f"Unknown scope kind: {self.kind!r}") from None
        object.__setattr__(self, "kind", kind)
        if not self.id:
            raise ValidationError(f"A {kind.value} scope needs an id")

    @classmethod
    def from_filters(
        cls,
        device_id: str | None = None,
        area_id: str | None = None,
        plant_id: str | None = None,
    ) -> "Scope":
        """Build a scope from the device/area/plant filter triple.

        Exactly one of the filters must be given.
        """
        given = [
            (kind, value)
            for kind, value in (
                (ScopeKind.DEVICE, device_id),
                (ScopeKind.AREA, area_id),
                (ScopeKind.PLANT, plant_id),
            )
            if value
        ]
        if not given:
            raise ValidationError("At least one of device_id, area_id or plant_id must be provided")
        if len(given) > 1:
            raise ValidationError("Cannot filter by more than one of device, area and plant")
        kind, value = given[0]
        return cls(kind, value)

    def __str__(self) -> str:
        return f"{self.kind.value}:{self.id}"


def wall_clock(value: datetime) -> datetime:
    """Drop any UTC offset, keeping the clock reading as written."""
    return value.replace(tzinfo=None)


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO 8601 timestamp (trailing Z or offset allowed) into naive wall-clock time."""
    return wall_clock(datetime.fromisoformat(value.strip().replace("Z", "+00:00")))


@dataclass(frozen=True)
class ConsumptionReading:
    """A single metered consumption reading.

    Consumption and timestamp are fixed once recorded; only the auxiliary
    electrical metrics and notes may change later.
    """

    device_id: str
    timestamp: datetime
    consumption_kwh: float
    source: ConsumptionSource = ConsumptionSource.MANUAL
    voltage: float | None = None
    current: float | None = None
    power_factor: float | None = None
    temperature: float | None = None
    notes: str | None = None
    id: int | None = None

    def __post_init__(self):
        object.__setattr__(self, "timestamp", wall_clock(self.timestamp))


@dataclass
class TariffProfile:
    """Tariff configuration of an energy supplier.

    peak_tariff, peak_start and peak_end are optional; a peak tariff of 0 is a
    configured value and not the same as no peak tariff.
    """

    supplier_id: str
    name: str
    base_tariff: float
    peak_tariff: float | None = None
    peak_start: str | None = None  # HH:MM
    peak_end: str | None = None  # HH:MM
    green_flag_value: float = 0.0
    yellow_flag_value: float = 0.0
    red_flag_1_value: float = 0.0
    red_flag_2_value: float = 0.0
    current_flag: str = TariffFlag.GREEN.value


@dataclass
class Simulation:
    """A stored consumption/cost forecast for a scope."""

    user_id: str
    name: str
    scope: Scope
    start_date: datetime
    end_date: datetime
    estimated_consumption: float
    estimated_cost: float
    tariff_used: float
    simulation_type: SimulationType = SimulationType.CONSUMPTION_PROJECTION
    description: str | None = None
    flag_used: str | None = None
    average_daily_usage: float | None = None
    real_consumption: float | None = None
    variance: float | None = None
    created_at: datetime = field(default_factory=datetime.now)
    id: int | None = None
