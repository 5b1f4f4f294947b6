"""Accuracy of past simulations against recorded real consumption."""

from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path

from ..models import ScopeKind, Simulation
from ..store import fetch_simulations

RECENT_SIMULATIONS = 5


@dataclass
class ScopeAccuracy:
    scope: ScopeKind
    average_variance: float
    count: int


@dataclass
class AccuracyAnalysis:
    total_simulations: int
    simulations_with_real: int
    average_variance: float
    accuracy_percentage: float
    most_accurate: Simulation | None
    least_accurate: Simulation | None
    by_scope: list[ScopeAccuracy] = field(default_factory=list)


@dataclass
class SimulationStatistics:
    total: int
    by_type: dict[str, int]
    by_scope: dict[str, int]
    total_estimated_cost: float
    average_variance: float | None
    recent: list[Simulation]


def _abs_variance(simulation: Simulation) -> float:
    return abs(simulation.variance or 0)


def _mean_abs_variance(simulations: list[Simulation]) -> float:
    if not simulations:
        return 0.0
    return sum(_abs_variance(s) for s in simulations) / len(simulations)


def analyze_accuracy(simulations: list[Simulation]) -> AccuracyAnalysis:
    """Summarize how close simulations with real consumption came to it.

    Accuracy is 100 minus the mean absolute variance, floored at 0. The most
    accurate simulation is the first with the smallest absolute variance and
    the least accurate the last with the largest, in the given order.
    """
    with_real = [s for s in simulations if s.real_consumption is not None]

    if not with_real:
        return AccuracyAnalysis(
            total_simulations=len(simulations),
            simulations_with_real=0,
            average_variance=0.0,
            accuracy_percentage=0.0,
            most_accurate=None,
            least_accurate=None,
        )

    average_variance = _mean_abs_variance(with_real)
    ranked = sorted(with_real, key=_abs_variance)

    return AccuracyAnalysis(
        total_simulations=len(simulations),
        simulations_with_real=len(with_real),
        average_variance=average_variance,
        accuracy_percentage=max(0.0, 100 - average_variance),
        most_accurate=ranked[0],
        least_accurate=ranked[-1],
        by_scope=[
            ScopeAccuracy(
                scope=kind,
                average_variance=_mean_abs_variance([s for s in with_real if s.scope.kind == kind]),
                count=sum(1 for s in with_real if s.scope.kind == kind),
            )
            for kind in ScopeKind
        ],
    )


def get_accuracy_analysis(user_id: str, db_path: Path | None = None) -> AccuracyAnalysis:
    """Accuracy analysis over all simulations of a user."""
    return analyze_accuracy(fetch_simulations(user_id, db_path))


def simulation_statistics(simulations: list[Simulation]) -> SimulationStatistics:
    """Counts, total cost and mean signed variance of a set of simulations."""
    variances = [s.variance for s in simulations if s.variance is not None]
    recent = sorted(simulations, key=lambda s: s.created_at, reverse=True)[:RECENT_SIMULATIONS]
    return SimulationStatistics(
        total=len(simulations),
        by_type=dict(Counter(s.simulation_type.value for s in simulations)),
        by_scope=dict(Counter(s.scope.kind.value for s in simulations)),
        total_estimated_cost=sum(s.estimated_cost for s in simulations),
        average_variance=sum(variances) / len(variances) if variances else None,
        recent=recent,
    )


def get_simulation_statistics(user_id: str, db_path: Path | None = None) -> SimulationStatistics:
    return simulation_statistics(fetch_simulations(user_id, db_path))
