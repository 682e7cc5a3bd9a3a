from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Tuple

from .models import CombatProfile, Strategy, TalentValue
from .resolver import resolve_next_ability
from .state import CombatState, HistoryEntry, SimulationError

log = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class IterationResult:
    damage: int
    elapsed: float
    damage_by_source: Mapping[str, int]
    cast_counts: Mapping[str, int]
    history: Tuple[HistoryEntry, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "damage_by_source", MappingProxyType(dict(self.damage_by_source)))
        object.__setattr__(self, "cast_counts", MappingProxyType(dict(self.cast_counts)))

    def __reduce__(self):
        # mapping proxies do not pickle
        return (
            type(self),
            (self.damage, self.elapsed, dict(self.damage_by_source), dict(self.cast_counts), self.history),
        )

    @property
    def dps(self) -> float:
        if self.elapsed <= 0:
            return 0.0
        return self.damage / self.elapsed

    @property
    def ability_damage(self) -> int:
        return sum(entry.amount for entry in self.history if entry.kind == "ability")

    @property
    def passive_damage(self) -> int:
        return sum(entry.amount for entry in self.history if entry.kind != "ability")

    @property
    def cast_sequence(self) -> List[str]:
        return [entry.source for entry in self.history if entry.kind == "ability"]

    def source_dps(self) -> Dict[str, float]:
        if self.elapsed <= 0:
            return {source: 0.0 for source in self.damage_by_source}
        return {source: amount / self.elapsed for source, amount in self.damage_by_source.items()}

    @classmethod
    def from_state(cls, state: CombatState) -> "IterationResult":
        return cls(
            damage=state.total_damage,
            elapsed=state.time,
            damage_by_source=state.damage_by_source,
            cast_counts=state.cast_counts,
            history=tuple(state.history),
        )


def _validate_encounter(num_targets: int, duration: float) -> None:
    if num_targets < 1:
        raise ValueError("num_targets must be >= 1.")
    if duration <= 0:
        raise ValueError("duration must be > 0.")


def run_iteration(
    strategy: Strategy,
    talents: Mapping[str, TalentValue],
    num_targets: int,
    duration: float,
    rng: random.Random,
    profile: Optional[CombatProfile] = None,
) -> IterationResult:
    """Simulate one encounter; the last cast may overshoot ``duration``."""
    _validate_encounter(num_targets, duration)
    state = CombatState(talents=talents, profile=profile)
    stalled = 0
    while state.time < duration:
        ability = resolve_next_ability(strategy, state)
        started = state.time
        state.cast_ability(ability, num_targets, rng)
        stalled = stalled + 1 if state.time == started else 0
        if stalled > len(strategy.entries):
            raise SimulationError(
                f"Strategy '{strategy.name}' cast {stalled} abilities at t={state.time:.2f} without advancing time; "
                f"last was '{ability.name}' (gcd {ability.gcd}, cooldown {ability.cooldown})."
            )
    return IterationResult.from_state(state)


@dataclass(slots=True, frozen=True)
class SimulationSummary:
    iterations: int
    mean_dps: float
    best: IterationResult
    median: IterationResult
    worst: IterationResult
    source_dps: Dict[str, float] = field(default_factory=dict)

    @property
    def best_dps(self) -> float:
        return self.best.dps

    @property
    def median_dps(self) -> float:
        return self.median.dps

    @property
    def worst_dps(self) -> float:
        return self.worst.dps


class Simulation:
    """Runs many iterations of one strategy/talent/target-count combination."""

    def __init__(
        self,
        strategy: Strategy,
        talents: Mapping[str, TalentValue],
        num_targets: int,
        duration: float,
        iteration_count: int,
        profile: Optional[CombatProfile] = None,
    ):
        if iteration_count < 1:
            raise ValueError("iteration_count must be >= 1.")
        _validate_encounter(num_targets, duration)
        self.strategy = strategy
        self.talents = dict(talents)
        self.num_targets = num_targets
        self.duration = duration
        self.iteration_count = iteration_count
        self.profile = profile or CombatProfile()
        self.iterations: List[IterationResult] = []

    def run(self, rng: random.Random) -> List[IterationResult]:
        # One generator for the whole pass; it is not reseeded between iterations.
        new_iterations = [
            run_iteration(
                self.strategy,
                self.talents,
                self.num_targets,
                self.duration,
                rng,
                self.profile,
            )
            for _ in range(self.iteration_count)
        ]
        self.iterations.extend(new_iterations)
        log.debug(
            "strategy=%s targets=%d ran %d iterations",
            self.strategy.name,
            self.num_targets,
            len(new_iterations),
        )
        return new_iterations

    def _require_iterations(self) -> List[IterationResult]:
        if not self.iterations:
            raise RuntimeError("Simulation has not been run yet.")
        return self.iterations

    def best_iteration(self) -> IterationResult:
        return max(self._require_iterations(), key=lambda item: item.damage)

    def worst_iteration(self) -> IterationResult:
        return min(self._require_iterations(), key=lambda item: item.damage)

    def median_iteration(self) -> IterationResult:
        # Upper-middle element for even counts; not an interpolated median.
        ordered = sorted(self._require_iterations(), key=lambda item: item.damage)
        return ordered[len(ordered) // 2]

    def average_dps(self) -> float:
        iterations = self._require_iterations()
        return sum(item.dps for item in iterations) / len(iterations)

    def average_dps_of_best(self, n: int) -> float:
        iterations = self._require_iterations()
        if n < 1:
            raise ValueError("n must be >= 1.")
        best = sorted(iterations, key=lambda item: item.dps, reverse=True)[:n]
        return sum(item.dps for item in best) / len(best)

    def source_dps(self) -> Dict[str, float]:
        iterations = self._require_iterations()
        totals: Dict[str, float] = {}
        for iteration in iterations:
            for source, value in iteration.source_dps().items():
                totals[source] = totals.get(source, 0.0) + value / len(iterations)
        return totals

    def summary(self) -> SimulationSummary:
        return SimulationSummary(
            iterations=len(self._require_iterations()),
            mean_dps=self.average_dps(),
            best=self.best_iteration(),
            median=self.median_iteration(),
            worst=self.worst_iteration(),
            source_dps=self.source_dps(),
        )


def simulate(
    strategy: Strategy,
    talents: Mapping[str, TalentValue],
    num_targets: int,
    duration: float,
    iteration_count: int,
    seed: int,
    profile: Optional[CombatProfile] = None,
) -> SimulationSummary:
    simulation = Simulation(strategy, talents, num_targets, duration, iteration_count, profile)
    simulation.run(random.Random(seed))
    return simulation.summary()
