from __future__ import annotations

import logging
import multiprocessing as mp
import random
from dataclasses import dataclass
from itertools import combinations
from typing import Callable, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple

from .models import CombatProfile, Config, Strategy, TalentAlias, TalentValue
from .simulation import Simulation, SimulationSummary

log = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


def _apply_combo(combo: Sequence[str], aliases: Mapping[str, TalentAlias]) -> Dict[str, TalentValue]:
    selected: Dict[str, TalentValue] = {name: True for name in combo if name not in aliases}

    ranked = {alias.talent for alias in aliases.values()}
    for name in ranked:
        if selected.get(name) is True:
            selected[name] = 1

    for name in combo:
        alias = aliases.get(name)
        if alias is None:
            continue
        current = selected.get(alias.talent, 0)
        current_rank = 1 if current is True else int(current or 0)
        selected[alias.talent] = max(current_rank, alias.rank)
    return selected


def _prerequisites_met(combo: Sequence[str], requires: Mapping[str, Sequence[str]]) -> bool:
    chosen = set(combo)
    for name in combo:
        for prerequisite in requires.get(name, ()):
            if prerequisite not in chosen:
                return False
    return True


def generate_talent_combos(
    talents_to_test: Sequence[str],
    combo_size: int,
    requires: Optional[Mapping[str, Sequence[str]]] = None,
    aliases: Optional[Mapping[str, TalentAlias]] = None,
) -> List[Dict[str, TalentValue]]:
    """All unique talent selections of ``combo_size`` entries that satisfy ``requires``.

    Alias entries (e.g. a rank-2 pseudo talent) are folded into the real
    talent's rank. When nothing survives the filters a single empty
    selection is returned so the defaults are still simulated.
    """
    requires = requires or {}
    aliases = aliases or {}

    seen: set[Tuple[Tuple[str, TalentValue], ...]] = set()
    result: List[Dict[str, TalentValue]] = []
    if 0 < combo_size <= len(talents_to_test):
        for combo in combinations(talents_to_test, combo_size):
            if not _prerequisites_met(combo, requires):
                continue
            selected = _apply_combo(combo, aliases)
            key = tuple(sorted(selected.items(), key=lambda item: item[0]))
            if key in seen:
                continue
            seen.add(key)
            result.append(selected)

    if not result:
        result.append({})
    return result


@dataclass(slots=True, frozen=True)
class SweepJob:
    num_targets: int
    strategy: Strategy
    talents: Dict[str, TalentValue]
    duration: float
    iterations: int
    seed: int
    profile: CombatProfile


@dataclass(slots=True, frozen=True)
class SweepResult:
    num_targets: int
    strategy_name: str
    talents: Dict[str, TalentValue]
    summary: SimulationSummary

    @property
    def mean_dps(self) -> float:
        return self.summary.mean_dps


def _run_job(job: SweepJob) -> SweepResult:
    simulation = Simulation(
        strategy=job.strategy,
        talents=job.talents,
        num_targets=job.num_targets,
        duration=job.duration,
        iteration_count=job.iterations,
        profile=job.profile,
    )
    # Every combination restarts the generator from the same seed.
    simulation.run(random.Random(job.seed))
    return SweepResult(
        num_targets=job.num_targets,
        strategy_name=job.strategy.name,
        talents=dict(job.talents),
        summary=simulation.summary(),
    )


def build_jobs(
    config: Config,
    target_counts: Iterable[int],
    seed: int,
    duration: Optional[float] = None,
    iterations: Optional[int] = None,
    strategy_names: Optional[Sequence[str]] = None,
) -> List[SweepJob]:
    if strategy_names:
        unknown = [name for name in strategy_names if name not in config.strategies]
        if unknown:
            raise ValueError(f"Unknown strategies: {', '.join(unknown)}")

    combos = generate_talent_combos(
        config.talents_to_test,
        config.combo_size,
        requires=config.requires,
        aliases=config.aliases,
    )

    jobs: List[SweepJob] = []
    for num_targets in target_counts:
        strategies = config.strategies_for(num_targets)
        if strategy_names:
            strategies = tuple(config.strategies[name] for name in strategy_names)
        for strategy in strategies:
            for combo in combos:
                talents = dict(config.default_talents)
                talents.update(combo)
                jobs.append(
                    SweepJob(
                        num_targets=num_targets,
                        strategy=strategy,
                        talents=talents,
                        duration=config.duration if duration is None else duration,
                        iterations=config.iterations if iterations is None else iterations,
                        seed=seed,
                        profile=config.profile,
                    )
                )
    return jobs


def _execute(jobs: Sequence[SweepJob], workers: int) -> Iterator[SweepResult]:
    if workers <= 1 or len(jobs) <= 1:
        for job in jobs:
            yield _run_job(job)
        return

    with mp.Pool(min(workers, len(jobs))) as pool:
        yield from pool.imap(_run_job, jobs)


def run_sweep(
    config: Config,
    target_counts: Iterable[int],
    seed: int,
    duration: Optional[float] = None,
    iterations: Optional[int] = None,
    strategy_names: Optional[Sequence[str]] = None,
    workers: int = 1,
    top_n: Optional[int] = None,
    progress_callback: ProgressCallback | None = None,
) -> Dict[int, List[SweepResult]]:
    """Simulate every (target count, strategy, talent combination) and rank by mean DPS."""
    target_counts = list(dict.fromkeys(target_counts))
    jobs = build_jobs(config, target_counts, seed, duration, iterations, strategy_names)
    log.info("sweep: %d simulations across %d target counts, seed=%d", len(jobs), len(target_counts), seed)

    ranked: Dict[int, List[SweepResult]] = {num_targets: [] for num_targets in target_counts}
    for completed, result in enumerate(_execute(jobs, workers), start=1):
        ranked[result.num_targets].append(result)
        if progress_callback is not None:
            progress_callback(completed, len(jobs))

    for num_targets, results in ranked.items():
        results.sort(key=lambda entry: entry.mean_dps, reverse=True)
        if results:
            log.info(
                "targets=%d best=%s %.0f dps",
                num_targets,
                results[0].strategy_name,
                results[0].mean_dps,
            )
        if top_n is not None:
            del results[top_n:]
    return ranked
