from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Sequence

from .models import TalentValue
from .simulation import IterationResult, SimulationSummary
from .sweep import SweepResult


def summarize_talents(talents: Mapping[str, TalentValue], tested: Optional[Sequence[str]] = None) -> str:
    """Comma separated list of enabled talents, ranks shown as ``"Name 2"``.

    With ``tested`` only those talents are listed, in that order.
    """
    names = list(tested) if tested is not None else list(talents)
    parts: List[str] = []
    for name in names:
        value = talents.get(name, False)
        if not value:
            continue
        parts.append(name if value is True or value == 1 else f"{name} {value}")
    return ", ".join(parts) if parts else "none"


def format_iteration_details(iteration: IterationResult) -> str:
    lines: List[str] = []
    lines.append(f"Damage: {iteration.damage}  Time: {iteration.elapsed:.2f}s  DPS: {iteration.dps:.2f}")
    lines.append(f"  ability damage: {iteration.ability_damage}  passive/proc damage: {iteration.passive_damage}")

    source_dps = iteration.source_dps()
    ordered = sorted(iteration.damage_by_source.items(), key=lambda item: item[1], reverse=True)
    for source, amount in ordered:
        casts = iteration.cast_counts.get(source)
        suffix = f"  casts: {casts}" if casts is not None else ""
        lines.append(f"  {source:<28}{amount:>10}  {source_dps.get(source, 0.0):>9.2f} dps{suffix}")
    return "\n".join(lines)


def iteration_to_dict(iteration: IterationResult, include_history: bool = False) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "damage": iteration.damage,
        "elapsed": iteration.elapsed,
        "dps": iteration.dps,
        "ability_damage": iteration.ability_damage,
        "passive_damage": iteration.passive_damage,
        "damage_by_source": dict(iteration.damage_by_source),
        "cast_counts": dict(iteration.cast_counts),
    }
    if include_history:
        payload["history"] = [
            {"time": entry.time, "source": entry.source, "amount": entry.amount, "kind": entry.kind}
            for entry in iteration.history
        ]
    return payload


def summary_to_dict(summary: SimulationSummary, include_history: bool = False) -> Dict[str, Any]:
    return {
        "iterations": summary.iterations,
        "mean_dps": summary.mean_dps,
        "best_dps": summary.best_dps,
        "median_dps": summary.median_dps,
        "worst_dps": summary.worst_dps,
        "source_dps": dict(summary.source_dps),
        "best": iteration_to_dict(summary.best, include_history=include_history),
        "median": iteration_to_dict(summary.median),
        "worst": iteration_to_dict(summary.worst),
    }


def sweep_result_to_dict(result: SweepResult, tested: Optional[Sequence[str]] = None) -> Dict[str, Any]:
    return {
        "targets": result.num_targets,
        "strategy": result.strategy_name,
        "talents": dict(result.talents),
        "talent_summary": summarize_talents(result.talents, tested),
        "mean_dps": result.mean_dps,
        "best_dps": result.summary.best_dps,
        "median_dps": result.summary.median_dps,
        "worst_dps": result.summary.worst_dps,
    }
