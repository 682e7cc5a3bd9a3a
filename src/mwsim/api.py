from __future__ import annotations

import logging
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from .config import Config, ConfigError, default_config, load_config
from .formatting import summary_to_dict, sweep_result_to_dict
from .models import ModelError, Strategy
from .simulation import simulate as run_simulation
from .state import SimulationError
from .sweep import run_sweep

log = logging.getLogger(__name__)

app = FastAPI(
    title="Mistweaver Simulator API",
    description="Monte Carlo DPS simulation of Mistweaver monk rotations and talent sweeps.",
    version="1.0.0",
)


class StrategyInput(BaseModel):
    name: str = "custom"
    priority: List[Union[str, Dict[str, Any]]] = Field(..., min_length=1)


class SimulateRequest(BaseModel):
    config: Optional[str] = Field(default=None, description="Path to JSON/YAML config; bundled tables when omitted.")
    strategy: Union[str, StrategyInput] = Field(..., description="Strategy name from config or an inline priority list.")
    talents: Dict[str, Union[bool, int]] = Field(default_factory=dict, description="Overrides on top of the default talents.")
    num_targets: int = Field(default=1, ge=1)
    duration: Optional[float] = Field(default=None, gt=0)
    iterations: Optional[int] = Field(default=None, ge=1, le=100000)
    seed: int = 42
    include_history: bool = False


class SweepRequest(BaseModel):
    config: Optional[str] = None
    targets: List[int] = Field(default_factory=list)
    strategies: List[str] = Field(default_factory=list)
    duration: Optional[float] = Field(default=None, gt=0)
    iterations: Optional[int] = Field(default=None, ge=1, le=100000)
    seed: int = 42
    top: int = Field(default=5, ge=1)


def _load_config(path_str: Optional[str]) -> Config:
    path = Path(path_str).expanduser() if path_str else None
    if path is not None and not path.exists():
        raise HTTPException(status_code=404, detail=f"Config not found: {path}")
    try:
        return load_config(path) if path is not None else default_config()
    except ConfigError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


def _resolve_strategy(config: Config, payload: Union[str, StrategyInput]) -> Strategy:
    if isinstance(payload, str):
        strategy = config.strategies.get(payload)
        if strategy is None:
            raise HTTPException(status_code=400, detail=f"Strategy '{payload}' not found.")
        return strategy
    try:
        return Strategy.from_dict(payload.model_dump(), config.abilities)
    except ModelError as exc:
        raise HTTPException(status_code=400, detail=f"Invalid strategy: {exc}") from exc


@app.get("/health")
def health() -> Dict[str, str]:
    return {"status": "ok"}


@app.get("/api/v1/catalog")
def catalog(config: Optional[str] = None) -> Dict[str, Any]:
    cfg = _load_config(config)
    return {
        "stats": asdict(cfg.profile.stats),
        "armor_multiplier": cfg.profile.armor_multiplier,
        "mechanics": {
            "rsk_reset_mode": cfg.profile.rsk_reset_mode.value,
            "tea_of_plenty_chance": cfg.profile.tea_of_plenty_chance,
        },
        "abilities": [
            {
                "name": ability.name,
                "kind": ability.kind.value,
                "cooldown": ability.cooldown,
                "gcd": ability.gcd,
                "max_targets": ability.max_targets,
                "school": ability.school.value,
                "required_talent": ability.required_talent,
            }
            for ability in cfg.abilities.values()
        ],
        "procs": [{"name": proc.name, "chance": proc.chance} for proc in cfg.profile.procs],
        "strategies": [strategy.to_dict() for strategy in cfg.strategies.values()],
        "default_talents": dict(cfg.default_talents),
        "talents_to_test": list(cfg.talents_to_test),
        "target_strategies": {str(key): list(value) for key, value in cfg.target_strategies.items()},
    }


@app.post("/api/v1/simulate")
def simulate(payload: SimulateRequest) -> Dict[str, Any]:
    cfg = _load_config(payload.config)
    strategy = _resolve_strategy(cfg, payload.strategy)
    talents = dict(cfg.default_talents)
    talents.update(payload.talents)

    try:
        summary = run_simulation(
            strategy,
            talents,
            num_targets=payload.num_targets,
            duration=payload.duration or cfg.duration,
            iteration_count=payload.iterations or cfg.iterations,
            seed=payload.seed,
            profile=cfg.profile,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except SimulationError as exc:
        log.warning("simulation of '%s' failed: %s", strategy.name, exc)
        raise HTTPException(status_code=500, detail=str(exc)) from exc

    result = summary_to_dict(summary, include_history=payload.include_history)
    result.update({"strategy": strategy.name, "num_targets": payload.num_targets, "seed": payload.seed})
    return result


@app.post("/api/v1/sweep")
def sweep(payload: SweepRequest) -> Dict[str, Any]:
    cfg = _load_config(payload.config)
    targets = list(dict.fromkeys(payload.targets)) or sorted(cfg.target_strategies) or [1]
    if any(count < 1 for count in targets):
        raise HTTPException(status_code=400, detail="Target counts must be >= 1.")

    try:
        ranked = run_sweep(
            cfg,
            targets,
            seed=payload.seed,
            duration=payload.duration,
            iterations=payload.iterations,
            strategy_names=payload.strategies or None,
            top_n=payload.top,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except SimulationError as exc:
        log.warning("sweep failed: %s", exc)
        raise HTTPException(status_code=500, detail=str(exc)) from exc

    return {
        "seed": payload.seed,
        "results": {
            str(num_targets): [sweep_result_to_dict(result, cfg.talents_to_test) for result in results]
            for num_targets, results in ranked.items()
        },
    }
