from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Tuple

from .models import (
    Ability,
    CharacterStats,
    CombatProfile,
    Config,
    ModelError,
    ProcEffect,
    ResetChanceMode,
    Strategy,
    TalentAlias,
    TalentValue,
    ensure_unique_names,
)

log = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent / "data" / "mistweaver.json"


class ConfigError(RuntimeError):
    """Raised when configuration file is invalid."""


def _read_raw(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")

    suffix = path.suffix.lower()
    text = path.read_text(encoding="utf-8")

    if suffix == ".json":
        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            raise ConfigError(f"Invalid JSON in {path}: {exc}") from exc

    if suffix in {".yaml", ".yml"}:
        try:
            import yaml  # type: ignore
        except ImportError as exc:  # pragma: no cover - optional dependency
            raise ConfigError(
                "YAML config requested, but PyYAML is not installed. "
                "Install `pyyaml` or use JSON."
            ) from exc
        return yaml.safe_load(text)

    raise ConfigError(f"Unsupported config format '{suffix}'. Use .json or .yaml/.yml.")


def _load_abilities(payload: Iterable[Dict[str, Any]]) -> Dict[str, Ability]:
    abilities: List[Ability] = []
    for raw in payload:
        if not isinstance(raw, dict):
            raise ConfigError(f"Ability definition must be an object, got {raw!r}.")
        try:
            abilities.append(Ability.from_dict(raw))
        except ModelError as exc:
            name = raw.get("name", "<unknown>")
            raise ConfigError(f"Invalid ability definition '{name}': {exc}") from exc
    try:
        ensure_unique_names((ability.name for ability in abilities), "ability")
    except ModelError as exc:
        raise ConfigError(str(exc)) from exc
    return {ability.name: ability for ability in abilities}


def _load_procs(payload: Iterable[Dict[str, Any]]) -> Tuple[ProcEffect, ...]:
    procs: List[ProcEffect] = []
    for raw in payload:
        if not isinstance(raw, dict):
            raise ConfigError(f"Proc definition must be an object, got {raw!r}.")
        try:
            procs.append(ProcEffect.from_dict(raw))
        except ModelError as exc:
            name = raw.get("name", "<unknown>")
            raise ConfigError(f"Invalid proc definition '{name}': {exc}") from exc
    return tuple(procs)


def _load_strategies(
    payload: Iterable[Dict[str, Any]],
    abilities: Dict[str, Ability],
) -> Dict[str, Strategy]:
    strategies: List[Strategy] = []
    for raw in payload:
        try:
            strategies.append(Strategy.from_dict(raw, abilities))
        except ModelError as exc:
            name = raw.get("name", "<unknown>") if isinstance(raw, dict) else "<unknown>"
            raise ConfigError(f"Invalid strategy '{name}': {exc}") from exc
    try:
        ensure_unique_names((strategy.name for strategy in strategies), "strategy")
    except ModelError as exc:
        raise ConfigError(str(exc)) from exc
    return {strategy.name: strategy for strategy in strategies}


def _load_talents(payload: Dict[str, Any]) -> Dict[str, TalentValue]:
    talents: Dict[str, TalentValue] = {}
    for name, value in payload.items():
        if isinstance(value, bool):
            talents[str(name)] = value
        elif isinstance(value, int) and value >= 0:
            talents[str(name)] = value
        else:
            raise ConfigError(f"Talent '{name}' must be a boolean or a non-negative integer rank.")
    return talents


def _load_aliases(payload: Dict[str, Any]) -> Dict[str, TalentAlias]:
    aliases: Dict[str, TalentAlias] = {}
    for name, raw in payload.items():
        try:
            aliases[str(name)] = TalentAlias.from_dict(str(name), raw)
        except ModelError as exc:
            raise ConfigError(str(exc)) from exc
    return aliases


def _load_requires(payload: Dict[str, Any]) -> Dict[str, Tuple[str, ...]]:
    requires: Dict[str, Tuple[str, ...]] = {}
    for name, prerequisites in payload.items():
        if isinstance(prerequisites, str):
            prerequisites = [prerequisites]
        requires[str(name)] = tuple(str(item) for item in prerequisites)
    return requires


def _load_mechanics(payload: Any) -> Tuple[ResetChanceMode, float]:
    if not isinstance(payload, dict):
        raise ConfigError("Field 'mechanics' must be an object.")
    raw_mode = payload.get("rsk_reset_mode", ResetChanceMode.LEGACY.value)
    try:
        mode = ResetChanceMode(str(raw_mode).lower().strip())
    except ValueError as exc:
        allowed = ", ".join(item.value for item in ResetChanceMode)
        raise ConfigError(f"Unsupported rsk_reset_mode '{raw_mode}'. Use one of: {allowed}.") from exc
    try:
        chance = float(payload.get("tea_of_plenty_chance", 1.0))
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid tea_of_plenty_chance: {exc}") from exc
    if not 0.0 <= chance <= 1.0:
        raise ConfigError("Field 'tea_of_plenty_chance' must be within [0, 1].")
    return mode, chance


def _load_target_strategies(
    payload: Dict[str, Any],
    strategies: Dict[str, Strategy],
) -> Dict[int, Tuple[str, ...]]:
    result: Dict[int, Tuple[str, ...]] = {}
    for raw_targets, names in payload.items():
        try:
            num_targets = int(raw_targets)
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"Target count '{raw_targets}' must be an integer.") from exc
        if num_targets < 1:
            raise ConfigError(f"Target count '{raw_targets}' must be >= 1.")
        for name in names:
            if name not in strategies:
                raise ConfigError(f"Target count {num_targets} references unknown strategy '{name}'.")
        result[num_targets] = tuple(str(name) for name in names)
    return result


def parse_config(payload: Dict[str, Any]) -> Config:
    if not isinstance(payload, dict):
        raise ConfigError("Config root must be an object (JSON/YAML mapping).")

    try:
        stats = CharacterStats.from_dict(payload.get("stats", {}))
        armor_multiplier = float(payload.get("armor_multiplier", 0.735))
    except (ModelError, TypeError, ValueError) as exc:
        raise ConfigError(str(exc)) from exc

    rsk_reset_mode, tea_of_plenty_chance = _load_mechanics(payload.get("mechanics", {}))

    abilities = _load_abilities(payload.get("abilities", []))
    if not abilities:
        raise ConfigError("Config must contain at least one ability definition.")

    strategies = _load_strategies(payload.get("strategies", []), abilities)
    if not strategies:
        raise ConfigError("Config must contain at least one strategy.")

    sweep = payload.get("sweep", {})
    talents_to_test = tuple(str(name) for name in sweep.get("talents_to_test", []))
    try:
        combo_size = int(sweep.get("combo_size", len(talents_to_test)))
        duration = float(sweep.get("duration", 120.0))
        iterations = int(sweep.get("iterations", 100))
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid sweep settings: {exc}") from exc
    if combo_size < 0:
        raise ConfigError("Field 'combo_size' must be >= 0.")
    if duration <= 0 or iterations < 1:
        raise ConfigError("Sweep 'duration' must be > 0 and 'iterations' >= 1.")

    config = Config(
        profile=CombatProfile(
            stats=stats,
            armor_multiplier=armor_multiplier,
            procs=_load_procs(payload.get("procs", [])),
            rsk_reset_mode=rsk_reset_mode,
            tea_of_plenty_chance=tea_of_plenty_chance,
        ),
        abilities=abilities,
        strategies=strategies,
        default_talents=_load_talents(payload.get("default_talents", {})),
        talents_to_test=talents_to_test,
        combo_size=combo_size,
        requires=_load_requires(sweep.get("requires", {})),
        aliases=_load_aliases(sweep.get("aliases", {})),
        target_strategies=_load_target_strategies(sweep.get("target_strategies", {}), strategies),
        duration=duration,
        iterations=iterations,
    )
    log.info(
        "loaded %d abilities, %d strategies, %d procs",
        len(config.abilities),
        len(config.strategies),
        len(config.profile.procs),
    )
    return config


def load_config(path: Path | str) -> Config:
    path = Path(path)
    return parse_config(_read_raw(path))


def default_config() -> Config:
    return load_config(DEFAULT_CONFIG_PATH)
