"""Mistweaver monk DPS simulator package."""

from .config import ConfigError, default_config, load_config
from .formatting import format_iteration_details, summarize_talents
from .models import (
    Ability,
    AbilityKind,
    CharacterStats,
    CombatProfile,
    Condition,
    ConditionType,
    Config,
    ModelError,
    PriorityEntry,
    ProcEffect,
    ResetChanceMode,
    School,
    Strategy,
)
from .resolver import NoEligibleAbilityError, resolve_next_ability
from .simulation import IterationResult, Simulation, SimulationSummary, run_iteration, simulate
from .state import (
    AbilityOnCooldownError,
    CombatState,
    HistoryEntry,
    SimulationError,
    TalentNotEnabledError,
)
from .sweep import SweepResult, generate_talent_combos, run_sweep

__all__ = [
    "Ability",
    "AbilityKind",
    "AbilityOnCooldownError",
    "CharacterStats",
    "CombatProfile",
    "CombatState",
    "Condition",
    "ConditionType",
    "Config",
    "ConfigError",
    "HistoryEntry",
    "IterationResult",
    "ModelError",
    "NoEligibleAbilityError",
    "PriorityEntry",
    "ProcEffect",
    "ResetChanceMode",
    "School",
    "Simulation",
    "SimulationError",
    "SimulationSummary",
    "Strategy",
    "SweepResult",
    "TalentNotEnabledError",
    "default_config",
    "format_iteration_details",
    "generate_talent_combos",
    "load_config",
    "resolve_next_ability",
    "run_iteration",
    "run_sweep",
    "simulate",
    "summarize_talents",
]
