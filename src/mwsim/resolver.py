from __future__ import annotations

from typing import Optional

from .models import Ability, Condition, ConditionType, PriorityEntry, Strategy
from .state import CombatState, SimulationError


class NoEligibleAbilityError(SimulationError):
    """Raised when no entry of a strategy can be cast; the strategy lacks a fallback."""


def evaluate_condition(condition: Optional[Condition], state: CombatState) -> bool:
    if condition is None:
        return True

    kind = condition.type
    if kind is ConditionType.BUFF_ACTIVE:
        return state.buff_active(condition.key)
    if kind is ConditionType.BUFF_INACTIVE:
        return state.buff_inactive(condition.key)
    if kind is ConditionType.COUNTER_AT_MOST:
        return state.counter(condition.key) <= condition.value
    if kind is ConditionType.COUNTER_AT_LEAST:
        return state.counter(condition.key) >= condition.value
    if kind is ConditionType.FLAG_SET:
        return state.flag(condition.key)
    if kind is ConditionType.FLAG_UNSET:
        return not state.flag(condition.key)
    if kind is ConditionType.TALENT_ENABLED:
        return state.has_talent(condition.key)
    if kind is ConditionType.TALENT_DISABLED:
        return not state.has_talent(condition.key)
    if kind is ConditionType.OFF_COOLDOWN:
        return state.off_cooldown(condition.key)
    if kind is ConditionType.ALL_OF:
        return all(evaluate_condition(child, state) for child in condition.children)
    if kind is ConditionType.ANY_OF:
        return any(evaluate_condition(child, state) for child in condition.children)
    if kind is ConditionType.NOT:
        return not evaluate_condition(condition.children[0], state)
    raise ValueError(f"Unsupported condition type: {kind}")


def is_eligible(entry: PriorityEntry, state: CombatState) -> bool:
    ability = entry.ability
    if state.on_cooldown(ability.name):
        return False
    if ability.required_talent and not state.has_talent(ability.required_talent):
        return False
    return evaluate_condition(entry.condition, state)


def resolve_next_ability(strategy: Strategy, state: CombatState) -> Ability:
    """Return the first castable ability of the priority list; never mutates state."""
    for entry in strategy.entries:
        if is_eligible(entry, state):
            return entry.ability
    raise NoEligibleAbilityError(
        f"Strategy '{strategy.name}' has no eligible ability at {state.time:.2f}s."
    )
