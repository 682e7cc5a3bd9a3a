"""Per-kind damage and side-effect rules for castable abilities.

Every :class:`~mwsim.models.Ability` is an immutable catalog entry; the
behaviour attached to its ``kind`` supplies the two override points of the
cast: ``hits`` (the discrete damage instances produced) and
``side_effects`` (buffs, counters and cooldown changes applied after the
damage is computed).
"""

from __future__ import annotations

import math
import random
from typing import TYPE_CHECKING, Dict, List

from .models import (
    EMPOWERED_RSKS_COUNTER,
    FAELINE_STOMP,
    FAST_FEET,
    FIRST_TFT_EMPOWER_FLAG,
    FOCUSED_THUNDER,
    GIFT_OF_THE_CELESTIALS,
    INVOKERS_DELIGHT,
    BONEDUST_BREW,
    RISING_SUN_KICK,
    SECRET_INFUSION,
    SUMMON_WHITE_TIGER_STATUE,
    TEA_OF_PLENTY,
    TEACHINGS,
    TEACHINGS_COUNTER,
    THUNDER_FOCUS_TEA,
    Ability,
    AbilityKind,
    ProcEffect,
    ResetChanceMode,
    School,
)

if TYPE_CHECKING:
    from .state import CombatState

MAX_TEACHINGS = 3

FAELINE_TIGER_PALM_MULTIPLIER = 2.0
FAELINE_BLACKOUT_KICK_TARGETS = 3
RSK_RESET_CHANCE = 0.15
FAELINE_RSK_RESET_BONUS = 0.6

FAST_FEET_RSK_MULTIPLIER = 1.7
FAST_FEET_SCK_MULTIPLIER = 1.1
SCK_SOFT_CAP_TARGETS = 5

EMPOWERED_RSK_COOLDOWN_REFUND = 9.0
TFT_COOLDOWN_AFTER_EMPOWER = 30.0
SECRET_INFUSION_DURATION = 10.0
TEA_OF_PLENTY_ROLLS = 2

FAELINE_STOMP_DURATION = 30.0
GIFT_OF_THE_CELESTIALS_COOLDOWN = 60.0
INVOKERS_DELIGHT_DURATION = 20.0
INVOKERS_DELIGHT_GIFT_DURATION = 8.0
BONEDUST_BREW_DURATION = 10.0
WHITE_TIGER_STATUE_DURATION = 30.0


def base_hit_damage(ability: Ability, state: "CombatState") -> float:
    stats = state.stats
    damage = ability.ap_scaling * stats.attack_power + ability.sp_scaling * stats.spell_power
    damage += damage * ability.modifier
    return damage * state.armor_factor(ability.physical) * state.damage_multiplier()


def proc_hit_damage(proc: ProcEffect, state: "CombatState") -> float:
    stats = state.stats
    damage = proc.ap_scaling * stats.attack_power + proc.sp_scaling * stats.spell_power
    return damage * state.armor_factor(proc.school is School.PHYSICAL) * state.damage_multiplier()


class AbilityBehavior:
    """Generic rules: one hit per target up to the ability's cap, no side effects."""

    def max_targets(self, ability: Ability, state: "CombatState"):
        return ability.max_targets

    def hit_count(self, ability: Ability, state: "CombatState", num_targets: int) -> int:
        return ability.targets_hit(num_targets, self.max_targets(ability, state))

    def damage_scale(self, ability: Ability, state: "CombatState", num_targets: int) -> float:
        return 1.0

    def hits(self, ability: Ability, state: "CombatState", num_targets: int) -> List[float]:
        per_hit = base_hit_damage(ability, state) * self.damage_scale(ability, state, num_targets)
        if per_hit <= 0.0:
            return []
        return [per_hit] * self.hit_count(ability, state, num_targets)

    def side_effects(
        self,
        ability: Ability,
        state: "CombatState",
        num_targets: int,
        rng: random.Random,
    ) -> None:
        return None


class TigerPalm(AbilityBehavior):
    def damage_scale(self, ability, state, num_targets):
        return FAELINE_TIGER_PALM_MULTIPLIER if state.buff_active(FAELINE_STOMP) else 1.0

    def side_effects(self, ability, state, num_targets, rng):
        if not state.has_talent(TEACHINGS):
            return
        increase = 2 if state.buff_active(FAELINE_STOMP) else 1
        state.counters[TEACHINGS_COUNTER] = min(MAX_TEACHINGS, state.counter(TEACHINGS_COUNTER) + increase)


class BlackoutKick(AbilityBehavior):
    """Each stack of teachings adds one extra kick against every target hit."""

    def max_targets(self, ability, state):
        if state.buff_active(FAELINE_STOMP):
            return FAELINE_BLACKOUT_KICK_TARGETS
        return ability.max_targets

    def hit_count(self, ability, state, num_targets):
        targets = super().hit_count(ability, state, num_targets)
        return targets * (1 + state.counter(TEACHINGS_COUNTER))

    def reset_probability(self, ability: Ability, state: "CombatState", num_targets: int) -> float:
        chance = RSK_RESET_CHANCE
        if state.buff_active(FAELINE_STOMP):
            chance += FAELINE_RSK_RESET_BONUS
        chance = min(1.0, chance)
        hits = self.hit_count(ability, state, num_targets)
        if state.profile.rsk_reset_mode is ResetChanceMode.ANY_HIT:
            return 1.0 - (1.0 - chance) ** hits
        # legacy rule: 1 - p ** hits
        return 1.0 - chance**hits

    def side_effects(self, ability, state, num_targets, rng):
        if rng.random() < self.reset_probability(ability, state, num_targets):
            state.cooldowns[RISING_SUN_KICK] = 0.0
        state.counters[TEACHINGS_COUNTER] = 0


class RisingSunKick(AbilityBehavior):
    def damage_scale(self, ability, state, num_targets):
        return FAST_FEET_RSK_MULTIPLIER if state.has_talent(FAST_FEET) else 1.0

    def side_effects(self, ability, state, num_targets, rng):
        if state.counter(EMPOWERED_RSKS_COUNTER) <= 0:
            return
        state.cooldowns[ability.name] = state.cooldown_remaining(ability.name) - EMPOWERED_RSK_COOLDOWN_REFUND
        state.flags[FIRST_TFT_EMPOWER_FLAG] = False
        state.counters[EMPOWERED_RSKS_COUNTER] = state.counter(EMPOWERED_RSKS_COUNTER) - 1
        state.cooldowns[THUNDER_FOCUS_TEA] = TFT_COOLDOWN_AFTER_EMPOWER
        if state.has_talent(SECRET_INFUSION):
            state.buffs[SECRET_INFUSION] = SECRET_INFUSION_DURATION


class SpinningCraneKick(AbilityBehavior):
    def damage_scale(self, ability, state, num_targets):
        scale = FAST_FEET_SCK_MULTIPLIER if state.has_talent(FAST_FEET) else 1.0
        if num_targets > SCK_SOFT_CAP_TARGETS:
            scale *= math.sqrt(SCK_SOFT_CAP_TARGETS / num_targets)
        return scale


class FaelineStomp(AbilityBehavior):
    def side_effects(self, ability, state, num_targets, rng):
        state.buffs[FAELINE_STOMP] = FAELINE_STOMP_DURATION


class Invoke(AbilityBehavior):
    def side_effects(self, ability, state, num_targets, rng):
        gift = state.has_talent(GIFT_OF_THE_CELESTIALS)
        if gift:
            state.cooldowns[ability.name] = GIFT_OF_THE_CELESTIALS_COOLDOWN
        if not state.has_talent(INVOKERS_DELIGHT):
            return
        state.buffs[INVOKERS_DELIGHT] = INVOKERS_DELIGHT_GIFT_DURATION if gift else INVOKERS_DELIGHT_DURATION


class BonedustBrew(AbilityBehavior):
    def side_effects(self, ability, state, num_targets, rng):
        state.buffs[BONEDUST_BREW] = BONEDUST_BREW_DURATION


class WhiteTigerStatue(AbilityBehavior):
    def side_effects(self, ability, state, num_targets, rng):
        state.buffs[SUMMON_WHITE_TIGER_STATUE] = WHITE_TIGER_STATUE_DURATION


class ThunderFocusTea(AbilityBehavior):
    def side_effects(self, ability, state, num_targets, rng):
        state.flags[FIRST_TFT_EMPOWER_FLAG] = True
        empowered = state.counter(EMPOWERED_RSKS_COUNTER) + 1
        if state.has_talent(FOCUSED_THUNDER):
            empowered += 1
        if state.has_talent(TEA_OF_PLENTY):
            for _ in range(TEA_OF_PLENTY_ROLLS):
                if rng.random() < state.profile.tea_of_plenty_chance:
                    empowered += 1
        state.counters[EMPOWERED_RSKS_COUNTER] = empowered


BEHAVIORS: Dict[AbilityKind, AbilityBehavior] = {
    AbilityKind.GENERIC: AbilityBehavior(),
    AbilityKind.TIGER_PALM: TigerPalm(),
    AbilityKind.BLACKOUT_KICK: BlackoutKick(),
    AbilityKind.RISING_SUN_KICK: RisingSunKick(),
    AbilityKind.SPINNING_CRANE_KICK: SpinningCraneKick(),
    AbilityKind.FAELINE_STOMP: FaelineStomp(),
    AbilityKind.INVOKE: Invoke(),
    AbilityKind.BONEDUST_BREW: BonedustBrew(),
    AbilityKind.WHITE_TIGER_STATUE: WhiteTigerStatue(),
    AbilityKind.THUNDER_FOCUS_TEA: ThunderFocusTea(),
}


def behavior_for(ability: Ability) -> AbilityBehavior:
    try:
        return BEHAVIORS[ability.kind]
    except KeyError as exc:
        raise ValueError(f"No behaviour registered for ability kind '{ability.kind}'.") from exc
