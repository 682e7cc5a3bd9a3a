from __future__ import annotations

import math
import random
from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, List, Literal, Mapping, Optional, Tuple

from .abilities import behavior_for, proc_hit_damage
from .models import (
    ATTENUATION,
    BONEDUST_BREW,
    FEROCITY_OF_XUEN,
    INVOKERS_DELIGHT,
    SECRET_INFUSION,
    SUMMON_WHITE_TIGER_STATUE,
    Ability,
    CombatProfile,
    TalentValue,
    talent_rank,
)

COOLDOWN_EPSILON = 0.01

INVOKERS_DELIGHT_HASTE = 0.33
SECRET_INFUSION_VERSATILITY = {1: 0.08, 2: 0.15}
FEROCITY_OF_XUEN_MULTIPLIER = 1.04
BONEDUST_BREW_MULTIPLIER = 1.25
ATTENUATION_MULTIPLIER = 1.2
WHITE_TIGER_AP_SCALING = 0.25
WHITE_TIGER_PULSE_INTERVAL = 2.0

WEAPON_SOURCE = "Weapon"
WHITE_TIGER_SOURCE = "White Tiger Statue"

EntryKind = Literal["ability", "passive", "proc"]


class SimulationError(RuntimeError):
    """Base class for engine invariant violations; a run that raises it is aborted."""


class AbilityOnCooldownError(SimulationError):
    """Raised when an ability is cast while its cooldown is still running."""


class TalentNotEnabledError(SimulationError):
    """Raised when an ability gated behind a talent is cast without it."""


def round_damage(value: float) -> int:
    return int(math.floor(value + 0.5))


@dataclass(slots=True, frozen=True)
class HistoryEntry:
    time: float
    source: str
    amount: int
    kind: EntryKind = "ability"


@dataclass(slots=True, frozen=True)
class CastResult:
    ability: Ability
    damage: int
    hits: int
    passive: Dict[str, int]
    duration: float


class CombatState:
    """Mutable state of one simulated encounter.

    Cooldown and buff timers are plain floats that tick down by the haste
    adjusted global cooldown of every cast; they are never clamped, only the
    epsilon-gated ``on_cooldown`` / ``buff_active`` predicates matter.
    """

    def __init__(
        self,
        talents: Optional[Mapping[str, TalentValue]] = None,
        profile: Optional[CombatProfile] = None,
    ):
        self.talents: Mapping[str, TalentValue] = MappingProxyType(dict(talents or {}))
        self.profile = profile or CombatProfile()
        self.stats = self.profile.stats

        self.time = 0.0
        self.cooldowns: Dict[str, float] = {}
        self.buffs: Dict[str, float] = {}
        self.counters: Dict[str, int] = {}
        self.flags: Dict[str, bool] = {}

        self.history: List[HistoryEntry] = []
        self.total_damage = 0
        self.damage_by_source: Dict[str, int] = {}
        self.cast_counts: Dict[str, int] = {}

    # -- timers -----------------------------------------------------------

    def cooldown_remaining(self, ability_name: str) -> float:
        return self.cooldowns.get(ability_name, 0.0)

    def buff_remaining(self, buff_name: str) -> float:
        return self.buffs.get(buff_name, 0.0)

    def on_cooldown(self, ability_name: str) -> bool:
        return self.cooldown_remaining(ability_name) > COOLDOWN_EPSILON

    def off_cooldown(self, ability_name: str) -> bool:
        return not self.on_cooldown(ability_name)

    def buff_active(self, buff_name: str) -> bool:
        return self.buff_remaining(buff_name) > COOLDOWN_EPSILON

    def buff_inactive(self, buff_name: str) -> bool:
        return not self.buff_active(buff_name)

    # -- talents, counters, flags ----------------------------------------

    def talent(self, name: str) -> TalentValue:
        return self.talents.get(name, False)

    def has_talent(self, name: str) -> bool:
        return bool(self.talents.get(name, False))

    def counter(self, name: str) -> int:
        return self.counters.get(name, 0)

    def flag(self, name: str) -> bool:
        return self.flags.get(name, False)

    # -- derived stats ----------------------------------------------------

    @property
    def haste(self) -> float:
        bonus = INVOKERS_DELIGHT_HASTE if self.buff_active(INVOKERS_DELIGHT) else 0.0
        return self.stats.haste + bonus

    @property
    def versatility(self) -> float:
        return self.stats.versatility + self._secret_infusion_increase()

    @property
    def critical_strike(self) -> float:
        return self.stats.critical_strike

    def _secret_infusion_increase(self) -> float:
        if self.buff_inactive(SECRET_INFUSION):
            return 0.0
        rank = talent_rank(self.talents, SECRET_INFUSION)
        return SECRET_INFUSION_VERSATILITY.get(min(rank, max(SECRET_INFUSION_VERSATILITY)), 0.0)

    def damage_multiplier(self) -> float:
        multiplier = (1.0 + self.versatility) * (1.0 + self.critical_strike)
        if self.has_talent(FEROCITY_OF_XUEN):
            multiplier *= FEROCITY_OF_XUEN_MULTIPLIER
        if self.buff_active(BONEDUST_BREW):
            multiplier *= BONEDUST_BREW_MULTIPLIER
            if self.has_talent(ATTENUATION):
                multiplier *= ATTENUATION_MULTIPLIER
        return multiplier

    def armor_factor(self, physical: bool) -> float:
        return self.profile.armor_multiplier if physical else 1.0

    def white_tiger_dps(self, num_targets: int) -> float:
        if self.buff_inactive(SUMMON_WHITE_TIGER_STATUE):
            return 0.0
        return WHITE_TIGER_AP_SCALING * self.stats.attack_power * num_targets / WHITE_TIGER_PULSE_INTERVAL

    @property
    def dps(self) -> float:
        if self.time <= 0:
            return 0.0
        return self.total_damage / self.time

    # -- state machine ----------------------------------------------------

    def cast_ability(self, ability: Ability, num_targets: int, rng: random.Random) -> CastResult:
        if self.on_cooldown(ability.name):
            raise AbilityOnCooldownError(
                f"Cannot cast '{ability.name}' at {self.time:.2f}s: "
                f"{self.cooldown_remaining(ability.name):.2f}s of cooldown left."
            )
        if ability.required_talent and not self.has_talent(ability.required_talent):
            raise TalentNotEnabledError(
                f"Cannot cast '{ability.name}' without talent '{ability.required_talent}'."
            )

        behavior = behavior_for(ability)
        self.cooldowns[ability.name] = ability.hasted_cooldown(self.haste)

        hits = behavior.hits(ability, self, num_targets)
        behavior.side_effects(ability, self, num_targets, rng)

        gcd = ability.gcd / (1.0 + self.haste)
        multiplier = self.damage_multiplier()

        passive_sources: List[Tuple[str, float]] = [
            (WEAPON_SOURCE, self.stats.weapon_dps * gcd * multiplier),
            (WHITE_TIGER_SOURCE, self.white_tiger_dps(num_targets) * gcd * multiplier),
        ]
        passive_sources = [(source, amount) for source, amount in passive_sources if amount > 0.0]

        proc_damage = self._roll_procs(len(hits) + len(passive_sources), rng)

        cast_damage = self._log(ability.name, sum(hits), "ability", always=True)
        self.cast_counts[ability.name] = self.cast_counts.get(ability.name, 0) + 1
        passive: Dict[str, int] = {}
        for source, amount in passive_sources:
            passive[source] = self._log(source, amount, "passive")
        for source, amount in proc_damage.items():
            passive[source] = self._log(source, amount, "proc")

        self._advance(gcd)
        return CastResult(ability=ability, damage=cast_damage, hits=len(hits), passive=passive, duration=gcd)

    def _roll_procs(self, events: int, rng: random.Random) -> Dict[str, float]:
        procs = [
            proc
            for proc in self.profile.procs
            if proc.required_talent is None or self.has_talent(proc.required_talent)
        ]
        damage: Dict[str, float] = {}
        if not procs:
            return damage
        for _ in range(events):
            for proc in procs:
                if rng.random() < proc.chance:
                    damage[proc.name] = damage.get(proc.name, 0.0) + proc_hit_damage(proc, self)
        return damage

    def _log(self, source: str, amount: float, kind: EntryKind, always: bool = False) -> int:
        rounded = round_damage(amount)
        if rounded == 0 and not always:
            return 0
        self.history.append(HistoryEntry(time=self.time, source=source, amount=rounded, kind=kind))
        self.total_damage += rounded
        self.damage_by_source[source] = self.damage_by_source.get(source, 0) + rounded
        return rounded

    def _advance(self, duration: float) -> None:
        for name in self.cooldowns:
            self.cooldowns[name] -= duration
        for name in self.buffs:
            self.buffs[name] -= duration
        self.time += duration

    # -- history views ----------------------------------------------------

    def entries(self, kind: EntryKind) -> List[HistoryEntry]:
        return [entry for entry in self.history if entry.kind == kind]

    @property
    def cast_sequence(self) -> List[str]:
        return [entry.source for entry in self.history if entry.kind == "ability"]
