from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, Optional, Tuple

# Talents
FEROCITY_OF_XUEN = "Ferocity of Xuen"
FAST_FEET = "Fast Feet"
TEACHINGS = "Teachings"
GIFT_OF_THE_CELESTIALS = "Gift of the Celestials"
INVOKERS_DELIGHT = "Invokers Delight"
SECRET_INFUSION = "Secret Infusion"
BONEDUST_BREW = "Bonedust Brew"
ATTENUATION = "Attenuation"
TEA_OF_PLENTY = "Tea of Plenty"
FOCUSED_THUNDER = "Focused Thunder"
SUMMON_WHITE_TIGER_STATUE = "Summon White Tiger Statue"

# Buffs sharing a name with the ability or talent that grants them
FAELINE_STOMP = "Faeline Stomp"

# Abilities referenced by other abilities' side effects
RISING_SUN_KICK = "Rising Sun Kick"
THUNDER_FOCUS_TEA = "Thunder Focus Tea"

# Counters and flags
TEACHINGS_COUNTER = "teachings"
EMPOWERED_RSKS_COUNTER = "empowered_rsks"
FIRST_TFT_EMPOWER_FLAG = "first_tft_empower_available"

TalentValue = bool | int


class ModelError(ValueError):
    """Raised for malformed ability, proc or strategy payloads."""


class School(str, Enum):
    PHYSICAL = "physical"
    NATURE = "nature"


class AbilityKind(str, Enum):
    GENERIC = "generic"
    TIGER_PALM = "tiger_palm"
    BLACKOUT_KICK = "blackout_kick"
    RISING_SUN_KICK = "rising_sun_kick"
    SPINNING_CRANE_KICK = "spinning_crane_kick"
    FAELINE_STOMP = "faeline_stomp"
    INVOKE = "invoke"
    BONEDUST_BREW = "bonedust_brew"
    WHITE_TIGER_STATUE = "white_tiger_statue"
    THUNDER_FOCUS_TEA = "thunder_focus_tea"


class ResetChanceMode(str, Enum):
    """How Blackout Kick turns its per-hit chance into one reset roll."""

    LEGACY = "legacy"
    ANY_HIT = "any_hit"


class ConditionType(str, Enum):
    BUFF_ACTIVE = "buff_active"
    BUFF_INACTIVE = "buff_inactive"
    COUNTER_AT_MOST = "counter_at_most"
    COUNTER_AT_LEAST = "counter_at_least"
    FLAG_SET = "flag_set"
    FLAG_UNSET = "flag_unset"
    TALENT_ENABLED = "talent_enabled"
    TALENT_DISABLED = "talent_disabled"
    OFF_COOLDOWN = "off_cooldown"
    ALL_OF = "all_of"
    ANY_OF = "any_of"
    NOT = "not"


_COMPOSITE_CONDITIONS = {ConditionType.ALL_OF, ConditionType.ANY_OF, ConditionType.NOT}


def _require(payload: Dict[str, Any], key: str) -> Any:
    if key not in payload:
        raise ModelError(f"Missing required field: {key}")
    return payload[key]


def _normalize_enum(enum_cls, value: Any, label: str):
    try:
        return enum_cls(str(value).lower().strip())
    except ValueError as exc:
        allowed = ", ".join(item.value for item in enum_cls)
        raise ModelError(f"Unsupported {label} '{value}'. Use one of: {allowed}.") from exc


def _normalize_max_targets(value: Any) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, str) and value.lower().strip() in {"unbounded", "inf", "infinity"}:
        return None
    try:
        max_targets = int(value)
    except (TypeError, ValueError) as exc:
        raise ModelError(f"Invalid max_targets '{value}'.") from exc
    if max_targets < 1:
        raise ModelError("max_targets must be >= 1 or unbounded.")
    return max_targets


def talent_rank(talents: Dict[str, TalentValue], name: str) -> int:
    """Rank of a talent: 0 when unset, 1 for ``True``, the integer otherwise."""
    value = talents.get(name, False)
    if value is True:
        return 1
    if not value:
        return 0
    return int(value)


@dataclass(slots=True, frozen=True)
class CharacterStats:
    attack_power: float = 6764.0
    spell_power: float = 6504.0
    weapon_dps: float = 1582.24
    versatility: float = 0.0998
    haste: float = 0.1182
    critical_strike: float = 0.1508

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "CharacterStats":
        defaults = cls()
        try:
            return cls(
                attack_power=float(payload.get("attack_power", defaults.attack_power)),
                spell_power=float(payload.get("spell_power", defaults.spell_power)),
                weapon_dps=float(payload.get("weapon_dps", defaults.weapon_dps)),
                versatility=float(payload.get("versatility", defaults.versatility)),
                haste=float(payload.get("haste", defaults.haste)),
                critical_strike=float(payload.get("critical_strike", defaults.critical_strike)),
            )
        except (TypeError, ValueError) as exc:
            raise ModelError(f"Invalid character stats: {exc}") from exc


@dataclass(slots=True, frozen=True)
class Ability:
    name: str
    kind: AbilityKind = AbilityKind.GENERIC
    ap_scaling: float = 0.0
    sp_scaling: float = 0.0
    modifier: float = 0.0
    cooldown: float = 0.0
    max_targets: Optional[int] = 1
    school: School = School.PHYSICAL
    haste_flagged: bool = False
    gcd: float = 1.5
    required_talent: Optional[str] = None

    @property
    def physical(self) -> bool:
        return self.school is School.PHYSICAL

    def targets_hit(self, num_targets: int, max_targets: Optional[int] = None) -> int:
        cap = self.max_targets if max_targets is None else max_targets
        if cap is None:
            return num_targets
        return min(num_targets, cap)

    def hasted_cooldown(self, haste: float) -> float:
        if self.haste_flagged:
            return self.cooldown / (1.0 + haste)
        return self.cooldown

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "Ability":
        name = str(_require(payload, "name")).strip()
        if not name:
            raise ModelError("Ability name cannot be empty.")
        try:
            ability = cls(
                name=name,
                kind=_normalize_enum(AbilityKind, payload.get("kind", AbilityKind.GENERIC.value), "ability kind"),
                ap_scaling=float(payload.get("ap_scaling", 0.0)),
                sp_scaling=float(payload.get("sp_scaling", 0.0)),
                modifier=float(payload.get("modifier", 0.0)),
                cooldown=float(payload.get("cooldown", 0.0)),
                max_targets=_normalize_max_targets(payload.get("max_targets", 1)),
                school=_normalize_enum(School, payload.get("school", School.PHYSICAL.value), "school"),
                haste_flagged=bool(payload.get("haste_flagged", False)),
                gcd=float(payload.get("gcd", 1.5)),
                required_talent=payload.get("required_talent") or None,
            )
        except (TypeError, ValueError) as exc:
            if isinstance(exc, ModelError):
                raise
            raise ModelError(f"Invalid ability definition for '{name}': {exc}") from exc
        if ability.cooldown < 0 or ability.gcd < 0:
            raise ModelError(f"Ability '{name}' must have non-negative cooldown and gcd.")
        if ability.cooldown == 0 and ability.gcd == 0:
            raise ModelError(f"Ability '{name}' needs a non-zero cooldown or gcd.")
        return ability


@dataclass(slots=True, frozen=True)
class ProcEffect:
    name: str
    chance: float
    ap_scaling: float = 0.0
    sp_scaling: float = 0.0
    school: School = School.NATURE
    required_talent: Optional[str] = None

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "ProcEffect":
        name = str(_require(payload, "name"))
        try:
            chance = float(_require(payload, "chance"))
            proc = cls(
                name=name,
                chance=chance,
                ap_scaling=float(payload.get("ap_scaling", 0.0)),
                sp_scaling=float(payload.get("sp_scaling", 0.0)),
                school=_normalize_enum(School, payload.get("school", School.NATURE.value), "school"),
                required_talent=payload.get("required_talent") or None,
            )
        except (TypeError, ValueError) as exc:
            if isinstance(exc, ModelError):
                raise
            raise ModelError(f"Invalid proc definition for '{name}': {exc}") from exc
        if not 0.0 <= proc.chance <= 1.0:
            raise ModelError(f"Proc '{name}' chance must be within [0, 1].")
        return proc


@dataclass(slots=True, frozen=True)
class Condition:
    """Eligibility predicate over combat state, kept as plain data."""

    type: ConditionType
    key: str = ""
    value: float = 0.0
    children: Tuple["Condition", ...] = tuple()

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "Condition":
        if not isinstance(payload, dict):
            raise ModelError(f"Condition must be a mapping, got {type(payload).__name__}.")
        condition_type = _normalize_enum(ConditionType, _require(payload, "type"), "condition type")
        if condition_type in _COMPOSITE_CONDITIONS:
            raw_children = payload.get("conditions")
            if raw_children is None and "condition" in payload:
                raw_children = [payload["condition"]]
            if not raw_children:
                raise ModelError(f"Condition '{condition_type.value}' needs nested conditions.")
            if not isinstance(raw_children, list):
                raise ModelError(f"Condition '{condition_type.value}' expects a list of nested conditions.")
            children = tuple(cls.from_dict(item) for item in raw_children)
            if condition_type is ConditionType.NOT and len(children) != 1:
                raise ModelError("Condition 'not' takes exactly one nested condition.")
            return cls(type=condition_type, children=children)

        key = str(_require(payload, "key")).strip()
        try:
            value = float(payload.get("value", 0.0))
        except (TypeError, ValueError) as exc:
            raise ModelError(f"Invalid condition value: {exc}") from exc
        return cls(type=condition_type, key=key, value=value)

    def to_dict(self) -> Dict[str, Any]:
        if self.type in _COMPOSITE_CONDITIONS:
            return {"type": self.type.value, "conditions": [child.to_dict() for child in self.children]}
        payload: Dict[str, Any] = {"type": self.type.value, "key": self.key}
        if self.type in {ConditionType.COUNTER_AT_MOST, ConditionType.COUNTER_AT_LEAST}:
            payload["value"] = self.value
        return payload


@dataclass(slots=True, frozen=True)
class PriorityEntry:
    ability: Ability
    condition: Optional[Condition] = None


@dataclass(slots=True, frozen=True)
class Strategy:
    name: str
    entries: Tuple[PriorityEntry, ...]

    @classmethod
    def from_dict(cls, payload: Dict[str, Any], abilities: Dict[str, Ability]) -> "Strategy":
        if not isinstance(payload, dict):
            raise ModelError(f"Strategy must be a mapping, got {type(payload).__name__}.")
        name = str(_require(payload, "name")).strip()
        raw_entries = payload.get("priority", [])
        if not raw_entries:
            raise ModelError(f"Strategy '{name}' must define a non-empty 'priority' list.")

        entries = []
        for raw in raw_entries:
            if isinstance(raw, str):
                raw = {"ability": raw}
            if not isinstance(raw, dict):
                raise ModelError(f"Strategy '{name}' has a priority entry that is not a name or mapping: {raw!r}")
            ability_name = str(_require(raw, "ability"))
            ability = abilities.get(ability_name)
            if ability is None:
                raise ModelError(f"Strategy '{name}' references unknown ability '{ability_name}'.")
            condition_payload = raw.get("condition")
            condition = Condition.from_dict(condition_payload) if condition_payload else None
            entries.append(PriorityEntry(ability=ability, condition=condition))
        return cls(name=name, entries=tuple(entries))

    def to_dict(self) -> Dict[str, Any]:
        priority = []
        for entry in self.entries:
            item: Dict[str, Any] = {"ability": entry.ability.name}
            if entry.condition is not None:
                item["condition"] = entry.condition.to_dict()
            priority.append(item)
        return {"name": self.name, "priority": priority}


@dataclass(slots=True, frozen=True)
class TalentAlias:
    """Pseudo-talent used in sweeps to select a higher rank of a real talent."""

    name: str
    talent: str
    rank: int

    @classmethod
    def from_dict(cls, name: str, payload: Dict[str, Any]) -> "TalentAlias":
        try:
            return cls(name=name, talent=str(_require(payload, "talent")), rank=int(_require(payload, "rank")))
        except (TypeError, ValueError) as exc:
            if isinstance(exc, ModelError):
                raise
            raise ModelError(f"Invalid talent alias '{name}': {exc}") from exc


def ensure_unique_names(items: Iterable[str], label: str) -> None:
    seen: set[str] = set()
    for item in items:
        if item in seen:
            raise ModelError(f"Duplicate {label} name: {item}")
        seen.add(item)


@dataclass(slots=True, frozen=True)
class CombatProfile:
    """Character-wide inputs shared by every iteration of a simulation."""

    stats: CharacterStats = field(default_factory=CharacterStats)
    armor_multiplier: float = 0.735
    procs: Tuple[ProcEffect, ...] = tuple()
    rsk_reset_mode: ResetChanceMode = ResetChanceMode.LEGACY
    tea_of_plenty_chance: float = 1.0


@dataclass(slots=True)
class Config:
    profile: CombatProfile
    abilities: Dict[str, Ability]
    strategies: Dict[str, Strategy]
    default_talents: Dict[str, TalentValue] = field(default_factory=dict)
    talents_to_test: Tuple[str, ...] = tuple()
    combo_size: int = 0
    requires: Dict[str, Tuple[str, ...]] = field(default_factory=dict)
    aliases: Dict[str, TalentAlias] = field(default_factory=dict)
    target_strategies: Dict[int, Tuple[str, ...]] = field(default_factory=dict)
    duration: float = 120.0
    iterations: int = 100

    def strategies_for(self, num_targets: int) -> Tuple[Strategy, ...]:
        names = self.target_strategies.get(num_targets)
        if names is None:
            return tuple(self.strategies.values())
        return tuple(self.strategies[name] for name in names)
