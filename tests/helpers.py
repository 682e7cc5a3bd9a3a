from __future__ import annotations

import random

from mwsim.models import CharacterStats, CombatProfile


def flat_profile(
    attack_power: float = 1000.0,
    spell_power: float = 0.0,
    weapon_dps: float = 0.0,
    haste: float = 0.0,
    armor_multiplier: float = 1.0,
    procs=(),
) -> CombatProfile:
    """Profile with no versatility/crit so damage numbers stay round."""
    return CombatProfile(
        stats=CharacterStats(
            attack_power=attack_power,
            spell_power=spell_power,
            weapon_dps=weapon_dps,
            versatility=0.0,
            haste=haste,
            critical_strike=0.0,
        ),
        armor_multiplier=armor_multiplier,
        procs=tuple(procs),
    )


class FixedRandom(random.Random):
    """Generator whose ``random()`` always returns the same value."""

    def __init__(self, value: float) -> None:
        super().__init__(0)
        self.value = value

    def random(self) -> float:
        return self.value
