from __future__ import annotations

import random
import unittest

from mwsim.models import (
    BONEDUST_BREW,
    FEROCITY_OF_XUEN,
    INVOKERS_DELIGHT,
    SECRET_INFUSION,
    SUMMON_WHITE_TIGER_STATUE,
    Ability,
    ProcEffect,
    School,
)
from mwsim.state import (
    AbilityOnCooldownError,
    CombatState,
    TalentNotEnabledError,
    WEAPON_SOURCE,
    round_damage,
)

from helpers import FixedRandom, flat_profile


class CombatStateTimingTests(unittest.TestCase):
    def test_time_advances_by_hasted_gcd(self) -> None:
        state = CombatState(profile=flat_profile(haste=0.25))
        result = state.cast_ability(Ability("Strike", ap_scaling=0.5), 1, random.Random(1))

        self.assertAlmostEqual(result.duration, 1.2)
        self.assertAlmostEqual(state.time, 1.2)

    def test_haste_flagged_cooldown_is_reduced_then_ticks_down(self) -> None:
        state = CombatState(profile=flat_profile(haste=0.25))
        ability = Ability("Kick", ap_scaling=0.5, cooldown=3.0, haste_flagged=True)
        state.cast_ability(ability, 1, random.Random(1))

        # 3 / 1.25 = 2.4, minus the 1.2 s global cooldown
        self.assertAlmostEqual(state.cooldown_remaining("Kick"), 1.2)

    def test_zero_gcd_cast_does_not_advance_time(self) -> None:
        state = CombatState(profile=flat_profile())
        state.cast_ability(Ability("Tea", cooldown=30.0, gcd=0.0), 1, random.Random(1))

        self.assertEqual(state.time, 0.0)
        self.assertTrue(state.on_cooldown("Tea"))

    def test_cooldown_epsilon(self) -> None:
        state = CombatState(profile=flat_profile())
        state.cooldowns["Kick"] = 0.005
        self.assertTrue(state.off_cooldown("Kick"))
        state.cooldowns["Kick"] = 0.02
        self.assertTrue(state.on_cooldown("Kick"))

        state.buffs["Buff"] = 0.01
        self.assertFalse(state.buff_active("Buff"))
        state.buffs["Buff"] = 0.011
        self.assertTrue(state.buff_active("Buff"))

    def test_timers_are_not_clamped_at_zero(self) -> None:
        state = CombatState(profile=flat_profile())
        state.cast_ability(Ability("Strike", cooldown=1.0, gcd=1.0), 1, random.Random(1))
        state.cast_ability(Ability("Filler", gcd=1.0), 1, random.Random(1))

        self.assertAlmostEqual(state.cooldown_remaining("Strike"), -1.0)
        self.assertTrue(state.off_cooldown("Strike"))


class CombatStateFaultTests(unittest.TestCase):
    def test_casting_on_cooldown_raises(self) -> None:
        state = CombatState(profile=flat_profile())
        ability = Ability("Kick", cooldown=10.0)
        state.cast_ability(ability, 1, random.Random(1))

        with self.assertRaises(AbilityOnCooldownError):
            state.cast_ability(ability, 1, random.Random(1))

    def test_casting_without_required_talent_raises(self) -> None:
        state = CombatState(profile=flat_profile())
        ability = Ability("Brew", cooldown=60.0, required_talent=BONEDUST_BREW)

        with self.assertRaises(TalentNotEnabledError):
            state.cast_ability(ability, 1, random.Random(1))
        self.assertEqual(state.history, [])
        self.assertEqual(state.time, 0.0)


class CombatStateDamageTests(unittest.TestCase):
    def test_damage_is_rounded_half_up_and_total_matches_history(self) -> None:
        state = CombatState(profile=flat_profile(attack_power=1.0))
        ability = Ability("Tap", ap_scaling=0.5)
        for _ in range(3):
            state.cast_ability(ability, 1, random.Random(1))

        self.assertEqual([entry.amount for entry in state.history], [1, 1, 1])
        self.assertEqual(state.total_damage, sum(entry.amount for entry in state.history))
        self.assertEqual(round_damage(2.5), 3)
        self.assertEqual(round_damage(2.49), 2)

    def test_zero_damage_cast_is_still_recorded(self) -> None:
        state = CombatState(profile=flat_profile())
        state.cast_ability(Ability("Buff Only"), 1, random.Random(1))

        self.assertEqual(state.cast_sequence, ["Buff Only"])
        self.assertEqual(state.history[0].amount, 0)
        self.assertEqual(state.cast_counts["Buff Only"], 1)

    def test_unbounded_ability_hits_every_target(self) -> None:
        ability = Ability("Spin", ap_scaling=0.1, max_targets=None)

        single = CombatState(profile=flat_profile()).cast_ability(ability, 1, random.Random(1))
        many = CombatState(profile=flat_profile()).cast_ability(ability, 7, random.Random(1))

        self.assertEqual(single.hits, 1)
        self.assertEqual(many.hits, 7)
        self.assertEqual(many.damage, 700)

    def test_armor_applies_to_physical_only(self) -> None:
        profile = flat_profile(armor_multiplier=0.5)
        physical = CombatState(profile=profile).cast_ability(Ability("Punch", ap_scaling=1.0), 1, random.Random(1))
        nature = CombatState(profile=profile).cast_ability(
            Ability("Bolt", ap_scaling=1.0, school=School.NATURE), 1, random.Random(1)
        )

        self.assertEqual(physical.damage, 500)
        self.assertEqual(nature.damage, 1000)

    def test_weapon_damage_scales_with_gcd(self) -> None:
        state = CombatState(profile=flat_profile(weapon_dps=100.0))
        result = state.cast_ability(Ability("Strike", gcd=1.0), 1, random.Random(1))

        self.assertEqual(result.passive, {WEAPON_SOURCE: 100})
        self.assertEqual(state.damage_by_source[WEAPON_SOURCE], 100)
        self.assertEqual([entry.kind for entry in state.history], ["ability", "passive"])

    def test_procs_roll_once_per_damage_event(self) -> None:
        proc = ProcEffect(name="Fists", chance=1.0, ap_scaling=0.1)
        state = CombatState(profile=flat_profile(weapon_dps=10.0, procs=[proc]))
        ability = Ability("Cleave", ap_scaling=0.1, max_targets=2, gcd=1.0)

        result = state.cast_ability(ability, 2, FixedRandom(0.0))

        # two ability hits plus the weapon swing
        self.assertEqual(result.passive["Fists"], 300)

    def test_talent_gated_proc_is_ignored_without_talent(self) -> None:
        proc = ProcEffect(name="Fists", chance=1.0, ap_scaling=0.1, required_talent="Resonant Fists")
        state = CombatState(profile=flat_profile(procs=[proc]))
        state.cast_ability(Ability("Strike", ap_scaling=0.1), 1, FixedRandom(0.0))

        self.assertNotIn("Fists", state.damage_by_source)


class DerivedStatsTests(unittest.TestCase):
    def test_secret_infusion_versatility_by_rank(self) -> None:
        rank_two = CombatState(talents={SECRET_INFUSION: 2}, profile=flat_profile())
        rank_two.buffs[SECRET_INFUSION] = 5.0
        rank_one = CombatState(talents={SECRET_INFUSION: True}, profile=flat_profile())
        rank_one.buffs[SECRET_INFUSION] = 5.0
        expired = CombatState(talents={SECRET_INFUSION: 2}, profile=flat_profile())

        self.assertAlmostEqual(rank_two.versatility, 0.15)
        self.assertAlmostEqual(rank_one.versatility, 0.08)
        self.assertAlmostEqual(expired.versatility, 0.0)

    def test_damage_multiplier_stacks_talents_and_buffs(self) -> None:
        state = CombatState(talents={FEROCITY_OF_XUEN: True, "Attenuation": True}, profile=flat_profile())
        self.assertAlmostEqual(state.damage_multiplier(), 1.04)

        state.buffs[BONEDUST_BREW] = 10.0
        self.assertAlmostEqual(state.damage_multiplier(), 1.04 * 1.25 * 1.2)

    def test_invokers_delight_adds_haste(self) -> None:
        state = CombatState(profile=flat_profile(haste=0.1))
        state.buffs[INVOKERS_DELIGHT] = 8.0
        self.assertAlmostEqual(state.haste, 0.43)

    def test_white_tiger_statue_damage_per_second(self) -> None:
        state = CombatState(profile=flat_profile())
        self.assertEqual(state.white_tiger_dps(3), 0.0)

        state.buffs[SUMMON_WHITE_TIGER_STATUE] = 30.0
        self.assertAlmostEqual(state.white_tiger_dps(3), 375.0)


if __name__ == "__main__":
    unittest.main()
