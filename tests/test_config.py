from __future__ import annotations

import json
import tempfile
import unittest
from pathlib import Path

from mwsim.config import ConfigError, default_config, load_config, parse_config
from mwsim.models import AbilityKind, ConditionType, ResetChanceMode, School


def _minimal_payload() -> dict:
    return {
        "abilities": [
            {"name": "Jab", "ap_scaling": 0.5},
            {"name": "Kick", "kind": "blackout_kick", "ap_scaling": 0.8, "cooldown": 3, "haste_flagged": True},
        ],
        "strategies": [
            {"name": "Basic", "priority": ["Kick", "Jab"]},
        ],
    }


class ConfigLoadingTests(unittest.TestCase):
    def test_default_config_tables(self) -> None:
        config = default_config()

        self.assertEqual(len(config.abilities), 11)
        self.assertEqual(set(config.strategies), {"ST", "STI", "MT", "MTI"})
        self.assertEqual(config.combo_size, 4)
        self.assertEqual(len(config.talents_to_test), 7)
        self.assertEqual(config.target_strategies[3], ("ST", "STI"))
        self.assertEqual(config.duration, 120.0)
        self.assertEqual(config.iterations, 100)
        self.assertEqual(config.aliases["Secret Infusion 2"].rank, 2)
        self.assertEqual(config.requires["Attenuation"], ("Bonedust Brew",))
        self.assertAlmostEqual(config.profile.armor_multiplier, 0.735)
        self.assertAlmostEqual(config.profile.stats.haste, 0.1182)
        self.assertIs(config.profile.rsk_reset_mode, ResetChanceMode.LEGACY)
        self.assertEqual(config.profile.tea_of_plenty_chance, 1.0)

        sck = config.abilities["Spinning Crane Kick"]
        self.assertIsNone(sck.max_targets)
        self.assertIs(sck.kind, AbilityKind.SPINNING_CRANE_KICK)
        self.assertIs(config.abilities["Zen Pulse"].school, School.NATURE)

        rsk_entry = config.strategies["STI"].entries[5]
        self.assertEqual(rsk_entry.ability.name, "Rising Sun Kick")
        self.assertIs(rsk_entry.condition.type, ConditionType.ALL_OF)
        self.assertEqual(len(rsk_entry.condition.children), 2)

    def test_strategies_for_unmapped_target_count(self) -> None:
        config = default_config()
        self.assertEqual([strategy.name for strategy in config.strategies_for(4)], ["MTI"])
        self.assertEqual(len(config.strategies_for(9)), 4)

    def test_strategy_round_trips_through_dict(self) -> None:
        config = default_config()
        abilities = [{"name": name} for name in config.abilities]
        for strategy in config.strategies.values():
            payload = strategy.to_dict()
            reloaded = parse_config({"abilities": abilities, "strategies": [payload]})
            self.assertEqual(reloaded.strategies[strategy.name].to_dict(), payload)

    def test_load_json_file(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "config.json"
            path.write_text(json.dumps(_minimal_payload()), encoding="utf-8")
            config = load_config(path)

        self.assertEqual(list(config.abilities), ["Jab", "Kick"])
        self.assertEqual(config.talents_to_test, ())
        self.assertEqual(config.combo_size, 0)
        self.assertEqual(config.profile.procs, ())
        self.assertIs(config.profile.rsk_reset_mode, ResetChanceMode.LEGACY)

    def test_mechanics_block(self) -> None:
        payload = _minimal_payload()
        payload["mechanics"] = {"rsk_reset_mode": "ANY_HIT", "tea_of_plenty_chance": 0.5}
        config = parse_config(payload)

        self.assertIs(config.profile.rsk_reset_mode, ResetChanceMode.ANY_HIT)
        self.assertEqual(config.profile.tea_of_plenty_chance, 0.5)

    def test_load_yaml_file(self) -> None:
        try:
            import yaml  # noqa: F401
        except ImportError:
            self.skipTest("PyYAML is not installed")

        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "config.yaml"
            path.write_text(
                "abilities:\n"
                "  - name: Jab\n"
                "    ap_scaling: 0.5\n"
                "strategies:\n"
                "  - name: Basic\n"
                "    priority: [Jab]\n"
                "sweep:\n"
                "  duration: 30\n",
                encoding="utf-8",
            )
            config = load_config(path)

        self.assertEqual(config.duration, 30.0)
        self.assertIn("Basic", config.strategies)


class ConfigValidationTests(unittest.TestCase):
    def _assert_invalid(self, payload: dict) -> None:
        with self.assertRaises(ConfigError):
            parse_config(payload)

    def test_missing_and_unsupported_files(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            with self.assertRaises(ConfigError):
                load_config(Path(tmp) / "missing.json")

            toml_path = Path(tmp) / "config.toml"
            toml_path.write_text("x = 1", encoding="utf-8")
            with self.assertRaises(ConfigError):
                load_config(toml_path)

            broken = Path(tmp) / "broken.json"
            broken.write_text("{", encoding="utf-8")
            with self.assertRaises(ConfigError):
                load_config(broken)

    def test_unknown_ability_in_strategy(self) -> None:
        payload = _minimal_payload()
        payload["strategies"] = [{"name": "Bad", "priority": ["Jab", "Missing"]}]
        self._assert_invalid(payload)

    def test_duplicate_ability_names(self) -> None:
        payload = _minimal_payload()
        payload["abilities"].append({"name": "Jab"})
        self._assert_invalid(payload)

    def test_empty_strategy(self) -> None:
        payload = _minimal_payload()
        payload["strategies"] = [{"name": "Empty", "priority": []}]
        self._assert_invalid(payload)

    def test_unknown_condition_type(self) -> None:
        payload = _minimal_payload()
        payload["strategies"] = [
            {"name": "Odd", "priority": [{"ability": "Jab", "condition": {"type": "moon_phase", "key": "x"}}]}
        ]
        self._assert_invalid(payload)

    def test_invalid_ability_fields(self) -> None:
        for ability in (
            {"name": "Jab", "kind": "teleport"},
            {"name": "Jab", "cooldown": -1},
            {"name": "Jab", "max_targets": 0},
            {"name": "Jab", "school": "fire"},
            {"ap_scaling": 1.0},
        ):
            payload = _minimal_payload()
            payload["abilities"] = [ability]
            payload["strategies"] = []
            with self.subTest(ability=ability):
                self._assert_invalid(payload)

    def test_ability_needs_cooldown_or_gcd(self) -> None:
        payload = _minimal_payload()
        payload["abilities"][0]["gcd"] = 0
        self._assert_invalid(payload)

        payload["abilities"][0]["cooldown"] = 30
        config = parse_config(payload)
        self.assertEqual(config.abilities["Jab"].gcd, 0.0)

    def test_non_mapping_priority_entries_and_conditions(self) -> None:
        for priority in (
            [123],
            [{"ability": "Jab", "condition": 1}],
            [{"ability": "Jab", "condition": {"type": "all_of", "conditions": [1]}}],
            [{"ability": "Jab", "condition": {"type": "not", "conditions": "buff_active"}}],
        ):
            payload = _minimal_payload()
            payload["strategies"] = [{"name": "Odd", "priority": priority}]
            with self.subTest(priority=priority):
                self._assert_invalid(payload)

    def test_non_mapping_definitions(self) -> None:
        for key, value in (("strategies", ["Basic"]), ("abilities", ["Jab"]), ("procs", [0.1])):
            payload = _minimal_payload()
            payload[key] = value
            with self.subTest(key=key):
                self._assert_invalid(payload)

    def test_invalid_mechanics(self) -> None:
        for mechanics in (
            {"rsk_reset_mode": "sometimes"},
            {"tea_of_plenty_chance": 1.5},
            {"tea_of_plenty_chance": "often"},
            ["legacy"],
        ):
            payload = _minimal_payload()
            payload["mechanics"] = mechanics
            with self.subTest(mechanics=mechanics):
                self._assert_invalid(payload)

    def test_invalid_proc_chance(self) -> None:
        payload = _minimal_payload()
        payload["procs"] = [{"name": "Fists", "chance": 1.5}]
        self._assert_invalid(payload)

    def test_invalid_talent_value(self) -> None:
        payload = _minimal_payload()
        payload["default_talents"] = {"Teachings": "yes"}
        self._assert_invalid(payload)

    def test_target_strategies_must_reference_known_strategies(self) -> None:
        payload = _minimal_payload()
        payload["sweep"] = {"target_strategies": {"1": ["Nope"]}}
        self._assert_invalid(payload)

        payload["sweep"] = {"target_strategies": {"0": ["Basic"]}}
        self._assert_invalid(payload)

    def test_root_must_be_mapping(self) -> None:
        self._assert_invalid([])  # type: ignore[arg-type]


if __name__ == "__main__":
    unittest.main()
