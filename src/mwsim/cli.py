from __future__ import annotations

import argparse
import json
import logging
import random
import sys
from pathlib import Path
from typing import Dict, List, Sequence

from .config import ConfigError, default_config, load_config
from .formatting import format_iteration_details, summarize_talents, sweep_result_to_dict
from .logging_setup import setup_logging
from .state import SimulationError
from .sweep import SweepResult, run_sweep

log = logging.getLogger(__name__)


def parse_targets(value: str) -> List[int]:
    """Parse ``"1-5"``, ``"3"`` or ``"1,3,5"`` (ranges allowed inside lists)."""
    targets: List[int] = []
    for part in value.split(","):
        part = part.strip()
        if not part:
            continue
        try:
            if "-" in part:
                start, end = (int(item) for item in part.split("-", 1))
                if end < start:
                    raise argparse.ArgumentTypeError(f"Invalid target range '{part}'.")
                targets.extend(range(start, end + 1))
            else:
                targets.append(int(part))
        except ValueError as exc:
            raise argparse.ArgumentTypeError(f"Invalid target count '{part}'.") from exc
    if not targets:
        raise argparse.ArgumentTypeError("At least one target count is required.")
    if any(count < 1 for count in targets):
        raise argparse.ArgumentTypeError("Target counts must be >= 1.")
    return list(dict.fromkeys(targets))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mwsim",
        description="Monte Carlo DPS simulator for Mistweaver monk rotations and talent builds.",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to a JSON/YAML config. Defaults to the bundled Mistweaver tables.",
    )
    parser.add_argument(
        "--targets",
        type=parse_targets,
        default=None,
        help="Target counts to simulate, e.g. '1-5' or '1,3'. Defaults to the configured counts.",
    )
    parser.add_argument(
        "--strategy",
        action="append",
        default=None,
        help="Only simulate this strategy (repeatable). Defaults to the per-target mapping.",
    )
    parser.add_argument("--duration", type=float, default=None, help="Encounter length in seconds.")
    parser.add_argument("--iterations", type=int, default=None, help="Iterations per simulation.")
    parser.add_argument("--seed", type=int, default=None, help="RNG seed; random when omitted.")
    parser.add_argument("--workers", type=int, default=1, help="Worker processes for the sweep.")
    parser.add_argument("--top", type=int, default=5, help="How many builds to show per target count.")
    parser.add_argument(
        "--format",
        choices=("table", "json"),
        default="table",
        help="Output format.",
    )
    parser.add_argument(
        "--details",
        action="store_true",
        help="Show the per-source breakdown of each build's best iteration (table output only).",
    )
    parser.add_argument("--log-level", default="WARNING", help="Logging level for stderr output.")
    return parser


def _print_table(
    ranked: Dict[int, List[SweepResult]],
    tested: Sequence[str],
    seed: int,
    show_details: bool,
) -> None:
    print(f"Seed: {seed}")
    for num_targets, results in ranked.items():
        print()
        print(f"Targets: {num_targets}")
        if not results:
            print("No builds simulated.")
            continue

        header = f"{'Rank':<6}{'Mean DPS':<12}{'Best DPS':<12}{'Worst DPS':<12}{'Strategy':<10}Talents"
        print(header)
        print("-" * len(header))
        for idx, result in enumerate(results, start=1):
            summary = result.summary
            print(
                f"{idx:<6}{summary.mean_dps:<12.2f}{summary.best_dps:<12.2f}"
                f"{summary.worst_dps:<12.2f}{result.strategy_name:<10}"
                f"{summarize_talents(result.talents, tested)}"
            )
            if show_details:
                details = format_iteration_details(summary.best)
                print("\n".join(f"    {line}" for line in details.splitlines()))


def _print_json(ranked: Dict[int, List[SweepResult]], tested: Sequence[str], seed: int) -> None:
    payload = {
        "seed": seed,
        "results": {
            str(num_targets): [sweep_result_to_dict(result, tested) for result in results]
            for num_targets, results in ranked.items()
        },
    }
    json.dump(payload, sys.stdout, indent=2, ensure_ascii=False)
    sys.stdout.write("\n")


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        setup_logging(args.log_level)
    except ValueError as exc:
        parser.error(str(exc))

    if args.top <= 0:
        parser.error("--top must be > 0.")
    if args.workers < 1:
        parser.error("--workers must be >= 1.")

    try:
        config = load_config(Path(args.config)) if args.config else default_config()
    except ConfigError as exc:
        parser.error(str(exc))

    targets = args.targets or sorted(config.target_strategies) or [1]
    seed = args.seed if args.seed is not None else random.SystemRandom().randrange(2**31)
    log.info("using seed %d", seed)

    try:
        ranked = run_sweep(
            config,
            targets,
            seed=seed,
            duration=args.duration,
            iterations=args.iterations,
            strategy_names=args.strategy,
            workers=args.workers,
            top_n=args.top,
        )
    except (SimulationError, ValueError) as exc:
        parser.error(f"Simulation failed: {exc}")

    if args.format == "json":
        _print_json(ranked, config.talents_to_test, seed)
    else:
        _print_table(ranked, config.talents_to_test, seed, show_details=args.details)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
