"""Command-line entry point: replay scenarios and check configurations."""

import argparse
import logging
import sys
from typing import List, Optional

from .config.loader import load_config
from .engine.clock import ManualDayClock
from .engine.factory import build_ledger
from .reporting.export import export_csv, export_json
from .simulation.runner import ScenarioRunner, load_scenario
from .validation.sanity_checks import SanityChecker, ValidationWarning

logger = logging.getLogger(__name__)


def _print_warnings(warnings: List[ValidationWarning]) -> None:
    for w in warnings:
        line = f"[{w.severity}] {w.category}: {w.message}"
        if w.details:
            line += f" ({w.details})"
        print(line)


def _cmd_run(args: argparse.Namespace) -> int:
    config = load_config(args.config)
    scenario = load_scenario(args.scenario)
    result = ScenarioRunner(config, scenario).run()

    if args.csv:
        export_csv(result, args.csv)
    if args.json:
        export_json(result, args.json)

    print(f"Scenario {scenario.name}: {len(result.records)} steps, {len(result.events)} events")
    for account, position in result.final_positions.items():
        print(f"  {account}: amount={position['amount']} tier={position['tier_index']} "
              f"start_day={position['deposit_start_day']}")
    for failure in result.failures:
        print(f"FAIL {failure}")
    _print_warnings(result.warnings)
    return 0 if result.passed else 1


def _cmd_check(args: argparse.Namespace) -> int:
    config = load_config(args.config)
    checker = SanityChecker(config)
    warnings = checker.check_config_inputs()
    bundle = build_ledger(config, clock=ManualDayClock(args.day))
    warnings.extend(checker.check_ledger_state(bundle.ledger))
    print(f"Config {config.compute_hash()}: {len(config.tiers)} tiers")
    _print_warnings(warnings)
    return 1 if any(w.severity == "error" for w in warnings) else 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="tierstake", description="Tiered staking ledger tools")
    parser.add_argument("--log-level", default="WARNING",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Replay a scenario file")
    run.add_argument("scenario", help="Scenario YAML")
    run.add_argument("--config", default=None, help="Ledger config YAML (packaged defaults if omitted)")
    run.add_argument("--csv", default=None, help="Write per-step records to CSV")
    run.add_argument("--json", default=None, help="Write the full result to JSON")
    run.set_defaults(func=_cmd_run)

    check = sub.add_parser("check", help="Sanity-check a configuration")
    check.add_argument("--config", default=None, help="Ledger config YAML (packaged defaults if omitted)")
    check.add_argument("--day", type=int, default=0, help="Day index to evaluate the fresh ledger at")
    check.set_defaults(func=_cmd_check)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
