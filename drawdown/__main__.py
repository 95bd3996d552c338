"""CLI entry point for drawdown."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
import sys

from .engine import simulate
from .report import compute_metrics, summary_lines, write_csv
from .schema import SchemaError, load_scenario
from .validate import validate_scenario


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Monthly retirement drawdown projection")
    parser.add_argument("scenario", help="Path to scenario JSON file")
    parser.add_argument("-o", "--output", default="drawdown.csv", help="Output CSV path")
    parser.add_argument("--validate", action="store_true", help="Validate JSON only")
    parser.add_argument("--summary", action="store_true", help="Print text summary to stdout")
    parser.add_argument("--trace", action="store_true", help="Log engine trace messages to stderr")
    return parser


def _print_validation(errors: list[str], warnings: list[str]) -> None:
    for warning in warnings:
        print(f"WARNING: {warning}")
    for error in errors:
        print(f"ERROR: {error}", file=sys.stderr)


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.trace:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s", stream=sys.stderr)

    try:
        scenario = load_scenario(args.scenario)
    except (SchemaError, OSError, ValueError) as exc:
        print(f"Failed to load scenario: {exc}", file=sys.stderr)
        return 2

    validation = validate_scenario(scenario)
    _print_validation(validation.errors, validation.warnings)
    if not validation.is_valid:
        return 1

    if args.validate:
        print("Scenario is valid.")
        return 0

    result = simulate(scenario)
    write_csv(args.output, result.csv_text)

    if args.summary:
        if scenario.metadata.title:
            print(scenario.metadata.title)
        for line in summary_lines(compute_metrics(result, scenario)):
            print(line)

    print(f"Wrote {result.actual_duration_months} months to {Path(args.output)}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
