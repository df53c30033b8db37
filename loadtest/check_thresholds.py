"""
Validate Locust CSV output against threshold configuration.

For runs started with Locust's own ``--csv`` option instead of the
``loadtest`` runner, CI invokes this script afterwards to decide whether
the build passes.  It reads the **Aggregated** row of the ``*_stats.csv``
file and evaluates the rules of a YAML thresholds file written in the
same string format the locustfiles use::

    http_req_failed:
      - rate<0.05
    http_req_duration:
      - p(95)<2000
      - p(99)<5000

Only untagged ``http_req_failed`` and ``http_req_duration`` rules can be
answered from the CSV; tagged or custom-metric rules are reported as
skipped.

Exit codes follow a three-state convention so that CI can distinguish
"thresholds breached" from "script crashed":

- ``0`` — all thresholds passed
- ``1`` — at least one threshold was breached
- ``2`` — the script itself failed (missing file, bad YAML, etc.)
"""

from __future__ import annotations

import argparse
import csv
import re
import sys
from pathlib import Path
from typing import Any

import yaml

from loadtest.thresholds import OPERATORS, Threshold, ThresholdSet

# Three-state exit codes so CI can tell "test failed" from "script crashed".
EXIT_PASS = 0
EXIT_THRESHOLD_BREACH = 1
EXIT_SCRIPT_ERROR = 2

DEFAULT_THRESHOLDS_FILE = Path(__file__).resolve().with_name("thresholds.yml")

# Locust CSV columns for the non-percentile duration aggregates.
_DURATION_COLUMNS = {
    "avg": "Average Response Time",
    "min": "Min Response Time",
    "max": "Max Response Time",
    "med": "Median Response Time",
}

_PERCENTILE_RE = re.compile(r"^p\((?P<percent>\d+(?:\.\d+)?)\)$")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse CLI arguments for the threshold checker."""
    parser = argparse.ArgumentParser(
        description="Check Locust stats CSV against performance thresholds."
    )
    parser.add_argument(
        "--stats",
        required=True,
        type=Path,
        help="Path to Locust *_stats.csv file",
    )
    parser.add_argument(
        "--thresholds",
        type=Path,
        default=DEFAULT_THRESHOLDS_FILE,
        help="Path to thresholds YAML file",
    )
    return parser.parse_args(argv)


def load_thresholds(path: Path) -> ThresholdSet:
    """
    Read threshold rules from a YAML file.

    Args:
        path: YAML mapping of metric key to a rule string or list of them.

    Raises:
        ValueError: If the file is not a mapping or a rule is malformed.
    """
    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}

    if not isinstance(data, dict):
        raise ValueError("Thresholds file must be a mapping of metric to rules")
    return ThresholdSet.from_dict(data)


def load_aggregated_row(stats_path: Path) -> dict[str, str]:
    """
    Find and return the ``Aggregated`` summary row from a Locust stats CSV.

    Checks both the ``Name`` and ``Type`` columns, since the column
    layout varies between Locust versions.

    Raises:
        ValueError: If no ``Aggregated`` row is found.
    """
    with stats_path.open("r", encoding="utf-8", newline="") as handle:
        rows = list(csv.DictReader(handle))

    for row in rows:
        if row.get("Name") == "Aggregated" or row.get("Type") == "Aggregated":
            return row

    raise ValueError("Could not find 'Aggregated' row in stats CSV")


def _parse_float(value: Any, field_name: str) -> float:
    """
    Coerce *value* to ``float``, stripping ``%`` suffixes if present.

    Raises:
        ValueError: If the value is missing, empty, or non-numeric.
    """
    if value is None:
        raise ValueError(f"Missing field: {field_name}")

    text = str(value).strip().replace("%", "")
    if text == "":
        raise ValueError(f"Empty value for field: {field_name}")

    try:
        return float(text)
    except ValueError as exc:
        raise ValueError(f"Non-numeric value for {field_name}: {value}") from exc


def _percentile_column(row: dict[str, str], percent: str) -> float:
    """Read a percentile column; Locust labels them ``95%`` or ``95%ile``."""
    number = f"{float(percent):g}"
    for candidate in (f"{number}%", f"{number}%ile", f"{number}th percentile", f"p{number}"):
        if row.get(candidate) not in (None, ""):
            return _parse_float(row[candidate], candidate)
    raise ValueError(f"Could not find p{number} column in stats CSV")


def failure_rate(row: dict[str, str]) -> float:
    """
    ``Failure Count / Request Count`` as a fraction.

    Raises:
        ValueError: If counts are missing or ``Request Count`` is zero.
    """
    request_count = _parse_float(row.get("Request Count"), "Request Count")
    failure_count = _parse_float(row.get("Failure Count"), "Failure Count")

    if request_count <= 0:
        raise ValueError("Request Count must be > 0 for threshold checks")

    return failure_count / request_count


def observe(rule: Threshold, row: dict[str, str]) -> float | None:
    """Value the CSV row gives for *rule*, or ``None`` if it cannot answer it."""
    if rule.tags:
        return None
    if rule.metric == "http_req_failed" and rule.aggregate == "rate":
        return failure_rate(row)
    if rule.metric == "http_req_duration":
        match = _PERCENTILE_RE.match(rule.aggregate)
        if match:
            return _percentile_column(row, match.group("percent"))
        if rule.aggregate in _DURATION_COLUMNS:
            column = _DURATION_COLUMNS[rule.aggregate]
            return _parse_float(row.get(column), column)
        if rule.aggregate == "count":
            return _parse_float(row.get("Request Count"), "Request Count")
    return None


def _print_summary(rows: list[tuple[Threshold, float | None, str]], passed: bool) -> None:
    """Print a human-readable results table to stdout for CI logs."""
    print("Performance Threshold Check")
    print("-" * 72)
    print(f"{'Metric':<24}{'Rule':>16}{'Actual':>16}{'Status':>16}")
    print("-" * 72)
    for rule, actual, status in rows:
        actual_text = "n/a" if actual is None else f"{actual:.4g}"
        print(f"{rule.key:<24}{rule.expression:>16}{actual_text:>16}{status:>16}")
    print("-" * 72)
    print(f"Overall: {'PASS' if passed else 'FAIL'}")


def evaluate(thresholds: ThresholdSet, row: dict[str, str]) -> tuple[bool, list[tuple[Threshold, float | None, str]]]:
    """Evaluate every rule against *row*; skipped rules do not fail the run."""
    report = []
    passed = True
    for rule in thresholds:
        actual = observe(rule, row)
        if actual is None:
            report.append((rule, None, "SKIPPED"))
            continue
        ok = OPERATORS[rule.operator](actual, rule.bound)
        passed = passed and ok
        report.append((rule, actual, "PASS" if ok else "FAIL"))
    return passed, report


def main(argv: list[str] | None = None) -> int:
    """
    Entry point: load thresholds, parse CSV, compare, and print results.

    Returns:
        ``EXIT_PASS`` (0) if all thresholds are met,
        ``EXIT_THRESHOLD_BREACH`` (1) if any are exceeded, or
        ``EXIT_SCRIPT_ERROR`` (2) on unexpected failures.
    """
    args = parse_args(argv)

    try:
        thresholds = load_thresholds(args.thresholds)
        row = load_aggregated_row(args.stats)
        passed, report = evaluate(thresholds, row)
        _print_summary(report, passed)
        return EXIT_PASS if passed else EXIT_THRESHOLD_BREACH
    except Exception as exc:  # pragma: no cover - CLI guard
        print(f"Threshold check failed: {exc}", file=sys.stderr)
        return EXIT_SCRIPT_ERROR


if __name__ == "__main__":
    raise SystemExit(main())
