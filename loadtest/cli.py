"""
Command-line runner for the load tests.

Launches ``locust --headless`` for one test, or for the whole suite
either one after another or all at once, and reports PASS/FAIL per run.
The profile and host reach the locustfiles through the ``PROFILE`` and
``HOST`` environment variables.

Usage::

    loadtest                          # all scenarios, LIGHT profile, DEV host
    loadtest -p MEDIUM                # all scenarios, MEDIUM profile
    loadtest -t get-endpoint -p SMOKE # one test
    loadtest -h PROD -p HEAVY         # another environment
    loadtest -m sequential -p LIGHT   # GET, POST, CRUD one by one
    loadtest -m parallel -p LIGHT     # GET, POST, CRUD simultaneously

Exit code is 0 when every run passed its thresholds and 1 otherwise.

Key Concepts Demonstrated:
- One Locust process per test, driven through ``subprocess``
- Sequential runs with a settle pause, parallel runs with per-test logs
- Test-name aliases and locustfile path passthrough
"""

from __future__ import annotations

import argparse
import logging
import os
import subprocess
import sys
import time
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from loadtest.config import DEFAULT_HOST_NAME, DEFAULT_PROFILE_NAME, LOAD_PROFILES, ConfigurationError

logger = logging.getLogger(__name__)

LOCUSTFILES_DIR = Path(__file__).resolve().parent / "locustfiles"

# Test name → (locustfile, result name).
TESTS = {
    "all": ("all_scenarios.py", "all-scenarios"),
    "get-endpoint": ("get_endpoint.py", "get-endpoint"),
    "post-endpoint": ("post_endpoint.py", "post-endpoint"),
    "crud": ("crud_operations.py", "crud-operations"),
}

ALIASES = {
    "get": "get-endpoint",
    "post": "post-endpoint",
    "crud-operations": "crud",
}

# Tests run by the sequential and parallel modes.
SUITE = ("get-endpoint", "post-endpoint", "crud")

SEQUENTIAL_PAUSE_SECONDS = 10


class UnknownTestError(ConfigurationError):
    """Raised when a test name is neither known nor an existing locustfile."""


@dataclass(frozen=True)
class LocustTarget:
    """A resolved test: its result name and the locustfile to run."""

    name: str
    locustfile: Path


@dataclass(frozen=True)
class RunResult:
    """Outcome of one Locust process."""

    name: str
    returncode: int
    results_file: Path

    @property
    def passed(self) -> bool:
        return self.returncode == 0


def resolve_test(test: str) -> LocustTarget:
    """
    Map a test name, alias or locustfile path to a :class:`LocustTarget`.

    Raises:
        UnknownTestError: If *test* matches nothing.
    """
    canonical = ALIASES.get(test, test)
    if canonical in TESTS:
        filename, name = TESTS[canonical]
        return LocustTarget(name, LOCUSTFILES_DIR / filename)

    path = Path(test)
    if path.is_file():
        return LocustTarget(path.stem, path)
    if (LOCUSTFILES_DIR / f"{test}.py").is_file():
        return LocustTarget(test, LOCUSTFILES_DIR / f"{test}.py")

    raise UnknownTestError(f"Unknown test: {test}")


def timestamp() -> str:
    return datetime.now().strftime("%Y%m%d_%H%M%S")


def build_command(target: LocustTarget, results_file: Path, verbose: bool = False) -> list[str]:
    """The ``locust`` invocation for one headless run."""
    command = [
        sys.executable,
        "-m",
        "locust",
        "-f",
        str(target.locustfile),
        "--headless",
        "--results-file",
        str(results_file),
    ]
    if verbose:
        command += ["--loglevel", "DEBUG"]
    else:
        command.append("--only-summary")
    return command


def build_env(profile: str, host: str) -> dict[str, str]:
    env = dict(os.environ)
    env["PROFILE"] = profile
    env["HOST"] = host
    return env


def run_test(
    target: LocustTarget, results_file: Path, profile: str, host: str, verbose: bool = False
) -> RunResult:
    """Run one test in the foreground and report its outcome."""
    logger.info("Running: %s (profile=%s, host=%s)", target.name, profile, host)
    logger.info("Output: %s", results_file)

    completed = subprocess.run(
        build_command(target, results_file, verbose),
        env=build_env(profile, host),
        check=False,
    )
    result = RunResult(target.name, completed.returncode, results_file)
    if result.passed:
        print(f"PASS  {target.name}")
    else:
        print(f"FAIL  {target.name} (exit code {completed.returncode})")
    return result


def run_sequential(
    output_dir: Path, profile: str, host: str, verbose: bool = False, pause: float = SEQUENTIAL_PAUSE_SECONDS
) -> list[RunResult]:
    """Run the suite one test at a time, pausing between tests."""
    run_dir = output_dir / f"sequential_{timestamp()}"
    run_dir.mkdir(parents=True, exist_ok=True)

    results = []
    for index, test in enumerate(SUITE):
        target = resolve_test(test)
        print(f"[{index + 1}/{len(SUITE)}] Running: {target.name}")
        results.append(run_test(target, run_dir / f"{target.name}.json", profile, host, verbose))
        if index < len(SUITE) - 1:
            logger.info("Waiting %s seconds before next test...", pause)
            time.sleep(pause)
    return results


def run_parallel(output_dir: Path, profile: str, host: str, verbose: bool = False) -> list[RunResult]:
    """Start every suite test at once; each writes its own ``.log`` file."""
    run_dir = output_dir / f"parallel_{timestamp()}"
    run_dir.mkdir(parents=True, exist_ok=True)

    running = []
    for test in SUITE:
        target = resolve_test(test)
        results_file = run_dir / f"{target.name}.json"
        log_path = run_dir / f"{target.name}.log"
        print(f"Starting: {target.name}")
        log_handle = log_path.open("w", encoding="utf-8")
        process = subprocess.Popen(
            build_command(target, results_file, verbose),
            env=build_env(profile, host),
            stdout=log_handle,
            stderr=subprocess.STDOUT,
        )
        running.append((target, results_file, process, log_handle))

    results = []
    for target, results_file, process, log_handle in running:
        returncode = process.wait()
        log_handle.close()
        results.append(RunResult(target.name, returncode, results_file))

    print("Logs:")
    for target, _results_file, _process, _log_handle in running:
        print(f"  - {run_dir / f'{target.name}.log'}")
    return results


def print_summary(results: list[RunResult]) -> None:
    passed = sum(1 for result in results if result.passed)
    print("=" * 64)
    print("SUMMARY")
    print("=" * 64)
    for result in results:
        print(f"{result.name:<30}{'PASS' if result.passed else 'FAIL':>8}")
    print("-" * 64)
    print(f"Total:  {len(results)}")
    print(f"Passed: {passed}")
    print(f"Failed: {len(results) - passed}")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse CLI arguments; ``-h`` selects the host, so help is ``--help`` only."""
    parser = argparse.ArgumentParser(
        prog="loadtest",
        description="Run Locust load tests against a REST API.",
        add_help=False,
    )
    parser.add_argument(
        "-p",
        "--profile",
        type=str.upper,
        choices=sorted(LOAD_PROFILES),
        default=DEFAULT_PROFILE_NAME,
        help="Load profile (default: %(default)s)",
    )
    parser.add_argument(
        "-h",
        "--host",
        default=DEFAULT_HOST_NAME,
        help="Target environment (DEV, STAGING, PROD, LOCAL) or base URL (default: %(default)s)",
    )
    parser.add_argument(
        "-t",
        "--test",
        default="all",
        help="Test to run: all, get-endpoint, post-endpoint, crud, or a locustfile path (default: %(default)s)",
    )
    parser.add_argument(
        "-m",
        "--mode",
        choices=("single", "sequential", "parallel"),
        default="single",
        help="single: run --test; sequential/parallel: run the GET, POST and CRUD suite",
    )
    parser.add_argument(
        "-o",
        "--output",
        type=Path,
        default=Path("results"),
        help="Output directory for result files (default: %(default)s)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")
    parser.add_argument("--help", action="help", help="Show this help message and exit")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    """
    Entry point: parse arguments, run the requested tests, summarise.

    Returns:
        0 if every run passed, 1 otherwise (including unknown tests).
    """
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    print("Configuration:")
    print(f"  Profile: {args.profile}")
    print(f"  Host:    {args.host}")
    print(f"  Mode:    {args.mode}")
    print(f"  Output:  {args.output}")

    started = time.monotonic()
    if args.mode == "sequential":
        results = run_sequential(args.output, args.profile, args.host, args.verbose)
    elif args.mode == "parallel":
        results = run_parallel(args.output, args.profile, args.host, args.verbose)
    else:
        try:
            target = resolve_test(args.test)
        except UnknownTestError as exc:
            print(exc, file=sys.stderr)
            print(f"Available tests: {', '.join(TESTS)}", file=sys.stderr)
            return 1
        args.output.mkdir(parents=True, exist_ok=True)
        results_file = args.output / f"{target.name}_{args.profile}_{timestamp()}.json"
        results = [run_test(target, results_file, args.profile, args.host, args.verbose)]

    print_summary(results)
    print(f"Completed in {time.monotonic() - started:.0f} seconds")
    return 0 if all(result.passed for result in results) else 1


if __name__ == "__main__":
    raise SystemExit(main())
