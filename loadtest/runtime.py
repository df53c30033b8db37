"""
Locust event wiring: tagged request metrics, threshold gate, result file.

Each locustfile calls :func:`install` once at import time with its
threshold set.  From then on:

- every request Locust reports is recorded into ``http_req_duration``
  and ``http_req_failed``, tagged with the user's request context
  (``test_type``, ``operation``) plus ``method``, ``name`` and ``status``;
- the run banner (profile, host, users, duration, SLOs) is logged when
  the test starts;
- when Locust quits, every threshold is evaluated, a summary table is
  printed, an optional JSON result file is written, and the process exit
  code is set to 1 if any threshold was breached.

Key Concepts Demonstrated:
- Custom command-line option via ``init_command_line_parser``
- ``events.request`` as the single source of per-request metrics
- ``environment.process_exit_code`` as the CI pass/fail signal
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from locust import events

from loadtest import metrics
from loadtest.thresholds import ThresholdResult, ThresholdSet

logger = logging.getLogger(__name__)


class RunReporter:
    """
    Collects per-request metrics for one test and gates it on thresholds.

    Args:
        test_name: Name used in the banner and the result file.
        thresholds: Rules evaluated when Locust quits.
        banner: Label → value lines logged at test start.
        registry: Metric registry to record into and evaluate against.
    """

    def __init__(
        self,
        test_name: str,
        thresholds: ThresholdSet,
        banner: Mapping[str, Any] | None = None,
        registry: metrics.MetricRegistry = metrics.registry,
    ) -> None:
        self.test_name = test_name
        self.thresholds = thresholds
        self.banner = dict(banner or {})
        self.registry = registry
        self.results: list[ThresholdResult] = []

    # ---- Event handlers -------------------------------------------------

    def on_request(
        self,
        request_type: str,
        name: str,
        response_time: float,
        response: Any = None,
        context: Mapping[str, Any] | None = None,
        exception: BaseException | None = None,
        **_kwargs: Any,
    ) -> None:
        """Record one request's duration and failure flag under its tags."""
        tags = dict(context or {})
        tags["method"] = request_type
        tags["name"] = name
        tags["status"] = getattr(response, "status_code", 0) or 0

        self.registry.trend("http_req_duration").add(response_time, tags)
        self.registry.rate("http_req_failed").add(exception is not None, tags)

    def on_test_start(self, environment: Any = None, **_kwargs: Any) -> None:
        logger.info("=" * 40)
        logger.info("Load test: %s", self.test_name)
        logger.info("=" * 40)
        for label, value in self.banner.items():
            logger.info("%s: %s", label, value)
        logger.info("Thresholds: %d rules", len(self.thresholds))

    def on_quitting(self, environment: Any, **_kwargs: Any) -> None:
        """Evaluate thresholds, report, and fail the process on any breach."""
        self.results = self.thresholds.evaluate(self.registry)
        passed = all(result.passed for result in self.results)

        print_summary(self.test_name, self.results)

        results_file = getattr(getattr(environment, "parsed_options", None), "results_file", None)
        if results_file:
            self.write_results(Path(results_file), passed, environment)

        if not passed:
            logger.error("Thresholds breached for %s", self.test_name)
            environment.process_exit_code = 1

    # ---- Output ---------------------------------------------------------

    def to_dict(self, passed: bool, environment: Any = None) -> dict[str, Any]:
        data: dict[str, Any] = {
            "test": self.test_name,
            "finished_at": datetime.now(timezone.utc).isoformat(),
            "passed": passed,
            "run": {str(k): v for k, v in self.banner.items()},
            "thresholds": [result.to_dict() for result in self.results],
            "metrics": self.registry.snapshot(),
        }
        stats = getattr(environment, "stats", None)
        if stats is not None:
            data["requests"] = {
                "total": stats.total.num_requests,
                "failures": stats.total.num_failures,
            }
        return data

    def write_results(self, path: Path, passed: bool, environment: Any = None) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", encoding="utf-8") as handle:
            json.dump(self.to_dict(passed, environment), handle, indent=2, default=str)
        logger.info("Results written to %s", path)


def print_summary(test_name: str, results: list[ThresholdResult]) -> None:
    """Print a human-readable threshold table to stdout for CI logs."""
    passed = all(result.passed for result in results)

    print(f"Threshold Check: {test_name}")
    print("-" * 84)
    print(f"{'Metric':<46}{'Rule':>14}{'Actual':>12}{'Status':>12}")
    print("-" * 84)
    for result in results:
        actual = "n/a" if result.observed is None else f"{result.observed:.2f}"
        status = "PASS" if result.passed else "FAIL"
        print(f"{result.threshold.key:<46}{result.threshold.expression:>14}{actual:>12}{status:>12}")
    print("-" * 84)
    print(f"Overall: {'PASS' if passed else 'FAIL'}")


def build_banner(settings: Any, profile: Any = None, **extra: Any) -> dict[str, Any]:
    """Standard banner lines for a run: profile, host, users and duration."""
    profile = profile or settings.profile
    banner = {
        "Profile": settings.profile_name,
        "Host": settings.host,
        "VUs": profile.virtual_users,
        "Duration": profile.duration,
    }
    banner.update(extra)
    return banner


def _add_arguments(parser: Any, **_kwargs: Any) -> None:
    parser.add_argument(
        "--results-file",
        type=str,
        env_var="LOCUST_RESULTS_FILE",
        default="",
        help="Write threshold results and custom metrics to this JSON file",
    )


def install(test_name: str, thresholds: ThresholdSet, banner: Mapping[str, Any] | None = None) -> RunReporter:
    """
    Register a :class:`RunReporter` on Locust's event hooks.

    Call once per locustfile, at import time.
    """
    reporter = RunReporter(test_name, thresholds, banner)
    events.init_command_line_parser.add_listener(_add_arguments)
    events.request.add_listener(reporter.on_request)
    events.test_start.add_listener(reporter.on_test_start)
    events.quitting.add_listener(reporter.on_quitting)
    return reporter
