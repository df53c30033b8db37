"""
Threshold builder and evaluator.

Thresholds are pass/fail rules over aggregated metrics, e.g. "95 % of
``get-list`` requests finished within 300 ms".  They are built as typed
:class:`Threshold` records and only turned into the familiar string
form (``http_req_duration{test_type:get-list}`` → ``p(95)<300``) at the
boundary — for logs, JSON result files and YAML threshold files.

Example::

    thresholds = generate_thresholds(ENDPOINT_SLO["products"]["list"])
    thresholds.to_dict()
    # {"http_req_duration": ["p(95)<300", "p(99)<800"],
    #  "http_req_failed": ["rate<0.01"],
    #  "checks": ["rate>0.95"]}
"""

from __future__ import annotations

import operator
import re
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from typing import Any, Callable

from loadtest.metrics import Counter, Metric, MetricRegistry, Rate, Trend
from loadtest.slo import EndpointSLO

OPERATORS: Mapping[str, Callable[[float, float], bool]] = {
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
    "==": operator.eq,
    "!=": operator.ne,
}

_KEY_RE = re.compile(r"^(?P<metric>[A-Za-z_][\w.]*)(?:\{(?P<tags>[^}]*)\})?$")
_EXPRESSION_RE = re.compile(
    r"^(?P<aggregate>p\(\d+(?:\.\d+)?\)|avg|min|max|med|rate|count)\s*"
    r"(?P<operator><=|>=|==|!=|<|>)\s*"
    r"(?P<bound>-?\d+(?:\.\d+)?)$"
)
_PERCENTILE_RE = re.compile(r"^p\((?P<percent>\d+(?:\.\d+)?)\)$")


def _format_number(value: float) -> str:
    return f"{value:g}"


@dataclass(frozen=True)
class Threshold:
    """
    One pass/fail rule.

    Attributes:
        metric: Metric name (``http_req_duration``, ``checks``...).
        aggregate: ``p(N)``, ``avg``, ``min``, ``max``, ``med``, ``rate``
            or ``count``.
        operator: Comparison operator, one of :data:`OPERATORS`.
        bound: Right-hand side of the comparison.
        tags: Sorted ``(key, value)`` pairs restricting the samples the
            rule is evaluated over.
    """

    metric: str
    aggregate: str
    operator: str
    bound: float
    tags: tuple[tuple[str, str], ...] = ()

    def __post_init__(self) -> None:
        if self.operator not in OPERATORS:
            raise ValueError(f"Unsupported threshold operator: {self.operator!r}")
        if not (
            self.aggregate in {"avg", "min", "max", "med", "rate", "count"}
            or _PERCENTILE_RE.match(self.aggregate)
        ):
            raise ValueError(f"Unsupported threshold aggregate: {self.aggregate!r}")

    @property
    def key(self) -> str:
        """The metric name plus tag filter, e.g. ``http_req_failed{operation:read}``."""
        if not self.tags:
            return self.metric
        tag_text = ",".join(f"{key}:{value}" for key, value in self.tags)
        return f"{self.metric}{{{tag_text}}}"

    @property
    def expression(self) -> str:
        """The rule itself, e.g. ``p(95)<300``."""
        return f"{self.aggregate}{self.operator}{_format_number(self.bound)}"

    @property
    def tag_filter(self) -> dict[str, str]:
        return dict(self.tags)

    def __str__(self) -> str:
        return f"{self.key}: {self.expression}"

    def observe(self, metric: Metric | None) -> float | None:
        """
        Compute the aggregate this rule compares, or ``None`` without samples.

        Raises:
            ValueError: If the aggregate does not apply to the metric kind.
        """
        if metric is None or not metric.has_samples(self.tag_filter):
            return None

        tag_filter = self.tag_filter
        if isinstance(metric, Trend):
            match = _PERCENTILE_RE.match(self.aggregate)
            if match:
                return metric.percentile(float(match.group("percent")) / 100.0, tag_filter)
            if self.aggregate == "med":
                return metric.percentile(0.5, tag_filter)
            if self.aggregate == "avg":
                return metric.average(tag_filter)
            if self.aggregate == "min":
                return metric.minimum(tag_filter)
            if self.aggregate == "max":
                return metric.maximum(tag_filter)
            if self.aggregate == "count":
                return float(metric.count(tag_filter))
        elif isinstance(metric, Rate) and self.aggregate == "rate":
            return metric.rate(tag_filter)
        elif isinstance(metric, Counter) and self.aggregate == "count":
            return metric.count(tag_filter)

        raise ValueError(f"Aggregate {self.aggregate!r} does not apply to {metric.kind} {metric.name!r}")

    def evaluate(self, registry: MetricRegistry) -> ThresholdResult:
        """Evaluate the rule; rules over metrics without samples pass."""
        observed = self.observe(registry.get(self.metric))
        if observed is None:
            return ThresholdResult(self, None, True)
        return ThresholdResult(self, observed, OPERATORS[self.operator](observed, self.bound))


@dataclass(frozen=True)
class ThresholdResult:
    """The outcome of evaluating one :class:`Threshold`."""

    threshold: Threshold
    observed: float | None
    passed: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "metric": self.threshold.key,
            "threshold": self.threshold.expression,
            "observed": self.observed,
            "passed": self.passed,
        }


def threshold(
    metric: str,
    aggregate: str,
    op: str,
    bound: float,
    tags: Mapping[str, Any] | None = None,
) -> Threshold:
    """Build a :class:`Threshold`, normalising *tags* into sorted string pairs."""
    tag_pairs = tuple(sorted((str(k), str(v)) for k, v in (tags or {}).items()))
    return Threshold(metric, aggregate, op, float(bound), tag_pairs)


def parse_threshold(key: str, expression: str) -> Threshold:
    """
    Parse the string form back into a :class:`Threshold`.

    Args:
        key: Metric name with optional tag filter, e.g.
            ``http_req_duration{test_type:get-list}``.
        expression: Rule text, e.g. ``p(95)<300``.

    Raises:
        ValueError: If either part is malformed.
    """
    key_match = _KEY_RE.match(key.strip())
    if key_match is None:
        raise ValueError(f"Malformed threshold metric key: {key!r}")

    tags: dict[str, str] = {}
    if key_match.group("tags"):
        for pair in key_match.group("tags").split(","):
            name, sep, value = pair.partition(":")
            if not sep or not name.strip():
                raise ValueError(f"Malformed tag filter in threshold key: {key!r}")
            tags[name.strip()] = value.strip()

    expr_match = _EXPRESSION_RE.match(expression.replace(" ", ""))
    if expr_match is None:
        raise ValueError(f"Malformed threshold expression: {expression!r}")

    return threshold(
        key_match.group("metric"),
        expr_match.group("aggregate"),
        expr_match.group("operator"),
        float(expr_match.group("bound")),
        tags,
    )


class ThresholdSet:
    """
    Ordered collection of thresholds grouped by metric key.

    :meth:`update` replaces every rule of a key that the other set also
    defines, so specific rule sets can override generated defaults.
    """

    def __init__(self, thresholds: Iterable[Threshold] = ()) -> None:
        self._rules: dict[str, list[Threshold]] = {}
        for item in thresholds:
            self.add(item)

    def add(self, item: Threshold) -> ThresholdSet:
        self._rules.setdefault(item.key, []).append(item)
        return self

    def update(self, other: ThresholdSet) -> ThresholdSet:
        for key, rules in other._rules.items():
            self._rules[key] = list(rules)
        return self

    def __or__(self, other: ThresholdSet) -> ThresholdSet:
        merged = ThresholdSet(self)
        return merged.update(other)

    def __iter__(self) -> Iterator[Threshold]:
        for rules in self._rules.values():
            yield from rules

    def __len__(self) -> int:
        return sum(len(rules) for rules in self._rules.values())

    def __contains__(self, key: object) -> bool:
        return key in self._rules

    def __getitem__(self, key: str) -> list[Threshold]:
        return list(self._rules[key])

    def keys(self) -> list[str]:
        return list(self._rules)

    def to_dict(self) -> dict[str, list[str]]:
        """Serialise to ``{metric_key: [expression, ...]}``."""
        return {key: [rule.expression for rule in rules] for key, rules in self._rules.items()}

    @classmethod
    def from_dict(cls, data: Mapping[str, Iterable[str]]) -> ThresholdSet:
        """Inverse of :meth:`to_dict`, e.g. for thresholds loaded from YAML."""
        result = cls()
        for key, expressions in data.items():
            if isinstance(expressions, str):
                expressions = [expressions]
            for expression in expressions:
                result.add(parse_threshold(key, expression))
        return result

    def evaluate(self, registry: MetricRegistry) -> list[ThresholdResult]:
        return [rule.evaluate(registry) for rule in self]


# -----------------------------------------------------------------------------
# Generators
# -----------------------------------------------------------------------------

def generate_thresholds(slo: EndpointSLO) -> ThresholdSet:
    """
    Translate an SLO into the standard global threshold set.

    Returns:
        Duration p95/p99, failed-request rate, and a 95 % check pass rate.
    """
    return ThresholdSet(
        [
            threshold("http_req_duration", "p(95)", "<", slo.p95),
            threshold("http_req_duration", "p(99)", "<", slo.p99),
            threshold("http_req_failed", "rate", "<", slo.error_rate),
            threshold("checks", "rate", ">", 0.95),
        ]
    )


def generate_custom_thresholds(slo: EndpointSLO, prefix: str) -> ThresholdSet:
    """Standard thresholds plus p95/p99 rules on a ``<prefix>_duration`` trend."""
    return generate_thresholds(slo).update(
        ThresholdSet(
            [
                threshold(f"{prefix}_duration", "p(95)", "<", slo.p95),
                threshold(f"{prefix}_duration", "p(99)", "<", slo.p99),
            ]
        )
    )


def generate_scenario_thresholds(
    slo: EndpointSLO, tag_value: str, tag_key: str = "test_type"
) -> ThresholdSet:
    """
    Thresholds evaluated only over requests tagged ``tag_key=tag_value``.

    Example::

        generate_scenario_thresholds(slo, "get-list").keys()
        # ["http_req_duration{test_type:get-list}",
        #  "http_req_failed{test_type:get-list}"]
    """
    tags = {tag_key: tag_value}
    return ThresholdSet(
        [
            threshold("http_req_duration", "p(95)", "<", slo.p95, tags),
            threshold("http_req_duration", "p(99)", "<", slo.p99, tags),
            threshold("http_req_failed", "rate", "<", slo.error_rate, tags),
        ]
    )
