"""
Tagged custom metrics for threshold evaluation.

Locust's own statistics are keyed by request name and method only.  The
scenarios here also need per-scenario and per-operation figures
(``http_req_duration{test_type:get-list}``) and custom business metrics
(``crud_full_flow_failed``), so this module keeps a small registry of
tagged series next to Locust's stats.

Three metric kinds exist:

- :class:`Trend` — timing samples; percentiles come from Locust's
  ``calculate_response_time_percentile`` so both sets of numbers agree.
- :class:`Rate` — ratio of truthy samples.
- :class:`Counter` — running sum.

Each sample is stored under the exact tag set it was recorded with;
queries take a tag *filter* and aggregate every series whose tags are a
superset of it.  An empty filter aggregates everything.

Locust runs virtual users as gevent greenlets on one OS thread, so no
locking is needed.
"""

from __future__ import annotations

from collections import Counter as _Tally
from collections.abc import Iterator, Mapping
from typing import Any

from locust.stats import calculate_response_time_percentile

TagSet = frozenset[tuple[str, str]]

EMPTY_TAGS: TagSet = frozenset()


def make_tags(tags: Mapping[str, Any] | None) -> TagSet:
    """Normalise a tag mapping into a hashable set of string pairs."""
    if not tags:
        return EMPTY_TAGS
    return frozenset((str(key), str(value)) for key, value in tags.items() if value is not None)


class Metric:
    """Base class: a named metric holding one series per tag set."""

    kind = "metric"

    def __init__(self, name: str) -> None:
        self.name = name
        self._series: dict[TagSet, Any] = {}

    def _new_series(self) -> Any:
        raise NotImplementedError

    def _series_for(self, tags: Mapping[str, Any] | None) -> Any:
        key = make_tags(tags)
        series = self._series.get(key)
        if series is None:
            series = self._series[key] = self._new_series()
        return series

    def _matching(self, tag_filter: Mapping[str, Any] | None) -> Iterator[Any]:
        wanted = make_tags(tag_filter)
        for key, series in self._series.items():
            if wanted <= key:
                yield series

    def has_samples(self, tag_filter: Mapping[str, Any] | None = None) -> bool:
        return any(True for _ in self._matching(tag_filter))

    def reset(self) -> None:
        self._series.clear()

    def summary(self) -> dict[str, Any]:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name!r} series={len(self._series)}>"


class _TrendSeries:
    __slots__ = ("response_times", "count", "total", "min", "max")

    def __init__(self) -> None:
        self.response_times: _Tally[int] = _Tally()
        self.count = 0
        self.total = 0.0
        self.min: float | None = None
        self.max: float | None = None


class Trend(Metric):
    """Timing samples in milliseconds."""

    kind = "trend"

    def _new_series(self) -> _TrendSeries:
        return _TrendSeries()

    def add(self, value: float, tags: Mapping[str, Any] | None = None) -> None:
        series = self._series_for(tags)
        series.response_times[int(round(value))] += 1
        series.count += 1
        series.total += value
        series.min = value if series.min is None else min(series.min, value)
        series.max = value if series.max is None else max(series.max, value)

    def count(self, tag_filter: Mapping[str, Any] | None = None) -> int:
        return sum(series.count for series in self._matching(tag_filter))

    def percentile(self, percent: float, tag_filter: Mapping[str, Any] | None = None) -> float | None:
        """
        Return the response time that *percent* (0.0–1.0) of samples finished within.

        Returns:
            The percentile in milliseconds, or ``None`` when no sample
            matches *tag_filter*.
        """
        merged: _Tally[int] = _Tally()
        count = 0
        for series in self._matching(tag_filter):
            merged.update(series.response_times)
            count += series.count
        if count == 0:
            return None
        return calculate_response_time_percentile(merged, count, percent)

    def average(self, tag_filter: Mapping[str, Any] | None = None) -> float | None:
        matching = list(self._matching(tag_filter))
        count = sum(series.count for series in matching)
        if count == 0:
            return None
        return sum(series.total for series in matching) / count

    def minimum(self, tag_filter: Mapping[str, Any] | None = None) -> float | None:
        values = [series.min for series in self._matching(tag_filter) if series.min is not None]
        return min(values) if values else None

    def maximum(self, tag_filter: Mapping[str, Any] | None = None) -> float | None:
        values = [series.max for series in self._matching(tag_filter) if series.max is not None]
        return max(values) if values else None

    def summary(self) -> dict[str, Any]:
        return {
            "count": self.count(),
            "avg": self.average(),
            "min": self.minimum(),
            "med": self.percentile(0.5),
            "max": self.maximum(),
            "p(90)": self.percentile(0.90),
            "p(95)": self.percentile(0.95),
            "p(99)": self.percentile(0.99),
        }


class _RateSeries:
    __slots__ = ("passes", "total")

    def __init__(self) -> None:
        self.passes = 0
        self.total = 0


class Rate(Metric):
    """Ratio of truthy samples (e.g. failed requests, passed checks)."""

    kind = "rate"

    def _new_series(self) -> _RateSeries:
        return _RateSeries()

    def add(self, value: bool, tags: Mapping[str, Any] | None = None) -> None:
        series = self._series_for(tags)
        series.total += 1
        if value:
            series.passes += 1

    def count(self, tag_filter: Mapping[str, Any] | None = None) -> int:
        return sum(series.total for series in self._matching(tag_filter))

    def passes(self, tag_filter: Mapping[str, Any] | None = None) -> int:
        return sum(series.passes for series in self._matching(tag_filter))

    def rate(self, tag_filter: Mapping[str, Any] | None = None) -> float | None:
        total = self.count(tag_filter)
        if total == 0:
            return None
        return self.passes(tag_filter) / total

    def summary(self) -> dict[str, Any]:
        return {
            "rate": self.rate(),
            "passes": self.passes(),
            "fails": self.count() - self.passes(),
        }


class Counter(Metric):
    """Running sum of added values."""

    kind = "counter"

    def _new_series(self) -> list[float]:
        return [0.0]

    def add(self, value: float = 1, tags: Mapping[str, Any] | None = None) -> None:
        self._series_for(tags)[0] += value

    def count(self, tag_filter: Mapping[str, Any] | None = None) -> float:
        return sum(series[0] for series in self._matching(tag_filter))

    def summary(self) -> dict[str, Any]:
        return {"count": self.count()}


class MetricRegistry:
    """Name → metric lookup; asking twice for the same name returns the same metric."""

    def __init__(self) -> None:
        self._metrics: dict[str, Metric] = {}

    def _get_or_create(self, name: str, metric_cls: type[Metric]) -> Any:
        metric = self._metrics.get(name)
        if metric is None:
            metric = self._metrics[name] = metric_cls(name)
        elif not isinstance(metric, metric_cls):
            raise TypeError(
                f"Metric {name!r} already registered as {metric.kind}, not {metric_cls.kind}"
            )
        return metric

    def trend(self, name: str) -> Trend:
        return self._get_or_create(name, Trend)

    def rate(self, name: str) -> Rate:
        return self._get_or_create(name, Rate)

    def counter(self, name: str) -> Counter:
        return self._get_or_create(name, Counter)

    def get(self, name: str) -> Metric | None:
        return self._metrics.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self._metrics

    def __iter__(self) -> Iterator[Metric]:
        return iter(self._metrics.values())

    def reset(self) -> None:
        """Drop every recorded sample, keeping the registered metrics."""
        for metric in self._metrics.values():
            metric.reset()

    def snapshot(self) -> dict[str, dict[str, Any]]:
        """Return ``{name: {"type": kind, "values": {...}}}`` for JSON output."""
        return {
            metric.name: {"type": metric.kind, "values": metric.summary()}
            for metric in self._metrics.values()
        }


registry = MetricRegistry()

# Built-in metrics fed by the runtime adapter and the validators.
http_req_duration = registry.trend("http_req_duration")
http_req_failed = registry.rate("http_req_failed")
checks = registry.rate("checks")
