"""
Unit tests for the threshold builder, generators and evaluator.
"""

import pytest

from loadtest.metrics import MetricRegistry
from loadtest.slo import ENDPOINT_SLO, EndpointSLO
from loadtest.thresholds import (
    ThresholdSet,
    generate_custom_thresholds,
    generate_scenario_thresholds,
    generate_thresholds,
    parse_threshold,
    threshold,
)

pytestmark = pytest.mark.unit


def test_threshold_key_and_expression_serialisation():
    rule = threshold("http_req_duration", "p(95)", "<", 300, {"test_type": "get-list"})

    assert rule.key == "http_req_duration{test_type:get-list}"
    assert rule.expression == "p(95)<300"
    assert str(rule) == "http_req_duration{test_type:get-list}: p(95)<300"


def test_threshold_tags_are_sorted():
    rule = threshold("http_req_failed", "rate", "<", 0.02, {"operation": "read", "method": "GET"})

    assert rule.key == "http_req_failed{method:GET,operation:read}"


def test_parse_threshold_is_inverse_of_serialisation():
    rule = threshold("http_req_duration", "p(99)", "<", 800, {"test_type": "get-list"})

    assert parse_threshold(rule.key, rule.expression) == rule
    assert parse_threshold("checks", "rate > 0.95") == threshold("checks", "rate", ">", 0.95)


@pytest.mark.parametrize(
    ("key", "expression"),
    [("http_req_duration", "p95<300"), ("http_req_duration", "p(95)~300"), ("bad key!", "rate<1"), ("m{tag}", "rate<1")],
)
def test_parse_threshold_rejects_malformed_input(key, expression):
    with pytest.raises(ValueError):
        parse_threshold(key, expression)


def test_generate_thresholds_from_slo():
    thresholds = generate_thresholds(ENDPOINT_SLO["products"]["list"])

    assert thresholds.to_dict() == {
        "http_req_duration": ["p(95)<300", "p(99)<800"],
        "http_req_failed": ["rate<0.01"],
        "checks": ["rate>0.95"],
    }


def test_generate_custom_thresholds_adds_prefixed_duration():
    thresholds = generate_custom_thresholds(EndpointSLO(200, 500, 0.01), "crud_read")

    assert thresholds.to_dict()["crud_read_duration"] == ["p(95)<200", "p(99)<500"]
    assert "checks" in thresholds


def test_generate_scenario_thresholds_scopes_by_tag():
    thresholds = generate_scenario_thresholds(EndpointSLO(150, 400, 0.01), "write", tag_key="operation")

    assert thresholds.keys() == ["http_req_duration{operation:write}", "http_req_failed{operation:write}"]


def test_update_replaces_rules_per_key():
    # Arrange
    base = generate_thresholds(EndpointSLO(300, 800, 0.01))
    override = ThresholdSet([threshold("checks", "rate", ">", 0.90)])

    # Act
    merged = base | override

    # Assert
    assert merged.to_dict()["checks"] == ["rate>0.9"]
    assert base.to_dict()["checks"] == ["rate>0.95"]
    assert len(merged) == 4


def test_from_dict_accepts_single_string_rules():
    thresholds = ThresholdSet.from_dict({"http_req_failed": "rate<0.05", "http_req_duration": ["p(95)<2000"]})

    assert thresholds.to_dict() == {"http_req_failed": ["rate<0.05"], "http_req_duration": ["p(95)<2000"]}


def test_evaluate_against_registry():
    # Arrange
    registry = MetricRegistry()
    duration = registry.trend("http_req_duration")
    failed = registry.rate("http_req_failed")
    for _ in range(10):
        duration.add(100, {"test_type": "get-list"})
        duration.add(900, {"test_type": "create"})
        failed.add(False, {"operation": "read"})
    failed.add(True, {"operation": "write"})

    thresholds = ThresholdSet(
        [
            threshold("http_req_duration", "p(95)", "<", 300, {"test_type": "get-list"}),
            threshold("http_req_duration", "p(95)", "<", 300, {"test_type": "create"}),
            threshold("http_req_failed", "rate", "<", 0.02, {"operation": "read"}),
            threshold("http_req_failed", "rate", "<", 0.05, {"operation": "write"}),
        ]
    )

    # Act
    results = thresholds.evaluate(registry)

    # Assert
    assert [result.passed for result in results] == [True, False, True, False]
    assert results[0].observed == 100
    assert results[1].to_dict() == {
        "metric": "http_req_duration{test_type:create}",
        "threshold": "p(95)<300",
        "observed": 900,
        "passed": False,
    }


def test_metrics_without_samples_pass():
    registry = MetricRegistry()
    registry.trend("crud_read_duration")

    results = ThresholdSet(
        [
            threshold("crud_read_duration", "p(95)", "<", 500),
            threshold("never_registered", "count", "<", 1),
        ]
    ).evaluate(registry)

    assert all(result.passed for result in results)
    assert all(result.observed is None for result in results)


def test_counter_threshold():
    registry = MetricRegistry()
    registry.counter("crud_full_flow_failed").add(50)

    (result,) = ThresholdSet([threshold("crud_full_flow_failed", "count", "<", 50)]).evaluate(registry)

    assert result.passed is False
    assert result.observed == 50


def test_aggregate_must_fit_metric_kind():
    registry = MetricRegistry()
    registry.rate("checks").add(True)

    with pytest.raises(ValueError):
        threshold("checks", "p(95)", "<", 1).evaluate(registry)


def test_invalid_operator_or_aggregate_rejected():
    with pytest.raises(ValueError):
        threshold("checks", "rate", "=<", 1)
    with pytest.raises(ValueError):
        threshold("checks", "mean", "<", 1)
