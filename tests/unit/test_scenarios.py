"""
Unit tests for the GET and POST scenario functions.
"""

import pytest

from loadtest import metrics
from loadtest.scenarios import get_endpoint, post_endpoint
from tests.conftest import FakeClient, FakeResponse

pytestmark = pytest.mark.unit


def test_list_products_passes_all_checks(product_data):
    # Arrange
    client = FakeClient([FakeResponse(200, {"items": [product_data]})])

    # Act
    outcome = get_endpoint.list_products(client)

    # Assert
    assert outcome.status_code == 200
    assert "/products?pageNumber=" in client.calls[0]["url"]
    assert client.calls[0]["name"] == "/products [GET]"
    assert metrics.checks.rate() == 1.0
    assert get_endpoint.list_requests.count() == 1
    assert get_endpoint.list_errors.count() == 0
    assert get_endpoint.list_duration.count() == 1


def test_list_products_empty_page_fails_only_items_not_empty():
    client = FakeClient([FakeResponse(200, {"items": []})])

    get_endpoint.list_products(client)

    assert metrics.checks.rate({"check": "status is 200"}) == 1.0
    assert metrics.checks.rate({"check": "products: items not empty"}) == 0.0
    assert metrics.checks.rate({"check": "products: has items array"}) == 1.0


def test_list_products_error_counts_and_skips_structure_checks():
    client = FakeClient([FakeResponse(503, text="unavailable")])

    get_endpoint.list_products(client)

    assert get_endpoint.list_errors.count() == 1
    assert not metrics.checks.has_samples({"check": "products: has items array"})


def test_product_details_uses_fallback_ids():
    client = FakeClient([FakeResponse(200, {"id": 2, "name": "x"})])

    get_endpoint.product_details(client, [])

    assert client.calls[0]["url"].rsplit("/", 1)[-1] in {"1", "2", "3"}
    assert get_endpoint.details_requests.count() == 1


def test_fetch_product_ids_skips_items_without_id():
    client = FakeClient([FakeResponse(200, {"items": [{"id": 7}, {"name": "no id"}, {"id": 9}]})])

    assert get_endpoint.fetch_product_ids(client) == [7, 9]
    assert client.calls[0]["url"].endswith("/products?pageSize=10")


def test_fetch_product_ids_keeps_zero_id():
    client = FakeClient([FakeResponse(200, {"items": [{"id": 0}, {"id": None}, {"id": 3}]})])

    assert get_endpoint.fetch_product_ids(client) == [0, 3]


def test_get_endpoint_thresholds_override_generated_defaults():
    thresholds = get_endpoint.build_thresholds().to_dict()

    assert thresholds["http_req_duration"] == ["p(95)<300", "p(99)<800"]
    assert thresholds["get_list_duration"] == ["p(95)<300", "p(99)<800"]
    assert thresholds["get_details_duration"] == ["p(95)<150"]
    assert thresholds["get_list_errors"] == ["count<50"]


def test_create_product_returns_created_id():
    client = FakeClient([FakeResponse(201, {"id": 77, "name": "Product abc"})])

    created_id = post_endpoint.create_product(client)

    assert created_id == 77
    assert client.calls[0]["method"] == "POST"
    assert client.calls[0]["headers"]["Authorization"] == "Bearer admin-token"
    assert post_endpoint.created_items.count() == 1
    assert post_endpoint.create_errors.count() == 0


def test_create_product_failure_counts_error():
    client = FakeClient([FakeResponse(500, text="boom")])

    assert post_endpoint.create_product(client) is None
    assert post_endpoint.create_errors.count() == 1
    assert metrics.checks.rate({"check": "status is 2xx"}) == 0.0


def test_invalid_payload_rejection_checks_status_and_message_independently(monkeypatch):
    # Arrange: always pick the empty payload.
    monkeypatch.setattr(post_endpoint.random, "choice", lambda seq: seq[0])
    response = FakeResponse(400, {"error": "name is required"})
    client = FakeClient([response])

    # Act
    post_endpoint.submit_invalid_product(client)

    # Assert
    assert client.calls[0]["json"] == {}
    assert response.marked == "success"
    assert metrics.checks.rate({"check": "empty payload: returns 4xx"}) == 1.0
    assert metrics.checks.rate({"check": "empty payload: has error message"}) == 1.0


def test_invalid_payload_accepted_fails_4xx_check(monkeypatch):
    monkeypatch.setattr(post_endpoint.random, "choice", lambda seq: seq[1])
    response = FakeResponse(201, {"id": 1, "name": ""})
    client = FakeClient([response])

    post_endpoint.submit_invalid_product(client)

    assert response.marked == "failure"
    assert metrics.checks.rate({"check": "empty name: returns 4xx"}) == 0.0
    assert metrics.checks.rate({"check": "empty name: has error message"}) == 0.0


def test_bulk_create_posts_batch(monkeypatch):
    monkeypatch.setattr(post_endpoint.random, "choice", lambda seq: seq[0])
    client = FakeClient([FakeResponse(201, {"created": 5})])

    post_endpoint.bulk_create_products(client)

    assert client.calls[0]["url"].endswith("/products/bulk")
    assert len(client.calls[0]["json"]["items"]) == 5


def test_post_endpoint_thresholds():
    thresholds = post_endpoint.build_thresholds().to_dict()

    assert thresholds["http_req_duration"] == ["p(95)<1000", "p(99)<2000"]
    assert thresholds["checks"] == ["rate>0.9"]
    assert thresholds["post_create_errors"] == ["count<20"]
