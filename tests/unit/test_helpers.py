"""
Unit tests for URL/header builders, payload factories and weighted choice.
"""

import logging
import random

import pytest

from loadtest.config import UnknownRoleError
from loadtest.helpers import (
    WeightedChoice,
    create_product_payload,
    get_headers,
    get_url,
    log_request_error,
    random_pagination_params,
    random_string,
    run_weighted,
    with_query,
)
from tests.conftest import FakeResponse

pytestmark = pytest.mark.unit


def test_get_url_uses_configured_host():
    assert get_url("/products/1") == "http://localhost:3000/products/1"
    assert get_url("/products", host="https://other.example.com/") == "https://other.example.com/products"


def test_with_query_drops_none_and_encodes():
    assert with_query("/products", {"pageNumber": 1, "q": "a b", "sort": None}) == "/products?pageNumber=1&q=a+b"
    assert with_query("/products", {}) == "/products"


def test_get_headers_for_role():
    headers = get_headers("ADMIN", {"X-Trace": "1"})

    assert headers["Authorization"] == "Bearer admin-token"
    assert headers["Content-Type"] == "application/json"
    assert headers["X-Trace"] == "1"


def test_public_headers_have_no_authorization():
    assert "Authorization" not in get_headers(None)


def test_unknown_role_is_rejected():
    with pytest.raises(UnknownRoleError):
        get_headers("GUEST")


def test_log_request_error_truncates_body(caplog):
    # Arrange
    response = FakeResponse(500, text="x" * 500)

    # Act
    with caplog.at_level(logging.ERROR):
        log_request_error("get-list", response)

    # Assert
    message = caplog.records[-1].getMessage()
    assert message.startswith("[get-list] Request failed with status 500: ")
    assert message.endswith("x" * 200)
    assert "x" * 201 not in message


def test_log_request_error_without_body(caplog):
    with caplog.at_level(logging.ERROR):
        log_request_error("crud-read", FakeResponse(404))

    assert "[crud-read] Request failed with status 404: No body" in caplog.text


def test_random_string_and_payloads():
    assert len(random_string(12)) == 12

    payload = create_product_payload(category="books")
    assert payload["name"].startswith("Product ")
    assert 10 <= payload["price"] <= 1000
    assert payload["category"] == "books"


def test_random_pagination_params_respects_bounds():
    for _ in range(50):
        params = random_pagination_params(max_page=3, max_size=25)
        assert 1 <= params["pageNumber"] <= 3
        assert params["pageSize"] in (10, 25)


def test_weighted_choice_uses_cumulative_weights():
    choice = WeightedChoice([(0.7, "list"), (0.2, "details"), (0.1, "create")])

    assert choice.select(0.0) == "list"
    assert choice.select(0.5) == "list"
    assert choice.select(0.8) == "details"
    assert choice.select(0.95) == "create"
    assert choice.select(0.999999) == "create"
    assert len(choice) == 3


def test_weighted_choice_distribution_is_roughly_proportional():
    choice = WeightedChoice([(7, "a"), (3, "b")])
    rng = random.Random(1234)

    picks = [choice.pick(rng) for _ in range(10_000)]

    assert 0.65 < picks.count("a") / len(picks) < 0.75


def test_zero_weight_option_is_never_selected():
    choice = WeightedChoice([(1, "a"), (0, "never"), (1, "b")])

    assert {choice.select(i / 100) for i in range(100)} == {"a", "b"}


@pytest.mark.parametrize("options", [[], [(-1, "a")], [(0, "a"), (0, "b")]])
def test_weighted_choice_rejects_invalid_weights(options):
    with pytest.raises(ValueError):
        WeightedChoice(options)


def test_run_weighted_calls_selected_handler():
    calls = []
    choice = WeightedChoice([(1, lambda: calls.append("only") or "done")])

    assert run_weighted(choice) == "done"
    assert calls == ["only"]
