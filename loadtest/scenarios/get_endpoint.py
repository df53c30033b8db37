"""
GET endpoint scenario: product list and product details.

Measures response time of the read endpoints under load and validates
the response structure.  The traffic split is:

- **70 % list** — ``GET /products?pageNumber&pageSize`` with a random
  page (1–5) and page size (10/25/50).
- **30 % details** — ``GET /products/{id}`` for an ID seen in a
  listing (fallback IDs 1–3 when the listing was empty).

The same two scenario functions back the dedicated list/details pools
of the orchestrated run in :mod:`loadtest.scenarios.mixed`.
"""

from __future__ import annotations

import random
from collections.abc import Sequence
from typing import Any

from locust import task
from locust.clients import HttpSession

from loadtest import http_client, metrics
from loadtest.checks import check, check_item_response, check_list_response, check_status
from loadtest.config import ApiPaths
from loadtest.helpers import WeightedChoice, log_error, pagination_params, run_weighted
from loadtest.scenarios.base import ApiUser
from loadtest.slo import ENDPOINT_SLO
from loadtest.thresholds import ThresholdSet, generate_thresholds, threshold

FALLBACK_PRODUCT_IDS = (1, 2, 3)

LIST_TEST_CASES = (
    {"page_size": 10, "description": "small page"},
    {"page_size": 25, "description": "medium page"},
    {"page_size": 50, "description": "large page"},
)

list_requests = metrics.registry.counter("get_list_requests")
list_errors = metrics.registry.counter("get_list_errors")
list_duration = metrics.registry.trend("get_list_duration")

details_requests = metrics.registry.counter("get_details_requests")
details_errors = metrics.registry.counter("get_details_errors")
details_duration = metrics.registry.trend("get_details_duration")


def list_products(client: HttpSession) -> http_client.RequestOutcome:
    """GET one random page of products and validate status, list shape and first item."""
    test_case = random.choice(LIST_TEST_CASES)
    outcome = http_client.timed(
        http_client.get_with_params,
        client,
        ApiPaths.PRODUCTS,
        pagination_params(random.randint(1, 5), test_case["page_size"]),
        "USER",
        "get-list",
        name="/products [GET]",
    )

    list_requests.add(1)
    list_duration.add(outcome.elapsed_ms)

    if outcome.status_code != 200:
        list_errors.add(1)
        log_error("get-list", f"Failed with status {outcome.status_code} for {test_case['description']}")

    check_status(outcome.response)

    if outcome.status_code == 200:
        check_list_response(outcome.response, "products")

        items = outcome.body.get("items") if isinstance(outcome.body, dict) else None
        if isinstance(items, list) and items and isinstance(items[0], dict):
            check(
                items[0],
                {
                    "item has id": lambda item: "id" in item,
                    "item has name": lambda item: "name" in item,
                    "item has price": lambda item: "price" in item,
                },
            )
    return outcome


def product_details(client: HttpSession, item_ids: Sequence[Any] | None = None) -> http_client.RequestOutcome:
    """GET one product by ID and validate status and required fields."""
    item_id = random.choice(list(item_ids or FALLBACK_PRODUCT_IDS))
    outcome = http_client.timed(
        http_client.get,
        client,
        ApiPaths.product(item_id),
        "USER",
        "get-details",
        name="/products/[id] [GET]",
    )

    details_requests.add(1)
    details_duration.add(outcome.elapsed_ms)

    if outcome.status_code != 200:
        details_errors.add(1)
        log_error("get-details", f"Failed with status {outcome.status_code} for ID {item_id}")

    check_status(outcome.response)

    if outcome.status_code == 200:
        check_item_response(outcome.response, ["id", "name"], "product-details")
    return outcome


def fetch_product_ids(client: HttpSession, page_size: int = 10) -> list[Any]:
    """List one page of products and return the IDs found, for detail lookups."""
    response = http_client.get_with_params(
        client, ApiPaths.PRODUCTS, {"pageSize": page_size}, "USER", "setup", name="/products [GET] setup"
    )
    return [
        item["id"]
        for item in http_client.extract_items(response)
        if isinstance(item, dict) and item.get("id") is not None
    ]


def build_thresholds() -> ThresholdSet:
    """SLO-derived thresholds for the GET endpoint test."""
    list_slo = ENDPOINT_SLO["products"]["list"]
    details_slo = ENDPOINT_SLO["products"]["details"]
    return generate_thresholds(list_slo).update(
        ThresholdSet(
            [
                threshold("get_list_duration", "p(95)", "<", list_slo.p95),
                threshold("get_list_duration", "p(99)", "<", list_slo.p99),
                threshold("get_list_errors", "count", "<", 50),
                threshold("get_details_duration", "p(95)", "<", details_slo.p95),
                threshold("get_details_errors", "count", "<", 50),
            ]
        )
    )


class GetEndpointUser(ApiUser):
    """
    Read-only user: 70 % list requests, 30 % detail requests.

    Product IDs for the detail requests are collected once in
    ``on_start`` from the first page of the listing.
    """

    scenario_tags = {"test_type": "get-endpoint", "operation": "read"}

    item_ids: list[Any]

    def on_start(self) -> None:
        """Collect real product IDs for detail lookups."""
        super().on_start()
        self.item_ids = fetch_product_ids(self.client)
        self.actions = WeightedChoice(
            [
                (0.7, lambda: list_products(self.client)),
                (0.3, lambda: product_details(self.client, self.item_ids)),
            ]
        )

    @task
    def read_products(self) -> None:
        """Run one list or details request, chosen by weight."""
        run_weighted(self.actions)
