"""
POST endpoint scenario: product creation.

Measures response time of the create endpoint under load, validates the
created resource, and probes validation behaviour.  The traffic split is:

- **80 % valid creates** — minimal, standard or complex payloads
- **15 % invalid payloads** — empty payload, empty name, 1000-char name;
  each must be rejected with a 4xx carrying an error message
- **5 % bulk creates** — 5, 10 or 25 products to ``/products/bulk``

Writes run with a fraction of the profile's users and a longer
think-time than reads.
"""

from __future__ import annotations

import random
from typing import Any

from locust import between, task
from locust.clients import HttpSession

from loadtest import http_client, metrics
from loadtest.checks import check, check_post_endpoint
from loadtest.config import ApiPaths
from loadtest.helpers import WeightedChoice, create_product_payload, log_error, random_string, run_weighted
from loadtest.scenarios.base import ApiUser
from loadtest.slo import ENDPOINT_SLO
from loadtest.thresholds import ThresholdSet, generate_thresholds, threshold

# Share of the base profile's virtual users used for write traffic.
WRITE_USER_FRACTION = 0.3

CREATE_SLO = ENDPOINT_SLO["users"]["create"]

create_requests = metrics.registry.counter("post_create_requests")
create_errors = metrics.registry.counter("post_create_errors")
create_duration = metrics.registry.trend("post_create_duration")
created_items = metrics.registry.counter("post_created_items")


def _minimal_payload() -> dict[str, Any]:
    return {"name": f"Product {random_string(5)}"}


def _complex_payload() -> dict[str, Any]:
    return create_product_payload(
        description=random_string(200),
        tags=["tag1", "tag2", "tag3"],
        attributes={"color": "red", "size": "large", "weight": random.randint(1, 100)},
    )


PAYLOAD_TYPES = (
    ("minimal", _minimal_payload),
    ("standard", create_product_payload),
    ("complex", _complex_payload),
)

INVALID_PAYLOADS = (
    ({}, "empty payload"),
    ({"name": ""}, "empty name"),
    ({"name": "a" * 1000}, "too long name"),
)

BULK_BATCH_SIZES = (5, 10, 25)


def create_product(client: HttpSession) -> Any:
    """
    POST one product with a randomly chosen payload shape.

    Returns:
        The created product's ID, or ``None`` if creation failed.
    """
    payload_type, generator = random.choice(PAYLOAD_TYPES)
    outcome = http_client.timed(
        http_client.post,
        client,
        ApiPaths.PRODUCTS,
        generator(),
        "ADMIN",
        "post-create",
        name="/products [POST]",
    )

    create_requests.add(1)
    create_duration.add(outcome.elapsed_ms)

    if not outcome.ok:
        create_errors.add(1)
        log_error("post-create", f"Failed with status {outcome.status_code} for {payload_type} payload")
    else:
        created_items.add(1)

    check(
        outcome,
        {
            "status is 2xx": lambda o: o.ok,
            f"{payload_type} payload accepted": lambda o: o.ok,
            "response time acceptable": lambda o: o.elapsed_ms < CREATE_SLO.p95,
        },
    )

    created_id = http_client.extract_id(outcome.response)
    if outcome.ok:
        check_post_endpoint(outcome.response, ["id"], "product-create")
        check(created_id, {"created resource has valid id": lambda value: value is not None})
    return created_id


def submit_invalid_product(client: HttpSession) -> http_client.RequestOutcome:
    """POST an invalid payload; expect a 4xx with an error/message/errors field."""
    payload, description = random.choice(INVALID_PAYLOADS)
    outcome = http_client.timed(
        http_client.post,
        client,
        ApiPaths.PRODUCTS,
        payload,
        "ADMIN",
        "post-invalid",
        name="/products [POST] invalid",
        expected_statuses=range(400, 500),
    )

    check(
        outcome,
        {
            f"{description}: returns 4xx": lambda o: 400 <= o.status_code < 500,
            f"{description}: has error message": lambda o: isinstance(o.body, dict)
            and any(key in o.body for key in ("message", "error", "errors")),
        },
    )
    return outcome


def bulk_create_products(client: HttpSession) -> http_client.RequestOutcome:
    """POST a batch of products to the bulk endpoint, if the API supports one."""
    batch_size = random.choice(BULK_BATCH_SIZES)
    items = [create_product_payload() for _ in range(batch_size)]
    outcome = http_client.timed(
        http_client.post,
        client,
        ApiPaths.PRODUCTS_BULK,
        {"items": items},
        "ADMIN",
        "post-bulk",
        name="/products/bulk [POST]",
    )

    check(
        outcome,
        {
            "bulk create status is 2xx": lambda o: o.ok,
            f"batch of {batch_size} items processed": lambda o: o.ok,
            # Bulk requests get twice the single-create p99 budget.
            "bulk response time acceptable": lambda o: o.elapsed_ms < CREATE_SLO.p99 * 2,
        },
    )
    return outcome


def build_thresholds() -> ThresholdSet:
    """SLO-derived thresholds for the POST endpoint test."""
    return generate_thresholds(CREATE_SLO).update(
        ThresholdSet(
            [
                threshold("post_create_duration", "p(95)", "<", CREATE_SLO.p95),
                threshold("post_create_duration", "p(99)", "<", CREATE_SLO.p99),
                threshold("post_create_errors", "count", "<", 20),
                # More tolerant than the read default for write operations.
                threshold("checks", "rate", ">", 0.90),
            ]
        )
    )


class PostEndpointUser(ApiUser):
    """Write user: 80 % valid creates, 15 % invalid payloads, 5 % bulk creates."""

    wait_time = between(2, 6)
    scenario_tags = {"test_type": "post-endpoint", "operation": "write"}

    def on_start(self) -> None:
        super().on_start()
        self.actions = WeightedChoice(
            [
                (0.80, lambda: create_product(self.client)),
                (0.15, lambda: submit_invalid_product(self.client)),
                (0.05, lambda: bulk_create_products(self.client)),
            ]
        )

    @task
    def write_products(self) -> None:
        """Run one create, invalid-payload or bulk request, chosen by weight."""
        run_weighted(self.actions)
