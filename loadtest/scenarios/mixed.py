"""
Single-purpose users for the orchestrated (all-scenarios) run.

Each class drives one traffic pool with its own tags, so thresholds can
be scoped per pool (``http_req_duration{test_type:get-list}``) and per
kind of operation (``http_req_failed{operation:write}``).  The
orchestrator decides how many of each run and over which window of the
run timeline; every task starts by checking that window.
"""

from __future__ import annotations

from typing import Any

from locust import between, task

from loadtest.scenarios.base import ApiUser
from loadtest.scenarios.get_endpoint import fetch_product_ids, list_products, product_details
from loadtest.scenarios.post_endpoint import create_product


class ProductListUser(ApiUser):
    """Pages through the product list."""

    scenario_tags = {"test_type": "get-list", "operation": "read"}

    @task
    def list_page(self) -> None:
        self.ensure_in_window()
        list_products(self.client)


class ProductDetailsUser(ApiUser):
    """Fetches single products by ID, seeded from the first listing page."""

    scenario_tags = {"test_type": "get-details", "operation": "read"}

    item_ids: list[Any]

    def on_start(self) -> None:
        super().on_start()
        self.item_ids = fetch_product_ids(self.client)

    @task
    def get_details(self) -> None:
        self.ensure_in_window()
        product_details(self.client, self.item_ids)


class ProductCreateUser(ApiUser):
    """Creates products at a lower rate than the readers."""

    wait_time = between(2, 6)
    scenario_tags = {"test_type": "create", "operation": "write"}

    @task
    def create(self) -> None:
        self.ensure_in_window()
        create_product(self.client)
