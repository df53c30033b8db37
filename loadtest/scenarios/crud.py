"""
CRUD lifecycle scenario.

Defines :class:`CrudFlow`, which walks one product through its complete
lifecycle on every iteration::

    CREATE → READ → UPDATE → READ (verify) → DELETE → VERIFY_DELETED

The sequence is strictly linear.  If CREATE fails there is no resource
to operate on, so the iteration stops there and counts as a failed
flow.  Any later failure marks the flow failed but the remaining steps
still run, so every operation keeps producing timing data.  The final
step must see ``404``; a resource that is still readable after a
successful DELETE fails the flow.

Every step records its own duration trend and count, and a fixed
pacing delay separates consecutive steps.

Key Concepts Demonstrated:
- Per-operation custom metrics (``crud_<op>_duration``, ``crud_<op>_count``)
- Flow-level success counted exactly once per iteration
- Expected-404 verification without inflating the failure rate
"""

from __future__ import annotations

import logging
import random
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from locust import task
from locust.clients import HttpSession

from loadtest import http_client, metrics
from loadtest.checks import check
from loadtest.config import ApiPaths
from loadtest.helpers import create_product_payload, log_error, random_string
from loadtest.scenarios.base import ApiUser, pause
from loadtest.slo import DEFAULT_SLO
from loadtest.thresholds import ThresholdSet, threshold

logger = logging.getLogger(__name__)

# Share of the base profile's virtual users used for the CRUD test.
CRUD_USER_FRACTION = 0.5

STEP_PACING_SECONDS = 0.5
CREATE_FAILURE_PAUSE_SECONDS = 1.0

READ_SLO = DEFAULT_SLO["read"]
WRITE_SLO = DEFAULT_SLO["write"]


@dataclass
class CrudMetrics:
    """The custom metrics fed by :class:`CrudFlow`."""

    create_duration: metrics.Trend
    read_duration: metrics.Trend
    update_duration: metrics.Trend
    delete_duration: metrics.Trend
    success_rate: metrics.Rate
    full_flow_success: metrics.Counter
    full_flow_failed: metrics.Counter
    create_count: metrics.Counter
    read_count: metrics.Counter
    update_count: metrics.Counter
    delete_count: metrics.Counter

    @classmethod
    def from_registry(cls, registry: metrics.MetricRegistry) -> CrudMetrics:
        return cls(
            create_duration=registry.trend("crud_create_duration"),
            read_duration=registry.trend("crud_read_duration"),
            update_duration=registry.trend("crud_update_duration"),
            delete_duration=registry.trend("crud_delete_duration"),
            success_rate=registry.rate("crud_success_rate"),
            full_flow_success=registry.counter("crud_full_flow_success"),
            full_flow_failed=registry.counter("crud_full_flow_failed"),
            create_count=registry.counter("crud_create_count"),
            read_count=registry.counter("crud_read_count"),
            update_count=registry.counter("crud_update_count"),
            delete_count=registry.counter("crud_delete_count"),
        )


CRUD_METRICS = CrudMetrics.from_registry(metrics.registry)


@dataclass
class StepResult:
    """Outcome of one CRUD step."""

    success: bool
    data: Any = None


@dataclass
class CrudFlowState:
    """
    Per-iteration state threaded through the lifecycle.

    Attributes:
        created_id: ID returned by CREATE.
        resource_snapshot: Latest known representation of the resource.
        success: ``False`` as soon as any step fails.
        steps: Names of the steps executed, in order.
    """

    created_id: Any = None
    resource_snapshot: Any = None
    success: bool = True
    steps: list[str] = field(default_factory=list)


class CrudFlow:
    """
    One virtual user's CRUD lifecycle runner.

    Args:
        client: The Locust HTTP session.
        crud_metrics: Metrics to record into.
        pacing: Callable used for the delay between steps.
    """

    def __init__(
        self,
        client: HttpSession,
        crud_metrics: CrudMetrics = CRUD_METRICS,
        pacing: Callable[[float], None] = pause,
    ) -> None:
        self.client = client
        self.metrics = crud_metrics
        self.pacing = pacing

    # ---- Steps --------------------------------------------------------

    def create(self) -> StepResult:
        """POST a new product; succeeds on 2xx with an ``id`` in the body."""
        outcome = http_client.timed(
            http_client.post,
            self.client,
            ApiPaths.PRODUCTS,
            create_product_payload(),
            "ADMIN",
            "crud-create",
            name="/products [POST]",
        )
        self.metrics.create_duration.add(outcome.elapsed_ms)
        self.metrics.create_count.add(1)

        created_id = http_client.extract_id(outcome.response)
        success = outcome.ok and created_id is not None

        check(
            outcome,
            {
                "CREATE: status 2xx": lambda o: o.ok,
                "CREATE: has id": lambda _o: created_id is not None,
                "CREATE: response time OK": lambda o: o.elapsed_ms < WRITE_SLO.p95,
            },
        )

        if not success:
            log_error("crud-create", f"Failed with status {outcome.status_code}")

        self.metrics.success_rate.add(success)
        return StepResult(success, {"id": created_id, "body": outcome.body})

    def read(self, resource_id: Any) -> StepResult:
        """GET the product back; succeeds on 200."""
        outcome = http_client.timed(
            http_client.get,
            self.client,
            ApiPaths.product(resource_id),
            "USER",
            "crud-read",
            name="/products/[id] [GET]",
        )
        self.metrics.read_duration.add(outcome.elapsed_ms)
        self.metrics.read_count.add(1)

        success = outcome.status_code == 200
        data = outcome.body

        check(
            outcome,
            {
                "READ: status 200": lambda o: o.status_code == 200,
                "READ: has correct id": lambda _o: isinstance(data, dict)
                and str(data.get("id")) == str(resource_id),
                "READ: response time OK": lambda o: o.elapsed_ms < READ_SLO.p95,
            },
        )

        if not success:
            log_error("crud-read", f"Failed with status {outcome.status_code} for ID {resource_id}")

        self.metrics.success_rate.add(success)
        return StepResult(success, data)

    def update(self, resource_id: Any, original: Any) -> StepResult:
        """PUT a modified copy of *original*; succeeds on 2xx."""
        payload = {
            **(original if isinstance(original, dict) else {}),
            "name": f"Updated {random_string(5)}",
            "price": random.randint(10, 500),
            "updatedAt": datetime.now(timezone.utc).isoformat(),
        }
        outcome = http_client.timed(
            http_client.put,
            self.client,
            ApiPaths.product(resource_id),
            payload,
            "ADMIN",
            "crud-update",
            name="/products/[id] [PUT]",
        )
        self.metrics.update_duration.add(outcome.elapsed_ms)
        self.metrics.update_count.add(1)

        success = outcome.ok
        data = outcome.body

        check(
            outcome,
            {
                "UPDATE: status 2xx": lambda o: o.ok,
                "UPDATE: response time OK": lambda o: o.elapsed_ms < WRITE_SLO.p95,
            },
        )

        if success and isinstance(data, dict):
            check(data, {"UPDATE: name changed": lambda d: d.get("name") == payload["name"]})

        if not success:
            log_error("crud-update", f"Failed with status {outcome.status_code} for ID {resource_id}")

        self.metrics.success_rate.add(success)
        return StepResult(success, data)

    def delete(self, resource_id: Any) -> StepResult:
        """DELETE the product; succeeds on 2xx."""
        outcome = http_client.timed(
            http_client.delete,
            self.client,
            ApiPaths.product(resource_id),
            "ADMIN",
            "crud-delete",
            name="/products/[id] [DELETE]",
        )
        self.metrics.delete_duration.add(outcome.elapsed_ms)
        self.metrics.delete_count.add(1)

        success = outcome.ok

        check(
            outcome,
            {
                "DELETE: status 2xx": lambda o: o.ok,
                "DELETE: response time OK": lambda o: o.elapsed_ms < WRITE_SLO.p95,
            },
        )

        if not success:
            log_error("crud-delete", f"Failed with status {outcome.status_code} for ID {resource_id}")

        self.metrics.success_rate.add(success)
        return StepResult(success)

    def verify_deleted(self, resource_id: Any) -> StepResult:
        """GET the deleted product; only ``404`` counts as deleted."""
        response = http_client.get(
            self.client,
            ApiPaths.product(resource_id),
            "USER",
            "crud-verify-deleted",
            name="/products/[id] [GET] verify-deleted",
            expected_statuses=(404,),
        )
        is_deleted = response.status_code == 404
        check(response, {"VERIFY: resource is deleted (404)": lambda r: r.status_code == 404})
        return StepResult(is_deleted)

    # ---- Flow ---------------------------------------------------------

    def run(self) -> CrudFlowState:
        """Execute one full lifecycle and record its flow-level outcome."""
        state = CrudFlowState()

        state.steps.append("create")
        created = self.create()
        if not created.success:
            state.success = False
            self.metrics.full_flow_failed.add(1)
            self.pacing(CREATE_FAILURE_PAUSE_SECONDS)
            return state

        state.created_id = created.data["id"]
        state.resource_snapshot = created.data["body"]
        self.pacing(STEP_PACING_SECONDS)

        state.steps.append("read")
        read = self.read(state.created_id)
        if read.success:
            state.resource_snapshot = read.data
        else:
            state.success = False
        self.pacing(STEP_PACING_SECONDS)

        state.steps.append("update")
        if not self.update(state.created_id, state.resource_snapshot).success:
            state.success = False
        self.pacing(STEP_PACING_SECONDS)

        state.steps.append("read")
        if not self.read(state.created_id).success:
            state.success = False
        self.pacing(STEP_PACING_SECONDS)

        state.steps.append("delete")
        if not self.delete(state.created_id).success:
            state.success = False
        self.pacing(STEP_PACING_SECONDS)

        state.steps.append("verify_deleted")
        if not self.verify_deleted(state.created_id).success:
            state.success = False
            log_error("crud-flow", f"Resource {state.created_id} still exists after delete")

        if state.success:
            self.metrics.full_flow_success.add(1)
        else:
            self.metrics.full_flow_failed.add(1)

        check(state, {"CRUD flow completed successfully": lambda s: s.success})
        return state


def build_thresholds() -> ThresholdSet:
    """Flow-level and per-operation thresholds for the CRUD test."""
    return ThresholdSet(
        [
            threshold("crud_success_rate", "rate", ">", 0.90),
            threshold("checks", "rate", ">", 0.85),
            threshold("crud_create_duration", "p(95)", "<", WRITE_SLO.p95),
            threshold("crud_read_duration", "p(95)", "<", READ_SLO.p95),
            threshold("crud_update_duration", "p(95)", "<", WRITE_SLO.p95),
            threshold("crud_delete_duration", "p(95)", "<", WRITE_SLO.p95),
            threshold("crud_full_flow_failed", "count", "<", 50),
            threshold("http_req_failed", "rate", "<", 0.05),
        ]
    )


class CrudUser(ApiUser):
    """Run one complete CRUD lifecycle per iteration."""

    scenario_tags = {"test_type": "crud", "operation": "write"}

    @task
    def crud_flow(self) -> None:
        """Create, read, update, re-read, delete and verify one product."""
        state = CrudFlow(self.client).run()
        logger.debug("CRUD flow for %s finished: steps=%s success=%s", state.created_id, state.steps, state.success)
