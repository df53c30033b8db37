"""
Scenario orchestration: weighted virtual-user pools on one timeline.

The all-scenarios run splits a load profile's virtual users into three
concurrent pools:

=============  ======  ===========  ===========================
Pool           Share   Start        Tags
=============  ======  ===========  ===========================
get_list       70 %    0 s          test_type=get-list, read
get_details    20 %    0 s          test_type=get-details, read
create         10 %    10 s         test_type=create, write
=============  ======  ===========  ===========================

The create pool always gets at least one user and starts late so the
first writes do not contend with the read ramp-up.  Each pool holds its
user count constant for the profile duration.

Locust runs the timeline through :class:`ScenarioShape`.  Pool sizes reach
it through each user class's ``fixed_count``, which Locust only honours
on the first dispatch, so every pool is spawned at t=0 and the window is
enforced by the users themselves (``start_offset`` / ``stop_at`` on
:class:`~loadtest.scenarios.base.ApiUser`).

Key Concepts Demonstrated:
- Integer VU allocation that never exceeds the profile budget
- Locust ``LoadTestShape`` driving several user classes on staggered windows
- Global, scenario-tagged and operation-tagged thresholds in one set
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, ClassVar

from locust import LoadTestShape
from locust.util.timespan import parse_timespan

from loadtest.config import LoadProfile, get_profile
from loadtest.scenarios.mixed import ProductCreateUser, ProductDetailsUser, ProductListUser
from loadtest.slo import ENDPOINT_SLO
from loadtest.thresholds import ThresholdSet, threshold

logger = logging.getLogger(__name__)

CREATE_START_OFFSET_SECONDS = 10


@dataclass(frozen=True)
class ScenarioSpec:
    """
    One constant-VU pool on the run timeline.

    Attributes:
        name: Pool name used in logs and banners.
        user_class: Locust user class the pool spawns.
        weight: Share of the profile's virtual users (0-1).
        virtual_users: Users held for the whole window.
        duration: Window length as a timespan string (``60s``, ``5m``).
        start_offset: Seconds after run start at which the window opens.
        tags: Tags the pool's requests carry.
        min_users: Lower bound applied during allocation.
        executor: Scheduling model; only ``constant-vus`` is supported.
    """

    name: str
    user_class: type
    weight: float
    virtual_users: int = 0
    duration: str = "60s"
    start_offset: int = 0
    tags: Mapping[str, str] = field(default_factory=dict)
    min_users: int = 0
    executor: str = "constant-vus"

    @property
    def duration_seconds(self) -> int:
        return parse_timespan(self.duration)

    @property
    def end(self) -> int:
        """Run time in seconds at which the window closes."""
        return self.start_offset + self.duration_seconds

    def bind(self) -> None:
        """Push the pool size and window onto the user class."""
        self.user_class.fixed_count = self.virtual_users
        self.user_class.start_offset = self.start_offset
        self.user_class.stop_at = self.end


def allocate_virtual_users(
    total: int, weights: Sequence[float], minimums: Sequence[int] | None = None
) -> list[int]:
    """
    Split *total* users across pools by *weights*.

    Shares are floored, raised to their minimum, trimmed from the largest
    pools if the minimums pushed the sum over *total*, and any remainder
    goes to the heaviest pool.

    Args:
        total: The profile's virtual-user budget.
        weights: Relative pool weights (need not sum to 1).
        minimums: Per-pool lower bounds; defaults to 0 everywhere.

    Returns:
        Users per pool, index-aligned with *weights*.  The sum never
        exceeds *total* unless the minimums alone do.

    Example::

        allocate_virtual_users(10, [0.7, 0.2, 0.1], [0, 0, 1])  # [7, 2, 1]
        allocate_virtual_users(1, [0.7, 0.2, 0.1], [0, 0, 1])   # [0, 0, 1]
    """
    if total < 0:
        raise ValueError("total must be >= 0")
    if not weights:
        return []

    minimums = list(minimums or [0] * len(weights))
    if len(minimums) != len(weights):
        raise ValueError("weights and minimums must have the same length")

    weight_sum = sum(weights)
    if weight_sum <= 0:
        raise ValueError("weights must sum to a positive number")

    shares = [math.floor(round(total * weight / weight_sum, 6)) for weight in weights]
    shares = [max(share, minimum) for share, minimum in zip(shares, minimums)]

    overshoot = sum(shares) - total
    while overshoot > 0:
        trimmable = [i for i, share in enumerate(shares) if share > minimums[i]]
        if not trimmable:
            break
        largest = max(trimmable, key=lambda i: shares[i])
        shares[largest] -= 1
        overshoot -= 1

    remainder = total - sum(shares)
    if remainder > 0:
        heaviest = max(range(len(weights)), key=lambda i: weights[i])
        shares[heaviest] += remainder

    return shares


# Pool layout: (name, user class, weight, start offset, tags, minimum users).
POOLS: tuple[tuple[str, type, float, int, dict[str, str], int], ...] = (
    ("get_list", ProductListUser, 0.7, 0, {"test_type": "get-list", "operation": "read"}, 0),
    ("get_details", ProductDetailsUser, 0.2, 0, {"test_type": "get-details", "operation": "read"}, 0),
    (
        "create",
        ProductCreateUser,
        0.1,
        CREATE_START_OFFSET_SECONDS,
        {"test_type": "create", "operation": "write"},
        1,
    ),
)


def build_scenarios(profile: LoadProfile | None = None) -> list[ScenarioSpec]:
    """
    Lay out the three weighted pools for *profile*.

    Also binds each pool to its user class: ``fixed_count`` tells Locust
    the per-class user count, ``start_offset`` / ``stop_at`` the window
    the users keep to.

    Args:
        profile: Load profile to split; defaults to the configured one.
    """
    profile = profile or get_profile()
    users = allocate_virtual_users(
        profile.virtual_users,
        [pool[2] for pool in POOLS],
        [pool[5] for pool in POOLS],
    )

    scenarios = []
    for (name, user_class, weight, offset, tags, minimum), count in zip(POOLS, users):
        spec = ScenarioSpec(
            name=name,
            user_class=user_class,
            weight=weight,
            virtual_users=count,
            duration=profile.duration,
            start_offset=offset,
            tags=tags,
            min_users=minimum,
        )
        spec.bind()
        scenarios.append(spec)
    logger.debug("Scenario pools: %s", {s.name: s.virtual_users for s in scenarios})
    return scenarios


def single_scenario(name: str, user_class: type, profile: LoadProfile, tags: Mapping[str, str]) -> ScenarioSpec:
    """One pool running all of *profile*'s users for the whole run."""
    spec = ScenarioSpec(
        name=name,
        user_class=user_class,
        weight=1.0,
        virtual_users=profile.virtual_users,
        duration=profile.duration,
        tags=tags,
        min_users=1,
    )
    spec.bind()
    return spec


def build_thresholds() -> ThresholdSet:
    """Global, per-scenario and per-operation thresholds for the all-scenarios run."""
    list_slo = ENDPOINT_SLO["products"]["list"]
    details_slo = ENDPOINT_SLO["products"]["details"]
    create_slo = ENDPOINT_SLO["users"]["create"]

    return ThresholdSet(
        [
            threshold("http_req_failed", "rate", "<", 0.05),
            threshold("http_req_duration", "p(95)", "<", 2000),
            threshold("checks", "rate", ">", 0.90),
            threshold("http_req_duration", "p(95)", "<", list_slo.p95, {"test_type": "get-list"}),
            threshold("http_req_duration", "p(99)", "<", list_slo.p99, {"test_type": "get-list"}),
            threshold("http_req_duration", "p(95)", "<", details_slo.p95, {"test_type": "get-details"}),
            threshold("http_req_duration", "p(99)", "<", details_slo.p99, {"test_type": "get-details"}),
            threshold("http_req_duration", "p(95)", "<", create_slo.p95, {"test_type": "create"}),
            threshold("http_req_duration", "p(99)", "<", create_slo.p99, {"test_type": "create"}),
            threshold("http_req_failed", "rate", "<", 0.02, {"operation": "read"}),
            threshold("http_req_failed", "rate", "<", 0.05, {"operation": "write"}),
        ]
    )


class ScenarioShape(LoadTestShape):
    """
    Run a list of :class:`ScenarioSpec` windows side by side.

    Every non-empty pool is spawned on the first tick and the user count
    stays at their sum until the last window has closed, when the run
    stops.  The class list never changes mid-run: Locust sizes
    ``fixed_count`` classes on the first dispatch only, so a class added
    later would get no users.  Each pool keeps to its own window through
    the ``start_offset`` / ``stop_at`` its user class was bound to.

    Subclasses set :attr:`scenarios` (and optionally :attr:`spawn_rate`).
    """

    abstract = True

    scenarios: ClassVar[Sequence[ScenarioSpec]] = ()
    # ``None`` starts every user within one second.
    spawn_rate: ClassVar[float | None] = None

    def tick(self) -> tuple[Any, ...] | None:
        pools = [spec for spec in self.scenarios if spec.virtual_users > 0]
        if not pools or self.get_run_time() >= max(spec.end for spec in pools):
            return None

        users = sum(spec.virtual_users for spec in pools)
        return users, self.spawn_rate or users, [spec.user_class for spec in pools]
