"""
Locust entrypoint: CRUD lifecycle test.

Each iteration creates, reads, updates, re-reads, deletes and verifies
one product.  Runs with half of the profile's users (at least one).
"""

from __future__ import annotations

from loadtest import runtime
from loadtest.config import get_settings
from loadtest.orchestrator import ScenarioShape, single_scenario
from loadtest.scenarios.crud import CRUD_USER_FRACTION, READ_SLO, WRITE_SLO, CrudUser, build_thresholds

__all__ = ["CrudUser", "CrudShape"]

settings = get_settings()
PROFILE = settings.profile.scaled(CRUD_USER_FRACTION)


class CrudShape(ScenarioShape):
    scenarios = (single_scenario("crud", CrudUser, PROFILE, CrudUser.scenario_tags),)


reporter = runtime.install(
    "crud-operations",
    build_thresholds(),
    runtime.build_banner(settings, PROFILE, **{"Read SLO": READ_SLO, "Write SLO": WRITE_SLO}),
)
