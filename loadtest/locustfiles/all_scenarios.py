"""
Locust entrypoint: all scenarios at once.

Runs the list, details and create pools side by side with a 70/20/10
user split (create delayed by 10 s) and gates the run on global,
per-scenario and per-operation thresholds.

Usage::

    PROFILE=MEDIUM HOST=STAGING locust -f loadtest/locustfiles/all_scenarios.py --headless
"""

from __future__ import annotations

from loadtest import runtime
from loadtest.config import get_settings
from loadtest.orchestrator import ScenarioShape, build_scenarios, build_thresholds
from loadtest.scenarios.mixed import ProductCreateUser, ProductDetailsUser, ProductListUser

__all__ = ["ProductListUser", "ProductDetailsUser", "ProductCreateUser", "AllScenariosShape"]

settings = get_settings()
SCENARIOS = build_scenarios(settings.profile)


class AllScenariosShape(ScenarioShape):
    scenarios = SCENARIOS


reporter = runtime.install(
    "all-scenarios",
    build_thresholds(),
    runtime.build_banner(
        settings,
        Pools=", ".join(f"{spec.name}={spec.virtual_users}" for spec in SCENARIOS),
    ),
)
