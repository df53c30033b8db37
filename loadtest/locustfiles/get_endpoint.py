"""
Locust entrypoint: GET endpoint test (product list and details).

Runs the profile's full user count, 70 % list and 30 % details requests.
"""

from __future__ import annotations

from loadtest import runtime
from loadtest.config import get_settings
from loadtest.orchestrator import ScenarioShape, single_scenario
from loadtest.scenarios.get_endpoint import GetEndpointUser, build_thresholds
from loadtest.slo import ENDPOINT_SLO

__all__ = ["GetEndpointUser", "GetEndpointShape"]

settings = get_settings()
PROFILE = settings.profile


class GetEndpointShape(ScenarioShape):
    scenarios = (single_scenario("get_endpoint", GetEndpointUser, PROFILE, GetEndpointUser.scenario_tags),)


reporter = runtime.install(
    "get-endpoint",
    build_thresholds(),
    runtime.build_banner(settings, PROFILE, SLO=ENDPOINT_SLO["products"]["list"]),
)
