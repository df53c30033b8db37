"""
Locust entrypoint: POST endpoint test (product creation).

Writes run with 30 % of the profile's users (at least one).
"""

from __future__ import annotations

from loadtest import runtime
from loadtest.config import get_settings
from loadtest.orchestrator import ScenarioShape, single_scenario
from loadtest.scenarios.post_endpoint import CREATE_SLO, WRITE_USER_FRACTION, PostEndpointUser, build_thresholds

__all__ = ["PostEndpointUser", "PostEndpointShape"]

settings = get_settings()
PROFILE = settings.profile.scaled(WRITE_USER_FRACTION)


class PostEndpointShape(ScenarioShape):
    scenarios = (single_scenario("post_endpoint", PostEndpointUser, PROFILE, PostEndpointUser.scenario_tags),)


reporter = runtime.install(
    "post-endpoint",
    build_thresholds(),
    runtime.build_banner(settings, PROFILE, SLO=CREATE_SLO),
)
