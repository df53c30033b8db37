"""
Shared abstract Locust user class for load-test scenarios.

:class:`ApiUser` wires the process-wide settings into Locust: the
default host comes from ``HOST`` and every request the user makes is
tagged with the class's ``scenario_tags``, through Locust's per-user
request context.  Tag-scoped thresholds such as
``http_req_duration{test_type:get-list}`` are evaluated over those tags.

Users can also be confined to a window of the run timeline
(``start_offset`` / ``stop_at``, set by the orchestrator).  Locust only
sizes ``fixed_count`` classes on the first dispatch, so every pool is
spawned at once and a delayed pool sits in ``on_start`` until its window
opens instead of joining the run later.

Key Concepts Demonstrated:
- ``abstract = True`` so Locust never spawns the base class
- Request tagging via ``HttpUser.context()``
- Human-like think-time between iterations
- ``StopUser`` to retire a user once its window has closed
"""

from __future__ import annotations

import logging
from typing import Any, ClassVar

import gevent
from locust import HttpUser, between
from locust.exception import StopUser

from loadtest.config import get_settings

logger = logging.getLogger(__name__)


def pause(seconds: float) -> None:
    """Yield the virtual user for *seconds* without blocking other greenlets."""
    gevent.sleep(seconds)


class ApiUser(HttpUser):
    """
    Base user for every scenario.

    Attributes:
        scenario_tags: Tags attached to every request (e.g.
            ``{"test_type": "get-list", "operation": "read"}``).
        start_offset: Run time, in seconds, before which the user sends
            nothing.
        stop_at: Run time, in seconds, at which the user retires;
            ``None`` keeps it running until Locust stops the test.
    """

    abstract = True
    host = get_settings().host
    wait_time = between(1, 3)

    scenario_tags: ClassVar[dict[str, str]] = {}
    start_offset: ClassVar[float] = 0
    stop_at: ClassVar[float | None] = None

    def context(self) -> dict[str, Any]:
        """Per-request context merged by Locust into every request event."""
        return dict(self.scenario_tags)

    def on_start(self) -> None:
        self.wait_for_window()

    def run_time(self) -> float | None:
        """Seconds since the load shape started, or ``None`` without a shape."""
        shape = getattr(self.environment, "shape_class", None)
        if shape is None:
            return None
        return shape.get_run_time()

    def wait_for_window(self) -> None:
        """Sleep until ``start_offset`` has been reached."""
        run_time = self.run_time()
        if run_time is not None and run_time < self.start_offset:
            logger.debug("%s waiting %.1fs for its window", type(self).__name__, self.start_offset - run_time)
            pause(self.start_offset - run_time)

    def ensure_in_window(self) -> None:
        """
        Retire the user once ``stop_at`` has passed.

        Raises:
            StopUser: If the run time is at or past ``stop_at``.
        """
        run_time = self.run_time()
        if self.stop_at is not None and run_time is not None and run_time >= self.stop_at:
            logger.debug("%s window closed at %.1fs", type(self).__name__, self.stop_at)
            raise StopUser()
