"""
Service Level Objectives (SLO) table.

Performance targets per endpoint, expressed as:

- ``p95``: 95th percentile response time (ms)
- ``p99``: 99th percentile response time (ms)
- ``error_rate``: maximum acceptable failure ratio (0.01 = 1 %)

Categorisation:

- READ operations: faster requirements (users waiting on the UI)
- WRITE operations: can be slower (admin/background tasks)
- CRITICAL: endpoints on the critical path (checkout, auth)

The tables are process-wide constants; :mod:`loadtest.thresholds`
turns them into pass/fail rules.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType


@dataclass(frozen=True)
class EndpointSLO:
    """Latency and error-rate targets for one (domain, operation) pair."""

    p95: int
    p99: int
    error_rate: float

    def __post_init__(self) -> None:
        if self.p95 <= 0 or self.p99 <= 0:
            raise ValueError("SLO latency targets must be positive milliseconds")
        if self.p99 < self.p95:
            raise ValueError("SLO p99 target must not be lower than p95")
        if not 0.0 <= self.error_rate <= 1.0:
            raise ValueError("SLO error_rate must be a fraction in [0, 1]")


def _frozen(table: dict[str, dict[str, EndpointSLO]]) -> Mapping[str, Mapping[str, EndpointSLO]]:
    return MappingProxyType({domain: MappingProxyType(ops) for domain, ops in table.items()})


DEFAULT_SLO: Mapping[str, EndpointSLO] = MappingProxyType(
    {
        "read": EndpointSLO(p95=500, p99=1000, error_rate=0.01),
        "write": EndpointSLO(p95=1000, p99=2500, error_rate=0.02),
        "critical": EndpointSLO(p95=200, p99=500, error_rate=0.005),
    }
)

ENDPOINT_SLO: Mapping[str, Mapping[str, EndpointSLO]] = _frozen(
    {
        # Authentication - critical path
        "auth": {
            "login": EndpointSLO(p95=300, p99=800, error_rate=0.005),
            "logout": EndpointSLO(p95=200, p99=500, error_rate=0.01),
        },
        # Users - standard CRUD
        "users": {
            "list": EndpointSLO(p95=500, p99=1000, error_rate=0.01),
            "details": EndpointSLO(p95=200, p99=500, error_rate=0.01),
            "create": EndpointSLO(p95=1000, p99=2000, error_rate=0.02),
            "update": EndpointSLO(p95=800, p99=1500, error_rate=0.02),
            "delete": EndpointSLO(p95=500, p99=1000, error_rate=0.02),
        },
        # Products - read-heavy
        "products": {
            "list": EndpointSLO(p95=300, p99=800, error_rate=0.01),
            "search": EndpointSLO(p95=500, p99=1200, error_rate=0.01),
            "details": EndpointSLO(p95=150, p99=400, error_rate=0.01),
        },
    }
)


def get_slo(domain: str, operation: str) -> EndpointSLO:
    """
    Look up the SLO for a (domain, operation) pair.

    Raises:
        KeyError: If the pair is not in :data:`ENDPOINT_SLO`.
    """
    try:
        return ENDPOINT_SLO[domain][operation]
    except KeyError:
        raise KeyError(f"No SLO defined for {domain}.{operation}") from None
