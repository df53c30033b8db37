"""
Load-testing harness for REST APIs (Locust-based).

Contains the environment/profile configuration, the SLO table and
threshold builder, a thin HTTP facade over Locust's session, reusable
response validators, the concrete Locust scenarios, and the runners
that launch them individually, sequentially or in parallel.

Virtual-user scheduling, request statistics and percentile computation
are Locust's job; this package only declares *what* to run and *which*
thresholds decide pass/fail.

Key Concepts Demonstrated:
- Weighted scenario pools (70 % list / 20 % details / 10 % create)
- SLO table translated into tag-scoped pass/fail thresholds
- Linear CRUD lifecycle with create-failure short-circuiting
- Non-zero exit code whenever a threshold is breached
"""

__version__ = "0.1.0"
