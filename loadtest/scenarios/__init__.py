"""
Locust user classes and the scenario functions behind them.

- :mod:`~loadtest.scenarios.get_endpoint` -- product list / details reads
- :mod:`~loadtest.scenarios.post_endpoint` -- product creation and validation
- :mod:`~loadtest.scenarios.crud` -- full create-to-delete lifecycle
- :mod:`~loadtest.scenarios.mixed` -- single-pool users for orchestrated runs
"""
