"""
Test suite for the load-test harness.

This package contains:
- conftest.py: fake Locust session/response objects and shared fixtures
- unit/: isolated tests for configuration, metrics, thresholds, request
  helpers, scenarios, orchestration and the command-line runners
"""
