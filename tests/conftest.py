"""
Shared pytest fixtures for the load-test harness test suite.

No network and no running Locust: scenario functions receive a
:class:`FakeClient` standing in for Locust's ``HttpSession``, and every
test starts from fresh settings and an empty metric registry.

Key Concepts Demonstrated:
- Environment isolation via ``monkeypatch`` + ``lru_cache.cache_clear``
- Fake session/response objects instead of HTTP mocks
- Faker for realistic product payloads
"""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any

import pytest
from faker import Faker

from loadtest import metrics
from loadtest.config import get_settings

# Initialize Faker for generating test data
fake = Faker()


class FakeResponse:
    """
    Minimal stand-in for a Locust response.

    Supports ``json()`` (raising ``ValueError`` for non-JSON bodies, like
    ``requests``), and the ``catch_response`` protocol: use as a context
    manager and mark the outcome with ``success()`` / ``failure()``.
    """

    def __init__(self, status_code: int = 200, payload: Any = None, text: str | None = None):
        self.status_code = status_code
        if text is None:
            text = json.dumps(payload) if payload is not None else ""
        self.text = text
        self.marked: str | None = None
        self.failure_message: str | None = None

    def json(self) -> Any:
        return json.loads(self.text)

    def success(self) -> None:
        self.marked = "success"

    def failure(self, message: str) -> None:
        self.marked = "failure"
        self.failure_message = message

    def __enter__(self) -> FakeResponse:
        return self

    def __exit__(self, *_exc: Any) -> None:
        return None


Handler = Callable[[str, str, dict[str, Any]], FakeResponse]


class FakeClient:
    """
    Records every request and answers from a handler or a response queue.

    Args:
        responses: Responses returned in order; once exhausted, further
            requests get ``200 {}``.
        handler: Alternative to *responses*: called as
            ``handler(method, url, kwargs)``.
    """

    def __init__(
        self,
        responses: list[FakeResponse] | None = None,
        handler: Handler | None = None,
        base_url: str = "",
    ):
        self.base_url = base_url
        self.calls: list[dict[str, Any]] = []
        self._responses = list(responses or [])
        self._handler = handler

    def request(self, method: str, url: str, **kwargs: Any) -> FakeResponse:
        self.calls.append({"method": method, "url": url, **kwargs})
        if self._handler is not None:
            return self._handler(method, url, kwargs)
        if self._responses:
            return self._responses.pop(0)
        return FakeResponse(200, {})

    @property
    def methods(self) -> list[str]:
        return [call["method"] for call in self.calls]


@pytest.fixture(autouse=True)
def test_environment(monkeypatch):
    """
    Pin the run configuration to a local host and known tokens.

    ``get_settings`` is cached per process, so the cache is cleared
    before and after each test.
    """
    monkeypatch.setenv("HOST", "LOCAL")
    monkeypatch.setenv("PROFILE", "LIGHT")
    monkeypatch.setenv("TOKEN_USER", "user-token")
    monkeypatch.setenv("TOKEN_ADMIN", "admin-token")
    monkeypatch.delenv("TOKEN_SUPER_USER", raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture(autouse=True)
def clean_registry():
    """Start every test with no recorded samples in the global registry."""
    metrics.registry.reset()
    yield
    metrics.registry.reset()


@pytest.fixture
def fake_client():
    """Factory for :class:`FakeClient` instances."""
    return FakeClient


@pytest.fixture
def product_data() -> dict[str, Any]:
    """A realistic product as returned by the API."""
    return {
        "id": fake.random_int(min=1, max=10_000),
        "name": fake.catch_phrase(),
        "price": fake.random_int(min=10, max=1000),
    }
