"""
Helper utilities for Locust load-test scenarios.

Provides the building blocks every scenario relies on: URL and header
construction, error logging, randomised payload factories, pagination
parameters, and the weighted-choice utility used to split traffic
between actions.  Keeping these in a shared module avoids duplication
across scenario files.

Key Concepts Demonstrated:
- Role-based bearer headers resolved from process-wide settings
- Randomised payloads to defeat server-side caching and exercise
  varied code paths
- Cumulative-probability lookup for weighted traffic splits
"""

from __future__ import annotations

import bisect
import itertools
import logging
import random
import string
from collections.abc import Callable, Mapping, Sequence
from typing import Any, Generic, TypeVar
from urllib.parse import urlencode

from loadtest.config import get_settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

ERROR_BODY_PREVIEW_CHARS = 200


# -----------------------------------------------------------------------------
# URL builders
# -----------------------------------------------------------------------------

def get_url(path: str, host: str | None = None) -> str:
    """
    Build a full URL from an API path.

    Example: ``get_url("/users/123")`` → ``https://api-dev.example.com/users/123``
    """
    base = (host if host is not None else get_settings().host).rstrip("/")
    return f"{base}{path}"


def with_query(path: str, params: Mapping[str, Any] | None = None) -> str:
    """Append URL-encoded *params* to *path*, skipping ``None`` values."""
    query = urlencode({k: v for k, v in (params or {}).items() if v is not None})
    return f"{path}?{query}" if query else path


# -----------------------------------------------------------------------------
# Headers
# -----------------------------------------------------------------------------

def get_public_headers() -> dict[str, str]:
    """JSON headers without authorisation, for public endpoints."""
    return {
        "Accept": "application/json",
        "Content-Type": "application/json",
    }


def get_headers(role: str | None = "USER", extra: Mapping[str, str] | None = None) -> dict[str, str]:
    """
    Build bearer auth headers for *role*.

    Args:
        role: ``USER``, ``ADMIN`` or ``SUPER_USER``; ``None`` builds
            public headers.
        extra: Additional headers merged on top.

    Raises:
        UnknownRoleError: If *role* has no configured token.
    """
    headers = get_public_headers()
    if role is not None:
        headers["Authorization"] = f"Bearer {get_settings().token_for(role)}"
    if extra:
        headers.update(extra)
    return headers


# -----------------------------------------------------------------------------
# Logging
# -----------------------------------------------------------------------------

def log_error(context: str, message: str) -> None:
    """Log an error line tagged with the test *context*."""
    logger.error("[%s] %s", context, message)


def log_request_error(context: str, response: Any) -> None:
    """Log a failed request: status plus the first 200 characters of the body."""
    body = getattr(response, "text", None) or ""
    preview = body[:ERROR_BODY_PREVIEW_CHARS] if body else "No body"
    log_error(context, f"Request failed with status {response.status_code}: {preview}")


# -----------------------------------------------------------------------------
# Random data generators
# -----------------------------------------------------------------------------

def random_string(length: int = 10) -> str:
    """Random alphanumeric string of *length* characters."""
    return "".join(random.choices(string.ascii_letters + string.digits, k=length))


def pagination_params(page_number: int = 1, page_size: int = 50) -> dict[str, int]:
    return {"pageNumber": page_number, "pageSize": page_size}


def random_pagination_params(max_page: int = 10, max_size: int = 100) -> dict[str, int]:
    """Random page number in ``1..max_page`` and a page size from 10/25/50/100."""
    sizes = [size for size in (10, 25, 50, 100) if size <= max_size] or [max_size]
    return pagination_params(random.randint(1, max_page), random.choice(sizes))


def create_product_payload(**overrides: Any) -> dict[str, Any]:
    """
    Build a valid product-create payload with randomised fields.

    Keyword arguments override individual fields, e.g.
    ``create_product_payload(category="books")``.
    """
    payload: dict[str, Any] = {
        "name": f"Product {random_string(5)}",
        "price": random.randint(10, 1000),
        "stock": random.randint(0, 100),
        "category": "general",
    }
    payload.update(overrides)
    return payload


# -----------------------------------------------------------------------------
# Weighted choice
# -----------------------------------------------------------------------------

class WeightedChoice(Generic[T]):
    """
    Pick an option with probability proportional to its weight.

    Options are kept in declaration order and selected by looking up a
    uniform draw in the cumulative weights, so ``[(0.7, a), (0.2, b),
    (0.1, c)]`` maps draws below 0.7 to ``a``, below 0.9 to ``b`` and
    the rest to ``c``.

    Example::

        action = WeightedChoice([(7, list_products), (3, product_details)])
        action.pick()()
    """

    def __init__(self, options: Sequence[tuple[float, T]]) -> None:
        if not options:
            raise ValueError("WeightedChoice needs at least one option")
        if any(weight < 0 for weight, _ in options):
            raise ValueError("WeightedChoice weights must be non-negative")

        self.options: tuple[T, ...] = tuple(option for _, option in options)
        self.cumulative: list[float] = list(itertools.accumulate(weight for weight, _ in options))
        self.total = self.cumulative[-1]
        if self.total <= 0:
            raise ValueError("WeightedChoice needs a positive total weight")

    def select(self, draw: float) -> T:
        """Return the option for a draw in ``[0, 1)``."""
        index = bisect.bisect_right(self.cumulative, draw * self.total)
        return self.options[min(index, len(self.options) - 1)]

    def pick(self, rng: random.Random | None = None) -> T:
        return self.select((rng or random).random())

    def __len__(self) -> int:
        return len(self.options)


def run_weighted(choice: WeightedChoice[Callable[[], T]]) -> T:
    """Pick a handler from *choice* and call it."""
    return choice.pick()()
