"""
HTTP facade over Locust's ``HttpSession``.

Thin wrappers for GET/POST/PUT/PATCH/DELETE that build the full URL,
attach role-based bearer headers, serialise JSON payloads, and log a
truncated error line when the server answers with a 4xx/5xx status.
The raw response is always returned so callers can run their own
checks; nothing here raises on a bad status or retries a request.

Every wrapper takes the Locust session (``self.client`` inside a user
class) as its first argument.  Extra keyword arguments (``name``,
``timeout``...) are passed straight through to the session, so
requests can be grouped in Locust's statistics::

    response = get(self.client, "/products/42", name="/products/[id] [GET]")

Key Concepts Demonstrated:
- ``catch_response`` only where a non-2xx status is the *expected*
  outcome (e.g. a 404 after a delete)
- Concurrent batch dispatch on gevent greenlets
- Safe JSON extraction that never raises into a task method
"""

from __future__ import annotations

import logging
import random
import time
from collections.abc import Callable, Collection, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from gevent.pool import Group
from locust.clients import HttpSession
from requests import Response

from loadtest.helpers import get_headers, get_url, log_request_error, with_query

logger = logging.getLogger(__name__)


def _send(
    client: HttpSession,
    method: str,
    path: str,
    role: str | None,
    context: str,
    *,
    expected_statuses: Collection[int] | None = None,
    **options: Any,
) -> Response:
    """Issue one request through *client* and log it if the status is >= 400."""
    url = get_url(path, host=getattr(client, "base_url", None) or None)
    headers = get_headers(role, options.pop("headers", None))

    if expected_statuses:
        with client.request(method, url, headers=headers, catch_response=True, **options) as response:
            if response.status_code in expected_statuses:
                response.success()
            else:
                response.failure(f"Unexpected status {response.status_code}")
    else:
        response = client.request(method, url, headers=headers, **options)

    if response.status_code >= 400 and response.status_code not in (expected_statuses or ()):
        log_request_error(context, response)
    return response


# -----------------------------------------------------------------------------
# Request wrappers
# -----------------------------------------------------------------------------

def get(client: HttpSession, path: str, role: str | None = "USER", context: str = "get", **options: Any) -> Response:
    """GET *path* with *role* auth headers."""
    return _send(client, "GET", path, role, context, **options)


def get_with_params(
    client: HttpSession,
    path: str,
    params: Mapping[str, Any] | None = None,
    role: str | None = "USER",
    context: str = "get",
    **options: Any,
) -> Response:
    """GET *path* with URL-encoded query *params* (``None`` values dropped)."""
    return get(client, with_query(path, params), role, context, **options)


def post(
    client: HttpSession, path: str, payload: Any, role: str | None = "USER", context: str = "post", **options: Any
) -> Response:
    """POST *payload* as JSON."""
    return _send(client, "POST", path, role, context, json=payload, **options)


def put(
    client: HttpSession, path: str, payload: Any, role: str | None = "USER", context: str = "put", **options: Any
) -> Response:
    """PUT *payload* as JSON."""
    return _send(client, "PUT", path, role, context, json=payload, **options)


def patch(
    client: HttpSession, path: str, payload: Any, role: str | None = "USER", context: str = "patch", **options: Any
) -> Response:
    """PATCH *payload* as JSON."""
    return _send(client, "PATCH", path, role, context, json=payload, **options)


def delete(
    client: HttpSession, path: str, role: str | None = "USER", context: str = "delete", **options: Any
) -> Response:
    """DELETE *path* without a body."""
    return _send(client, "DELETE", path, role, context, **options)


def delete_with_body(
    client: HttpSession, path: str, payload: Any, role: str | None = "USER", context: str = "delete", **options: Any
) -> Response:
    """DELETE with a JSON body, for APIs that expect one."""
    return _send(client, "DELETE", path, role, context, json=payload, **options)


# -----------------------------------------------------------------------------
# Batch requests
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class BatchRequest:
    """One entry of a batch: path, role and (for POST) payload."""

    path: str
    role: str | None = "USER"
    payload: Any = None
    name: str | None = None

    def options(self) -> dict[str, Any]:
        return {"name": self.name} if self.name else {}


def batch_get(client: HttpSession, requests: Sequence[BatchRequest], context: str = "batch-get") -> list[Response]:
    """
    Issue independent GETs concurrently and return their responses.

    The list is index-aligned with *requests*; there is no ordering
    guarantee between the calls themselves and no aggregation of
    failures, so callers inspect each response.
    """
    return Group().map(lambda req: get(client, req.path, req.role, context, **req.options()), requests)


def batch_post(client: HttpSession, requests: Sequence[BatchRequest], context: str = "batch-post") -> list[Response]:
    """Issue independent POSTs concurrently; see :func:`batch_get`."""
    return Group().map(
        lambda req: post(client, req.path, req.payload, req.role, context, **req.options()), requests
    )


# -----------------------------------------------------------------------------
# Response helpers
# -----------------------------------------------------------------------------

def safe_json(response: Response, default: Any = None) -> Any:
    """
    Return the parsed JSON body, or *default* if it is not valid JSON.

    Error pages and gateway timeouts often return HTML or nothing at
    all; this keeps ``ValueError`` out of task methods where it would
    abort the virtual user's iteration.
    """
    try:
        return response.json()
    except ValueError:
        return default


def extract_id(response: Response, id_field: str = "id") -> Any:
    """Return ``body[id_field]`` from a created-resource response, or ``None``."""
    data = safe_json(response)
    if isinstance(data, dict):
        return data.get(id_field)
    return None


def extract_items(response: Response) -> list[Any]:
    """Return the ``items`` list of a list response, or ``[]``."""
    data = safe_json(response)
    if isinstance(data, dict) and isinstance(data.get("items"), list):
        return data["items"]
    return []


def random_item(response: Response) -> Any:
    """Return a random element of a list response's ``items``, or ``None``."""
    items = extract_items(response)
    return random.choice(items) if items else None


@dataclass(frozen=True)
class RequestOutcome:
    """
    Per-call record: the raw response, its parsed body and elapsed time.

    Attributes:
        response: The raw response object.
        body: Parsed JSON body, or ``None`` if it was not valid JSON.
        elapsed_ms: Wall-clock time spent in the call, in milliseconds.
    """

    response: Response
    body: Any
    elapsed_ms: float

    @property
    def status_code(self) -> int:
        return self.response.status_code

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


def timed(call: Callable[..., Any], *args: Any, **kwargs: Any) -> RequestOutcome:
    """Run one facade call and wrap its response in a :class:`RequestOutcome`."""
    started = time.perf_counter()
    response = call(*args, **kwargs)
    elapsed_ms = (time.perf_counter() - started) * 1000.0
    return RequestOutcome(response, safe_json(response), elapsed_ms)
