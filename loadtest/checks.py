"""
Response validation utilities.

Reusable check functions for load-test scenarios.  A *check* is a
named predicate whose result is recorded into the ``checks`` rate
metric instead of raising: a run can tolerate a small share of failed
checks, and the ``checks`` threshold decides whether that share is
acceptable.

Every predicate handed to :func:`check` is evaluated, even after an
earlier one failed, so each result is an independent signal.  Structure
checks parse the body as JSON; a body that is not valid JSON makes the
structure check return ``False`` with a diagnostic log line.

Example::

    check_get_list_endpoint(response, context="products")
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from typing import Any

from loadtest import metrics

logger = logging.getLogger(__name__)

Predicate = Callable[[Any], bool]

MAX_PAGE_SIZE = 100


def check(
    value: Any,
    predicates: Mapping[str, Predicate],
    tags: Mapping[str, Any] | None = None,
) -> bool:
    """
    Evaluate every named predicate against *value* and record the results.

    A predicate that raises counts as failed.

    Args:
        value: The object the predicates inspect (response or parsed body).
        predicates: Check name → predicate.
        tags: Extra tags recorded with each result.

    Returns:
        ``True`` only if every predicate passed.
    """
    all_passed = True
    for name, predicate in predicates.items():
        try:
            passed = bool(predicate(value))
        except Exception:  # noqa: BLE001 - a crashing predicate is a failed check
            logger.debug("Check %r raised", name, exc_info=True)
            passed = False

        metrics.checks.add(passed, {"check": name, **(tags or {})})
        if not passed:
            logger.debug("Check failed: %s", name)
            all_passed = False
    return all_passed


def _parse_json(response: Any, context: str) -> tuple[bool, Any]:
    """Return ``(True, body)`` or ``(False, None)`` after logging a parse failure."""
    try:
        return True, response.json()
    except ValueError as exc:
        logger.error("Failed to parse %s response: %s", context, exc)
        return False, None


def _is_2xx(response: Any) -> bool:
    return 200 <= response.status_code < 300


def json_type(value: Any) -> str:
    """Name the JSON type of *value*: number, string, boolean, object, array or null."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    if isinstance(value, dict):
        return "object"
    return type(value).__name__


# -----------------------------------------------------------------------------
# Status checks
# -----------------------------------------------------------------------------

def check_status(response: Any, expected_status: int = 200) -> bool:
    """Check for a specific HTTP status."""
    return check(response, {f"status is {expected_status}": lambda r: r.status_code == expected_status})


def check_success(response: Any) -> bool:
    """Check for any 2xx status."""
    return check(response, {"status is 2xx": _is_2xx})


def check_created(response: Any) -> bool:
    return check_status(response, 201)


def check_no_content(response: Any) -> bool:
    return check_status(response, 204)


# -----------------------------------------------------------------------------
# Structure checks
# -----------------------------------------------------------------------------

def check_list_response(response: Any, context: str = "list") -> bool:
    """
    Check a paginated list body: ``items`` is a non-empty list of at most 100 entries.

    Returns:
        ``False`` if the body is not valid JSON, otherwise whether all
        three checks passed.
    """
    parsed, data = _parse_json(response, context)
    if not parsed:
        return False

    def items(d: Any) -> Any:
        return d.get("items") if isinstance(d, dict) else None

    return check(
        data,
        {
            f"{context}: has items array": lambda d: isinstance(items(d), list),
            f"{context}: items not empty": lambda d: isinstance(items(d), list) and len(items(d)) > 0,
            f"{context}: valid page size": lambda d: isinstance(items(d), list)
            and len(items(d)) <= MAX_PAGE_SIZE,
        },
    )


def check_item_response(
    response: Any, required_fields: Iterable[str] = ("id",), context: str = "item"
) -> bool:
    """Check a single-object body and the presence of each required field."""
    parsed, data = _parse_json(response, context)
    if not parsed:
        return False

    predicates: dict[str, Predicate] = {
        f"{context}: response is object": lambda d: isinstance(d, dict),
    }
    for field in required_fields:
        predicates[f"{context}: has {field}"] = lambda d, field=field: isinstance(d, dict) and field in d
    return check(data, predicates)


def check_field_types(
    response: Any, field_types: Mapping[str, str], context: str = "response"
) -> bool:
    """
    Check that named fields have the expected JSON types.

    Example::

        check_field_types(response, {"id": "number", "name": "string", "tags": "array"}, "product")
    """
    parsed, data = _parse_json(response, context)
    if not parsed:
        return False

    predicates: dict[str, Predicate] = {}
    for field, expected in field_types.items():
        predicates[f"{context}: {field} is {expected}"] = (
            lambda d, field=field, expected=expected: isinstance(d, dict)
            and field in d
            and json_type(d[field]) == expected
        )
    return check(data, predicates)


def check_list_item_structure(
    response: Any, item_validator: Predicate, context: str = "list-item"
) -> bool:
    """Validate the first element of ``items`` with *item_validator*."""
    parsed, data = _parse_json(response, context)
    if not parsed:
        return False

    items = data.get("items") if isinstance(data, dict) else None
    if not isinstance(items, list) or not items:
        return False
    return check(items[0], {f"{context}: valid structure": item_validator})


def check_response_time(elapsed_ms: float, max_ms: float, context: str = "response") -> bool:
    """Check that a call finished within *max_ms* milliseconds."""
    return check(elapsed_ms, {f"{context}: response time < {max_ms:g}ms": lambda ms: ms < max_ms})


# -----------------------------------------------------------------------------
# Composite checks
# -----------------------------------------------------------------------------

def check_get_list_endpoint(
    response: Any, item_validator: Predicate | None = None, context: str = "list"
) -> bool:
    """Status 200, then list structure and (optionally) first-item structure."""
    all_passed = check_status(response)

    if response.status_code == 200:
        all_passed = check_list_response(response, context) and all_passed
        if item_validator is not None:
            all_passed = check_list_item_structure(response, item_validator, f"{context}-item") and all_passed

    return all_passed


def check_get_item_endpoint(
    response: Any, required_fields: Iterable[str] = ("id",), context: str = "item"
) -> bool:
    """Status 200, then single-item structure."""
    all_passed = check_status(response)

    if response.status_code == 200:
        all_passed = check_item_response(response, required_fields, context) and all_passed

    return all_passed


def check_post_endpoint(
    response: Any, required_fields: Iterable[str] = ("id",), context: str = "create"
) -> bool:
    """2xx status (201 or 200), then structure of the created object if a body came back."""
    all_passed = check(response, {f"{context}: status is 2xx": _is_2xx})

    if _is_2xx(response) and getattr(response, "text", ""):
        all_passed = check_item_response(response, required_fields, context) and all_passed

    return all_passed


def check_delete_endpoint(response: Any, context: str = "delete") -> bool:
    return check(response, {f"{context}: status is 2xx": _is_2xx})


# -----------------------------------------------------------------------------
# Error checks
# -----------------------------------------------------------------------------

def check_error_response(response: Any, expected_status: int, context: str = "error") -> bool:
    """
    Check an error answer: the expected status and an error/message field.

    The two checks are recorded independently; a non-JSON error body
    fails the message check without affecting the status check.
    """
    all_passed = check_status(response, expected_status)

    parsed, data = _parse_json(response, context)
    message_present = parsed and isinstance(data, dict) and ("message" in data or "error" in data)
    all_passed = check(data, {f"{context}: has error message": lambda _d: message_present}) and all_passed

    return all_passed
