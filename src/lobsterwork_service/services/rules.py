"""Task and bid state machines, enumerations, and field validators."""

from __future__ import annotations

import math
from datetime import UTC, date, datetime
from typing import Any

from lobsterwork_service.core.exceptions import ConflictError, ForbiddenError, ValidationError

TASK_OPEN = "OPEN"
TASK_IN_PROGRESS = "IN_PROGRESS"
TASK_COMPLETED = "COMPLETED"
TASK_CANCELLED = "CANCELLED"

TASK_STATUSES: tuple[str, ...] = (TASK_OPEN, TASK_IN_PROGRESS, TASK_COMPLETED, TASK_CANCELLED)

BID_PENDING = "PENDING"
BID_ACCEPTED = "ACCEPTED"
BID_REJECTED = "REJECTED"

BID_STATUSES: tuple[str, ...] = (BID_PENDING, BID_ACCEPTED, BID_REJECTED)

TASK_CATEGORIES = frozenset({"development", "design", "writing", "data", "marketing", "other"})

# Advisory only: never consulted when deciding who may bid.
WORKER_TYPES = frozenset({"HUMAN", "AGENT"})

_TASK_TRANSITIONS: dict[str, frozenset[str]] = {
    TASK_OPEN: frozenset({TASK_IN_PROGRESS, TASK_CANCELLED}),
    TASK_IN_PROGRESS: frozenset({TASK_COMPLETED}),
    TASK_COMPLETED: frozenset(),
    TASK_CANCELLED: frozenset(),
}

_BID_TRANSITIONS: dict[str, frozenset[str]] = {
    BID_PENDING: frozenset({BID_ACCEPTED, BID_REJECTED}),
    BID_ACCEPTED: frozenset(),
    BID_REJECTED: frozenset(),
}


def now_iso() -> str:
    """Return current UTC time as ISO 8601 string with Z suffix."""
    return datetime.now(UTC).isoformat(timespec="microseconds").replace("+00:00", "Z")


# ---------------------------------------------------------------------------
# State machines
# ---------------------------------------------------------------------------


def can_transition_task(current: str, new: str) -> bool:
    """Whether a task may move from ``current`` to ``new``."""
    return new in _TASK_TRANSITIONS.get(current, frozenset())


def can_transition_bid(current: str, new: str) -> bool:
    """Whether a bid may move from ``current`` to ``new``."""
    return new in _BID_TRANSITIONS.get(current, frozenset())


def ensure_task_transition(current: str, new: str) -> None:
    """Raise ConflictError unless the task transition is allowed."""
    if not can_transition_task(current, new):
        raise ConflictError(
            "INVALID_STATUS",
            f"Cannot move task from '{current}' to '{new}'",
            {"current_status": current, "requested_status": new},
        )


def ensure_bid_transition(current: str, new: str) -> None:
    """Raise ConflictError unless the bid transition is allowed."""
    if not can_transition_bid(current, new):
        raise ConflictError(
            "INVALID_BID_STATUS",
            f"Cannot move bid from '{current}' to '{new}'",
            {"current_status": current, "requested_status": new},
        )


def ensure_bid_eligible(task: dict[str, Any], bidder_id: str) -> None:
    """
    Bidding rules: the task must be OPEN and the bidder must not be its poster.

    The task's preferred_worker_type is not consulted.
    """
    if task["status"] != TASK_OPEN:
        raise ForbiddenError(
            "TASK_NOT_OPEN",
            f"Cannot bid on task in '{task['status']}' status, must be 'OPEN'",
        )
    if bidder_id == task["poster_id"]:
        raise ForbiddenError("SELF_BID", "Cannot bid on your own task")


# ---------------------------------------------------------------------------
# Field validators
# ---------------------------------------------------------------------------


def _is_blank(value: object) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == "")


def is_encodable(text: str) -> bool:
    """Whether text survives UTF-8 encoding (JSON may carry lone surrogates)."""
    try:
        text.encode("utf-8")
    except UnicodeEncodeError:
        return False
    return True


def require_text(fields: dict[str, Any], name: str, max_length: int) -> str:
    """Non-empty, valid UTF-8 string field, stripped, no longer than max_length."""
    value = fields.get(name)
    if not isinstance(value, str) or value.strip() == "":
        raise ValidationError("INVALID_FIELD", f"{name} must be a non-empty string", {"field": name})
    text = value.strip()
    if not is_encodable(text):
        raise ValidationError("INVALID_FIELD", f"{name} must be valid UTF-8 text", {"field": name})
    if len(text) > max_length:
        raise ValidationError(
            "FIELD_TOO_LONG",
            f"{name} must not exceed {max_length} characters",
            {"field": name, "max_length": max_length},
        )
    return text


def _as_number(value: object, name: str) -> float:
    if isinstance(value, bool) or not isinstance(value, int | float):
        raise ValidationError("INVALID_FIELD", f"{name} must be a number", {"field": name})
    try:
        number = float(value)
    except OverflowError as exc:
        raise ValidationError(
            "INVALID_FIELD", f"{name} is out of range", {"field": name}
        ) from exc
    if math.isnan(number) or math.isinf(number):
        raise ValidationError("INVALID_FIELD", f"{name} must be a finite number", {"field": name})
    if number < 0:
        raise ValidationError("INVALID_FIELD", f"{name} must be non-negative", {"field": name})
    return number


def require_non_negative(fields: dict[str, Any], name: str) -> float:
    """Required number >= 0 (booleans rejected)."""
    if name not in fields or fields[name] is None:
        raise ValidationError("INVALID_FIELD", f"Missing required field: {name}", {"field": name})
    return _as_number(fields[name], name)


def optional_non_negative(fields: dict[str, Any], name: str) -> float | None:
    """Optional number >= 0; absent, null or empty string mean unset."""
    value = fields.get(name)
    if _is_blank(value):
        return None
    return _as_number(value, name)


def optional_date(fields: dict[str, Any], name: str) -> str | None:
    """Optional ISO calendar date (YYYY-MM-DD); empty string means unset."""
    value = fields.get(name)
    if _is_blank(value):
        return None
    if not isinstance(value, str):
        raise ValidationError("INVALID_FIELD", f"{name} must be an ISO date", {"field": name})
    try:
        return date.fromisoformat(value.strip()).isoformat()
    except ValueError as exc:
        raise ValidationError(
            "INVALID_FIELD", f"{name} must be an ISO date (YYYY-MM-DD)", {"field": name}
        ) from exc


def optional_choice(fields: dict[str, Any], name: str, choices: frozenset[str]) -> str | None:
    """Optional enumerated string; empty string means unset."""
    value = fields.get(name)
    if _is_blank(value):
        return None
    if not isinstance(value, str) or value not in choices:
        raise ValidationError(
            "INVALID_FIELD",
            f"{name} must be one of {sorted(choices)}",
            {"field": name},
        )
    return value
