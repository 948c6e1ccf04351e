"""Error types and the result envelopes returned across the service boundary."""

from __future__ import annotations

import enum
from typing import Any

from pydantic import ValidationError


class UptierError(Exception):
    """Base class for errors raised by the core."""

    error_type = "error"


class NotFoundError(UptierError):
    error_type = "not_found"

    def __init__(self, entity: str, entity_id: str | None = None):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} not found")


class InvalidOperationError(UptierError):
    """The request is well-formed but not allowed (goal cycles, system lists)."""

    error_type = "invalid"


class BatchAbortedError(UptierError):
    """An all-or-nothing batch was rolled back because one item failed."""

    error_type = "batch_aborted"

    def __init__(self, message: str, item_id: str | None = None):
        self.item_id = item_id
        super().__init__(message)


class BatchPolicy(enum.StrEnum):
    """How a multi-item write reacts to a missing item.

    PARTIAL commits the items that exist and reports the rest as failed.
    ALL_OR_NOTHING rolls the whole batch back.
    """

    PARTIAL = "partial"
    ALL_OR_NOTHING = "all_or_nothing"


def ok(**payload: Any) -> dict:
    return {"success": True, **payload}


def failure(error: str, error_type: str = "error", **extra: Any) -> dict:
    return {"success": False, "error": error, "error_type": error_type, **extra}


def from_exception(exc: UptierError) -> dict:
    extra: dict[str, Any] = {}
    if isinstance(exc, BatchAbortedError) and exc.item_id:
        extra["task_id"] = exc.item_id
    return failure(str(exc), exc.error_type, **extra)


def from_validation_error(exc: ValidationError) -> dict:
    details = [
        {"field": ".".join(str(p) for p in err["loc"]) or "payload", "message": err["msg"]}
        for err in exc.errors()
    ]
    summary = "; ".join(f"{d['field']}: {d['message']}" for d in details)
    return failure(f"Invalid input: {summary}", "validation", details=details)
