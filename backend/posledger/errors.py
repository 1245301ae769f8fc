# Overview: Error taxonomy for core operations and the Result wrapper returned to callers.

"""
Core error taxonomy.

Service internals raise PosError subclasses to abort (and roll back) the
current unit of work. Public service operations are decorated with
@returns_result, which hands the outcome back as a Result so callers branch
on result.ok instead of catching exceptions.

Anything that is not a PosError (datastore unreachable, programming errors)
is not captured and escalates to the caller.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import wraps
from typing import Any, Callable, Generic, TypeVar

T = TypeVar("T")


class PosError(Exception):
    """Base class for expected, caller-facing failures."""

    kind = "error"
    retryable = False

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {
            "error": self.message,
            "kind": self.kind,
            "retryable": self.retryable,
            "details": self.details,
        }


class InvalidRequest(PosError):
    """Malformed input; rejected before any write."""

    kind = "invalid_request"


class InsufficientStock(PosError):
    """At least one line item exceeds available stock."""

    kind = "insufficient_stock"


class Busy(PosError):
    """Lock timeout or concurrency conflict; safe to retry with backoff."""

    kind = "busy"
    retryable = True


class QuotaExceeded(PosError):
    """Subscription plan limit reached."""

    kind = "quota_exceeded"


class NotFound(PosError):
    """Entity does not exist or belongs to another store."""

    kind = "not_found"


class ImmutableRecordError(RuntimeError):
    """Raised when code attempts to modify an append-only ledger row."""


@dataclass(frozen=True)
class Result(Generic[T]):
    value: T | None = None
    error: PosError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def kind(self) -> str | None:
        return self.error.kind if self.error else None

    def unwrap(self) -> T:
        """Return the value, re-raising the captured error if there is one."""
        if self.error is not None:
            raise self.error
        return self.value


def returns_result(func: Callable[..., T]) -> Callable[..., Result[T]]:
    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Result[T]:
        try:
            return Result(value=func(*args, **kwargs))
        except PosError as exc:
            return Result(error=exc)
    return wrapper
