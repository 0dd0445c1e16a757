"""
Ok / Err outcome of one action invocation.

A job's outcome, and the non-raising retry form, report a failed action as a
value the caller inspects rather than an exception it has to catch::

    match outcome.result:
        case Ok(value):
            print("created", value)
        case Err(error):
            print("failed:", error)

Guardrails:
    ❌ DON'T: unwrap() an Err you haven't checked; it re-raises the error
    ✅ DO: match on Ok / Err, or use unwrap_or()
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from provisor.core.errors import ProvisorError

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    """The action returned ``value``."""

    value: T

    def is_ok(self) -> bool:
        return True

    def is_err(self) -> bool:
        return False

    def unwrap(self) -> T:
        return self.value

    def unwrap_or(self, default: T) -> T:
        return self.value

    def to_dict(self) -> dict[str, Any]:
        return {"ok": True, "value": self.value}

    def __repr__(self) -> str:
        return f"Ok({self.value!r})"


@dataclass(frozen=True, slots=True)
class Err(Generic[T]):
    """The action raised ``error``."""

    error: Exception

    def is_ok(self) -> bool:
        return False

    def is_err(self) -> bool:
        return True

    def unwrap(self) -> T:
        """Re-raise the captured error."""
        raise self.error

    def unwrap_or(self, default: T) -> T:
        return default

    def to_dict(self) -> dict[str, Any]:
        """Serialise; provisor errors keep their category and context."""
        if isinstance(self.error, ProvisorError):
            detail = self.error.to_dict()
        else:
            detail = {"error_type": type(self.error).__name__, "message": str(self.error)}
        return {"ok": False, "error": detail}

    def __repr__(self) -> str:
        return f"Err({self.error!r})"


Result = Ok[T] | Err[T]


def capture(action: Callable[[], T]) -> Result[T]:
    """Invoke ``action`` once; ``Ok`` with its return value or ``Err`` with what it raised.

    Only ``Exception`` is captured. ``KeyboardInterrupt`` and ``SystemExit``
    propagate.
    """
    try:
        return Ok(action())
    except Exception as e:
        return Err(e)


__all__ = ["Ok", "Err", "Result", "capture"]
