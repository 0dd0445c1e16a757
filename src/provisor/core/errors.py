"""
Structured error types for provisor.

Every failure provisor raises is a ``ProvisorError`` carrying a category, a
retryable flag, a structured context and (when wrapping something else) the
underlying cause. Callers building deployment tools use the category and the
concrete subclass to decide whether a failure is fatal for the script.

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────┐
        │                      ProvisorError                          │
        │        (category, retryable, context, cause)                │
        ├─────────────────────────────────────────────────────────────┤
        │  ActionFailure          BatchPartialFailure   ConfigError   │
        │    │  (ACTION)            (BATCH)              (CONFIG)     │
        │    ├─ RetriesExhausted                           │          │
        │    └─ CommandFailed                  MissingConfigError     │
        │                                      InvalidConfigError     │
        │  SecretStoreError       ValidationError      TimeoutExpired │
        │    (SECRET, retryable)    (VALIDATION)         (TIMEOUT)    │
        │    └─ MissingSecretError                                    │
        └─────────────────────────────────────────────────────────────┘

Examples:
    >>> error = SecretStoreError("az exited with 1")
    >>> error.retryable
    True
    >>> error.with_context(step="store-admin-password").context.step
    'store-admin-password'

Guardrails:
    ❌ DON'T: Inspect an ActionFailure's cause to decide whether to retry
    ✅ DO: Pass a ``retry_on`` hook to the supervisor if classification is needed

    ❌ DON'T: Swallow the original exception
    ✅ DO: Pass it as cause= for error chaining
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from provisor.execution.jobs import BatchResult
    from provisor.execution.retry import AttemptRecord


class ErrorCategory(str, Enum):
    """Standard error categories for classification and routing."""

    ACTION = "ACTION"             # Wrapped caller action failed
    BATCH = "BATCH"               # One or more jobs in a batch failed
    COMMAND = "COMMAND"           # External command exited non-zero
    SECRET = "SECRET"             # Secret store round-trip failed
    TIMEOUT = "TIMEOUT"           # Polling deadline passed
    VALIDATION = "VALIDATION"     # Input rejected
    CONFIG = "CONFIG"             # Missing config, invalid settings
    INTERNAL = "INTERNAL"         # Bugs, unexpected state


@dataclass
class ErrorContext:
    """
    Structured metadata attached to an error.

    Only fields that were set are serialized by ``to_dict()``. Anything that
    doesn't fit a typed field lands in ``metadata``.
    """

    step: str | None = None
    job: str | None = None
    batch_id: str | None = None
    resource_group: str | None = None
    vault_name: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {}
        for key in ("step", "job", "batch_id", "resource_group", "vault_name"):
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class ProvisorError(Exception):
    """
    Base exception for all provisor errors.

    Subclasses set ``default_category`` and ``default_retryable``; both can be
    overridden per instance.

    Examples:
        >>> error = ProvisorError("Something went wrong")
        >>> error.category
        <ErrorCategory.INTERNAL: 'INTERNAL'>
        >>> error.to_dict()["retryable"]
        False
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> ProvisorError:
        """
        Add context to this error (fluent API).

        Usage:
            raise ConfigError("No vault").with_context(step="secrets")
        """
        for key, value in kwargs.items():
            if key != "metadata" and hasattr(self.context, key):
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result: dict[str, Any] = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# ACTION ERRORS
# =============================================================================


class ActionFailure(ProvisorError):
    """
    A caller-supplied action failed.

    The wrapped error is opaque: provisor neither inspects nor classifies it.
    It is available as ``cause`` (and ``__cause__``).
    """

    default_category = ErrorCategory.ACTION

    def __init__(self, message: str, *, cause: BaseException | None = None, **kwargs: Any):
        super().__init__(message, cause=cause, **kwargs)


class RetriesExhausted(ActionFailure):
    """
    The retry bound was reached without a successful attempt.

    Carries the last attempt's error and the full attempt history so callers
    can report what happened without re-running anything.
    """

    def __init__(
        self,
        last_error: BaseException,
        attempts: tuple[AttemptRecord, ...] = (),
        *,
        name: str | None = None,
    ):
        count = len(attempts)
        label = f"{name!r} " if name else ""
        super().__init__(
            f"Action {label}failed after {count} attempt{'s' if count != 1 else ''}: {last_error}",
            cause=last_error,
        )
        self.last_error = last_error
        self.attempts = attempts
        if name:
            self.context.step = name

    @property
    def attempt_count(self) -> int:
        return len(self.attempts)


class CommandFailed(ActionFailure):
    """An external command exited with a non-zero status."""

    default_category = ErrorCategory.COMMAND
    default_retryable = True

    def __init__(self, argv: list[str], returncode: int, stderr: str = ""):
        self.argv = list(argv)
        self.returncode = returncode
        self.stderr = stderr
        program = self.argv[0] if self.argv else "<empty>"
        message = f"{program} exited with status {returncode}"
        if stderr:
            message += f": {stderr.strip().splitlines()[-1]}"
        super().__init__(message)


class BatchPartialFailure(ProvisorError):
    """
    At least one job in a batch reached the FAILED state.

    Raised only on request (``BatchResult.raise_for_failures()``); the job
    group itself reports failures as data.
    """

    default_category = ErrorCategory.BATCH

    def __init__(self, result: BatchResult):
        self.result = result
        self.failed_names = [outcome.name for outcome in result.failures]
        super().__init__(
            f"{result.failure_count} of {result.total} jobs failed: {', '.join(self.failed_names)}"
        )
        self.context.batch_id = result.batch_id


# =============================================================================
# CONFIGURATION / VALIDATION ERRORS (never retryable)
# =============================================================================


class ConfigError(ProvisorError):
    """Configuration error."""

    default_category = ErrorCategory.CONFIG


class MissingConfigError(ConfigError):
    """Required configuration is missing."""

    def __init__(self, key: str, message: str | None = None):
        super().__init__(message or f"Missing required configuration: {key}")
        self.context.metadata["config_key"] = key


class InvalidConfigError(ConfigError):
    """Configuration value is invalid."""

    def __init__(self, key: str, value: Any, message: str | None = None):
        super().__init__(message or f"Invalid configuration value for {key}: {value!r}")
        self.context.metadata["config_key"] = key
        self.context.metadata["config_value"] = str(value)


class ValidationError(ProvisorError):
    """Input failed validation."""

    default_category = ErrorCategory.VALIDATION

    def __init__(self, message: str, *, rule: str | None = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.rule = rule


# =============================================================================
# SECRET STORE ERRORS
# =============================================================================


class SecretStoreError(ProvisorError):
    """The secret store call failed (network, CLI, permission)."""

    default_category = ErrorCategory.SECRET
    default_retryable = True


class MissingSecretError(SecretStoreError):
    """The secret does not exist in the store."""

    default_retryable = False

    def __init__(self, key: str, store: str | None = None):
        message = f"Secret not found: {key}"
        if store:
            message += f" (store: {store})"
        super().__init__(message)
        self.key = key
        self.store = store


# =============================================================================
# TIMEOUTS
# =============================================================================


class TimeoutExpired(ProvisorError):
    """A polling deadline passed before the condition became true."""

    default_category = ErrorCategory.TIMEOUT

    def __init__(self, what: str, seconds: float):
        super().__init__(f"Timeout waiting for {what} after {seconds:g}s")
        self.what = what
        self.seconds = seconds


# =============================================================================
# HELPERS
# =============================================================================


def is_retryable(error: BaseException) -> bool:
    """
    Check if an error is retryable.

    Non-provisor exceptions are treated as retryable, matching the
    supervisor's retry-everything baseline.
    """
    if isinstance(error, ProvisorError):
        return error.retryable
    return True


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "ProvisorError",
    "ActionFailure",
    "RetriesExhausted",
    "CommandFailed",
    "BatchPartialFailure",
    "ConfigError",
    "MissingConfigError",
    "InvalidConfigError",
    "ValidationError",
    "SecretStoreError",
    "MissingSecretError",
    "TimeoutExpired",
    "is_retryable",
]
