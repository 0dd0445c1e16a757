"""Bounded retry with exponential backoff.

An action is invoked until it succeeds or the policy's attempt bound is
reached. Between failed attempts the supervisor sleeps, and the delay grows by
``multiplier`` after every failure::

    attempt 1 ── fail ── sleep(D) ── attempt 2 ── fail ── sleep(D·M) ── attempt 3 ── fail ──▶ RetriesExhausted
                                                          └─ success ──▶ return value

Success short-circuits: no sleep and no further attempt after it. Every
failure is retried by default, whatever its cause; ``retry_on`` narrows that
when a caller knows some errors are permanent.

Actions must be safe to invoke more than once (idempotent or at-least-once
safe). The supervisor cannot check this.

Example:
    >>> from provisor.execution.retry import RetryPolicy, retry
    >>> policy = RetryPolicy(max_attempts=3, initial_delay=2.0)
    >>> retry(policy, lambda: create_vnet("vnet-dev-westus2"))   # doctest: +SKIP
"""

from __future__ import annotations

import asyncio
import functools
import inspect
import math
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, TypeVar

from provisor.core.errors import InvalidConfigError, RetriesExhausted
from provisor.core.logging import get_logger
from provisor.core.result import Err, Ok, Result

if TYPE_CHECKING:
    from provisor.core.settings import ProvisorSettings

logger = get_logger(__name__)

T = TypeVar("T")

RetryOn = tuple[type[BaseException], ...] | Callable[[BaseException], bool]


@dataclass(frozen=True)
class RetryPolicy:
    """How often, and how patiently, to retry.

    Attributes:
        max_attempts: Total invocations allowed, including the first (>= 1)
        initial_delay: Seconds to wait before the second attempt (>= 0)
        multiplier: Factor applied to the delay after each failure (>= 1)
    """

    max_attempts: int = 3
    initial_delay: float = 2.0
    multiplier: float = 2.0

    def __post_init__(self) -> None:
        if not isinstance(self.max_attempts, int) or isinstance(self.max_attempts, bool):
            raise InvalidConfigError("max_attempts", self.max_attempts, "max_attempts must be an integer")
        for field_name in ("initial_delay", "multiplier"):
            value = getattr(self, field_name)
            if (
                not isinstance(value, (int, float))
                or isinstance(value, bool)
                or not math.isfinite(value)
            ):
                raise InvalidConfigError(field_name, value, f"{field_name} must be a finite number")
        if self.max_attempts < 1:
            raise InvalidConfigError("max_attempts", self.max_attempts, "max_attempts must be >= 1")
        if self.initial_delay < 0:
            raise InvalidConfigError("initial_delay", self.initial_delay, "initial_delay must be >= 0")
        if self.multiplier < 1:
            raise InvalidConfigError("multiplier", self.multiplier, "multiplier must be >= 1")

    def delay_after(self, attempt: int) -> float:
        """Delay that follows failed attempt ``attempt`` (1-based)."""
        return self.initial_delay * (self.multiplier ** (attempt - 1))

    def delays(self) -> list[float]:
        """All inter-attempt delays for an action that never succeeds."""
        return [self.delay_after(i) for i in range(1, self.max_attempts)]

    @classmethod
    def no_retry(cls) -> RetryPolicy:
        """A single attempt, no waiting."""
        return cls(max_attempts=1, initial_delay=0.0)

    @classmethod
    def from_settings(cls, settings: ProvisorSettings) -> RetryPolicy:
        return cls(
            max_attempts=settings.retry_max_attempts,
            initial_delay=settings.retry_initial_delay,
            multiplier=settings.retry_multiplier,
        )


@dataclass(frozen=True)
class AttemptRecord:
    """One failed attempt.

    ``delay`` is the wait before the next attempt, or ``None`` when this was
    the last attempt.
    """

    attempt: int
    error: BaseException
    delay: float | None


def invoke(action: Callable[[], Any]) -> Any:
    """Call ``action`` and drive it to completion.

    An action that is a coroutine function (or returns a coroutine) runs on
    a fresh event loop in the calling thread, so its body executes and its
    errors surface here.

    Raises:
        TypeError: a coroutine was produced while an event loop is already
            running in this thread (await it, or use ``run_async``)
    """
    value = action()
    if not inspect.iscoroutine(value):
        return value
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(value)
    value.close()
    raise TypeError("coroutine action invoked from a running event loop; use run_async")


def _should_retry(retry_on: RetryOn | None, error: BaseException) -> bool:
    if retry_on is None:
        return True
    if isinstance(retry_on, tuple):
        return isinstance(error, retry_on)
    return bool(retry_on(error))


class _AttemptLog:
    """Bookkeeping shared by the sync and async loops."""

    def __init__(
        self,
        policy: RetryPolicy,
        retry_on: RetryOn | None,
        on_retry: Callable[[AttemptRecord], None] | None,
        name: str | None,
    ) -> None:
        self.policy = policy
        self.retry_on = retry_on
        self.on_retry = on_retry
        self.name = name
        self.attempt = 1
        self.records: list[AttemptRecord] = []

    def failed(self, error: Exception) -> float:
        """Record a failure. Returns the delay before the next attempt.

        Raises:
            RetriesExhausted: the bound was reached or ``retry_on`` rejected
                the error.
        """
        attempt = self.attempt
        retryable = _should_retry(self.retry_on, error)
        if attempt >= self.policy.max_attempts or not retryable:
            self.records.append(AttemptRecord(attempt=attempt, error=error, delay=None))
            logger.error(
                "retry.exhausted" if retryable else "retry.not_retryable",
                name=self.name,
                attempts=attempt,
                max_attempts=self.policy.max_attempts,
                error=str(error),
                error_type=type(error).__name__,
            )
            raise RetriesExhausted(error, tuple(self.records), name=self.name) from error

        delay = self.policy.delay_after(attempt)
        record = AttemptRecord(attempt=attempt, error=error, delay=delay)
        self.records.append(record)
        logger.warning(
            "retry.attempt_failed",
            name=self.name,
            attempt=attempt,
            max_attempts=self.policy.max_attempts,
            delay=delay,
            error=str(error),
        )
        if self.on_retry is not None:
            try:
                self.on_retry(record)
            except Exception as hook_error:
                logger.error(
                    "retry.hook_failed",
                    name=self.name,
                    attempt=attempt,
                    error=str(hook_error),
                    error_type=type(hook_error).__name__,
                )
        self.attempt += 1
        return delay


class RetrySupervisor:
    """Reusable retry runner bound to one policy.

    Example:
        >>> supervisor = RetrySupervisor(RetryPolicy(max_attempts=5))
        >>> supervisor.run(lambda: set_secret("admin-password"))    # doctest: +SKIP
        >>> job_action = supervisor.wrap(create_vm, name="vm-bastion")

    Args:
        policy: Retry policy (default: 3 attempts, 2s initial delay, x2)
        sleep: Blocking sleep used between sync attempts
        async_sleep: Awaitable sleep used between async attempts
        on_retry: Called with each non-final ``AttemptRecord`` before sleeping.
            An exception from the hook is logged and the loop carries on.
        retry_on: Exception types, or a predicate, selecting retryable errors
            (default: every error is retried)
    """

    def __init__(
        self,
        policy: RetryPolicy | None = None,
        *,
        sleep: Callable[[float], Any] = time.sleep,
        async_sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        on_retry: Callable[[AttemptRecord], None] | None = None,
        retry_on: RetryOn | None = None,
    ) -> None:
        self.policy = policy or RetryPolicy()
        self._sleep = sleep
        self._async_sleep = async_sleep
        self._on_retry = on_retry
        self._retry_on = retry_on

    def _attempt_log(self, name: str | None) -> _AttemptLog:
        return _AttemptLog(self.policy, self._retry_on, self._on_retry, name)

    def run(self, action: Callable[[], T], *, name: str | None = None) -> T:
        """Invoke ``action`` until it succeeds or the bound is reached.

        Coroutine-function actions are run to completion on a fresh event
        loop; use :meth:`run_async` from inside a running loop.

        Raises:
            RetriesExhausted: wrapping the last attempt's error
        """
        attempts = self._attempt_log(name)
        while True:
            try:
                return invoke(action)
            except Exception as e:
                delay = attempts.failed(e)
            if delay > 0:
                self._sleep(delay)

    async def run_async(self, action: Callable[[], Awaitable[T]], *, name: str | None = None) -> T:
        """Async form of :meth:`run`. Sleeping suspends only this task."""
        attempts = self._attempt_log(name)
        while True:
            try:
                return await action()
            except Exception as e:
                delay = attempts.failed(e)
            if delay > 0:
                await self._async_sleep(delay)

    def wrap(self, action: Callable[..., Any], *, name: str | None = None) -> Callable[[], Any]:
        """Return a new zero-argument action that runs ``action`` under this supervisor.

        Coroutine functions produce coroutine functions, so the result can be
        handed to either job-group flavour.
        """
        if inspect.iscoroutinefunction(action):
            async def retried_async() -> Any:
                return await self.run_async(action, name=name)
            return retried_async

        def retried() -> Any:
            return self.run(action, name=name)
        return retried


def retry(
    policy: RetryPolicy,
    action: Callable[[], T],
    *,
    sleep: Callable[[float], Any] = time.sleep,
    on_retry: Callable[[AttemptRecord], None] | None = None,
    retry_on: RetryOn | None = None,
    name: str | None = None,
) -> T:
    """Run ``action`` under ``policy``; raise ``RetriesExhausted`` on final failure."""
    supervisor = RetrySupervisor(policy, sleep=sleep, on_retry=on_retry, retry_on=retry_on)
    return supervisor.run(action, name=name)


async def retry_async(
    policy: RetryPolicy,
    action: Callable[[], Awaitable[T]],
    *,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    on_retry: Callable[[AttemptRecord], None] | None = None,
    retry_on: RetryOn | None = None,
    name: str | None = None,
) -> T:
    """Async form of :func:`retry`."""
    supervisor = RetrySupervisor(policy, async_sleep=sleep, on_retry=on_retry, retry_on=retry_on)
    return await supervisor.run_async(action, name=name)


def try_retry(
    policy: RetryPolicy,
    action: Callable[[], T],
    **kwargs: Any,
) -> Result[T]:
    """Like :func:`retry`, but returns ``Ok(value)`` or ``Err(RetriesExhausted)``."""
    try:
        return Ok(retry(policy, action, **kwargs))
    except RetriesExhausted as e:
        return Err(e)


def with_retry(
    policy: RetryPolicy | None = None,
    **kwargs: Any,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """Decorator factory to add retry logic to a function.

    Args:
        policy: Retry policy (default: RetryPolicy())
        **kwargs: Passed to :class:`RetrySupervisor` (sleep, on_retry, retry_on)

    Example:
        >>> @with_retry(RetryPolicy(max_attempts=3))
        ... def create_nsg(name):
        ...     return az("network", "nsg", "create", "--name", name)
    """
    supervisor = RetrySupervisor(policy, **kwargs)

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        if inspect.iscoroutinefunction(func):
            @functools.wraps(func)
            async def async_wrapper(*args: Any, **kw: Any) -> Any:
                return await supervisor.run_async(lambda: func(*args, **kw), name=func.__name__)
            return async_wrapper

        @functools.wraps(func)
        def sync_wrapper(*args: Any, **kw: Any) -> T:
            return supervisor.run(lambda: func(*args, **kw), name=func.__name__)
        return sync_wrapper

    return decorator


__all__ = [
    "RetryPolicy",
    "AttemptRecord",
    "RetrySupervisor",
    "retry",
    "retry_async",
    "try_retry",
    "with_retry",
    "invoke",
]
