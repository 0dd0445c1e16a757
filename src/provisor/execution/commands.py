"""Typed command actions, retried steps, existence checks and readiness polling.

Commands are argv lists, never shell strings: there is no quoting to get
wrong and nothing for a resource name to inject into.

Example:
    >>> create_rg = command(["az", "group", "create", "--name", rg, "--location", "westus2"])
    >>> show_rg = ["az", "group", "show", "--name", rg]
    >>> ensure("Creating resource group", lambda: exists(show_rg), create_rg)
    >>> wait_until(lambda: vm_is_running(name), max_wait=300, interval=10, name=name)
"""

from __future__ import annotations

import subprocess
import time
from collections.abc import Callable, Mapping, Sequence
from typing import Any, TypeVar

from provisor.core.errors import CommandFailed, TimeoutExpired, is_retryable
from provisor.core.logging import get_logger
from provisor.execution.retry import RetryPolicy, retry

logger = get_logger(__name__)

T = TypeVar("T")


def command(
    argv: Sequence[str],
    *,
    check: bool = True,
    env: Mapping[str, str] | None = None,
    runner: Callable[..., subprocess.CompletedProcess] = subprocess.run,
) -> Callable[[], subprocess.CompletedProcess]:
    """Build an action that runs ``argv`` and captures its output.

    Args:
        argv: Program and arguments
        check: Raise :class:`CommandFailed` on a non-zero exit status
        env: Full environment for the child (default: inherit)
        runner: ``subprocess.run``-compatible callable

    Returns:
        Zero-argument action returning the ``CompletedProcess``.
    """
    args = [str(a) for a in argv]
    if not args:
        raise ValueError("command() needs at least a program name")

    def run_command() -> subprocess.CompletedProcess:
        logger.debug("command.run", program=args[0], argc=len(args))
        try:
            proc = runner(
                args,
                capture_output=True,
                text=True,
                check=False,
                env=dict(env) if env is not None else None,
            )
        except FileNotFoundError as e:
            raise CommandFailed(args, 127, str(e)) from e
        if check and proc.returncode != 0:
            raise CommandFailed(args, proc.returncode, proc.stderr or "")
        return proc

    run_command.__name__ = f"command[{args[0]}]"
    return run_command


def create_with_retry(
    description: str,
    action: Callable[[], T],
    policy: RetryPolicy | None = None,
    **retry_kwargs: Any,
) -> T:
    """Run one provisioning step under the retry supervisor, logging its outcome.

    Unless ``retry_on`` is given, errors are classified with
    :func:`~provisor.core.errors.is_retryable`: a ``ProvisorError`` marked
    non-retryable (bad input, missing config) fails on its first attempt;
    failed commands and foreign exceptions are retried.

    Raises:
        RetriesExhausted: the step failed on every attempt
    """
    retry_kwargs.setdefault("retry_on", is_retryable)
    logger.info("step.start", step=description)
    try:
        value = retry(policy or RetryPolicy(), action, name=description, **retry_kwargs)
    except Exception as e:
        logger.error("step.failed", step=description, error=str(e))
        raise
    logger.info("step.completed", step=description)
    return value


def exists(
    argv: Sequence[str],
    *,
    env: Mapping[str, str] | None = None,
    runner: Callable[..., subprocess.CompletedProcess] = subprocess.run,
) -> bool:
    """Run a read-only lookup command once; True iff it exits 0.

    Typical lookups are ``az ... show`` calls, which exit non-zero when the
    resource is absent. A program that cannot be started is not an
    answer, so that still raises.

    Raises:
        CommandFailed: the program was not found (status 127)
    """
    proc = command(argv, check=False, env=env, runner=runner)()
    found = proc.returncode == 0
    logger.debug("command.exists", program=str(argv[0]), found=found)
    return found


def ensure(
    description: str,
    is_present: Callable[[], bool],
    create: Callable[[], T],
    policy: RetryPolicy | None = None,
    **retry_kwargs: Any,
) -> T | None:
    """Create something only if ``is_present()`` says it isn't there yet.

    Returns:
        ``create``'s result, or ``None`` when the step was skipped.
    """
    if is_present():
        logger.info("step.skipped", step=description, reason="exists")
        return None
    return create_with_retry(description, create, policy, **retry_kwargs)


def wait_until(
    check: Callable[[], Any],
    *,
    max_wait: float = 300.0,
    interval: float = 10.0,
    name: str = "condition",
    sleep: Callable[[float], Any] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> Any:
    """Poll ``check`` until it returns something truthy.

    An exception from ``check`` counts as "not ready yet".

    Returns:
        The first truthy value ``check`` returned.

    Raises:
        TimeoutExpired: ``max_wait`` seconds elapsed first
    """
    deadline = clock() + max_wait
    logger.info("wait.start", name=name, max_wait=max_wait, interval=interval)
    while True:
        try:
            ready = check()
        except Exception as e:
            logger.debug("wait.check_failed", name=name, error=str(e))
            ready = None
        if ready:
            logger.info("wait.ready", name=name)
            return ready
        remaining = deadline - clock()
        if remaining <= 0:
            logger.error("wait.timeout", name=name, max_wait=max_wait)
            raise TimeoutExpired(name, max_wait)
        sleep(min(interval, remaining))


__all__ = ["command", "create_with_retry", "exists", "ensure", "wait_until"]
