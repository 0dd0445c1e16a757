"""Cleanup scope — finalizers that run however a block exits.

Instead of a process-wide exit trap, a script opens a scope and registers
cleanup callbacks as it acquires things that need undoing::

    with CleanupScope("deploy-vms") as scope:
        path = write_cloud_init()
        scope.add(os.unlink, path)
        run_all(vm_jobs).raise_for_failures()

Callbacks run last-in first-out on every exit. A failure inside the block is
logged and re-raised unchanged; a failing callback is logged and the
remaining callbacks still run.
"""

from __future__ import annotations

from collections.abc import Callable
from types import TracebackType
from typing import Any

from provisor.core.logging import get_logger

logger = get_logger(__name__)


class CleanupScope:
    """Context manager (sync and async) running registered finalizers on exit."""

    def __init__(self, name: str = "scope") -> None:
        self.name = name
        self._callbacks: list[tuple[Callable[..., Any], tuple[Any, ...], dict[str, Any]]] = []
        self.failed: BaseException | None = None

    def add(self, callback: Callable[..., Any], *args: Any, **kwargs: Any) -> Callable[..., Any]:
        """Register ``callback(*args, **kwargs)`` to run on exit. Returns ``callback``."""
        self._callbacks.append((callback, args, kwargs))
        return callback

    def _run_callbacks(self) -> None:
        while self._callbacks:
            callback, args, kwargs = self._callbacks.pop()
            try:
                callback(*args, **kwargs)
            except Exception as e:
                logger.error(
                    "scope.cleanup_failed",
                    scope=self.name,
                    callback=getattr(callback, "__name__", repr(callback)),
                    error=str(e),
                )

    def _exit(self, exc: BaseException | None) -> None:
        if exc is not None:
            self.failed = exc
            logger.error(
                "scope.failed",
                scope=self.name,
                error=str(exc),
                error_type=type(exc).__name__,
            )
        self._run_callbacks()

    def __enter__(self) -> CleanupScope:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self._exit(exc)

    async def __aenter__(self) -> CleanupScope:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self._exit(exc)


__all__ = ["CleanupScope"]
