"""Parallel Job Group — launch named actions together, wait for all of them.

WHY
───
Provisioning steps like "create the four VMs" are independent and slow. They
are started together and the script continues only once every one of them has
finished, knowing exactly which ones failed. One failure must not cancel the
others: a half-created VM left behind by a cancelled call is worse than a
finished one.

ARCHITECTURE
────────────
::

    JobGroup
      ├── .add(name, action)      ─ COLLECTING
      ├── .run_all()              ─ one thread per job, all launched first
      │      ALL_LAUNCHED → AWAITING_COMPLETION → DONE
      └── BatchResult             ─ outcomes in submission order
             ├── all_succeeded / failure_count
             └── raise_for_failures() → BatchPartialFailure

    per job:  PENDING → RUNNING → SUCCEEDED | FAILED

There is no concurrency cap, no per-job timeout and no cancellation: a hung
action delays the batch until it returns. Retrying belongs to the action
itself; compose with :meth:`Job.with_retry` before submitting.

Example::

    group = JobGroup()
    group.add("vm-bastion", create_bastion).add("vm-app", create_app)
    result = group.run_all()
    if not result.all_succeeded:
        print(result.failure_count, [o.name for o in result.failures])
"""

from __future__ import annotations

import asyncio
import contextvars
import inspect
import threading
import uuid
from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, replace
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from provisor.core.errors import BatchPartialFailure, InvalidConfigError, ProvisorError
from provisor.core.logging import LogContext, get_logger
from provisor.core.result import Err, Ok, Result, capture
from provisor.execution.retry import RetryPolicy, RetrySupervisor, invoke

logger = get_logger(__name__)


class JobStatus(str, Enum):
    """Lifecycle of one job. SUCCEEDED and FAILED are terminal."""

    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.SUCCEEDED, JobStatus.FAILED)


class BatchState(str, Enum):
    """Lifecycle of a batch."""

    COLLECTING = "collecting"
    ALL_LAUNCHED = "all_launched"
    AWAITING_COMPLETION = "awaiting_completion"
    DONE = "done"


@dataclass(frozen=True)
class Job:
    """A named action submitted to a batch."""

    name: str
    action: Callable[[], Any]

    def with_retry(self, policy: RetryPolicy | None = None, **kwargs: Any) -> Job:
        """Same job, with its action run under a :class:`RetrySupervisor`."""
        supervisor = RetrySupervisor(policy, **kwargs)
        return replace(self, action=supervisor.wrap(self.action, name=self.name))


@dataclass(frozen=True)
class JobOutcome:
    """Terminal outcome of one job."""

    name: str
    status: JobStatus
    result: Result[Any]
    started_at: datetime
    completed_at: datetime

    @property
    def succeeded(self) -> bool:
        return self.status is JobStatus.SUCCEEDED

    @property
    def error(self) -> Exception | None:
        """The job's error, or ``None`` if it succeeded."""
        return self.result.error if isinstance(self.result, Err) else None

    @property
    def value(self) -> Any:
        """The action's return value, or ``None`` if it failed."""
        return self.result.unwrap_or(None)

    @property
    def duration_seconds(self) -> float:
        return (self.completed_at - self.started_at).total_seconds()


@dataclass(frozen=True)
class BatchResult:
    """Outcome of every job in a batch, in submission order."""

    batch_id: str
    outcomes: tuple[JobOutcome, ...]
    started_at: datetime
    completed_at: datetime

    @property
    def total(self) -> int:
        return len(self.outcomes)

    @property
    def succeeded(self) -> int:
        """Number of jobs that succeeded."""
        return sum(1 for o in self.outcomes if o.succeeded)

    @property
    def failure_count(self) -> int:
        """Number of jobs that failed."""
        return self.total - self.succeeded

    @property
    def all_succeeded(self) -> bool:
        """True iff every job succeeded (vacuously true for an empty batch)."""
        return self.failure_count == 0

    @property
    def failures(self) -> list[JobOutcome]:
        return [o for o in self.outcomes if not o.succeeded]

    @property
    def names(self) -> list[str]:
        return [o.name for o in self.outcomes]

    @property
    def duration_seconds(self) -> float:
        """Wall-clock duration of the entire batch."""
        return (self.completed_at - self.started_at).total_seconds()

    def __getitem__(self, name: str) -> JobOutcome:
        for outcome in self.outcomes:
            if outcome.name == name:
                return outcome
        raise KeyError(name)

    def __iter__(self):
        return iter(self.outcomes)

    def __len__(self) -> int:
        return len(self.outcomes)

    def raise_for_failures(self) -> BatchResult:
        """Raise :class:`BatchPartialFailure` if any job failed, else return self."""
        if not self.all_succeeded:
            raise BatchPartialFailure(self)
        return self

    def to_dict(self) -> dict[str, Any]:
        """Serialise for logging / CLI output."""
        return {
            "batch_id": self.batch_id,
            "total": self.total,
            "succeeded": self.succeeded,
            "failed": self.failure_count,
            "all_succeeded": self.all_succeeded,
            "duration_seconds": self.duration_seconds,
            "jobs": [
                {
                    "name": o.name,
                    "status": o.status.value,
                    "duration_seconds": o.duration_seconds,
                    "error": str(o.error) if o.error is not None else None,
                }
                for o in self.outcomes
            ],
        }


class JobGroup:
    """One batch of concurrently executed jobs.

    Use :meth:`add` to collect jobs, then :meth:`run_all` (threads) or
    :meth:`run_all_async` (asyncio tasks). A group runs once.
    """

    def __init__(self, jobs: Iterable[Job] = ()) -> None:
        self._jobs: list[Job] = []
        self._statuses: dict[str, JobStatus] = {}
        self._lock = threading.Lock()
        self._state = BatchState.COLLECTING
        self._batch_id = str(uuid.uuid4())
        for job in jobs:
            self._add(job)

    # ── Building ─────────────────────────────────────────────────────

    def _add(self, job: Job) -> None:
        if self._state is not BatchState.COLLECTING:
            raise ProvisorError(f"Batch {self._batch_id} already launched; cannot add {job.name!r}")
        if job.name in self._statuses:
            raise InvalidConfigError("name", job.name, f"Duplicate job name: {job.name!r}")
        self._jobs.append(job)
        self._statuses[job.name] = JobStatus.PENDING

    def add(self, name: str, action: Callable[[], Any]) -> JobGroup:
        """Add a job. Returns ``self`` for fluent chaining."""
        self._add(Job(name=name, action=action))
        return self

    # ── Inspection ───────────────────────────────────────────────────

    @property
    def batch_id(self) -> str:
        return self._batch_id

    @property
    def state(self) -> BatchState:
        return self._state

    @property
    def job_count(self) -> int:
        return len(self._jobs)

    def status(self, name: str) -> JobStatus:
        with self._lock:
            return self._statuses[name]

    # ── Execution ────────────────────────────────────────────────────

    def _set_status(self, name: str, status: JobStatus) -> None:
        with self._lock:
            self._statuses[name] = status

    def _finish(self, job: Job, started_at: datetime, result: Result[Any]) -> JobOutcome:
        status = JobStatus.SUCCEEDED if isinstance(result, Ok) else JobStatus.FAILED
        self._set_status(job.name, status)
        if isinstance(result, Err):
            logger.warning(
                "jobs.job_failed",
                job=job.name,
                error=str(result.error),
                error_type=type(result.error).__name__,
            )
        else:
            logger.debug("jobs.job_succeeded", job=job.name)
        return JobOutcome(
            name=job.name,
            status=status,
            result=result,
            started_at=started_at,
            completed_at=datetime.now(UTC),
        )

    def _run_one(self, job: Job) -> JobOutcome:
        started_at = datetime.now(UTC)
        self._set_status(job.name, JobStatus.RUNNING)
        return self._finish(job, started_at, capture(lambda: invoke(job.action)))

    async def _run_one_async(self, job: Job) -> JobOutcome:
        started_at = datetime.now(UTC)
        self._set_status(job.name, JobStatus.RUNNING)
        try:
            if inspect.iscoroutinefunction(job.action):
                value = await job.action()
            else:
                value = await asyncio.to_thread(job.action)
                if inspect.iscoroutine(value):
                    value = await value
            result: Result[Any] = Ok(value)
        except Exception as e:
            result = Err(e)
        return self._finish(job, started_at, result)

    def _begin(self) -> datetime:
        if self._state is not BatchState.COLLECTING:
            raise ProvisorError(f"Batch {self._batch_id} has already been run")
        logger.info("jobs.batch_start", jobs=[j.name for j in self._jobs])
        return datetime.now(UTC)

    def _complete(self, started_at: datetime, outcomes: list[JobOutcome]) -> BatchResult:
        self._state = BatchState.DONE
        result = BatchResult(
            batch_id=self._batch_id,
            outcomes=tuple(outcomes),
            started_at=started_at,
            completed_at=datetime.now(UTC),
        )
        logger.info(
            "jobs.batch_complete",
            succeeded=result.succeeded,
            failed=result.failure_count,
            duration_seconds=result.duration_seconds,
        )
        return result

    def run_all(self) -> BatchResult:
        """Run every job on its own thread and block until all are terminal.

        Coroutine-function actions run to completion on their own thread's
        event loop.

        Returns:
            :class:`BatchResult` with one outcome per job, in submission order.
        """
        with LogContext(batch_id=self._batch_id):
            started_at = self._begin()
            if not self._jobs:
                return self._complete(started_at, [])

            with ThreadPoolExecutor(
                max_workers=len(self._jobs),
                thread_name_prefix="provisor-job",
            ) as pool:
                futures = [
                    pool.submit(contextvars.copy_context().run, self._run_one, job)
                    for job in self._jobs
                ]
                self._state = BatchState.ALL_LAUNCHED
                self._state = BatchState.AWAITING_COMPLETION
                outcomes = [future.result() for future in futures]

            return self._complete(started_at, outcomes)

    async def run_all_async(self) -> BatchResult:
        """Run every job as an asyncio task and wait for all of them.

        Coroutine-function actions are awaited; plain callables run in a
        worker thread so they don't block the event loop.
        """
        async with LogContext(batch_id=self._batch_id):
            started_at = self._begin()
            tasks = [asyncio.ensure_future(self._run_one_async(job)) for job in self._jobs]
            self._state = BatchState.ALL_LAUNCHED
            self._state = BatchState.AWAITING_COMPLETION
            outcomes = list(await asyncio.gather(*tasks))
            return self._complete(started_at, outcomes)


def run_all(jobs: Iterable[Job]) -> BatchResult:
    """Run ``jobs`` concurrently (one thread each) and collect their outcomes."""
    return JobGroup(jobs).run_all()


async def run_all_async(jobs: Iterable[Job]) -> BatchResult:
    """Run ``jobs`` concurrently as asyncio tasks and collect their outcomes."""
    return await JobGroup(jobs).run_all_async()


__all__ = [
    "JobStatus",
    "BatchState",
    "Job",
    "JobOutcome",
    "BatchResult",
    "JobGroup",
    "run_all",
    "run_all_async",
]
