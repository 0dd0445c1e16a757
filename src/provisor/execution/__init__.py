"""provisor.execution — retry, parallel job supervision and step helpers.

ARCHITECTURE
────────────
::

    Action (zero-argument callable)
      │
      ├── RetrySupervisor / retry()    ─ bounded attempts, exponential backoff
      │
      ├── JobGroup / run_all()         ─ one thread (or task) per job,
      │                                  outcomes in submission order
      │
      ├── command()                    ─ argv-list actions (no shell strings)
      ├── create_with_retry()          ─ logged, retried provisioning step
      ├── exists() / ensure()          ─ idempotent create-if-missing
      ├── wait_until()                 ─ readiness polling with deadline
      └── CleanupScope                 ─ finalizers run on any exit

The two core pieces are independent; a caller composes them by wrapping a
job's action with ``Job.with_retry()`` before submitting the batch.
"""

from provisor.execution.commands import command, create_with_retry, ensure, exists, wait_until
from provisor.execution.jobs import (
    BatchResult,
    BatchState,
    Job,
    JobGroup,
    JobOutcome,
    JobStatus,
    run_all,
    run_all_async,
)
from provisor.execution.retry import (
    AttemptRecord,
    RetryPolicy,
    RetrySupervisor,
    retry,
    retry_async,
    invoke,
    try_retry,
    with_retry,
)
from provisor.execution.scope import CleanupScope

__all__ = [
    # retry
    "AttemptRecord",
    "RetryPolicy",
    "RetrySupervisor",
    "retry",
    "retry_async",
    "invoke",
    "try_retry",
    "with_retry",
    # jobs
    "BatchResult",
    "BatchState",
    "Job",
    "JobGroup",
    "JobOutcome",
    "JobStatus",
    "run_all",
    "run_all_async",
    # steps
    "command",
    "create_with_retry",
    "exists",
    "ensure",
    "wait_until",
    "CleanupScope",
]
