"""
CLI utility helpers — settings, policy resolution and output formatting.
"""

from __future__ import annotations

import json
from typing import NoReturn

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from provisor.core.errors import ProvisorError
from provisor.core.settings import ProvisorSettings, get_settings
from provisor.execution.jobs import BatchResult, JobStatus
from provisor.execution.retry import RetryPolicy

console = Console()
err_console = Console(stderr=True)

_STATUS_STYLE = {
    JobStatus.SUCCEEDED: "[green]✓ succeeded[/green]",
    JobStatus.FAILED: "[red]✗ failed[/red]",
}


def resolve_policy(
    attempts: int | None,
    delay: float | None,
    multiplier: float | None,
    settings: ProvisorSettings | None = None,
) -> RetryPolicy:
    """Build a policy from CLI options, falling back to settings for unset ones."""
    settings = settings or get_settings()
    base = RetryPolicy.from_settings(settings)
    try:
        return RetryPolicy(
            max_attempts=attempts if attempts is not None else base.max_attempts,
            initial_delay=delay if delay is not None else base.initial_delay,
            multiplier=multiplier if multiplier is not None else base.multiplier,
        )
    except ProvisorError as e:
        fail(e, code=2)


def fail(error: BaseException, *, code: int = 1) -> NoReturn:
    """Print an error and exit with ``code``."""
    label = type(error).__name__
    err_console.print(f"[bold red]Error[/bold red] ({label}): {escape(str(error))}", soft_wrap=True)
    raise typer.Exit(code=code)


def output_batch(result: BatchResult, *, as_json: bool = False) -> None:
    """Render a ``BatchResult`` as a table (or JSON)."""
    if as_json:
        console.print_json(json.dumps(result.to_dict(), default=str))
        return

    table = Table(title=f"Batch {result.batch_id[:8]}", show_lines=False)
    table.add_column("Job", style="bold")
    table.add_column("Status")
    table.add_column("Duration", justify="right")
    table.add_column("Error", overflow="fold")
    for outcome in result.outcomes:
        table.add_row(
            outcome.name,
            _STATUS_STYLE[outcome.status],
            f"{outcome.duration_seconds:.2f}s",
            escape(str(outcome.error)) if outcome.error is not None else "",
        )
    console.print(table)
    console.print(
        f"{result.succeeded}/{result.total} succeeded, "
        f"{result.failure_count} failed in {result.duration_seconds:.2f}s"
    )
