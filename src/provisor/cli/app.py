"""
Root Typer application for the provisor CLI.

    provisor retry -- az group create --name rg-dev --location westus2
    provisor parallel "net=az network vnet create ..." "vm=az vm create ..."
    provisor secret set vm-admin-password --vault kv-dev-westus2
"""

from __future__ import annotations

import re
import shlex

import typer
from typer import Typer

from provisor.core.errors import ProvisorError, RetriesExhausted
from provisor.core.logging import configure_logging
from provisor.core.settings import get_settings

app = Typer(
    name="provisor",
    help="provisor — retried and parallel provisioning steps.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        from provisor import __version__

        typer.echo(f"provisor {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    log_level: str | None = typer.Option(None, "--log-level", help="Override PROVISOR_LOG_LEVEL."),
) -> None:
    """provisor CLI — run commands with retries, in parallel, and move secrets."""
    settings = get_settings()
    configure_logging(
        level=log_level or settings.log_level,
        json_format=settings.log_json,
        log_file=settings.log_file,
    )


# ── retry ────────────────────────────────────────────────────────────────


@app.command("retry")
def retry_command(
    argv: list[str] = typer.Argument(..., help="Command to run (put it after --)."),
    attempts: int | None = typer.Option(None, "--attempts", "-n", help="Max attempts."),
    delay: float | None = typer.Option(None, "--delay", "-d", help="Initial delay (seconds)."),
    multiplier: float | None = typer.Option(None, "--multiplier", "-m", help="Backoff multiplier."),
) -> None:
    """Run a command, retrying with exponential backoff until it succeeds."""
    from provisor.cli.utils import fail, resolve_policy
    from provisor.execution.commands import command
    from provisor.execution.retry import retry

    policy = resolve_policy(attempts, delay, multiplier)
    try:
        proc = retry(policy, command(argv), name=argv[0])
    except RetriesExhausted as e:
        fail(e)
    if proc.stdout:
        typer.echo(proc.stdout, nl=False)


# ── parallel ─────────────────────────────────────────────────────────────

_NAMED_SPEC_RE = re.compile(r"^(?P<name>[A-Za-z0-9_.-]+)=(?P<cmd>.+)$", re.DOTALL)


def parse_job_spec(spec: str, index: int) -> tuple[str, list[str]]:
    """Split ``"name=cmd args"`` (or ``"cmd args"``) into a name and argv."""
    match = _NAMED_SPEC_RE.match(spec)
    if match:
        name, cmd = match.group("name"), match.group("cmd")
    else:
        name, cmd = f"job-{index}", spec
    argv = shlex.split(cmd)
    if not argv:
        raise typer.BadParameter(f"Empty command for job {name!r}")
    return name, argv


@app.command("parallel")
def parallel_command(
    specs: list[str] = typer.Argument(..., help='Commands, each quoted: "name=cmd args".'),
    attempts: int | None = typer.Option(1, "--attempts", "-n", help="Max attempts per job."),
    delay: float | None = typer.Option(None, "--delay", "-d", help="Initial delay (seconds)."),
    multiplier: float | None = typer.Option(None, "--multiplier", "-m", help="Backoff multiplier."),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Run several commands at once; exit 1 if any of them failed."""
    from provisor.cli.utils import fail, output_batch, resolve_policy
    from provisor.execution.commands import command
    from provisor.execution.jobs import Job, JobGroup

    policy = resolve_policy(attempts, delay, multiplier)
    try:
        group = JobGroup(
            Job(name, command(argv)).with_retry(policy)
            for name, argv in (parse_job_spec(s, i) for i, s in enumerate(specs, start=1))
        )
    except ProvisorError as e:
        fail(e, code=2)

    result = group.run_all()
    output_batch(result, as_json=json_out)
    if not result.all_succeeded:
        raise typer.Exit(code=1)


# ── Sub-command registration ─────────────────────────────────────────────

from provisor.cli.secret import app as secret_app  # noqa: E402

app.add_typer(secret_app, name="secret", help="Secret round-trips through Key Vault.")
