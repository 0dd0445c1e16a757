"""
CLI: ``provisor secret`` — store, read, list and delete Azure Key Vault secrets.
"""

from __future__ import annotations

import typer
from rich.markup import escape

from provisor.cli.utils import console, fail, resolve_policy
from provisor.core.errors import MissingConfigError, RetriesExhausted, ValidationError
from provisor.core.secrets import (
    AzureKeyVaultStore,
    SecretStore,
    delete_secret,
    list_secrets,
    retrieve_secret,
    store_secret,
    validate_password,
)
from provisor.core.settings import get_settings

app = typer.Typer(no_args_is_help=True)


def _store(vault: str | None) -> SecretStore:
    vault_name = vault or get_settings().key_vault_name
    if not vault_name:
        fail(MissingConfigError("key_vault_name", "No vault given: pass --vault or set PROVISOR_KEY_VAULT_NAME"), code=2)
    return AzureKeyVaultStore(vault_name)


@app.command("set")
def set_secret(
    name: str = typer.Argument(..., help="Secret name"),
    vault: str | None = typer.Option(None, "--vault", "-v"),
    check_complexity: bool = typer.Option(
        True, "--check-complexity/--no-check-complexity",
        help="Require 12+ chars with upper, lower, digit and special.",
    ),
    attempts: int | None = typer.Option(None, "--attempts", "-n"),
) -> None:
    """Store a secret. The value is prompted for, never taken from argv."""
    store = _store(vault)
    policy = resolve_policy(attempts, None, None)
    value = typer.prompt("Secret value", hide_input=True, confirmation_prompt=True)
    if check_complexity:
        try:
            validate_password(value)
        except ValidationError as e:
            fail(e, code=2)
    try:
        store_secret(store, name, value, policy)
    except RetriesExhausted as e:
        fail(e)
    console.print(f"[green]✓[/green] Stored secret: {escape(name)}")


@app.command("get")
def get_secret(
    name: str = typer.Argument(..., help="Secret name"),
    vault: str | None = typer.Option(None, "--vault", "-v"),
    attempts: int | None = typer.Option(None, "--attempts", "-n"),
) -> None:
    """Print a secret's value to stdout (for ``$(provisor secret get ...)``)."""
    store = _store(vault)
    policy = resolve_policy(attempts, None, None)
    try:
        value = retrieve_secret(store, name, policy)
    except RetriesExhausted as e:
        fail(e)
    typer.echo(value.get_secret())


@app.command("list")
def list_secret_names(
    vault: str | None = typer.Option(None, "--vault", "-v"),
    attempts: int | None = typer.Option(None, "--attempts", "-n"),
) -> None:
    """Print the name of every secret in the vault, one per line."""
    store = _store(vault)
    policy = resolve_policy(attempts, None, None)
    try:
        names = list_secrets(store, policy)
    except RetriesExhausted as e:
        fail(e)
    for name in names:
        typer.echo(name)


@app.command("delete")
def delete_secret_cmd(
    name: str = typer.Argument(..., help="Secret name"),
    vault: str | None = typer.Option(None, "--vault", "-v"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt."),
    attempts: int | None = typer.Option(None, "--attempts", "-n"),
) -> None:
    """Delete a secret after confirming."""
    store = _store(vault)
    policy = resolve_policy(attempts, None, None)
    if not yes:
        typer.confirm(f"Delete secret '{name}'?", abort=True)
    try:
        delete_secret(store, name, policy)
    except RetriesExhausted as e:
        fail(e)
    console.print(f"[green]✓[/green] Deleted secret: {escape(name)}")
