"""Secret round-trip through an external secret store.

Deployment scripts hand passwords from one step to the next by writing them
to a vault and reading them back later, so the value never sits in a shell
variable, a config file, or a process listing. This module defines what
provisor needs from such a store and ships two implementations:

    ┌────────────────────┐  set/get/list  ┌──────────────────────────┐
    │ store_secret()     │ ─────────────▶ │ SecretStore              │
    │ retrieve_secret()  │   (retried)    │  ├─ DictSecretStore      │
    │ list_secrets()     │                │  └─ AzureKeyVaultStore   │
    │ delete_secret()    │                └──────────────────────────┘
    └────────────────────┘

All four helpers run under the retry supervisor, because every call is
a network call that can transiently fail. There is no caching: every
``retrieve_secret`` is a live read.

Examples:
    >>> store = DictSecretStore()
    >>> store_secret(store, "vm-admin-password", "S3cure!Passw0rd")
    >>> retrieve_secret(store, "vm-admin-password")
    SecretValue('[REDACTED]')

Guardrails:
    - Secrets should NEVER be logged (use the SecretValue wrapper)
    - Never pass a secret value on a command line
"""

from __future__ import annotations

import os
import re
import subprocess
import tempfile
import threading
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from provisor.core.errors import (
    MissingSecretError,
    SecretStoreError,
    ValidationError,
    is_retryable,
)
from provisor.core.logging import get_logger

if TYPE_CHECKING:
    from provisor.execution.retry import RetryPolicy

logger = get_logger(__name__)


# ---------------------------------------------------------------------------
# SecretValue wrapper
# ---------------------------------------------------------------------------


class SecretValue:
    """Wrapper for secret values that prevents accidental logging.

    The string representation shows ``[REDACTED]`` instead of the value.
    Use ``.get_secret()`` to access the actual value.

    Example:
        >>> secret = SecretValue("my_password")
        >>> print(secret)           # [REDACTED]
        >>> secret.get_secret()     # "my_password"
    """

    __slots__ = ("_value",)

    def __init__(self, value: str):
        self._value = value

    def get_secret(self) -> str:
        """Get the actual secret value."""
        return self._value

    def __str__(self) -> str:
        return "[REDACTED]"

    def __repr__(self) -> str:
        return "SecretValue('[REDACTED]')"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, SecretValue):
            return self._value == other._value
        return False

    def __hash__(self) -> int:
        return hash(self._value)

    def __bool__(self) -> bool:
        return bool(self._value)

    def __len__(self) -> int:
        return len(self._value)


# ---------------------------------------------------------------------------
# Stores
# ---------------------------------------------------------------------------


class SecretStore(ABC):
    """Key/value secret store.

    Implementations raise :class:`SecretStoreError` for failures worth
    retrying and :class:`MissingSecretError` when a name does not exist.
    """

    name: str = "secret-store"

    @abstractmethod
    def set(self, name: str, value: str) -> None:
        """Create or overwrite a secret."""
        ...

    @abstractmethod
    def get(self, name: str) -> str:
        """Read a secret.

        Raises:
            MissingSecretError: no secret with this name
        """
        ...

    @abstractmethod
    def list(self) -> list[str]:
        """Names of every secret in the store, sorted."""
        ...

    @abstractmethod
    def delete(self, name: str) -> None:
        """Remove a secret.

        Raises:
            MissingSecretError: no secret with this name
        """
        ...


class DictSecretStore(SecretStore):
    """In-memory store for tests and dry runs.

    NOT for production use — stores secrets in plain memory.
    """

    name = "memory"

    def __init__(self, secrets: dict[str, str] | None = None):
        self._secrets = dict(secrets) if secrets else {}
        self._lock = threading.Lock()

    def set(self, name: str, value: str) -> None:
        with self._lock:
            self._secrets[name] = value

    def get(self, name: str) -> str:
        with self._lock:
            if name not in self._secrets:
                raise MissingSecretError(name, store=self.name)
            return self._secrets[name]

    def list(self) -> list[str]:
        with self._lock:
            return sorted(self._secrets)

    def delete(self, name: str) -> None:
        with self._lock:
            if name not in self._secrets:
                raise MissingSecretError(name, store=self.name)
            del self._secrets[name]

    def clear(self) -> None:
        with self._lock:
            self._secrets.clear()


_NOT_FOUND_RE = re.compile(r"SecretNotFound|was not found", re.IGNORECASE)


def _strip_tsv_newline(stdout: str) -> str:
    """Drop the one line terminator tsv output appends; keep the value's own."""
    if stdout.endswith("\r\n"):
        return stdout[:-2]
    if stdout.endswith("\n"):
        return stdout[:-1]
    return stdout


class AzureKeyVaultStore(SecretStore):
    """Azure Key Vault through the ``az`` command-line tool.

    The value is written to a private temporary file and passed with
    ``--file``, so it never appears in the process table. The file is removed
    whether or not the call succeeds.

    Args:
        vault_name: Key Vault name
        runner: ``subprocess.run``-compatible callable (injectable for tests)
        az: Path or name of the az executable
    """

    name = "azure-key-vault"

    def __init__(
        self,
        vault_name: str,
        *,
        runner: Callable[..., subprocess.CompletedProcess] = subprocess.run,
        az: str = "az",
    ) -> None:
        self.vault_name = vault_name
        self._run = runner
        self._az = az

    def _invoke(self, argv: list[str], secret_name: str | None) -> subprocess.CompletedProcess:
        try:
            proc = self._run(argv, capture_output=True, text=True, check=False)
        except OSError as e:
            raise SecretStoreError(f"Could not run {self._az}: {e}", cause=e).with_context(
                vault_name=self.vault_name
            )
        if proc.returncode != 0:
            stderr = (proc.stderr or "").strip()
            if secret_name is not None and _NOT_FOUND_RE.search(stderr):
                raise MissingSecretError(secret_name, store=self.vault_name)
            raise SecretStoreError(
                f"az keyvault exited with status {proc.returncode}: {stderr.splitlines()[-1] if stderr else ''}"
            ).with_context(vault_name=self.vault_name, secret=secret_name)
        return proc

    def set(self, name: str, value: str) -> None:
        fd, path = tempfile.mkstemp(prefix="provisor-", suffix=".secret")
        try:
            with os.fdopen(fd, "w", encoding="utf-8", newline="") as fh:
                fh.write(value)
            self._invoke(
                [
                    self._az, "keyvault", "secret", "set",
                    "--vault-name", self.vault_name,
                    "--name", name,
                    "--file", path,
                    "--encoding", "utf-8",
                    "--output", "none",
                ],
                name,
            )
        finally:
            os.unlink(path)

    def get(self, name: str) -> str:
        proc = self._invoke(
            [
                self._az, "keyvault", "secret", "show",
                "--vault-name", self.vault_name,
                "--name", name,
                "--query", "value",
                "--output", "tsv",
            ],
            name,
        )
        return _strip_tsv_newline(proc.stdout)

    def list(self) -> list[str]:
        proc = self._invoke(
            [
                self._az, "keyvault", "secret", "list",
                "--vault-name", self.vault_name,
                "--query", "[].name",
                "--output", "tsv",
            ],
            None,
        )
        return sorted(line for line in proc.stdout.splitlines() if line)

    def delete(self, name: str) -> None:
        self._invoke(
            [
                self._az, "keyvault", "secret", "delete",
                "--vault-name", self.vault_name,
                "--name", name,
                "--output", "none",
            ],
            name,
        )


# ---------------------------------------------------------------------------
# Round-trip helpers
# ---------------------------------------------------------------------------


def store_secret(
    store: SecretStore,
    key: str,
    value: str | SecretValue,
    policy: RetryPolicy | None = None,
    **retry_kwargs: Any,
) -> None:
    """Write a secret, retrying transient store failures.

    Args:
        store: Target store
        key: Secret name
        value: Plain string or :class:`SecretValue`
        policy: :class:`~provisor.execution.retry.RetryPolicy` (default policy if None)

    Raises:
        RetriesExhausted: the store kept failing
    """
    from provisor.execution.retry import RetryPolicy, retry

    raw = value.get_secret() if isinstance(value, SecretValue) else value
    logger.info("secrets.store", key=key, store=store.name)
    retry(
        policy or RetryPolicy(),
        lambda: store.set(key, raw),
        name=f"store-secret:{key}",
        **retry_kwargs,
    )
    logger.info("secrets.stored", key=key, store=store.name)


def retrieve_secret(
    store: SecretStore,
    key: str,
    policy: RetryPolicy | None = None,
    **retry_kwargs: Any,
) -> SecretValue:
    """Read a secret back, live, retrying transient store failures.

    A missing secret is not retried; see :func:`~provisor.core.errors.is_retryable`.

    Raises:
        RetriesExhausted: the store kept failing, or the secret is missing
            (``last_error`` is the :class:`MissingSecretError`)
    """
    from provisor.execution.retry import RetryPolicy, retry

    retry_kwargs.setdefault("retry_on", is_retryable)
    value = retry(
        policy or RetryPolicy(),
        lambda: store.get(key),
        name=f"retrieve-secret:{key}",
        **retry_kwargs,
    )
    return SecretValue(value)


def list_secrets(
    store: SecretStore,
    policy: RetryPolicy | None = None,
    **retry_kwargs: Any,
) -> list[str]:
    """Names of every secret in ``store``, retrying transient store failures."""
    from provisor.execution.retry import RetryPolicy, retry

    retry_kwargs.setdefault("retry_on", is_retryable)
    return retry(
        policy or RetryPolicy(),
        store.list,
        name=f"list-secrets:{store.name}",
        **retry_kwargs,
    )


def delete_secret(
    store: SecretStore,
    key: str,
    policy: RetryPolicy | None = None,
    **retry_kwargs: Any,
) -> None:
    """Delete a secret, retrying transient store failures.

    Raises:
        RetriesExhausted: the store kept failing, or the secret is missing
            (``last_error`` is the :class:`MissingSecretError`)
    """
    from provisor.execution.retry import RetryPolicy, retry

    retry_kwargs.setdefault("retry_on", is_retryable)
    logger.info("secrets.delete", key=key, store=store.name)
    retry(
        policy or RetryPolicy(),
        lambda: store.delete(key),
        name=f"delete-secret:{key}",
        **retry_kwargs,
    )
    logger.info("secrets.deleted", key=key, store=store.name)


# ---------------------------------------------------------------------------
# Password complexity
# ---------------------------------------------------------------------------

_PASSWORD_RULES: list[tuple[str, str, Callable[[str], bool]]] = [
    ("uppercase", "at least one uppercase letter", lambda p: re.search(r"[A-Z]", p) is not None),
    ("lowercase", "at least one lowercase letter", lambda p: re.search(r"[a-z]", p) is not None),
    ("digit", "at least one digit", lambda p: re.search(r"[0-9]", p) is not None),
    ("special", "at least one special character", lambda p: re.search(r"[^a-zA-Z0-9]", p) is not None),
]


def validate_password(password: str | SecretValue, min_length: int = 12) -> None:
    """Check a password against the VM admin complexity rules.

    Raises:
        ValidationError: naming the first rule the password breaks
    """
    raw = password.get_secret() if isinstance(password, SecretValue) else password
    if len(raw) < min_length:
        raise ValidationError(
            f"Password must be at least {min_length} characters", rule="length"
        )
    for rule, description, check in _PASSWORD_RULES:
        if not check(raw):
            raise ValidationError(f"Password must contain {description}", rule=rule)


__all__ = [
    "SecretValue",
    "SecretStore",
    "DictSecretStore",
    "AzureKeyVaultStore",
    "store_secret",
    "retrieve_secret",
    "list_secrets",
    "delete_secret",
    "validate_password",
]
