"""Tests for provisor.cli — command smoke tests via CliRunner.

Commands run real child processes (the current interpreter) so nothing about
subprocess handling is mocked; the Key Vault store is swapped for an
in-memory one.
"""

import json
import sys

import pytest
import typer
from typer.testing import CliRunner

from provisor import __version__
from provisor.cli import app
from provisor.cli import secret as secret_cli
from provisor.cli.app import parse_job_spec
from provisor.core.errors import MissingSecretError
from provisor.core.secrets import DictSecretStore

runner = CliRunner()

PY = sys.executable
PASSWORD = "S3cure!Passw0rd"


def py(code: str) -> list[str]:
    return [PY, "-c", code]


def job(name: str, code: str) -> str:
    return f'{name}={PY} -c "{code}"'


class TestRootApp:
    def test_version(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert f"provisor {__version__}" in result.output

    def test_no_args_shows_help(self):
        result = runner.invoke(app, [])
        assert "retry" in result.output
        assert "parallel" in result.output


class TestRetryCommand:
    def test_success_echoes_stdout(self):
        result = runner.invoke(app, ["retry", "--", *py("print('vnet-created')")])
        assert result.exit_code == 0
        assert "vnet-created" in result.output

    def test_exhaustion_exits_1(self):
        result = runner.invoke(
            app, ["retry", "-n", "2", "-d", "0", "--", *py("import sys; sys.exit(3)")]
        )
        assert result.exit_code == 1
        assert "RetriesExhausted" in result.output

    def test_invalid_policy_exits_2(self):
        result = runner.invoke(app, ["retry", "-n", "0", "--", *py("pass")])
        assert result.exit_code == 2
        assert "InvalidConfigError" in result.output


class TestParseJobSpec:
    def test_named(self):
        assert parse_job_spec("net=az network vnet create --name 'vnet dev'", 1) == (
            "net",
            ["az", "network", "vnet", "create", "--name", "vnet dev"],
        )

    def test_default_name(self):
        assert parse_job_spec("echo hi", 3) == ("job-3", ["echo", "hi"])

    def test_empty_command(self):
        with pytest.raises(typer.BadParameter):
            parse_job_spec("net=   ", 1)


class TestParallelCommand:
    def test_all_succeed_json(self):
        result = runner.invoke(
            app,
            [
                "--log-level", "ERROR",
                "parallel", "--json",
                job("net", "print(1)"),
                job("vm", "print(2)"),
            ],
        )
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["total"] == 2
        assert data["all_succeeded"] is True
        assert [j["name"] for j in data["jobs"]] == ["net", "vm"]

    def test_one_failure_exits_1_and_reports_all(self):
        result = runner.invoke(
            app,
            [
                "parallel",
                job("net", "print(1)"),
                job("vm", "import sys; sys.exit(4)"),
                job("db", "print(3)"),
            ],
        )
        assert result.exit_code == 1
        assert "2/3 succeeded, 1 failed" in result.output

    def test_duplicate_names_exit_2(self):
        result = runner.invoke(app, ["parallel", job("vm", "pass"), job("vm", "pass")])
        assert result.exit_code == 2
        assert "Duplicate job name" in result.output


class TestSecretCommands:
    @pytest.fixture
    def store(self, monkeypatch):
        store = DictSecretStore()
        monkeypatch.setattr(secret_cli, "AzureKeyVaultStore", lambda vault_name: store)
        return store

    def test_set_then_get(self, store):
        set_result = runner.invoke(
            app,
            ["secret", "set", "vm-admin-password", "--vault", "kv-dev"],
            input=f"{PASSWORD}\n{PASSWORD}\n",
        )
        assert set_result.exit_code == 0, set_result.output
        assert "Stored secret: vm-admin-password" in set_result.output
        assert store.get("vm-admin-password") == PASSWORD

        get_result = runner.invoke(
            app, ["--log-level", "ERROR", "secret", "get", "vm-admin-password", "--vault", "kv-dev"]
        )
        assert get_result.exit_code == 0
        assert get_result.stdout == f"{PASSWORD}\n"

    def test_weak_password_rejected(self, store):
        result = runner.invoke(
            app, ["secret", "set", "k", "--vault", "kv-dev"], input="weak\nweak\n"
        )
        assert result.exit_code == 2
        assert "ValidationError" in result.output
        with pytest.raises(MissingSecretError):
            store.get("k")

    def test_complexity_check_can_be_disabled(self, store):
        result = runner.invoke(
            app,
            ["secret", "set", "k", "--vault", "kv-dev", "--no-check-complexity"],
            input="weak\nweak\n",
        )
        assert result.exit_code == 0
        assert store.get("k") == "weak"

    def test_vault_from_settings(self, store, monkeypatch):
        monkeypatch.setenv("PROVISOR_KEY_VAULT_NAME", "kv-from-env")
        store.set("k", "v")
        result = runner.invoke(app, ["--log-level", "ERROR", "secret", "get", "k"])
        assert result.exit_code == 0
        assert result.stdout == "v\n"

    def test_missing_vault_exits_2(self, store):
        result = runner.invoke(app, ["secret", "get", "k"])
        assert result.exit_code == 2
        assert "PROVISOR_KEY_VAULT_NAME" in result.output

    def test_missing_secret_exits_1(self, store):
        result = runner.invoke(app, ["secret", "get", "nope", "--vault", "kv-dev"])
        assert result.exit_code == 1
        assert "Secret not found" in result.output

    def test_list(self, store):
        store.set("vm-admin-password", "a")
        store.set("db-password", "b")
        result = runner.invoke(app, ["--log-level", "ERROR", "secret", "list", "--vault", "kv-dev"])
        assert result.exit_code == 0
        assert result.stdout == "db-password\nvm-admin-password\n"

    def test_list_empty_vault(self, store):
        result = runner.invoke(app, ["--log-level", "ERROR", "secret", "list", "--vault", "kv-dev"])
        assert result.exit_code == 0
        assert result.stdout == ""

    def test_delete_after_confirmation(self, store):
        store.set("k", "v")
        result = runner.invoke(app, ["secret", "delete", "k", "--vault", "kv-dev"], input="y\n")
        assert result.exit_code == 0, result.output
        assert "Delete secret 'k'?" in result.output
        assert "Deleted secret: k" in result.output
        assert store.list() == []

    def test_delete_declined_keeps_secret(self, store):
        store.set("k", "v")
        result = runner.invoke(app, ["secret", "delete", "k", "--vault", "kv-dev"], input="n\n")
        assert result.exit_code != 0
        assert "Deleted secret" not in result.output
        assert store.get("k") == "v"

    def test_delete_yes_skips_prompt(self, store):
        store.set("k", "v")
        result = runner.invoke(app, ["secret", "delete", "k", "--vault", "kv-dev", "--yes"])
        assert result.exit_code == 0
        assert "Delete secret 'k'?" not in result.output
        assert store.list() == []

    def test_delete_missing_exits_1(self, store):
        result = runner.invoke(app, ["secret", "delete", "nope", "--vault", "kv-dev", "-y"])
        assert result.exit_code == 1
        assert "Secret not found" in result.output
