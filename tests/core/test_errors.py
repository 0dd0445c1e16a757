"""Tests for the provisor error hierarchy."""

import pytest

from provisor.core.errors import (
    ActionFailure,
    CommandFailed,
    ErrorCategory,
    ErrorContext,
    InvalidConfigError,
    MissingConfigError,
    MissingSecretError,
    ProvisorError,
    RetriesExhausted,
    SecretStoreError,
    TimeoutExpired,
    ValidationError,
    is_retryable,
)


class TestProvisorError:
    def test_defaults(self):
        error = ProvisorError("Something went wrong")
        assert error.message == "Something went wrong"
        assert error.category is ErrorCategory.INTERNAL
        assert error.retryable is False
        assert error.cause is None

    def test_cause_is_chained(self):
        cause = OSError("disk full")
        error = ProvisorError("write failed", cause=cause)
        assert error.__cause__ is cause
        assert error.to_dict()["cause"] == "disk full"

    def test_with_context(self):
        error = ProvisorError("boom").with_context(step="deploy", vm_size="Standard_B2s")
        assert error.context.step == "deploy"
        assert error.context.metadata == {"vm_size": "Standard_B2s"}

    def test_to_dict(self):
        error = SecretStoreError("throttled").with_context(vault_name="kv-dev")
        assert error.to_dict() == {
            "error_type": "SecretStoreError",
            "message": "throttled",
            "category": "SECRET",
            "retryable": True,
            "context": {"vault_name": "kv-dev"},
        }

    def test_repr(self):
        assert repr(ValidationError("bad")) == "ValidationError('bad', category=VALIDATION)"


class TestErrorContext:
    def test_only_set_fields_serialized(self):
        ctx = ErrorContext(job="vm-app", metadata={"attempt": 2})
        assert ctx.to_dict() == {"job": "vm-app", "attempt": 2}


class TestSubclasses:
    def test_retries_exhausted(self):
        last = RuntimeError("still busy")
        error = RetriesExhausted(last, name="create-vm")
        assert isinstance(error, ActionFailure)
        assert error.last_error is last
        assert error.__cause__ is last
        assert error.context.step == "create-vm"
        assert error.category is ErrorCategory.ACTION

    def test_command_failed_message_uses_last_stderr_line(self):
        error = CommandFailed(["az", "vm", "create"], 1, "WARNING: x\nERROR: quota exceeded\n")
        assert str(error) == "az exited with status 1: ERROR: quota exceeded"
        assert error.category is ErrorCategory.COMMAND

    def test_missing_config(self):
        error = MissingConfigError("key_vault_name")
        assert "key_vault_name" in str(error)
        assert error.context.metadata["config_key"] == "key_vault_name"

    def test_invalid_config(self):
        error = InvalidConfigError("max_attempts", 0)
        assert error.context.metadata == {"config_key": "max_attempts", "config_value": "0"}

    def test_validation_rule(self):
        assert ValidationError("too short", rule="length").rule == "length"

    def test_missing_secret_not_retryable(self):
        error = MissingSecretError("admin-password", store="kv-dev")
        assert isinstance(error, SecretStoreError)
        assert error.retryable is False
        assert str(error) == "Secret not found: admin-password (store: kv-dev)"

    def test_timeout(self):
        error = TimeoutExpired("vm-app", 300.0)
        assert str(error) == "Timeout waiting for vm-app after 300s"
        assert error.category is ErrorCategory.TIMEOUT


class TestIsRetryable:
    @pytest.mark.parametrize(
        ("error", "expected"),
        [
            (RuntimeError("foreign"), True),
            (SecretStoreError("503"), True),
            (MissingSecretError("x"), False),
            (ValidationError("bad"), False),
            (ProvisorError("x", retryable=True), True),
        ],
    )
    def test_classification(self, error, expected):
        assert is_retryable(error) is expected
