"""provisor.core -- errors, results, logging, settings and secret stores.

Layer 1 -- Type System & Errors
    errors.py      Structured error hierarchy (ProvisorError, RetriesExhausted)
    result.py      Ok / Err outcome of one action (capture)

Layer 2 -- Ambient
    logging.py     structlog configuration (console + optional log file)
    settings.py    PROVISOR_* environment settings (pydantic-settings)

Layer 3 -- External stores
    secrets.py     SecretStore contract, in-memory and Key Vault stores
"""

from provisor.core.errors import (
    ActionFailure,
    BatchPartialFailure,
    CommandFailed,
    ConfigError,
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
from provisor.core.result import Err, Ok, Result, capture

__all__ = [
    "ActionFailure",
    "BatchPartialFailure",
    "CommandFailed",
    "ConfigError",
    "ErrorCategory",
    "ErrorContext",
    "InvalidConfigError",
    "MissingConfigError",
    "MissingSecretError",
    "ProvisorError",
    "RetriesExhausted",
    "SecretStoreError",
    "TimeoutExpired",
    "ValidationError",
    "is_retryable",
    "Err",
    "Ok",
    "Result",
    "capture",
]
