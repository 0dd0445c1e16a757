"""
provisor - retry, parallel job supervision and secret round-trips for
provisioning scripts.

- provisor.core: errors, Result, logging, settings, secret stores
- provisor.execution: retry supervisor, job groups, command actions
- provisor.cli: the ``provisor`` command
"""

__version__ = "0.1.0"

from provisor.core.errors import BatchPartialFailure, ProvisorError, RetriesExhausted
from provisor.core.secrets import (
    AzureKeyVaultStore,
    DictSecretStore,
    SecretStore,
    SecretValue,
    delete_secret,
    list_secrets,
    retrieve_secret,
    store_secret,
)
from provisor.execution import (
    BatchResult,
    Job,
    JobGroup,
    RetryPolicy,
    RetrySupervisor,
    retry,
    run_all,
)

__all__ = [
    "__version__",
    "ProvisorError",
    "RetriesExhausted",
    "BatchPartialFailure",
    "SecretStore",
    "SecretValue",
    "DictSecretStore",
    "AzureKeyVaultStore",
    "store_secret",
    "retrieve_secret",
    "list_secrets",
    "delete_secret",
    "BatchResult",
    "Job",
    "JobGroup",
    "RetryPolicy",
    "RetrySupervisor",
    "retry",
    "run_all",
]
