"""
Subdomain Registrar - registration queue and batch submission for a subdomain namespace.

This package queues subdomain registration requests under a single parent
domain, compacts them into size-bounded zonefile updates, submits each update
as one on-chain transaction, and tracks the transaction until it confirms:

- Registration intake with duplicate and validity checks
- Batch submission guarded by a single write lock with a bounded wait
- Zonefile backups written before every broadcast
- Reconciliation of tracked transactions against confirmation status

Zonefile encoding, transaction signing/broadcast, status checks, and the
registration validity predicate are external collaborators injected through
`Collaborators`.
"""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"

# Public API exports
from subdomain_registrar.collaborators import (
    BatchEncoder,
    Collaborators,
    RegistrationValidator,
    StatusChecker,
    TransactionSubmitter,
    load_collaborators,
)
from subdomain_registrar.config import Settings, get_settings
from subdomain_registrar.coordinator import WriteCoordinator
from subdomain_registrar.domain.models import (
    BatchUpdate,
    QueueStatus,
    RegistrationEntry,
    SubdomainStatus,
    TrackedTransaction,
    TransactionStatus,
    ZonefileBackup,
)
from subdomain_registrar.errors import (
    DuplicateOperation,
    InvalidOperation,
    LockTimeout,
    QueueMismatch,
    RegistrarError,
    StatusCheckFailure,
    StorageUnavailable,
    SubmissionFailure,
    ValidationFailure,
)
from subdomain_registrar.infrastructure.store import PostgresStore, QueueStore
from subdomain_registrar.server import SubdomainServer
from subdomain_registrar.utils.logging import configure_logging, get_logger

__all__ = [
    # Version info
    "__version__",
    "__license__",
    # Configuration
    "Settings",
    "get_settings",
    # Server context
    "SubdomainServer",
    "WriteCoordinator",
    # Storage
    "QueueStore",
    "PostgresStore",
    # Collaborator contracts
    "BatchEncoder",
    "TransactionSubmitter",
    "StatusChecker",
    "RegistrationValidator",
    "Collaborators",
    "load_collaborators",
    # Domain models
    "QueueStatus",
    "RegistrationEntry",
    "SubdomainStatus",
    "ZonefileBackup",
    "TrackedTransaction",
    "BatchUpdate",
    "TransactionStatus",
    # Errors
    "RegistrarError",
    "StorageUnavailable",
    "QueueMismatch",
    "DuplicateOperation",
    "InvalidOperation",
    "ValidationFailure",
    "LockTimeout",
    "SubmissionFailure",
    "StatusCheckFailure",
    # Logging
    "configure_logging",
    "get_logger",
]
