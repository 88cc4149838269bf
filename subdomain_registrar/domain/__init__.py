"""
Domain package for the subdomain registrar.

Exports the core domain models shared by the store, the queue components, and
the collaborator contracts. Keep this package focused on data definitions and
validation concerns.
"""

from subdomain_registrar.domain.models import (
    BatchUpdate,
    QueueStatus,
    RegistrationEntry,
    SubdomainStatus,
    TrackedTransaction,
    TransactionStatus,
    ZonefileBackup,
)

__all__ = [
    "BatchUpdate",
    "QueueStatus",
    "RegistrationEntry",
    "SubdomainStatus",
    "TrackedTransaction",
    "TransactionStatus",
    "ZonefileBackup",
]
