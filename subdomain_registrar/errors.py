"""
Error taxonomy for the subdomain registrar.

Every failure surfaced by the public operations derives from RegistrarError so
callers (the CLI, an external scheduler) can catch the family while still
telling the conditions apart.
"""

from __future__ import annotations


class RegistrarError(Exception):
    """Base class for all registrar failures."""


# Storage
class StorageUnavailable(RegistrarError):
    """Raised when the durable store cannot be opened or its schema created."""


class QueueMismatch(RegistrarError):
    """Raised when a batch names entries that are no longer received. Nothing is updated."""


# Intake
class DuplicateOperation(RegistrarError):
    """Raised when a name already has an unresolved queued operation."""


class InvalidOperation(RegistrarError):
    """Raised when the validity predicate rejects a registration."""


class ValidationFailure(RegistrarError):
    """Raised when the validity predicate itself fails."""


# Coordination
class LockTimeout(RegistrarError):
    """Raised when the write lock cannot be acquired within the timeout."""


# Collaborators
class SubmissionFailure(RegistrarError):
    """Raised when encoding or broadcasting a batch fails. Queued entries stay received."""


class StatusCheckFailure(RegistrarError):
    """Raised when checking transaction confirmations fails. Nothing is retired."""


__all__ = [
    "RegistrarError",
    "StorageUnavailable",
    "QueueMismatch",
    "DuplicateOperation",
    "InvalidOperation",
    "ValidationFailure",
    "LockTimeout",
    "SubmissionFailure",
    "StatusCheckFailure",
]
