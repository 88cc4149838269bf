"""
Contracts for the external collaborators the registrar delegates to.

The registrar never builds zonefiles, signs or broadcasts transactions, reads
chain state, or decides whether a registration is valid for the naming system.
Those concerns are injected as objects satisfying the protocols below, bundled
in a `Collaborators` instance and handed to `SubdomainServer`.

For the CLI, `load_collaborators("package.module:factory")` imports a
zero-argument factory that returns the bundle.
"""

from __future__ import annotations

import importlib
from dataclasses import dataclass
from typing import Callable, List, Protocol, Sequence, runtime_checkable

from subdomain_registrar.domain.models import (
    BatchUpdate,
    RegistrationEntry,
    TrackedTransaction,
    TransactionStatus,
)


@runtime_checkable
class BatchEncoder(Protocol):
    async def encode_batch(
        self, domain_name: str, entries: Sequence[RegistrationEntry], max_size: int
    ) -> BatchUpdate:
        """
        Compact as many queued entries as fit under `max_size` into one zonefile.

        Entries are offered in insertion order. The returned `BatchUpdate.submitted`
        lists the entries folded into the zonefile; anything left out is retried
        unchanged on the next cycle.
        """
        ...


@runtime_checkable
class TransactionSubmitter(Protocol):
    async def submit_transaction(
        self, domain_name: str, zonefile: str, owner_key: str, payment_key: str
    ) -> str:
        """Sign and broadcast the zonefile update, returning the transaction id."""
        ...


@runtime_checkable
class StatusChecker(Protocol):
    async def check_transactions(
        self, tracked: Sequence[TrackedTransaction]
    ) -> List[TransactionStatus]:
        """Report, per tracked transaction, whether it is confirmed."""
        ...


@runtime_checkable
class RegistrationValidator(Protocol):
    async def is_registration_valid(
        self,
        subdomain_name: str,
        domain_name: str,
        owner: str,
        sequence_number: int,
        zonefile: str,
    ) -> bool:
        ...


@dataclass(frozen=True)
class Collaborators:
    encoder: BatchEncoder
    submitter: TransactionSubmitter
    checker: StatusChecker
    validator: RegistrationValidator


def load_collaborators(path: str) -> Collaborators:
    """
    Resolve a "package.module:factory" path and call the factory.

    Raises
    ------
    ValueError
        If the path is malformed, the attribute is missing, or the factory does
        not return a Collaborators bundle.
    """
    module_name, sep, attr = path.partition(":")
    if not sep or not module_name or not attr:
        raise ValueError(f"Collaborators path must look like 'module:factory', got '{path}'")

    module = importlib.import_module(module_name)
    factory: Callable[[], Collaborators] | None = getattr(module, attr, None)
    if factory is None:
        raise ValueError(f"Module '{module_name}' has no attribute '{attr}'")

    bundle = factory()
    if not isinstance(bundle, Collaborators):
        raise ValueError(
            f"Factory '{path}' returned {type(bundle).__name__}, expected Collaborators"
        )
    return bundle


__all__ = [
    "BatchEncoder",
    "TransactionSubmitter",
    "StatusChecker",
    "RegistrationValidator",
    "Collaborators",
    "load_collaborators",
]
