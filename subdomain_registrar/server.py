"""
Server context for the subdomain registrar.

`SubdomainServer` is built once at startup and owns the store, the write
coordinator, and the external collaborators. It exposes the public surface an
external scheduler or API layer drives:

    async with SubdomainServer(settings, store, collaborators) as server:
        await server.queue_registration("alice", owner, 0, zonefile)
        tx_hash = await server.submit_batch()
        retired = await server.check_zonefiles()
"""

from __future__ import annotations

from types import TracebackType
from typing import List, Optional, Type

from subdomain_registrar.batch import BatchSubmitter
from subdomain_registrar.collaborators import Collaborators
from subdomain_registrar.config import Settings
from subdomain_registrar.coordinator import WriteCoordinator
from subdomain_registrar.domain.models import RegistrationEntry, SubdomainStatus
from subdomain_registrar.infrastructure.store import QueueStore
from subdomain_registrar.intake import RegistrationIntake
from subdomain_registrar.reconciler import TransactionReconciler
from subdomain_registrar.utils.logging import get_logger

log = get_logger(__name__)


class SubdomainServer:
    def __init__(
        self,
        settings: Settings,
        store: QueueStore,
        collaborators: Collaborators,
        coordinator: Optional[WriteCoordinator] = None,
    ) -> None:
        self.settings = settings
        self.store = store
        self.collaborators = collaborators
        self.coordinator = coordinator or WriteCoordinator(settings.lock_timeout_seconds)

        self.intake = RegistrationIntake(
            store=store,
            coordinator=self.coordinator,
            validator=collaborators.validator,
            domain_name=settings.domain_name,
            lock_timeout_seconds=settings.intake_lock_timeout_seconds,
        )
        self.batch = BatchSubmitter(
            store=store,
            coordinator=self.coordinator,
            encoder=collaborators.encoder,
            submitter=collaborators.submitter,
            domain_name=settings.domain_name,
            owner_key=settings.owner_key,
            payment_key=settings.payment_key,
            max_zonefile_size=settings.max_zonefile_size,
        )
        self.reconciler = TransactionReconciler(store=store, checker=collaborators.checker)

    @property
    def domain_name(self) -> str:
        return self.settings.domain_name

    async def initialize(self) -> None:
        """Open the store. Raises StorageUnavailable if it cannot be opened or created."""
        await self.store.initialize()
        log.info(f"Subdomain server ready for {self.domain_name}", extra={"domain": self.domain_name})

    async def queue_registration(
        self,
        subdomain_name: str,
        owner: str,
        sequence_number: int,
        zonefile: str,
    ) -> RegistrationEntry:
        return await self.intake.queue_registration(
            subdomain_name, owner, sequence_number, zonefile
        )

    async def get_status(self, subdomain_name: str) -> SubdomainStatus:
        return await self.store.get_status(subdomain_name)

    async def submit_batch(self) -> Optional[str]:
        return await self.batch.submit_batch()

    async def check_zonefiles(self) -> List[str]:
        return await self.reconciler.check_zonefiles()

    async def shutdown(self) -> None:
        await self.store.close()
        log.info("Subdomain server shut down", extra={"domain": self.domain_name})

    async def __aenter__(self) -> "SubdomainServer":
        await self.initialize()
        return self

    async def __aexit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        await self.shutdown()


__all__ = ["SubdomainServer"]
