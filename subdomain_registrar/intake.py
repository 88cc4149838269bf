"""
Registration intake: validate a single request and add it to the queue.
"""

from __future__ import annotations

from pydantic import ValidationError

from subdomain_registrar.collaborators import RegistrationValidator
from subdomain_registrar.coordinator import WriteCoordinator
from subdomain_registrar.domain.models import QueueStatus, RegistrationEntry
from subdomain_registrar.errors import DuplicateOperation, InvalidOperation, ValidationFailure
from subdomain_registrar.infrastructure.store import QueueStore
from subdomain_registrar.utils.logging import get_logger

log = get_logger(__name__)


class RegistrationIntake:
    """
    Accepts registration requests for names under `domain_name`.

    A name may hold at most one unresolved operation: one still received, or one
    submitted whose transaction is still tracked. Errored names and names whose
    transaction was confirmed can be queued again.
    """

    def __init__(
        self,
        store: QueueStore,
        coordinator: WriteCoordinator,
        validator: RegistrationValidator,
        domain_name: str,
        lock_timeout_seconds: float = 30.0,
    ) -> None:
        self.store = store
        self.coordinator = coordinator
        self.validator = validator
        self.domain_name = domain_name
        self.lock_timeout_seconds = lock_timeout_seconds

    async def has_unresolved_operation(self, subdomain_name: str) -> bool:
        current = await self.store.get_status(subdomain_name)
        if current.status == QueueStatus.RECEIVED:
            return True
        if current.status == QueueStatus.SUBMITTED and current.status_more:
            return await self.store.is_tracked(current.status_more)
        return False

    async def queue_registration(
        self,
        subdomain_name: str,
        owner: str,
        sequence_number: int,
        zonefile: str,
    ) -> RegistrationEntry:
        """
        Queue one registration.

        Raises
        ------
        DuplicateOperation
            If the name already has an unresolved operation.
        InvalidOperation
            If the validity predicate rejects the request.
        ValidationFailure
            If the validity predicate itself fails.
        LockTimeout
            If the write lock is not available in time.
        """
        try:
            entry = RegistrationEntry(
                subdomain_name=subdomain_name,
                owner=owner,
                sequence_number=sequence_number,
                zonefile=zonefile,
            )
        except ValidationError as exc:
            raise InvalidOperation(f"Malformed registration for {subdomain_name!r}: {exc}") from exc

        if await self.has_unresolved_operation(subdomain_name):
            raise DuplicateOperation(
                f"Subdomain operation already queued for {subdomain_name}"
            )

        try:
            valid = await self.validator.is_registration_valid(
                subdomain_name, self.domain_name, owner, sequence_number, zonefile
            )
        except Exception as exc:
            log.exception(
                "Registration validity check failed",
                extra={"subdomain": subdomain_name},
            )
            raise ValidationFailure(
                f"Failed to validate operation for {subdomain_name}: {exc}"
            ) from exc
        if not valid:
            raise InvalidOperation(f"Requested subdomain operation is invalid: {subdomain_name}")

        async with self.coordinator.hold("queue_registration", timeout=self.lock_timeout_seconds):
            # Re-check under the lock; a concurrent intake may have won.
            if await self.has_unresolved_operation(subdomain_name):
                raise DuplicateOperation(
                    f"Subdomain operation already queued for {subdomain_name}"
                )
            stored = await self.store.enqueue(entry)

        log.info(
            f"Queued registration for {subdomain_name}",
            extra={"subdomain": subdomain_name, "sequence_number": sequence_number},
        )
        return stored


__all__ = ["RegistrationIntake"]
