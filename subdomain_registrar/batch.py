"""
Batch submission: drain the queue, compact it into one zonefile, broadcast it.

One cycle runs under the write lock:

1. Drain every received entry, in insertion order.
2. Ask the encoder to fold as many as fit under the size bound into one zonefile.
3. Back up the zonefile, then hand it to the submitter.
4. Mark the incorporated entries submitted with the returned transaction id,
   and start tracking the transaction.

Entries the encoder leaves out stay received and are offered again next cycle.
If encoding or submission fails no queue status changes; only the backup row
(when submission was reached) records the attempt.
"""

from __future__ import annotations

from typing import Optional

from subdomain_registrar.collaborators import BatchEncoder, TransactionSubmitter
from subdomain_registrar.coordinator import WriteCoordinator
from subdomain_registrar.domain.models import BatchUpdate, RegistrationEntry
from subdomain_registrar.errors import SubmissionFailure
from subdomain_registrar.infrastructure.store import QueueStore
from subdomain_registrar.utils.logging import get_logger

log = get_logger(__name__)


class BatchSubmitter:
    def __init__(
        self,
        store: QueueStore,
        coordinator: WriteCoordinator,
        encoder: BatchEncoder,
        submitter: TransactionSubmitter,
        domain_name: str,
        owner_key: str,
        payment_key: str,
        max_zonefile_size: int = 4096,
    ) -> None:
        self.store = store
        self.coordinator = coordinator
        self.encoder = encoder
        self.submitter = submitter
        self.domain_name = domain_name
        self.owner_key = owner_key
        self.payment_key = payment_key
        self.max_zonefile_size = max_zonefile_size

    async def submit_batch(self) -> Optional[str]:
        """
        Run one compaction/submit cycle.

        Returns
        -------
        str | None
            The transaction id, or None when nothing was submitted (empty queue,
            or the encoder could incorporate no entry).

        Raises
        ------
        LockTimeout
            If another cycle holds the write lock.
        SubmissionFailure
            If the encoder or the submitter fails.
        """
        async with self.coordinator.hold("submit_batch"):
            queue = await self.store.list_received()
            if not queue:
                log.debug("Queue empty, nothing to submit")
                return None

            log.info(
                f"[BATCH START] {len(queue)} queued entries",
                extra={"queued": len(queue), "max_size": self.max_zonefile_size},
            )
            update = await self._encode(queue)

            if not update.submitted:
                await self._mark_rejected(update)
                log.warning(
                    "Encoder incorporated no entries; nothing submitted",
                    extra={"queued": len(queue), "rejected": len(update.rejected)},
                )
                return None

            await self.store.backup_zonefile(update.zonefile)
            tx_hash = await self._submit(update.zonefile)

            await self.store.mark_submitted(update.submitted_names, tx_hash)
            await self._mark_rejected(update)
            await self.store.track_transaction(tx_hash, update.zonefile)

        log.info(
            f"[BATCH SUBMITTED] {tx_hash}",
            extra={
                "tx_hash": tx_hash,
                "submitted": len(update.submitted),
                "deferred": len(queue) - len(update.submitted) - len(update.rejected),
                "zonefile_bytes": len(update.zonefile.encode("utf-8")),
            },
        )
        return tx_hash

    async def _encode(self, queue: list[RegistrationEntry]) -> BatchUpdate:
        try:
            update = await self.encoder.encode_batch(
                self.domain_name, queue, self.max_zonefile_size
            )
        except Exception as exc:
            log.exception("Failed to build update zonefile")
            raise SubmissionFailure(f"Failed to build update zonefile: {exc}") from exc

        queued_names = {entry.subdomain_name for entry in queue}
        unknown = [name for name in update.submitted_names if name not in queued_names]
        if unknown:
            raise SubmissionFailure(
                f"Encoder returned entries that were not queued: {', '.join(unknown)}"
            )
        return update

    async def _submit(self, zonefile: str) -> str:
        try:
            return await self.submitter.submit_transaction(
                self.domain_name, zonefile, self.owner_key, self.payment_key
            )
        except Exception as exc:
            log.exception("Failed to submit zonefile update")
            raise SubmissionFailure(f"Failed to submit zonefile update: {exc}") from exc

    async def _mark_rejected(self, update: BatchUpdate) -> None:
        if not update.rejected:
            return
        await self.store.mark_errored(update.rejected)
        log.warning(
            f"Marked {len(update.rejected)} entries as errored",
            extra={"rejected": sorted(update.rejected)},
        )


__all__ = ["BatchSubmitter"]
