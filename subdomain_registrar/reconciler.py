"""
Transaction reconciliation: retire tracked submissions once they confirm.

Runs without the write lock; it only reads and deletes `transactions_tracked`
rows. If the status checker fails nothing is retired, so the next cycle checks
the same transactions again.
"""

from __future__ import annotations

from typing import List

from subdomain_registrar.collaborators import StatusChecker
from subdomain_registrar.errors import StatusCheckFailure
from subdomain_registrar.infrastructure.store import QueueStore
from subdomain_registrar.utils.logging import get_logger

log = get_logger(__name__)


class TransactionReconciler:
    def __init__(self, store: QueueStore, checker: StatusChecker) -> None:
        self.store = store
        self.checker = checker

    async def check_zonefiles(self) -> List[str]:
        """
        Check every tracked transaction and retire the confirmed ones.

        Returns the retired transaction ids.
        """
        tracked = await self.store.list_tracked()
        if not tracked:
            log.debug("No tracked transactions to check")
            return []

        try:
            statuses = await self.checker.check_transactions(tracked)
        except Exception as exc:
            log.warning(
                "Transaction status check failed",
                extra={"tracked": len(tracked), "error": str(exc)},
            )
            raise StatusCheckFailure(f"Failed to check transaction status: {exc}") from exc

        tracked_hashes = {tx.tx_hash for tx in tracked}
        retired: List[str] = []
        for status in statuses:
            if not status.confirmed or status.tx_hash in retired:
                continue
            if status.tx_hash not in tracked_hashes:
                log.warning(
                    f"Status checker reported untracked transaction {status.tx_hash}",
                    extra={"tx_hash": status.tx_hash},
                )
                continue
            await self.store.retire_transaction(status.tx_hash)
            retired.append(status.tx_hash)

        log.info(
            f"[RECONCILE] retired {len(retired)}/{len(tracked)} tracked transactions",
            extra={"retired": retired, "pending": len(tracked) - len(retired)},
        )
        return retired


__all__ = ["TransactionReconciler"]
