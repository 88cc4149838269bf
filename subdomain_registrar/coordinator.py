"""
Write coordination for the subdomain registrar.

A single exclusive lock serializes batch submission (and queue inserts) so at
most one compaction/submit cycle runs at a time. Acquisition waits a bounded
time; a caller that cannot get the lock fails with LockTimeout instead of
queueing behind an in-flight submission.
"""

from __future__ import annotations

import asyncio
import contextlib
from typing import AsyncIterator, Optional

from subdomain_registrar.errors import LockTimeout
from subdomain_registrar.utils.logging import get_logger

log = get_logger(__name__)


class WriteCoordinator:
    """
    Exclusive gate around queue writes.

    Parameters
    ----------
    timeout_seconds : float
        Default bound on how long `hold` waits for the lock.
    """

    def __init__(self, timeout_seconds: float = 1.0) -> None:
        if timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be > 0")
        self.timeout_seconds = timeout_seconds
        self._lock = asyncio.Lock()

    @property
    def locked(self) -> bool:
        return self._lock.locked()

    @contextlib.asynccontextmanager
    async def hold(
        self, operation: str, timeout: Optional[float] = None
    ) -> AsyncIterator[None]:
        """
        Hold the write lock for the body of the `async with` block.

        Raises
        ------
        LockTimeout
            If the lock is not acquired within `timeout` (or the default).
        """
        wait = self.timeout_seconds if timeout is None else timeout
        if wait <= 0:
            raise ValueError("timeout must be > 0")
        try:
            await asyncio.wait_for(self._lock.acquire(), timeout=wait)
        except asyncio.TimeoutError:
            log.warning(
                f"Failed to obtain write lock for {operation}",
                extra={"operation": operation, "timeout_seconds": wait},
            )
            raise LockTimeout(
                f"Failed to obtain write lock for {operation} within {wait}s"
            ) from None
        try:
            yield
        finally:
            self._lock.release()


__all__ = ["WriteCoordinator"]
