"""
Durable storage for the subdomain registrar.

Three tables back the registrar:

- `subdomain_queue`: one row per registration request, with its queue status.
- `subdomain_zonefile_backups`: append-only copy of every zonefile handed to the
  transaction submitter, written before the submission is attempted.
- `transactions_tracked`: submissions whose confirmation has not been observed.

`QueueStore` is the contract the intake, batch, and reconciliation components
depend on; `PostgresStore` implements it on a psycopg async connection pool.
"""

from __future__ import annotations

from typing import List, Mapping, Optional, Protocol, Sequence, runtime_checkable

import psycopg
from psycopg import errors as pg_errors
from psycopg.rows import dict_row
from psycopg_pool import AsyncConnectionPool

from subdomain_registrar.config import Settings
from subdomain_registrar.domain.models import (
    QueueStatus,
    RegistrationEntry,
    SubdomainStatus,
    TrackedTransaction,
    ZonefileBackup,
)
from subdomain_registrar.errors import DuplicateOperation, QueueMismatch, StorageUnavailable
from subdomain_registrar.infrastructure.db_factory import build_dsn, open_async_pool
from subdomain_registrar.utils.logging import get_logger

log = get_logger(__name__)

CREATE_QUEUE = """
CREATE TABLE IF NOT EXISTS subdomain_queue (
    id BIGSERIAL PRIMARY KEY,
    subdomain_name TEXT NOT NULL,
    owner TEXT NOT NULL,
    sequence_number BIGINT NOT NULL,
    zonefile TEXT NOT NULL,
    status TEXT NOT NULL,
    status_more TEXT,
    received_ts TIMESTAMPTZ NOT NULL DEFAULT now()
);
"""

CREATE_QUEUE_INDEX = """
CREATE INDEX IF NOT EXISTS subdomain_queue_index ON subdomain_queue (subdomain_name);
"""

# At most one received row per name, whatever the intake path.
CREATE_QUEUE_RECEIVED_UNIQUE = """
CREATE UNIQUE INDEX IF NOT EXISTS subdomain_queue_received_unique
ON subdomain_queue (subdomain_name) WHERE status = 'received';
"""

CREATE_ZONEFILE_BACKUPS = """
CREATE TABLE IF NOT EXISTS subdomain_zonefile_backups (
    id BIGSERIAL PRIMARY KEY,
    zonefile TEXT NOT NULL,
    timestamp TIMESTAMPTZ NOT NULL DEFAULT now()
);
"""

CREATE_TRANSACTIONS_TRACKED = """
CREATE TABLE IF NOT EXISTS transactions_tracked (
    id BIGSERIAL PRIMARY KEY,
    tx_hash TEXT NOT NULL,
    zonefile TEXT NOT NULL
);
"""

SCHEMA = (
    CREATE_QUEUE,
    CREATE_QUEUE_INDEX,
    CREATE_QUEUE_RECEIVED_UNIQUE,
    CREATE_ZONEFILE_BACKUPS,
    CREATE_TRANSACTIONS_TRACKED,
)

_ENTRY_COLUMNS = (
    "id, subdomain_name, owner, sequence_number, zonefile, status, status_more, "
    "received_ts AS received_at"
)


@runtime_checkable
class QueueStore(Protocol):
    """
    Storage contract for the registration queue.

    Implementations own all durable state. Callers never cache rows across
    calls; every operation reads through to storage.
    """

    async def initialize(self) -> None:
        """Open storage, creating the schema when absent. Raises StorageUnavailable."""
        ...

    async def enqueue(self, entry: RegistrationEntry) -> RegistrationEntry:
        """Insert `entry` as received. Raises DuplicateOperation on a received conflict."""
        ...

    async def get_status(self, subdomain_name: str) -> SubdomainStatus:
        """Status of the most recently inserted row for the name, or not_queued."""
        ...

    async def list_received(self) -> List[RegistrationEntry]:
        """Received entries in insertion order."""
        ...

    async def mark_submitted(self, subdomain_names: Sequence[str], tx_hash: str) -> int:
        """
        Atomically move the named received entries to submitted.

        Raises QueueMismatch, leaving every row unchanged, if any named entry is
        not currently received.
        """
        ...

    async def mark_errored(self, errors: Mapping[str, str]) -> int:
        """Atomically move the named received entries to error; returns rows changed."""
        ...

    async def backup_zonefile(self, zonefile: str) -> None:
        ...

    async def list_backups(self, limit: int = 20) -> List[ZonefileBackup]:
        ...

    async def track_transaction(self, tx_hash: str, zonefile: str) -> None:
        ...

    async def is_tracked(self, tx_hash: str) -> bool:
        ...

    async def list_tracked(self) -> List[TrackedTransaction]:
        ...

    async def retire_transaction(self, tx_hash: str) -> None:
        """Delete the tracked row. Deleting an absent id is not an error."""
        ...

    async def close(self) -> None:
        ...


class PostgresStore:
    """
    PostgreSQL-backed queue store running on a psycopg `AsyncConnectionPool`.

    Each public method checks a connection out of the pool for the duration of
    one statement (or one transaction for multi-row updates), so concurrent
    intake, batch, and reconciliation calls never share a connection.
    """

    def __init__(
        self,
        dsn: str,
        pool_min_size: int = 1,
        pool_max_size: int = 5,
        connect_timeout: float = 5.0,
    ) -> None:
        self.dsn = dsn
        self.pool_min_size = pool_min_size
        self.pool_max_size = pool_max_size
        self.connect_timeout = connect_timeout
        self._pool_instance: Optional[AsyncConnectionPool] = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "PostgresStore":
        return cls(
            dsn=build_dsn(settings),
            pool_min_size=settings.db_pool_min_size,
            pool_max_size=settings.db_pool_max_size,
            connect_timeout=settings.db_connect_timeout,
        )

    def _get_pool(self) -> AsyncConnectionPool:
        if self._pool_instance is None:
            raise StorageUnavailable("Store is not initialized; call initialize() first")
        return self._pool_instance

    async def initialize(self) -> None:
        if self._pool_instance is not None:
            return
        try:
            self._pool_instance = await open_async_pool(
                self.dsn,
                min_size=self.pool_min_size,
                max_size=self.pool_max_size,
                timeout=self.connect_timeout,
            )
        except (psycopg.Error, OSError) as exc:
            raise StorageUnavailable(f"Failed to open database: {exc}") from exc

        try:
            await self._create_schema()
        except psycopg.Error as exc:
            await self.close()
            raise StorageUnavailable(f"Failed to create database schema: {exc}") from exc

    async def _create_schema(self) -> None:
        async with self._get_pool().connection() as conn:
            async with conn.cursor(row_factory=dict_row) as cur:
                await cur.execute("SELECT to_regclass('subdomain_queue') AS queue_table;")
                row = await cur.fetchone()
                if row is None or row["queue_table"] is None:
                    log.warning("No registrar schema found, creating tables")
                # Every statement is IF NOT EXISTS.
                async with conn.transaction():
                    for statement in SCHEMA:
                        await cur.execute(statement)

    async def enqueue(self, entry: RegistrationEntry) -> RegistrationEntry:
        sql = (
            "INSERT INTO subdomain_queue "
            "(subdomain_name, owner, sequence_number, zonefile, status) "
            f"VALUES (%s, %s, %s, %s, %s) RETURNING {_ENTRY_COLUMNS};"
        )
        params = (
            entry.subdomain_name,
            entry.owner,
            entry.sequence_number,
            entry.zonefile,
            QueueStatus.RECEIVED.value,
        )
        try:
            async with self._get_pool().connection() as conn:
                async with conn.cursor(row_factory=dict_row) as cur:
                    await cur.execute(sql, params)
                    row = await cur.fetchone()
        except pg_errors.UniqueViolation as exc:
            raise DuplicateOperation(
                f"Subdomain operation already queued for {entry.subdomain_name}"
            ) from exc
        return RegistrationEntry.model_validate(row)

    async def get_status(self, subdomain_name: str) -> SubdomainStatus:
        sql = (
            "SELECT status, status_more FROM subdomain_queue "
            "WHERE subdomain_name = %s ORDER BY id DESC LIMIT 1;"
        )
        async with self._get_pool().connection() as conn:
            async with conn.cursor(row_factory=dict_row) as cur:
                await cur.execute(sql, (subdomain_name,))
                row = await cur.fetchone()
        if row is None:
            return SubdomainStatus.not_queued()
        return SubdomainStatus.model_validate(row)

    async def list_received(self) -> List[RegistrationEntry]:
        sql = f"SELECT {_ENTRY_COLUMNS} FROM subdomain_queue WHERE status = %s ORDER BY id;"
        async with self._get_pool().connection() as conn:
            async with conn.cursor(row_factory=dict_row) as cur:
                await cur.execute(sql, (QueueStatus.RECEIVED.value,))
                rows = await cur.fetchall()
        return [RegistrationEntry.model_validate(row) for row in rows]

    async def mark_submitted(self, subdomain_names: Sequence[str], tx_hash: str) -> int:
        if not subdomain_names:
            return 0
        sql = (
            "UPDATE subdomain_queue SET status = %s, status_more = %s "
            "WHERE subdomain_name = ANY(%s) AND status = %s;"
        )
        async with self._get_pool().connection() as conn:
            async with conn.transaction():
                async with conn.cursor() as cur:
                    await cur.execute(
                        sql,
                        (
                            QueueStatus.SUBMITTED.value,
                            tx_hash,
                            list(subdomain_names),
                            QueueStatus.RECEIVED.value,
                        ),
                    )
                    updated = cur.rowcount
                    expected = len(set(subdomain_names))
                    if updated != expected:
                        log.error(
                            "Submitted batch did not match the received queue",
                            extra={"tx_hash": tx_hash, "expected": expected, "updated": updated},
                        )
                        # Raising inside the transaction block rolls the update back.
                        raise QueueMismatch(
                            f"Batch {tx_hash} names {expected} entries but {updated} are received"
                        )
        return updated

    async def mark_errored(self, errors: Mapping[str, str]) -> int:
        if not errors:
            return 0
        sql = (
            "UPDATE subdomain_queue SET status = %s, status_more = %s "
            "WHERE subdomain_name = %s AND status = %s;"
        )
        params = [
            (QueueStatus.ERROR.value, reason, name, QueueStatus.RECEIVED.value)
            for name, reason in errors.items()
        ]
        async with self._get_pool().connection() as conn:
            async with conn.transaction():
                async with conn.cursor() as cur:
                    await cur.executemany(sql, params)
                    # Summed over every statement of the batch.
                    updated = cur.rowcount
        return updated

    async def backup_zonefile(self, zonefile: str) -> None:
        async with self._get_pool().connection() as conn:
            await conn.execute(
                "INSERT INTO subdomain_zonefile_backups (zonefile) VALUES (%s);", (zonefile,)
            )

    async def list_backups(self, limit: int = 20) -> List[ZonefileBackup]:
        sql = (
            "SELECT id, zonefile, timestamp FROM subdomain_zonefile_backups "
            "ORDER BY id DESC LIMIT %s;"
        )
        async with self._get_pool().connection() as conn:
            async with conn.cursor(row_factory=dict_row) as cur:
                await cur.execute(sql, (limit,))
                rows = await cur.fetchall()
        return [ZonefileBackup.model_validate(row) for row in rows]

    async def track_transaction(self, tx_hash: str, zonefile: str) -> None:
        async with self._get_pool().connection() as conn:
            await conn.execute(
                "INSERT INTO transactions_tracked (tx_hash, zonefile) VALUES (%s, %s);",
                (tx_hash, zonefile),
            )

    async def is_tracked(self, tx_hash: str) -> bool:
        async with self._get_pool().connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute(
                    "SELECT 1 FROM transactions_tracked WHERE tx_hash = %s LIMIT 1;", (tx_hash,)
                )
                return await cur.fetchone() is not None

    async def list_tracked(self) -> List[TrackedTransaction]:
        async with self._get_pool().connection() as conn:
            async with conn.cursor(row_factory=dict_row) as cur:
                await cur.execute("SELECT tx_hash, zonefile FROM transactions_tracked ORDER BY id;")
                rows = await cur.fetchall()
        return [TrackedTransaction.model_validate(row) for row in rows]

    async def retire_transaction(self, tx_hash: str) -> None:
        async with self._get_pool().connection() as conn:
            await conn.execute("DELETE FROM transactions_tracked WHERE tx_hash = %s;", (tx_hash,))

    async def close(self) -> None:
        if self._pool_instance is None:
            return
        try:
            await self._pool_instance.close()
        finally:
            self._pool_instance = None


__all__ = ["QueueStore", "PostgresStore", "SCHEMA"]
