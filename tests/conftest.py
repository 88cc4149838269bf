"""
Pytest configuration for the subdomain registrar.

Provides fixtures for:
- Settings tuned for fast unit tests
- An in-memory QueueStore and scripted collaborators for the queue components
- Database connection management for PostgresStore integration tests
"""

from __future__ import annotations

import asyncio
import os
from datetime import datetime, timezone
from typing import Dict, List, Mapping, Optional, Sequence

import psycopg
import pytest

from subdomain_registrar.collaborators import Collaborators
from subdomain_registrar.config import Settings
from subdomain_registrar.domain.models import (
    BatchUpdate,
    QueueStatus,
    RegistrationEntry,
    SubdomainStatus,
    TrackedTransaction,
    TransactionStatus,
    ZonefileBackup,
)
from subdomain_registrar.errors import DuplicateOperation, QueueMismatch
from subdomain_registrar.server import SubdomainServer

TEST_DOMAIN = "example.id"
TEST_OWNER_KEY = "owner-key"
TEST_PAYMENT_KEY = "payment-key"
TEST_MAX_ZONEFILE_SIZE = 1000


class InMemoryStore:
    """QueueStore double that keeps the three tables in lists."""

    def __init__(self) -> None:
        self.entries: List[RegistrationEntry] = []
        self.backups: List[ZonefileBackup] = []
        self.tracked: List[TrackedTransaction] = []
        self.initialized = False
        self.close_calls = 0
        self.fail_backup_with: Optional[Exception] = None
        self._next_id = 1

    async def initialize(self) -> None:
        self.initialized = True

    async def enqueue(self, entry: RegistrationEntry) -> RegistrationEntry:
        await asyncio.sleep(0)
        if any(
            e.subdomain_name == entry.subdomain_name and e.status == QueueStatus.RECEIVED
            for e in self.entries
        ):
            raise DuplicateOperation(f"Subdomain operation already queued for {entry.subdomain_name}")
        stored = entry.model_copy(
            update={
                "id": self._next_id,
                "status": QueueStatus.RECEIVED,
                "status_more": None,
                "received_at": datetime.now(timezone.utc),
            }
        )
        self._next_id += 1
        self.entries.append(stored)
        return stored

    async def get_status(self, subdomain_name: str) -> SubdomainStatus:
        matches = [e for e in self.entries if e.subdomain_name == subdomain_name]
        if not matches:
            return SubdomainStatus.not_queued()
        latest = max(matches, key=lambda e: e.id or 0)
        return SubdomainStatus(status=latest.status, status_more=latest.status_more)

    async def list_received(self) -> List[RegistrationEntry]:
        await asyncio.sleep(0)
        return [e for e in self.entries if e.status == QueueStatus.RECEIVED]

    def _transition(self, names: Mapping[str, str], status: QueueStatus) -> int:
        updated = 0
        for index, entry in enumerate(self.entries):
            if entry.status == QueueStatus.RECEIVED and entry.subdomain_name in names:
                self.entries[index] = entry.model_copy(
                    update={"status": status, "status_more": names[entry.subdomain_name]}
                )
                updated += 1
        return updated

    async def mark_submitted(self, subdomain_names: Sequence[str], tx_hash: str) -> int:
        received = {e.subdomain_name for e in self.entries if e.status == QueueStatus.RECEIVED}
        missing = set(subdomain_names) - received
        if missing:
            raise QueueMismatch(f"Batch {tx_hash} names entries that are not received")
        return self._transition({name: tx_hash for name in subdomain_names}, QueueStatus.SUBMITTED)

    async def mark_errored(self, errors: Mapping[str, str]) -> int:
        return self._transition(dict(errors), QueueStatus.ERROR)

    async def backup_zonefile(self, zonefile: str) -> None:
        if self.fail_backup_with is not None:
            raise self.fail_backup_with
        self.backups.append(
            ZonefileBackup(
                id=len(self.backups) + 1,
                zonefile=zonefile,
                timestamp=datetime.now(timezone.utc),
            )
        )

    async def list_backups(self, limit: int = 20) -> List[ZonefileBackup]:
        return list(reversed(self.backups))[:limit]

    async def track_transaction(self, tx_hash: str, zonefile: str) -> None:
        self.tracked.append(TrackedTransaction(tx_hash=tx_hash, zonefile=zonefile))

    async def is_tracked(self, tx_hash: str) -> bool:
        return any(tx.tx_hash == tx_hash for tx in self.tracked)

    async def list_tracked(self) -> List[TrackedTransaction]:
        return list(self.tracked)

    async def retire_transaction(self, tx_hash: str) -> None:
        self.tracked = [tx for tx in self.tracked if tx.tx_hash != tx_hash]

    async def close(self) -> None:
        self.close_calls += 1


class SizeBoundEncoder:
    """Concatenates zonefiles in queue order until the next one would exceed max_size."""

    def __init__(self) -> None:
        self.calls: List[Dict[str, object]] = []
        self.fail_with: Optional[Exception] = None

    async def encode_batch(
        self, domain_name: str, entries: Sequence[RegistrationEntry], max_size: int
    ) -> BatchUpdate:
        self.calls.append(
            {"domain_name": domain_name, "names": [e.subdomain_name for e in entries], "max_size": max_size}
        )
        if self.fail_with is not None:
            raise self.fail_with

        parts: List[str] = []
        submitted: List[RegistrationEntry] = []
        rejected: Dict[str, str] = {}
        size = 0
        for entry in entries:
            entry_size = len(entry.zonefile.encode("utf-8"))
            if entry_size > max_size:
                rejected[entry.subdomain_name] = "zonefile exceeds maximum update size"
                continue
            if size + entry_size > max_size:
                break
            parts.append(entry.zonefile)
            submitted.append(entry)
            size += entry_size
        return BatchUpdate(zonefile="".join(parts), submitted=submitted, rejected=rejected)


class ScriptedSubmitter:
    """Returns tx-1, tx-2, ... and records every zonefile it is handed."""

    def __init__(self) -> None:
        self.calls: List[Dict[str, str]] = []
        self.fail_with: Optional[Exception] = None
        self.gate: Optional[asyncio.Event] = None
        self.entered = asyncio.Event()

    async def submit_transaction(
        self, domain_name: str, zonefile: str, owner_key: str, payment_key: str
    ) -> str:
        self.calls.append(
            {
                "domain_name": domain_name,
                "zonefile": zonefile,
                "owner_key": owner_key,
                "payment_key": payment_key,
            }
        )
        self.entered.set()
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_with is not None:
            raise self.fail_with
        return f"tx-{len(self.calls)}"


class ScriptedChecker:
    """Reports the tx hashes in `confirmed` as confirmed, everything else as pending."""

    def __init__(self) -> None:
        self.confirmed: set[str] = set()
        self.calls: List[List[str]] = []
        self.fail_with: Optional[Exception] = None

    async def check_transactions(
        self, tracked: Sequence[TrackedTransaction]
    ) -> List[TransactionStatus]:
        self.calls.append([tx.tx_hash for tx in tracked])
        if self.fail_with is not None:
            raise self.fail_with
        return [
            TransactionStatus(tx_hash=tx.tx_hash, confirmed=tx.tx_hash in self.confirmed)
            for tx in tracked
        ]


class StaticValidator:
    def __init__(self, valid: bool = True) -> None:
        self.valid = valid
        self.calls: List[tuple] = []
        self.fail_with: Optional[Exception] = None

    async def is_registration_valid(
        self,
        subdomain_name: str,
        domain_name: str,
        owner: str,
        sequence_number: int,
        zonefile: str,
    ) -> bool:
        self.calls.append((subdomain_name, domain_name, owner, sequence_number, zonefile))
        if self.fail_with is not None:
            raise self.fail_with
        return self.valid


@pytest.fixture
def test_settings() -> Settings:
    """
    Settings fixture with short lock timeouts and a small zonefile bound.
    """
    return Settings(
        domain_name=TEST_DOMAIN,
        owner_key=TEST_OWNER_KEY,
        payment_key=TEST_PAYMENT_KEY,
        max_zonefile_size=TEST_MAX_ZONEFILE_SIZE,
        lock_timeout_seconds=0.05,
        intake_lock_timeout_seconds=0.05,
        log_level="DEBUG",
    )


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def encoder() -> SizeBoundEncoder:
    return SizeBoundEncoder()


@pytest.fixture
def submitter() -> ScriptedSubmitter:
    return ScriptedSubmitter()


@pytest.fixture
def checker() -> ScriptedChecker:
    return ScriptedChecker()


@pytest.fixture
def validator() -> StaticValidator:
    return StaticValidator()


@pytest.fixture
def collaborators(
    encoder: SizeBoundEncoder,
    submitter: ScriptedSubmitter,
    checker: ScriptedChecker,
    validator: StaticValidator,
) -> Collaborators:
    return Collaborators(encoder=encoder, submitter=submitter, checker=checker, validator=validator)


@pytest.fixture
def server(
    test_settings: Settings, store: InMemoryStore, collaborators: Collaborators
) -> SubdomainServer:
    return SubdomainServer(test_settings, store, collaborators)


@pytest.fixture(scope="session")
def test_dsn() -> str:
    """
    Database connection string for integration tests.
    """
    return (
        f"postgresql://{os.getenv('DB_USER', 'postgres')}:{os.getenv('DB_PASSWORD', 'postgres')}"
        f"@{os.getenv('DB_HOST', 'localhost')}:{os.getenv('DB_PORT', '5432')}"
        f"/{os.getenv('DB_NAME', 'subdomain_registrar')}"
    )


@pytest.fixture(scope="session")
def db_connection_available(test_dsn: str) -> bool:
    """
    Check if database is reachable.

    Used to conditionally skip integration tests when DB is not available.
    """
    try:
        with psycopg.connect(test_dsn, connect_timeout=5) as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT 1;")
                cur.fetchone()
        return True
    except Exception:
        return False


@pytest.fixture
def clean_registrar_tables(test_dsn: str, db_connection_available: bool):
    """
    Drop the registrar tables before and after each integration test.
    """
    if not db_connection_available:
        pytest.skip("Database not available for integration tests")

    def _drop() -> None:
        with psycopg.connect(test_dsn) as conn:
            conn.execute(
                "DROP TABLE IF EXISTS subdomain_queue, subdomain_zonefile_backups, "
                "transactions_tracked;"
            )

    _drop()
    yield
    _drop()
