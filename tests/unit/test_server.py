from __future__ import annotations

import pytest

from subdomain_registrar.domain.models import QueueStatus
from subdomain_registrar.server import SubdomainServer

OWNER = "1Owner"
PAYLOAD_BYTES = 100


def _payload(name: str) -> str:
    header = f"$ORIGIN {name}\n"
    return header + "x" * (PAYLOAD_BYTES - len(header))


@pytest.mark.asyncio
async def test_queue_submit_confirm_lifecycle(server, store, checker) -> None:
    for name in ["A", "B", "C"]:
        await server.queue_registration(name, OWNER, 0, _payload(name))

    tx_hash = await server.submit_batch()

    status = await server.get_status("A")
    assert status.status == QueueStatus.SUBMITTED
    assert status.status_more == tx_hash
    assert await store.list_received() == []

    checker.confirmed.add(tx_hash)
    assert await server.check_zonefiles() == [tx_hash]

    assert await store.list_tracked() == []
    assert await server.check_zonefiles() == []
    # The second check found nothing tracked, so the checker was only asked once.
    assert checker.calls == [[tx_hash]]


@pytest.mark.asyncio
async def test_unknown_name_reports_not_queued(server) -> None:
    status = await server.get_status("nobody")

    assert status.status == QueueStatus.NOT_QUEUED
    assert status.status_more is None


@pytest.mark.asyncio
async def test_context_manager_initializes_and_shuts_down(test_settings, store, collaborators) -> None:
    async with SubdomainServer(test_settings, store, collaborators) as server:
        assert store.initialized
        assert server.domain_name == "example.id"

    assert store.close_calls == 1


def test_coordinator_uses_configured_timeout(server, test_settings) -> None:
    assert server.coordinator.timeout_seconds == test_settings.lock_timeout_seconds
    assert server.intake.coordinator is server.coordinator
    assert server.batch.coordinator is server.coordinator
