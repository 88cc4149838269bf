from __future__ import annotations

import asyncio

import pytest

from subdomain_registrar.coordinator import WriteCoordinator
from subdomain_registrar.errors import LockTimeout

SHORT_TIMEOUT = 0.05


@pytest.mark.asyncio
async def test_hold_releases_on_success() -> None:
    coordinator = WriteCoordinator(SHORT_TIMEOUT)

    async with coordinator.hold("op"):
        assert coordinator.locked

    assert not coordinator.locked


@pytest.mark.asyncio
async def test_hold_releases_on_failure() -> None:
    coordinator = WriteCoordinator(SHORT_TIMEOUT)

    with pytest.raises(RuntimeError):
        async with coordinator.hold("op"):
            raise RuntimeError("boom")

    assert not coordinator.locked


@pytest.mark.asyncio
async def test_second_holder_times_out_instead_of_waiting() -> None:
    coordinator = WriteCoordinator(SHORT_TIMEOUT)
    loop = asyncio.get_running_loop()

    async with coordinator.hold("first"):
        start = loop.time()
        with pytest.raises(LockTimeout, match="second"):
            async with coordinator.hold("second"):
                pytest.fail("second holder must not enter")
        assert loop.time() - start < 1.0

    # The failed attempt leaves the lock usable.
    async with coordinator.hold("third"):
        assert coordinator.locked


@pytest.mark.asyncio
async def test_waiter_gets_lock_when_released_within_timeout() -> None:
    coordinator = WriteCoordinator(SHORT_TIMEOUT)
    order = []

    async def first() -> None:
        async with coordinator.hold("first"):
            order.append("first")
            await asyncio.sleep(0.01)

    async def second() -> None:
        await asyncio.sleep(0)
        async with coordinator.hold("second", timeout=1.0):
            order.append("second")

    await asyncio.gather(first(), second())

    assert order == ["first", "second"]


@pytest.mark.parametrize("timeout", [0, -1])
def test_non_positive_default_timeout_is_rejected(timeout) -> None:
    with pytest.raises(ValueError):
        WriteCoordinator(timeout)


@pytest.mark.asyncio
async def test_non_positive_hold_timeout_is_rejected() -> None:
    coordinator = WriteCoordinator(SHORT_TIMEOUT)

    with pytest.raises(ValueError):
        async with coordinator.hold("op", timeout=0):
            pytest.fail("must not enter with a zero timeout")

    assert not coordinator.locked


@pytest.mark.asyncio
async def test_tiny_timeout_acquires_free_lock() -> None:
    coordinator = WriteCoordinator(0.001)

    async with coordinator.hold("op"):
        assert coordinator.locked
