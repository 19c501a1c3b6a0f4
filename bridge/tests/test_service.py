"""
Unit tests for the bridge lifecycle (PollingService).

Tests verify:
- start() logs in, enumerates, registers, then returns a running poll task.
- Login failure raises StartupError without enumerating.
- Plant list failure raises StartupError without plant lookups.
- No devices: waits the grace period (or until shutdown), then raises
  NoDevicesFoundError.
- The poll task is handed the registrar for queued re-announces.
- The registrar receives only devices whose info could be fetched.

CHANGELOG:
- 2026-10-18: Shutdown ends the no-device grace; registrar reaches the loop (STORY-013)
- 2026-10-18: Initial creation (STORY-012)

TODO:
- None
"""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, patch

import pytest
from bridge.src.growatt import GrowattAuthError, GrowattError
from bridge.src.service import (
    NO_DEVICES_GRACE_S,
    NoDevicesFoundError,
    PollingService,
    StartupError,
)
from conftest import (
    make_noah_status,
    make_plant_info,
    make_plant_list,
    published_topics,
)


def _service(
    gateway: AsyncMock,
    publisher: AsyncMock,
    registrar: AsyncMock,
    shutdown_event: asyncio.Event,
    **overrides: object,
) -> PollingService:
    kwargs: dict[str, object] = {
        "gateway": gateway,
        "publisher": publisher,
        "registrar": registrar,
        "topic_prefix": "prefix",
        "poll_interval_s": 0.01,
        "shutdown_event": shutdown_event,
    }
    kwargs.update(overrides)
    return PollingService(**kwargs)  # type: ignore[arg-type]


@pytest.fixture()
def registrar() -> AsyncMock:
    reg = AsyncMock()
    reg.set_devices = AsyncMock(return_value=None)
    reg.announce_if_pending = AsyncMock(return_value=None)
    return reg


class TestStartHappyPath:
    @pytest.mark.asyncio
    async def test_start_returns_running_poll_task(
        self, gateway: AsyncMock, publisher: AsyncMock, registrar: AsyncMock
    ) -> None:
        shutdown_event = asyncio.Event()
        service = _service(gateway, publisher, registrar, shutdown_event)

        task = await service.start()

        assert isinstance(task, asyncio.Task)
        assert not task.done()
        shutdown_event.set()
        await asyncio.wait_for(task, timeout=5.0)

    @pytest.mark.asyncio
    async def test_scenario_s1_with_two_batteries(
        self, gateway: AsyncMock, publisher: AsyncMock, registrar: AsyncMock
    ) -> None:
        """Plant A -> S1 (2 batteries), plant B errors: S1 is registered and polled."""
        shutdown_event = asyncio.Event()
        service = _service(gateway, publisher, registrar, shutdown_event)

        task = await service.start()
        await asyncio.sleep(0.05)
        shutdown_event.set()
        await asyncio.wait_for(task, timeout=5.0)

        assert service.inventory is not None
        assert service.inventory.serial_numbers == ("S1",)
        registrar.set_devices.assert_awaited_once()
        (devices,) = registrar.set_devices.call_args.args
        assert [d.serial_number for d in devices] == ["S1"]
        assert [b.alias for b in devices[0].batteries] == ["BAT0", "BAT1"]

        topics = published_topics(publisher)
        assert topics[:3] == ["prefix/S1", "prefix/S1/BAT0", "prefix/S1/BAT1"]
        assert set(topics) == {"prefix/S1", "prefix/S1/BAT0", "prefix/S1/BAT1"}

    @pytest.mark.asyncio
    async def test_poll_task_drives_queued_reannounce(
        self, gateway: AsyncMock, publisher: AsyncMock, registrar: AsyncMock
    ) -> None:
        shutdown_event = asyncio.Event()

        async def status(serial_number: str):
            shutdown_event.set()
            return make_noah_status()

        gateway.get_noah_status = AsyncMock(side_effect=status)

        task = await _service(gateway, publisher, registrar, shutdown_event).start()
        await asyncio.wait_for(task, timeout=5.0)

        registrar.announce_if_pending.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_startup_order(
        self, gateway: AsyncMock, publisher: AsyncMock, registrar: AsyncMock
    ) -> None:
        order: list[str] = []
        gateway.login = AsyncMock(side_effect=lambda: order.append("login"))
        plant_list = gateway.get_plant_list.return_value

        async def get_plant_list():
            order.append("plants")
            return plant_list

        gateway.get_plant_list = AsyncMock(side_effect=get_plant_list)
        registrar.set_devices = AsyncMock(side_effect=lambda d: order.append("register"))
        shutdown_event = asyncio.Event()
        shutdown_event.set()

        task = await _service(gateway, publisher, registrar, shutdown_event).start()
        await asyncio.wait_for(task, timeout=5.0)

        assert order == ["login", "plants", "register"]


class TestStartFailures:
    @pytest.mark.asyncio
    async def test_login_failure_raises_startup_error(
        self, gateway: AsyncMock, publisher: AsyncMock, registrar: AsyncMock
    ) -> None:
        gateway.login = AsyncMock(side_effect=GrowattAuthError("login rejected"))
        service = _service(gateway, publisher, registrar, asyncio.Event())

        with pytest.raises(StartupError):
            await service.start()

        gateway.get_plant_list.assert_not_awaited()
        registrar.set_devices.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_plant_list_failure_raises_startup_error(
        self, gateway: AsyncMock, publisher: AsyncMock, registrar: AsyncMock
    ) -> None:
        gateway.get_plant_list = AsyncMock(side_effect=GrowattError("timeout"))
        service = _service(gateway, publisher, registrar, asyncio.Event())

        with pytest.raises(StartupError, match="plant list"):
            await service.start()

        gateway.get_noah_plant_info.assert_not_awaited()
        registrar.set_devices.assert_not_awaited()
        publisher.publish.assert_not_awaited()


class TestNoDevices:
    @pytest.mark.asyncio
    async def test_empty_serial_waits_grace_then_raises(
        self, gateway: AsyncMock, publisher: AsyncMock, registrar: AsyncMock
    ) -> None:
        gateway.get_plant_list = AsyncMock(return_value=make_plant_list("A"))
        gateway.get_noah_plant_info = AsyncMock(return_value=make_plant_info(""))
        service = _service(gateway, publisher, registrar, asyncio.Event())
        timeouts: list[float] = []

        async def fake_wait_for(awaitable, timeout):
            awaitable.close()
            timeouts.append(timeout)
            raise TimeoutError

        with (
            patch("bridge.src.service.asyncio.wait_for", new=fake_wait_for),
            pytest.raises(NoDevicesFoundError),
        ):
            await service.start()

        assert timeouts == [NO_DEVICES_GRACE_S]
        assert NO_DEVICES_GRACE_S == 60.0
        registrar.set_devices.assert_not_awaited()
        publisher.publish.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_empty_state_not_immediate(
        self, gateway: AsyncMock, publisher: AsyncMock, registrar: AsyncMock
    ) -> None:
        gateway.get_plant_list = AsyncMock(return_value=make_plant_list())
        service = _service(
            gateway, publisher, registrar, asyncio.Event(), no_devices_grace_s=0.1
        )
        loop = asyncio.get_running_loop()

        started = loop.time()
        with pytest.raises(NoDevicesFoundError):
            await service.start()

        assert loop.time() - started >= 0.09

    @pytest.mark.asyncio
    async def test_shutdown_ends_grace_early(
        self, gateway: AsyncMock, publisher: AsyncMock, registrar: AsyncMock
    ) -> None:
        """A stop signal during the 60 s grace is honoured promptly."""
        gateway.get_plant_list = AsyncMock(return_value=make_plant_list())
        shutdown_event = asyncio.Event()
        service = _service(gateway, publisher, registrar, shutdown_event)
        asyncio.get_running_loop().call_later(0.05, shutdown_event.set)

        with pytest.raises(NoDevicesFoundError):
            await asyncio.wait_for(service.start(), timeout=5.0)

        registrar.set_devices.assert_not_awaited()
