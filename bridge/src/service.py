"""
Bridge lifecycle: login, enumerate, register, then launch the poll task.

``PollingService.start()`` runs the startup sequence in order and returns the
background poll task without awaiting it. Startup failures are returned to
the caller as exceptions so the entrypoint decides the exit code:

- :class:`StartupError`: login or plant list failed. Abnormal exit.
- :class:`NoDevicesFoundError`: the account has no Noah device. Raised only
  after a grace period so log shippers can flush, or earlier on shutdown;
  clean exit.

Per-cycle polling errors never reach the caller of ``start()``.

CHANGELOG:
- 2026-10-18: Shutdown signal ends the no-device grace period (STORY-013)
- 2026-10-18: Initial creation (STORY-012)

TODO:
- None
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import TYPE_CHECKING

from bridge.src.enumerator import Inventory, enumerate_devices
from bridge.src.growatt import GrowattError
from bridge.src.poller import poll_loop

if TYPE_CHECKING:
    from bridge.src.discovery import DiscoveryRegistrar
    from bridge.src.growatt import GrowattClient
    from bridge.src.health import HealthWriter
    from bridge.src.publisher import MqttPublisher

logger = logging.getLogger(__name__)

NO_DEVICES_GRACE_S: float = 60.0
"""Delay before reporting an account without devices."""


class StartupError(Exception):
    """Raised when startup cannot proceed (login or plant list failure)."""


class NoDevicesFoundError(Exception):
    """Raised when the account has no Noah device; a clean terminal state."""


class PollingService:
    """Owns the startup sequence and the background poll task.

    Args:
        gateway: Growatt client (not yet logged in).
        publisher: MQTT publisher for telemetry.
        registrar: Discovery registrar receiving the device inventory.
        topic_prefix: Prefix for device and battery state topics.
        poll_interval_s: Seconds between poll cycles.
        shutdown_event: Event that stops the poll loop.
        health: HealthWriter instance, or None to skip health writes.
        no_devices_grace_s: Delay before raising NoDevicesFoundError.
    """

    def __init__(
        self,
        *,
        gateway: GrowattClient,
        publisher: MqttPublisher,
        registrar: DiscoveryRegistrar,
        topic_prefix: str,
        poll_interval_s: float,
        shutdown_event: asyncio.Event,
        health: HealthWriter | None = None,
        no_devices_grace_s: float = NO_DEVICES_GRACE_S,
    ) -> None:
        self._gateway = gateway
        self._publisher = publisher
        self._registrar = registrar
        self._topic_prefix = topic_prefix
        self._poll_interval_s = poll_interval_s
        self._shutdown_event = shutdown_event
        self._health = health
        self._no_devices_grace_s = no_devices_grace_s
        self._inventory: Inventory | None = None
        self._task: asyncio.Task[None] | None = None

    @property
    def inventory(self) -> Inventory | None:
        """Inventory produced by the last successful start, if any."""
        return self._inventory

    async def start(self) -> asyncio.Task[None]:
        """Log in, enumerate devices, register them and launch polling.

        Returns:
            The running poll task. It finishes once the shutdown event is set.

        Raises:
            StartupError: Login or plant list retrieval failed.
            NoDevicesFoundError: No plant resolved to a Noah device.
        """
        try:
            await self._gateway.login()
        except GrowattError as exc:
            logger.error("Could not login to growatt account: error=%s", exc)
            raise StartupError("could not login to growatt account") from exc

        try:
            inventory = await enumerate_devices(self._gateway, self._topic_prefix)
        except GrowattError as exc:
            raise StartupError("could not get plant list") from exc

        if not inventory.serial_numbers:
            logger.info(
                "No noah devices found, exiting in %ss", self._no_devices_grace_s
            )
            # A shutdown signal ends the grace period early
            with contextlib.suppress(TimeoutError):
                await asyncio.wait_for(
                    self._shutdown_event.wait(), timeout=self._no_devices_grace_s
                )
            raise NoDevicesFoundError("no noah devices found")

        self._inventory = inventory
        await self._registrar.set_devices(inventory.devices)

        self._task = asyncio.create_task(
            poll_loop(
                gateway=self._gateway,
                publisher=self._publisher,
                topic_prefix=self._topic_prefix,
                serial_numbers=inventory.serial_numbers,
                poll_interval_s=self._poll_interval_s,
                shutdown_event=self._shutdown_event,
                health=self._health,
                registrar=self._registrar,
            ),
            name="noah-poll",
        )
        return self._task
