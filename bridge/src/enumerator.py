"""
Device enumeration: walk the Growatt plants and build the Noah inventory.

Runs exactly once at startup. The result is an immutable :class:`Inventory`
holding the ordered serial numbers to poll and the device records handed to
the discovery registrar. A serial whose device info cannot be fetched stays
in the poll list but is left out of the device records.

CHANGELOG:
- 2026-10-18: Initial creation (STORY-006)

TODO:
- None
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from bridge.src.growatt import GrowattError
from bridge.src.topics import battery_alias, battery_topic, device_topic

if TYPE_CHECKING:
    from bridge.src.growatt import GrowattClient

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Inventory values
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class BatteryInfo:
    """A battery pack of a Noah device.

    Attributes:
        alias: Synthetic alias ``BAT<index>``.
        state_topic: Topic the battery telemetry is published to.
    """

    alias: str
    state_topic: str


@dataclass(frozen=True, slots=True)
class DeviceInfo:
    """A Noah device as announced to Home Assistant.

    Attributes:
        serial_number: Unique device serial number.
        alias: Display name configured in the Growatt app.
        state_topic: Topic the device telemetry is published to.
        model: Device model identifier.
        version: Firmware version string.
        batteries: Battery packs in the order reported by the device.
    """

    serial_number: str
    alias: str
    state_topic: str
    model: str
    version: str
    batteries: tuple[BatteryInfo, ...] = ()


@dataclass(frozen=True, slots=True)
class Inventory:
    """Result of one enumeration pass.

    Attributes:
        serial_numbers: Serial numbers to poll, in plant order.
        devices: Device records for discovery registration.
    """

    serial_numbers: tuple[str, ...]
    devices: tuple[DeviceInfo, ...]


# ---------------------------------------------------------------------------
# Enumeration
# ---------------------------------------------------------------------------


async def fetch_serial_numbers(
    gateway: GrowattClient, topic_prefix: str
) -> tuple[str, ...]:
    """Resolve every plant of the account to its Noah serial number.

    Plants whose info lookup fails are logged and skipped. Plants without a
    Noah device contribute nothing.

    Raises:
        GrowattError: The plant list itself could not be fetched.
    """
    logger.info("Fetching plant list")
    try:
        plant_list = await gateway.get_plant_list()
    except GrowattError as exc:
        logger.error("Could not get plant list: error=%s", exc)
        raise

    serial_numbers: list[str] = []
    for plant in plant_list.back.data:
        logger.info("Fetching plant details: plantId=%s", plant.plant_id)
        try:
            info = await gateway.get_noah_plant_info(plant.plant_id)
        except GrowattError as exc:
            logger.error(
                "Could not get plant info: plantId=%s error=%s", plant.plant_id, exc
            )
            continue

        serial_number = info.obj.device_sn
        if serial_number:
            serial_numbers.append(serial_number)
            logger.info(
                "Found device: deviceSn=%s plantId=%s topic=%s",
                serial_number,
                plant.plant_id,
                device_topic(topic_prefix, serial_number),
            )

    return tuple(serial_numbers)


async def build_device_info(
    gateway: GrowattClient, topic_prefix: str, serial_number: str
) -> DeviceInfo | None:
    """Fetch device details and build its record, or None on error."""
    try:
        data = await gateway.get_noah_info(serial_number)
    except GrowattError as exc:
        logger.error(
            "Could not get device info: device=%s error=%s", serial_number, exc
        )
        return None

    noah = data.obj.noah
    batteries = tuple(
        BatteryInfo(
            alias=battery_alias(i),
            state_topic=battery_topic(topic_prefix, serial_number, i),
        )
        for i in range(len(noah.bat_sns))
    )
    return DeviceInfo(
        serial_number=serial_number,
        alias=noah.alias,
        state_topic=device_topic(topic_prefix, serial_number),
        model=noah.model,
        version=noah.version,
        batteries=batteries,
    )


async def enumerate_devices(gateway: GrowattClient, topic_prefix: str) -> Inventory:
    """Build the device inventory for the logged-in account.

    An empty ``serial_numbers`` tuple is returned as-is; deciding what to do
    about an account without devices is left to the caller.

    Args:
        gateway: A logged-in Growatt client.
        topic_prefix: Prefix for device and battery state topics.

    Raises:
        GrowattError: The plant list could not be fetched.
    """
    serial_numbers = await fetch_serial_numbers(gateway, topic_prefix)

    devices: list[DeviceInfo] = []
    for serial_number in serial_numbers:
        device = await build_device_info(gateway, topic_prefix, serial_number)
        if device is not None:
            devices.append(device)

    return Inventory(serial_numbers=serial_numbers, devices=tuple(devices))
