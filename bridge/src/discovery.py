"""
Home Assistant MQTT discovery for Noah devices and their battery packs.

For every device in the inventory one retained config message is published
per sensor, so Home Assistant creates the entities and reads their values
from the device and battery state topics with a ``value_json`` template.

Topics:
- Device sensors:  ``<discovery_prefix>/sensor/<serial>/<key>/config``
- Battery sensors: ``<discovery_prefix>/sensor/<serial>_bat<i>/<key>/config``

Home Assistant announces restarts on ``<discovery_prefix>/status``. The
birth watcher only reads that topic; an ``online`` message queues a
re-announce that the poll task publishes before its next cycle, so the MQTT
connection is never used for publishing from two tasks at once.

CHANGELOG:
- 2026-10-18: Queue re-announce for the poll task; subscribe before polling (STORY-013)
- 2026-10-18: Re-announce on Home Assistant birth message (STORY-011)
- 2026-10-18: Initial creation (STORY-010)

TODO:
- None
"""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    import aiomqtt

    from bridge.src.enumerator import BatteryInfo, DeviceInfo
    from bridge.src.publisher import MqttPublisher

logger = logging.getLogger(__name__)

MANUFACTURER = "Growatt"
BIRTH_PAYLOAD = "online"


@dataclass(frozen=True, slots=True)
class SensorDef:
    """Definition of one Home Assistant sensor entity.

    Attributes:
        key: Payload field read by the value template; also the object id.
        name: Entity name shown in Home Assistant.
        unit: Unit of measurement, or None for text sensors.
        device_class: Home Assistant device class, or None.
        state_class: Home Assistant state class, or None.
        icon: Optional mdi icon.
    """

    key: str
    name: str
    unit: str | None = None
    device_class: str | None = None
    state_class: str | None = None
    icon: str | None = None


DEVICE_SENSORS: tuple[SensorDef, ...] = (
    SensorDef("output_w", "Output Power", "W", "power", "measurement"),
    SensorDef("solar_w", "Solar Power", "W", "power", "measurement"),
    SensorDef("soc", "State of Charge", "%", "battery", "measurement"),
    SensorDef("charge_w", "Charge Power", "W", "power", "measurement"),
    SensorDef("discharge_w", "Discharge Power", "W", "power", "measurement"),
    SensorDef("battery_num", "Battery Count", icon="mdi:battery-heart-variant"),
    SensorDef(
        "generation_total_kwh", "Total Generation", "kWh", "energy", "total_increasing"
    ),
    SensorDef(
        "generation_today_kwh", "Today's Generation", "kWh", "energy", "total_increasing"
    ),
    SensorDef("work_mode", "Work Mode", icon="mdi:cog"),
    SensorDef("status", "Status", icon="mdi:information-outline"),
)

BATTERY_SENSORS: tuple[SensorDef, ...] = (
    SensorDef("soc", "State of Charge", "%", "battery", "measurement"),
    SensorDef("temperature", "Temperature", "°C", "temperature", "measurement"),
)


def _node_id(device: DeviceInfo, battery_index: int | None = None) -> str:
    if battery_index is None:
        return device.serial_number
    return f"{device.serial_number}_bat{battery_index}"


def discovery_topic(discovery_prefix: str, node_id: str, key: str) -> str:
    """Return ``<discovery_prefix>/sensor/<node_id>/<key>/config``."""
    return f"{discovery_prefix}/sensor/{node_id}/{key}/config"


def device_block(device: DeviceInfo) -> dict[str, Any]:
    """Build the shared ``device`` block linking entities to one device."""
    return {
        "identifiers": [f"noah_{device.serial_number}"],
        "name": device.alias or device.serial_number,
        "manufacturer": MANUFACTURER,
        "model": device.model,
        "sw_version": device.version,
        "serial_number": device.serial_number,
    }


def sensor_config(
    sensor: SensorDef,
    *,
    device: DeviceInfo,
    state_topic: str,
    unique_id: str,
    name_prefix: str = "",
) -> dict[str, Any]:
    """Build the discovery config for one sensor entity."""
    config: dict[str, Any] = {
        "name": f"{name_prefix}{sensor.name}",
        "unique_id": unique_id,
        "object_id": unique_id,
        "state_topic": state_topic,
        "value_template": f"{{{{ value_json.{sensor.key} }}}}",
        "device": device_block(device),
    }
    if sensor.unit is not None:
        config["unit_of_measurement"] = sensor.unit
    if sensor.device_class is not None:
        config["device_class"] = sensor.device_class
    if sensor.state_class is not None:
        config["state_class"] = sensor.state_class
    if sensor.icon is not None:
        config["icon"] = sensor.icon
    return config


def discovery_messages(
    device: DeviceInfo, discovery_prefix: str
) -> list[tuple[str, dict[str, Any]]]:
    """Return ``(topic, config)`` for every device and battery sensor."""
    messages: list[tuple[str, dict[str, Any]]] = []
    node = _node_id(device)
    for sensor in DEVICE_SENSORS:
        unique_id = f"noah_{node}_{sensor.key}"
        messages.append(
            (
                discovery_topic(discovery_prefix, node, sensor.key),
                sensor_config(
                    sensor,
                    device=device,
                    state_topic=device.state_topic,
                    unique_id=unique_id,
                ),
            )
        )

    for index, battery in enumerate(device.batteries):
        messages.extend(_battery_messages(device, index, battery, discovery_prefix))
    return messages


def _battery_messages(
    device: DeviceInfo, index: int, battery: BatteryInfo, discovery_prefix: str
) -> list[tuple[str, dict[str, Any]]]:
    node = _node_id(device, index)
    return [
        (
            discovery_topic(discovery_prefix, node, sensor.key),
            sensor_config(
                sensor,
                device=device,
                state_topic=battery.state_topic,
                unique_id=f"noah_{node}_{sensor.key}",
                name_prefix=f"{battery.alias} ",
            ),
        )
        for sensor in BATTERY_SENSORS
    ]


class DiscoveryRegistrar:
    """Announces the device inventory to Home Assistant.

    Args:
        publisher: MQTT publisher used for the retained config messages.
        discovery_prefix: Home Assistant discovery prefix.
    """

    def __init__(self, publisher: MqttPublisher, discovery_prefix: str) -> None:
        self._publisher = publisher
        self._discovery_prefix = discovery_prefix.rstrip("/")
        self._devices: tuple[DeviceInfo, ...] = ()
        self._announce_pending = False

    @property
    def devices(self) -> tuple[DeviceInfo, ...]:
        return self._devices

    @property
    def status_topic(self) -> str:
        return f"{self._discovery_prefix}/status"

    @property
    def announce_pending(self) -> bool:
        """True when Home Assistant came online since the last announce."""
        return self._announce_pending

    async def set_devices(self, devices: Sequence[DeviceInfo]) -> None:
        """Store the inventory and announce every device."""
        self._devices = tuple(devices)
        await self.announce()

    async def announce(self) -> None:
        """Publish retained discovery configs for all known devices.

        A failure for one device is logged and does not stop the others.
        """
        for device in self._devices:
            try:
                for topic, config in discovery_messages(device, self._discovery_prefix):
                    await self._publisher.publish(
                        topic, json.dumps(config, separators=(",", ":")), retain=True
                    )
            except Exception as exc:
                logger.error(
                    "Could not announce device: device=%s error=%s",
                    device.serial_number,
                    exc,
                )
                continue
            logger.info(
                "Announced device to Home Assistant: device=%s batteries=%d",
                device.serial_number,
                len(device.batteries),
            )

    def handle_status(self, payload: object) -> None:
        """Queue a re-announce when Home Assistant reports it is back online."""
        if isinstance(payload, (bytes, bytearray)):
            payload = payload.decode("utf-8", errors="replace")
        if str(payload).strip() == BIRTH_PAYLOAD:
            logger.info("Home Assistant is online, re-announce queued")
            self._announce_pending = True

    async def announce_if_pending(self) -> None:
        """Publish the queued re-announce, if any."""
        if not self._announce_pending:
            return
        self._announce_pending = False
        await self.announce()

    async def subscribe(self, client: aiomqtt.Client) -> None:
        """Subscribe to the Home Assistant status topic."""
        await client.subscribe(self.status_topic)
        logger.info("Subscribed to %s", self.status_topic)

    async def watch_birth(self, client: aiomqtt.Client) -> None:
        """Handle Home Assistant status messages. Never publishes.

        Runs until cancelled or the MQTT connection is lost. Call
        :meth:`subscribe` first.
        """
        async for message in client.messages:
            if message.topic.matches(self.status_topic):
                self.handle_status(message.payload)
