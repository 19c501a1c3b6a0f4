"""
Telemetry poll loop: fetch Noah status and battery data, publish to MQTT.

Each cycle walks the serial numbers in enumeration order. For every device
the status is fetched, transformed and published to the device topic, then
the battery data is fetched and every battery entry is published to its
``BAT<index>`` topic. Failures are isolated:

- A fetch failure skips only the publishes that depend on it.
- A transform failure skips only that payload (other batteries still go out).
- Any other error for a device is logged with its serial and the cycle moves
  on to the next device.

No error ever leaves the loop; a device failing every cycle is logged every
cycle and is never dropped from the list. Cycles never overlap: the next one
starts ``poll_interval_s`` after the previous one finished.

The poll task is the only task that publishes once polling has started, so a
Home Assistant re-announce queued by the birth watcher goes out here, before
the next cycle.

CHANGELOG:
- 2026-10-18: Publish queued discovery re-announce before a cycle (STORY-013)
- 2026-10-18: Return failed device count for the health file (STORY-009)
- 2026-10-18: Initial creation (STORY-008)

TODO:
- None
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING

from pydantic import ValidationError

from bridge.src.growatt import GrowattError
from bridge.src.topics import battery_topic, device_topic
from bridge.src.transform import battery_details_to_payload, noah_status_to_payload

if TYPE_CHECKING:
    from bridge.src.discovery import DiscoveryRegistrar
    from bridge.src.growatt import GrowattClient
    from bridge.src.health import HealthWriter
    from bridge.src.publisher import MqttPublisher

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Per-device steps
# ---------------------------------------------------------------------------


async def _publish_device_status(
    *,
    gateway: GrowattClient,
    publisher: MqttPublisher,
    topic_prefix: str,
    serial_number: str,
) -> bool:
    """Fetch and publish the device status. Returns False on any failure."""
    try:
        status = await gateway.get_noah_status(serial_number)
    except GrowattError as exc:
        logger.error(
            "Could not get device data: device=%s error=%s", serial_number, exc
        )
        return False

    try:
        body = noah_status_to_payload(status).model_dump_json()
    except ValidationError as exc:
        logger.error(
            "Could not serialize device data: device=%s error=%s", serial_number, exc
        )
        return False

    await publisher.publish(device_topic(topic_prefix, serial_number), body)
    logger.debug("Device data published: device=%s data=%s", serial_number, body)
    return True


async def _publish_battery_status(
    *,
    gateway: GrowattClient,
    publisher: MqttPublisher,
    topic_prefix: str,
    serial_number: str,
) -> bool:
    """Fetch battery data and publish each entry. Returns False on any failure."""
    try:
        data = await gateway.get_battery_data(serial_number)
    except GrowattError as exc:
        logger.error(
            "Could not get battery data: device=%s error=%s", serial_number, exc
        )
        return False

    ok = True
    for index, details in enumerate(data.obj.batter):
        try:
            body = battery_details_to_payload(details).model_dump_json()
        except ValidationError as exc:
            logger.error(
                "Could not serialize battery data: device=%s battery=%d error=%s",
                serial_number,
                index,
                exc,
            )
            ok = False
            continue

        await publisher.publish(battery_topic(topic_prefix, serial_number, index), body)
        logger.debug(
            "Battery data published: device=%s battery=%d data=%s",
            serial_number,
            index,
            body,
        )
    return ok


async def poll_device(
    *,
    gateway: GrowattClient,
    publisher: MqttPublisher,
    topic_prefix: str,
    serial_number: str,
) -> bool:
    """Poll one device and publish its telemetry.

    Catches all exceptions so that the caller's cycle is never broken.

    Returns:
        True if every fetch, transform and publish for the device succeeded.
    """
    try:
        status_ok = await _publish_device_status(
            gateway=gateway,
            publisher=publisher,
            topic_prefix=topic_prefix,
            serial_number=serial_number,
        )
        battery_ok = await _publish_battery_status(
            gateway=gateway,
            publisher=publisher,
            topic_prefix=topic_prefix,
            serial_number=serial_number,
        )
    except Exception as exc:
        logger.error(
            "Device poll error: device=%s error=%s",
            serial_number,
            exc,
            exc_info=True,
        )
        return False
    return status_ok and battery_ok


# ---------------------------------------------------------------------------
# Cycle and loop
# ---------------------------------------------------------------------------


async def poll_cycle(
    *,
    gateway: GrowattClient,
    publisher: MqttPublisher,
    topic_prefix: str,
    serial_numbers: Sequence[str],
) -> int:
    """Poll every device once, in order.

    Returns:
        Number of devices that had at least one failure in this cycle.
    """
    failed = 0
    for serial_number in serial_numbers:
        ok = await poll_device(
            gateway=gateway,
            publisher=publisher,
            topic_prefix=topic_prefix,
            serial_number=serial_number,
        )
        if not ok:
            failed += 1
    return failed


async def poll_loop(
    *,
    gateway: GrowattClient,
    publisher: MqttPublisher,
    topic_prefix: str,
    serial_numbers: Sequence[str],
    poll_interval_s: float,
    shutdown_event: asyncio.Event,
    health: HealthWriter | None = None,
    registrar: DiscoveryRegistrar | None = None,
) -> None:
    """Run poll cycles until shutdown_event is set.

    Executes poll_cycle, then sleeps for poll_interval_s, checking the
    shutdown event between iterations.

    Args:
        gateway: A logged-in Growatt client.
        publisher: MQTT publisher for telemetry.
        topic_prefix: Prefix for device and battery state topics.
        serial_numbers: Devices to poll, in enumeration order.
        poll_interval_s: Seconds between the end of one cycle and the next.
        shutdown_event: Event to signal graceful shutdown.
        health: HealthWriter instance, or None to skip health writes.
        registrar: Discovery registrar whose queued re-announce is published
            before a cycle, or None.
    """
    logger.info(
        "Start polling growatt (interval=%ss, devices=%d)",
        poll_interval_s,
        len(serial_numbers),
    )
    while not shutdown_event.is_set():
        if registrar is not None:
            await registrar.announce_if_pending()

        failed = await poll_cycle(
            gateway=gateway,
            publisher=publisher,
            topic_prefix=topic_prefix,
            serial_numbers=serial_numbers,
        )

        if health is not None:
            try:
                health.record_cycle(
                    device_count=len(serial_numbers), failed_devices=failed
                )
            except Exception:
                logger.warning("Failed to write health file", exc_info=True)

        # Use wait with timeout so we can check shutdown between sleeps
        with contextlib.suppress(TimeoutError):
            await asyncio.wait_for(shutdown_event.wait(), timeout=poll_interval_s)
    logger.info("Poll loop stopped")
