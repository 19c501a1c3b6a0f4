"""
Bridge daemon entrypoint for the Growatt Noah to MQTT pipeline.

Loads settings, configures structured JSON logging, opens the Growatt HTTP
session and the MQTT connection, then runs the startup sequence of
:class:`~bridge.src.service.PollingService`. Once startup succeeds the poll
task runs until SIGTERM/SIGINT sets the shared shutdown event.

Exit codes:
- 0: clean shutdown, or the account has no Noah device.
- 1: login, plant list or MQTT connection failure.

CHANGELOG:
- 2026-10-18: Subscribe to Home Assistant status before polling starts (STORY-013)
- 2026-10-18: Re-announce discovery on Home Assistant birth (STORY-011)
- 2026-10-18: Initial creation (STORY-012)

TODO:
- None
"""

from __future__ import annotations

import asyncio
import contextlib
import hashlib
import json
import logging
import signal
import sys
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import aiomqtt

from bridge.src.service import NoDevicesFoundError, StartupError

if TYPE_CHECKING:
    from bridge.src.config import BridgeSettings
    from bridge.src.discovery import DiscoveryRegistrar

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_STARTUP_FAILED = 1


# ---------------------------------------------------------------------------
# Structured JSON logging setup
# ---------------------------------------------------------------------------


class _JsonFormatter(logging.Formatter):
    """Minimal JSON log formatter."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info and record.exc_info[1] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry)


def configure_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging for the bridge daemon.

    Sets up the root logger with a JSON-formatted handler writing to stderr.
    """
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(_JsonFormatter())
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)


def _masked_secret(value: str | None) -> str:
    """Return a short non-reversible fingerprint for diagnostics."""
    if not value:
        return "empty"
    digest = hashlib.sha256(value.encode("utf-8")).hexdigest()[:10]
    return f"len={len(value)} sha256={digest}"


def log_config_summary(settings: object) -> None:
    """Log a config summary at startup, excluding secrets.

    Args:
        settings: A BridgeSettings instance (or any object with the same attrs).
    """
    logger.info(
        "Bridge starting with config: "
        "growatt_server_url=%s, growatt_username=%s, polling_interval=%s, "
        "mqtt_host=%s, mqtt_port=%s, mqtt_username=%s, mqtt_client_id=%s, "
        "mqtt_topic_prefix=%s, homeassistant_topic_prefix=%s, "
        "health_path=%s, growatt_password_masked=%s, mqtt_password_masked=%s",
        settings.growatt_server_url,  # type: ignore[attr-defined]
        settings.growatt_username,  # type: ignore[attr-defined]
        settings.polling_interval,  # type: ignore[attr-defined]
        settings.mqtt_host,  # type: ignore[attr-defined]
        settings.mqtt_port,  # type: ignore[attr-defined]
        settings.mqtt_username,  # type: ignore[attr-defined]
        settings.mqtt_client_id,  # type: ignore[attr-defined]
        settings.mqtt_topic_prefix,  # type: ignore[attr-defined]
        settings.homeassistant_topic_prefix,  # type: ignore[attr-defined]
        settings.health_path or "disabled",  # type: ignore[attr-defined]
        _masked_secret(settings.growatt_password),  # type: ignore[attr-defined]
        _masked_secret(settings.mqtt_password),  # type: ignore[attr-defined]
    )


# ---------------------------------------------------------------------------
# Runner
# ---------------------------------------------------------------------------


async def _watch_birth(registrar: DiscoveryRegistrar, client: aiomqtt.Client) -> None:
    """Run the registrar's birth watcher, logging a lost connection."""
    try:
        await registrar.watch_birth(client)
    except aiomqtt.MqttError as exc:
        logger.warning("Stopped watching Home Assistant status: %s", exc)


async def run(settings: BridgeSettings, shutdown_event: asyncio.Event) -> int:
    """Open connections, start the service and wait for the poll task.

    Args:
        settings: A BridgeSettings instance.
        shutdown_event: Event to signal graceful shutdown.

    Returns:
        The process exit code.
    """
    from bridge.src.discovery import DiscoveryRegistrar
    from bridge.src.growatt import GrowattClient
    from bridge.src.health import HealthWriter
    from bridge.src.publisher import MqttPublisher
    from bridge.src.service import PollingService

    health = HealthWriter(settings.health_path) if settings.health_path else None

    try:
        async with (
            GrowattClient(
                username=settings.growatt_username,
                password=settings.growatt_password,
                server_url=settings.growatt_server_url,
            ) as gateway,
            aiomqtt.Client(
                hostname=settings.mqtt_host,
                port=settings.mqtt_port,
                username=settings.mqtt_username or None,
                password=settings.mqtt_password or None,
                identifier=settings.mqtt_client_id,
            ) as client,
        ):
            publisher = MqttPublisher(client)
            registrar = DiscoveryRegistrar(
                publisher,
                discovery_prefix=settings.homeassistant_topic_prefix,
            )
            service = PollingService(
                gateway=gateway,
                publisher=publisher,
                registrar=registrar,
                topic_prefix=settings.mqtt_topic_prefix,
                poll_interval_s=settings.polling_interval,
                shutdown_event=shutdown_event,
                health=health,
            )

            await registrar.subscribe(client)

            try:
                poll_task = await service.start()
            except NoDevicesFoundError:
                logger.info("Exiting: no noah devices on this account")
                return EXIT_OK
            except StartupError as exc:
                logger.error("Startup failed: %s", exc)
                return EXIT_STARTUP_FAILED

            birth_task = asyncio.create_task(_watch_birth(registrar, client))
            try:
                await poll_task
            finally:
                birth_task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await birth_task
    except aiomqtt.MqttError as exc:
        logger.error("MQTT connection failed: %s", exc)
        return EXIT_STARTUP_FAILED

    logger.info("Shutdown complete")
    return EXIT_OK


# ---------------------------------------------------------------------------
# Entrypoint
# ---------------------------------------------------------------------------


async def async_main() -> int:
    """Async entrypoint: load config, install signal handlers, run.

    Sets up SIGTERM/SIGINT handlers to trigger graceful shutdown.
    """
    from bridge.src.config import BridgeSettings

    configure_logging()
    settings = BridgeSettings()
    configure_logging(settings.log_level)
    log_config_summary(settings)

    shutdown_event = asyncio.Event()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(
            sig,
            lambda: _handle_signal(shutdown_event),
        )

    return await run(settings, shutdown_event)


def _handle_signal(shutdown_event: asyncio.Event) -> None:
    """Handle SIGTERM/SIGINT by setting the shutdown event.

    Args:
        shutdown_event: The event to set for graceful shutdown.
    """
    logger.info("Received shutdown signal, initiating graceful shutdown")
    shutdown_event.set()


def main() -> None:
    """Synchronous entrypoint for the bridge daemon."""
    sys.exit(asyncio.run(async_main()))


if __name__ == "__main__":
    main()
