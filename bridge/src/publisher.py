"""
Fire-and-forget MQTT publisher on top of an aiomqtt client.

Every telemetry message goes out at QoS 0 (at most once). The publisher does
not track delivery; an exception raised by the client (e.g. the broker
connection dropped) propagates to the caller.

CHANGELOG:
- 2026-10-18: Initial creation (STORY-007)

TODO:
- None
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import aiomqtt

logger = logging.getLogger(__name__)

QOS_AT_MOST_ONCE = 0


class MqttPublisher:
    """Thin publish primitive shared by the poller and the registrar.

    Args:
        client: A connected ``aiomqtt.Client``.
    """

    def __init__(self, client: aiomqtt.Client) -> None:
        self._client = client

    async def publish(
        self, topic: str, payload: bytes | str, *, retain: bool = False
    ) -> None:
        """Publish *payload* to *topic* at QoS 0."""
        logger.debug("MQTT PUB %s retain=%s", topic, retain)
        await self._client.publish(
            topic, payload=payload, qos=QOS_AT_MOST_ONCE, retain=retain
        )
