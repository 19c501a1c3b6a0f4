"""
MQTT topic naming for Noah devices and their battery packs.

Pure functions: the same inputs always produce the same topic. Prefix and
serial number are used as-is, without escaping or validation.

CHANGELOG:
- 2026-10-18: Initial creation (STORY-006)

TODO:
- None
"""

from __future__ import annotations

BATTERY_ALIAS_PREFIX = "BAT"


def battery_alias(index: int) -> str:
    """Return the alias of the battery at 0-based *index*, e.g. ``BAT0``."""
    return f"{BATTERY_ALIAS_PREFIX}{index}"


def device_topic(prefix: str, serial_number: str) -> str:
    """Return the device state topic ``<prefix>/<serial>``."""
    return f"{prefix}/{serial_number}"


def battery_topic(prefix: str, serial_number: str, index: int) -> str:
    """Return the battery state topic ``<prefix>/<serial>/BAT<index>``."""
    return f"{device_topic(prefix, serial_number)}/{battery_alias(index)}"
