"""
Health file writer for the bridge daemon.

Writes a JSON health file at a configurable path with three fields:
- last_poll_ts: ISO timestamp of the most recent completed poll cycle.
- device_count: Number of devices polled in that cycle.
- failed_devices: Number of those devices with at least one failure.

The file is rewritten after every poll cycle, providing a simple liveness
signal that a Docker HEALTHCHECK or monitoring can inspect.

CHANGELOG:
- 2026-10-18: Initial creation (STORY-009)

TODO:
- None
"""

from __future__ import annotations

import json
from datetime import UTC, datetime
from pathlib import Path


class HealthWriter:
    """Writes bridge health status to a JSON file.

    Args:
        path: Filesystem path for the health JSON file. Accepts str or Path.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._last_poll_ts: str | None = None
        self._device_count: int = 0
        self._failed_devices: int = 0

    def record_cycle(self, *, device_count: int, failed_devices: int) -> None:
        """Record a completed poll cycle and write the health file."""
        self._last_poll_ts = datetime.now(tz=UTC).isoformat()
        self._device_count = device_count
        self._failed_devices = failed_devices
        self._write()

    def _write(self) -> None:
        data = {
            "last_poll_ts": self._last_poll_ts,
            "device_count": self._device_count,
            "failed_devices": self._failed_devices,
        }
        self.path.write_text(json.dumps(data))
