"""
Pure transforms from Growatt responses to published telemetry payloads.

No side effects, no I/O. String numerics from the Growatt API are coerced by
the payload models; a value that cannot be parsed raises
``pydantic.ValidationError`` which the poller treats as a serialization
failure for that single payload.

CHANGELOG:
- 2026-10-18: Initial creation (STORY-005)

TODO:
- None
"""

from __future__ import annotations

from bridge.src.models import (
    BatteryDetails,
    BatteryPayload,
    DevicePayload,
    NoahStatus,
)

_WORK_MODES: dict[str, str] = {
    "0": "load_first",
    "1": "battery_first",
}
"""Maps Growatt workMode codes to payload work_mode values."""

_STATUS_OFFLINE = "-1"


def _work_mode(code: str) -> str:
    return _WORK_MODES.get(code, code)


def _status(code: str) -> str:
    return "offline" if code == _STATUS_OFFLINE else "online"


def noah_status_to_payload(status: NoahStatus) -> DevicePayload:
    """Convert a ``getSystemStatus`` response into a DevicePayload.

    Raises:
        pydantic.ValidationError: A numeric field is empty or not a number.
    """
    obj = status.obj
    return DevicePayload(
        output_w=obj.pac,
        solar_w=obj.ppv,
        soc=obj.soc,
        charge_w=obj.charge_power,
        discharge_w=obj.discharge_power,
        battery_num=obj.battery_num,
        generation_total_kwh=obj.eac_total,
        generation_today_kwh=obj.eac_today,
        work_mode=_work_mode(obj.work_mode),
        status=_status(obj.status),
    )


def battery_details_to_payload(details: BatteryDetails) -> BatteryPayload:
    """Convert one ``batter`` entry of ``getBatteryData`` into a BatteryPayload.

    Raises:
        pydantic.ValidationError: soc or temp is empty or not a number.
    """
    return BatteryPayload(
        serial_number=details.serial_num,
        soc=details.soc,
        temperature=details.temp,
    )
