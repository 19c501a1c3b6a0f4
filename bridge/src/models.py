"""
Pydantic models for Growatt API responses and published telemetry payloads.

The Growatt server wraps every Noah endpoint in a ``{result, msg, obj}``
envelope and reports almost every numeric value as a string. Response models
keep those values as strings; the payload models coerce them to numbers so an
unparseable value surfaces as a ``ValidationError`` at transform time.
A JSON ``null`` is read as the field default, like a missing key.

CHANGELOG:
- 2026-10-18: Read JSON null as the field default; battery_num is an int (STORY-013)
- 2026-10-18: Add DevicePayload and BatteryPayload (STORY-005)
- 2026-10-18: Initial creation (STORY-002)

TODO:
- None
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator


class _GrowattModel(BaseModel):
    """Base for Growatt responses: camelCase aliases, extras and nulls ignored."""

    model_config = ConfigDict(
        populate_by_name=True, extra="ignore", coerce_numbers_to_str=True
    )

    @model_validator(mode="before")
    @classmethod
    def _drop_nulls(cls, data: Any) -> Any:
        """Treat JSON null like a missing field so the default applies."""
        if isinstance(data, dict):
            return {k: v for k, v in data.items() if v is not None}
        return data


# ---------------------------------------------------------------------------
# Login
# ---------------------------------------------------------------------------


class LoginUser(_GrowattModel):
    id: int | str | None = None


class LoginBack(_GrowattModel):
    success: bool = False
    msg: str = ""
    error: str = ""
    user: LoginUser | None = None


class LoginResult(_GrowattModel):
    """Response of ``newTwoLoginAPI.do``."""

    back: LoginBack


# ---------------------------------------------------------------------------
# Plant list
# ---------------------------------------------------------------------------


class Plant(_GrowattModel):
    plant_id: str = Field(alias="plantId")
    plant_name: str = Field(default="", alias="plantName")


class PlantListBack(_GrowattModel):
    success: bool = True
    data: list[Plant] = Field(default_factory=list)


class PlantList(_GrowattModel):
    """Response of ``PlantListAPI.do``."""

    back: PlantListBack


# ---------------------------------------------------------------------------
# Noah endpoints
# ---------------------------------------------------------------------------


class NoahResponse(_GrowattModel):
    """Common ``{result, msg}`` envelope; ``result == 1`` means success."""

    result: int = 0
    msg: str = ""


class NoahPlantInfoObj(_GrowattModel):
    plant_id: str = Field(default="", alias="plantId")
    plant_name: str = Field(default="", alias="plantName")
    device_sn: str = Field(default="", alias="deviceSn")
    is_plant_noah_system: bool = Field(default=False, alias="isPlantNoahSystem")
    is_plant_have_noah: bool = Field(default=False, alias="isPlantHaveNoah")


class NoahPlantInfo(NoahResponse):
    """Response of ``noahDeviceApi/noah/isPlantNoahSystem``."""

    obj: NoahPlantInfoObj = Field(default_factory=NoahPlantInfoObj)


class NoahDetails(_GrowattModel):
    alias: str = ""
    model: str = ""
    version: str = ""
    bat_sns: list[str] = Field(default_factory=list, alias="batSns")


class NoahInfoObj(_GrowattModel):
    noah: NoahDetails = Field(default_factory=NoahDetails)


class NoahInfo(NoahResponse):
    """Response of ``noahDeviceApi/noah/getNoahInfoBySn``."""

    obj: NoahInfoObj = Field(default_factory=NoahInfoObj)


class NoahStatusObj(_GrowattModel):
    pac: str = ""
    ppv: str = ""
    soc: str = ""
    charge_power: str = Field(default="", alias="chargePower")
    discharge_power: str = Field(default="", alias="disChargePower")
    battery_num: str = Field(default="", alias="batteryNum")
    eac_total: str = Field(default="", alias="eacTotal")
    eac_today: str = Field(default="", alias="eacToday")
    work_mode: str = Field(default="", alias="workMode")
    status: str = ""
    alias: str = ""


class NoahStatus(NoahResponse):
    """Response of ``noahDeviceApi/noah/getSystemStatus``."""

    obj: NoahStatusObj = Field(default_factory=NoahStatusObj)


class BatteryDetails(_GrowattModel):
    serial_num: str = Field(default="", alias="serialNum")
    soc: str = ""
    temp: str = ""


class BatteryDataObj(_GrowattModel):
    batter: list[BatteryDetails] = Field(default_factory=list)
    time: str = ""


class BatteryData(NoahResponse):
    """Response of ``noahDeviceApi/noah/getBatteryData``."""

    obj: BatteryDataObj = Field(default_factory=BatteryDataObj)


# ---------------------------------------------------------------------------
# Published telemetry payloads
# ---------------------------------------------------------------------------


class DevicePayload(BaseModel):
    """Device-level telemetry published to ``<prefix>/<serial>``.

    Attributes:
        output_w: AC output power in watts.
        solar_w: PV input power in watts.
        soc: Aggregate state of charge in percent.
        charge_w: Battery charge power in watts.
        discharge_w: Battery discharge power in watts.
        battery_num: Number of attached battery packs.
        generation_total_kwh: Lifetime generated energy in kWh.
        generation_today_kwh: Energy generated today in kWh.
        work_mode: ``load_first``, ``battery_first`` or the raw code.
        status: ``online`` or ``offline``.
    """

    output_w: float
    solar_w: float
    soc: float
    charge_w: float
    discharge_w: float
    battery_num: int
    generation_total_kwh: float
    generation_today_kwh: float
    work_mode: str
    status: str


class BatteryPayload(BaseModel):
    """Battery-level telemetry published to ``<prefix>/<serial>/BAT<i>``."""

    serial_number: str
    soc: float
    temperature: float
