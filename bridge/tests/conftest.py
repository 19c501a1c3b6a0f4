"""
Shared test fixtures for bridge daemon tests.

Provides environment variable fixtures for BridgeSettings configuration tests
and fake Growatt/MQTT collaborators for the enumerator, poller and service
tests. All bridge env vars are cleaned before each test to ensure isolation.

CHANGELOG:
- 2026-10-18: Add fake gateway and publisher fixtures (STORY-008)
- 2026-10-18: Initial creation (STORY-001)

TODO:
- None
"""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest
from bridge.src.growatt import GrowattError
from bridge.src.models import (
    BatteryData,
    NoahInfo,
    NoahPlantInfo,
    NoahStatus,
    PlantList,
)

# All BridgeSettings environment variable names, used for cleanup.
_ALL_BRIDGE_ENV_VARS = (
    "GROWATT_USERNAME",
    "GROWATT_PASSWORD",
    "GROWATT_SERVER_URL",
    "POLLING_INTERVAL",
    "MQTT_HOST",
    "MQTT_PORT",
    "MQTT_USERNAME",
    "MQTT_PASSWORD",
    "MQTT_CLIENT_ID",
    "MQTT_TOPIC_PREFIX",
    "HOMEASSISTANT_TOPIC_PREFIX",
    "LOG_LEVEL",
    "HEALTH_PATH",
)


@pytest.fixture(autouse=True)
def _clean_bridge_env(monkeypatch: pytest.MonkeyPatch, tmp_path: str) -> None:
    """Remove all bridge env vars and isolate from .env files before each test.

    Changes working directory to tmp_path so no .env file is accidentally
    loaded by Pydantic BaseSettings.
    """
    for var in _ALL_BRIDGE_ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture()
def env_vars_full(monkeypatch: pytest.MonkeyPatch) -> dict[str, str]:
    """Set all required and optional environment variables for BridgeSettings."""
    env = {
        "GROWATT_USERNAME": "noah-owner",
        "GROWATT_PASSWORD": "growatt-secret",
        "GROWATT_SERVER_URL": "https://server.growatt.example",
        "POLLING_INTERVAL": "30",
        "MQTT_HOST": "192.168.1.10",
        "MQTT_PORT": "8883",
        "MQTT_USERNAME": "mqtt-user",
        "MQTT_PASSWORD": "mqtt-secret",
        "MQTT_CLIENT_ID": "noah-test",
        "MQTT_TOPIC_PREFIX": "noah",
        "HOMEASSISTANT_TOPIC_PREFIX": "ha",
        "LOG_LEVEL": "debug",
        "HEALTH_PATH": "/tmp/noah-health.json",
    }
    for key, value in env.items():
        monkeypatch.setenv(key, value)
    return env


@pytest.fixture()
def env_vars_required_only(monkeypatch: pytest.MonkeyPatch) -> dict[str, str]:
    """Set only the required environment variables (no optional ones)."""
    env = {
        "GROWATT_USERNAME": "noah-owner",
        "GROWATT_PASSWORD": "growatt-secret",
    }
    for key, value in env.items():
        monkeypatch.setenv(key, value)
    return env


# ---------------------------------------------------------------------------
# Growatt response builders
# ---------------------------------------------------------------------------


def make_plant_list(*plant_ids: str) -> PlantList:
    return PlantList.model_validate(
        {"back": {"success": True, "data": [{"plantId": p} for p in plant_ids]}}
    )


def make_plant_info(device_sn: str) -> NoahPlantInfo:
    return NoahPlantInfo.model_validate(
        {"result": 1, "obj": {"deviceSn": device_sn, "isPlantNoahSystem": True}}
    )


def make_noah_info(alias: str = "Balcony", battery_count: int = 2) -> NoahInfo:
    return NoahInfo.model_validate(
        {
            "result": 1,
            "obj": {
                "noah": {
                    "alias": alias,
                    "model": "NOAH 2000",
                    "version": "11.10.09.07",
                    "batSns": [f"BATSN{i}" for i in range(battery_count)],
                }
            },
        }
    )


def make_noah_status(**overrides: str) -> NoahStatus:
    obj = {
        "pac": "320",
        "ppv": "450.5",
        "soc": "87",
        "chargePower": "130",
        "disChargePower": "0",
        "batteryNum": "2",
        "eacTotal": "153.2",
        "eacToday": "1.4",
        "workMode": "0",
        "status": "1",
        "alias": "Balcony",
    }
    obj.update(overrides)
    return NoahStatus.model_validate({"result": 1, "obj": obj})


def make_battery_data(*entries: tuple[str, str, str]) -> BatteryData:
    """Build battery data from ``(serialNum, soc, temp)`` tuples."""
    return BatteryData.model_validate(
        {
            "result": 1,
            "obj": {
                "batter": [
                    {"serialNum": sn, "soc": soc, "temp": temp}
                    for sn, soc, temp in entries
                ],
                "time": "2026-10-18 10:00:00",
            },
        }
    )


# ---------------------------------------------------------------------------
# Fake collaborators
# ---------------------------------------------------------------------------


@pytest.fixture()
def gateway() -> AsyncMock:
    """Fake Growatt client: two plants, plant A has S1 with two batteries,
    plant B's info lookup fails."""
    client = AsyncMock()
    client.login = AsyncMock(return_value=None)
    client.get_plant_list = AsyncMock(return_value=make_plant_list("A", "B"))

    async def plant_info(plant_id: str) -> NoahPlantInfo:
        if plant_id == "A":
            return make_plant_info("S1")
        raise GrowattError("isPlantNoahSystem: result=0 msg=-")

    client.get_noah_plant_info = AsyncMock(side_effect=plant_info)
    client.get_noah_info = AsyncMock(return_value=make_noah_info(battery_count=2))
    client.get_noah_status = AsyncMock(return_value=make_noah_status())
    client.get_battery_data = AsyncMock(
        return_value=make_battery_data(("BATSN0", "88", "21.5"), ("BATSN1", "86", "22"))
    )
    return client


@pytest.fixture()
def publisher() -> AsyncMock:
    """Fake MQTT publisher recording every publish call."""
    pub = AsyncMock()
    pub.publish = AsyncMock(return_value=None)
    return pub


def published_topics(publisher: AsyncMock) -> list[str]:
    """Topics passed to publisher.publish, in call order."""
    return [c.args[0] for c in publisher.publish.call_args_list]
