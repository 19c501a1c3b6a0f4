"""
Bridge daemon configuration loaded from environment variables.

Uses Pydantic BaseSettings for automatic env var loading and validation.
All configuration values come from environment variables or .env files;
no hardcoded credentials.

CHANGELOG:
- 2026-10-18: Add HEALTH_PATH and LOG_LEVEL (STORY-009)
- 2026-10-18: Initial creation (STORY-001)

TODO:
- None
"""

import logging

from pydantic import field_validator
from pydantic_settings import BaseSettings


class BridgeSettings(BaseSettings):
    """Bridge daemon configuration.

    All values are loaded from environment variables. Required variables
    must be set; optional variables have sensible defaults.

    Attributes:
        growatt_username: Growatt cloud account user name.
        growatt_password: Growatt cloud account password (never logged).
        growatt_server_url: Growatt server base URL (must be HTTPS).
        polling_interval: Seconds between telemetry poll cycles.
        mqtt_host: MQTT broker hostname.
        mqtt_port: MQTT broker port (default 1883).
        mqtt_username: Optional MQTT user name.
        mqtt_password: Optional MQTT password.
        mqtt_client_id: MQTT client identifier.
        mqtt_topic_prefix: Prefix for all telemetry topics.
        homeassistant_topic_prefix: Home Assistant discovery prefix.
        log_level: Root log level name (DEBUG, INFO, ...).
        health_path: Path of the JSON health file. Empty disables it.
    """

    growatt_username: str
    growatt_password: str
    growatt_server_url: str = "https://openapi.growatt.com"
    polling_interval: int = 10
    mqtt_host: str = "localhost"
    mqtt_port: int = 1883
    mqtt_username: str = ""
    mqtt_password: str = ""
    mqtt_client_id: str = "noah2mqtt"
    mqtt_topic_prefix: str = "noah2mqtt"
    homeassistant_topic_prefix: str = "homeassistant"
    log_level: str = "INFO"
    health_path: str = ""

    @field_validator("growatt_server_url")
    @classmethod
    def growatt_server_url_must_be_https(cls, v: str) -> str:
        """Validate that the Growatt server URL uses HTTPS.

        The account password travels in the login form, so plain HTTP
        URLs are rejected at startup.
        """
        if not v.lower().startswith("https://"):
            raise ValueError(f"GROWATT_SERVER_URL must use HTTPS (got: '{v}')")
        return v.rstrip("/")

    @field_validator("polling_interval")
    @classmethod
    def polling_interval_must_be_positive(cls, v: int) -> int:
        """Validate the polling interval is at least one second."""
        if v < 1:
            raise ValueError("POLLING_INTERVAL must be >= 1")
        return v

    @field_validator("mqtt_port")
    @classmethod
    def mqtt_port_must_be_valid(cls, v: int) -> int:
        """Validate MQTT port is in valid range."""
        if v < 1 or v > 65535:
            raise ValueError("MQTT_PORT must be between 1 and 65535")
        return v

    @field_validator("mqtt_topic_prefix", "homeassistant_topic_prefix")
    @classmethod
    def topic_prefix_must_not_be_empty(cls, v: str) -> str:
        """Strip trailing slashes and reject empty topic prefixes."""
        v = v.rstrip("/")
        if not v:
            raise ValueError("topic prefix must not be empty")
        return v

    @field_validator("log_level")
    @classmethod
    def log_level_must_be_known(cls, v: str) -> str:
        """Validate the log level is a standard logging level name."""
        level = v.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"LOG_LEVEL must be a logging level name (got: '{v}')")
        return level

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}
