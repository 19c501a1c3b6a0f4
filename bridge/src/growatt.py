"""
Async HTTP client for the Growatt cloud API (Noah endpoints).

Wraps a cookie-holding httpx AsyncClient: ``login()`` establishes the
session and every other call reuses its cookies. Each call returns a parsed
pydantic model or raises :class:`GrowattError`; callers treat errors as
opaque and never retry.

Operations:
- login(): Authenticate the account, keep the session cookie.
- get_plant_list(): List plants under the account.
- get_noah_plant_info(plant_id): Resolve a plant to its Noah serial number.
- get_noah_info(serial_number): Device alias, model, version, battery serials.
- get_noah_status(serial_number): Live device status.
- get_battery_data(serial_number): Live per-battery-pack status.

CHANGELOG:
- 2026-10-18: Check the result envelope before parsing obj (STORY-004)
- 2026-10-18: Initial creation (STORY-003)

TODO:
- None
"""

from __future__ import annotations

import hashlib
import logging
from typing import TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from bridge.src.models import (
    BatteryData,
    LoginResult,
    NoahInfo,
    NoahPlantInfo,
    NoahResponse,
    NoahStatus,
    PlantList,
)

logger = logging.getLogger(__name__)

_ModelT = TypeVar("_ModelT", bound=BaseModel)

DEFAULT_SERVER_URL = "https://openapi.growatt.com"

REQUEST_TIMEOUT_S: float = 30.0
"""Timeout per HTTP request in seconds."""

USER_AGENT = "Dalvik/2.1.0 (Linux; U; Android 12; SM-G973F Build/SP1A.210812.016)"
"""The Growatt server rejects requests without a mobile app user agent."""


class GrowattError(Exception):
    """Raised when a Growatt API call fails for any reason."""


class GrowattAuthError(GrowattError):
    """Raised when the Growatt server rejects the account credentials."""


def hash_password(password: str) -> str:
    """Hash a password the way the Growatt mobile app does.

    MD5 hex digest where every ``0`` at an even index is replaced by ``c``.
    """
    digest = list(hashlib.md5(password.encode("utf-8")).hexdigest())
    for i in range(0, len(digest), 2):
        if digest[i] == "0":
            digest[i] = "c"
    return "".join(digest)


class GrowattClient:
    """Session-based client for the Growatt server.

    Args:
        username: Growatt account user name.
        password: Growatt account password in clear text; hashed on login.
        server_url: Base URL of the Growatt server.
        transport: Optional httpx transport, used by tests.

    Usage::

        async with GrowattClient(username="me", password="secret") as client:
            await client.login()
            plants = await client.get_plant_list()
    """

    def __init__(
        self,
        *,
        username: str,
        password: str,
        server_url: str = DEFAULT_SERVER_URL,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._username = username
        self._password = password
        self._server_url = server_url.rstrip("/")
        self._user_id: str | None = None
        self._client = httpx.AsyncClient(
            base_url=self._server_url,
            headers={"User-Agent": USER_AGENT},
            timeout=REQUEST_TIMEOUT_S,
            follow_redirects=False,
            transport=transport,
        )

    async def __aenter__(self) -> GrowattClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying HTTP session."""
        await self._client.aclose()

    @property
    def user_id(self) -> str | None:
        """Account user id returned by the last successful login."""
        return self._user_id

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def login(self) -> None:
        """Authenticate and store the session cookie.

        Raises:
            GrowattAuthError: The server rejected the credentials.
            GrowattError: The request itself failed.
        """
        logger.info("Logging in to %s as %s", self._server_url, self._username)
        result = await self._request(
            "POST",
            "newTwoLoginAPI.do",
            LoginResult,
            data={
                "userName": self._username,
                "password": hash_password(self._password),
            },
        )
        if not result.back.success:
            reason = result.back.error or result.back.msg or "unknown reason"
            raise GrowattAuthError(f"login rejected: {reason}")
        if result.back.user is not None and result.back.user.id is not None:
            self._user_id = str(result.back.user.id)
        logger.info("Login successful (userId=%s)", self._user_id)

    async def get_plant_list(self) -> PlantList:
        params = {"userId": self._user_id} if self._user_id else None
        plants = await self._request("GET", "PlantListAPI.do", PlantList, params=params)
        if not plants.back.success:
            raise GrowattError("plant list request was not successful")
        return plants

    async def get_noah_plant_info(self, plant_id: str) -> NoahPlantInfo:
        return await self._noah_request(
            "noahDeviceApi/noah/isPlantNoahSystem", NoahPlantInfo, plantId=plant_id
        )

    async def get_noah_info(self, serial_number: str) -> NoahInfo:
        return await self._noah_request(
            "noahDeviceApi/noah/getNoahInfoBySn", NoahInfo, deviceSn=serial_number
        )

    async def get_noah_status(self, serial_number: str) -> NoahStatus:
        return await self._noah_request(
            "noahDeviceApi/noah/getSystemStatus", NoahStatus, deviceSn=serial_number
        )

    async def get_battery_data(self, serial_number: str) -> BatteryData:
        return await self._noah_request(
            "noahDeviceApi/noah/getBatteryData", BatteryData, deviceSn=serial_number
        )

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _noah_request(
        self, path: str, model: type[_ModelT], **form: str
    ) -> _ModelT:
        """POST a form to a Noah endpoint and check the result envelope."""
        body = await self._send("POST", path, data=form)
        try:
            envelope = NoahResponse.model_validate_json(body)
        except ValidationError as exc:
            raise GrowattError(f"{path}: invalid response: {exc}") from exc
        if envelope.result != 1:
            raise GrowattError(
                f"{path}: result={envelope.result} msg={envelope.msg or '-'}"
            )
        return self._parse(path, body, model)

    async def _request(
        self,
        method: str,
        path: str,
        model: type[_ModelT],
        *,
        data: dict[str, str] | None = None,
        params: dict[str, str] | None = None,
    ) -> _ModelT:
        body = await self._send(method, path, data=data, params=params)
        return self._parse(path, body, model)

    async def _send(
        self,
        method: str,
        path: str,
        *,
        data: dict[str, str] | None = None,
        params: dict[str, str] | None = None,
    ) -> bytes:
        """Send a request and return the raw body of a 2xx response."""
        try:
            response = await self._client.request(
                method, f"/{path}", data=data, params=params
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise GrowattError(f"{path}: {exc}") from exc
        logger.debug("Growatt %s /%s -> %d", method, path, response.status_code)
        return response.content

    @staticmethod
    def _parse(path: str, body: bytes, model: type[_ModelT]) -> _ModelT:
        # An expired session yields an HTML login page, which fails here too.
        try:
            return model.model_validate_json(body)
        except ValidationError as exc:
            raise GrowattError(f"{path}: invalid response: {exc}") from exc
