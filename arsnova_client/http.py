"""HTTP client for ARSnova REST endpoints."""

from __future__ import annotations

from typing import Any, Final

import aiohttp

from . import __version__
from .errors import (
    ArsnovaConnectionError,
    ArsnovaLoginError,
    ArsnovaNotLoggedInError,
    ArsnovaParseError,
    ArsnovaRoomNotFoundError,
    ArsnovaTimeout,
)
from .models import Feedback, RoomInfo, RoomStats

USER_AGENT: Final = f"arsnova-cli-client/{__version__}"
DEFAULT_REQUEST_TIMEOUT: Final = 10.0


class ArsnovaHttpClient:
    """HTTP client wrapper for ARSnova REST endpoints."""

    def __init__(
        self,
        session: aiohttp.ClientSession,
        api_url: str,
        *,
        token: str | None = None,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
    ) -> None:
        self._session = session
        self._api_url = api_url.rstrip("/")
        self._token = token
        self._request_timeout = request_timeout

    @property
    def api_url(self) -> str:
        return self._api_url

    def _url(self, path: str) -> str:
        return f"{self._api_url}{path}"

    def _timeout(self) -> aiohttp.ClientTimeout:
        return aiohttp.ClientTimeout(total=self._request_timeout)

    def _headers(self, *, auth: bool = True) -> dict[str, str]:
        headers = {"User-Agent": USER_AGENT}
        if auth:
            if not self._token:
                raise ArsnovaNotLoggedInError()
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    async def guest_login(self) -> str:
        """Request a guest token from /auth/login/guest.

        Raises:
            ArsnovaLoginError: If the response carries no usable token
            ArsnovaTimeout: If the request times out
            ArsnovaConnectionError: If the network request fails
        """
        url = self._url("/auth/login/guest")
        try:
            async with self._session.post(
                url,
                headers=self._headers(auth=False),
                timeout=self._timeout(),
            ) as resp:
                if resp.status != 200:
                    raise ArsnovaLoginError(
                        f"Cannot login: service returned {resp.status}"
                    )
                try:
                    data = await resp.json(content_type=None)
                except ValueError as err:
                    raise ArsnovaLoginError() from err
        except TimeoutError as err:
            raise ArsnovaTimeout("Login request timed out") from err
        except aiohttp.ClientError as err:
            raise ArsnovaConnectionError("Login request failed") from err

        token = data.get("token") if isinstance(data, dict) else None
        if not isinstance(token, str) or not token:
            raise ArsnovaLoginError("Cannot login: response holds no token")
        return token

    async def request_membership(self, short_id: str) -> RoomInfo:
        """Join the room named by short_id as participant and return its identity.

        Raises:
            ArsnovaRoomNotFoundError: If the service answers 404
            ArsnovaParseError: If the 200 response cannot be decoded
            ArsnovaConnectionError: On any other status or network failure
        """
        url = self._url(f"/room/~{short_id}/request-membership")
        headers = self._headers()
        headers["ars-room-role"] = "PARTICIPANT"
        data = await self._request_json(
            "post", url, short_id, headers=headers, json={}, what="Membership"
        )
        return RoomInfo.from_membership(data)

    async def fetch_survey(self, room: RoomInfo) -> Feedback:
        """Fetch the current feedback tally from /room/{id}/survey."""
        url = self._url(f"/room/{room.id}/survey")
        data = await self._request_json(
            "get", url, room.short_id, headers=self._headers(), what="Survey"
        )
        if not isinstance(data, list):
            raise ArsnovaParseError("Survey response is not an array")
        try:
            return Feedback.from_values(data)
        except (TypeError, ValueError) as err:
            raise ArsnovaParseError(str(err)) from err

    async def fetch_room_stats(self, room: RoomInfo) -> RoomStats:
        """Fetch room statistics from /_view/room/summary."""
        url = self._url("/_view/room/summary")
        data = await self._request_json(
            "get",
            url,
            room.short_id,
            headers=self._headers(),
            params={"ids": room.id},
            what="Room summary",
        )
        return RoomStats.from_summary(data)

    async def _request_json(
        self,
        method: str,
        url: str,
        short_id: str,
        *,
        headers: dict[str, str],
        what: str,
        **kwargs: Any,
    ) -> Any:
        request = getattr(self._session, method)
        try:
            async with request(
                url,
                headers=headers,
                timeout=self._timeout(),
                **kwargs,
            ) as resp:
                if resp.status == 404:
                    raise ArsnovaRoomNotFoundError(short_id)
                if resp.status != 200:
                    raise ArsnovaConnectionError(
                        f"{what} request failed with status {resp.status}"
                    )
                try:
                    return await resp.json(content_type=None)
                except ValueError as err:
                    raise ArsnovaParseError(str(err)) from err
        except TimeoutError as err:
            raise ArsnovaTimeout(f"{what} request timed out") from err
        except aiohttp.ClientError as err:
            raise ArsnovaConnectionError(f"{what} request failed") from err
