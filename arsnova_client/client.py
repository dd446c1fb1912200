"""Guest-authenticated ARSnova client.

ArsnovaClient is the logged-out state and offers only guest_login().
A successful login returns a LoggedInClient, which carries the bearer token
and offers every room operation. LoggedInClient.logout() goes back to a
logged-out ArsnovaClient and discards the token.
"""

from __future__ import annotations

import json
import logging

import aiohttp
from jwt.utils import base64url_decode
from yarl import URL

from .errors import (
    ArsnovaLoginError,
    ArsnovaNotLoggedInError,
    ArsnovaParseError,
    ArsnovaUrlError,
)
from .http import DEFAULT_REQUEST_TIMEOUT, ArsnovaHttpClient
from .models import Feedback, RoomInfo, RoomStats
from .session import KEEPALIVE_INTERVAL, FeedbackHandler, FeedbackSession, VoteQueue
from .ws import websocket_url

_LOGGER = logging.getLogger(__name__)


def _validate_api_url(api_url: str) -> str:
    try:
        url = URL(api_url)
    except (TypeError, ValueError) as err:
        raise ArsnovaUrlError() from err
    if url.scheme not in ("http", "https") or not url.host:
        raise ArsnovaUrlError()
    return str(url).rstrip("/")


class ArsnovaClient:
    """Logged-out ARSnova client.

    Usage:
        async with aiohttp.ClientSession() as http:
            client = await ArsnovaClient("https://ars.example.org/api", http).guest_login()
            room = await client.get_room_info("12345678")
    """

    def __init__(
        self,
        api_url: str,
        session: aiohttp.ClientSession,
        *,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
        keepalive_interval: float = KEEPALIVE_INTERVAL,
    ) -> None:
        """Initialize client.

        Args:
            api_url: Base URL of the ARSnova API
            session: aiohttp session owned by the caller
            request_timeout: Total timeout of each REST request (seconds)
            keepalive_interval: Interval of websocket keep-alive frames (seconds)

        Raises:
            ArsnovaUrlError: If api_url is not an http(s) URL
        """
        self.api_url = _validate_api_url(api_url)
        self._session = session
        self._request_timeout = request_timeout
        self._keepalive_interval = keepalive_interval
        self._logged_in = False

    async def guest_login(self) -> LoggedInClient:
        """Log in as guest and return the logged-in client.

        Raises:
            ArsnovaLoginError: If this client already logged in or no token
                was returned
            ArsnovaConnectionError: If the login request fails
        """
        if self._logged_in:
            raise ArsnovaLoginError("Cannot login: client already logged in")

        http = ArsnovaHttpClient(
            self._session, self.api_url, request_timeout=self._request_timeout
        )
        token = await http.guest_login()
        self._logged_in = True
        _LOGGER.debug("Guest login to %s succeeded", self.api_url)

        return LoggedInClient(
            self.api_url,
            self._session,
            token,
            request_timeout=self._request_timeout,
            keepalive_interval=self._keepalive_interval,
        )


class LoggedInClient:
    """ARSnova client holding a guest token."""

    def __init__(
        self,
        api_url: str,
        session: aiohttp.ClientSession,
        token: str | None,
        *,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
        keepalive_interval: float = KEEPALIVE_INTERVAL,
    ) -> None:
        self.api_url = _validate_api_url(api_url)
        self._session = session
        self._token = token
        self._request_timeout = request_timeout
        self._keepalive_interval = keepalive_interval
        self._http = ArsnovaHttpClient(
            session, self.api_url, token=token, request_timeout=request_timeout
        )

    @property
    def token(self) -> str:
        """Bearer token of this client.

        Raises:
            ArsnovaNotLoggedInError: If the token was discarded or never set
        """
        if not self._token:
            raise ArsnovaNotLoggedInError()
        return self._token

    def get_user_id(self) -> str:
        """Return the user id stored in the token's sub claim.

        Only the payload segment is decoded. Header and signature are left
        to the service.

        Raises:
            ArsnovaParseError: If the token or its claims cannot be decoded
        """
        segments = self.token.split(".")
        if len(segments) != 3:
            raise ArsnovaParseError("Unparsable token: expected three segments")
        try:
            claims = json.loads(base64url_decode(segments[1]))
        except ValueError as err:
            raise ArsnovaParseError(f"Unparsable token: {err}") from err

        sub = claims.get("sub") if isinstance(claims, dict) else None
        if not isinstance(sub, str):
            raise ArsnovaParseError("Unparsable token claim: missing sub")
        return sub

    def logout(self) -> ArsnovaClient:
        """Discard the token and return a logged-out client."""
        self._token = None
        self._http = ArsnovaHttpClient(
            self._session, self.api_url, request_timeout=self._request_timeout
        )
        return ArsnovaClient(
            self.api_url,
            self._session,
            request_timeout=self._request_timeout,
            keepalive_interval=self._keepalive_interval,
        )

    # -------------------------------------------------------------------------
    # REST
    # -------------------------------------------------------------------------

    async def get_room_info(self, short_id: str) -> RoomInfo:
        """Resolve a room code into its identity, joining it as participant.

        Raises:
            ArsnovaRoomNotFoundError: If no room has this code
            ArsnovaParseError: If the response cannot be decoded
            ArsnovaConnectionError: On transport failures or other statuses
        """
        return await self._http.request_membership(short_id)

    async def get_feedback(self, short_id: str) -> Feedback:
        """Fetch the current feedback tally of a room."""
        room = await self.get_room_info(short_id)
        return await self._http.fetch_survey(room)

    async def get_room_stats(self, short_id: str) -> RoomStats:
        """Fetch content, comment and user counts of a room."""
        room = await self.get_room_info(short_id)
        return await self._http.fetch_room_stats(room)

    # -------------------------------------------------------------------------
    # Streaming
    # -------------------------------------------------------------------------

    async def on_feedback_changed(
        self, short_id: str, handler: FeedbackHandler
    ) -> None:
        """Stream feedback changes of a room to handler.

        Returns once the stream has ended. Wrap the call in a timeout or
        cancel its task to bound its lifetime.

        Raises:
            ArsnovaClientError: If any setup step fails
        """
        session = await self._feedback_session(
            short_id, with_votes=handler.votes is not None
        )
        await session.run(handler)

    async def register_feedback_receiver(self, short_id: str, votes: VoteQueue) -> None:
        """Submit every vote put into votes to a room.

        Returns once votes yields None or the socket closes.

        Raises:
            ArsnovaClientError: If any setup step fails
        """
        session = await self._feedback_session(short_id, with_votes=True)
        await session.run_sender(votes)

    async def _feedback_session(
        self, short_id: str, *, with_votes: bool
    ) -> FeedbackSession:
        token = self.token
        user_id = self.get_user_id() if with_votes else None
        room = await self.get_room_info(short_id)
        return FeedbackSession(
            websocket_url(self.api_url),
            token,
            room,
            user_id=user_id,
            keepalive_interval=self._keepalive_interval,
        )
