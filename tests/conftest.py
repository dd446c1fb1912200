"""Pytest configuration and fixtures for arsnova_client tests."""

from __future__ import annotations

import asyncio
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import jwt
import pytest
from websockets.exceptions import ConnectionClosed

API_URL = "https://ars.example.org/api"
WS_URL = "wss://ars.example.org/api/ws/websocket"


def make_token(sub: str = "user-1", **claims: Any) -> str:
    """Create a signed guest token carrying the given sub claim."""
    return jwt.encode({"sub": sub, **claims}, "test-secret", algorithm="HS256")


def feedback_frame(values: list[int], msg_type: str = "FeedbackChanged") -> str:
    """Build a MESSAGE frame as the service sends it."""
    values_json = ",".join(str(value) for value in values)
    return (
        "MESSAGE\n"
        "destination:/topic/room-1.feedback.stream\n"
        "content-type:application/json\n"
        "subscription:sub-6\n"
        "message-id:abc-1\n"
        "\n"
        f'{{"type":"{msg_type}","payload":{{"values":[{values_json}]}}}}\0'
    )


@pytest.fixture
def mock_session() -> MagicMock:
    """Create a mock aiohttp ClientSession."""
    import aiohttp

    return MagicMock(spec=aiohttp.ClientSession)


def create_mock_response(
    status: int = 200,
    json_data: Any = None,
    json_error: Exception | None = None,
) -> AsyncMock:
    """Create a configured mock response.

    Args:
        status: HTTP status code
        json_data: Data to return from json() call
        json_error: Exception to raise from json() call

    Returns:
        Configured AsyncMock response
    """
    response = AsyncMock()
    response.status = status

    if json_error is not None:
        response.json.side_effect = json_error
    else:
        response.json.return_value = json_data

    response.__aenter__.return_value = response
    response.__aexit__.return_value = None

    return response


class FakeConnection:
    """In-memory stand-in for a websockets ClientConnection.

    Frames pushed into the connection are returned by recv() in order;
    exceptions pushed are raised from recv().
    """

    def __init__(
        self,
        frames: list[Any] | None = None,
        *,
        close_when_drained: bool = True,
        fail_sends_after: int | None = None,
    ) -> None:
        self.sent: list[str] = []
        self.closed = False
        self._fail_sends_after = fail_sends_after
        self._incoming: asyncio.Queue[Any] = asyncio.Queue()
        for frame in frames or []:
            self._incoming.put_nowait(frame)
        if close_when_drained:
            self.push_close()

    def push(self, frame: Any) -> None:
        self._incoming.put_nowait(frame)

    def push_close(self) -> None:
        self._incoming.put_nowait(ConnectionClosed(None, None))

    async def recv(self) -> Any:
        item = await self._incoming.get()
        if isinstance(item, BaseException):
            raise item
        return item

    async def send(self, message: str) -> None:
        if self._fail_sends_after is not None and len(self.sent) >= self._fail_sends_after:
            raise ConnectionClosed(None, None)
        self.sent.append(message)

    async def close(self) -> None:
        self.closed = True

    @property
    def keepalives(self) -> list[str]:
        return [message for message in self.sent if message == "\n"]
