"""WebSocket client wrapper for the ARSnova feedback stream."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any

from websockets.asyncio.client import ClientConnection
from websockets.exceptions import ConnectionClosed, WebSocketException

from .errors import ArsnovaConnectionError
from .ws import connect_websocket

_LOGGER = logging.getLogger(__name__)


class ArsnovaWsMessageType(Enum):
    """Normalized WebSocket message types."""

    TEXT = "text"
    BINARY = "binary"
    CLOSED = "closed"
    ERROR = "error"


@dataclass(frozen=True)
class ArsnovaWsMessage:
    """Normalized WebSocket message payload."""

    type: ArsnovaWsMessageType
    data: str | bytes | None = None


class ArsnovaWsClient:
    """Wrapper around the websockets library for the feedback stream."""

    def __init__(self) -> None:
        self._ws: ClientConnection | None = None

    @property
    def is_connected(self) -> bool:
        return self._ws is not None

    async def connect(
        self,
        url: str,
        *,
        ping_interval: int | None = 20,
        timeout: float = 15.0,
        user_agent: str | None = None,
    ) -> None:
        """Connect to the feedback websocket."""
        self._ws = await connect_websocket(
            url,
            ping_interval=ping_interval,
            timeout=timeout,
            user_agent=user_agent,
        )

    async def close(self) -> None:
        """Close the websocket connection."""
        if self._ws is None:
            return
        ws, self._ws = self._ws, None
        try:
            await asyncio.wait_for(ws.close(), timeout=2.0)
        except TimeoutError:
            _LOGGER.warning("WebSocket close timed out")

    async def send_text(self, frame: str) -> None:
        """Send one text frame.

        Raises:
            ArsnovaConnectionError: If not connected or the write fails
        """
        if self._ws is None:
            raise ArsnovaConnectionError("WebSocket is not connected")
        try:
            await self._ws.send(frame)
        except (OSError, WebSocketException) as err:
            raise ArsnovaConnectionError("WebSocket write failed") from err

    async def receive(self) -> ArsnovaWsMessage:
        """Wait for the next frame.

        Socket failures are reported as CLOSED or ERROR messages instead of
        being raised, so a read never tears down the caller by itself.
        """
        if self._ws is None:
            raise ArsnovaConnectionError("WebSocket is not connected")
        try:
            msg = await self._ws.recv()
        except ConnectionClosed:
            return ArsnovaWsMessage(type=ArsnovaWsMessageType.CLOSED)
        except (OSError, WebSocketException) as err:
            _LOGGER.debug("WebSocket read failed: %s", err)
            return ArsnovaWsMessage(type=ArsnovaWsMessageType.ERROR)
        return self._normalize_message(msg)

    @staticmethod
    def _normalize_message(msg: Any) -> ArsnovaWsMessage:
        """Normalize library frames into ArsnovaWsMessage."""
        if isinstance(msg, (bytes, bytearray, memoryview)):
            return ArsnovaWsMessage(ArsnovaWsMessageType.BINARY, bytes(msg))
        if isinstance(msg, str):
            return ArsnovaWsMessage(ArsnovaWsMessageType.TEXT, msg)
        return ArsnovaWsMessage(ArsnovaWsMessageType.TEXT, str(msg))
