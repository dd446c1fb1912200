"""WebSocket helpers for the ARSnova feedback stream."""

from __future__ import annotations

import asyncio
from typing import Any, Final

import websockets
from websockets.asyncio.client import ClientConnection
from websockets.exceptions import (
    InvalidHandshake,
    InvalidURI,
    WebSocketException,
)
from yarl import URL

from .errors import (
    ArsnovaConnectionError,
    ArsnovaHandshakeError,
    ArsnovaTimeout,
    ArsnovaUrlError,
)

WS_PATH: Final = "/ws/websocket"

_WS_SCHEMES: Final = {"http": "ws", "https": "wss"}


def websocket_url(api_url: str) -> str:
    """Derive the websocket endpoint from a REST API URL."""
    url = URL(api_url)
    scheme = _WS_SCHEMES.get(url.scheme)
    if scheme is None or not url.host:
        raise ArsnovaUrlError()
    return str(url.with_scheme(scheme)).rstrip("/") + WS_PATH


async def connect_websocket(
    url: str,
    *,
    ping_interval: int | None = 20,
    timeout: float = 15.0,
    user_agent: str | None = None,
) -> ClientConnection:
    """Connect to a WebSocket endpoint.

    Args:
        url: Full ws:// or wss:// URL
        ping_interval: Interval for protocol-level ping frames
        timeout: Connection timeout
        user_agent: Value of the User-Agent handshake header
    """
    extra: dict[str, Any] = {}
    if user_agent is not None:
        extra["user_agent_header"] = user_agent
    try:
        return await asyncio.wait_for(
            websockets.connect(
                url,
                ping_interval=ping_interval,
                close_timeout=5,
                max_size=None,
                **extra,
            ),
            timeout=timeout,
        )
    except TimeoutError as err:
        raise ArsnovaTimeout("WebSocket connection timed out") from err
    except (InvalidHandshake, InvalidURI) as err:
        raise ArsnovaHandshakeError("WebSocket handshake failed") from err
    except (OSError, WebSocketException) as err:
        raise ArsnovaConnectionError("WebSocket connection failed") from err
