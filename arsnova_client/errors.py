"""Client error types for ARSnova service interactions."""

from __future__ import annotations


class ArsnovaClientError(Exception):
    """Base error for ARSnova client failures."""


class ArsnovaConnectionError(ArsnovaClientError):
    """Network connection to the service failed."""

    def __init__(self, message: str = "Cannot connect") -> None:
        super().__init__(message)


class ArsnovaTimeout(ArsnovaConnectionError):
    """Timeout while communicating with the service."""


class ArsnovaHandshakeError(ArsnovaConnectionError):
    """WebSocket handshake failed."""


class ArsnovaLoginError(ArsnovaClientError):
    """Guest login failed or the login response was unusable."""

    def __init__(self, message: str = "Cannot login") -> None:
        super().__init__(message)


class ArsnovaNotLoggedInError(ArsnovaLoginError):
    """Operation requires a token but the client holds none."""

    def __init__(self, message: str = "Client is not logged in") -> None:
        super().__init__(message)


class ArsnovaRoomNotFoundError(ArsnovaClientError):
    """The service reports that the requested room does not exist."""

    def __init__(self, short_id: str) -> None:
        super().__init__(f"Requested room '{short_id}' not found")
        self.short_id = short_id


class ArsnovaParseError(ArsnovaClientError):
    """A response or token could not be decoded into its expected shape."""

    def __init__(self, message: str) -> None:
        super().__init__(f"Cannot parse response: {message}")
        self.detail = message


class ArsnovaUrlError(ArsnovaClientError):
    """The supplied API URL cannot be parsed."""

    def __init__(self, message: str = "Cannot parse given URL") -> None:
        super().__init__(message)
