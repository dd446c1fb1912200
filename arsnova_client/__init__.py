"""ARSnova live feedback client."""

__version__ = "0.1.0"

from .client import ArsnovaClient, LoggedInClient
from .errors import (
    ArsnovaClientError,
    ArsnovaConnectionError,
    ArsnovaHandshakeError,
    ArsnovaLoginError,
    ArsnovaNotLoggedInError,
    ArsnovaParseError,
    ArsnovaRoomNotFoundError,
    ArsnovaTimeout,
    ArsnovaUrlError,
)
from .http import ArsnovaHttpClient
from .models import Feedback, FeedbackValue, RoomInfo, RoomStats
from .protocol import (
    ConnectFrame,
    CreateFeedbackFrame,
    SubscribeFrame,
    decode_feedback_changed,
)
from .session import (
    FEEDBACK_CHANNEL_CAPACITY,
    FeedbackHandler,
    FeedbackHandlerKind,
    FeedbackSession,
)
from .ws import connect_websocket, websocket_url
from .ws_client import ArsnovaWsClient, ArsnovaWsMessage, ArsnovaWsMessageType

__all__ = [
    "FEEDBACK_CHANNEL_CAPACITY",
    "ArsnovaClient",
    "ArsnovaClientError",
    "ArsnovaConnectionError",
    "ArsnovaHandshakeError",
    "ArsnovaHttpClient",
    "ArsnovaLoginError",
    "ArsnovaNotLoggedInError",
    "ArsnovaParseError",
    "ArsnovaRoomNotFoundError",
    "ArsnovaTimeout",
    "ArsnovaUrlError",
    "ArsnovaWsClient",
    "ArsnovaWsMessage",
    "ArsnovaWsMessageType",
    "ConnectFrame",
    "CreateFeedbackFrame",
    "Feedback",
    "FeedbackHandler",
    "FeedbackHandlerKind",
    "FeedbackSession",
    "FeedbackValue",
    "LoggedInClient",
    "RoomInfo",
    "RoomStats",
    "SubscribeFrame",
    "__version__",
    "connect_websocket",
    "decode_feedback_changed",
    "websocket_url",
]
