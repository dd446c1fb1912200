"""Frame helpers for the ARSnova websocket feedback stream.

The service speaks a small subset of STOMP over text websocket frames:
CONNECT and SUBSCRIBE open the stream, SEND submits a vote and MESSAGE
frames carry room events. Every outgoing frame is terminated by a null byte.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Final

from .models import Feedback, FeedbackValue

_LOGGER = logging.getLogger(__name__)

FRAME_TERMINATOR: Final = "\0"
KEEPALIVE_FRAME: Final = "\n"
MESSAGE_MARKER: Final = "MESSAGE"

ACCEPT_VERSION: Final = "1.2,1.1,1.0"
HEART_BEAT: Final = "20000,0"
SUBSCRIPTION_ID: Final = "sub-6"
FEEDBACK_COMMAND_DESTINATION: Final = "/queue/feedback.command"

FEEDBACK_CHANGED: Final = "FeedbackChanged"
CREATE_FEEDBACK: Final = "CreateFeedback"


def _encode_frame(command: str, headers: dict[str, str], body: str = "") -> str:
    lines = [command, *(f"{name}:{value}" for name, value in headers.items())]
    return "\n".join(lines) + "\n\n" + body + FRAME_TERMINATOR


def feedback_topic(room_id: str) -> str:
    """Return the topic carrying feedback events of a room."""
    return f"/topic/{room_id}.feedback.stream"


@dataclass(frozen=True, slots=True)
class ConnectFrame:
    """First frame on every socket, authenticating the stream."""

    token: str

    def encode(self) -> str:
        return _encode_frame(
            "CONNECT",
            {
                "token": self.token,
                "accept-version": ACCEPT_VERSION,
                "heart-beat": HEART_BEAT,
            },
        )


@dataclass(frozen=True, slots=True)
class SubscribeFrame:
    """Subscription to the feedback topic of one room."""

    room_id: str

    def encode(self) -> str:
        return _encode_frame(
            "SUBSCRIBE",
            {"id": SUBSCRIPTION_ID, "destination": feedback_topic(self.room_id)},
        )


@dataclass(frozen=True, slots=True)
class CreateFeedbackFrame:
    """SEND frame submitting the local user's vote."""

    room_id: str
    user_id: str
    value: FeedbackValue

    def body(self) -> str:
        return json.dumps(
            {
                "type": CREATE_FEEDBACK,
                "payload": {
                    "roomId": self.room_id,
                    "userId": self.user_id,
                    "value": self.value.value,
                },
            },
            separators=(",", ":"),
        )

    def encode(self) -> str:
        body = self.body()
        return _encode_frame(
            "SEND",
            {
                "destination": FEEDBACK_COMMAND_DESTINATION,
                "content-type": "application/json",
                "content-length": str(len(body)),
            },
            body,
        )


def _parse_values(payload: Any) -> Feedback | None:
    if not isinstance(payload, dict):
        return None
    values = payload.get("values")
    if not isinstance(values, list) or len(values) != 4:
        return None
    try:
        return Feedback.from_values(values)
    except ValueError:
        return None


def decode_feedback_changed(raw: str | bytes) -> Feedback | None:
    """Decode a MESSAGE frame carrying a FeedbackChanged event.

    Returns None for anything else: binary frames, other frame kinds,
    heartbeat bytes, other event types and undecodable bodies.
    """
    if not isinstance(raw, str) or not raw.startswith(MESSAGE_MARKER):
        return None

    body = raw.split("\n\n")[-1].replace(FRAME_TERMINATOR, "").strip()
    try:
        data = json.loads(body)
    except ValueError:
        _LOGGER.debug("Ignoring MESSAGE frame with undecodable body")
        return None

    if not isinstance(data, dict):
        _LOGGER.debug("Ignoring MESSAGE frame without JSON object body")
        return None
    if data.get("type") != FEEDBACK_CHANGED:
        return None

    feedback = _parse_values(data.get("payload"))
    if feedback is None:
        _LOGGER.debug("Ignoring FeedbackChanged message with invalid values")
    return feedback
