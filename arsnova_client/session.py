"""Streaming feedback session over the ARSnova websocket.

A FeedbackSession owns one websocket for the lifetime of a streaming call.
It authenticates the stream with a CONNECT frame, subscribes to the room's
feedback topic and then multiplexes three event sources on a single task:

- inbound frames, decoded into Feedback snapshots for the handler
- outbound votes taken from a queue and written as SEND frames
- a keep-alive timer that writes a newline frame

Read failures end the stream. Vote and keep-alive write failures are logged
and the stream continues.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Final

from .errors import ArsnovaClientError
from .http import USER_AGENT
from .models import Feedback, FeedbackValue, RoomInfo
from .protocol import (
    KEEPALIVE_FRAME,
    ConnectFrame,
    CreateFeedbackFrame,
    SubscribeFrame,
    decode_feedback_changed,
)
from .ws_client import ArsnovaWsClient, ArsnovaWsMessage, ArsnovaWsMessageType

_LOGGER = logging.getLogger(__name__)

KEEPALIVE_INTERVAL: Final = 15.0
CONNECT_TIMEOUT: Final = 15.0
FEEDBACK_CHANNEL_CAPACITY: Final = 10

FeedbackQueue = asyncio.Queue[Feedback | None]
VoteQueue = asyncio.Queue[FeedbackValue | None]

# asyncio.Queue.shutdown() exists from Python 3.13 on
_QUEUE_SHUT_DOWN: tuple[type[Exception], ...] = (
    (asyncio.QueueShutDown,) if hasattr(asyncio, "QueueShutDown") else ()
)


class FeedbackHandlerKind(Enum):
    """Shapes a feedback consumer can take."""

    CALLBACK = "callback"
    SENDER = "sender"
    SENDER_RECEIVER = "sender_receiver"


@dataclass(frozen=True, slots=True)
class FeedbackHandler:
    """Consumer of a feedback stream.

    Build one with from_callback, from_sender or from_sender_receiver.
    Queue-based handlers receive None once the stream has ended. Putting
    None into the vote queue of a sender/receiver handler ends the stream.
    """

    kind: FeedbackHandlerKind
    callback: Callable[[Feedback], None] | None = None
    sender: FeedbackQueue | None = None
    receiver: VoteQueue | None = None

    @classmethod
    def from_callback(cls, callback: Callable[[Feedback], None]) -> FeedbackHandler:
        """Invoke callback for every snapshot. It runs on the stream's task."""
        return cls(FeedbackHandlerKind.CALLBACK, callback=callback)

    @classmethod
    def from_sender(cls, sender: FeedbackQueue) -> FeedbackHandler:
        """Put every snapshot into sender."""
        return cls(FeedbackHandlerKind.SENDER, sender=sender)

    @classmethod
    def from_sender_receiver(
        cls, sender: FeedbackQueue, receiver: VoteQueue
    ) -> FeedbackHandler:
        """Put snapshots into sender and submit votes taken from receiver."""
        return cls(FeedbackHandlerKind.SENDER_RECEIVER, sender=sender, receiver=receiver)

    @property
    def votes(self) -> VoteQueue | None:
        if self.kind is FeedbackHandlerKind.SENDER_RECEIVER:
            return self.receiver
        return None

    async def deliver(self, feedback: Feedback) -> bool:
        """Hand feedback to the consumer.

        Returns False once the consumer's queue has been shut down.
        """
        if self.callback is not None:
            try:
                self.callback(feedback)
            except Exception as err:
                _LOGGER.exception("Feedback callback error: %s", err)
            return True
        if self.sender is not None:
            try:
                await self.sender.put(feedback)
            except _QUEUE_SHUT_DOWN:
                return False
        return True

    def close(self) -> None:
        """Signal the end of the stream to queue consumers without blocking.

        A full queue loses its oldest snapshot to make room for the marker.
        """
        if self.sender is None:
            return
        try:
            if self.sender.full():
                dropped = self.sender.get_nowait()
                _LOGGER.debug("Dropping undelivered snapshot %s for end marker", dropped)
            self.sender.put_nowait(None)
        except _QUEUE_SHUT_DOWN:
            pass


class FeedbackSession:
    """One websocket stream of feedback events for a resolved room.

    Usage:
        session = FeedbackSession(ws_url, token, room, user_id=user_id)
        await session.run(FeedbackHandler.from_sender(queue))
    """

    def __init__(
        self,
        ws_url: str,
        token: str,
        room: RoomInfo,
        *,
        user_id: str | None = None,
        keepalive_interval: float = KEEPALIVE_INTERVAL,
        connect_timeout: float = CONNECT_TIMEOUT,
    ) -> None:
        self.ws_url = ws_url
        self.room = room
        self.user_id = user_id

        self._token = token
        self._keepalive_interval = keepalive_interval
        self._connect_timeout = connect_timeout
        self._state = "idle"

    @property
    def state(self) -> str:
        """Current state: idle, connecting, subscribing, streaming or closed."""
        return self._state

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    async def run(self, handler: FeedbackHandler) -> None:
        """Stream feedback to handler until the socket or vote queue closes.

        Raises:
            ArsnovaConnectionError: If the socket cannot be opened or the
                CONNECT/SUBSCRIBE frames cannot be written
            ArsnovaClientError: If votes are configured without a user id
        """
        await self._stream(handler, handler.votes)
        handler.close()

    async def run_sender(self, votes: VoteQueue) -> None:
        """Submit votes from votes until it yields None or the socket closes.

        Inbound frames are read but not dispatched.
        """
        await self._stream(None, votes)

    # -------------------------------------------------------------------------
    # Internal: State Machine
    # -------------------------------------------------------------------------

    def _set_state(self, state: str) -> None:
        if self._state != state:
            _LOGGER.debug(
                "[%s] State: %s → %s", self.room.short_id, self._state, state
            )
            self._state = state

    async def _stream(
        self, handler: FeedbackHandler | None, votes: VoteQueue | None
    ) -> None:
        if votes is not None and not self.user_id:
            raise ArsnovaClientError("Submitting votes requires a user id")

        ws = await self._open()
        try:
            await self._multiplex(ws, handler, votes)
        finally:
            await ws.close()
            self._set_state("closed")
        _LOGGER.info("[%s] Feedback stream ended", self.room.short_id)

    async def _open(self) -> ArsnovaWsClient:
        """Connect the socket and subscribe to the room's feedback topic."""
        self._set_state("connecting")
        _LOGGER.info("[%s] Connecting to %s", self.room.short_id, self.ws_url)

        ws = ArsnovaWsClient()
        try:
            await ws.connect(
                self.ws_url, timeout=self._connect_timeout, user_agent=USER_AGENT
            )
            await ws.send_text(ConnectFrame(self._token).encode())

            self._set_state("subscribing")
            await ws.send_text(SubscribeFrame(self.room.id).encode())
        except ArsnovaClientError as err:
            _LOGGER.error(
                "[%s] Feedback stream setup failed while %s: %s",
                self.room.short_id,
                self._state,
                err,
            )
            await ws.close()
            self._set_state("closed")
            raise

        _LOGGER.info("[%s] Subscribed to room %s", self.room.short_id, self.room.id)
        return ws

    # -------------------------------------------------------------------------
    # Internal: Multiplexing Loop
    # -------------------------------------------------------------------------

    async def _multiplex(
        self,
        ws: ArsnovaWsClient,
        handler: FeedbackHandler | None,
        votes: VoteQueue | None,
    ) -> None:
        self._set_state("streaming")

        read_task = asyncio.create_task(ws.receive())
        vote_task = asyncio.create_task(votes.get()) if votes is not None else None
        keepalive_task = asyncio.create_task(asyncio.sleep(self._keepalive_interval))

        try:
            while True:
                waiting = {read_task, keepalive_task}
                if vote_task is not None:
                    waiting.add(vote_task)
                done, _ = await asyncio.wait(
                    waiting, return_when=asyncio.FIRST_COMPLETED
                )

                if read_task in done:
                    message = read_task.result()
                    if message.type is ArsnovaWsMessageType.CLOSED:
                        _LOGGER.info("[%s] WebSocket closed", self.room.short_id)
                        return
                    if message.type is ArsnovaWsMessageType.ERROR:
                        _LOGGER.error("[%s] WebSocket error", self.room.short_id)
                        return
                    if not await self._handle_message(message, handler):
                        _LOGGER.info("[%s] Feedback queue shut down", self.room.short_id)
                        return
                    read_task = asyncio.create_task(ws.receive())

                if vote_task is not None and vote_task in done:
                    try:
                        value = vote_task.result()
                    except _QUEUE_SHUT_DOWN:
                        value = None
                    if value is None:
                        _LOGGER.info("[%s] Vote queue closed", self.room.short_id)
                        return
                    await self._send_vote(ws, value)
                    vote_task = asyncio.create_task(votes.get())

                if keepalive_task in done:
                    await self._send_keepalive(ws)
                    keepalive_task = asyncio.create_task(
                        asyncio.sleep(self._keepalive_interval)
                    )
        finally:
            if vote_task is not None:
                self._log_unsent_vote(vote_task)
            pending = [
                task
                for task in (read_task, vote_task, keepalive_task)
                if task is not None and not task.done()
            ]
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)

    def _log_unsent_vote(self, vote_task: asyncio.Task) -> None:
        """Log a vote taken from the queue in the round the loop ended."""
        if not vote_task.done() or vote_task.cancelled():
            return
        if vote_task.exception() is not None:
            return
        value = vote_task.result()
        if value is not None:
            _LOGGER.debug(
                "[%s] Dropping unsent feedback: %s", self.room.short_id, value.name
            )

    async def _handle_message(
        self, message: ArsnovaWsMessage, handler: FeedbackHandler | None
    ) -> bool:
        """Dispatch a frame to handler. Returns False if the consumer is gone."""
        if handler is None or message.type is not ArsnovaWsMessageType.TEXT:
            return True
        if message.data is None:
            return True

        feedback = decode_feedback_changed(message.data)
        if feedback is None:
            return True

        _LOGGER.debug(
            "[%s] Feedback changed: %d votes", self.room.short_id, feedback.count_votes()
        )
        return await handler.deliver(feedback)

    async def _send_vote(self, ws: ArsnovaWsClient, value: FeedbackValue) -> None:
        frame = CreateFeedbackFrame(self.room.id, self.user_id or "", value)
        try:
            await ws.send_text(frame.encode())
            _LOGGER.debug("[%s] Feedback sent: %s", self.room.short_id, value.name)
        except ArsnovaClientError as err:
            _LOGGER.warning("[%s] Failed to send feedback: %s", self.room.short_id, err)

    async def _send_keepalive(self, ws: ArsnovaWsClient) -> None:
        try:
            await ws.send_text(KEEPALIVE_FRAME)
        except ArsnovaClientError as err:
            _LOGGER.warning("[%s] Failed to send keep-alive: %s", self.room.short_id, err)
