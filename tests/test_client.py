"""Tests for the logged-out/logged-in client pair."""

from __future__ import annotations

import asyncio
import base64
from unittest.mock import MagicMock, patch

import pytest

from arsnova_client import (
    ArsnovaClient,
    Feedback,
    FeedbackHandler,
    FeedbackValue,
    LoggedInClient,
    RoomStats,
)
from arsnova_client.errors import (
    ArsnovaConnectionError,
    ArsnovaLoginError,
    ArsnovaNotLoggedInError,
    ArsnovaParseError,
    ArsnovaRoomNotFoundError,
    ArsnovaUrlError,
)

from .conftest import (
    API_URL,
    WS_URL,
    FakeConnection,
    create_mock_response,
    feedback_frame,
    make_token,
)

MEMBERSHIP = {"id": "room-1", "shortId": "AB12CD34", "name": "Lecture"}


def _segment(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode()


async def logged_in(mock_session: MagicMock, token: str | None = None) -> LoggedInClient:
    mock_session.post.return_value = create_mock_response(
        json_data={"token": token or make_token()}
    )
    client = await ArsnovaClient(API_URL, mock_session).guest_login()
    mock_session.post.reset_mock()
    return client


class TestArsnovaClient:
    """Tests for the logged-out client."""

    @pytest.mark.parametrize(
        "url", ["not a url", "ftp://ars.example.org", "https://", "/api/only-a-path"]
    )
    def test_invalid_url(self, mock_session: MagicMock, url: str) -> None:
        with pytest.raises(ArsnovaUrlError, match="Cannot parse given URL"):
            ArsnovaClient(url, mock_session)

    def test_trailing_slash_is_dropped(self, mock_session: MagicMock) -> None:
        assert ArsnovaClient(f"{API_URL}/", mock_session).api_url == API_URL

    def test_has_no_room_operations(self, mock_session: MagicMock) -> None:
        client = ArsnovaClient(API_URL, mock_session)
        assert not hasattr(client, "get_room_info")
        assert not hasattr(client, "on_feedback_changed")

    async def test_guest_login(self, mock_session: MagicMock) -> None:
        token = make_token()
        mock_session.post.return_value = create_mock_response(json_data={"token": token})

        client = await ArsnovaClient(API_URL, mock_session).guest_login()

        assert isinstance(client, LoggedInClient)
        assert client.token == token

    async def test_guest_login_only_once(self, mock_session: MagicMock) -> None:
        mock_session.post.return_value = create_mock_response(
            json_data={"token": make_token()}
        )
        client = ArsnovaClient(API_URL, mock_session)
        await client.guest_login()

        with pytest.raises(ArsnovaLoginError, match="already logged in"):
            await client.guest_login()

    async def test_failed_login_can_be_retried(self, mock_session: MagicMock) -> None:
        client = ArsnovaClient(API_URL, mock_session)
        mock_session.post.return_value = create_mock_response(json_data={})
        with pytest.raises(ArsnovaLoginError):
            await client.guest_login()

        mock_session.post.return_value = create_mock_response(
            json_data={"token": make_token()}
        )
        assert isinstance(await client.guest_login(), LoggedInClient)


class TestUserId:
    """Tests for LoggedInClient.get_user_id()."""

    async def test_sub_claim(self, mock_session: MagicMock) -> None:
        client = await logged_in(mock_session, make_token("user-42"))
        assert client.get_user_id() == "user-42"

    async def test_unpadded_payload(self, mock_session: MagicMock) -> None:
        header = _segment(b'{"alg":"HS256","typ":"JWT"}')
        payload = _segment(b'{"sub":"u1"}')
        client = LoggedInClient(API_URL, mock_session, f"{header}.{payload}.c2ln")
        assert client.get_user_id() == "u1"

    def test_header_segment_is_not_decoded(self, mock_session: MagicMock) -> None:
        payload = _segment(b'{"sub":"user-1"}')
        client = LoggedInClient(API_URL, mock_session, f"not-a-header.{payload}.sig")
        assert client.get_user_id() == "user-1"

    @pytest.mark.parametrize(
        "token",
        [
            "eyJhbGciOiJIUzI1NiJ9",
            "no-dots-at-all",
            "a.b",
            "a.b.c.d",
            f"{_segment(b'{}')}.%%%.sig",
            f"{_segment(b'{}')}.{_segment(b'not json')}.sig",
            f"{_segment(b'{}')}.{_segment(b'[1,2]')}.sig",
        ],
    )
    def test_malformed_token(self, mock_session: MagicMock, token: str) -> None:
        client = LoggedInClient(API_URL, mock_session, token)
        with pytest.raises(ArsnovaParseError):
            client.get_user_id()

    def test_missing_sub(self, mock_session: MagicMock) -> None:
        import jwt

        token = jwt.encode({"name": "guest"}, "test-secret", algorithm="HS256")
        client = LoggedInClient(API_URL, mock_session, token)
        with pytest.raises(ArsnovaParseError, match="missing sub"):
            client.get_user_id()


class TestLogout:
    """Tests for the logged-in to logged-out transition."""

    async def test_logout_returns_logged_out_client(self, mock_session: MagicMock) -> None:
        client = await logged_in(mock_session)

        logged_out = client.logout()

        assert isinstance(logged_out, ArsnovaClient)
        assert logged_out.api_url == API_URL
        mock_session.post.assert_not_called()
        mock_session.get.assert_not_called()

    async def test_logout_discards_token(self, mock_session: MagicMock) -> None:
        client = await logged_in(mock_session)
        client.logout()

        with pytest.raises(ArsnovaNotLoggedInError):
            _ = client.token
        with pytest.raises(ArsnovaNotLoggedInError):
            client.get_user_id()
        with pytest.raises(ArsnovaNotLoggedInError):
            await client.get_room_info("AB12CD34")
        mock_session.post.assert_not_called()

    async def test_missing_token_is_typed_error(self, mock_session: MagicMock) -> None:
        client = LoggedInClient(API_URL, mock_session, None)

        with pytest.raises(ArsnovaNotLoggedInError):
            await client.get_feedback("AB12CD34")
        with pytest.raises(ArsnovaNotLoggedInError):
            await client.on_feedback_changed(
                "AB12CD34", FeedbackHandler.from_sender(asyncio.Queue())
            )

    async def test_can_log_in_again_after_logout(self, mock_session: MagicMock) -> None:
        client = await logged_in(mock_session)
        mock_session.post.return_value = create_mock_response(
            json_data={"token": make_token("user-2")}
        )

        again = await client.logout().guest_login()

        assert again.get_user_id() == "user-2"


class TestRoomOperations:
    """Tests for REST operations of the logged-in client."""

    async def test_get_room_info(self, mock_session: MagicMock) -> None:
        client = await logged_in(mock_session)
        mock_session.post.return_value = create_mock_response(json_data=MEMBERSHIP)

        first = await client.get_room_info("AB12CD34")
        second = await client.get_room_info("AB12CD34")

        assert first == second
        assert first.id == "room-1"
        assert first.name == "Lecture"

    async def test_get_room_info_not_found(self, mock_session: MagicMock) -> None:
        client = await logged_in(mock_session)
        mock_session.post.return_value = create_mock_response(status=404)

        with pytest.raises(ArsnovaRoomNotFoundError) as exc_info:
            await client.get_room_info("ZZ99ZZ99")

        assert exc_info.value.short_id == "ZZ99ZZ99"

    async def test_get_feedback(self, mock_session: MagicMock) -> None:
        client = await logged_in(mock_session)
        mock_session.post.return_value = create_mock_response(json_data=MEMBERSHIP)
        mock_session.get.return_value = create_mock_response(json_data=[1, 0, 2, 0])

        assert await client.get_feedback("AB12CD34") == Feedback(1, 0, 2, 0)
        assert mock_session.get.call_args.args[0] == f"{API_URL}/room/room-1/survey"

    async def test_get_room_stats(self, mock_session: MagicMock) -> None:
        client = await logged_in(mock_session)
        mock_session.post.return_value = create_mock_response(json_data=MEMBERSHIP)
        mock_session.get.return_value = create_mock_response(
            json_data=[
                {"stats": {"contentCount": 1, "ackCommentCount": 0, "roomUserCount": 12}}
            ]
        )

        assert await client.get_room_stats("AB12CD34") == RoomStats(1, 0, 12)


class TestFeedbackStreaming:
    """End-to-end streaming through the logged-in client."""

    async def test_on_feedback_changed(self, mock_session: MagicMock) -> None:
        client = await logged_in(mock_session)
        mock_session.post.return_value = create_mock_response(json_data=MEMBERSHIP)
        conn = FakeConnection([feedback_frame([1, 2, 3, 4])])
        queue: asyncio.Queue = asyncio.Queue(maxsize=10)

        with patch(
            "arsnova_client.ws_client.connect_websocket", return_value=conn
        ) as mock_connect:
            await client.on_feedback_changed("AB12CD34", FeedbackHandler.from_sender(queue))

        assert mock_connect.call_args.args[0] == WS_URL
        assert conn.sent[0] == (
            f"CONNECT\ntoken:{client.token}\naccept-version:1.2,1.1,1.0\n"
            "heart-beat:20000,0\n\n\0"
        )
        assert conn.sent[1] == (
            "SUBSCRIBE\nid:sub-6\ndestination:/topic/room-1.feedback.stream\n\n\0"
        )
        assert queue.get_nowait() == Feedback(1, 2, 3, 4)
        assert queue.get_nowait() is None
        assert queue.empty()

    async def test_on_feedback_changed_room_not_found(
        self, mock_session: MagicMock
    ) -> None:
        client = await logged_in(mock_session)
        mock_session.post.return_value = create_mock_response(status=404)

        with patch("arsnova_client.ws_client.connect_websocket") as mock_connect:
            with pytest.raises(ArsnovaRoomNotFoundError):
                await client.on_feedback_changed(
                    "AB12CD34", FeedbackHandler.from_callback(MagicMock())
                )

        mock_connect.assert_not_called()

    async def test_socket_failure_aborts_setup(self, mock_session: MagicMock) -> None:
        client = await logged_in(mock_session)
        mock_session.post.return_value = create_mock_response(json_data=MEMBERSHIP)

        with patch(
            "arsnova_client.ws_client.connect_websocket",
            side_effect=ArsnovaConnectionError("WebSocket connection failed"),
        ):
            with pytest.raises(ArsnovaConnectionError):
                await client.on_feedback_changed(
                    "AB12CD34", FeedbackHandler.from_callback(MagicMock())
                )

    async def test_votes_use_token_user(self, mock_session: MagicMock) -> None:
        client = await logged_in(mock_session, make_token("user-7"))
        mock_session.post.return_value = create_mock_response(json_data=MEMBERSHIP)
        conn = FakeConnection(close_when_drained=False)
        votes: asyncio.Queue = asyncio.Queue()
        await votes.put(FeedbackValue.D)
        await votes.put(None)

        with patch("arsnova_client.ws_client.connect_websocket", return_value=conn):
            await client.on_feedback_changed(
                "AB12CD34", FeedbackHandler.from_sender_receiver(asyncio.Queue(), votes)
            )

        assert '"userId":"user-7"' in conn.sent[2]
        assert '"value":3' in conn.sent[2]

    async def test_votes_with_unparsable_token(self, mock_session: MagicMock) -> None:
        client = await logged_in(mock_session, "opaque-token")

        with pytest.raises(ArsnovaParseError):
            await client.register_feedback_receiver("AB12CD34", asyncio.Queue())

        mock_session.post.assert_not_called()

    async def test_register_feedback_receiver(self, mock_session: MagicMock) -> None:
        client = await logged_in(mock_session)
        mock_session.post.return_value = create_mock_response(json_data=MEMBERSHIP)
        conn = FakeConnection(close_when_drained=False)
        votes: asyncio.Queue = asyncio.Queue()
        for value in (FeedbackValue.A, FeedbackValue.GOOD, None):
            await votes.put(value)

        with patch("arsnova_client.ws_client.connect_websocket", return_value=conn):
            await client.register_feedback_receiver("AB12CD34", votes)

        sends = [frame for frame in conn.sent if frame.startswith("SEND\n")]
        assert len(sends) == 2
        assert '"value":0' in sends[0]
        assert '"value":1' in sends[1]
        assert conn.closed
