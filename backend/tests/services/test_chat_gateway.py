"""Tests for the realtime chat gateway."""

import asyncio
from contextlib import asynccontextmanager
import json
from types import SimpleNamespace
from typing import Any, Dict, List, Optional, Tuple

import pytest

from trailbook.auth import create_access_token
from trailbook.core.constants import NOTIFY_QUEUE
from trailbook.core.ulid_helper import generate_ulid
from trailbook.database import session_scope
from trailbook.models.message import Message
from trailbook.services.messaging import ChatGateway, SessionRegistry
from trailbook.services.messaging.gateway import extract_token, subprotocol_token
from trailbook.services.messaging.relay import BroadcastRelay


class FakeSession:
    """In-memory transport recording every frame."""

    def __init__(self, session_id: Optional[str] = None):
        self.id = session_id or generate_ulid()
        self.user_id: Optional[str] = None
        self.sent: List[Tuple[str, Dict[str, Any]]] = []
        self.closed_with: Optional[int] = None

    async def send(self, event: str, data: Dict[str, Any]) -> None:
        self.sent.append((event, data))

    async def close(self, code: int = 1000) -> None:
        self.closed_with = code

    def events(self) -> List[str]:
        return [event for event, _ in self.sent]

    def last(self, event: str) -> Dict[str, Any]:
        return [data for name, data in self.sent if name == event][-1]


class BrokenSession(FakeSession):
    async def send(self, event: str, data: Dict[str, Any]) -> None:
        raise RuntimeError("socket gone")


@pytest.fixture
def gateway(dispatcher):
    return ChatGateway(SessionRegistry(), dispatcher=dispatcher, session_factory=session_scope)


@pytest.fixture
def online(gateway):
    async def _connect(user_id: str) -> FakeSession:
        session = FakeSession()
        assert await gateway.connect(session, create_access_token(user_id)) is True
        return session

    return _connect


class TestTokenExtraction:
    def test_handshake_token_wins(self):
        assert extract_token("from-auth", "Bearer from-header", "from-query") == "from-auth"

    def test_header_before_query(self):
        assert extract_token(None, "Bearer from-header", "from-query") == "from-header"

    def test_query_as_last_resort(self):
        assert extract_token(None, None, "from-query") == "from-query"
        assert extract_token("  ", "", None) is None

    def test_subprotocol_pair(self):
        assert subprotocol_token(["bearer", "abc.def"]) == "abc.def"
        assert subprotocol_token(["chat"]) is None
        assert subprotocol_token([]) is None


class TestConnect:
    async def test_valid_token_registers_and_greets(self, gateway, user_a):
        session = FakeSession()

        assert await gateway.connect(session, create_access_token(user_a)) is True

        assert session.user_id == user_a
        assert gateway.is_user_online(user_a)
        assert session.sent == [("connected", {"userId": user_a, "message": "Connected to chat server"})]

    @pytest.mark.parametrize("token", [None, "", "not-a-jwt"])
    async def test_bad_token_is_rejected_and_closed(self, gateway, token):
        session = FakeSession()

        assert await gateway.connect(session, token) is False

        assert session.events() == ["error"]
        assert session.closed_with == 1008
        assert gateway.registry.session_count() == 0

    async def test_token_for_non_user_subject_is_rejected(self, gateway):
        session = FakeSession()

        await gateway.connect(session, create_access_token("someone@example.com"))

        assert session.last("error")["code"] == "INVALID_TOKEN"
        assert session.closed_with == 1008

    async def test_stale_disconnect_keeps_newer_session(self, gateway, online, user_a):
        old = await online(user_a)
        new = await online(user_a)

        gateway.disconnect(old)
        gateway.disconnect(old)

        assert gateway.session_ids(user_a) == [new.id]
        assert gateway.is_user_online(user_a)

        gateway.disconnect(new)
        assert not gateway.is_user_online(user_a)


class TestSendMessage:
    async def test_delivers_to_every_receiver_session(
        self, gateway, online, publisher, user_a, user_b, connect_users
    ):
        connect_users(user_a, user_b)
        sender = await online(user_a)
        phone = await online(user_b)
        laptop = await online(user_b)

        await gateway.handle_frame(
            sender, {"event": "send_message", "data": {"receiverId": user_b, "content": "Trailhead at 7"}}
        )

        for device in (phone, laptop):
            message = device.last("new_message")["message"]
            assert message["content"] == "Trailhead at 7"
            assert message["senderId"] == user_a
        ack = sender.last("message_sent")["message"]
        assert ack["id"] == phone.last("new_message")["message"]["id"]
        assert "new_message" not in sender.events()

        with session_scope() as db:
            assert db.get(Message, ack["id"]) is not None
        assert [call["queue"] for call in publisher.calls] == [NOTIFY_QUEUE]

    async def test_attachment_queues_file_job(self, gateway, online, publisher, user_a, user_b, connect_users):
        connect_users(user_a, user_b)
        sender = await online(user_a)

        await gateway.handle_frame(
            sender,
            {
                "event": "send_message",
                "data": {"receiverId": user_b, "fileKey": "chat/map.pdf", "fileName": "map.pdf", "contentType": "application/pdf"},
            },
        )

        assert sender.last("message_sent")["message"]["hasFile"] is True
        assert sorted(call["queue"] for call in publisher.calls) == ["file-upload", "notify"]

    async def test_offline_receiver_still_gets_ack(self, gateway, online, user_a, user_b, connect_users):
        connect_users(user_a, user_b)
        sender = await online(user_a)

        await gateway.handle_frame(sender, {"event": "send_message", "data": {"receiverId": user_b, "content": "hi"}})

        assert "message_sent" in sender.events()

    async def test_not_connected_emits_error_and_keeps_session(self, gateway, online, publisher, user_a, user_b):
        sender = await online(user_a)

        await gateway.handle_frame(sender, {"event": "send_message", "data": {"receiverId": user_b, "content": "hi"}})

        assert sender.last("error")["code"] == "NOT_CONNECTED"
        assert sender.closed_with is None
        assert gateway.is_user_online(user_a)
        assert publisher.calls == []

    async def test_invalid_payload_reports_fields(self, gateway, online, user_a):
        sender = await online(user_a)

        await gateway.handle_frame(sender, {"event": "send_message", "data": {"receiverId": "nope"}})

        error = sender.last("error")
        assert error["code"] == "VALIDATION_ERROR"
        assert error["details"]

    async def test_dispatch_failure_does_not_affect_delivery(
        self, gateway, online, publisher, user_a, user_b, connect_users
    ):
        connect_users(user_a, user_b)
        sender = await online(user_a)
        receiver = await online(user_b)
        publisher.fail_with = ConnectionError("broker down")

        await gateway.handle_frame(sender, {"event": "send_message", "data": {"receiverId": user_b, "content": "hi"}})

        assert "message_sent" in sender.events()
        assert "new_message" in receiver.events()
        assert "error" not in sender.events()

    async def test_broken_receiver_socket_does_not_fail_send(
        self, gateway, online, user_a, user_b, connect_users
    ):
        connect_users(user_a, user_b)
        sender = await online(user_a)
        broken = BrokenSession()
        broken.user_id = user_b
        gateway.registry.register(user_b, broken)

        await gateway.handle_frame(sender, {"event": "send_message", "data": {"receiverId": user_b, "content": "hi"}})

        assert "message_sent" in sender.events()


class TestOtherEvents:
    async def test_typing_is_relayed_to_receiver(self, gateway, online, user_a, user_b):
        sender = await online(user_a)
        receiver = await online(user_b)

        await gateway.handle_frame(sender, {"event": "typing", "data": {"receiverId": user_b, "isTyping": True}})

        assert receiver.last("user_typing") == {"userId": user_a, "isTyping": True}

    async def test_mark_read_acknowledges_caller(self, gateway, online, user_a, user_b):
        session = await online(user_b)

        await gateway.handle_frame(session, {"event": "mark_read", "data": {"senderId": user_a}})

        assert session.last("messages_read") == {"senderId": user_a}

    async def test_unknown_event(self, gateway, online, user_a):
        session = await online(user_a)

        await gateway.handle_frame(session, {"event": "dance", "data": {}})

        assert session.last("error")["code"] == "UNKNOWN_EVENT"

    @pytest.mark.parametrize("frame", [{"data": {}}, "plain text", {"event": ""}])
    async def test_malformed_frame(self, gateway, online, user_a, frame):
        session = await online(user_a)

        await gateway.handle_frame(session, frame)

        assert session.last("error")["code"] == "BAD_FRAME"

    async def test_unauthenticated_session_cannot_send(self, gateway, user_b):
        session = FakeSession()

        await gateway.handle_frame(session, {"event": "typing", "data": {"receiverId": user_b, "isTyping": False}})

        assert session.last("error")["code"] == "NOT_AUTHENTICATED"


class TestRelay:
    async def test_emits_are_published_to_relay(self, gateway, online, user_a, user_b):
        published = []

        async def _publish(user_id, event, data):
            published.append((user_id, event, data))

        gateway.relay_publisher = _publish
        await online(user_b)

        await gateway.emit_to_user(user_b, "user_typing", {"userId": user_a, "isTyping": True})

        assert published == [(user_b, "user_typing", {"userId": user_a, "isTyping": True})]

    async def test_relay_publish_failure_is_contained(self, gateway, online, user_b):
        async def _publish(*_):
            raise ConnectionError("redis down")

        gateway.relay_publisher = _publish
        receiver = await online(user_b)

        delivered = await gateway.emit_to_user(user_b, "user_typing", {"userId": "x", "isTyping": True})

        assert delivered == 1
        assert "user_typing" in receiver.events()

    async def test_relay_delivers_foreign_frames_only(self, gateway, online, user_b):
        relay = BroadcastRelay(gateway)
        receiver = await online(user_b)

        own = relay.encode(user_b, "user_typing", {"isTyping": True})
        foreign = json.dumps({"origin": "another-process", "userId": user_b, "event": "user_typing", "data": {"isTyping": True}})

        assert await relay.handle(own) == 0
        assert await relay.handle("{not json") == 0
        assert await relay.handle(foreign) == 1
        assert receiver.events().count("user_typing") == 1


class _FlakyBroadcast:
    """First subscription fails; the second replays ``frames`` then idles."""

    def __init__(self, frames: List[str]):
        self.frames = frames
        self.attempts = 0
        self.drained = asyncio.Event()

    @asynccontextmanager
    async def subscribe(self, channel: str):
        self.attempts += 1
        if self.attempts == 1:
            raise ConnectionError("redis connection lost")
        yield self._stream()

    async def _stream(self):
        for frame in self.frames:
            yield SimpleNamespace(message=frame)
        self.drained.set()
        await asyncio.Event().wait()


class TestRelayListener:
    async def test_resubscribes_after_subscription_failure(self, gateway, online, user_b, monkeypatch):
        receiver = await online(user_b)
        foreign = json.dumps(
            {"origin": "another-process", "userId": user_b, "event": "user_typing", "data": {"isTyping": True}}
        )
        broadcast = _FlakyBroadcast([foreign])
        monkeypatch.setattr("trailbook.services.messaging.relay.get_broadcast", lambda: broadcast)

        relay = BroadcastRelay(gateway, reconnect_delay=0)
        relay.start()
        try:
            await asyncio.wait_for(broadcast.drained.wait(), timeout=2)
            assert relay.subscribed is True
        finally:
            await relay.stop()

        assert broadcast.attempts == 2
        assert receiver.events().count("user_typing") == 1
        assert gateway.relay_publisher is None
