"""Tests for the file-upload and notify consumers and their retry protocol."""

from unittest.mock import MagicMock

import pytest

from trailbook.core.constants import (
    FILE_UPLOAD_DLQ,
    FILE_UPLOAD_QUEUE,
    NOTIFY_DLQ,
    NOTIFY_QUEUE,
    RETRY_COUNT_HEADER,
)
from trailbook.core.ulid_helper import generate_ulid
from trailbook.database import session_scope
from trailbook.models.message import Message
from trailbook.models.user_profile import UserProfile
from trailbook.schemas.chat_tasks import FileUploadTask, NotificationTask
from trailbook.services.chat_consumers import (
    OUTCOME_DEAD_LETTERED,
    OUTCOME_INVALID,
    OUTCOME_PROCESSED,
    OUTCOME_RETRIED,
    FileUploadConsumer,
    NotificationConsumer,
    notification_body,
)
from trailbook.services.push_notification_service import PushDeliveryError, PushNotificationService
from trailbook.services.storage_client import StorageClient

SUBSCRIPTION = {
    "endpoint": "https://push.example.com/send/abc",
    "keys": {"p256dh": "p256dh-key", "auth": "auth-secret"},
}


@pytest.fixture
def storage():
    return StorageClient(public_base_url="https://cdn.trailbook.test", verify_uploads=False)


@pytest.fixture
def file_consumer(dispatcher, storage):
    return FileUploadConsumer(dispatcher, storage=storage, session_factory=session_scope)


@pytest.fixture
def push_service():
    service = MagicMock()
    service.send.return_value = True
    return service


@pytest.fixture
def notify_consumer(dispatcher, push_service):
    return NotificationConsumer(dispatcher, push_service=push_service, session_factory=session_scope)


@pytest.fixture
def attachment_message(db, user_a, user_b):
    message = Message(
        sender_id=user_a,
        receiver_id=user_b,
        content="",
        has_file=True,
        file_key="chat/trip/photo 1.jpg",
        file_name="photo 1.jpg",
        file_type="image/jpeg",
        file_size=1024,
    )
    db.add(message)
    db.commit()
    return message


def _file_payload(message_id: str, sender_id: str, receiver_id: str) -> dict:
    return FileUploadTask(
        message_id=message_id,
        file_key="chat/trip/photo 1.jpg",
        file_name="photo 1.jpg",
        content_type="image/jpeg",
        size=1024,
        sender_id=sender_id,
        receiver_id=receiver_id,
    ).to_wire()


class TestRetryProtocol:
    def test_failing_job_retries_with_backoff_then_dead_letters(self, file_consumer, publisher, user_a, user_b):
        payload = _file_payload(generate_ulid(), user_a, user_b)

        retry_count = 0
        outcomes = []
        for _ in range(4):
            outcomes.append(file_consumer.handle(payload, retry_count))
            if publisher.calls and publisher.calls[-1]["queue"] == FILE_UPLOAD_QUEUE:
                retry_count = publisher.calls[-1]["headers"][RETRY_COUNT_HEADER]

        assert outcomes == [OUTCOME_RETRIED] * 3 + [OUTCOME_DEAD_LETTERED]

        retries = publisher.to_queue(FILE_UPLOAD_QUEUE)
        assert [call["countdown"] for call in retries] == [1.0, 2.0, 4.0]
        assert [call["headers"][RETRY_COUNT_HEADER] for call in retries] == [1, 2, 3]
        assert all(call["payload"] == payload for call in retries)

        dead = publisher.to_queue(FILE_UPLOAD_DLQ)
        assert len(dead) == 1
        assert dead[0]["payload"] == payload

    def test_custom_retry_settings(self, dispatcher, publisher, user_a, user_b):
        consumer = FileUploadConsumer(
            dispatcher,
            storage=StorageClient(public_base_url="https://cdn.trailbook.test"),
            session_factory=session_scope,
            max_retries=1,
            retry_base_seconds=0.5,
        )
        payload = _file_payload(generate_ulid(), user_a, user_b)

        assert consumer.handle(payload, 0) == OUTCOME_RETRIED
        assert consumer.handle(payload, 1) == OUTCOME_DEAD_LETTERED
        assert publisher.to_queue(FILE_UPLOAD_QUEUE)[0]["countdown"] == 0.5

    @pytest.mark.parametrize(
        "raw",
        [
            "not-a-dict",
            {},
            {"messageId": "", "fileKey": "k", "senderId": "a", "receiverId": "b"},
            {"messageId": "m", "fileKey": "k", "senderId": "a", "receiverId": "b", "extra": 1},
        ],
    )
    def test_invalid_payload_is_dead_lettered_immediately(self, file_consumer, publisher, raw):
        assert file_consumer.handle(raw) == OUTCOME_INVALID

        assert publisher.to_queue(FILE_UPLOAD_QUEUE) == []
        dead = publisher.to_queue(FILE_UPLOAD_DLQ)
        assert len(dead) == 1
        assert dead[0]["payload"] == raw

    def test_dead_letter_publish_failure_propagates(self, file_consumer, publisher):
        from trailbook.core.exceptions import DispatchException

        publisher.fail_with = ConnectionError("broker down")

        with pytest.raises(DispatchException):
            file_consumer.handle({})


class TestFileUploadConsumer:
    def test_marks_message_uploaded(self, file_consumer, publisher, db, attachment_message):
        payload = _file_payload(attachment_message.id, attachment_message.sender_id, attachment_message.receiver_id)

        assert file_consumer.handle(payload) == OUTCOME_PROCESSED

        db.expire_all()
        stored = db.get(Message, attachment_message.id)
        assert stored.is_file_uploaded is True
        assert stored.file_url == "https://cdn.trailbook.test/chat/trip/photo%201.jpg"
        assert publisher.calls == []

    def test_already_uploaded_is_a_no_op(self, file_consumer, storage, db, attachment_message, monkeypatch):
        attachment_message.is_file_uploaded = True
        attachment_message.file_url = "https://cdn.trailbook.test/original"
        db.commit()
        confirm = MagicMock()
        monkeypatch.setattr(storage, "confirm_upload", confirm)

        payload = _file_payload(attachment_message.id, attachment_message.sender_id, attachment_message.receiver_id)
        assert file_consumer.handle(payload) == OUTCOME_PROCESSED

        confirm.assert_not_called()
        db.expire_all()
        assert db.get(Message, attachment_message.id).file_url == "https://cdn.trailbook.test/original"

    def test_storage_failure_is_retried(self, dispatcher, publisher, db, attachment_message, monkeypatch):
        import requests

        storage = StorageClient(public_base_url="https://cdn.trailbook.test", verify_uploads=True)
        monkeypatch.setattr(
            "trailbook.services.storage_client.requests.head",
            MagicMock(side_effect=requests.ConnectionError("unreachable")),
        )
        consumer = FileUploadConsumer(dispatcher, storage=storage, session_factory=session_scope)
        payload = _file_payload(attachment_message.id, attachment_message.sender_id, attachment_message.receiver_id)

        assert consumer.handle(payload) == OUTCOME_RETRIED

        db.expire_all()
        assert db.get(Message, attachment_message.id).is_file_uploaded is False
        assert publisher.to_queue(FILE_UPLOAD_QUEUE)[0]["headers"][RETRY_COUNT_HEADER] == 1

    def test_missing_object_in_storage_is_retried(self, dispatcher, publisher, attachment_message, monkeypatch):
        storage = StorageClient(public_base_url="https://cdn.trailbook.test", verify_uploads=True)
        monkeypatch.setattr(
            "trailbook.services.storage_client.requests.head",
            MagicMock(return_value=MagicMock(status_code=404)),
        )
        consumer = FileUploadConsumer(dispatcher, storage=storage, session_factory=session_scope)
        payload = _file_payload(attachment_message.id, attachment_message.sender_id, attachment_message.receiver_id)

        assert consumer.handle(payload) == OUTCOME_RETRIED


class TestNotificationConsumer:
    def _payload(self, sender_id: str, receiver_id: str, **fields) -> dict:
        return NotificationTask(
            receiver_id=receiver_id, sender_id=sender_id, message_id=generate_ulid(), **fields
        ).to_wire()

    @pytest.fixture
    def subscribed(self, db, user_b):
        profile = db.query(UserProfile).filter_by(user_id=user_b).one()
        profile.push_subscription = SUBSCRIPTION
        db.commit()
        return user_b

    def test_sends_push_with_sender_name(self, notify_consumer, push_service, user_a, subscribed):
        payload = self._payload(user_a, subscribed, content="See you at the summit")

        assert notify_consumer.handle(payload) == OUTCOME_PROCESSED

        push_service.send.assert_called_once()
        args, kwargs = push_service.send.call_args
        assert args[0] == SUBSCRIPTION
        assert kwargs["title"] == "Alice Trail"
        assert kwargs["body"] == "See you at the summit"
        assert kwargs["data"]["messageId"] == payload["messageId"]

    def test_unknown_sender_gets_default_title(self, notify_consumer, push_service, user_c, subscribed):
        notify_consumer.handle(self._payload(user_c, subscribed, content="hi"))

        assert push_service.send.call_args.kwargs["title"] == "Someone"

    def test_no_subscription_is_skipped(self, notify_consumer, push_service, publisher, user_a, user_b):
        assert notify_consumer.handle(self._payload(user_a, user_b, content="hi")) == OUTCOME_PROCESSED

        push_service.send.assert_not_called()
        assert publisher.calls == []

    def test_expired_subscription_is_not_retried(self, notify_consumer, push_service, publisher, user_a, subscribed):
        push_service.send.return_value = False

        assert notify_consumer.handle(self._payload(user_a, subscribed, content="hi")) == OUTCOME_PROCESSED
        assert publisher.calls == []

    def test_unconfigured_push_is_skipped_not_retried(self, dispatcher, publisher, user_a, subscribed, monkeypatch):
        sent = []
        monkeypatch.setattr(
            "trailbook.services.push_notification_service.webpush", lambda **kwargs: sent.append(kwargs)
        )
        consumer = NotificationConsumer(
            dispatcher,
            push_service=PushNotificationService(vapid_private_key=""),
            session_factory=session_scope,
        )

        assert consumer.handle(self._payload(user_a, subscribed, content="hi")) == OUTCOME_PROCESSED
        assert sent == []
        assert publisher.calls == []

    def test_delivery_failure_is_retried(self, notify_consumer, push_service, publisher, user_a, subscribed):
        push_service.send.side_effect = PushDeliveryError("push service unavailable")
        payload = self._payload(user_a, subscribed, content="hi")

        assert notify_consumer.handle(payload, 2) == OUTCOME_RETRIED
        retry = publisher.to_queue(NOTIFY_QUEUE)[0]
        assert retry["headers"][RETRY_COUNT_HEADER] == 3
        assert retry["countdown"] == 4.0

        assert notify_consumer.handle(payload, 3) == OUTCOME_DEAD_LETTERED
        assert publisher.to_queue(NOTIFY_DLQ)[0]["payload"] == payload


class TestNotificationBody:
    @pytest.mark.parametrize(
        "file_type,file_name,expected",
        [
            ("image/png", "a.png", "📷 Sent a photo"),
            ("IMAGE/JPEG", "a.jpg", "📷 Sent a photo"),
            ("application/pdf", "route.pdf", "📄 Sent a PDF"),
            ("text/plain", "notes.txt", "📝 Sent a text file"),
            ("application/zip", "gpx.zip", "📎 Sent gpx.zip"),
            (None, None, "📎 Sent a file"),
        ],
    )
    def test_attachment_templates(self, file_type, file_name, expected):
        task = NotificationTask(
            receiver_id="r", sender_id="s", message_id="m", has_file=True, file_type=file_type, file_name=file_name
        )
        assert notification_body(task) == expected

    def test_text_message_uses_content(self):
        task = NotificationTask(receiver_id="r", sender_id="s", message_id="m", content="Trailhead at 7")
        assert notification_body(task) == "Trailhead at 7"
