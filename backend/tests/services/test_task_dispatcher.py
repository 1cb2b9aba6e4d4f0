"""Tests for publishing chat jobs."""

from datetime import datetime, timezone

import pytest

from trailbook.core.constants import (
    FILE_UPLOAD_QUEUE,
    FILE_UPLOAD_TASK,
    NOTIFY_DLQ,
    NOTIFY_QUEUE,
    NOTIFY_TASK,
    RETRY_COUNT_HEADER,
)
from trailbook.core.exceptions import DispatchException
from trailbook.core.ulid_helper import generate_ulid
from trailbook.schemas.message import MessageView
from trailbook.services.task_dispatcher import TaskDispatcher, dead_letter_queue


def _message(**fields) -> MessageView:
    values = dict(
        id=generate_ulid(),
        sender_id=generate_ulid(),
        receiver_id=generate_ulid(),
        content="On my way",
        has_file=False,
        is_file_uploaded=False,
        is_read=False,
        created_at=datetime(2026, 3, 1, tzinfo=timezone.utc),
    )
    values.update(fields)
    return MessageView(**values)


class TestDispatchForMessage:
    def test_text_message_queues_notification_only(self, dispatcher, publisher):
        message = _message()

        outcome = dispatcher.dispatch_for_message(message)

        assert outcome == {NOTIFY_QUEUE: True}
        assert len(publisher.calls) == 1
        call = publisher.calls[0]
        assert call["task"] == NOTIFY_TASK
        assert call["queue"] == NOTIFY_QUEUE
        assert call["headers"] == {RETRY_COUNT_HEADER: 0}
        assert call["countdown"] is None
        assert call["payload"] == {
            "receiverId": message.receiver_id,
            "senderId": message.sender_id,
            "messageId": message.id,
            "content": "On my way",
            "hasFile": False,
            "fileName": None,
            "fileType": None,
        }

    def test_attachment_queues_file_upload_and_notification(self, dispatcher, publisher):
        message = _message(
            content="", has_file=True, file_key="chat/x.pdf", file_name="x.pdf", file_type="application/pdf", file_size=10
        )

        outcome = dispatcher.dispatch_for_message(message)

        assert outcome == {FILE_UPLOAD_QUEUE: True, NOTIFY_QUEUE: True}
        upload = publisher.to_queue(FILE_UPLOAD_QUEUE)[0]
        assert upload["task"] == FILE_UPLOAD_TASK
        assert upload["payload"]["fileKey"] == "chat/x.pdf"
        assert upload["payload"]["contentType"] == "application/pdf"
        assert upload["payload"]["messageId"] == message.id

    def test_publish_failure_is_contained(self, dispatcher, publisher):
        publisher.fail_with = ConnectionError("broker down")

        outcome = dispatcher.dispatch_for_message(_message(has_file=True, file_key="k"))

        assert outcome == {FILE_UPLOAD_QUEUE: False, NOTIFY_QUEUE: False}


class TestPublishing:
    def test_direct_publish_failure_raises(self, dispatcher, publisher):
        publisher.fail_with = ConnectionError("broker down")

        with pytest.raises(DispatchException):
            dispatcher.republish(NOTIFY_QUEUE, {"messageId": "m"}, 1, 1.0)

    def test_dead_letter_targets_paired_queue(self, dispatcher, publisher):
        dispatcher.dead_letter(NOTIFY_QUEUE, {"raw": True})

        call = publisher.calls[0]
        assert call["queue"] == NOTIFY_DLQ
        assert call["task"] == NOTIFY_TASK
        assert call["payload"] == {"raw": True}

    def test_unknown_queue_is_rejected(self, dispatcher):
        with pytest.raises(ValueError):
            dispatcher.republish("unknown", {}, 1, 1.0)

    def test_dead_letter_queue_name(self):
        assert dead_letter_queue("file-upload") == "file-upload.dlq"

    def test_default_publisher_goes_through_celery(self, monkeypatch):
        sent = []

        def _fake_enqueue(task_name, args=None, kwargs=None, **options):
            sent.append((task_name, args, options))

        monkeypatch.setattr("trailbook.tasks.enqueue.enqueue_task", _fake_enqueue)

        TaskDispatcher().republish(NOTIFY_QUEUE, {"messageId": "m"}, 2, 2.0)

        assert sent == [
            (NOTIFY_TASK, ({"messageId": "m"},), {"queue": NOTIFY_QUEUE, "headers": {RETRY_COUNT_HEADER: 2}, "countdown": 2.0})
        ]
