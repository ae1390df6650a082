"""
Tests for the SQS job queue
"""
import json
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from voca_ingestion.models.schemas import DocumentJob, JobMessage
from voca_ingestion.queue_handlers import SQSJobQueue
from voca_ingestion.queue_handlers.sqs_job_queue import MAX_VISIBILITY_TIMEOUT


QUEUE_URLS = {
    "resume": "https://sqs.test/resume",
    "document": "https://sqs.test/document",
    "audio": "https://sqs.test/audio",
}


@pytest.fixture
def sqs_client():
    return MagicMock()


@pytest.fixture
def queue(sqs_client):
    return SQSJobQueue(queue_urls=QUEUE_URLS, wait_seconds=1, client=sqs_client)


def _message(body, receive_count="1", message_id="m-1"):
    return {
        "MessageId": message_id,
        "ReceiptHandle": f"rh-{message_id}",
        "Body": body,
        "Attributes": {"ApproximateReceiveCount": receive_count},
    }


def test_send_uses_wire_aliases(queue, sqs_client):
    sqs_client.send_message.return_value = {"MessageId": "abc"}
    job = DocumentJob(entity_id="e1", source_ref="document/u1/x.pdf", declared_media_type="application/pdf")

    assert queue.send("document", job) == "abc"

    kwargs = sqs_client.send_message.call_args[1]
    assert kwargs["QueueUrl"] == QUEUE_URLS["document"]
    assert json.loads(kwargs["MessageBody"]) == {
        "entityId": "e1",
        "sourceRef": "document/u1/x.pdf",
        "declaredMediaType": "application/pdf",
    }


def test_send_to_unknown_queue(queue):
    with pytest.raises(ValueError):
        queue.send("video", {"entityId": "e1"})


def test_receive_reads_attempt_from_receive_count(queue, sqs_client):
    sqs_client.receive_message.return_value = {
        "Messages": [_message(json.dumps({"entityId": "e1", "sourceRef": "r"}), receive_count="3")]
    }

    messages = queue.receive("resume", max_messages=1, visibility_timeout=70)

    assert len(messages) == 1
    message = messages[0]
    assert message.queue_name == "resume"
    assert message.attempt == 3
    assert message.body == {"entityId": "e1", "sourceRef": "r"}
    kwargs = sqs_client.receive_message.call_args[1]
    assert kwargs["QueueUrl"] == QUEUE_URLS["resume"]
    assert kwargs["VisibilityTimeout"] == 70
    assert kwargs["WaitTimeSeconds"] == 1
    assert "ApproximateReceiveCount" in kwargs["AttributeNames"]


@pytest.mark.parametrize("body", ["{not json", "[1, 2]", "42"])
def test_receive_keeps_unparseable_bodies_as_empty(queue, sqs_client, body):
    sqs_client.receive_message.return_value = {"Messages": [_message(body)]}

    messages = queue.receive("document")

    assert messages[0].body == {}


def test_receive_caps_visibility_timeout(queue, sqs_client):
    sqs_client.receive_message.return_value = {}

    assert queue.receive("audio", visibility_timeout=10 ** 6) == []
    assert sqs_client.receive_message.call_args[1]["VisibilityTimeout"] == MAX_VISIBILITY_TIMEOUT


def test_receive_poll_error_returns_nothing(queue, sqs_client):
    sqs_client.receive_message.side_effect = ClientError(
        {"Error": {"Code": "AWS.SimpleQueueService.NonExistentQueue", "Message": "gone"}},
        "ReceiveMessage"
    )

    assert queue.receive("resume") == []


def test_ack_deletes_message(queue, sqs_client):
    message = JobMessage(queue_name="audio", message_id="m", receipt_handle="rh", body={})

    assert queue.ack(message)

    sqs_client.delete_message.assert_called_once_with(QueueUrl=QUEUE_URLS["audio"], ReceiptHandle="rh")


def test_retry_later_changes_visibility(queue, sqs_client):
    message = JobMessage(queue_name="resume", message_id="m", receipt_handle="rh", body={}, attempt=2)

    assert queue.retry_later(message, 10)

    sqs_client.change_message_visibility.assert_called_once_with(
        QueueUrl=QUEUE_URLS["resume"], ReceiptHandle="rh", VisibilityTimeout=10
    )


def test_retry_later_failure_is_reported(queue, sqs_client):
    sqs_client.change_message_visibility.side_effect = ClientError(
        {"Error": {"Code": "ReceiptHandleIsInvalid", "Message": "expired"}},
        "ChangeMessageVisibility"
    )
    message = JobMessage(queue_name="resume", message_id="m", receipt_handle="rh", body={})

    assert queue.retry_later(message, 5) is False


def test_queues_without_url_are_ignored(sqs_client):
    queue = SQSJobQueue(queue_urls={"resume": "https://sqs.test/resume", "audio": ""}, client=sqs_client, wait_seconds=1)

    assert sorted(queue.queue_urls) == ["resume"]
