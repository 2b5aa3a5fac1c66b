"""Tests for the Kafka transport with telemetry."""

import signal
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from kafka.errors import KafkaTimeoutError

from kafka_client import (
    MESSAGE_ID_HEADER,
    Message,
    QueueClient,
    handle_record,
    run_consumer,
    send_batch_with_telemetry,
    send_with_telemetry,
)
from telemetry import MissingArgumentError, get_current_operation
from tracking import ROOT_ID_KEY, PARENT_ID_KEY


def make_record(message, topic="orders", offset=0):
    """Build what KafkaConsumer would hand back for a sent message."""
    return SimpleNamespace(
        topic=topic,
        partition=0,
        offset=offset,
        key=message.key.encode("utf-8") if message.key else None,
        value=message.body,
        headers=message.to_headers(),
    )


@pytest.fixture
def producer():
    producer = MagicMock()
    producer.send.return_value.get.return_value = SimpleNamespace(
        topic="orders", partition=0, offset=7
    )
    return producer


@pytest.fixture
def queue_client(producer):
    return QueueClient("orders", producer=producer)


class TestMessage:

    def test_headers_carry_id_and_properties(self):
        message = Message(body={"a": 1}, user_properties={"RootId": "r", "Count": 3})

        headers = dict(message.to_headers())

        assert headers[MESSAGE_ID_HEADER] == message.message_id.encode("utf-8")
        assert headers["RootId"] == b"r"
        assert headers["Count"] == b"3"

    def test_from_record_restores_message(self):
        sent = Message(body={"a": 1}, key="tenant-1", user_properties={"RootId": "r", "ParentId": "p"})

        received = Message.from_record(make_record(sent))

        assert received.message_id == sent.message_id
        assert received.body == {"a": 1}
        assert received.key == "tenant-1"
        assert received.user_properties == {"RootId": "r", "ParentId": "p"}

    def test_from_record_without_headers(self):
        record = SimpleNamespace(key=None, value="x", headers=None)

        received = Message.from_record(record)

        assert received.user_properties == {}
        assert received.message_id

    def test_from_record_keeps_other_headers_as_bytes(self):
        record = SimpleNamespace(
            key=None, value="x", headers=[("x-binary", b"\x80\x81"), (ROOT_ID_KEY, b"r")]
        )

        received = Message.from_record(record)

        assert received.user_properties == {"x-binary": b"\x80\x81", ROOT_ID_KEY: "r"}

    def test_from_record_replaces_undecodable_message_id(self):
        record = SimpleNamespace(key=None, value="x", headers=[(MESSAGE_ID_HEADER, b"\xff\xfe")])

        received = Message.from_record(record)

        assert isinstance(received.message_id, str)
        assert received.message_id


class TestQueueClient:

    def test_send(self, queue_client, producer):
        message = Message(body={"a": 1}, key="k")

        queue_client.send(message)

        producer.send.assert_called_once_with(
            "orders", value={"a": 1}, key="k", headers=message.to_headers()
        )

    def test_send_batch_waits_for_every_message(self, queue_client, producer, messages):
        queue_client.send_batch(messages)

        assert producer.send.call_count == len(messages)
        producer.flush.assert_called_once()
        assert producer.send.return_value.get.call_count == len(messages)


class TestSendWithTelemetry:

    def test_headers_carry_correlation_ids(self, queue_client, producer, correlator, message):
        send_with_telemetry(queue_client, message, correlator)

        headers = dict(producer.send.call_args.kwargs["headers"])
        assert headers[ROOT_ID_KEY].decode("utf-8") == message.user_properties[ROOT_ID_KEY]
        assert headers[PARENT_ID_KEY].decode("utf-8") == message.user_properties[PARENT_ID_KEY]

    def test_operation_named_after_topic(self, queue_client, correlator, telemetry_client, message):
        send_with_telemetry(queue_client, message, correlator)

        holder = telemetry_client.stop_operation.call_args[0][0]
        assert holder.telemetry.name == "Enqueue orders"
        assert holder.telemetry.result_code == "0"

    def test_transport_error_propagates(self, queue_client, producer, correlator, telemetry_client, message):
        error = KafkaTimeoutError("no ack")
        producer.send.return_value.get.side_effect = error

        with pytest.raises(KafkaTimeoutError) as excinfo:
            send_with_telemetry(queue_client, message, correlator)

        assert excinfo.value is error
        holder = telemetry_client.stop_operation.call_args[0][0]
        assert holder.telemetry.result_code == "1"
        telemetry_client.track_exception.assert_called_once_with(error)

    def test_none_message(self, queue_client, producer, correlator):
        send_with_telemetry(queue_client, None, correlator)

        producer.send.assert_not_called()

    def test_missing_correlator(self, queue_client, message):
        with pytest.raises(MissingArgumentError):
            send_with_telemetry(queue_client, message, None)

    def test_batch(self, queue_client, producer, correlator, telemetry_client, messages):
        send_batch_with_telemetry(queue_client, messages, correlator)

        assert producer.send.call_count == len(messages)
        assert telemetry_client.start_operation.call_count == 1
        parents = {dict(c.kwargs["headers"])[PARENT_ID_KEY] for c in producer.send.call_args_list}
        assert len(parents) == 1

    def test_empty_batch(self, queue_client, producer, correlator):
        send_batch_with_telemetry(queue_client, [], correlator)

        producer.send.assert_not_called()


class TestConsumer:

    def test_handle_record_continues_producer_trace(self, correlator):
        sent = Message(body={"order_id": 1})
        with correlator.begin_send(sent, "orders"):
            pass

        seen = []
        handle_record(make_record(sent), "orders", lambda m: seen.append((m, get_current_operation())), correlator)

        received, operation = seen[0]
        assert received.message_id == sent.message_id
        assert operation.name == "Dequeue orders"
        assert operation.context_operation_id == sent.user_properties[ROOT_ID_KEY]
        assert operation.context_parent_id == sent.user_properties[PARENT_ID_KEY]

    def test_handle_record_with_binary_headers(self, correlator):
        record = SimpleNamespace(
            topic="orders",
            partition=0,
            offset=0,
            key=None,
            value={"order_id": 2},
            headers=[("x-binary", b"\x80\x81"), (ROOT_ID_KEY, b"\xff\xfe")],
        )
        seen = []

        handle_record(record, "orders", lambda m: seen.append((m, get_current_operation())), correlator)

        received, operation = seen[0]
        assert received.user_properties["x-binary"] == b"\x80\x81"
        assert operation.context_parent_id is None
        assert operation.context_operation_id

    def test_run_consumer_keeps_going_after_failure(self, correlator, telemetry_client):
        good = Message(body="good")
        bad = Message(body="bad")
        consumer = MagicMock()
        consumer.poll.side_effect = [
            {("orders", 0): [make_record(bad, offset=0), make_record(good, offset=1)]},
            KeyboardInterrupt(),
        ]
        handled = []

        def handler(message):
            if message.body == "bad":
                raise ValueError("cannot handle")
            handled.append(message.message_id)

        previous = signal.getsignal(signal.SIGINT)
        run_consumer(handler, topic="orders", correlator=correlator, consumer=consumer)

        assert handled == [good.message_id]
        assert telemetry_client.stop_operation.call_count == 2
        telemetry_client.track_exception.assert_called_once()
        consumer.close.assert_called_once()
        assert signal.getsignal(signal.SIGINT) is previous
