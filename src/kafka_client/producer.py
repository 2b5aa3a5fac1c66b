# src/kafka_client/producer.py
# Sending messages to Kafka, with or without telemetry
#
# QueueClient is the transport: it knows one topic (its entity path) and can
# send a single message or a batch. send_with_telemetry / send_batch_with_telemetry
# run those sends inside a telemetry scope, so every message leaves with the
# RootId/ParentId of the send operation in its headers.

import json
from typing import Iterable, List, Optional

from kafka import KafkaProducer

from logger import get_logger
from config import settings
from metrics import KAFKA_MESSAGES_SENT_TOTAL
from kafka_client.message import Message
from telemetry import MissingArgumentError, TelemetryCorrelator, send_message, send_messages

logger = get_logger(__name__)

# Global Kafka producer instance (singleton pattern)
# One producer is shared by every QueueClient in the process
_kafka_producer: Optional[KafkaProducer] = None


def get_kafka_producer() -> KafkaProducer:
    """
    Get or create the shared Kafka producer.

    Producer Configuration:
    - bootstrap_servers: List of Kafka broker addresses
    - value_serializer: Message bodies are sent as JSON
    - acks: How many replicas must confirm a write
    - retries: Transport-level retries for transient errors

    Returns:
        A KafkaProducer instance ready to send messages

    Note:
        The producer is thread-safe and can be used from multiple threads.
    """
    global _kafka_producer

    if _kafka_producer is not None:
        return _kafka_producer

    bootstrap_servers = settings.kafka.bootstrap_servers.split(',')

    logger.info(
        f"Creating Kafka producer: "
        f"bootstrap_servers={bootstrap_servers}, "
        f"acks={settings.kafka.acks}, "
        f"retries={settings.kafka.retries}"
    )

    try:
        _kafka_producer = KafkaProducer(
            bootstrap_servers=bootstrap_servers,
            value_serializer=lambda v: json.dumps(v).encode('utf-8'),
            key_serializer=lambda k: k.encode('utf-8') if k is not None else None,
            acks=settings.kafka.acks,
            retries=settings.kafka.retries,
            request_timeout_ms=settings.kafka.request_timeout_ms,
        )
        logger.info("Kafka producer created successfully")
    except Exception as e:
        logger.error(f"Failed to create Kafka producer: {e}")
        raise

    return _kafka_producer


def close_kafka_producer():
    """
    Flush pending messages and close the shared producer.

    Call this when the application shuts down.
    """
    global _kafka_producer

    if _kafka_producer is not None:
        logger.info("Closing Kafka producer")
        _kafka_producer.flush(timeout=10)
        _kafka_producer.close()
        _kafka_producer = None
        logger.info("Kafka producer closed")


class QueueClient:
    """
    Sends messages to one Kafka topic.

    Args:
        entity_path: The topic name; defaults to settings.kafka.topic
        producer: KafkaProducer to use; defaults to the shared one
    """

    def __init__(self, entity_path: Optional[str] = None, producer: Optional[KafkaProducer] = None):
        self.entity_path = entity_path or settings.kafka.topic
        self._producer = producer

    @property
    def producer(self) -> KafkaProducer:
        if self._producer is None:
            self._producer = get_kafka_producer()
        return self._producer

    def _timeout_seconds(self) -> float:
        return settings.kafka.request_timeout_ms / 1000

    def _send_record(self, message: Message):
        return self.producer.send(
            self.entity_path,
            value=message.body,
            key=message.key,
            headers=message.to_headers(),
        )

    def send(self, message: Message) -> None:
        """
        Send one message and wait for the broker to confirm it.

        Raises:
            kafka.errors.KafkaError: If the broker does not confirm in time
        """
        future = self._send_record(message)
        record_metadata = future.get(timeout=self._timeout_seconds())

        KAFKA_MESSAGES_SENT_TOTAL.labels(topic=self.entity_path).inc()
        logger.info(
            f"Message sent: message_id={message.message_id}, "
            f"topic={record_metadata.topic}, "
            f"partition={record_metadata.partition}, "
            f"offset={record_metadata.offset}"
        )

    def send_batch(self, messages: List[Message]) -> None:
        """
        Send a batch of messages and wait until all of them are confirmed.

        Raises:
            kafka.errors.KafkaError: If any message is not confirmed in time
        """
        futures = [self._send_record(message) for message in messages]
        self.producer.flush(timeout=self._timeout_seconds())
        for future in futures:
            future.get(timeout=self._timeout_seconds())

        KAFKA_MESSAGES_SENT_TOTAL.labels(topic=self.entity_path).inc(len(messages))
        logger.info(f"Batch sent: topic={self.entity_path}, messages={len(messages)}")


def send_with_telemetry(
    queue_client: QueueClient,
    message: Optional[Message],
    correlator: Optional[TelemetryCorrelator],
) -> None:
    """
    Send one message through queue_client inside a send scope.

    The operation is named after the client's topic.

    Raises:
        MissingArgumentError: If correlator is None
        Exception: Whatever queue_client.send raised, unchanged
    """
    if message is None:
        return

    if correlator is None:
        raise MissingArgumentError("correlator is required")

    send_message(correlator, message, queue_client.entity_path, queue_client.send)


def send_batch_with_telemetry(
    queue_client: QueueClient,
    messages: Optional[Iterable[Message]],
    correlator: Optional[TelemetryCorrelator],
) -> None:
    """
    Send a batch through queue_client inside one shared send scope.

    Raises:
        MissingArgumentError: If correlator is None
        Exception: Whatever queue_client.send_batch raised, unchanged
    """
    if messages is None:
        return
    messages = list(messages)
    if not messages:
        return

    if correlator is None:
        raise MissingArgumentError("correlator is required")

    send_messages(correlator, messages, queue_client.entity_path, queue_client.send_batch)
