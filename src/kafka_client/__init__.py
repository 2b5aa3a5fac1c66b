# src/kafka_client/__init__.py
# This file makes the kafka_client folder a Python package

from .message import Message, MESSAGE_ID_HEADER
from .producer import (
    get_kafka_producer,
    close_kafka_producer,
    QueueClient,
    send_with_telemetry,
    send_batch_with_telemetry,
)
from .consumer import handle_record, run_consumer

__all__ = [
    "Message",
    "MESSAGE_ID_HEADER",
    "get_kafka_producer",
    "close_kafka_producer",
    "QueueClient",
    "send_with_telemetry",
    "send_batch_with_telemetry",
    "handle_record",
    "run_consumer",
]
