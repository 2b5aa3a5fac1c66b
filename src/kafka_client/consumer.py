# src/kafka_client/consumer.py
# Reading messages from Kafka and processing them inside telemetry scopes
# Each record is turned back into a Message, and the handler runs under a
# process scope that continues the trace of whoever sent the message

import json
import signal
from typing import Any, Callable, Optional

from kafka import KafkaConsumer

from logger import get_logger
from config import settings
from metrics import KAFKA_MESSAGES_CONSUMED_TOTAL
from kafka_client.message import Message
from telemetry import TelemetryCorrelator, process_message

logger = get_logger(__name__)


def _build_consumer(topic: str, group_id: str) -> KafkaConsumer:
    """
    Create a Kafka consumer with config from settings.
    """
    return KafkaConsumer(
        topic,
        bootstrap_servers=settings.kafka.bootstrap_servers.split(","),
        group_id=group_id,
        auto_offset_reset=settings.kafka.consumer_auto_offset_reset,
        enable_auto_commit=settings.kafka.consumer_enable_auto_commit,
        value_deserializer=lambda v: json.loads(v.decode("utf-8")),
    )


def handle_record(
    record,
    topic: str,
    handler: Callable[[Message], Any],
    correlator: TelemetryCorrelator,
) -> Any:
    """
    Process one consumed record under a process scope.

    Args:
        record: The kafka-python ConsumerRecord
        topic: The topic it was read from (entity path of the scope)
        handler: Called with the rebuilt Message
        correlator: Correlator that opens the process scope

    Returns:
        Whatever the handler returned

    Raises:
        Exception: Whatever the handler raised, after the scope recorded it
    """
    message = Message.from_record(record)
    KAFKA_MESSAGES_CONSUMED_TOTAL.labels(topic=topic).inc()

    logger.debug(
        f"Received message: message_id={message.message_id}, "
        f"partition={getattr(record, 'partition', 'N/A')}, "
        f"offset={getattr(record, 'offset', 'N/A')}"
    )

    return process_message(correlator, message, topic, handler)


def run_consumer(
    handler: Callable[[Message], Any],
    topic: Optional[str] = None,
    correlator: Optional[TelemetryCorrelator] = None,
    consumer: Optional[KafkaConsumer] = None,
) -> None:
    """
    Consume a topic until SIGINT/SIGTERM, processing every message with telemetry.

    A failing handler does not stop the consumer: the failure is recorded
    on the message's scope, logged, and the next message is processed.

    Args:
        handler: Called with each received Message
        topic: Topic to read; defaults to settings.kafka.topic
        correlator: Defaults to TelemetryCorrelator.from_settings()
        consumer: Pre-built KafkaConsumer; one is built from settings if omitted
    """
    topic = topic or settings.kafka.topic
    correlator = correlator or TelemetryCorrelator.from_settings()

    shutdown_requested = False

    def signal_handler(signum, frame):
        nonlocal shutdown_requested
        logger.info(f"Received signal {signum}, shutting down gracefully...")
        shutdown_requested = True

    previous_sigint = signal.signal(signal.SIGINT, signal_handler)
    previous_sigterm = signal.signal(signal.SIGTERM, signal_handler)

    try:
        if consumer is None:
            consumer = _build_consumer(topic, settings.kafka.consumer_group)
        logger.info(
            f"Starting Kafka consumer: topic={topic}, "
            f"group_id={settings.kafka.consumer_group}"
        )

        message_count = 0
        while not shutdown_requested:
            records = consumer.poll(timeout_ms=settings.kafka.consumer_poll_timeout_ms)

            for topic_partition, batch in records.items():
                for record in batch:
                    message_count += 1
                    try:
                        handle_record(record, topic, handler, correlator)
                    except Exception as e:
                        # Already recorded on the scope; keep consuming
                        logger.error(
                            f"Error processing message #{message_count} from {topic}: {e}",
                            exc_info=True
                        )
    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt, shutting down...")
    except Exception as e:
        logger.error(f"Fatal error in consumer: {e}", exc_info=True)
        raise
    finally:
        if consumer is not None:
            consumer.close()
            logger.info("✓ Kafka consumer closed")
        signal.signal(signal.SIGINT, previous_sigint)
        signal.signal(signal.SIGTERM, previous_sigterm)
        logger.info("Consumer shutdown complete")
