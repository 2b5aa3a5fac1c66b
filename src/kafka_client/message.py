# src/kafka_client/message.py
# The message type sent and received through Kafka
#
# A Message has:
# - message_id: unique id, also recorded on every telemetry operation
# - body: the payload (anything JSON-serialisable)
# - user_properties: string metadata; the telemetry layer writes RootId/ParentId here
# - key: optional partition key (same key -> same partition -> ordered)
#
# On the wire the body is the Kafka record value and user_properties become
# record headers, so the correlation ids survive the trip through the broker.
# Only the id headers are decoded on the way back in. Any other header is
# kept as the raw bytes it arrived as.

import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from logger import get_logger
from tracking.correlation import PARENT_ID_KEY, ROOT_ID_KEY

logger = get_logger(__name__)

MESSAGE_ID_HEADER = "MessageId"
TEXT_HEADERS = (MESSAGE_ID_HEADER, ROOT_ID_KEY, PARENT_ID_KEY)


def generate_message_id() -> str:
    return uuid.uuid4().hex


def _decode_header(name: str, value: Any) -> Any:
    # Undecodable ids stay bytes, extract() drops them when reading the context
    if not isinstance(value, bytes):
        return value
    try:
        return value.decode("utf-8")
    except UnicodeDecodeError:
        logger.warning(f"Header {name} is not valid UTF-8, keeping raw bytes")
        return value


@dataclass
class Message:
    body: Any = None
    message_id: str = field(default_factory=generate_message_id)
    user_properties: Dict[str, Any] = field(default_factory=dict)
    key: Optional[str] = None

    def to_headers(self) -> List[Tuple[str, bytes]]:
        """
        Encode the message id and user properties as Kafka headers.

        Returns:
            A list of (name, value) pairs with UTF-8 encoded values
        """
        headers = [(MESSAGE_ID_HEADER, self.message_id.encode("utf-8"))]
        for name, value in self.user_properties.items():
            if value is None:
                continue
            if not isinstance(value, bytes):
                value = str(value).encode("utf-8")
            headers.append((name, value))
        return headers

    @classmethod
    def from_record(cls, record) -> "Message":
        """
        Rebuild a Message from a consumed Kafka record.

        Args:
            record: A kafka-python ConsumerRecord (value already deserialized)

        Returns:
            The Message, with headers copied back into user_properties
        """
        user_properties: Dict[str, Any] = {}
        message_id = None

        for name, value in record.headers or []:
            if name in TEXT_HEADERS:
                value = _decode_header(name, value)
            if name == MESSAGE_ID_HEADER:
                # A binary message id is unusable, a fresh one is generated below
                message_id = value if isinstance(value, str) else None
            else:
                user_properties[name] = value

        key = record.key
        if isinstance(key, bytes):
            key = key.decode("utf-8", errors="replace")

        return cls(
            body=record.value,
            message_id=message_id or generate_message_id(),
            user_properties=user_properties,
            key=key,
        )
