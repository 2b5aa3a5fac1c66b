# src/tracking/correlation.py
# Correlation context carried inside message metadata
# A producer writes two ids onto every message it sends:
# - RootId: the id of the whole trace
# - ParentId: the id of the send operation that produced the message
# A consumer reads them back so its processing becomes a child of that send,
# even when it runs in a different process hours later

from dataclasses import dataclass
from typing import Any, Iterable, Optional

from logger import get_logger

logger = get_logger(__name__)

ROOT_ID_KEY = "RootId"
PARENT_ID_KEY = "ParentId"


@dataclass(frozen=True)
class CorrelationContext:
    """
    The root/parent id pair that links a consumer's trace to its producer's.

    Both ids are None on a message that was never sent through a
    telemetry scope.
    """
    root_id: Optional[str] = None
    parent_id: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return self.root_id is None and self.parent_id is None

    @classmethod
    def from_operation(cls, operation) -> "CorrelationContext":
        """
        Build the context a send operation stamps onto its messages.

        The operation becomes the parent, and the trace it belongs to
        stays the root.
        """
        return cls(root_id=operation.context_operation_id, parent_id=operation.id)


def _as_text(key: str, value: Any) -> Optional[str]:
    # Kafka headers arrive as bytes, everything else is stored as given
    if value is None:
        return None
    if isinstance(value, bytes):
        try:
            return value.decode("utf-8")
        except UnicodeDecodeError:
            logger.warning(f"Ignoring {key} that is not valid UTF-8: {value!r}")
            return None
    if isinstance(value, str):
        return value
    return str(value)


def inject(message, context: CorrelationContext) -> None:
    """
    Write the correlation ids into a message's user properties.

    Ids that are None are left out. Existing keys are handled by the
    property mapping itself: a plain dict overwrites them, a store that
    forbids overwriting raises.

    Args:
        message: Any message exposing a mutable user_properties mapping
        context: The ids to write
    """
    if context.parent_id is not None:
        message.user_properties[PARENT_ID_KEY] = context.parent_id
    if context.root_id is not None:
        message.user_properties[ROOT_ID_KEY] = context.root_id


def inject_all(messages: Iterable, context: CorrelationContext) -> None:
    """
    Write the same correlation ids onto every message of a batch.

    A batch is one logical send, so all of its messages share one parent.
    """
    for message in messages:
        inject(message, context)


def extract(message) -> CorrelationContext:
    """
    Read the correlation ids back out of a message.

    Never fails: missing keys, and ids that cannot be read as text, are
    treated as absent.

    Args:
        message: Any message exposing a user_properties mapping

    Returns:
        The CorrelationContext found on the message
    """
    properties = message.user_properties or {}

    root_id = properties.get(ROOT_ID_KEY)
    parent_id = properties.get(PARENT_ID_KEY)

    return CorrelationContext(
        root_id=_as_text(ROOT_ID_KEY, root_id),
        parent_id=_as_text(PARENT_ID_KEY, parent_id),
    )
