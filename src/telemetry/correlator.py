# src/telemetry/correlator.py
# TelemetryCorrelator: opens the right scope for a send or a process attempt
#
# Producer side (begin_send / begin_send_batch):
#   start a "dependency" operation, then stamp its ids onto the message(s)
# Consumer side (begin_process):
#   read the ids back from the message, then start a "request" operation
#   that continues the producer's trace
#
# No message -> NoScope. A blank entity path is always a caller bug and raises.

from typing import Iterable, Optional

from logger import get_logger
from config import settings
from telemetry.client import OperationKind, TelemetryClient, get_telemetry_client
from telemetry.errors import InvalidArgumentError
from telemetry.scopes import MessageScope, NoScope, ProcessMessageScope, SendMessageScope
from tracking.correlation import CorrelationContext, extract, inject, inject_all

logger = get_logger(__name__)

ENQUEUE_OPERATION_NAME = "Enqueue"
DEQUEUE_OPERATION_NAME = "Dequeue"
QUEUE_OPERATION_TYPE = "Queue"
MESSAGE_ID_PROPERTY = "MessageId"


def require_entity_path(entity_path: Optional[str]) -> None:
    """
    Raise InvalidArgumentError if entity_path is None, empty or whitespace.
    """
    if entity_path is None or not entity_path.strip():
        raise InvalidArgumentError("Entity path is null or empty.")


class TelemetryCorrelator:
    """
    Creates message scopes and carries correlation ids across the queue.

    Args:
        endpoint_host: Host of the messaging endpoint, first half of every
            operation target ("{endpoint_host}/{entity_path}")
        telemetry_client: Backend client; the shared one when omitted
        track_exception: Whether guarded wrappers report action failures

    Raises:
        InvalidArgumentError: If endpoint_host is blank
    """

    def __init__(
        self,
        endpoint_host: str,
        telemetry_client: Optional[TelemetryClient] = None,
        track_exception: bool = True,
    ):
        if endpoint_host is None or not endpoint_host.strip():
            raise InvalidArgumentError("Endpoint host is null or empty.")

        self._endpoint_host = endpoint_host.strip()
        self._telemetry_client = telemetry_client or get_telemetry_client()
        self.track_exception = track_exception

    @classmethod
    def from_settings(cls, telemetry_client: Optional[TelemetryClient] = None) -> "TelemetryCorrelator":
        """Build a correlator from settings.telemetry."""
        return cls(
            settings.telemetry.endpoint_host,
            telemetry_client=telemetry_client,
            track_exception=settings.telemetry.track_exception,
        )

    @property
    def telemetry_client(self) -> TelemetryClient:
        return self._telemetry_client

    @property
    def endpoint_host(self) -> str:
        return self._endpoint_host

    def _target(self, entity_path: str) -> str:
        return f"{self._endpoint_host}/{entity_path}"

    def _start_send_operation(self, entity_path: str):
        holder = self._telemetry_client.start_operation(
            OperationKind.DEPENDENCY, f"{ENQUEUE_OPERATION_NAME} {entity_path}"
        )
        operation = holder.telemetry
        operation.type = QUEUE_OPERATION_TYPE
        operation.target = self._target(entity_path)
        operation.data = ENQUEUE_OPERATION_NAME
        return holder

    def begin_send(self, message, entity_path: str) -> MessageScope:
        """
        Open a scope for sending one message.

        Args:
            message: The message about to be sent, or None
            entity_path: The queue/topic the message goes to

        Returns:
            SendMessageScope, or NoScope when message is None

        Raises:
            InvalidArgumentError: If entity_path is blank
        """
        if message is None:
            return NoScope()

        require_entity_path(entity_path)

        holder = self._start_send_operation(entity_path)
        holder.telemetry.properties[MESSAGE_ID_PROPERTY] = message.message_id

        context = CorrelationContext.from_operation(holder.telemetry)
        inject(message, context)

        logger.debug(
            f"Send scope opened: entity_path={entity_path}, "
            f"message_id={message.message_id}, parent_id={context.parent_id}"
        )
        return SendMessageScope(self._telemetry_client, holder)

    def begin_send_batch(self, messages: Optional[Iterable], entity_path: str) -> MessageScope:
        """
        Open one scope for sending a batch of messages.

        Every message gets the same RootId/ParentId pair: the batch is
        a single logical send.

        Args:
            messages: The messages about to be sent, or None
            entity_path: The queue/topic the batch goes to

        Returns:
            SendMessageScope, or NoScope when there are no messages

        Raises:
            InvalidArgumentError: If entity_path is blank
        """
        if messages is None:
            return NoScope()

        messages = list(messages)
        if not messages:
            return NoScope()

        require_entity_path(entity_path)

        holder = self._start_send_operation(entity_path)

        context = CorrelationContext.from_operation(holder.telemetry)
        inject_all(messages, context)

        logger.debug(
            f"Batch send scope opened: entity_path={entity_path}, "
            f"messages={len(messages)}, parent_id={context.parent_id}"
        )
        return SendMessageScope(self._telemetry_client, holder)

    def begin_process(self, message, entity_path: str) -> MessageScope:
        """
        Open a scope for processing one received message.

        If the message carries RootId/ParentId the new operation joins the
        producer's trace. Otherwise it becomes a child of the ambient
        operation, or starts a fresh trace when there is none.

        Args:
            message: The received message, or None
            entity_path: The queue/topic the message was read from

        Returns:
            ProcessMessageScope, or NoScope when message is None

        Raises:
            InvalidArgumentError: If entity_path is blank
        """
        if message is None:
            return NoScope()

        require_entity_path(entity_path)

        context = extract(message)
        if context.is_empty:
            logger.debug(f"No correlation ids on message {message.message_id}, starting a new trace")

        holder = self._telemetry_client.start_operation(
            OperationKind.REQUEST,
            f"{DEQUEUE_OPERATION_NAME} {entity_path}",
            root_id=context.root_id,
            parent_id=context.parent_id,
        )
        holder.telemetry.url = self._target(entity_path)
        holder.telemetry.properties[MESSAGE_ID_PROPERTY] = message.message_id

        return ProcessMessageScope(self._telemetry_client, holder)
