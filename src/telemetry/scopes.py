# src/telemetry/scopes.py
# Message scopes: one send or process attempt, tracked from start to finish
#
# There are exactly three kinds of scope:
# - NoScope: there was no message, nothing is tracked, every call is a no-op
# - SendMessageScope: wraps the "dependency" operation of a send
# - ProcessMessageScope: wraps the "request" operation of processing a message
#
# Lifecycle:
#   created (active) -> set_success() at most once -> release() (finalized)
#
# release() stops the backend operation exactly once. It is safe to call it
# again, and "with scope:" calls it on every way out of the block.

from abc import ABC, abstractmethod
from typing import Optional

from logger import get_logger
from telemetry.client import OperationHolder, TelemetryClient, TrackedOperation
from telemetry.errors import MissingArgumentError, ScopeReleasedError

logger = get_logger(__name__)

SUCCESS_CODE = "0"
FAILURE_CODE = "1"


class MessageScope(ABC):
    """
    Common interface of all message scopes.

    Usage:
        with correlator.begin_send(message, "orders") as scope:
            queue_client.send(message)
            scope.set_success(True)
    """

    @property
    @abstractmethod
    def operation(self) -> Optional[TrackedOperation]:
        """The tracked operation behind this scope, None for NoScope."""

    @abstractmethod
    def set_success(self, success: bool) -> None:
        """Record whether the send or process attempt succeeded."""

    @abstractmethod
    def release(self) -> None:
        """Stop the tracked operation. Safe to call more than once."""

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.release()
        # Never swallow the exception that left the block
        return False


class NoScope(MessageScope):
    """Scope used when there is no message to track."""

    @property
    def operation(self) -> Optional[TrackedOperation]:
        return None

    def set_success(self, success: bool) -> None:
        pass

    def release(self) -> None:
        pass


class _OperationScope(MessageScope):
    """
    Scope backed by a started telemetry operation.

    Args:
        telemetry_client: The client that started the operation
        operation_holder: The holder returned by start_operation
    """

    def __init__(self, telemetry_client: TelemetryClient, operation_holder: OperationHolder):
        if telemetry_client is None:
            raise MissingArgumentError("telemetry_client is required")
        if operation_holder is None:
            raise MissingArgumentError("operation_holder is required")

        self._telemetry_client = telemetry_client
        self._operation_holder = operation_holder
        self._released = False

    @property
    def operation(self) -> TrackedOperation:
        return self._operation_holder.telemetry

    @property
    def is_released(self) -> bool:
        return self._released

    def set_success(self, success: bool) -> None:
        """
        Record the outcome on the operation.

        A second call overwrites the first.

        Raises:
            ScopeReleasedError: If the scope was already released
        """
        if self._released:
            raise ScopeReleasedError(f"Scope for operation {self.operation.id} is already released")

        self.operation.success = success
        self.operation.result_code = SUCCESS_CODE if success else FAILURE_CODE

    def release(self) -> None:
        """Stop the operation and close its holder. Later calls do nothing."""
        if self._released:
            logger.debug(f"Scope already released: operation={self.operation.id}")
            return

        self._released = True
        try:
            self._telemetry_client.stop_operation(self._operation_holder)
        finally:
            self._operation_holder.close()


class SendMessageScope(_OperationScope):
    """Scope around sending one message or one batch."""


class ProcessMessageScope(_OperationScope):
    """Scope around processing one received message."""
