# src/telemetry/client.py
# In-process telemetry backend
#
# The correlation layer needs three things from a telemetry backend:
# 1. Start an operation (a "request" when processing, a "dependency" when sending)
# 2. Stop an operation once it has a result
# 3. Record an exception
#
# TelemetryClient implements those three on top of logging and Prometheus.
# The operation currently in progress is kept in a ContextVar, so concurrent
# threads and asyncio tasks each see their own, and nested operations
# automatically become children of the one around them.

import time
import uuid
from contextvars import ContextVar
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Optional

from logger import get_logger
from metrics import (
    TELEMETRY_OPERATIONS_STARTED_TOTAL,
    TELEMETRY_OPERATIONS_COMPLETED_TOTAL,
    TELEMETRY_OPERATION_DURATION_SECONDS,
    TELEMETRY_EXCEPTIONS_TRACKED_TOTAL,
)

logger = get_logger(__name__)


class OperationKind(Enum):
    """
    What kind of work an operation tracks.

    - REQUEST: inbound work, i.e. processing a message we received
    - DEPENDENCY: outbound call, i.e. sending a message to a queue
    """
    REQUEST = "request"
    DEPENDENCY = "dependency"


def generate_trace_id() -> str:
    """Generate the id of a new trace (the root of a tree of operations)."""
    return uuid.uuid4().hex


def generate_operation_id() -> str:
    """Generate the id of a single operation inside a trace."""
    return uuid.uuid4().hex[:16]


@dataclass
class TrackedOperation:
    """
    The backend's record of one traced unit of work.

    context_operation_id is the root (trace) id and context_parent_id the
    id of the operation that caused this one. success and result_code
    are filled in by the owning scope right before the operation stops.
    """
    name: str
    kind: OperationKind
    id: str = field(default_factory=generate_operation_id)
    type: Optional[str] = None
    target: Optional[str] = None
    data: Optional[str] = None
    url: Optional[str] = None
    success: Optional[bool] = None
    result_code: Optional[str] = None
    context_operation_id: Optional[str] = None
    context_parent_id: Optional[str] = None
    properties: Dict[str, str] = field(default_factory=dict)
    start_time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    duration: Optional[float] = None
    _started: float = field(default_factory=time.monotonic, repr=False)

    @property
    def is_stopped(self) -> bool:
        return self.duration is not None


# Holder of the operation currently in progress in this thread / asyncio task
_current_holder: ContextVar[Optional["OperationHolder"]] = ContextVar(
    'current_holder', default=None
)


def _latest_open(holder: Optional["OperationHolder"]) -> Optional["OperationHolder"]:
    # Skip holders that were closed out of order, or from another context
    while holder is not None and holder.is_closed:
        holder = holder.previous
    return holder


def get_current_operation() -> Optional[TrackedOperation]:
    """
    Get the operation currently in progress, if any.

    Returns:
        The ambient TrackedOperation, or None outside any operation
    """
    holder = _latest_open(_current_holder.get())
    return holder.telemetry if holder is not None else None


class OperationHolder:
    """
    Handle returned by TelemetryClient.start_operation.

    While the holder is open its operation is the ambient one. Closing it
    puts back the nearest earlier holder that is still open, so scopes may
    be released in any order without leaving a stopped operation ambient.
    """

    def __init__(self, telemetry: TrackedOperation, previous: Optional["OperationHolder"]):
        self.telemetry = telemetry
        self.previous = previous
        self._closed = False

    @property
    def is_closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        # Only restore if nothing else has become ambient in the meantime
        if _current_holder.get() is self:
            _current_holder.set(_latest_open(self.previous))


class TelemetryClient:
    """
    Telemetry backend that reports operations through logs and metrics.

    One client is shared by the whole process (see get_telemetry_client),
    it keeps no per-call state, so concurrent callers can use it freely.
    """

    def start_operation(
        self,
        kind: OperationKind,
        name: str,
        root_id: Optional[str] = None,
        parent_id: Optional[str] = None,
    ) -> OperationHolder:
        """
        Start tracking a new operation and make it the ambient one.

        Trace linking:
        - root_id / parent_id, when given, link the operation explicitly
          (used by consumers with the ids read from a message)
        - otherwise the ambient operation, if any, becomes the parent
        - otherwise the operation starts a fresh trace

        Args:
            kind: REQUEST or DEPENDENCY
            name: Operation name, e.g. "Enqueue orders"
            root_id: Optional trace id to join
            parent_id: Optional id of the causing operation

        Returns:
            An OperationHolder wrapping the new TrackedOperation
        """
        operation = TrackedOperation(name=name, kind=kind)
        ambient_holder = _latest_open(_current_holder.get())
        ambient = ambient_holder.telemetry if ambient_holder is not None else None

        if root_id is not None:
            operation.context_operation_id = root_id
        elif ambient is not None:
            operation.context_operation_id = ambient.context_operation_id
        else:
            operation.context_operation_id = generate_trace_id()

        if parent_id is not None:
            operation.context_parent_id = parent_id
        elif ambient is not None:
            operation.context_parent_id = ambient.id

        holder = OperationHolder(operation, ambient_holder)
        _current_holder.set(holder)
        TELEMETRY_OPERATIONS_STARTED_TOTAL.labels(kind=kind.value).inc()

        logger.debug(
            f"Operation started: name={name}, kind={kind.value}, id={operation.id}, "
            f"root_id={operation.context_operation_id}, "
            f"parent_id={operation.context_parent_id or 'N/A'}"
        )

        return holder

    def stop_operation(self, holder: OperationHolder) -> None:
        """
        Stop an operation and report it.

        Stopping an operation that is already stopped does nothing.

        Args:
            holder: The holder returned by start_operation
        """
        operation = holder.telemetry
        if operation.is_stopped:
            logger.debug(f"Operation already stopped: id={operation.id}")
            return

        operation.duration = time.monotonic() - operation._started

        if operation.success is None:
            result = "unknown"
        else:
            result = "success" if operation.success else "failure"

        TELEMETRY_OPERATIONS_COMPLETED_TOTAL.labels(kind=operation.kind.value, result=result).inc()
        TELEMETRY_OPERATION_DURATION_SECONDS.labels(kind=operation.kind.value).observe(operation.duration)

        logger.info(
            f"Operation stopped: name={operation.name}, kind={operation.kind.value}, "
            f"id={operation.id}, result={result}, "
            f"result_code={operation.result_code or 'N/A'}, "
            f"duration_ms={operation.duration * 1000:.2f}"
        )

    def track_exception(self, exception: BaseException, properties: Optional[Dict[str, str]] = None) -> None:
        """
        Record an exception event under the ambient operation.

        Args:
            exception: The exception to record
            properties: Optional extra context to log with it
        """
        TELEMETRY_EXCEPTIONS_TRACKED_TOTAL.labels(exception_type=type(exception).__name__).inc()

        operation = get_current_operation()
        logger.error(
            f"Exception tracked: {type(exception).__name__}: {exception}, "
            f"operation={operation.name if operation else 'N/A'}, "
            f"properties={properties or {}}",
            exc_info=(type(exception), exception, exception.__traceback__)
        )


# Process-wide client, created on first use
_telemetry_client: Optional[TelemetryClient] = None


def get_telemetry_client() -> TelemetryClient:
    """
    Get or create the shared telemetry client.

    Returns:
        The process-wide TelemetryClient
    """
    global _telemetry_client

    if _telemetry_client is None:
        logger.info("Creating telemetry client")
        _telemetry_client = TelemetryClient()

    return _telemetry_client
