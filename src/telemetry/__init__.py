# src/telemetry/__init__.py
# Telemetry scopes for sending and processing queue messages
# Import from here: from telemetry import TelemetryCorrelator, send_message, ...

from telemetry.errors import InvalidArgumentError, MissingArgumentError, ScopeReleasedError
from telemetry.client import (
    OperationKind,
    TrackedOperation,
    OperationHolder,
    TelemetryClient,
    get_telemetry_client,
    get_current_operation,
)
from telemetry.scopes import (
    MessageScope,
    NoScope,
    SendMessageScope,
    ProcessMessageScope,
    SUCCESS_CODE,
    FAILURE_CODE,
)
from telemetry.correlator import TelemetryCorrelator
from telemetry.guarded import (
    send_message,
    send_message_async,
    send_messages,
    send_messages_async,
    process_message,
    process_message_async,
)

__all__ = [
    "InvalidArgumentError",
    "MissingArgumentError",
    "ScopeReleasedError",
    "OperationKind",
    "TrackedOperation",
    "OperationHolder",
    "TelemetryClient",
    "get_telemetry_client",
    "get_current_operation",
    "MessageScope",
    "NoScope",
    "SendMessageScope",
    "ProcessMessageScope",
    "SUCCESS_CODE",
    "FAILURE_CODE",
    "TelemetryCorrelator",
    "send_message",
    "send_message_async",
    "send_messages",
    "send_messages_async",
    "process_message",
    "process_message_async",
]
