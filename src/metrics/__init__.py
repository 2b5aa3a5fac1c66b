# src/metrics/__init__.py
# This file makes the metrics folder a Python package

from .metrics import (
    TELEMETRY_OPERATIONS_STARTED_TOTAL,
    TELEMETRY_OPERATIONS_COMPLETED_TOTAL,
    TELEMETRY_OPERATION_DURATION_SECONDS,
    TELEMETRY_EXCEPTIONS_TRACKED_TOTAL,
    KAFKA_MESSAGES_SENT_TOTAL,
    KAFKA_MESSAGES_CONSUMED_TOTAL,
)

__all__ = [
    "TELEMETRY_OPERATIONS_STARTED_TOTAL",
    "TELEMETRY_OPERATIONS_COMPLETED_TOTAL",
    "TELEMETRY_OPERATION_DURATION_SECONDS",
    "TELEMETRY_EXCEPTIONS_TRACKED_TOTAL",
    "KAFKA_MESSAGES_SENT_TOTAL",
    "KAFKA_MESSAGES_CONSUMED_TOTAL",
]
