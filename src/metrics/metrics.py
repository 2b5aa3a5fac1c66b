# src/metrics/metrics.py
# Prometheus metrics for message telemetry
# Counter: counts things (operations started, messages sent)
# Histogram: measures a distribution (how long operations took)

from prometheus_client import Counter, Histogram

# Telemetry operation metrics
# kind is "request" (message processing) or "dependency" (message sending)
TELEMETRY_OPERATIONS_STARTED_TOTAL = Counter(
    "telemetry_operations_started_total",
    "Total number of tracked operations started",
    ["kind"]
)

TELEMETRY_OPERATIONS_COMPLETED_TOTAL = Counter(
    "telemetry_operations_completed_total",
    "Total number of tracked operations stopped",
    ["kind", "result"]  # result: success, failure, unknown
)

TELEMETRY_OPERATION_DURATION_SECONDS = Histogram(
    "telemetry_operation_duration_seconds",
    "Duration of tracked operations",
    ["kind"]
)

# Exceptions reported by the guarded send/process wrappers
TELEMETRY_EXCEPTIONS_TRACKED_TOTAL = Counter(
    "telemetry_exceptions_tracked_total",
    "Total number of exceptions reported to telemetry",
    ["exception_type"]
)

# Kafka transport metrics
KAFKA_MESSAGES_SENT_TOTAL = Counter(
    "kafka_messages_sent_total",
    "Total number of messages sent to Kafka",
    ["topic"]
)

KAFKA_MESSAGES_CONSUMED_TOTAL = Counter(
    "kafka_messages_consumed_total",
    "Total number of messages read from Kafka",
    ["topic"]
)
