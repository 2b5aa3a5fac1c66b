# src/config/settings.py
# Centralized configuration for the message telemetry layer
# Every setting is read from an environment variable with a sensible default,
# so the same code runs unchanged on a laptop and in a deployed consumer

import os
from dataclasses import dataclass, field


def _env_flag(name: str, default: str) -> bool:
    """Read a "true"/"false" environment variable."""
    return os.getenv(name, default).lower() == "true"


def host_from_bootstrap_servers(bootstrap_servers: str) -> str:
    """
    Return the host part of the first broker in a bootstrap server list.

    "broker-1:9092,broker-2:9092" -> "broker-1"

    Args:
        bootstrap_servers: Comma-separated "host:port" list

    Returns:
        The host of the first broker, or "" if the list is empty
    """
    first = bootstrap_servers.split(",")[0].strip()
    # rpartition keeps hosts without a port intact ("broker-1" -> "broker-1")
    host, sep, _port = first.rpartition(":")
    return host if sep else first


@dataclass
class KafkaConfig:
    """
    Kafka transport configuration.

    Kafka is the queue the producers send to and the consumers read from.
    The telemetry layer only needs the topic name and the broker host,
    the rest configures the producer and consumer clients.
    """
    # Format: "host1:port1,host2:port2"
    bootstrap_servers: str = os.getenv("KAFKA_BOOTSTRAP_SERVERS", "localhost:9092")

    # Default topic (entity path) used by producers and consumers
    topic: str = os.getenv("KAFKA_TOPIC", "messages")

    # Producer settings
    # acks='all' waits for every in-sync replica to confirm
    acks: str = os.getenv("KAFKA_ACKS", "all")
    retries: int = int(os.getenv("KAFKA_RETRIES", "3"))
    request_timeout_ms: int = int(os.getenv("KAFKA_REQUEST_TIMEOUT_MS", "10000"))

    # Consumer settings
    consumer_group: str = os.getenv("KAFKA_CONSUMER_GROUP", "message-telemetry")
    # Where to start reading if no offset exists: earliest or latest
    consumer_auto_offset_reset: str = os.getenv("KAFKA_CONSUMER_AUTO_OFFSET_RESET", "earliest")
    consumer_enable_auto_commit: bool = _env_flag("KAFKA_CONSUMER_AUTO_COMMIT", "true")
    # How long each poll waits for messages (ms)
    consumer_poll_timeout_ms: int = int(os.getenv("KAFKA_CONSUMER_POLL_TIMEOUT_MS", "1000"))


@dataclass
class TelemetryConfig:
    """
    Telemetry correlation settings.

    endpoint_host is the first half of every operation target
    ("{endpoint_host}/{topic}"). When it is not set explicitly we fall back
    to the host of the first Kafka broker.
    """
    endpoint_host: str = os.getenv("TELEMETRY_ENDPOINT_HOST", "")

    # Report failures of wrapped send/process actions to the telemetry backend
    track_exception: bool = _env_flag("TELEMETRY_TRACK_EXCEPTION", "true")


@dataclass
class AppConfig:
    """
    Application-level configuration.
    """
    # Environment: development, staging, production
    environment: str = os.getenv("ENVIRONMENT", "development")

    # Log level: DEBUG, INFO, WARNING, ERROR, CRITICAL
    log_level: str = os.getenv("LOG_LEVEL", "INFO")


@dataclass
class Settings:
    """
    Main settings object.

    Other modules import the module-level instance and read values like:
    - settings.kafka.topic
    - settings.telemetry.endpoint_host
    - settings.app.log_level
    """
    kafka: KafkaConfig = field(default_factory=KafkaConfig)
    telemetry: TelemetryConfig = field(default_factory=TelemetryConfig)
    app: AppConfig = field(default_factory=AppConfig)

    def __post_init__(self):
        # Derive the telemetry endpoint from the brokers when not configured
        if not self.telemetry.endpoint_host:
            self.telemetry.endpoint_host = host_from_bootstrap_servers(
                self.kafka.bootstrap_servers
            )

    def validate(self):
        """
        Validate configuration values.

        Raises:
            ValueError: If a required value is missing or out of range
        """
        # Kafka
        if not self.kafka.bootstrap_servers:
            raise ValueError("KAFKA_BOOTSTRAP_SERVERS is required")
        if not self.kafka.topic:
            raise ValueError("KAFKA_TOPIC is required")
        if self.kafka.retries < 0:
            raise ValueError(f"KAFKA_RETRIES must be >= 0, got {self.kafka.retries}")
        if self.kafka.consumer_auto_offset_reset not in ["earliest", "latest"]:
            raise ValueError(
                f"KAFKA_CONSUMER_AUTO_OFFSET_RESET must be earliest or latest, "
                f"got {self.kafka.consumer_auto_offset_reset}"
            )

        # Telemetry
        if not self.telemetry.endpoint_host.strip():
            raise ValueError("TELEMETRY_ENDPOINT_HOST could not be determined")

        # App
        if self.app.environment not in ["development", "staging", "production"]:
            raise ValueError(f"ENVIRONMENT must be development, staging, or production, got {self.app.environment}")

        if self.app.log_level not in ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]:
            raise ValueError(f"LOG_LEVEL must be DEBUG, INFO, WARNING, ERROR, or CRITICAL, got {self.app.log_level}")


# Global settings instance shared by every module
settings = Settings()

# Validate on import so configuration errors surface before any message flows
try:
    settings.validate()
except ValueError as e:
    raise RuntimeError(f"Invalid configuration: {e}") from e
