"""Pytest configuration and fixtures."""

from unittest.mock import MagicMock

import pytest

from kafka_client import Message
from telemetry import TelemetryClient, TelemetryCorrelator
from telemetry import client as telemetry_client_module

ENDPOINT_HOST = "broker.example.com"
ENTITY_PATH = "orders"


@pytest.fixture(autouse=True)
def reset_ambient_operation():
    """Make sure no tracked operation leaks from one test into the next."""
    telemetry_client_module._current_holder.set(None)
    yield
    telemetry_client_module._current_holder.set(None)


@pytest.fixture
def telemetry_client():
    """Real client wrapped in a mock so calls can be asserted."""
    return MagicMock(wraps=TelemetryClient())


@pytest.fixture
def correlator(telemetry_client):
    return TelemetryCorrelator(ENDPOINT_HOST, telemetry_client=telemetry_client)


@pytest.fixture
def message():
    return Message(body={"order_id": 42})


@pytest.fixture
def messages():
    return [Message(body={"order_id": i}) for i in range(3)]
