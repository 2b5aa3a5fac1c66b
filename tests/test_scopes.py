"""Tests for message scope lifecycle."""

from unittest.mock import MagicMock

import pytest

from kafka_client import Message
from telemetry import (
    FAILURE_CODE,
    MessageScope,
    MissingArgumentError,
    NoScope,
    OperationKind,
    ProcessMessageScope,
    ScopeReleasedError,
    SendMessageScope,
    SUCCESS_CODE,
    get_current_operation,
)


@pytest.fixture
def holder(telemetry_client):
    return telemetry_client.start_operation(OperationKind.DEPENDENCY, "Enqueue orders")


@pytest.fixture
def send_scope(telemetry_client, holder):
    return SendMessageScope(telemetry_client, holder)


class TestNoScope:
    """NoScope tracks nothing."""

    def test_no_operation(self):
        assert NoScope().operation is None

    def test_all_calls_are_no_ops(self):
        scope = NoScope()
        scope.set_success(True)
        scope.set_success(False)
        scope.release()
        scope.release()

    def test_context_manager(self):
        with NoScope() as scope:
            assert isinstance(scope, NoScope)


class TestSetSuccess:
    """Outcome recording on operation scopes."""

    def test_success_sets_code_zero(self, send_scope):
        send_scope.set_success(True)

        assert send_scope.operation.success is True
        assert send_scope.operation.result_code == SUCCESS_CODE == "0"

    def test_failure_sets_code_one(self, send_scope):
        send_scope.set_success(False)

        assert send_scope.operation.success is False
        assert send_scope.operation.result_code == FAILURE_CODE == "1"

    def test_last_write_wins(self, send_scope):
        send_scope.set_success(False)
        send_scope.set_success(True)

        assert send_scope.operation.success is True
        assert send_scope.operation.result_code == "0"

    def test_process_scope_records_outcome(self, telemetry_client):
        holder = telemetry_client.start_operation(OperationKind.REQUEST, "Dequeue orders")
        scope = ProcessMessageScope(telemetry_client, holder)

        scope.set_success(False)

        assert holder.telemetry.result_code == "1"

    def test_set_success_after_release_raises(self, send_scope):
        send_scope.release()

        with pytest.raises(ScopeReleasedError):
            send_scope.set_success(True)


class TestRelease:
    """Finalization happens exactly once."""

    def test_release_stops_operation(self, telemetry_client, holder, send_scope):
        send_scope.release()

        telemetry_client.stop_operation.assert_called_once_with(holder)
        assert holder.telemetry.is_stopped
        assert holder.is_closed
        assert send_scope.is_released

    def test_double_release_is_safe(self, telemetry_client, send_scope):
        send_scope.release()
        send_scope.release()

        assert telemetry_client.stop_operation.call_count == 1

    def test_release_restores_ambient_operation(self, send_scope):
        assert get_current_operation() is send_scope.operation

        send_scope.release()

        assert get_current_operation() is None

    def test_release_in_start_order_clears_ambient_operation(self, correlator, message):
        first = correlator.begin_send(message, "orders")
        second = correlator.begin_send(Message(), "orders")

        first.release()
        assert get_current_operation() is second.operation

        second.release()
        assert get_current_operation() is None

        with correlator.begin_process(Message(), "orders") as scope:
            assert scope.operation.context_parent_id is None
            assert scope.operation.context_operation_id != first.operation.context_operation_id

    def test_out_of_order_release_skips_released_scopes(self, correlator):
        first = correlator.begin_send(Message(), "orders")
        second = correlator.begin_send(Message(), "orders")
        third = correlator.begin_send(Message(), "orders")

        second.release()
        assert get_current_operation() is third.operation

        third.release()
        assert get_current_operation() is first.operation

        first.release()
        assert get_current_operation() is None

    def test_exit_releases_and_propagates(self, telemetry_client, send_scope):
        error = RuntimeError("boom")

        with pytest.raises(RuntimeError) as excinfo:
            with send_scope:
                raise error

        assert excinfo.value is error
        assert send_scope.is_released
        telemetry_client.stop_operation.assert_called_once()

    def test_holder_closed_even_if_stop_fails(self, holder):
        client = MagicMock()
        client.stop_operation.side_effect = RuntimeError("backend down")
        scope = SendMessageScope(client, holder)

        with pytest.raises(RuntimeError):
            scope.release()

        assert holder.is_closed
        # A second release does not try to stop again
        scope.release()
        assert client.stop_operation.call_count == 1


class TestConstruction:

    def test_base_scope_is_abstract(self):
        with pytest.raises(TypeError):
            MessageScope()

    def test_missing_client(self, holder):
        with pytest.raises(MissingArgumentError):
            SendMessageScope(None, holder)

    def test_missing_holder(self, telemetry_client):
        with pytest.raises(MissingArgumentError):
            ProcessMessageScope(telemetry_client, None)
