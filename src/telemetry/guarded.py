# src/telemetry/guarded.py
# Guarded execution: run a send/process action inside a message scope
#
# Every wrapper follows the same steps:
# 1. No message (or an empty batch)  -> return, nothing is tracked
# 2. No action / blank entity path   -> raise before any scope exists
# 3. Open the scope
# 4. Run the action
#    - it returns -> scope.set_success(True)
#    - it raises  -> report the exception (if enabled), set_success(False),
#                    re-raise the very same exception object
# 5. Release the scope, whichever way step 4 ended
#
# Sync and async flavours exist for single messages and batches on the send
# side, and for single messages on the process side.

import asyncio
from typing import Any, Awaitable, Callable, Iterable, List, Optional

from logger import get_logger
from telemetry.correlator import TelemetryCorrelator, require_entity_path
from telemetry.errors import MissingArgumentError
from telemetry.scopes import MessageScope

logger = get_logger(__name__)


def _validate(correlator: TelemetryCorrelator, entity_path: str, action) -> None:
    if correlator is None:
        raise MissingArgumentError("correlator is required")
    if action is None:
        raise MissingArgumentError("action is required")
    require_entity_path(entity_path)


def _record_failure(correlator: TelemetryCorrelator, scope: MessageScope, exc: BaseException) -> None:
    """
    Mark the scope as failed and report the exception.

    Reporting is best effort: if the backend itself fails we log it and
    carry on, so the caller still gets the original exception.
    """
    if correlator.track_exception:
        try:
            correlator.telemetry_client.track_exception(exc)
        except Exception:
            logger.warning("Failed to report exception to telemetry backend", exc_info=True)

    scope.set_success(False)


def _run(correlator: TelemetryCorrelator, scope: MessageScope, action: Callable, argument) -> Any:
    with scope:
        try:
            result = action(argument)
        except Exception as exc:
            _record_failure(correlator, scope, exc)
            raise
        scope.set_success(True)
        return result


async def _run_async(correlator: TelemetryCorrelator, scope: MessageScope, action: Callable, argument) -> Any:
    with scope:
        try:
            result = await action(argument)
        except (Exception, asyncio.CancelledError) as exc:
            # Cancellation is a failure like any other and keeps propagating
            _record_failure(correlator, scope, exc)
            raise
        scope.set_success(True)
        return result


def send_message(
    correlator: TelemetryCorrelator,
    message,
    entity_path: str,
    send_action: Callable[[Any], Any],
) -> Any:
    """
    Send one message under a send scope.

    Args:
        correlator: Correlator that opens the scope
        message: The message to send; nothing happens when None
        entity_path: The queue/topic the message goes to
        send_action: Called with the message once its correlation ids are set

    Returns:
        Whatever send_action returned (None when message is None)

    Raises:
        MissingArgumentError: If send_action is None
        InvalidArgumentError: If entity_path is blank
        Exception: Whatever send_action raised, unchanged
    """
    if message is None:
        return None

    _validate(correlator, entity_path, send_action)

    scope = correlator.begin_send(message, entity_path)
    return _run(correlator, scope, send_action, message)


async def send_message_async(
    correlator: TelemetryCorrelator,
    message,
    entity_path: str,
    send_action: Callable[[Any], Awaitable[Any]],
) -> Any:
    """
    Async version of send_message: send_action(message) is awaited.
    """
    if message is None:
        return None

    _validate(correlator, entity_path, send_action)

    scope = correlator.begin_send(message, entity_path)
    return await _run_async(correlator, scope, send_action, message)


def send_messages(
    correlator: TelemetryCorrelator,
    messages: Optional[Iterable],
    entity_path: str,
    send_action: Callable[[List[Any]], Any],
) -> Any:
    """
    Send a batch of messages under one shared send scope.

    Args:
        correlator: Correlator that opens the scope
        messages: The batch; nothing happens when None or empty
        entity_path: The queue/topic the batch goes to
        send_action: Called with the batch as a list

    Returns:
        Whatever send_action returned (None when there are no messages)
    """
    if messages is None:
        return None
    messages = list(messages)
    if not messages:
        return None

    _validate(correlator, entity_path, send_action)

    scope = correlator.begin_send_batch(messages, entity_path)
    return _run(correlator, scope, send_action, messages)


async def send_messages_async(
    correlator: TelemetryCorrelator,
    messages: Optional[Iterable],
    entity_path: str,
    send_action: Callable[[List[Any]], Awaitable[Any]],
) -> Any:
    """
    Async version of send_messages: send_action(messages) is awaited.
    """
    if messages is None:
        return None
    messages = list(messages)
    if not messages:
        return None

    _validate(correlator, entity_path, send_action)

    scope = correlator.begin_send_batch(messages, entity_path)
    return await _run_async(correlator, scope, send_action, messages)


def process_message(
    correlator: TelemetryCorrelator,
    message,
    entity_path: str,
    process_action: Callable[[Any], Any],
) -> Any:
    """
    Process one received message under a process scope.

    The scope continues the trace of the producer that sent the message,
    when the message carries its correlation ids.

    Args:
        correlator: Correlator that opens the scope
        message: The received message; nothing happens when None
        entity_path: The queue/topic the message was read from
        process_action: Called with the message

    Returns:
        Whatever process_action returned (None when message is None)
    """
    if message is None:
        return None

    _validate(correlator, entity_path, process_action)

    scope = correlator.begin_process(message, entity_path)
    return _run(correlator, scope, process_action, message)


async def process_message_async(
    correlator: TelemetryCorrelator,
    message,
    entity_path: str,
    process_action: Callable[[Any], Awaitable[Any]],
) -> Any:
    """
    Async version of process_message: process_action(message) is awaited.
    """
    if message is None:
        return None

    _validate(correlator, entity_path, process_action)

    scope = correlator.begin_process(message, entity_path)
    return await _run_async(correlator, scope, process_action, message)
