# src/logger/logging.py
# Centralized logging configuration
# Every module gets its logger from get_logger(__name__), and every record is
# stamped with the trace ids of the operation that is currently in progress
# Note: the folder is named 'logger' so it does not shadow Python's built-in 'logging'

import logging
import sys
from typing import Optional


class OperationContextFilter(logging.Filter):
    """
    Logging filter that adds the ambient trace ids to every log record.

    root_id is the id of the whole trace (shared by producer and consumer),
    operation_id is the id of the send/process operation currently running.
    Both are "-" when the record is emitted outside any tracked operation.
    """

    def filter(self, record):
        record.root_id = "-"
        record.operation_id = "-"
        try:
            from telemetry.client import get_current_operation
        except ImportError:
            return True

        operation = get_current_operation()
        if operation is not None:
            record.root_id = operation.context_operation_id or "-"
            record.operation_id = operation.id
        return True


def setup_logging(level: Optional[str] = None):
    """
    Configure logging for the entire application.

    Args:
        level: The logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
               If None, uses the level from centralized config
    """
    try:
        from config import settings
        log_level = level or settings.app.log_level
    except ImportError:
        log_level = level or "INFO"

    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    # %(root_id)s/%(operation_id)s are added by OperationContextFilter
    formatter = logging.Formatter(
        '%(asctime)s - [%(root_id)s/%(operation_id)s] - %(name)s - %(levelname)s - %(message)s'
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    handler.addFilter(OperationContextFilter())

    logging.basicConfig(
        level=numeric_level,
        handlers=[handler]
    )


def get_logger(name: Optional[str] = None):
    """
    Get a logger instance for a specific module.

    Args:
        name: Name of the logger (usually __name__ from the calling module)
              If None, returns the root logger

    Returns:
        A configured logging.Logger
    """
    return logging.getLogger(name)


# Configure logging as soon as the package is imported
setup_logging()
