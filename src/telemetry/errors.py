# src/telemetry/errors.py
# Errors raised by the telemetry layer itself
# Failures of the wrapped send/process actions are never wrapped in these:
# they reach the caller exactly as the action raised them


class InvalidArgumentError(ValueError):
    """
    A required argument is blank or invalid (e.g. an empty entity path).

    Raised before any telemetry operation is started, so there is
    nothing to clean up.
    """
    pass


class MissingArgumentError(InvalidArgumentError):
    """
    A required argument is None (e.g. no action passed to a guarded wrapper).
    """
    pass


class ScopeReleasedError(RuntimeError):
    """
    A scope was modified after it had already been released.
    """
    pass
