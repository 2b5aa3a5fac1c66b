# src/tracking/__init__.py
# Correlation ids that follow a message from its producer to its consumer

from tracking.correlation import (
    CorrelationContext,
    ROOT_ID_KEY,
    PARENT_ID_KEY,
    inject,
    inject_all,
    extract,
)

__all__ = [
    "CorrelationContext",
    "ROOT_ID_KEY",
    "PARENT_ID_KEY",
    "inject",
    "inject_all",
    "extract",
]
