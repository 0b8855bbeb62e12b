"""Observability infrastructure for structured logging."""

from cloudmusic.infrastructure.observability.logging import (
    configure_logging,
    get_correlation_id,
    log_operation,
    set_correlation_id,
)

__all__ = [
    "configure_logging",
    "get_correlation_id",
    "log_operation",
    "set_correlation_id",
]
