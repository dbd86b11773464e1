"""
Observability Module for the ledger interchange engine

Provides:
- Structured logging with correlation IDs (operation, record kind, record ref)
- Operation start/complete/error helpers used by the workflows
"""

from core.observability.logging import (
    get_logger,
    configure_logging,
    CorrelationContext,
    with_correlation,
    log_operation_start,
    log_operation_complete,
    log_operation_error,
)

__all__ = [
    "get_logger",
    "configure_logging",
    "CorrelationContext",
    "with_correlation",
    "log_operation_start",
    "log_operation_complete",
    "log_operation_error",
]
