"""Observability infrastructure for structured logging and I/O tracing."""

from soundshelf.infrastructure.observability.logging import (
    configure_logging,
    get_correlation_id,
    set_correlation_id,
)
from soundshelf.infrastructure.observability.tracing import InFlightRequestTracer

__all__ = [
    "InFlightRequestTracer",
    "configure_logging",
    "get_correlation_id",
    "set_correlation_id",
]
