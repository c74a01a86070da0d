"""Observability infrastructure module.

This module provides monitoring for the runtime:
- Structured logging with correlation IDs
- Prometheus metrics
- In-process telemetry events with OpenTelemetry spans
"""

from agent_runtime.platform.observability.events import attach, detach, emit, span
from agent_runtime.platform.observability.logging import (
    configure_logging,
    correlation_id_ctx,
    correlation_scope,
    get_logger,
)
from agent_runtime.platform.observability.metrics import BUCKETS, metrics

__all__ = [
    "BUCKETS",
    "attach",
    "configure_logging",
    "correlation_id_ctx",
    "correlation_scope",
    "detach",
    "emit",
    "get_logger",
    "metrics",
    "span",
]
