"""Observability: structured logging and metrics hooks for pagepress."""

from __future__ import annotations

from .logger import StructuredFormatter, correlation_scope, current_correlation_id, get_logger
from .metrics import MetricsHook, NoopMetricsHook, resolve_metrics

__all__ = [
    "MetricsHook",
    "NoopMetricsHook",
    "StructuredFormatter",
    "correlation_scope",
    "current_correlation_id",
    "get_logger",
    "resolve_metrics",
]
