"""Observability layer - logging and metrics."""

from clip_relay.observability.logging import setup_logging
from clip_relay.observability.metrics import MetricsCollector, get_metrics

__all__ = ["setup_logging", "MetricsCollector", "get_metrics"]
