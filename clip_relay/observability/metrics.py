"""
Prometheus metrics for the clip relay.

Tracks delivery volume, failure reasons, credential refreshes, poll
cycle duration and upstream latency. Exposed over HTTP for scraping.
"""

import logging
import time

from prometheus_client import (
    REGISTRY,
    Counter,
    Gauge,
    Histogram,
    start_http_server,
)

from clip_relay.config.settings import get_settings

logger = logging.getLogger(__name__)

# Buckets for upstream request latency (in seconds)
LATENCY_BUCKETS = (0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0)

# Poll cycles are dominated by network round-trips per subscription
CYCLE_BUCKETS = (0.5, 1.0, 5.0, 10.0, 30.0, 60.0, 120.0, 300.0)


class MetricsCollector:
    """
    Prometheus metrics collector for the clip relay.

    Usage:
        metrics = get_metrics()
        metrics.start_server()
        metrics.record_delivery(success=True)
    """

    def __init__(self):
        self.clips_delivered = Counter(
            "clip_relay_clips_delivered_total",
            "Clips successfully pushed to a destination",
        )

        self.delivery_failures = Counter(
            "clip_relay_delivery_failures_total",
            "Clips that could not be pushed to a destination",
            ["reason"],  # permanent, retryable, error
        )

        self.clips_recorded = Counter(
            "clip_relay_clips_recorded_total",
            "New rows written to the clip history",
        )

        self.watermark_advances = Counter(
            "clip_relay_watermark_advances_total",
            "Subscription watermarks moved forward",
        )

        self.token_refreshes = Counter(
            "clip_relay_token_refreshes_total",
            "Upstream access token acquisitions",
            ["status"],  # success, error
        )

        self.subscription_errors = Counter(
            "clip_relay_subscription_errors_total",
            "Subscriptions skipped for a cycle because of an error",
            ["error_type"],
        )

        self.cycle_duration = Histogram(
            "clip_relay_cycle_duration_seconds",
            "Wall time of one poll cycle across all subscriptions",
            buckets=CYCLE_BUCKETS,
        )

        self.upstream_latency = Histogram(
            "clip_relay_upstream_latency_seconds",
            "Latency of Helix API requests",
            ["endpoint"],
            buckets=LATENCY_BUCKETS,
        )

        self.active_subscriptions = Gauge(
            "clip_relay_active_subscriptions",
            "Active subscriptions seen by the last cycle",
        )

        self.last_cycle_completed = Gauge(
            "clip_relay_last_cycle_completed_timestamp_seconds",
            "Unix time the last poll cycle finished",
        )

        logger.info("Prometheus metrics initialized")

    def start_server(self, port: int | None = None) -> None:
        """
        Start Prometheus metrics HTTP server.

        Args:
            port: Port to expose metrics on (default from settings)
        """
        settings = get_settings()
        port = port or settings.metrics_port

        start_http_server(port, registry=REGISTRY)
        logger.info("Prometheus metrics server started on port %d", port)

    # Convenience methods

    def record_delivery(self, success: bool, reason: str = "error") -> None:
        if success:
            self.clips_delivered.inc()
        else:
            self.delivery_failures.labels(reason=reason).inc()

    def record_token_refresh(self, success: bool) -> None:
        self.token_refreshes.labels(status="success" if success else "error").inc()

    def record_subscription_error(self, error_type: str) -> None:
        self.subscription_errors.labels(error_type=error_type).inc()

    def record_upstream_latency(self, endpoint: str, latency: float) -> None:
        self.upstream_latency.labels(endpoint=endpoint).observe(latency)

    def record_cycle(self, subscriptions: int, elapsed: float) -> None:
        """Record the outcome of a completed poll cycle."""
        self.active_subscriptions.set(subscriptions)
        self.cycle_duration.observe(elapsed)
        self.last_cycle_completed.set(time.time())


# Global metrics instance
_metrics: MetricsCollector | None = None


def get_metrics() -> MetricsCollector:
    """Get global metrics collector instance."""
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
    return _metrics
