"""
Prometheus metrics for monitoring the bin telemetry pipeline.

Defines and exposes metrics for:
- Reading ingestion outcomes and latency
- Alert creation and resolution
- Notification delivery outcomes
- Real-time event publication
- Background side-effect pool health

Metrics are exposed via HTTP endpoint for Prometheus scraping.
"""

import logging

from prometheus_client import (
    REGISTRY,
    Counter,
    Gauge,
    Histogram,
    start_http_server,
)

from src.config.settings import get_settings

logger = logging.getLogger(__name__)

# Buckets for latency histograms (in seconds)
LATENCY_BUCKETS = (0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0)


class MetricsCollector:
    """
    Prometheus metrics collector for the bin-monitor service.

    Usage:
        metrics = get_metrics()
        metrics.start_server()

        metrics.record_reading("accepted", latency=0.012)
        metrics.record_alert_created("fill_critical", "critical")
    """

    def __init__(self):
        """Initialize Prometheus metrics."""

        self.readings_ingested = Counter(
            "bin_monitor_readings_ingested_total",
            "Total readings submitted, by outcome",
            ["outcome"],  # accepted, invalid, not_found, storage_error
        )

        self.ingestion_latency = Histogram(
            "bin_monitor_ingestion_latency_seconds",
            "Time spent on the synchronous part of a workflow",
            ["workflow"],  # reading, collection
            buckets=LATENCY_BUCKETS,
        )

        self.alerts_created = Counter(
            "bin_monitor_alerts_created_total",
            "Total alerts persisted",
            ["alert_type", "severity"],
        )

        self.alert_persist_failures = Counter(
            "bin_monitor_alert_persist_failures_total",
            "Alert batches that failed to persist",
        )

        self.alerts_resolved = Counter(
            "bin_monitor_alerts_resolved_total",
            "Total alerts resolved",
            ["source"],  # collection, manual
        )

        self.collections_logged = Counter(
            "bin_monitor_collections_logged_total",
            "Total collection events recorded",
        )

        self.notifications = Counter(
            "bin_monitor_notifications_total",
            "Notification delivery outcomes",
            ["channel", "status"],  # status: sent, failed, not_recorded
        )

        self.delivery_latency = Histogram(
            "bin_monitor_delivery_latency_seconds",
            "Delivery transport call latency",
            ["channel"],
            buckets=LATENCY_BUCKETS,
        )

        self.events_published = Counter(
            "bin_monitor_events_published_total",
            "Real-time events published",
            ["event", "status"],  # status: ok, error
        )

        self.background_tasks = Counter(
            "bin_monitor_background_tasks_total",
            "Background side-effect tasks by outcome",
            ["outcome"],  # completed, failed, dropped
        )

        self.background_queue_depth = Gauge(
            "bin_monitor_background_queue_depth",
            "Tasks waiting in the background pool",
        )

        self.observers_connected = Gauge(
            "bin_monitor_observers_connected",
            "Connected WebSocket observers",
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
        logger.info(f"Prometheus metrics server started on port {port}")

    # Convenience methods

    def record_reading(self, outcome: str, latency: float | None = None) -> None:
        """
        Record a reading submission.

        Args:
            outcome: accepted, invalid, not_found or storage_error
            latency: Optional synchronous latency in seconds
        """
        self.readings_ingested.labels(outcome=outcome).inc()
        if latency is not None:
            self.ingestion_latency.labels(workflow="reading").observe(latency)

    def record_collection(self, latency: float | None = None) -> None:
        """Record a completed collection workflow."""
        self.collections_logged.inc()
        if latency is not None:
            self.ingestion_latency.labels(workflow="collection").observe(latency)

    def record_alert_created(self, alert_type: str, severity: str) -> None:
        self.alerts_created.labels(alert_type=alert_type, severity=severity).inc()

    def record_alerts_resolved(self, source: str, count: int) -> None:
        if count > 0:
            self.alerts_resolved.labels(source=source).inc(count)

    def record_notification(
        self,
        channel: str,
        status: str,
        latency: float | None = None,
    ) -> None:
        """
        Record a notification outcome.

        Args:
            channel: sms, email or push
            status: sent, failed or not_recorded
            latency: Optional transport call latency in seconds
        """
        self.notifications.labels(channel=channel, status=status).inc()
        if latency is not None:
            self.delivery_latency.labels(channel=channel).observe(latency)

    def record_event(self, event: str, ok: bool) -> None:
        self.events_published.labels(event=event, status="ok" if ok else "error").inc()

    def record_background_task(self, outcome: str) -> None:
        self.background_tasks.labels(outcome=outcome).inc()

    def set_background_queue_depth(self, depth: int) -> None:
        self.background_queue_depth.set(depth)

    def set_observers_connected(self, count: int) -> None:
        self.observers_connected.set(count)


# Global metrics instance
_metrics: MetricsCollector | None = None


def get_metrics() -> MetricsCollector:
    """Get global metrics collector instance."""
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
    return _metrics
