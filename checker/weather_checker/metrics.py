import logging

from prometheus_client import CollectorRegistry, Counter, Gauge, push_to_gateway

from .config import Settings

logger = logging.getLogger(__name__)


class RunMetrics:
    """
    Counters for a single run, kept in their own registry so they can be
    pushed to a Pushgateway when the job exits.
    """

    def __init__(self) -> None:
        self.registry = CollectorRegistry()
        self.warnings = Counter(
            "weather_checker_warnings_total",
            "Threshold crossings detected in this run.",
            ["phenomenon"],
            registry=self.registry,
        )
        self.messages = Counter(
            "weather_checker_messages_total",
            "Messages generated for delivery.",
            registry=self.registry,
        )
        self.delivery_failures = Counter(
            "weather_checker_delivery_failures_total",
            "Messages the webhook did not accept.",
            registry=self.registry,
        )
        self.last_run_success = Gauge(
            "weather_checker_last_run_success",
            "1 if the last run completed without delivery failures.",
            registry=self.registry,
        )


def push_metrics(metrics: RunMetrics, settings: Settings) -> None:
    if not settings.pushgateway_url:
        return
    try:
        push_to_gateway(settings.pushgateway_url, job=settings.metrics_job, registry=metrics.registry)
    except Exception as exc:  # pragma: no cover - network variability
        logger.warning("Failed to push metrics to %s: %s", settings.pushgateway_url, exc)
