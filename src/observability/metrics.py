"""
Prometheus metrics for monitoring the call-analysis pipeline.

Defines and exposes metrics for:
- Job creation and status transitions
- Stage latency (transcription, scoring, persistence)
- Failure codes
- Circuit breaker state and rejections
- Status event fan-out

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
LATENCY_BUCKETS = (0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0)

_BREAKER_STATE_VALUES = {"closed": 0, "half_open": 1, "open": 2}


class MetricsCollector:
    """
    Prometheus metrics collector for the call-coach pipeline.

    Usage:
        metrics = get_metrics()
        metrics.start_server()

        metrics.record_transition("scoring")
        metrics.record_stage_latency("transcription", 4.2)
    """

    def __init__(self):
        """Initialize Prometheus metrics."""

        # Job lifecycle
        self.jobs_created = Counter(
            "call_coach_jobs_created_total",
            "Total number of call analysis jobs created",
        )

        self.job_transitions = Counter(
            "call_coach_job_transitions_total",
            "Total job status transitions",
            ["status"],
        )

        self.job_failures = Counter(
            "call_coach_job_failures_total",
            "Total failed jobs by error code",
            ["error_code"],
        )

        self.stage_latency = Histogram(
            "call_coach_stage_latency_seconds",
            "Time spent in each processing stage",
            ["stage"],
            buckets=LATENCY_BUCKETS,
        )

        self.jobs_in_flight = Gauge(
            "call_coach_jobs_in_flight",
            "Number of jobs currently being processed",
        )

        self.overall_scores = Histogram(
            "call_coach_overall_score",
            "Distribution of overall call scores",
            buckets=(10, 20, 30, 40, 50, 60, 70, 80, 90, 100),
        )

        # Circuit breakers
        self.breaker_state = Gauge(
            "call_coach_breaker_state",
            "Circuit breaker state (0=closed, 1=half_open, 2=open)",
            ["dependency"],
        )

        self.breaker_rejections = Counter(
            "call_coach_breaker_rejections_total",
            "Calls rejected by an open circuit breaker",
            ["dependency"],
        )

        # Status channel
        self.status_events_published = Counter(
            "call_coach_status_events_published_total",
            "Status events published",
            ["status"],
        )

        self.status_subscribers = Gauge(
            "call_coach_status_subscribers",
            "Open status subscriptions",
        )

        # API
        self.api_requests = Counter(
            "call_coach_api_requests_total",
            "API requests by route and outcome",
            ["route", "outcome"],
        )

        self.api_latency = Histogram(
            "call_coach_api_latency_seconds",
            "API request latency",
            ["route"],
            buckets=LATENCY_BUCKETS,
        )

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

    def record_job_created(self) -> None:
        self.jobs_created.inc()
        self.job_transitions.labels(status="pending").inc()

    def record_transition(self, status: str, error_code: str | None = None) -> None:
        """
        Record a persisted job status transition.

        Args:
            status: New job status
            error_code: Failure code when status is failed
        """
        self.job_transitions.labels(status=status).inc()
        if error_code:
            self.job_failures.labels(error_code=error_code).inc()

    def record_stage_latency(self, stage: str, latency: float) -> None:
        self.stage_latency.labels(stage=stage).observe(latency)

    def record_score(self, overall_score: float) -> None:
        self.overall_scores.observe(overall_score)

    def set_breaker_state(self, dependency: str, state: str) -> None:
        self.breaker_state.labels(dependency=dependency).set(
            _BREAKER_STATE_VALUES.get(state, 0)
        )

    def record_api_request(self, route: str, outcome: str, latency: float) -> None:
        self.api_requests.labels(route=route, outcome=outcome).inc()
        self.api_latency.labels(route=route).observe(latency)


# Global metrics instance
_metrics: MetricsCollector | None = None


def get_metrics() -> MetricsCollector:
    """Get global metrics collector instance."""
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
    return _metrics
