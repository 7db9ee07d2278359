"""Prometheus metrics for promotion observability.

Metrics Defined:
- promotion_attempts_total: Counter of finished attempts by result
- promotion_stage_failures_total: Counter of failed stages
- promotion_duration_seconds: Histogram of attempt duration

Metrics are exposed at the `/metrics` endpoint in Prometheus format.
"""

from typing import Optional

from prometheus_client import (
    REGISTRY,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)


# Promotions of large builds can take several minutes server-side
DEFAULT_DURATION_BUCKETS = (
    0.5,
    1.0,
    5.0,
    10.0,
    30.0,
    60.0,
    120.0,
    300.0,
    600.0,
)

RESULT_SUCCESS = "success"
RESULT_FAILURE = "failure"
RESULT_ERROR = "error"

STAGE_PLUGIN = "plugin"
STAGE_DRY_RUN = "dry_run"
STAGE_COMMIT = "commit"


class PromotionMetrics:
    """Container for promotion Prometheus metrics.

    Supports custom registries for testing.

    Metrics:
        attempts_total: Counter of finished promotion attempts.
            Labels: result (success/failure/error)

        stage_failures_total: Counter of stages that reported failure.
            Labels: stage (plugin/dry_run/commit)

        duration_seconds: Histogram of attempt duration.
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        """Initialize promotion metrics.

        Args:
            registry: Optional Prometheus registry. If None, uses the
                      default REGISTRY. Pass a custom registry for testing.
        """
        self.registry = registry or REGISTRY

        self.attempts_total = Counter(
            "promotion_attempts_total",
            "Total number of finished promotion attempts",
            labelnames=["result"],
            registry=self.registry,
        )

        self.stage_failures_total = Counter(
            "promotion_stage_failures_total",
            "Total number of promotion stages that reported failure",
            labelnames=["stage"],
            registry=self.registry,
        )

        self.duration_seconds = Histogram(
            "promotion_duration_seconds",
            "Time spent on a promotion attempt in seconds",
            buckets=DEFAULT_DURATION_BUCKETS,
            registry=self.registry,
        )

    def record_attempt(self, result: str, duration_seconds: float) -> None:
        """Record a finished attempt.

        Args:
            result: One of "success", "failure" or "error".
            duration_seconds: Wall time of the attempt.
        """
        self.attempts_total.labels(result=result).inc()
        self.duration_seconds.observe(duration_seconds)

    def record_stage_failure(self, stage: str) -> None:
        self.stage_failures_total.labels(stage=stage).inc()

    def generate(self) -> bytes:
        """Render the registry in Prometheus text format."""
        return generate_latest(self.registry)
