"""
Prometheus metrics for the SLA engine.

Counts validations, swallowed rule and metric failures, cache refreshes
and HTTP requests, and exports them in the Prometheus text format.
"""

from typing import Any, Dict, Optional
import logging
import threading

from prometheus_client import (
    Counter,
    Histogram,
    Info,
    Gauge,
    generate_latest,
    CONTENT_TYPE_LATEST,
    REGISTRY,
    CollectorRegistry,
)

from contract_sla.core.clock import utcnow
from contract_sla.core.config import settings

logger = logging.getLogger(__name__)


# Define histogram buckets for response times (in seconds)
RESPONSE_TIME_BUCKETS = (
    0.005, 0.01, 0.025, 0.05, 0.075, 0.1, 0.25, 0.5, 0.75, 1.0, 2.5, 5.0, 7.5, 10.0
)


class MetricsCollector:
    """
    Owns the engine's Prometheus collectors.

    Args:
        registry: Registry to register collectors in; tests pass a fresh
            CollectorRegistry so several collectors can coexist
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry if registry is not None else REGISTRY
        self._lock = threading.Lock()
        self._start_time = utcnow()
        self._validation_counts: Dict[str, int] = {}
        self._init_prometheus_metrics()

    def _init_prometheus_metrics(self):
        """Initialize Prometheus metric collectors."""
        self.app_info = Info(
            "contract_sla_app",
            "Contract SLA application information",
            registry=self.registry
        )
        self.app_info.info({
            "version": settings.APP_VERSION,
            "environment": settings.ENVIRONMENT,
            "app_name": settings.APP_NAME
        })

        self.validation_counter = Counter(
            "contract_sla_violation_validations_total",
            "Contractual violation validations",
            ["ticket_type", "outcome"],
            registry=self.registry
        )

        self.validation_duration = Histogram(
            "contract_sla_violation_validation_duration_seconds",
            "Duration of a contractual violation validation",
            ["ticket_type"],
            buckets=RESPONSE_TIME_BUCKETS,
            registry=self.registry
        )

        self.rule_failure_counter = Counter(
            "contract_sla_rule_failures_total",
            "Violation rule evaluations that failed and were defaulted",
            ["rule"],
            registry=self.registry
        )

        self.metric_failure_counter = Counter(
            "contract_sla_metric_failures_total",
            "SLA metric calculations that failed and were skipped",
            ["metric"],
            registry=self.registry
        )

        self.cache_refresh_counter = Counter(
            "contract_sla_cache_refreshes_total",
            "Cache refreshes",
            ["cache", "status"],
            registry=self.registry
        )

        self.request_counter = Counter(
            "contract_sla_http_requests_total",
            "Total number of HTTP requests",
            ["method", "endpoint", "status_code"],
            registry=self.registry
        )

        self.request_duration = Histogram(
            "contract_sla_http_request_duration_seconds",
            "HTTP request duration in seconds",
            ["method", "endpoint"],
            buckets=RESPONSE_TIME_BUCKETS,
            registry=self.registry
        )

        self.uptime_gauge = Gauge(
            "contract_sla_uptime_seconds",
            "Application uptime in seconds",
            registry=self.registry
        )

    def record_validation(self, ticket_type: str, is_violated: bool, duration_seconds: float):
        outcome = "violated" if is_violated else "compliant"
        with self._lock:
            key = f"{ticket_type}:{outcome}"
            self._validation_counts[key] = self._validation_counts.get(key, 0) + 1
        self.validation_counter.labels(ticket_type=ticket_type, outcome=outcome).inc()
        self.validation_duration.labels(ticket_type=ticket_type).observe(duration_seconds)

    def record_rule_failure(self, rule: str):
        self.rule_failure_counter.labels(rule=rule).inc()

    def record_metric_failure(self, metric: str):
        self.metric_failure_counter.labels(metric=metric).inc()

    def record_cache_refresh(self, cache: str, success: bool):
        self.cache_refresh_counter.labels(cache=cache, status="success" if success else "error").inc()

    def record_request(self, method: str, endpoint: str, status_code: int, duration_seconds: float):
        """
        Record metrics for a completed HTTP request.

        Args:
            method: HTTP method (GET, POST, etc.)
            endpoint: Route template, e.g. /api/v1/violations/{ticket_sys_id}
            status_code: HTTP response status code
            duration_seconds: Request duration in seconds
        """
        self.request_counter.labels(
            method=method,
            endpoint=endpoint,
            status_code=str(status_code)
        ).inc()
        self.request_duration.labels(method=method, endpoint=endpoint).observe(duration_seconds)

    def get_prometheus_metrics(self) -> bytes:
        """Generate Prometheus-format metrics output."""
        self.uptime_gauge.set((utcnow() - self._start_time).total_seconds())
        return generate_latest(self.registry)

    def get_prometheus_content_type(self) -> str:
        return CONTENT_TYPE_LATEST

    def get_stats_summary(self) -> Dict[str, Any]:
        """JSON-serializable summary of validation counts."""
        with self._lock:
            return {
                "start_time": self._start_time.isoformat() + "Z",
                "validations": dict(self._validation_counts),
            }


metrics_collector = MetricsCollector()
