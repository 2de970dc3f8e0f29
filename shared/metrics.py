"""
Shared metrics configuration for the Candidate Details service.
"""

from typing import Dict, Any, Optional
import threading

from prometheus_client import Counter, Histogram, Info, CollectorRegistry, REGISTRY


class MetricsCollector:
    """Centralized metrics collector for services."""

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        self.registry = registry or REGISTRY
        self._metrics: Dict[str, Any] = {}
        self._setup_metrics()

    def _setup_metrics(self):
        """Set up common metrics for the service."""

        self._metrics["service_info"] = Info(
            "service_info",
            "Service information",
            registry=self.registry
        )
        self._metrics["service_info"].info({
            "service": self.service_name,
            "version": "1.0.0"
        })

        # HTTP metrics
        self._metrics["http_requests_total"] = Counter(
            "http_requests_total",
            "Total HTTP requests",
            ["method", "endpoint", "status_code"],
            registry=self.registry
        )

        self._metrics["http_request_duration_seconds"] = Histogram(
            "http_request_duration_seconds",
            "HTTP request duration in seconds",
            ["method", "endpoint"],
            registry=self.registry
        )

        self._metrics["health_check_total"] = Counter(
            "health_check_total",
            "Total health check requests",
            ["status"],
            registry=self.registry
        )

        self._metrics["errors_total"] = Counter(
            "errors_total",
            "Total errors",
            ["error_type", "service"],
            registry=self.registry
        )

        if self.service_name == "candidate_details":
            self._setup_candidate_details_metrics()

    def _setup_candidate_details_metrics(self):
        """Set up candidate-details-specific metrics."""
        self._metrics["candidate_cache_lookups_total"] = Counter(
            "candidate_cache_lookups_total",
            "Candidate identifiers looked up in the detail cache",
            ["result"],
            registry=self.registry
        )

        self._metrics["provider_requests_total"] = Counter(
            "provider_requests_total",
            "Batched requests sent to the candidate data provider",
            ["status"],
            registry=self.registry
        )

        self._metrics["provider_request_duration_seconds"] = Histogram(
            "provider_request_duration_seconds",
            "Candidate data provider request duration in seconds",
            registry=self.registry
        )

        self._metrics["cache_upsert_failures_total"] = Counter(
            "cache_upsert_failures_total",
            "Cached candidate records that failed to persist",
            registry=self.registry
        )

    def record_http_request(self, method: str, endpoint: str, status_code: int, duration: float):
        """Record HTTP request metrics."""
        self._metrics["http_requests_total"].labels(
            method=method,
            endpoint=endpoint,
            status_code=str(status_code)
        ).inc()

        self._metrics["http_request_duration_seconds"].labels(
            method=method,
            endpoint=endpoint
        ).observe(duration)

    def record_health_check(self, status: str):
        """Record health check metrics."""
        self._metrics["health_check_total"].labels(status=status).inc()

    def record_error(self, error_type: str, service: Optional[str] = None):
        """Record error metrics."""
        service_name = service or self.service_name
        self._metrics["errors_total"].labels(error_type=error_type, service=service_name).inc()

    def increment_counter(self, metric_name: str, amount: float = 1, **labels):
        """Increment a counter metric."""
        metric = self._metrics.get(metric_name)
        if metric is not None:
            (metric.labels(**labels) if labels else metric).inc(amount)

    def observe_histogram(self, metric_name: str, value: float, **labels):
        """Observe a histogram metric."""
        metric = self._metrics.get(metric_name)
        if metric is not None:
            (metric.labels(**labels) if labels else metric).observe(value)


_collectors: Dict[str, MetricsCollector] = {}
_collectors_lock = threading.Lock()


def get_metrics_collector(service_name: str, registry: Optional[CollectorRegistry] = None) -> MetricsCollector:
    """Get the metrics collector for a service, creating it once per process."""
    if registry is not None:
        return MetricsCollector(service_name, registry)

    with _collectors_lock:
        collector = _collectors.get(service_name)
        if collector is None:
            collector = MetricsCollector(service_name)
            _collectors[service_name] = collector
        return collector
