"""
Shared metrics configuration for the field authorization layer.
"""

from typing import Dict, Any, Optional

from prometheus_client import Counter, Histogram, Info, CollectorRegistry


class MetricsCollector:
    """Centralized metrics collector for the authorization layer.

    Metrics are only exported when a registry is passed in; by default they
    are kept unregistered so several collectors can live in one process.
    """

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        self.registry = registry
        self._metrics: Dict[str, Any] = {}
        self._setup_metrics()

    def _setup_metrics(self):
        """Set up metrics for the service."""

        self._metrics["service_info"] = Info(
            "service_info",
            "Service information",
            registry=self.registry
        )
        self._metrics["service_info"].info({
            "service": self.service_name,
            "version": "1.0.0"
        })

        self._metrics["authorization_decisions_total"] = Counter(
            "authorization_decisions_total",
            "Total authorization decisions",
            ["operation", "decision"],
            registry=self.registry
        )

        self._metrics["authorization_evaluation_duration_seconds"] = Histogram(
            "authorization_evaluation_duration_seconds",
            "Authorization evaluation duration in seconds",
            ["operation"],
            registry=self.registry
        )

        self._metrics["resolver_invocations_total"] = Counter(
            "resolver_invocations_total",
            "Total resolver invocations made while authorizing",
            ["operation"],
            registry=self.registry
        )

        self._metrics["errors_total"] = Counter(
            "errors_total",
            "Total errors",
            ["error_type", "service"],
            registry=self.registry
        )

    def get_metric(self, name: str):
        """Get a metric by name."""
        return self._metrics.get(name)

    def record_decision(self, operation: str, decision: str, duration: float):
        """Record an authorization decision."""
        self._metrics["authorization_decisions_total"].labels(
            operation=operation,
            decision=decision
        ).inc()

        self._metrics["authorization_evaluation_duration_seconds"].labels(
            operation=operation
        ).observe(duration)

    def record_resolver_invocation(self, operation: str):
        """Record a resolver call made by the engine."""
        self._metrics["resolver_invocations_total"].labels(operation=operation).inc()

    def record_error(self, error_type: str, service: Optional[str] = None):
        """Record error metrics."""
        service_name = service or self.service_name
        self._metrics["errors_total"].labels(error_type=error_type, service=service_name).inc()


def get_metrics_collector(service_name: str, registry: Optional[CollectorRegistry] = None) -> MetricsCollector:
    """Get a metrics collector for a service."""
    return MetricsCollector(service_name, registry)
