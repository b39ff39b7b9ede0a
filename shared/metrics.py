"""
Shared metrics configuration for the Delivery Fee service.
"""

from typing import Dict, Any, Optional
import time
from contextlib import contextmanager

from prometheus_client import Counter, Histogram, Info, CollectorRegistry


class MetricsCollector:
    """
    Prometheus metrics for one service instance.

    Each collector owns its registry, so several application instances
    (one per test, for example) never clash on metric names.
    """

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        self.registry = registry if registry is not None else CollectorRegistry()
        self._metrics: Dict[str, Any] = {}
        self._setup_http_metrics()
        self._setup_fee_metrics()

    def _setup_http_metrics(self):
        """Service info, request, health and error metrics."""
        self._metrics["service_info"] = Info(
            "service_info",
            "Service information",
            registry=self.registry
        )
        self._metrics["service_info"].info({"service": self.service_name, "version": "1.0.0"})

        self._metrics["http_requests_total"] = Counter(
            "http_requests_total",
            "Total HTTP requests",
            ["method", "route", "status_code"],
            registry=self.registry
        )
        self._metrics["http_request_duration_seconds"] = Histogram(
            "http_request_duration_seconds",
            "HTTP request duration in seconds",
            ["method", "route"],
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
            "Errors rendered to clients, by error code",
            ["code"],
            registry=self.registry
        )

    def _setup_fee_metrics(self):
        """Fee calculation and weather import metrics."""
        self._metrics["fee_calculations_total"] = Counter(
            "fee_calculations_total",
            "Delivery fee calculations by engine and outcome",
            ["engine", "outcome"],
            registry=self.registry
        )
        self._metrics["fee_calculation_duration_seconds"] = Histogram(
            "fee_calculation_duration_seconds",
            "Delivery fee calculation duration in seconds",
            ["engine"],
            buckets=(0.0005, 0.001, 0.005, 0.01, 0.05, 0.1, 0.5),
            registry=self.registry
        )
        self._metrics["weather_imports_total"] = Counter(
            "weather_imports_total",
            "Weather feed import runs by status",
            ["status"],
            registry=self.registry
        )
        self._metrics["weather_observations_imported_total"] = Counter(
            "weather_observations_imported_total",
            "Weather observations stored by the importer",
            registry=self.registry
        )

    def record_http_request(self, method: str, route: str, status_code: int, duration: float):
        self._metrics["http_requests_total"].labels(
            method=method,
            route=route,
            status_code=str(status_code)
        ).inc()
        self._metrics["http_request_duration_seconds"].labels(method=method, route=route).observe(duration)

    def record_health_check(self, status: str):
        self._metrics["health_check_total"].labels(status=status).inc()

    def record_error(self, code: str):
        self._metrics["errors_total"].labels(code=code).inc()

    def record_fee_calculation(self, engine: str, outcome: str):
        """Count a fee query; outcome is "ok" or the lower-cased error code."""
        self._metrics["fee_calculations_total"].labels(engine=engine, outcome=outcome).inc()

    @contextmanager
    def time_fee_calculation(self, engine: str):
        """Time the engine call, failures included."""
        start_time = time.perf_counter()
        try:
            yield
        finally:
            self._metrics["fee_calculation_duration_seconds"].labels(engine=engine).observe(
                time.perf_counter() - start_time
            )

    def record_weather_import(self, status: str, observations: int = 0):
        self._metrics["weather_imports_total"].labels(status=status).inc()
        if observations:
            self._metrics["weather_observations_imported_total"].inc(observations)


def get_metrics_collector(service_name: str, registry: Optional[CollectorRegistry] = None) -> MetricsCollector:
    """Get a metrics collector for a service."""
    return MetricsCollector(service_name, registry)
