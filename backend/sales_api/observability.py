"""
Tracing and metrics.

Tracing uses the OpenTelemetry API; without setup the pipeline and services
run against the no-op provider. setup_tracing() installs an SDK tracer
provider for the long-running server.

Metrics are Prometheus counters held per application in their own registry
and served as text on GET /debug/metrics.
"""
from __future__ import annotations

import threading

from opentelemetry import trace
from opentelemetry.sdk.resources import SERVICE_NAME, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from opentelemetry.sdk.trace.sampling import TraceIdRatioBased
from prometheus_client import (
    CollectorRegistry,
    Counter,
    Gauge,
    GCCollector,
    PlatformCollector,
    ProcessCollector,
)

tracer = trace.get_tracer("sales_api")


class SalesMetrics:
    """
    Request metrics for one application.

    Besides the HTTP counters the registry carries the process, platform and
    GC collectors (memory, threads, uptime).
    """

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        self.registry = registry or CollectorRegistry()

        ProcessCollector(registry=self.registry)
        PlatformCollector(registry=self.registry)
        GCCollector(registry=self.registry)

        self.requests = Counter(
            'sales_api_requests_total',
            'Requests handled',
            ['method'],
            registry=self.registry,
        )
        self.errors = Counter(
            'sales_api_errors_total',
            'Requests that ended in an error response',
            ['status_code'],
            registry=self.registry,
        )
        self.in_flight = Gauge(
            'sales_api_requests_in_flight',
            'Requests currently being handled',
            registry=self.registry,
        )

    def record_request(self, method: str) -> None:
        self.requests.labels(method=method).inc()

    def record_error(self, status_code: int) -> None:
        self.errors.labels(status_code=str(status_code)).inc()


class InFlightTracker:
    """Counts requests between start and teardown so shutdown can drain them."""

    def __init__(self, gauge: Gauge | None = None) -> None:
        self._count = 0
        self._cond = threading.Condition()
        self._gauge = gauge

    def enter(self) -> None:
        with self._cond:
            self._count += 1
        if self._gauge is not None:
            self._gauge.inc()

    def leave(self) -> None:
        with self._cond:
            self._count -= 1
            if self._count <= 0:
                self._count = 0
                self._cond.notify_all()
        if self._gauge is not None:
            self._gauge.dec()

    @property
    def count(self) -> int:
        with self._cond:
            return self._count

    def wait_idle(self, timeout: float) -> bool:
        """Block until no request is in flight. False if timeout elapsed first."""
        with self._cond:
            return self._cond.wait_for(lambda: self._count == 0, timeout=timeout)


class TracingConfig:
    """
    Usage:
        tracing = TracingConfig(service_name="sales-api", probability=1.0)
        tracing.setup()
        ...
        tracing.shutdown()
    """

    def __init__(self, *, service_name: str, probability: float = 1.0, enable_console: bool = False) -> None:
        self.service_name = service_name
        self.probability = probability
        self.enable_console = enable_console
        self._provider: TracerProvider | None = None

    def setup(self) -> None:
        resource = Resource(attributes={SERVICE_NAME: self.service_name})
        self._provider = TracerProvider(
            resource=resource,
            sampler=TraceIdRatioBased(self.probability),
        )

        if self.enable_console:
            self._provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))

        trace.set_tracer_provider(self._provider)

    def shutdown(self) -> None:
        if self._provider:
            self._provider.shutdown()


def setup_tracing(config) -> TracingConfig:
    tracing = TracingConfig(
        service_name=config["TRACE_SERVICE"],
        probability=config["TRACE_PROBABILITY"],
        enable_console=config["TRACE_CONSOLE"],
    )
    tracing.setup()
    return tracing
