"""Search and API metrics, exposed for Prometheus and mirrored to OpenTelemetry.

Every metric is a ``MetricBridge``: the Prometheus series backs ``/metrics``
and the OTel instrument feeds whatever meter provider ``init_metrics``
installed. Gauges are bridged as up-down counters that receive the delta
since the last ``set``.
"""

from __future__ import annotations

from contextlib import contextmanager
import time
from typing import TYPE_CHECKING, Any

from opentelemetry import metrics as otel_metrics
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import MetricReader
from opentelemetry.sdk.resources import Resource
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, generate_latest


if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence


_PROM_TYPES = {"counter": Counter, "histogram": Histogram, "gauge": Gauge}

_otel: dict[str, Any] = {"meter": None, "provider": None}


def init_metrics(
    service_name: str = "blog-search",
    resource_attributes: dict[str, str] | None = None,
    metric_readers: list[MetricReader] | None = None,
) -> MeterProvider:
    """Install the OTel meter provider once; later calls return the same one."""
    if isinstance(_otel["provider"], MeterProvider):
        return _otel["provider"]

    resource = Resource.create({"service.name": service_name, **(resource_attributes or {})})
    provider = MeterProvider(resource=resource, metric_readers=metric_readers or [])
    otel_metrics.set_meter_provider(provider)
    _otel["provider"] = provider
    _otel["meter"] = provider.get_meter("blog_search")
    return provider


def _meter():
    if _otel["meter"] is None:
        init_metrics()
    return _otel["meter"]


class _BoundMetric:
    def __init__(self, bridge: MetricBridge, labels: dict[str, str]) -> None:
        self._bridge = bridge
        self._labels = labels

    def inc(self, amount: float = 1.0) -> None:
        self._bridge.inc(self._labels, amount)

    def observe(self, value: float) -> None:
        self._bridge.observe(self._labels, value)

    def set(self, value: float) -> None:
        self._bridge.set(self._labels, value)


class MetricBridge:
    """A Prometheus metric and its lazily created OTel twin."""

    def __init__(
        self,
        kind: str,
        name: str,
        description: str,
        labelnames: Sequence[str] = (),
        **prom_kwargs: Any,
    ) -> None:
        if kind not in _PROM_TYPES:
            raise ValueError(f"Unknown metric kind: {kind}")
        self.kind = kind
        self.name = name
        self.description = description
        self._prom = _PROM_TYPES[kind](name, description, list(labelnames), **prom_kwargs)
        self._instrument = None
        self._gauge_values: dict[tuple[tuple[str, str], ...], float] = {}

    def labels(self, **labels: str) -> _BoundMetric:
        return _BoundMetric(self, labels)

    def _series(self, labels: dict[str, str]):
        return self._prom.labels(**labels) if labels else self._prom

    def _otel_instrument(self):
        if self._instrument is None:
            meter = _meter()
            if self.kind == "counter":
                self._instrument = meter.create_counter(self.name, description=self.description)
            elif self.kind == "histogram":
                self._instrument = meter.create_histogram(self.name, description=self.description)
            else:
                self._instrument = meter.create_up_down_counter(self.name, description=self.description)
        return self._instrument

    def inc(self, labels: dict[str, str], amount: float = 1.0) -> None:
        self._series(labels).inc(amount)
        self._otel_instrument().add(amount, labels)

    def observe(self, labels: dict[str, str], value: float) -> None:
        self._series(labels).observe(value)
        self._otel_instrument().record(value, labels)

    def set(self, labels: dict[str, str], value: float) -> None:
        self._series(labels).set(value)
        key = tuple(sorted(labels.items()))
        delta = value - self._gauge_values.get(key, 0.0)
        self._gauge_values[key] = value
        if delta:
            self._otel_instrument().add(delta, labels)


SEARCH_QUERIES = MetricBridge(
    "counter",
    "search_queries_total",
    "Search queries by outcome (hit, miss, empty)",
    ["outcome"],
)
SEARCH_LATENCY = MetricBridge(
    "histogram",
    "search_latency_seconds",
    "Fuzzy match latency on cache misses",
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5),
)
SEARCH_CACHE_ENTRIES = MetricBridge("gauge", "search_cache_entries", "Entries held by the query cache")
INDEX_DOC_COUNT = MetricBridge("gauge", "index_document_count", "Posts in the search index")
REQUEST_COUNT = MetricBridge("counter", "http_requests_total", "API requests by route and status", ["route", "status"])


@contextmanager
def track_latency(histogram: MetricBridge, **labels: str) -> Iterator[None]:
    """Observe the wall time of the block on ``histogram``."""
    start = time.perf_counter()
    try:
        yield
    finally:
        histogram.labels(**labels).observe(time.perf_counter() - start)


def get_metrics() -> bytes:
    return generate_latest()


def get_metrics_content_type() -> str:
    return CONTENT_TYPE_LATEST
