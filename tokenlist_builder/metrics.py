import time
from contextlib import contextmanager
from typing import Optional

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    write_to_textfile,
)


class TokenListMetrics:
    """
    Build metrics. The builder is a batch job, so instead of serving them the
    registry is written out once at the end of a run for the node exporter
    textfile collector.
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry if registry is not None else CollectorRegistry()

        self.api_request_duration = Histogram(
            "tokenlist_builder_api_request_duration_seconds",
            "Duration of external API and RPC requests",
            ["service", "endpoint"],
            buckets=[0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0],
            registry=self.registry,
        )

        self.api_request_total = Counter(
            "tokenlist_builder_api_requests_total",
            "Total number of API and RPC requests",
            ["service", "endpoint", "status"],
            registry=self.registry,
        )

        self.degraded_tokens = Gauge(
            "tokenlist_builder_degraded_tokens",
            "Tokens whose metadata is still UNKNOWN after merging",
            ["network", "list_class"],
            registry=self.registry,
        )

        self.lists_total = Counter(
            "tokenlist_builder_lists_total",
            "Token list builds by result (generated, unchanged, failed)",
            ["network", "list_class", "result"],
            registry=self.registry,
        )

        self.publish_total = Counter(
            "tokenlist_builder_publish_total",
            "Token list publish attempts by status",
            ["network", "list_class", "status"],
            registry=self.registry,
        )

        self.build_duration = Histogram(
            "tokenlist_builder_network_build_duration_seconds",
            "Time spent building all lists of a network",
            ["network"],
            buckets=[1.0, 5.0, 15.0, 30.0, 60.0, 120.0, 300.0, 600.0],
            registry=self.registry,
        )

    @contextmanager
    def time_operation(self, metric: Histogram, **labels):
        start_time = time.time()
        try:
            yield
        finally:
            duration = time.time() - start_time
            metric.labels(**labels).observe(duration)

    def write(self, path: str) -> None:
        write_to_textfile(path, self.registry)


metrics = TokenListMetrics()
