"""Prometheus gauges published by the exporter

``MetricSink`` owns every gauge and registers them on the registry it is
given, so tests can use a fresh ``CollectorRegistry`` per case.
Thread safety between the collector and the HTTP server is handled by
prometheus_client itself.
"""

from __future__ import annotations

from prometheus_client import REGISTRY, CollectorRegistry, Gauge

from proxysql_exporter.models import ConnectionPoolSample, QueryDigestSample

CONNECTION_POOL_LABELS = list(ConnectionPoolSample.label_names)
QUERY_DIGEST_LABELS = list(QueryDigestSample.label_names)

# metric name, help text, sample field
CONNECTION_POOL_METRICS = [
    ("proxysql_conn_error", "how many connections were not established successfully", "conn_err"),
    ("proxysql_conn_ok", "how many connections were established successfully", "conn_ok"),
    (
        "proxysql_conn_used",
        "how many connections are currently used by ProxySQL for sending queries to the backend server",
        "conn_used",
    ),
    (
        "proxysql_conn_free",
        "how many connections are currently free. They are kept open in order to minimize "
        "the time cost of sending a query to the backend server",
        "conn_free",
    ),
    ("proxysql_queries", "the number of queries routed towards this particular backend server", "queries"),
    (
        "proxysql_sent_bytes",
        "the amount of data sent to the backend. This does not include metadata (packets headers)",
        "bytes_sent",
    ),
    (
        "proxysql_recv_bytes",
        "the amount of data received from the backend. This does not include metadata "
        "(packets headers, OK/ERR packets, fields description, etc)",
        "bytes_recv",
    ),
    ("proxysql_latency_ns", "the current ping time in microseconds, as reported from Monitor", "latency_us"),
]

QUERY_DIGEST_METRICS = [
    (
        "proxysql_query_count_total",
        "the total number of times the query has been executed (with different values for the parameters)",
        "count_star",
    ),
    ("proxysql_query_min_time", "the minimal time in microseconds spent executing queries of this type", "min_time"),
    ("proxysql_query_max_time", "the maximal time in microseconds spent executing queries of this type", "max_time"),
]


class MetricSink:
    """Holds the gauges and writes samples into them"""

    def __init__(self, registry: CollectorRegistry = REGISTRY) -> None:
        self.registry = registry
        self.up = Gauge("proxysql_up", "1 if the last collection cycle succeeded, else 0", registry=registry)
        self.connection_pool = {
            field: Gauge(name, documentation, CONNECTION_POOL_LABELS, registry=registry)
            for name, documentation, field in CONNECTION_POOL_METRICS
        }
        self.query_digest = {
            field: Gauge(name, documentation, QUERY_DIGEST_LABELS, registry=registry)
            for name, documentation, field in QUERY_DIGEST_METRICS
        }

    def set_up(self, healthy: bool) -> None:
        self.up.set(1 if healthy else 0)

    def record_connection_pool(self, sample: ConnectionPoolSample) -> None:
        """Overwrite the connection pool gauges for the sample's label set"""
        labels = sample.labels()
        for field, gauge in self.connection_pool.items():
            gauge.labels(**labels).set(getattr(sample, field))

    def record_query_digest(self, sample: QueryDigestSample) -> None:
        """Overwrite the query digest gauges for the sample's label set"""
        labels = sample.labels()
        for field, gauge in self.query_digest.items():
            gauge.labels(**labels).set(getattr(sample, field))
