"""ProxySQL Prometheus exporter

Samples the ProxySQL admin statistics tables on a fixed interval and
publishes them as labeled gauges.

Usage:
    uv run python -m proxysql_exporter
    uv run python -m proxysql_exporter validate
"""

from proxysql_exporter.models import ConnectionPoolSample, QueryDigestSample

__all__ = ["ConnectionPoolSample", "QueryDigestSample"]
__version__ = "0.1.0"
