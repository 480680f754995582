"""Custom exceptions

Splits failures into the fatal configuration class and the transient
collection classes the scheduler retries on its fixed delay.
"""

from __future__ import annotations


class ExporterError(Exception):
    """Base class for exporter errors"""


class ConfigurationError(ExporterError):
    """Configuration error

    Raised for missing environment variables or malformed filter patterns.
    Never retried: the process exits.
    """


class ProxySQLConnectionError(ExporterError):
    """Connection error

    Raised when the connection handle to the ProxySQL admin interface
    cannot be created or a connection cannot be checked out of it.
    """


class CollectorError(ExporterError):
    """Failure inside one sampling pass

    Carries the name of the pass (``connection_pool`` or ``query_digest``)
    so an operator can tell which query broke.
    """

    def __init__(self, collector_name: str, message: str) -> None:
        self.collector_name = collector_name
        super().__init__(f"[{collector_name}] {message}")


class QueryExecutionError(CollectorError):
    """The statistics query was rejected or the connection dropped mid-query."""


class RowScanError(CollectorError):
    """A result row did not match the expected column count or types."""
