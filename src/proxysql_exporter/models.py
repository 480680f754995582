"""Data models

Pydantic models for the rows read from the ProxySQL statistics tables,
plus the ordinal row mappers used by the collectors.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any, ClassVar, TypeVar

from pydantic import BaseModel, ConfigDict, ValidationError

from proxysql_exporter.exceptions import RowScanError


class StatsSample(BaseModel):
    """Base for one scanned row

    Numeric text (as returned by the admin interface) is coerced to ``int``,
    numbers are accepted for text columns, ``NULL`` is rejected everywhere.
    """

    model_config = ConfigDict(frozen=True, coerce_numbers_to_str=True)

    label_names: ClassVar[tuple[str, ...]] = ()

    def labels(self) -> dict[str, str]:
        """Label values keyed by label name"""
        return {name: str(getattr(self, name)) for name in self.label_names}


class ConnectionPoolSample(StatsSample):
    """One row of stats_mysql_connection_pool"""

    label_names: ClassVar[tuple[str, ...]] = ("hostgroup", "srv_host", "srv_port", "status")

    hostgroup: str
    srv_host: str
    srv_port: int
    status: str
    conn_used: int
    conn_free: int
    conn_ok: int
    conn_err: int
    max_conn_used: int
    queries: int
    queries_gtid_sync: int
    bytes_sent: int
    bytes_recv: int
    latency_us: int


class QueryDigestSample(StatsSample):
    """One aggregated row of stats_mysql_query_digest"""

    label_names: ClassVar[tuple[str, ...]] = ("hostgroup", "schemaname", "digest", "digest_text")

    hostgroup: str
    schemaname: str
    digest: str
    digest_text: str
    count_star: int
    min_time: int
    max_time: int


CONNECTION_POOL_COLUMNS = tuple(ConnectionPoolSample.model_fields)
QUERY_DIGEST_COLUMNS = tuple(QueryDigestSample.model_fields)

SampleT = TypeVar("SampleT", bound=StatsSample)


def _map_row(
    collector_name: str,
    model: type[SampleT],
    columns: tuple[str, ...],
    row: Sequence[Any],
) -> SampleT:
    if len(row) != len(columns):
        raise RowScanError(
            collector_name,
            f"expected {len(columns)} columns, got {len(row)}",
        )
    try:
        return model(**dict(zip(columns, row)))
    except ValidationError as e:
        raise RowScanError(collector_name, f"invalid row {tuple(row)!r}: {e}") from e


def map_connection_pool_row(row: Sequence[Any]) -> ConnectionPoolSample:
    """Map a connection pool row in column order

    Raises:
        RowScanError: on a column count or type mismatch
    """
    return _map_row("connection_pool", ConnectionPoolSample, CONNECTION_POOL_COLUMNS, row)


def map_query_digest_row(row: Sequence[Any]) -> QueryDigestSample:
    """Map a query digest row in column order

    Raises:
        RowScanError: on a column count or type mismatch
    """
    return _map_row("query_digest", QueryDigestSample, QUERY_DIGEST_COLUMNS, row)
