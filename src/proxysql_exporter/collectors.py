"""ProxySQL statistics collectors

Each collector runs one query against the admin interface, maps every row,
and only then writes the samples into the sink, so a bad row never leaves a
pass half applied.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

import structlog
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from proxysql_exporter.exceptions import ProxySQLConnectionError, QueryExecutionError
from proxysql_exporter.filters import build_where_clause
from proxysql_exporter.models import map_connection_pool_row, map_query_digest_row
from proxysql_exporter.sink import MetricSink

logger = structlog.get_logger()

QUERY_DIGEST_LIMIT = 10

CONNECTION_POOL_QUERY = """
    select ifnull(hg.comment, cast(cp.hostgroup as varchar)) as hostgroup,
        cp.srv_host, cp.srv_port, cp.status,
        cp.ConnUsed, cp.ConnFree, cp.ConnOK, cp.ConnERR, cp.MaxConnUsed,
        cp.Queries, cp.Queries_GTID_sync, cp.Bytes_data_sent, cp.Bytes_data_recv, cp.Latency_us
    from stats.stats_mysql_connection_pool cp
        left join runtime_mysql_replication_hostgroups hg
            on cp.hostgroup = hg.writer_hostgroup or cp.hostgroup = hg.reader_hostgroup
    """


def build_query_digest_query(
    include_patterns: Sequence[str],
    exclude_patterns: Sequence[str],
    limit: int = QUERY_DIGEST_LIMIT,
) -> str:
    """Build the top digests query with the compiled filter

    Raises:
        ConfigurationError: if a pattern is empty
    """
    where = build_where_clause(include_patterns, exclude_patterns)
    return f"""
    select ifnull(hg.comment, cast(qd.hostgroup as varchar)) as hostgroup,
        qd.schemaname,
        qd.digest,
        qd.digest_text,
        sum(qd.count_star) as count_star,
        min(qd.min_time) as min_time,
        max(qd.max_time) as max_time
    from stats_mysql_query_digest qd
        left join runtime_mysql_replication_hostgroups hg
            on qd.hostgroup = hg.writer_hostgroup or qd.hostgroup = hg.reader_hostgroup
    {where}
    group by ifnull(hg.comment, cast(qd.hostgroup as varchar)), qd.schemaname, qd.digest, qd.digest_text
    order by sum(qd.count_star) desc
    limit {limit}
    """


def fetch_rows(engine: Engine, collector_name: str, query: str) -> list[Sequence[Any]]:
    """Run a statistics query and return every row

    The statement goes to the driver without parameters so ``%`` in LIKE
    patterns is not taken for a placeholder.

    Raises:
        ProxySQLConnectionError: if no connection could be checked out
        QueryExecutionError: if the query failed
    """
    log = logger.bind(collector=collector_name)
    log.debug("Executing query", query=query)

    try:
        connection = engine.connect()
    except SQLAlchemyError as e:
        log.error("Connection checkout failed", error=str(e))
        raise ProxySQLConnectionError(f"[{collector_name}] {e}") from e

    with connection:
        try:
            result = connection.exec_driver_sql(query, execution_options={"no_parameters": True})
            return [tuple(row) for row in result.fetchall()]
        except SQLAlchemyError as e:
            log.error("Query execution failed", error=str(e), query=query[:200])
            raise QueryExecutionError(collector_name, str(e)) from e
        except Exception as e:
            # driver errors outside the DBAPI hierarchy, e.g. undecodable column text
            log.error("Query execution failed", error=repr(e), query=query[:200])
            raise QueryExecutionError(collector_name, repr(e)) from e


def collect_connection_pool(engine: Engine, sink: MetricSink) -> int:
    """Sample stats_mysql_connection_pool into the connection gauges

    Returns:
        Number of backend rows written

    Raises:
        ProxySQLConnectionError: if no connection could be checked out
        QueryExecutionError: if the query failed
        RowScanError: if a row could not be mapped
    """
    rows = fetch_rows(engine, "connection_pool", CONNECTION_POOL_QUERY)
    samples = [map_connection_pool_row(row) for row in rows]

    log = logger.bind(collector="connection_pool")
    for sample in samples:
        log.debug("Connection pool row", **sample.model_dump())
        sink.record_connection_pool(sample)

    log.debug("Collection finished", count=len(samples))
    return len(samples)


def collect_query_digest(engine: Engine, sink: MetricSink, query: str) -> int:
    """Sample the top query digests into the digest gauges

    Args:
        engine: connection handle
        sink: gauges to write into
        query: SQL built by ``build_query_digest_query``

    Returns:
        Number of digest rows written

    Raises:
        ProxySQLConnectionError: if no connection could be checked out
        QueryExecutionError: if the query failed
        RowScanError: if a row could not be mapped
    """
    rows = fetch_rows(engine, "query_digest", query)
    samples = [map_query_digest_row(row) for row in rows]

    log = logger.bind(collector="query_digest")
    for sample in samples:
        log.debug("Query digest row", **sample.model_dump())
        sink.record_query_digest(sample)

    log.debug("Collection finished", count=len(samples))
    return len(samples)
