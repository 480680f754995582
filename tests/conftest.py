"""Shared test fixtures"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from unittest.mock import MagicMock

import pytest
from prometheus_client import CollectorRegistry
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool

from proxysql_exporter.sink import MetricSink

CONNECTION_POOL_ROWS = [
    ("writer-group", "10.0.0.1", 3306, "ONLINE", 5, 10, 120, 2, 12, 4500, 0, 1024, 2048, 350),
    ("reader-group", "10.0.0.2", 3306, "SHUNNED", 0, 3, 80, 7, 6, 900, 0, 512, 4096, 1200),
]

QUERY_DIGEST_ROWS = [
    ("writer-group", "app", "0x1A2B3C4D5E6F7081", "SELECT * FROM users WHERE id = ?", 1500, 80, 9000),
    ("writer-group", "app", "0x2B3C4D5E6F708192", "INSERT INTO orders VALUES (?,?,?)", 800, 120, 15000),
    ("reader-group", "reports", "0x3C4D5E6F708192A3", "SELECT count(*) FROM orders", 40, 2000, 60000),
]


@pytest.fixture
def connection_pool_rows() -> list[tuple]:
    """Two backends as returned by the connection pool query"""
    return list(CONNECTION_POOL_ROWS)


@pytest.fixture
def query_digest_rows() -> list[tuple]:
    """Three digests as returned by the query digest query"""
    return list(QUERY_DIGEST_ROWS)


@pytest.fixture
def registry() -> CollectorRegistry:
    """Fresh Prometheus registry"""
    return CollectorRegistry()


@pytest.fixture
def sink(registry: CollectorRegistry) -> MetricSink:
    """Sink registered on the fresh registry"""
    return MetricSink(registry)


@pytest.fixture
def make_engine() -> Callable[..., MagicMock]:
    """Build a mock engine whose single query returns the given rows"""

    def _make(rows: list[tuple] | None = None) -> MagicMock:
        engine = MagicMock()
        engine.connect.return_value.exec_driver_sql.return_value.fetchall.return_value = rows or []
        return engine

    return _make


@pytest.fixture
def scripted_engine() -> Callable[..., MagicMock]:
    """Build a mock engine answering successive queries with successive results

    Exceptions in the script are raised instead of returned.
    """

    def _make(*results: list[tuple] | Exception) -> MagicMock:
        engine = MagicMock()
        outcomes = []
        for result in results:
            if isinstance(result, Exception):
                outcomes.append(result)
            else:
                cursor = MagicMock()
                cursor.fetchall.return_value = result
                outcomes.append(cursor)
        engine.connect.return_value.exec_driver_sql.side_effect = outcomes
        return engine

    return _make


ADMIN_SCHEMA = [
    "create table runtime_mysql_replication_hostgroups "
    "(writer_hostgroup int, reader_hostgroup int, comment varchar)",
    "create table stats.stats_mysql_connection_pool "
    "(hostgroup int, srv_host varchar, srv_port int, status varchar, ConnUsed int, ConnFree int, "
    "ConnOK int, ConnERR int, MaxConnUsed int, Queries int, Queries_GTID_sync int, "
    "Bytes_data_sent int, Bytes_data_recv int, Latency_us int)",
    "create table stats.stats_mysql_query_digest "
    "(hostgroup int, schemaname varchar, username varchar, digest varchar, digest_text varchar, "
    "count_star int, first_seen int, last_seen int, sum_time int, min_time int, max_time int)",
]


@pytest.fixture
def admin_engine() -> Iterator[Engine]:
    """In-memory SQLite laid out like the ProxySQL admin interface

    The stats schema is an attached database, as in ProxySQL.
    """
    engine = create_engine("sqlite://", poolclass=StaticPool)

    @event.listens_for(engine, "connect")
    def attach_stats(dbapi_connection, connection_record) -> None:
        dbapi_connection.execute("attach database ':memory:' as stats")

    with engine.begin() as conn:
        for statement in ADMIN_SCHEMA:
            conn.exec_driver_sql(statement)
        conn.exec_driver_sql("insert into runtime_mysql_replication_hostgroups values (10, 20, 'cluster-a')")

    yield engine
    engine.dispose()


def insert_rows(engine: Engine, table: str, rows: list[tuple]) -> None:
    """Insert rows into an admin table"""
    if not rows:
        return
    placeholders = ", ".join("?" for _ in rows[0])
    with engine.begin() as conn:
        conn.exec_driver_sql(f"insert into {table} values ({placeholders})", rows)


@pytest.fixture
def load_admin_rows(admin_engine: Engine) -> Callable[[str, list[tuple]], None]:
    """Insert rows into the in-memory admin database"""

    def _load(table: str, rows: list[tuple]) -> None:
        insert_rows(admin_engine, table, rows)

    return _load
