"""Connection handle to the ProxySQL admin interface

The handle is a SQLAlchemy ``Engine``. It is created lazily on the first
``acquire()`` and reused for the life of the process. The engine pool drops
connections that fail with a disconnect error, so a restarted ProxySQL is
picked up by the next cycle without the manager rebuilding anything.
"""

from __future__ import annotations

import re
from collections.abc import Callable

import structlog
from sqlalchemy import create_engine
from sqlalchemy.engine import URL, Engine, make_url
from sqlalchemy.exc import SQLAlchemyError

from proxysql_exporter.exceptions import ProxySQLConnectionError

logger = structlog.get_logger()

MYSQL_DRIVER = "mysql+pymysql"

# user[:password]@protocol(address)/dbname[?params], as accepted by go-sql-driver/mysql
_GO_DSN = re.compile(
    r"^(?:(?P<user>[^:@]*)(?::(?P<password>.*))?@)?"
    r"(?:(?P<protocol>\w+)(?:\((?P<address>[^)]*)\))?)?"
    r"/(?P<database>[^?]*)"
    r"(?:\?(?P<params>.*))?$"
)


def build_engine_url(dsn: str) -> URL:
    """Convert a DSN into a SQLAlchemy URL

    Accepts SQLAlchemy URLs (``mysql://`` is bound to PyMySQL) and the Go
    driver form ``user:pass@tcp(host:port)/db``.

    Raises:
        ProxySQLConnectionError: if the DSN matches neither form
    """
    if "://" in dsn:
        try:
            url = make_url(dsn)
        except (SQLAlchemyError, ValueError) as e:
            raise ProxySQLConnectionError(f"Invalid DSN: {e}") from e
        if url.drivername == "mysql":
            url = url.set(drivername=MYSQL_DRIVER)
        return url

    match = _GO_DSN.match(dsn)
    if match is None:
        raise ProxySQLConnectionError("Invalid DSN: expected a URL or user:password@tcp(host:port)/dbname")

    protocol = match.group("protocol") or "tcp"
    if protocol != "tcp":
        raise ProxySQLConnectionError(f"Unsupported DSN protocol: {protocol}")

    host, _, port = (match.group("address") or "127.0.0.1:3306").rpartition(":")
    if not host:
        host, port = port, "3306"
    try:
        port_number = int(port)
    except ValueError as e:
        raise ProxySQLConnectionError(f"Invalid DSN port: {port!r}") from e

    if match.group("params"):
        logger.warning("Ignoring Go driver DSN parameters", params=match.group("params"))

    return URL.create(
        MYSQL_DRIVER,
        username=match.group("user") or None,
        password=match.group("password"),
        host=host,
        port=port_number,
        database=match.group("database") or None,
    )


class ConnectionManager:
    """Owns the single, lazily created connection handle"""

    def __init__(self, dsn: str, engine_factory: Callable[[URL], Engine] = create_engine) -> None:
        self._dsn = dsn
        self._engine_factory = engine_factory
        self._engine: Engine | None = None

    def acquire(self) -> Engine:
        """Return the shared handle, creating it on the first call

        A previously created handle is returned as-is, even if the server
        went away since; the next query reports that.

        Raises:
            ProxySQLConnectionError: if the handle cannot be created
        """
        if self._engine is not None:
            logger.debug("Reuse connection")
            return self._engine

        url = build_engine_url(self._dsn)
        try:
            self._engine = self._engine_factory(url)
        except (SQLAlchemyError, ImportError) as e:
            raise ProxySQLConnectionError(f"Failed to create connection: {e}") from e

        logger.info("Connection handle created", host=url.host, port=url.port)
        return self._engine

    def dispose(self) -> None:
        """Close pooled connections, for one-shot commands only"""
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None
