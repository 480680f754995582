"""CLI command handling

Provides the serve and validate commands.
"""

from __future__ import annotations

import argparse
import logging
import sys

import structlog
from prometheus_client import CollectorRegistry, start_http_server

from proxysql_exporter.collectors import (
    build_query_digest_query,
    collect_connection_pool,
    collect_query_digest,
)
from proxysql_exporter.config import ExporterConfig
from proxysql_exporter.connection import ConnectionManager
from proxysql_exporter.exceptions import ConfigurationError, ExporterError
from proxysql_exporter.scheduler import CollectionScheduler
from proxysql_exporter.sink import MetricSink

logger = structlog.get_logger()


def configure_logging(debug: bool = False) -> None:
    """Configure structlog"""
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer() if debug else structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.DEBUG if debug else logging.INFO),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def load_config() -> ExporterConfig:
    """Load the config and set up logging from it

    Logging is configured with defaults first so config errors are rendered too.
    """
    configure_logging()
    config = ExporterConfig.from_env()
    configure_logging(config.debug)
    return config


def cmd_serve(args: argparse.Namespace) -> int:
    """Run the exporter until the process is stopped"""
    try:
        config = load_config()
        query = build_query_digest_query(config.include_patterns, config.exclude_patterns)
    except ConfigurationError as e:
        logger.error("Configuration error", error=str(e))
        return 1

    scheduler = CollectionScheduler(
        ConnectionManager(config.dsn),
        MetricSink(),
        query,
        interval=config.scrape_interval,
    )

    start_http_server(config.listen_port, addr=config.listen_address)
    logger.info("Listen on", address=config.listen_address, port=config.listen_port)

    try:
        scheduler.start().join()
    except KeyboardInterrupt:
        logger.info("Exporter stopped by user")
        return 0
    # the collector thread only returns by crashing
    return 1


def cmd_validate(args: argparse.Namespace) -> int:
    """Run both collectors once and print what they found"""
    try:
        config = load_config()
        query = build_query_digest_query(config.include_patterns, config.exclude_patterns)
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    print("Query digest SQL:")
    print(query)

    connections = ConnectionManager(config.dsn)
    sink = MetricSink(CollectorRegistry())
    try:
        engine = connections.acquire()
        backends = collect_connection_pool(engine, sink)
        print(f"✅ connection_pool: {backends} rows")
        digests = collect_query_digest(engine, sink, query)
        print(f"✅ query_digest: {digests} rows")
        return 0
    except ExporterError as e:
        print(f"❌ {e}", file=sys.stderr)
        return 1
    finally:
        connections.dispose()


def create_parser() -> argparse.ArgumentParser:
    """Build the CLI parser"""
    parser = argparse.ArgumentParser(
        prog="proxysql-exporter",
        description="Export ProxySQL runtime statistics as Prometheus metrics. "
        "Settings are read from the environment (MYSQL_DSN, SOCKET, ...).",
    )
    subparsers = parser.add_subparsers(dest="command", help="available commands")

    subparsers.add_parser("serve", help="collect statistics and serve /metrics (default)")
    subparsers.add_parser("validate", help="run one collection and report the row counts")

    return parser
