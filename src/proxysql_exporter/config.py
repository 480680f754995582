"""Configuration management

Reads the exporter settings from environment variables.
Supports the Docker Secrets pattern (``_FILE`` suffix) for the DSN.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

import structlog

from proxysql_exporter.exceptions import ConfigurationError

logger = structlog.get_logger()

DEFAULT_SCRAPE_INTERVAL = 9.0
DEBUG_VALUES = ("1", "true", "enabled")


def get_env_or_file(name: str, default: str = "") -> str:
    """Read a value from the environment or from the file named by ``<name>_FILE``"""
    file_path = os.getenv(f"{name}_FILE")
    if file_path and Path(file_path).exists():
        return Path(file_path).read_text().strip()
    return os.getenv(name, default)


def parse_pattern_list(name: str) -> list[str]:
    """Split a comma separated pattern variable

    An unset variable means no filtering. A set variable is split as-is,
    so empty entries survive and are rejected later by the filter compiler.
    """
    value = os.getenv(name)
    if value is None:
        logger.info("Pattern variable not set", variable=name)
        return []
    return value.split(",")


def parse_listen_address(socket: str) -> tuple[str, int]:
    """Split ``[host]:port`` into an address and a port

    An empty host binds every interface, as ``:9105`` does for Go's net/http.

    Raises:
        ConfigurationError: if the port is missing or not a valid number
    """
    host, sep, port = socket.rpartition(":")
    if not sep:
        raise ConfigurationError(f"SOCKET must look like [host]:port, got {socket!r}")
    try:
        port_number = int(port)
    except ValueError as e:
        raise ConfigurationError(f"SOCKET port is not a number: {port!r}") from e
    if not 0 < port_number < 65536:
        raise ConfigurationError(f"SOCKET port out of range: {port_number}")
    return host.strip("[]") or "0.0.0.0", port_number


@dataclass(frozen=True)
class ExporterConfig:
    """Exporter settings"""

    dsn: str
    listen_address: str = "0.0.0.0"
    listen_port: int = 9105
    include_patterns: list[str] = field(default_factory=list)
    exclude_patterns: list[str] = field(default_factory=list)
    scrape_interval: float = DEFAULT_SCRAPE_INTERVAL
    debug: bool = False

    @classmethod
    def from_env(cls) -> ExporterConfig:
        """Load every setting from the environment

        Raises:
            ConfigurationError: if a required variable is missing or malformed
        """
        dsn = get_env_or_file("MYSQL_DSN")
        if not dsn:
            raise ConfigurationError("MYSQL_DSN isn't set")

        socket = os.getenv("SOCKET", "")
        if not socket:
            raise ConfigurationError("SOCKET isn't set")
        address, port = parse_listen_address(socket)

        raw_interval = os.getenv("SCRAPE_INTERVAL")
        interval = DEFAULT_SCRAPE_INTERVAL
        if raw_interval:
            try:
                interval = float(raw_interval)
            except ValueError as e:
                raise ConfigurationError(f"SCRAPE_INTERVAL is not a number: {raw_interval!r}") from e
            if interval <= 0:
                raise ConfigurationError(f"SCRAPE_INTERVAL must be positive, got {interval}")

        return cls(
            dsn=dsn,
            listen_address=address,
            listen_port=port,
            include_patterns=parse_pattern_list("INCLUDE_QUERY_PATTERN"),
            exclude_patterns=parse_pattern_list("EXCLUDE_QUERY_PATTERN"),
            scrape_interval=interval,
            debug=os.getenv("DEBUG", "").lower() in DEBUG_VALUES,
        )
