#!/usr/bin/env python3
"""ProxySQL exporter main entry point

Usage:
    MYSQL_DSN=... SOCKET=:9105 uv run python -m proxysql_exporter
    uv run python -m proxysql_exporter validate
"""

from __future__ import annotations

import sys

from proxysql_exporter.cli import cmd_serve, cmd_validate, create_parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point"""
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command == "validate":
        return cmd_validate(args)
    return cmd_serve(args)


if __name__ == "__main__":
    sys.exit(main())
