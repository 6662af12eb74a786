"""
=============================================================================
FILESERVE CLI ENTRY POINT
=============================================================================

    python -m fileserve                       # 127.0.0.1:8080, serve "."
    python -m fileserve 3000                  # custom port
    python -m fileserve -b 0.0.0.0 -w 16      # all interfaces, 16 workers
    python -m fileserve -d ./public -t 10     # other root, 10s deadline
    python -m fileserve -q 100                # at most 100 queued conns

The installed console script ``fileserve`` runs the same main().

=============================================================================
"""

import argparse
import sys
from typing import List, Optional

from . import __version__
from .config import (
    DEFAULT_DIRECTORY,
    DEFAULT_HOST,
    DEFAULT_PORT,
    DEFAULT_TIMEOUT,
    DEFAULT_WORKERS,
    LOG_LEVELS,
    ServerConfig,
)
from .server import FileServer


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fileserve",
        description="Serve a directory tree over HTTP with a fixed pool of worker threads",
    )

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK
    # ─────────────────────────────────────────────────────────────────────
    parser.add_argument(
        "port",
        type=int,
        nargs="?",
        default=DEFAULT_PORT,
        help=f"Port to listen on (default: {DEFAULT_PORT})"
    )

    parser.add_argument(
        "--bind", "-b",
        default=DEFAULT_HOST,
        help=f"Address to bind to (default: {DEFAULT_HOST}, use 0.0.0.0 for all interfaces, :: for IPv6)"
    )

    # ─────────────────────────────────────────────────────────────────────
    # SERVING
    # ─────────────────────────────────────────────────────────────────────
    parser.add_argument(
        "--directory", "-d",
        default=DEFAULT_DIRECTORY,
        help="Root directory to serve (default: current directory)"
    )

    parser.add_argument(
        "--timeout", "-t",
        type=float,
        default=DEFAULT_TIMEOUT,
        help=f"Read and write deadline per connection in seconds (default: {DEFAULT_TIMEOUT:g})"
    )

    # ─────────────────────────────────────────────────────────────────────
    # THREADING
    # ─────────────────────────────────────────────────────────────────────
    parser.add_argument(
        "--workers", "-w",
        type=int,
        default=DEFAULT_WORKERS,
        help=f"Number of worker threads (default: {DEFAULT_WORKERS})"
    )

    parser.add_argument(
        "--queue-size", "-q",
        type=int,
        default=0,
        help="Maximum connections waiting for a worker, 0 = unbounded (default: 0)"
    )

    # ─────────────────────────────────────────────────────────────────────
    # MISC
    # ─────────────────────────────────────────────────────────────────────
    parser.add_argument(
        "--log-level", "-l",
        type=str.upper,
        choices=LOG_LEVELS,
        default="INFO",
        help="Logging level (default: INFO)"
    )

    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"fileserve {__version__}"
    )

    return parser


def build_config(argv: Optional[List[str]] = None) -> ServerConfig:
    """
    Parse ``argv`` into a validated ServerConfig.

    Invalid values exit with a usage error (status 2) via parser.error().
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    config = ServerConfig(
        host=args.bind,
        port=args.port,
        directory=args.directory,
        timeout=args.timeout,
        workers=args.workers,
        queue_size=args.queue_size,
        log_level=args.log_level,
    )

    try:
        config.validate()
    except ValueError as e:
        parser.error(str(e))

    return config


def main(argv: Optional[List[str]] = None):
    """Console entry point."""
    config = build_config(argv)

    try:
        server = FileServer(config)
    except ValueError as e:
        # Missing root directory
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    try:
        server.run()
    except OSError as e:
        print(f"Error: could not listen on {config.host}:{config.port}: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
