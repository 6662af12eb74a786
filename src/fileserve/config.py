"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

Centralized configuration for the file server.

=============================================================================
WHY A FROZEN DATACLASS?
=============================================================================

The configuration is created ONCE at startup (usually by the CLI in
__main__.py) and then shared by the accept loop and every worker thread.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    CONFIGURATION LIFECYCLE                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   argparse ──► ServerConfig(...) ──► validate() ──► FileServer      │
    │                                                        │             │
    │                      ┌─────────────────┬───────────────┤             │
    │                      ▼                 ▼               ▼             │
    │                 SocketServer       ThreadPool    ConnectionHandler   │
    │                                                                      │
    │   frozen=True: no thread can mutate it, so no locking is needed.    │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

There is exactly ONE set of defaults, defined below. The CLI uses these
same values for its own defaults instead of repeating literals.

=============================================================================
"""

import logging
from dataclasses import dataclass
from typing import Optional


DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8080
DEFAULT_DIRECTORY = "."
DEFAULT_WORKERS = 10
DEFAULT_TIMEOUT = 30.0
DEFAULT_READ_BUFFER_SIZE = 1024

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class ServerConfig:
    """
    Configuration for the file server.

    =========================================================================
    CONFIGURATION GROUPS
    =========================================================================

    NETWORK SETTINGS
    - host, port, backlog

    REQUEST HANDLING
    - directory, read_buffer_size, timeout

    THREADING SETTINGS
    - workers, queue_size

    LOGGING
    - log_level

    =========================================================================
    """

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    host: str = DEFAULT_HOST
    """
    The IP address to bind to.
    - "127.0.0.1" - Localhost only (default)
    - "0.0.0.0" - All network interfaces
    - "::1" / "::" - IPv6 loopback / all IPv6 interfaces
    """

    port: int = DEFAULT_PORT
    """
    The port number to listen on. 0 lets the OS pick a free port
    (handy in tests, see SocketServer.bound_address).
    """

    backlog: int = 128
    """Maximum number of connections queued by the kernel before accept()."""

    # ─────────────────────────────────────────────────────────────────────
    # REQUEST HANDLING
    # ─────────────────────────────────────────────────────────────────────

    directory: str = DEFAULT_DIRECTORY
    """Root directory all request paths are resolved against."""

    read_buffer_size: int = DEFAULT_READ_BUFFER_SIZE
    """
    Upper bound on the request bytes read from a connection.
    Longer requests are parsed on the truncated prefix only.
    """

    timeout: Optional[float] = DEFAULT_TIMEOUT
    """
    Per-connection deadline in seconds for the request read and for the
    response write. None = wait forever (a stalled client pins a worker).
    """

    # ─────────────────────────────────────────────────────────────────────
    # THREAD POOL SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    workers: int = DEFAULT_WORKERS
    """Number of worker threads. Fixed for the lifetime of the server."""

    queue_size: int = 0
    """
    Maximum number of accepted connections waiting for a worker.
    0 = unbounded. When bounded and full, new connections get a 503.
    """

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"
    """Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)."""

    @property
    def log_level_value(self) -> int:
        """Numeric logging level for logging.basicConfig()."""
        return getattr(logging, self.log_level.upper(), logging.INFO)

    def validate(self) -> None:
        """
        Validate configuration values.

        Called once at startup so a bad value fails immediately instead of
        surfacing inside a worker thread.
        """
        if not 0 <= self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535.")

        if self.workers < 1:
            raise ValueError("workers must be >= 1")

        if self.queue_size < 0:
            raise ValueError("queue_size must be >= 0")

        if self.backlog < 1:
            raise ValueError("backlog must be >= 1")

        if self.read_buffer_size < 64:
            raise ValueError("read_buffer_size must be >= 64")

        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be > 0")

        if self.log_level.upper() not in LOG_LEVELS:
            raise ValueError(f"Unknown log level: {self.log_level}")
