"""
=============================================================================
FILE SERVER
=============================================================================

Wires the pieces together:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   SocketServer (main thread)                                        │
    │        │ accept() → Connection                                       │
    │        ▼                                                             │
    │   FileServer._dispatch(conn)                                        │
    │        │ pool.submit()  ── queue full → Reject thread: 503 + close  │
    │        ▼                                                             │
    │   ThreadPool worker                                                  │
    │        │                                                             │
    │        ▼                                                             │
    │   ConnectionHandler.handle(conn) → close                            │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Usage:

    config = ServerConfig(port=8080, directory="./public")
    FileServer(config).run()   # blocks until Ctrl+C / SIGTERM

=============================================================================
"""

import logging
import threading
from typing import Optional, Tuple

from .config import ServerConfig
from .core import Connection, SocketServer, ThreadPool
from .errors import MissingFieldError, ReadError, WriteError
from .handlers import ConnectionHandler, PathResolver
from .http import service_unavailable


logger = logging.getLogger(__name__)


class FileServer:
    """
    Multithreaded static file server.

    Attributes:
        config: Validated server configuration.
        resolver: Shared PathResolver for the root directory.
        handler: Shared ConnectionHandler.
    """

    def __init__(self, config: Optional[ServerConfig] = None):
        """
        Raises:
            ValueError: Invalid configuration, or the root directory is
                        missing.
        """
        self.config = config or ServerConfig()
        self.config.validate()

        self.resolver = PathResolver(self.config.directory)
        self.handler = ConnectionHandler(self.config, resolver=self.resolver)

        self._thread_pool = ThreadPool(
            workers=self.config.workers,
            queue_size=self.config.queue_size,
        )
        self._socket_server = SocketServer(self.config)

    @property
    def address(self) -> Optional[Tuple[str, int]]:
        """Bound (host, port) while running, else None."""
        return self._socket_server.bound_address

    @property
    def stats(self) -> dict:
        return self._thread_pool.stats

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until the listener is accepting. False on timeout."""
        return self._socket_server.wait_until_ready(timeout)

    # =========================================================================
    # SERVER LIFECYCLE
    # =========================================================================

    def run(self):
        """
        Start the server (blocking).

        Raises:
            OSError: If the listening socket cannot be bound.
        """
        self._setup_logging()
        self._thread_pool.start()

        logger.info(
            f"Serving {self.resolver.root_dir} on {self.config.host}:{self.config.port} "
            f"with {self.config.workers} workers"
        )

        try:
            self._socket_server.start(self._dispatch)
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        finally:
            self._shutdown()

    def shutdown(self):
        """Ask the accept loop to stop. run() then returns."""
        self._socket_server.shutdown()

    def _setup_logging(self):
        level = self.config.log_level_value

        logging.basicConfig(
            level=level,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

        logging.getLogger("fileserve").setLevel(level)

    def _shutdown(self):
        logger.info("Shutting down server...")
        self._thread_pool.shutdown(wait=True, timeout=self.config.timeout)
        logger.info("Server stopped")

    # =========================================================================
    # CONNECTION HANDLING
    # =========================================================================

    def _dispatch(self, conn: Connection):
        """
        Queue a connection for a worker. Runs on the accept thread.

        A rejected connection is answered on its own short-lived thread.
        The 503 write and the graceful close can each wait on the client,
        and the accept thread must not.
        """
        if self._thread_pool.submit(self._process_connection, args=(conn,)):
            return

        logger.warning(f"[{conn.id}] Worker queue full, rejecting {conn.peer}")
        threading.Thread(
            target=self._reject_connection,
            args=(conn,),
            name=f"Reject-{conn.id}",
            daemon=True,
        ).start()

    def _reject_connection(self, conn: Connection):
        """Send the 503 page and close."""
        with conn:
            try:
                conn.send_response(service_unavailable().to_bytes())
            except WriteError as e:
                logger.debug(f"[{conn.id}] Could not send 503: {e}")

    def _process_connection(self, conn: Connection):
        """Handle one connection on a worker thread, then close it."""
        with conn:
            error = self.handler.handle(conn)

        if error is None:
            return

        # Clients hanging up or sending nothing are routine
        if isinstance(error, (ReadError, WriteError, MissingFieldError)):
            logger.debug(f"[{conn.id}] {type(error).__name__}: {error}")
        else:
            logger.warning(f"[{conn.id}] {type(error).__name__}: {error}")
