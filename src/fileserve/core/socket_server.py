"""
=============================================================================
TCP LISTENER
=============================================================================

Owns the listening socket: bind, listen, accept, and hand each accepted
socket to a callback. It knows nothing about HTTP.

=============================================================================
SOCKET LIFECYCLE
=============================================================================

    socket() → setsockopt() → bind() → listen() → accept() ... → close()

                    ┌───────────────────────┐
                    │   Listening Socket    │ ◄── Created once in start()
                    │   127.0.0.1:8080      │     Never sends/receives data
                    └───────────┬───────────┘
                                │ accept()
        ┌───────────────────────┼───────────────────────┐
        ▼                       ▼                       ▼
    ┌───────────┐         ┌───────────┐         ┌───────────┐
    │ Connection│         │ Connection│         │ Connection│  → callback
    └───────────┘         └───────────┘         └───────────┘

=============================================================================
SOCKET OPTIONS
=============================================================================

SO_REUSEADDR    Rebind immediately after a restart instead of waiting out
                TIME_WAIT ("Address already in use").

TCP_NODELAY     Set on each client socket. A response is written with one
                sendall(), Nagle buffering would only add latency.

timeout 1.0s    On the listening socket only, so accept() wakes up once a
                second to notice shutdown().

=============================================================================
ACCEPT FAILURES
=============================================================================

A failed accept() (EMFILE, ECONNABORTED, ...) affects one pending
connection, not the listener. It is logged and the loop keeps accepting.
Only shutdown() ends the loop.

=============================================================================
ADDRESS FAMILY
=============================================================================

The family comes from getaddrinfo(host), so the same code listens on IPv4
("127.0.0.1", "0.0.0.0") and IPv6 ("::1", "::") addresses.

=============================================================================
"""

import socket
import signal
import logging
import threading
from typing import Optional, Callable, Tuple

from ..config import ServerConfig
from .connection import Connection


logger = logging.getLogger(__name__)


class SocketServer:
    """
    TCP listener that turns accepted sockets into Connection objects.

    Usage:
        def on_connection(conn: Connection):
            ...

        server = SocketServer(config)
        server.start(on_connection)  # Blocks until shutdown()
    """

    def __init__(self, config: ServerConfig):
        """
        Args:
            config: Server configuration (host, port, backlog, timeout,
                    read_buffer_size).

        The socket is not created until start().
        """
        self.config = config

        self._socket: Optional[socket.socket] = None
        self._running = False
        self._ready = threading.Event()  # Set once listen() succeeded

        self._original_handlers: dict = {}

    @property
    def bound_address(self) -> Optional[Tuple[str, int]]:
        """
        Actual (host, port) of the listening socket, or None when not
        listening. Differs from the configured port when port 0 asked the OS
        for a free one.
        """
        if self._socket is None:
            return None
        return self._socket.getsockname()[:2]

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until the socket is listening. Returns False on timeout."""
        return self._ready.wait(timeout)

    def _create_socket(self) -> socket.socket:
        """
        Create and bind the listening socket.

        Raises:
            OSError: If the host does not resolve or the address cannot be
                     bound (socket.gaierror is an OSError).
        """
        family, socktype, proto, _, sockaddr = socket.getaddrinfo(
            self.config.host,
            self.config.port,
            type=socket.SOCK_STREAM,
            flags=socket.AI_PASSIVE,
        )[0]

        sock = socket.socket(family, socktype, proto)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind(sockaddr)
        except OSError:
            sock.close()
            raise

        # Periodic wakeup so the accept loop sees shutdown()
        sock.settimeout(1.0)

        return sock

    def _setup_signals(self):
        """
        Install SIGTERM/SIGINT handlers that call shutdown().

        signal.signal() only works in the main thread. When the server runs
        in a background thread (tests, embedding) the caller owns signals.
        """
        if threading.current_thread() is not threading.main_thread():
            return

        def shutdown_handler(signum, frame):
            signal_name = signal.Signals(signum).name
            logger.info(f"Received {signal_name}, initiating shutdown...")
            self.shutdown()

        self._original_handlers[signal.SIGTERM] = signal.signal(signal.SIGTERM, shutdown_handler)
        self._original_handlers[signal.SIGINT] = signal.signal(signal.SIGINT, shutdown_handler)

    def _restore_signals(self):
        for sig, handler in self._original_handlers.items():
            signal.signal(sig, handler)
        self._original_handlers.clear()

    def start(self, connection_handler: Callable[[Connection], None]):
        """
        Bind, listen and run the accept loop.

        This method BLOCKS until shutdown() is called.

        Args:
            connection_handler: Called on the accept thread with each new
                                Connection. Must not block (the file server
                                only enqueues it).

        Raises:
            OSError: If the address cannot be bound.
        """
        try:
            self._socket = self._create_socket()
        except OSError as e:
            logger.error(f"Failed to bind to {self.config.host}:{self.config.port}: {e}")
            raise

        self._socket.listen(self.config.backlog)
        self._running = True

        self._setup_signals()

        host, port = self.bound_address
        logger.info(f"Server listening on {host}:{port}")
        self._ready.set()

        try:
            self._accept_loop(connection_handler)
        finally:
            self._cleanup()

    def _accept_loop(self, connection_handler: Callable[[Connection], None]):
        """
        ┌─────────────────────────────────────────────────────────────────┐
        │   while self._running:                                           │
        │       accept()          ── timeout 1s → check flag, loop         │
        │       Connection(...)   ── deadline + read size from config      │
        │       connection_handler(conn)                                   │
        └─────────────────────────────────────────────────────────────────┘
        """
        while self._running:
            try:
                client_socket, client_address = self._socket.accept()
            except socket.timeout:
                continue
            except OSError as e:
                if not self._running:
                    break  # Listener closed by shutdown
                logger.error(f"Accept error: {e}")
                continue

            try:
                client_socket.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
            except OSError:
                pass

            logger.debug(f"Accepted connection from {client_address[0]}:{client_address[1]}")

            conn = Connection(
                socket=client_socket,
                address=client_address,
                timeout=self.config.timeout,
                buffer_size=self.config.read_buffer_size,
            )

            connection_handler(conn)

    def shutdown(self):
        """
        Stop the accept loop. Safe to call repeatedly and from any thread.

        The loop notices within one accept() timeout.
        """
        if self._running:
            logger.info("Shutting down socket server...")
        self._running = False

    def _cleanup(self):
        self._restore_signals()

        if self._socket:
            try:
                self._socket.close()
            except OSError:
                pass
            self._socket = None

        self._ready.clear()
        logger.info("Socket server stopped")
