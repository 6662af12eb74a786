"""
=============================================================================
CONNECTION MANAGEMENT
=============================================================================

Wraps an accepted client socket with the two I/O operations a one-shot
file server needs: ONE bounded read and ONE write.

=============================================================================
TCP IS A BYTE STREAM, NOT A MESSAGE PROTOCOL!
=============================================================================

A single recv() may return half a request line. So we keep receiving until
one of these happens:

    ┌─────────────────────────────────────────────────────────────────┐
    │  STOP READING WHEN...                                            │
    ├─────────────────────────────────────────────────────────────────┤
    │  1. The header terminator (\\r\\n\\r\\n) has arrived                  │
    │  2. `limit` bytes have arrived (the rest is never read)          │
    │  3. The client closed its side (recv() returned b"")             │
    │  4. The deadline expired            → ReadError                  │
    └─────────────────────────────────────────────────────────────────┘

Whatever arrived is handed to the parser, which copes with truncation.

=============================================================================
DEADLINES
=============================================================================

A slow or malicious client must not pin a worker thread forever. `timeout`
is a deadline for the WHOLE read (not per recv() call) and, separately,
for the whole write:

    read_request()                 send_response()
    ├── recv()  ┐                  └── sendall()  ← socket timeout is the
    ├── recv()  ├ ≤ timeout total                   total send duration
    └── recv()  ┘                                   (Python ≥ 3.5)

timeout=None disables both deadlines.

=============================================================================
"""

import socket
import time
import logging
from enum import Enum
from dataclasses import dataclass, field
from typing import Optional
import uuid

from ..errors import ReadError, WriteError


logger = logging.getLogger(__name__)

HEADER_TERMINATORS = (b"\r\n\r\n", b"\n\n")


class ConnectionState(Enum):
    """
    Connection lifecycle states.

    Tracked for logging and so close() is idempotent.
    """
    NEW = "new"              # Just accepted, haven't read anything yet
    READING = "reading"      # Reading the request prefix
    PROCESSING = "processing"  # Parsing and resolving
    WRITING = "writing"      # Sending the response
    CLOSING = "closing"      # Shutdown sequence in progress
    CLOSED = "closed"        # Socket released


@dataclass
class Connection:
    """
    Represents one accepted client connection.

    Attributes:
        socket: The client socket.
        address: Client's address tuple, (ip, port) for IPv4.
        id: Short unique identifier used in log lines.
        state: Current connection state.
        timeout: Read deadline and write deadline in seconds (None = none).
        buffer_size: Maximum bytes requested per recv() call.
    """

    # Required parameters
    socket: socket.socket
    address: tuple

    # Generated/default parameters
    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    state: ConnectionState = ConnectionState.NEW
    created_at: float = field(default_factory=time.time)

    # Configuration (passed from ServerConfig)
    timeout: Optional[float] = 30.0
    buffer_size: int = 1024

    def __post_init__(self):
        # Blocking mode; deadlines are applied per operation below
        self.socket.setblocking(True)

    @property
    def peer(self) -> str:
        """Client address formatted as ``ip:port`` for logs."""
        return f"{self.address[0]}:{self.address[1]}" if len(self.address) >= 2 else str(self.address)

    @property
    def age(self) -> float:
        """Seconds since the connection was accepted."""
        return time.time() - self.created_at

    # =========================================================================
    # READING
    # =========================================================================

    def read_request(self, limit: int) -> bytes:
        """
        Read at most ``limit`` bytes of the request.

        Returns:
            The bytes received (possibly empty, possibly truncated).

        Raises:
            ReadError: On timeout or socket error.
        """
        self.state = ConnectionState.READING
        deadline = self._deadline()
        buffer = b""

        try:
            while len(buffer) < limit and not _has_header_end(buffer):
                self._apply_deadline(deadline)
                chunk = self.socket.recv(min(self.buffer_size, limit - len(buffer)))
                if not chunk:
                    break  # Client closed its side
                buffer += chunk
        except socket.timeout as e:
            raise ReadError(f"Request read timed out after {self.timeout}s") from e
        except OSError as e:
            raise ReadError(f"Request read failed: {e}") from e

        return buffer[:limit]

    # =========================================================================
    # WRITING
    # =========================================================================

    def send_response(self, data: bytes) -> None:
        """
        Send the full response with one sendall().

        Raises:
            WriteError: If the client went away or the deadline expired.
                        There is no retry.
        """
        self.state = ConnectionState.WRITING

        try:
            self.socket.settimeout(self.timeout)
            self.socket.sendall(data)
        except OSError as e:
            # socket.timeout, BrokenPipeError, ConnectionResetError, ...
            raise WriteError(f"Send failed: {e}") from e

    # =========================================================================
    # CLOSING
    # =========================================================================

    def close(self):
        """
        Close the connection gracefully.

        1. shutdown(SHUT_WR) sends FIN so the client sees the end of body
        2. drain whatever the client still sends (unread headers/body),
           otherwise the kernel may answer with RST and the client can
           lose the response
        3. close() releases the file descriptor
        """
        if self.state == ConnectionState.CLOSED:
            return  # Already closed

        self.state = ConnectionState.CLOSING

        try:
            self.socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass  # Already disconnected

        try:
            self.socket.settimeout(0.5)  # Quick timeout
            while self.socket.recv(1024):
                pass
        except OSError:
            pass  # Includes socket.timeout; we're closing anyway

        try:
            self.socket.close()
        except OSError:
            pass

        self.state = ConnectionState.CLOSED
        logger.debug(f"[{self.id}] Connection closed after {self.age:.3f}s")

    # =========================================================================
    # DEADLINE HELPERS
    # =========================================================================

    def _deadline(self) -> Optional[float]:
        if self.timeout is None:
            return None
        return time.monotonic() + self.timeout

    def _apply_deadline(self, deadline: Optional[float]) -> None:
        if deadline is None:
            self.socket.settimeout(None)
            return
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise socket.timeout("deadline expired")
        self.socket.settimeout(remaining)

    # =========================================================================
    # CONTEXT MANAGER
    # =========================================================================

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Ensure the connection is closed."""
        self.close()
        return False  # Don't suppress exceptions


def _has_header_end(buffer: bytes) -> bool:
    return any(marker in buffer for marker in HEADER_TERMINATORS)
