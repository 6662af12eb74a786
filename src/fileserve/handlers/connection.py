"""
=============================================================================
CONNECTION HANDLER
=============================================================================

Runs the whole life of one connection on a worker thread: one read, one
parse, one resolve, one write.

=============================================================================
PIPELINE
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   conn.read_request(limit)    ── ReadError ─────────┐               │
    │          │                                           │               │
    │          ▼                                           │               │
    │   parser.parse(data)          ── ParseError ────────┤               │
    │          │                                           │               │
    │          ▼                                           ▼               │
    │   request.fields()            ── MissingFieldError → 500 page       │
    │          │                                   (one attempt, then      │
    │          ▼                                    return the error)      │
    │   access log line                                                    │
    │          │                                                           │
    │          ▼                                                           │
    │   resolver.resolve(path)      ── NotFound → 404                     │
    │          │                    ── Forbidden → 403                    │
    │          │                    ── FetchIOError → 500 (cause logged)  │
    │          ▼                                                           │
    │   conn.send_response(bytes)   ── WriteError (no retry)              │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

handle() never raises. It returns the HttpError that ended the connection
early, or None. Closing the socket is the caller's job.

=============================================================================
"""

import logging
from typing import Optional

from ..config import ServerConfig
from ..core.connection import Connection, ConnectionState
from ..errors import (
    FetchError,
    FetchIOError,
    ForbiddenError,
    HttpError,
    WriteError,
)
from ..http import (
    RequestParser,
    directory_response,
    error_response,
    file_response,
    server_error,
)
from .static import ContentKind, PathResolver


logger = logging.getLogger(__name__)
access_logger = logging.getLogger("fileserve.access")


class ConnectionHandler:
    """
    Serves a single request per connection.

    One instance is shared by all workers. It keeps no per-connection state.
    """

    def __init__(
        self,
        config: ServerConfig,
        resolver: Optional[PathResolver] = None,
        parser: Optional[RequestParser] = None,
    ):
        self.config = config
        self.resolver = resolver or PathResolver(config.directory)
        self.parser = parser or RequestParser()

    def handle(self, conn: Connection) -> Optional[HttpError]:
        """
        Read, parse, resolve and answer one request.

        Args:
            conn: An accepted connection. Left open.

        Returns:
            None on success, otherwise the HttpError that ended the exchange.
        """
        try:
            return self._handle(conn)
        except Exception as e:
            logger.exception(f"[{conn.id}] Unexpected error handling {conn.peer}: {e}")
            error = HttpError(f"Unexpected error: {e}")
            return self._send_server_error(conn, error)

    def _handle(self, conn: Connection) -> Optional[HttpError]:
        # ─────────────────────────────────────────────────────────────────
        # READ + PARSE
        # ─────────────────────────────────────────────────────────────────
        try:
            data = conn.read_request(self.config.read_buffer_size)
            conn.state = ConnectionState.PROCESSING
            request = self.parser.parse(data)
            version, method, path = request.fields()
        except HttpError as e:
            logger.debug(f"[{conn.id}] Bad request from {conn.peer}: {e}")
            return self._send_server_error(conn, e)

        access_logger.info(f"Request: HTTP/1.{version} {method} {path} from {conn.peer}")

        # ─────────────────────────────────────────────────────────────────
        # RESOLVE
        # ─────────────────────────────────────────────────────────────────
        try:
            content = self.resolver.resolve(path)
        except FetchError as e:
            self._log_fetch_error(conn, path, e)
            response = error_response(e)
        else:
            if content.kind is ContentKind.DIRECTORY:
                response = directory_response(content.body)
            else:
                response = file_response(content.body)

        # ─────────────────────────────────────────────────────────────────
        # WRITE
        # ─────────────────────────────────────────────────────────────────
        try:
            conn.send_response(response.to_bytes())
        except WriteError as e:
            return e

        logger.debug(f"[{conn.id}] {response.status_line} ({len(response.body)} bytes) to {conn.peer}")
        return None

    def _send_server_error(self, conn: Connection, error: HttpError) -> HttpError:
        """Single attempt at the 500 page. Returns ``error`` either way."""
        try:
            conn.send_response(server_error().to_bytes())
        except WriteError as e:
            logger.debug(f"[{conn.id}] Could not send error page: {e}")
        return error

    @staticmethod
    def _log_fetch_error(conn: Connection, path: str, error: FetchError) -> None:
        if isinstance(error, FetchIOError):
            logger.error(f"[{conn.id}] I/O error serving {path!r}: {error} (cause: {error.cause})")
        elif isinstance(error, ForbiddenError):
            logger.info(f"[{conn.id}] Forbidden {path!r} for {conn.peer}")
        else:
            logger.debug(f"[{conn.id}] Not found {path!r}")
