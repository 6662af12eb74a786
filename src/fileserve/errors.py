"""
=============================================================================
ERROR TAXONOMY
=============================================================================

Every failure in fileserve is local to ONE connection. Nothing here is ever
allowed to reach the accept loop or another worker.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                         FAILURE FAMILIES                            │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   HttpError                  (connection-level, returned by handler)│
    │   ├── ReadError              socket read failed / timed out         │
    │   ├── ParseError             malformed request bytes                │
    │   ├── MissingFieldError      request line incomplete                │
    │   │       .field = VERSION | METHOD | PATH                          │
    │   └── WriteError             socket write failed                    │
    │                                                                      │
    │   FetchError                 (resolver-level, turned into a page)   │
    │   ├── NotFoundError          → 404                                  │
    │   ├── ForbiddenError         → 403 (path escapes the root)          │
    │   └── FetchIOError           → 500 (cause is logged, never sent)    │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

from enum import Enum
from typing import Optional


class HttpField(Enum):
    """Request-line fields that must be present for a request to be served."""
    VERSION = "version"
    METHOD = "method"
    PATH = "path"


# =============================================================================
# CONNECTION-LEVEL ERRORS
# =============================================================================

class HttpError(Exception):
    """
    Base class for failures while handling a single connection.

    The connection handler returns these as values instead of raising them,
    so a worker thread can log the outcome and move on to the next task.
    """


class ReadError(HttpError):
    """Reading the request from the socket failed (reset, timeout, ...)."""


class ParseError(HttpError):
    """The request bytes are not valid HTTP/1.x syntax."""


class MissingFieldError(HttpError):
    """
    The request is syntactically valid so far but a request-line field never
    arrived (e.g. the client sent ``GET /index.html`` and nothing else).
    """

    def __init__(self, field: HttpField):
        super().__init__(f"Missing request field: {field.value}")
        self.field = field


class WriteError(HttpError):
    """Sending the response failed. Never retried."""


# =============================================================================
# RESOLVER-LEVEL ERRORS
# =============================================================================

class FetchError(Exception):
    """Base class for failures mapping a request path onto the filesystem."""


class NotFoundError(FetchError):
    """The resolved path does not exist."""


class ForbiddenError(FetchError):
    """The resolved path lies outside the configured root directory."""


class FetchIOError(FetchError):
    """
    The path exists but could not be read or listed.

    The underlying ``OSError`` is kept in ``cause`` for logging. It is never
    echoed back to the client.
    """

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause
