"""
=============================================================================
HTTP STATUS CODES
=============================================================================

The handful of status codes a static file server ever sends, with the
EXACT reason phrases that go on the wire.

    HTTP/1.1 200 Ok
             ─── ──
              │   │
              │   └── Reason phrase (from _STATUS_PHRASES below)
              └────── Status code

The phrases are part of the server's external contract. Clients and test
suites compare them byte for byte, so they are deliberately NOT the RFC
spellings ("Ok" rather than "OK", "Server Error" rather than
"Internal Server Error").

=============================================================================
"""

from enum import IntEnum


class HTTPStatus(IntEnum):
    """
    HTTP status codes and reason phrases.

    IntEnum, so codes compare and format as integers:

        >>> HTTPStatus.NOT_FOUND == 404
        True
        >>> HTTPStatus.NOT_FOUND.phrase
        'Not Found'
    """

    OK = 200                     # Directory listing or file content
    FORBIDDEN = 403              # Path escapes the root directory
    NOT_FOUND = 404              # Nothing at the resolved path
    INTERNAL_SERVER_ERROR = 500  # Unreadable path, malformed request, ...
    SERVICE_UNAVAILABLE = 503    # Worker queue full

    @property
    def phrase(self) -> str:
        """Reason phrase used in the status line."""
        return _STATUS_PHRASES[self]


_STATUS_PHRASES = {
    HTTPStatus.OK: "Ok",
    HTTPStatus.FORBIDDEN: "Forbidden",
    HTTPStatus.NOT_FOUND: "Not Found",
    HTTPStatus.INTERNAL_SERVER_ERROR: "Server Error",
    HTTPStatus.SERVICE_UNAVAILABLE: "Service Unavailable",
}
