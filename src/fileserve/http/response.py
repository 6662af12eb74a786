"""
=============================================================================
HTTP RESPONSE BUILDER
=============================================================================

Renders a resolver outcome (or a failure) into the bytes written to the
socket.

=============================================================================
RESPONSE ANATOMY
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                     HTTP RESPONSE STRUCTURE                         │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   HTTP/1.1 200 Ok\r\n                        ← status line          │
    │   Content-Type: text/html; charset=utf-8\r\n ← always present       │
    │   Content-Disposition: attachment\r\n        ← file payloads only   │
    │   Content-Length: 5\r\n                      ← auto-calculated      │
    │   Connection: close\r\n                      ← one request per conn │
    │   \r\n                                       ← blank line           │
    │   hello                                      ← body bytes           │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
OUTCOME → RESPONSE
=============================================================================

    ┌──────────────────────┬───────────────────────────┬────────────────────┐
    │  Outcome             │  Status line              │  Body              │
    ├──────────────────────┼───────────────────────────┼────────────────────┤
    │  Directory listing   │  200 Ok                   │  listing HTML      │
    │  File                │  200 Ok  (+ attachment)   │  raw file bytes    │
    │  NotFoundError       │  404 Not Found            │  NOT_FOUND_PAGE    │
    │  ForbiddenError      │  403 Forbidden            │  FORBIDDEN_PAGE    │
    │  anything else       │  500 Server Error         │  SERVER_ERROR_PAGE │
    │  worker queue full   │  503 Service Unavailable  │  BUSY_PAGE         │
    └──────────────────────┴───────────────────────────┴────────────────────┘

The 500 page is fixed text. The real cause is logged by the caller and
never sent to the client.

=============================================================================
"""

from dataclasses import dataclass, field
from typing import Dict, Union

from ..errors import FetchError, ForbiddenError, NotFoundError
from .status_codes import HTTPStatus


HTML_CONTENT_TYPE = "text/html; charset=utf-8"

NOT_FOUND_PAGE = b"<h1> Error: File Not Found"
FORBIDDEN_PAGE = b"<h1> Error: Forbidden"
SERVER_ERROR_PAGE = b"<h1> 500 Internal Error"
BUSY_PAGE = b"<h1> 503 Server Busy"


@dataclass
class HTTPResponse:
    """
    Represents an HTTP response (status line, headers, body).

    Built once, serialized once with to_bytes(), then discarded.
    """

    status: HTTPStatus = HTTPStatus.OK
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    version: str = "HTTP/1.1"

    @property
    def status_line(self) -> str:
        """e.g. ``HTTP/1.1 404 Not Found``"""
        return f"{self.version} {int(self.status)} {self.status.phrase}"

    def set_header(self, name: str, value: str) -> "HTTPResponse":
        """Set a response header. Returns self for chaining."""
        self.headers[name] = value
        return self

    def to_bytes(self) -> bytes:
        """
        Serialize the response for ``socket.sendall()``.

        Content-Length and Connection are added unless already set. Headers
        keep their insertion order.
        """
        response_headers = dict(self.headers)
        response_headers.setdefault("Content-Length", str(len(self.body)))
        response_headers.setdefault("Connection", "close")

        lines = [self.status_line]
        for name, value in response_headers.items():
            lines.append(f"{name}: {value}")

        # Empty line separates headers from body
        lines.append("")

        header_bytes = "\r\n".join(lines).encode("latin-1") + b"\r\n"
        return header_bytes + self.body


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================

def build_response(status: HTTPStatus, body: Union[str, bytes]) -> HTTPResponse:
    """HTML response with the given status and body."""
    if isinstance(body, str):
        body = body.encode("utf-8")
    return HTTPResponse(status=status, headers={"Content-Type": HTML_CONTENT_TYPE}, body=body)


def directory_response(html: bytes) -> HTTPResponse:
    """200 with a rendered directory listing."""
    return build_response(HTTPStatus.OK, html)


def file_response(content: bytes) -> HTTPResponse:
    """
    200 with raw file content.

    ``Content-Disposition: attachment`` tells the client to save the body
    rather than render it.
    """
    return build_response(HTTPStatus.OK, content).set_header("Content-Disposition", "attachment")


def not_found() -> HTTPResponse:
    """404 page."""
    return build_response(HTTPStatus.NOT_FOUND, NOT_FOUND_PAGE)


def forbidden() -> HTTPResponse:
    """403 page for paths escaping the root directory."""
    return build_response(HTTPStatus.FORBIDDEN, FORBIDDEN_PAGE)


def server_error() -> HTTPResponse:
    """500 page. Carries no detail about the cause."""
    return build_response(HTTPStatus.INTERNAL_SERVER_ERROR, SERVER_ERROR_PAGE)


def service_unavailable() -> HTTPResponse:
    """503 page sent when the worker queue rejects a connection."""
    return build_response(HTTPStatus.SERVICE_UNAVAILABLE, BUSY_PAGE)


def error_response(error: FetchError) -> HTTPResponse:
    """Map a resolver failure onto its error page."""
    if isinstance(error, NotFoundError):
        return not_found()
    if isinstance(error, ForbiddenError):
        return forbidden()
    return server_error()
