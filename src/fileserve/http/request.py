"""
=============================================================================
HTTP REQUEST PARSER
=============================================================================

Turns the bounded prefix read from a socket into a structured HTTPRequest.

=============================================================================
WE ONLY EVER SEE A PREFIX
=============================================================================

The connection hands us AT MOST `read_buffer_size` bytes (1 KB by default).
A large request is cut off somewhere, so the parser works like a streaming
HTTP parser: it records each request-line field as soon as the field is
complete and simply stops when the bytes run out.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                      PARTIAL PARSE RESULTS                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Bytes received                     method   path      version     │
    │   ─────────────────────────────────  ──────   ───────   ───────     │
    │   b""                                None     None      None        │
    │   b"GET"                             None     None      None        │
    │   b"GET /a.txt"                      "GET"    None      None        │
    │   b"GET /a.txt HTTP/1.1"             "GET"    "/a.txt"  1           │
    │   b"GET /a.txt HTTP/1.1\\r\\nHost: ex"   "GET"    "/a.txt"  1           │
    │   b"GET /a.txt HTTP/1.1\\r\\n\\r\\n"       "GET"    "/a.txt"  1  complete │
    │                                                                      │
    │   b"G@T / HTTP/1.1\\r\\n"               ParseError (bad method token) │
    │   b"GET / HTTP/2.0\\r\\n"               ParseError (bad version)      │
    │   b"GET / HTTP/1.1\\r\\nno colon\\r\\n"   ParseError (bad header line)  │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

A truncated request is therefore NOT an error by itself. Only bytes that can
never become valid HTTP are. Whether the fields that did arrive are enough
to act on is decided by HTTPRequest.fields(), which raises
MissingFieldError for the first absent field (version, then method, then
path).

The parser does not judge the path (safety is the resolver's job) or the
method (every method is served the same way).

=============================================================================
"""

import string
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

from ..errors import HttpField, MissingFieldError, ParseError


# RFC 7230 tchar
TOKEN_CHARS = frozenset("!#$%&'*+-.^_`|~" + string.digits + string.ascii_letters)

SUPPORTED_VERSIONS = ("HTTP/1.0", "HTTP/1.1")


def _is_token(value: str) -> bool:
    return bool(value) and all(ch in TOKEN_CHARS for ch in value)


def _is_target(value: str) -> bool:
    # Visible characters only: no spaces, no control bytes.
    return bool(value) and all(ord(ch) > 0x20 and ord(ch) != 0x7F for ch in value)


@dataclass
class HTTPRequest:
    """
    Represents a (possibly partial) parsed HTTP request.

    Attributes:
        method:   Request method token, or None if it never arrived.
        path:     Request target exactly as the client sent it (untrusted).
        version:  HTTP minor version (0 or 1), or None.
        headers:  Header name (lowercase) → value.
        complete: True once the blank line ending the headers was seen.
    """

    method: Optional[str] = None
    path: Optional[str] = None
    version: Optional[int] = None
    headers: Dict[str, str] = field(default_factory=dict)
    complete: bool = False

    def fields(self) -> Tuple[int, str, str]:
        """
        Return ``(version, method, path)`` or raise MissingFieldError.

        All three are required. A missing field is an error in its own
        right, never replaced by a default.
        """
        if self.version is None:
            raise MissingFieldError(HttpField.VERSION)
        if self.method is None:
            raise MissingFieldError(HttpField.METHOD)
        if self.path is None:
            raise MissingFieldError(HttpField.PATH)
        return self.version, self.method, self.path

    def get_header(self, name: str, default: str = "") -> str:
        """Case-insensitive header lookup."""
        return self.headers.get(name.lower(), default)


class RequestParser:
    """
    Parses raw HTTP/1.x request bytes into HTTPRequest objects.

    ==========================================================================
    PARSER STEPS
    ==========================================================================

        Raw bytes (bounded prefix)
              │
              ▼
        1. Decode as ISO-8859-1 (every byte maps to one character)
              │
              ▼
        2. Skip leading empty lines
              │
              ▼
        3. Request line: METHOD SP TARGET SP HTTP/1.x
              │  each field recorded once complete
              │  invalid token → ParseError
              ▼
        4. Header lines until the empty line
              │  "name: value", name must be a token
              │  more than max_headers → ParseError
              ▼
        HTTPRequest

    ==========================================================================
    """

    def __init__(self, max_headers: int = 64):
        """
        Args:
            max_headers: Maximum number of header lines accepted. More
                         headers than this is treated as a malformed request.
        """
        self.max_headers = max_headers

    def parse(self, data: bytes) -> HTTPRequest:
        """
        Parse a request prefix.

        Args:
            data: Bytes read from the socket (may be truncated).

        Returns:
            HTTPRequest with every field that fully arrived.

        Raises:
            ParseError: If the bytes are not valid HTTP/1.x syntax.
        """
        # ISO-8859-1 never fails to decode, so byte values survive intact
        # for validation below.
        text = data.decode("iso-8859-1").lstrip("\r\n")
        request = HTTPRequest()

        line_end = text.find("\n")
        if line_end == -1:
            # Request line itself is still incomplete
            self._parse_request_line(text.rstrip("\r"), request, terminated=False)
            return request

        line = text[:line_end]
        if line.endswith("\r"):
            line = line[:-1]
        self._parse_request_line(line, request, terminated=True)

        request.headers, request.complete = self._parse_headers(text[line_end + 1:])
        return request

    def _parse_request_line(self, line: str, request: HTTPRequest, terminated: bool) -> None:
        """
        Fill method, path and version from the request line.

        ``terminated`` tells whether the line ending was seen. On an
        unterminated line the last token may still be growing, so it is only
        checked for being a valid prefix.
        """
        parts = line.split(" ")

        # ---------------------------------------------------------------------
        # Method: complete once followed by a space
        # ---------------------------------------------------------------------
        method = parts[0]
        if len(parts) == 1:
            if terminated or (method and not _is_token(method)):
                raise ParseError(f"Invalid request line: {line!r}")
            return
        if not _is_token(method):
            raise ParseError(f"Invalid method: {method!r}")
        request.method = method

        # ---------------------------------------------------------------------
        # Target: complete once followed by a space
        # ---------------------------------------------------------------------
        target = parts[1]
        if len(parts) == 2:
            if terminated or (target and not _is_target(target)):
                raise ParseError(f"Invalid request line: {line!r}")
            return
        if len(parts) > 3 or not _is_target(target):
            raise ParseError(f"Invalid request target in: {line!r}")
        request.path = target

        # ---------------------------------------------------------------------
        # Version: complete once all eight characters are there
        # ---------------------------------------------------------------------
        request.version = self._parse_version(parts[2], terminated)

    def _parse_version(self, token: str, terminated: bool) -> Optional[int]:
        if token in SUPPORTED_VERSIONS:
            return int(token[-1])
        if not terminated and any(v.startswith(token) for v in SUPPORTED_VERSIONS):
            return None
        raise ParseError(f"Unsupported HTTP version: {token!r}")

    def _parse_headers(self, text: str) -> Tuple[Dict[str, str], bool]:
        """
        Parse header lines.

        Returns:
            (headers, complete). ``complete`` is True when the empty line
            ending the header block was reached. A trailing line without a
            line ending is dropped, since it was cut off by the read limit.
        """
        headers: Dict[str, str] = {}
        count = 0

        while True:
            line_end = text.find("\n")
            if line_end == -1:
                return headers, False

            line, text = text[:line_end], text[line_end + 1:]
            if line.endswith("\r"):
                line = line[:-1]
            if not line:
                return headers, True

            count += 1
            if count > self.max_headers:
                raise ParseError(f"Too many headers (max {self.max_headers})")

            name, sep, value = line.partition(":")
            if not sep or not _is_token(name):
                raise ParseError(f"Invalid header line: {line!r}")

            name = name.lower()
            value = value.strip(" \t")
            # Repeated headers combine into one comma-separated value
            if name in headers:
                headers[name] += ", " + value
            else:
                headers[name] = value


def parse_request(data: bytes, max_headers: int = 64) -> HTTPRequest:
    """
    Convenience function: parse ``data`` with a fresh RequestParser.
    """
    return RequestParser(max_headers=max_headers).parse(data)
