"""
=============================================================================
HTTP PROTOCOL LAYER
=============================================================================

    request.py       Bytes → HTTPRequest (partial-prefix aware)
    response.py      Outcome → HTTPResponse → bytes
    status_codes.py  The status codes and exact reason phrases we send

=============================================================================
"""

from .request import HTTPRequest, RequestParser, parse_request
from .response import (
    HTTPResponse,
    build_response,
    directory_response,
    file_response,
    not_found,         # 404 Not Found
    forbidden,         # 403 Forbidden
    server_error,      # 500 Server Error
    service_unavailable,  # 503 Service Unavailable
    error_response,
)
from .status_codes import HTTPStatus

__all__ = [
    # Request parsing
    "HTTPRequest",
    "RequestParser",
    "parse_request",

    # Response building
    "HTTPResponse",
    "build_response",
    "directory_response",
    "file_response",
    "not_found",
    "forbidden",
    "server_error",
    "service_unavailable",
    "error_response",

    # Status codes
    "HTTPStatus",
]
