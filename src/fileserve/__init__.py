"""
=============================================================================
FILESERVE - Multithreaded Static File Server
=============================================================================

Serves one directory tree over HTTP/1.x using raw sockets and a fixed
thread pool.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   GET /            → HTML listing of the root directory             │
    │   GET /sub/        → HTML listing of ./sub                          │
    │   GET /a.txt       → bytes of ./a.txt (as an attachment)            │
    │   GET /missing     → 404                                            │
    │   GET /../etc      → 403                                            │
    │   anything broken  → 500                                            │
    │                                                                      │
    │   One request per connection. The server always closes.             │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
PACKAGE STRUCTURE
=============================================================================

    fileserve/
    ├── __init__.py          # This file - package exports
    ├── __main__.py          # CLI entry point (python -m fileserve)
    ├── server.py            # FileServer: wiring and lifecycle
    ├── config.py            # ServerConfig dataclass
    ├── errors.py            # HttpError / FetchError families
    ├── core/
    │   ├── socket_server.py # TCP listener and accept loop
    │   ├── connection.py    # Bounded read, single write, close
    │   └── thread_pool.py   # Fixed worker pool
    ├── http/
    │   ├── request.py       # Request-line and header parsing
    │   ├── response.py      # Status line, headers, error pages
    │   └── status_codes.py  # HTTPStatus
    └── handlers/
        ├── static.py        # Path confinement, listing, file reads
        └── connection.py    # Per-connection pipeline

=============================================================================
QUICK START
=============================================================================

    from fileserve import FileServer, ServerConfig

    FileServer(ServerConfig(port=8080, directory="./public")).run()

Or from the command line:

    python -m fileserve 8080 --directory ./public --workers 10

=============================================================================
"""

__version__ = "0.1.0"

from .config import ServerConfig
from .server import FileServer

__all__ = [
    "FileServer",
    "ServerConfig",
    "__version__",
]
