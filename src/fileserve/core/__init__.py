"""
=============================================================================
CORE SERVER COMPONENTS
=============================================================================

The networking and concurrency plumbing. Nothing in here knows about
files or HTTP semantics.

    ┌─────────────────────────────────────────────────────────────────────┐
    │  SOCKET SERVER   bind/listen/accept on the main thread              │
    │        │                                                             │
    │        │ Connection                                                  │
    │        ▼                                                             │
    │  THREAD POOL     fixed workers pulling from one task queue          │
    │        │                                                             │
    │        ▼                                                             │
    │  CONNECTION      one bounded read, one write, graceful close        │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

from .connection import Connection, ConnectionState
from .socket_server import SocketServer
from .thread_pool import Task, ThreadPool, Worker, WorkerState

__all__ = [
    "Connection",
    "ConnectionState",
    "SocketServer",
    "Task",
    "ThreadPool",
    "Worker",
    "WorkerState",
]
