"""
=============================================================================
HANDLERS
=============================================================================

    static.py       Request path → directory listing or file bytes
    connection.py   One connection: read → parse → resolve → write

    ┌─────────────┐      ┌──────────────────┐      ┌──────────────┐
    │ Connection  │ ───▶ │ ConnectionHandler│ ───▶ │ PathResolver │
    └─────────────┘      └──────────────────┘      └──────────────┘

=============================================================================
"""

from .static import ContentKind, PathResolver, ResolvedContent, render_listing
from .connection import ConnectionHandler

__all__ = [
    "ConnectionHandler",
    "ContentKind",
    "PathResolver",
    "ResolvedContent",
    "render_listing",
]
