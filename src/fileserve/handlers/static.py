"""
=============================================================================
PATH RESOLVER
=============================================================================

Maps a request path onto the root directory and produces either a
directory listing or a file's bytes.

=============================================================================
RESOLUTION FLOW
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   "/sub/b%20c.txt?x=1"                                              │
    │         │                                                            │
    │         ▼  1. drop query/fragment, percent-decode                    │
    │   "/sub/b c.txt"                                                     │
    │         │                                                            │
    │         ▼  2. join onto root, canonicalize (.. and symlinks)         │
    │   /srv/www/sub/b c.txt                                               │
    │         │                                                            │
    │         ▼  3. still inside root?  no → ForbiddenError                │
    │         │                                                            │
    │         ├── directory → render listing   → ResolvedContent(DIRECTORY)│
    │         │                                                            │
    │         └── otherwise → read bytes       → ResolvedContent(FILE)     │
    │                 missing       → NotFoundError                        │
    │                 other OSError → FetchIOError                         │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
SECURITY: PATH CONFINEMENT
=============================================================================

The request path is untrusted client input.

    ATTACK ATTEMPT:
    ┌─────────────────────────────────────────────────────────────────────┐
    │  GET /../../../etc/passwd HTTP/1.1                                  │
    │                                                                      │
    │  Naive concatenation would read:                                    │
    │  /srv/www/../../../etc/passwd  →  /etc/passwd                       │
    │                                                                      │
    │  Our protection:                                                    │
    │  1. Resolve the full path (follow .. and symlinks)                  │
    │  2. Check it is still inside the root directory                     │
    │  3. If not, ForbiddenError (→ 403)                                  │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

A symlink inside the root that points outside of it is rejected the same
way, because resolve() follows it before the check.

=============================================================================
DIRECTORY LISTINGS
=============================================================================

    <!DOCTYPE HTML><html><head><title>Directory listing for /sub/</title>
    </head><body><h1>Directory listing for /sub/</h1><hr><ul>
    <li><a href="nested/">nested/</a></li>     ← directories first
    <li><a href="b.txt">b.txt</a></li>         ← then everything else
    </ul></body></html>

(Shown wrapped here. The real output is a single line.)

Each group is sorted by name, so the same directory always renders to the
same bytes.

=============================================================================
"""

import html
import logging
import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import List, Tuple
from urllib.parse import quote, unquote

from ..errors import FetchIOError, ForbiddenError, NotFoundError


logger = logging.getLogger(__name__)


class ContentKind(Enum):
    """What a request path resolved to."""
    DIRECTORY = "directory"
    FILE = "file"


@dataclass(frozen=True)
class ResolvedContent:
    """
    Result of a successful resolution.

    ``body`` is the rendered listing (UTF-8 HTML) for DIRECTORY and the raw
    file bytes for FILE.
    """
    kind: ContentKind
    body: bytes


class PathResolver:
    """
    Resolves request paths against a root directory.

    =========================================================================
    USAGE
    =========================================================================

        resolver = PathResolver("/srv/www")

        try:
            content = resolver.resolve("/docs/")
        except NotFoundError:
            ...  # 404
        except ForbiddenError:
            ...  # 403
        except FetchIOError as e:
            ...  # 500, log e.cause

    The resolver holds no per-request state, so one instance is shared by
    all worker threads.

    =========================================================================
    """

    def __init__(self, root_dir: str):
        """
        Args:
            root_dir: Directory to serve. Canonicalized once here so that
                      every confinement check compares against the same
                      absolute path.

        Raises:
            ValueError: If root_dir is not an existing directory.
        """
        self.root_dir = Path(root_dir).resolve()

        if not self.root_dir.is_dir():
            raise ValueError(f"Root directory does not exist: {root_dir}")

    def resolve(self, request_path: str) -> ResolvedContent:
        """
        Resolve a request path to content.

        Args:
            request_path: Request target as sent by the client.

        Returns:
            ResolvedContent for a directory or a file.

        Raises:
            NotFoundError: Nothing exists at the path.
            ForbiddenError: The path escapes the root directory.
            FetchIOError: The path exists but cannot be read or listed.
        """
        url_path = self._decode_path(request_path)
        full_path = self._confine(url_path)

        if os.path.isdir(full_path):
            page = render_listing(full_path, url_path)
            return ResolvedContent(ContentKind.DIRECTORY, page.encode("utf-8", "surrogateescape"))

        return ResolvedContent(ContentKind.FILE, self._read_file(full_path))

    @staticmethod
    def _decode_path(request_path: str) -> str:
        # Drop query string and fragment
        path = request_path.split("?", 1)[0].split("#", 1)[0]

        # The parser decodes the request line as ISO-8859-1, so raw UTF-8
        # bytes arrive one character per byte. Recover them as UTF-8.
        try:
            path = path.encode("latin-1").decode("utf-8", "surrogateescape")
        except UnicodeEncodeError:
            pass  # Already text beyond latin-1, keep as is

        return unquote(path, errors="surrogateescape")

    def _confine(self, url_path: str) -> Path:
        """
        Join url_path onto the root and make sure the result stays inside.
        """
        # ─────────────────────────────────────────────────────────────────
        # RESOLVE FULL FILESYSTEM PATH
        # ─────────────────────────────────────────────────────────────────
        # lstrip("/") keeps "/etc" from replacing the root when joined.
        # resolve() follows symlinks and normalizes .. components.
        try:
            full_path = (self.root_dir / url_path.lstrip("/")).resolve()
        except (OSError, RuntimeError, ValueError) as e:
            # Embedded NUL bytes, symlink loops: nothing servable there
            raise NotFoundError(f"Unresolvable path: {url_path!r}") from e

        # ─────────────────────────────────────────────────────────────────
        # SECURITY: PATH TRAVERSAL CHECK
        # ─────────────────────────────────────────────────────────────────
        try:
            full_path.relative_to(self.root_dir)
        except ValueError:
            logger.warning(f"Path traversal attempt: {url_path!r}")
            raise ForbiddenError(f"Path escapes root directory: {url_path!r}") from None

        return full_path

    def _read_file(self, full_path: Path) -> bytes:
        # Opening a FIFO or device for reading can block forever
        if os.path.exists(full_path) and not os.path.isfile(full_path):
            raise FetchIOError(f"Not a regular file: {full_path}")

        try:
            with open(full_path, "rb") as f:
                return f.read()
        except (FileNotFoundError, NotADirectoryError) as e:
            raise NotFoundError(f"File not found: {full_path}") from e
        except OSError as e:
            raise FetchIOError(f"Failed to read {full_path}", cause=e) from e


# =============================================================================
# DIRECTORY LISTING
# =============================================================================

def list_directory(directory: Path) -> List[Tuple[str, bool]]:
    """
    Return ``(name, is_dir)`` for each direct child, sorted with all
    directories before all other entries and by name within each group.

    Raises:
        FetchIOError: If the directory cannot be enumerated.
    """
    try:
        with os.scandir(directory) as it:
            entries = [(entry.name, _is_dir(entry)) for entry in it]
    except OSError as e:
        raise FetchIOError(f"Failed to list {directory}", cause=e) from e

    entries.sort(key=lambda entry: (not entry[1], entry[0]))
    return entries


def _is_dir(entry: os.DirEntry) -> bool:
    try:
        return entry.is_dir()  # follows symlinks
    except OSError:
        return False


def render_listing(directory: Path, url_path: str) -> str:
    """
    Render the HTML listing page for ``directory``.

    Args:
        directory: Filesystem directory to list.
        url_path: Decoded request path, shown in the title.

    Links are relative. Without a trailing slash on url_path the browser
    resolves them against the parent, so they carry the directory's own
    name as a prefix ("/sub" links to "sub/b.txt").
    """
    title = html.escape(f"Directory listing for {url_path}")
    prefix = "" if url_path.endswith("/") else url_path.rsplit("/", 1)[-1] + "/"
    parts = [
        "<!DOCTYPE HTML><html><head>"
        f"<title>{title}</title></head><body><h1>{title}</h1><hr><ul>"
    ]

    for name, is_dir in list_directory(directory):
        if is_dir:
            name += "/"  # Trailing slash marks a directory
        href = quote(prefix + name, errors="surrogateescape")
        parts.append(f'<li><a href="{href}">{html.escape(name)}</a></li>')

    parts.append("</ul></body></html>")
    return "".join(parts)
