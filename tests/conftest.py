"""
pytest configuration and fixtures.
"""

import socket
import threading
from pathlib import Path
from typing import Generator, Tuple
import pytest

# Add src to path for imports
import sys
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from fileserve import FileServer, ServerConfig


@pytest.fixture
def root_dir(tmp_path: Path) -> Path:
    """
    Small directory tree to serve:

        a.txt        "hello"
        sub/b.txt    "world"
    """
    (tmp_path / "a.txt").write_bytes(b"hello")
    (tmp_path / "sub").mkdir()
    (tmp_path / "sub" / "b.txt").write_bytes(b"world")
    return tmp_path


@pytest.fixture
def config(root_dir: Path) -> ServerConfig:
    """Test configuration serving root_dir on an OS-assigned port."""
    return ServerConfig(
        host="127.0.0.1",
        port=0,  # Let OS pick a free port
        directory=str(root_dir),
        workers=2,
        timeout=5.0,
        log_level="WARNING",
    )


@pytest.fixture
def free_port() -> int:
    """Get a free port for testing."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(('127.0.0.1', 0))
        return s.getsockname()[1]


@pytest.fixture
def socket_pair() -> Generator[Tuple[socket.socket, socket.socket], None, None]:
    """Connected (server side, client side) socket pair."""
    server_side, client_side = socket.socketpair()
    yield server_side, client_side
    for s in (server_side, client_side):
        try:
            s.close()
        except OSError:
            pass


class TestServer:
    """Test server helper that runs in a background thread."""

    __test__ = False  # Not a test class

    def __init__(self, server: FileServer):
        self.server = server
        self._thread: threading.Thread = None

    @property
    def port(self) -> int:
        return self.server.address[1]

    def start(self):
        """Start server in background thread."""
        self._thread = threading.Thread(target=self.server.run, daemon=True)
        self._thread.start()

        if not self.server.wait_until_ready(timeout=5.0):
            raise RuntimeError("Server failed to start")

    def stop(self):
        """Stop the server."""
        self.server.shutdown()

        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=10.0)

    def request(self, raw: bytes, timeout: float = 5.0) -> bytes:
        """Send raw bytes and return everything the server sent back."""
        with socket.create_connection(("127.0.0.1", self.port), timeout=timeout) as s:
            s.sendall(raw)
            chunks = []
            while True:
                chunk = s.recv(4096)
                if not chunk:
                    break
                chunks.append(chunk)
        return b"".join(chunks)

    def get(self, path: str) -> bytes:
        return self.request(f"GET {path} HTTP/1.1\r\nHost: localhost\r\n\r\n".encode())


@pytest.fixture
def test_server(config: ServerConfig) -> Generator[TestServer, None, None]:
    """Running file server over root_dir."""
    test_srv = TestServer(FileServer(config))
    test_srv.start()

    yield test_srv

    test_srv.stop()
