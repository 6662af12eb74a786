"""
Unit tests for the TCP listener.
"""

import socket
import threading

import pytest

from fileserve.config import ServerConfig
from fileserve.core.connection import Connection
from fileserve.core.socket_server import SocketServer


@pytest.fixture
def listener_config(root_dir) -> ServerConfig:
    return ServerConfig(host="127.0.0.1", port=0, directory=str(root_dir), timeout=2.0)


class TestSocketServer:

    def test_not_listening_before_start(self, listener_config):
        server = SocketServer(listener_config)

        assert server.bound_address is None
        assert not server.wait_until_ready(timeout=0.01)

    def test_accepts_and_stops(self, listener_config):
        server = SocketServer(listener_config)
        accepted = []

        def on_connection(conn: Connection):
            accepted.append(conn)
            conn.close()

        thread = threading.Thread(target=server.start, args=(on_connection,), daemon=True)
        thread.start()
        try:
            assert server.wait_until_ready(timeout=5.0)
            host, port = server.bound_address
            assert host == "127.0.0.1"
            assert port != 0

            with socket.create_connection((host, port), timeout=5.0) as client:
                client.recv(1)  # Returns b"" once the server side closes
        finally:
            server.shutdown()
            thread.join(timeout=10.0)

        assert not thread.is_alive()
        assert len(accepted) == 1
        assert accepted[0].timeout == 2.0
        assert server.bound_address is None
        assert not server.wait_until_ready(timeout=0.01)

    def test_ipv4_host_gets_ipv4_socket(self, listener_config):
        sock = SocketServer(listener_config)._create_socket()
        try:
            assert sock.family == socket.AF_INET
        finally:
            sock.close()

    def test_bind_failure_closes_socket(self, listener_config):
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as taken:
            taken.bind(("127.0.0.1", 0))
            taken.listen(1)
            port = taken.getsockname()[1]

            config = ServerConfig(host="127.0.0.1", port=port, directory=listener_config.directory)
            server = SocketServer(config)

            with pytest.raises(OSError):
                server.start(lambda conn: None)

        assert server.bound_address is None
