"""
End-to-end tests against a running FileServer over real TCP sockets.
"""

import socket
import threading
import time
from concurrent.futures import ThreadPoolExecutor

import pytest

from fileserve import FileServer, ServerConfig


def split_response(raw: bytes):
    head, _, body = raw.partition(b"\r\n\r\n")
    status_line, *header_lines = head.decode("latin-1").split("\r\n")
    headers = dict(line.split(": ", 1) for line in header_lines)
    return status_line, headers, body


class TestFileServer:

    def test_get_file(self, test_server):
        status, headers, body = split_response(test_server.get("/a.txt"))

        assert status == "HTTP/1.1 200 Ok"
        assert headers["Content-Disposition"] == "attachment"
        assert headers["Content-Length"] == "5"
        assert headers["Connection"] == "close"
        assert body == b"hello"

    def test_get_directory(self, test_server):
        status, headers, body = split_response(test_server.get("/sub/"))

        assert status == "HTTP/1.1 200 Ok"
        assert "Content-Disposition" not in headers
        assert body.startswith(b"<!DOCTYPE HTML>")
        assert b'<a href="b.txt">b.txt</a>' in body

    def test_root_listing(self, test_server):
        _, _, body = split_response(test_server.get("/"))

        # Directories before files
        assert body.index(b"sub/") < body.index(b"a.txt")

    def test_missing(self, test_server):
        status, _, body = split_response(test_server.get("/missing"))

        assert status == "HTTP/1.1 404 Not Found"
        assert body == b"<h1> Error: File Not Found"

    def test_traversal(self, test_server):
        status, _, _ = split_response(test_server.get("/../../etc/passwd"))
        assert status == "HTTP/1.1 403 Forbidden"

    def test_garbage(self, test_server):
        status, _, body = split_response(test_server.request(b"\x00\x01\x02 not http\r\n\r\n"))

        assert status == "HTTP/1.1 500 Server Error"
        assert body == b"<h1> 500 Internal Error"

    def test_any_method_is_served(self, test_server):
        raw = test_server.request(b"POST /a.txt HTTP/1.0\r\n\r\n")
        assert split_response(raw)[2] == b"hello"

    def test_server_survives_bad_clients(self, test_server):
        # Connect and hang up without sending anything
        with socket.create_connection(("127.0.0.1", test_server.port)):
            pass
        test_server.request(b"garbage\r\n\r\n")

        assert split_response(test_server.get("/a.txt"))[2] == b"hello"

    def test_concurrent_requests(self, test_server):
        paths = ["/a.txt", "/sub/b.txt", "/missing", "/sub/"] * 10

        with ThreadPoolExecutor(max_workers=8) as executor:
            responses = list(executor.map(test_server.get, paths))

        for path, raw in zip(paths, responses):
            status, _, body = split_response(raw)
            if path == "/a.txt":
                assert body == b"hello"
            elif path == "/sub/b.txt":
                assert body == b"world"
            elif path == "/missing":
                assert status == "HTTP/1.1 404 Not Found"
            else:
                assert status == "HTTP/1.1 200 Ok"

    def test_slow_client_does_not_block_others(self, test_server):
        """With two workers, one idle connection leaves the other free."""
        idle = socket.create_connection(("127.0.0.1", test_server.port))
        try:
            assert split_response(test_server.get("/a.txt"))[2] == b"hello"
        finally:
            idle.close()


class TestFileServerLifecycle:

    def test_shutdown_returns_from_run(self, config: ServerConfig):
        server = FileServer(config)
        thread = threading.Thread(target=server.run, daemon=True)
        thread.start()

        assert server.wait_until_ready(timeout=5.0)
        assert server.address[1] != 0

        server.shutdown()
        thread.join(timeout=10.0)

        assert not thread.is_alive()
        assert server.address is None

    def test_bind_conflict_raises(self, config: ServerConfig, test_server):
        """A second server on a port in use fails at bind time."""
        taken = ServerConfig(
            host="127.0.0.1",
            port=test_server.port,
            directory=config.directory,
            workers=1,
            log_level="CRITICAL",
        )

        with pytest.raises(OSError):
            FileServer(taken).run()


def wait_for(predicate, timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return False


class TestBackpressure:

    @pytest.fixture
    def saturated(self, root_dir):
        """
        A one-worker server whose worker is busy and whose one queue slot is
        taken. Yields (server, address).
        """
        server = FileServer(ServerConfig(
            host="127.0.0.1",
            port=0,
            directory=str(root_dir),
            workers=1,
            queue_size=1,
            timeout=3.0,
            log_level="CRITICAL",
        ))
        thread = threading.Thread(target=server.run, daemon=True)
        thread.start()
        assert server.wait_until_ready(timeout=5.0)
        address = ("127.0.0.1", server.address[1])

        busy = socket.create_connection(address)
        queued = None
        try:
            assert wait_for(lambda: server.stats["workers"]["busy"] == 1)

            queued = socket.create_connection(address)
            assert wait_for(lambda: server.stats["tasks"]["queued"] == 1)

            yield server, address
        finally:
            busy.close()
            if queued is not None:
                queued.close()
            server.shutdown()
            thread.join(timeout=10.0)

    def test_full_queue_gets_503(self, saturated):
        """One busy worker, one queued connection, the next one is turned away."""
        _, address = saturated

        with socket.create_connection(address, timeout=5.0) as rejected:
            response = rejected.recv(4096)

        assert response.startswith(b"HTTP/1.1 503 Service Unavailable\r\n")

    def test_rejected_clients_holding_sockets_open(self, saturated):
        """
        Rejected clients that send a request and never close must not hold
        up the accept thread. Each close waits on its client, so five of
        them answered in sequence would take seconds.
        """
        _, address = saturated
        clients = []
        try:
            started = time.monotonic()
            for _ in range(5):
                client = socket.create_connection(address, timeout=5.0)
                clients.append(client)
                client.sendall(b"GET / HTTP/1.1\r\n\r\n")

            last = clients[-1].recv(4096)
            elapsed = time.monotonic() - started

            assert last.startswith(b"HTTP/1.1 503 Service Unavailable\r\n")
            assert elapsed < 1.0

            for client in clients[:-1]:
                assert client.recv(4096).startswith(b"HTTP/1.1 503 Service Unavailable\r\n")
        finally:
            for client in clients:
                client.close()


def ipv6_loopback_available() -> bool:
    if not socket.has_ipv6:
        return False
    try:
        with socket.socket(socket.AF_INET6, socket.SOCK_STREAM) as s:
            s.bind(("::1", 0))
    except OSError:
        return False
    return True


class TestIPv6:

    @pytest.mark.skipif(not ipv6_loopback_available(), reason="IPv6 loopback unavailable")
    def test_serves_on_ipv6_loopback(self, root_dir):
        server = FileServer(ServerConfig(host="::1", port=0, directory=str(root_dir), log_level="CRITICAL"))
        thread = threading.Thread(target=server.run, daemon=True)
        thread.start()
        try:
            assert server.wait_until_ready(timeout=5.0)
            host, port = server.address
            assert host == "::1"

            with socket.create_connection(("::1", port), timeout=5.0) as s:
                s.sendall(b"GET /a.txt HTTP/1.1\r\n\r\n")
                status, _, body = split_response(s.makefile("rb").read())

            assert status == "HTTP/1.1 200 Ok"
            assert body == b"hello"
        finally:
            server.shutdown()
            thread.join(timeout=10.0)


class TestExplicitPort:

    def test_listens_on_configured_port(self, root_dir, free_port):
        server = FileServer(ServerConfig(port=free_port, directory=str(root_dir), log_level="CRITICAL"))
        thread = threading.Thread(target=server.run, daemon=True)
        thread.start()
        try:
            assert server.wait_until_ready(timeout=5.0)
            assert server.address == ("127.0.0.1", free_port)

            with socket.create_connection(("127.0.0.1", free_port), timeout=5.0) as s:
                s.sendall(b"GET /a.txt HTTP/1.1\r\n\r\n")
                assert s.recv(4096).startswith(b"HTTP/1.1 200 Ok\r\n")
        finally:
            server.shutdown()
            thread.join(timeout=10.0)
