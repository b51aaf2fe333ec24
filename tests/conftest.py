"""Shared pytest fixtures for sshfwd tests."""

import queue
import socket
import threading
from typing import Callable, Optional

import pytest

from sshfwd.core.exceptions import ForwardError, ProxyConnectionError
from sshfwd.core.interfaces import ProxyConnector, ProxyHandle
from sshfwd.domain.tunnel import Endpoint, PasswordAuth, Tunnel, TunnelConfig


class LoopbackHandle(ProxyHandle):
    """Proxy handle whose channels are plain TCP connections."""

    def __init__(self, fail_first: int = 0):
        self.fail_first = fail_first
        self.opened = 0
        self.closed = False
        self.origins = []
        self._lock = threading.Lock()

    def open_channel(self, remote, origin=None):
        with self._lock:
            self.opened += 1
            attempt = self.opened
            self.origins.append(origin)
        if attempt <= self.fail_first:
            raise ForwardError(f"administratively prohibited: {remote}")
        try:
            sock = socket.create_connection(remote.as_tuple(), timeout=5)
        except OSError as e:
            raise ForwardError(f"cannot open channel to {remote}: {e}") from e
        sock.settimeout(None)
        return sock

    def close(self):
        self.closed = True


class LoopbackConnector(ProxyConnector):
    """Connector that skips SSH entirely."""

    def __init__(self, fail_first: int = 0, refuse: bool = False):
        self.handle = LoopbackHandle(fail_first=fail_first)
        self.refuse = refuse
        self.dialed = []

    def dial(self, proxy, auth):
        self.dialed.append((proxy, auth))
        if self.refuse:
            raise ProxyConnectionError(f"cannot dial proxy {proxy}: connection refused")
        return self.handle


class TcpServer:
    """Threaded TCP server running ``handler(conn)`` per connection."""

    def __init__(self, handler: Callable[[socket.socket], None]):
        self.handler = handler
        self.sock = socket.create_server(("127.0.0.1", 0))
        self.sock.settimeout(0.2)
        self.port = self.sock.getsockname()[1]
        self.connections: "queue.Queue[socket.socket]" = queue.Queue()
        self._running = True
        self._thread = threading.Thread(target=self._serve, daemon=True)
        self._thread.start()

    @property
    def endpoint(self) -> Endpoint:
        return Endpoint("127.0.0.1", self.port)

    def _serve(self):
        while self._running:
            try:
                conn, _ = self.sock.accept()
            except socket.timeout:
                continue
            except OSError:
                return
            conn.settimeout(None)
            self.connections.put(conn)
            threading.Thread(target=self.handler, args=(conn,), daemon=True).start()

    def close(self):
        self._running = False
        self.sock.close()
        self._thread.join(2)


def echo_handler(conn: socket.socket) -> None:
    with conn:
        try:
            while True:
                data = conn.recv(65536)
                if not data:
                    return
                conn.sendall(data)
        except OSError:
            return


def hold_handler(conn: socket.socket) -> None:
    """Leave the connection to the test."""


def recv_exact(sock: socket.socket, size: int) -> bytes:
    chunks = []
    remaining = size
    while remaining:
        data = sock.recv(min(remaining, 65536))
        if not data:
            break
        chunks.append(data)
        remaining -= len(data)
    return b"".join(chunks)


def unused_port() -> int:
    """Port with nothing listening on it."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    port = sock.getsockname()[1]
    sock.close()
    return port


@pytest.fixture
def echo_server():
    server = TcpServer(echo_handler)
    yield server
    server.close()


@pytest.fixture
def hold_server():
    server = TcpServer(hold_handler)
    yield server
    server.close()


@pytest.fixture
def password_config():
    return TunnelConfig(user="deploy", auth=PasswordAuth("secret"), timeout=5)


@pytest.fixture
def start_tunnel(echo_server, password_config):
    """Start a loopback tunnel on a worker thread and stop it afterwards.

    Returns:
        Callable: (remote=None, connector=None, **kwargs) -> Tunnel
    """
    started = []

    def _start(remote: Optional[Endpoint] = None, connector=None, **kwargs) -> Tunnel:
        tunnel = Tunnel(
            Endpoint("127.0.0.1", 0),
            Endpoint("bastion.test", 22),
            remote or echo_server.endpoint,
            password_config,
            connector=connector or LoopbackConnector(),
            **kwargs,
        )
        thread = threading.Thread(target=tunnel.start, daemon=True)
        thread.start()
        assert tunnel.wait(timeout=5)
        started.append((tunnel, thread))
        return tunnel

    yield _start

    for tunnel, thread in started:
        tunnel.stop()
        thread.join(5)


def connect(tunnel: Tunnel) -> socket.socket:
    sock = socket.create_connection(tunnel.bound_address.as_tuple(), timeout=5)
    return sock
