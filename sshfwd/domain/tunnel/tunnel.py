"""
Local port forwarding tunnel through an SSH proxy
"""
import logging
import queue
import socket
import threading
from enum import Enum
from typing import Optional

from ...core.constants import ACCEPT_POLL_INTERVAL, LISTEN_BACKLOG
from ...core.exceptions import ListenerError, ProxyConnectionError, TunnelError
from ...core.interfaces import ProxyConnector, ProxyHandle
from ...core.logging import get_logger
from ...core.telemetry import Telemetry
from .forwarder import ConnectionForwarder, close_stream
from .models import Endpoint, TunnelConfig
from .signals import OneShotSignal

# Wakes the dispatch loop when stop() fires
_STOP = object()


class TunnelState(str, Enum):
    """Tunnel lifecycle states"""
    IDLE = "idle"
    AUTHENTICATING = "authenticating"
    LISTENING = "listening"
    READY = "ready"
    DISPATCHING = "dispatching"
    SHUTTING_DOWN = "shutting_down"
    CLOSED = "closed"


class Tunnel:
    """
    Forward connections from a local listener to a remote endpoint
    reachable only through an SSH proxy.

    Usage::

        tunnel = Tunnel(local, proxy, remote, config)
        worker = threading.Thread(target=tunnel.start)
        worker.start()
        tunnel.wait()
        ...
        tunnel.stop()

    ``start`` blocks until ``stop`` is called. A tunnel is single use.
    Forwarders still relaying when the tunnel stops are left to finish on
    their own.
    """

    def __init__(
        self,
        local: Endpoint,
        proxy: Endpoint,
        remote: Endpoint,
        config: TunnelConfig,
        logger: Optional[logging.Logger] = None,
        connector: Optional[ProxyConnector] = None,
        max_connections: Optional[int] = None,
        telemetry: Optional[Telemetry] = None,
    ):
        """
        Initialize tunnel.

        Args:
            local: Address to listen on
            proxy: SSH host to authenticate against
            remote: Target reachable from the proxy
            config: Authentication settings
            logger: Logger receiving tunnel messages
            connector: Proxy connector (paramiko by default)
            max_connections: Cap on concurrently forwarded connections
            telemetry: Event recorder

        Raises:
            ConfigError: If the authentication settings cannot be resolved
        """
        if max_connections is not None and max_connections < 1:
            raise ValueError(f"max_connections must be positive, got {max_connections}")

        self.local = local
        self.proxy = proxy
        self.remote = remote
        self.logger = logger or get_logger(__name__)
        self.max_connections = max_connections
        self.telemetry = telemetry or Telemetry()

        if connector is None:
            from ...client import ParamikoConnector
            connector = ParamikoConnector()
        self.connector = connector

        self._auth = config.client_config()

        self._ready = OneShotSignal("ready")
        self._shutdown = OneShotSignal("shutdown")
        self._handoff: "queue.Queue[object]" = queue.Queue()
        self._lock = threading.Lock()
        self._state = TunnelState.IDLE
        self._started = False
        self._handle: Optional[ProxyHandle] = None
        self._listener: Optional[socket.socket] = None
        self._bound: Optional[Endpoint] = None
        self._acceptor_thread: Optional[threading.Thread] = None
        self._forwarders: set[ConnectionForwarder] = set()

    # --------------------
    # Properties
    # --------------------
    @property
    def state(self) -> TunnelState:
        return self._state

    @property
    def bound_address(self) -> Optional[Endpoint]:
        """Address the listener actually bound, once listening"""
        return self._bound

    @property
    def active_connections(self) -> int:
        with self._lock:
            return len(self._forwarders)

    # --------------------
    # Lifecycle
    # --------------------
    def start(self) -> None:
        """
        Authenticate, listen and forward connections until stopped.

        Raises:
            TunnelError: If the tunnel was already started
            ProxyConnectionError: If the proxy cannot be dialed
            ListenerError: If the local endpoint cannot be bound
        """
        with self._lock:
            if self._started:
                raise TunnelError("Tunnel has already been started")
            self._started = True

        try:
            self._set_state(TunnelState.AUTHENTICATING)
            self._handle = self.connector.dial(self.proxy, self._auth)

            self._set_state(TunnelState.LISTENING)
            self._listener = self._listen()

            self._acceptor_thread = threading.Thread(
                target=self._accept_loop,
                args=(self._listener,),
                daemon=True,
                name=f"Tunnel-Acceptor-{self.local.port}",
            )
            self._acceptor_thread.start()

            self._set_state(TunnelState.READY)
            self._ready.fire()
            self.telemetry.record_event("tunnel.ready", {
                "local": str(self._bound),
                "proxy": str(self.proxy),
                "remote": str(self.remote),
            })
            self.logger.info("Tunnel ready: %s --- %s --- %s", self._bound, self.proxy, self.remote)

            self._set_state(TunnelState.DISPATCHING)
            self._dispatch_loop()
        except ProxyConnectionError as e:
            self.logger.error("cannot dial proxy %s: %s", self.proxy, e)
            raise
        except ListenerError as e:
            self.logger.error("cannot start listener on %s: %s", self.local, e)
            raise
        finally:
            self._set_state(TunnelState.SHUTTING_DOWN)
            self._release()
            self._set_state(TunnelState.CLOSED)
            self.telemetry.record_event("tunnel.closed", {"local": str(self.local)})
            self.logger.info("Tunnel closed.")

    def stop(self) -> bool:
        """
        Stop dispatching new connections.

        Safe to call from any thread and more than once; returns False if
        the tunnel had already been asked to stop.
        """
        if not self._shutdown.fire():
            self.logger.debug("Tunnel stop requested again; ignoring")
            return False
        self._handoff.put(_STOP)
        return True

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the tunnel is ready for use; returns whether it is"""
        return self._ready.wait(timeout)

    def is_ready(self) -> bool:
        return self._ready.is_fired()

    # --------------------
    # Internals
    # --------------------
    def _set_state(self, state: TunnelState) -> None:
        with self._lock:
            self._state = state
        self.logger.debug("Tunnel state: %s", state.value)

    def _listen(self) -> socket.socket:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind(self.local.as_tuple())
            sock.listen(LISTEN_BACKLOG)
            sock.settimeout(ACCEPT_POLL_INTERVAL)
        except OSError as e:
            sock.close()
            raise ListenerError(f"cannot listen on {self.local}: {e}") from e

        host, port = sock.getsockname()[:2]
        self._bound = Endpoint(host, port)
        return sock

    def _accept_loop(self, listener: socket.socket) -> None:
        """Hand accepted connections to the dispatch loop until the listener closes"""
        while True:
            try:
                conn, addr = listener.accept()
            except socket.timeout:
                continue
            except OSError as e:
                self.logger.info("(listener connection error): %s", e)
                return
            conn.settimeout(None)
            self._handoff.put(conn)

    def _dispatch_loop(self) -> None:
        while True:
            item = self._handoff.get()
            if item is _STOP or self._shutdown.is_fired():
                if item is not _STOP:
                    close_stream(item, self.logger)
                return
            self._dispatch(item)

    def _dispatch(self, conn: socket.socket) -> None:
        with self._lock:
            if self.max_connections is not None and len(self._forwarders) >= self.max_connections:
                forwarder = None
            else:
                forwarder = ConnectionForwarder(
                    conn,
                    self._handle,
                    self.remote,
                    logger=self.logger,
                    telemetry=self.telemetry,
                    on_finished=self._forwarder_finished,
                )
                self._forwarders.add(forwarder)

        if forwarder is None:
            self.logger.warning(
                "Connection limit (%d) reached; closing new local connection",
                self.max_connections,
            )
            self.telemetry.record_event("connection.rejected", {"limit": self.max_connections})
            close_stream(conn, self.logger)
            return

        self.telemetry.record_event("connection.accepted", {"peer": str(forwarder.peer)})
        threading.Thread(
            target=forwarder.run,
            daemon=True,
            name=f"Forwarder-{id(forwarder)}",
        ).start()

    def _forwarder_finished(self, forwarder: ConnectionForwarder) -> None:
        with self._lock:
            self._forwarders.discard(forwarder)

    def _release(self) -> None:
        """Close the listener and proxy handle; drop undispatched connections"""
        if self._listener is not None:
            close_stream(self._listener, self.logger)
        if self._acceptor_thread is not None:
            self._acceptor_thread.join(ACCEPT_POLL_INTERVAL * 2)

        while True:
            try:
                item = self._handoff.get_nowait()
            except queue.Empty:
                break
            if item is not _STOP:
                close_stream(item, self.logger)

        if self._handle is not None:
            try:
                self._handle.close()
            except Exception as e:
                self.logger.debug("(proxy close): %s", e)
