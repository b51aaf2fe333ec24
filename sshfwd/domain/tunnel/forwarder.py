"""
Per-connection relay through the proxy
"""
import logging
import socket
import threading
from typing import Any, Callable, Optional

from ...core.constants import BUFFER_SIZE
from ...core.exceptions import ForwardError
from ...core.interfaces import ProxyHandle
from ...core.telemetry import Telemetry
from .models import Endpoint


def close_stream(stream: Any, logger: logging.Logger) -> None:
    """Shut down and close a socket or channel, tolerating repeats"""
    try:
        stream.shutdown(socket.SHUT_RDWR)
    except Exception as e:
        logger.debug("(shutdown): %s", e)
    try:
        stream.close()
    except Exception as e:
        logger.debug("(close): %s", e)


class ConnectionForwarder:
    """
    Relay one accepted local connection to the remote endpoint.

    Dials the remote through the proxy handle, then copies bytes in both
    directions on two threads. Whichever direction ends first closes both
    streams, so there is no half-close.
    """

    def __init__(
        self,
        local: socket.socket,
        handle: ProxyHandle,
        remote: Endpoint,
        logger: logging.Logger,
        telemetry: Optional[Telemetry] = None,
        on_finished: Optional[Callable[["ConnectionForwarder"], None]] = None,
    ):
        self.local = local
        self.handle = handle
        self.remote = remote
        self.logger = logger
        self.telemetry = telemetry or Telemetry()
        self.on_finished = on_finished
        self.channel: Optional[Any] = None
        self.bytes_sent = 0
        self.bytes_received = 0
        self._lock = threading.Lock()
        self._closed = False
        self._pending_copies = 2
        self._threads: list[threading.Thread] = []
        try:
            self.peer = local.getpeername()
        except OSError:
            self.peer = None

    def run(self) -> None:
        """Dial the remote endpoint and start relaying"""
        try:
            self.channel = self.handle.open_channel(self.remote, origin=self.peer)
        except (ForwardError, OSError) as e:
            self.logger.info("(forward - cannot dial remote endpoint %s): %s", self.remote, e)
            close_stream(self.local, self.logger)
            self.telemetry.record_event("connection.dial_failed", {
                "remote": str(self.remote),
                "peer": str(self.peer),
                "error": str(e),
            })
            self._finish()
            return

        self.logger.debug("Forwarding %s -> %s", self.peer, self.remote)
        self._threads = [
            threading.Thread(
                target=self._copy,
                args=(self.local, self.channel, "local->remote"),
                daemon=True,
                name=f"Forwarder-Up-{id(self)}",
            ),
            threading.Thread(
                target=self._copy,
                args=(self.channel, self.local, "remote->local"),
                daemon=True,
                name=f"Forwarder-Down-{id(self)}",
            ),
        ]
        for thread in self._threads:
            thread.start()

    def join(self, timeout: Optional[float] = None) -> None:
        """Wait for both copy threads to end"""
        for thread in self._threads:
            thread.join(timeout)

    def close(self) -> None:
        """Close both ends of the pairing"""
        with self._lock:
            if self._closed:
                return
            self._closed = True
        close_stream(self.local, self.logger)
        if self.channel is not None:
            close_stream(self.channel, self.logger)

    @property
    def closed(self) -> bool:
        return self._closed

    def _copy(self, src: Any, dest: Any, direction: str) -> None:
        total = 0
        try:
            while True:
                data = src.recv(BUFFER_SIZE)
                if not data:
                    break
                dest.sendall(data)
                total += len(data)
        except Exception as e:
            if self._closed:
                self.logger.debug("(copy %s after close): %s", direction, e)
            else:
                self.logger.info("(copy %s): %s", direction, e)
        finally:
            if direction == "local->remote":
                self.bytes_sent = total
            else:
                self.bytes_received = total
            self.telemetry.record_metric("connection.bytes", total, {"direction": direction})
            self.close()
            self._copy_done()

    def _copy_done(self) -> None:
        with self._lock:
            self._pending_copies -= 1
            last = self._pending_copies == 0
        if last:
            self.telemetry.record_event("connection.closed", {
                "remote": str(self.remote),
                "peer": str(self.peer),
                "bytes_sent": self.bytes_sent,
                "bytes_received": self.bytes_received,
            })
            self._finish()

    def _finish(self) -> None:
        if self.on_finished:
            self.on_finished(self)
