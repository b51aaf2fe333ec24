from __future__ import annotations

import threading
from typing import Optional, Tuple

import paramiko

from .core.constants import DEFAULT_CHANNEL_ORIGIN, DIRECT_TCPIP_CHANNEL
from .core.exceptions import ForwardError, ProxyConnectionError
from .core.interfaces import ProxyConnector, ProxyHandle
from .core.logging import get_logger
from .domain.tunnel.models import ClientAuthConfig, Endpoint, HostKeyPolicy

logger = get_logger(__name__)


class ProxyClient(ProxyHandle):
    """
    Paramiko SSHClient wrapper acting as the tunnel's proxy handle:
    - password or public key login, no agent or key discovery
    - host key trust decided by HostKeyPolicy
    - opens direct-tcpip channels for forwarded connections
    - usable as a context manager
    """

    def __init__(self, proxy: Endpoint, auth: ClientAuthConfig) -> None:
        self.proxy = proxy
        self.auth = auth
        self.client = paramiko.SSHClient()
        if auth.host_key_policy is HostKeyPolicy.STRICT:
            self.client.load_system_host_keys()
        self.client.set_missing_host_key_policy(auth.host_key_policy.missing_host_key_policy())
        self._closed = False
        self._lock = threading.Lock()

    # --------------------
    # Connection management
    # --------------------
    def connect(self) -> ProxyClient:
        """
        Dial and authenticate.

        Raises:
            ProxyConnectionError: If the proxy is unreachable or login fails
        """
        auth = self.auth
        try:
            self.client.connect(
                hostname=self.proxy.host,
                port=self.proxy.port,
                username=auth.username,
                password=auth.password,
                pkey=auth.pkey,
                timeout=auth.timeout,
                banner_timeout=auth.timeout,
                auth_timeout=auth.timeout,
                allow_agent=False,
                look_for_keys=False,
            )
        except (paramiko.SSHException, OSError, EOFError) as e:
            self.client.close()
            raise ProxyConnectionError(f"cannot dial proxy {self.proxy}: {e}") from e

        logger.debug("Authenticated to %s as %s", self.proxy, auth.username)
        return self

    # --------------------
    # Channels
    # --------------------
    def open_channel(
        self,
        remote: Endpoint,
        origin: Optional[Tuple[str, int]] = None,
    ) -> paramiko.Channel:
        """
        Open a direct-tcpip channel to remote through the proxy.

        Raises:
            ForwardError: If the transport is gone or the proxy refuses
        """
        transport = self.client.get_transport()
        if transport is None or not transport.is_active():
            raise ForwardError("SSH transport not available")

        try:
            channel = transport.open_channel(
                DIRECT_TCPIP_CHANNEL,
                dest_addr=remote.as_tuple(),
                src_addr=tuple(origin[:2]) if origin else DEFAULT_CHANNEL_ORIGIN,
                timeout=self.auth.timeout,
            )
        except (paramiko.SSHException, OSError, EOFError) as e:
            raise ForwardError(f"cannot open channel to {remote}: {e}") from e

        if channel is None:
            raise ForwardError(f"cannot open channel to {remote}")
        return channel

    # --------------------
    # Context manager
    # --------------------
    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
        self.client.close()

    def __enter__(self) -> ProxyClient:
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()


class ParamikoConnector(ProxyConnector):
    """ProxyClient connection factory"""

    def dial(self, proxy: Endpoint, auth: ClientAuthConfig) -> ProxyClient:
        return ProxyClient(proxy, auth).connect()
