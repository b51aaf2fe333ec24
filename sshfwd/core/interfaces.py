"""
Core interfaces for dependency injection
"""
from abc import ABC, abstractmethod
from typing import Any, Optional, Tuple, TYPE_CHECKING

if TYPE_CHECKING:
    from ..domain.tunnel.models import ClientAuthConfig, Endpoint


class ProxyHandle(ABC):
    """Authenticated, multiplexed connection to the proxy host"""

    @abstractmethod
    def open_channel(
        self,
        remote: "Endpoint",
        origin: Optional[Tuple[str, int]] = None,
    ) -> Any:
        """
        Open a byte stream to ``remote`` through the proxy.

        The returned object must support ``recv``, ``sendall``, ``shutdown``
        and ``close`` like a socket.

        Raises:
            ForwardError: If the channel cannot be opened
        """
        pass

    @abstractmethod
    def close(self) -> None:
        """Close the proxy connection"""
        pass


class ProxyConnector(ABC):
    """Proxy connection factory interface"""

    @abstractmethod
    def dial(self, proxy: "Endpoint", auth: "ClientAuthConfig") -> ProxyHandle:
        """
        Dial and authenticate to the proxy host.

        Raises:
            ProxyConnectionError: If the proxy is unreachable or rejects us
        """
        pass
