"""
sshfwd - local port forwarding through an SSH jump host

Authenticates to a proxy host over SSH, listens on a local endpoint and
relays every accepted connection to a remote endpoint through a
direct-tcpip channel opened on the proxy.
"""

__version__ = "0.1.0"

from .core import (
    SshfwdError,
    ConfigError,
    TunnelError,
    ProxyConnectionError,
    ListenerError,
    ForwardError,
    ProxyConnector,
    ProxyHandle,
    Telemetry,
)

from .domain.tunnel import (
    Endpoint,
    PasswordAuth,
    KeyFileAuth,
    HostKeyPolicy,
    ClientAuthConfig,
    TunnelConfig,
    Tunnel,
    TunnelState,
)

from .client import ProxyClient, ParamikoConnector

__all__ = [
    # Version
    "__version__",
    # Errors
    "SshfwdError",
    "ConfigError",
    "TunnelError",
    "ProxyConnectionError",
    "ListenerError",
    "ForwardError",
    # Interfaces
    "ProxyConnector",
    "ProxyHandle",
    "Telemetry",
    # Models
    "Endpoint",
    "PasswordAuth",
    "KeyFileAuth",
    "HostKeyPolicy",
    "ClientAuthConfig",
    "TunnelConfig",
    # Tunnel
    "Tunnel",
    "TunnelState",
    # Paramiko adapter
    "ProxyClient",
    "ParamikoConnector",
]
