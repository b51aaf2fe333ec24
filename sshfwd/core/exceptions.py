"""
Unified exception definitions
"""


class SshfwdError(Exception):
    """Base exception class"""
    pass


class ConfigError(SshfwdError):
    """Configuration error"""
    pass


class TunnelError(SshfwdError):
    """Tunnel lifecycle error"""
    pass


class ProxyConnectionError(TunnelError):
    """Dialing or authenticating to the proxy failed"""
    pass


class ListenerError(TunnelError):
    """Local listener could not be bound"""
    pass


class ForwardError(SshfwdError):
    """Opening a channel to the remote endpoint failed"""
    pass
