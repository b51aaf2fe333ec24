"""
Tunnel domain module
"""
from .models import (
    Endpoint,
    PasswordAuth,
    KeyFileAuth,
    HostKeyPolicy,
    ClientAuthConfig,
    TunnelConfig,
)
from .signals import OneShotSignal
from .forwarder import ConnectionForwarder
from .tunnel import Tunnel, TunnelState

__all__ = [
    "Endpoint",
    "PasswordAuth",
    "KeyFileAuth",
    "HostKeyPolicy",
    "ClientAuthConfig",
    "TunnelConfig",
    "OneShotSignal",
    "ConnectionForwarder",
    "Tunnel",
    "TunnelState",
]
