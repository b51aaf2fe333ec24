"""
Core infrastructure layer
"""
from .constants import *
from .exceptions import *
from .logging import setup_logging, get_logger, get_stdout_console, get_stderr_console
from .interfaces import ProxyConnector, ProxyHandle
from .telemetry import Telemetry, Event, Metric

__all__ = [
    "SshfwdError",
    "ConfigError",
    "TunnelError",
    "ProxyConnectionError",
    "ListenerError",
    "ForwardError",
    "setup_logging",
    "get_logger",
    "get_stdout_console",
    "get_stderr_console",
    "ProxyConnector",
    "ProxyHandle",
    "Telemetry",
    "Event",
    "Metric",
]
