"""
Address string parser for the command line

Accepts exactly ``host:port``: a single colon and an integer port.
"""
from ...core.exceptions import ConfigError
from ...domain.tunnel.models import Endpoint


def parse_endpoint(address: str) -> Endpoint:
    """
    Parse ``host:port`` into an Endpoint.

    Args:
        address: Address string

    Returns:
        Endpoint

    Raises:
        ConfigError: If the string is not exactly host:port

    Examples:
        parse_endpoint("localhost:33333") -> Endpoint("localhost", 33333)
        parse_endpoint("bastion:22") -> Endpoint("bastion", 22)
        parse_endpoint("::1:22") -> ConfigError
    """
    parts = address.split(":")
    if len(parts) != 2:
        raise ConfigError(f"address must be host:port, got {address!r}")

    host, port_str = parts
    try:
        port = int(port_str)
    except ValueError:
        raise ConfigError(f"port must be an integer, got {port_str!r}") from None

    if not 0 <= port <= 65535:
        raise ConfigError(f"port out of range: {port}")

    return Endpoint(host=host, port=port)
