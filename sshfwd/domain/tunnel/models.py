"""
Tunnel domain models
"""
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple, Union

import paramiko

from ...core.constants import DEFAULT_SSH_TIMEOUT
from ...core.exceptions import ConfigError
from .auth import load_signer


@dataclass(frozen=True)
class Endpoint:
    """Network destination, rendered as ``host:port``"""
    host: str
    port: int

    def __str__(self) -> str:
        return f"{self.host}:{self.port}"

    def as_tuple(self) -> Tuple[str, int]:
        return (self.host, self.port)


@dataclass(frozen=True)
class PasswordAuth:
    """Password authentication"""
    password: str

    def __repr__(self) -> str:
        return "PasswordAuth(password='***')"


@dataclass(frozen=True)
class KeyFileAuth:
    """Private key authentication"""
    path: str
    passphrase: Optional[str] = None

    def __repr__(self) -> str:
        masked = None if self.passphrase is None else "'***'"
        return f"KeyFileAuth(path={self.path!r}, passphrase={masked})"


AuthMethod = Union[PasswordAuth, KeyFileAuth]


class HostKeyPolicy(str, Enum):
    """
    Trust decision for the proxy's host key.

    ACCEPT_ALL skips verification entirely and is the default. STRICT
    requires the key to be present in the system known_hosts.
    """
    ACCEPT_ALL = "accept-all"
    WARN = "warn"
    STRICT = "strict"

    def missing_host_key_policy(self) -> paramiko.MissingHostKeyPolicy:
        """Map to the paramiko policy enforcing this decision"""
        if self is HostKeyPolicy.STRICT:
            return paramiko.RejectPolicy()
        if self is HostKeyPolicy.WARN:
            return paramiko.WarningPolicy()
        return paramiko.AutoAddPolicy()


@dataclass(frozen=True)
class ClientAuthConfig:
    """Resolved credentials handed to the proxy connector"""
    username: str
    timeout: float
    host_key_policy: HostKeyPolicy = HostKeyPolicy.ACCEPT_ALL
    password: Optional[str] = None
    pkey: Optional[paramiko.PKey] = None

    def __repr__(self) -> str:
        method = "publickey" if self.pkey is not None else "password"
        return (
            f"ClientAuthConfig(username={self.username!r}, method={method}, "
            f"timeout={self.timeout}, host_key_policy={self.host_key_policy.value})"
        )


@dataclass
class TunnelConfig:
    """SSH authentication and settings"""
    user: str
    auth: Optional[AuthMethod] = None
    timeout: float = DEFAULT_SSH_TIMEOUT
    host_key_policy: HostKeyPolicy = HostKeyPolicy.ACCEPT_ALL

    @classmethod
    def from_options(
        cls,
        user: str,
        password: Optional[str] = None,
        key_file: Optional[str] = None,
        passphrase: Optional[str] = None,
        timeout: float = DEFAULT_SSH_TIMEOUT,
        host_key_policy: HostKeyPolicy = HostKeyPolicy.ACCEPT_ALL,
    ) -> "TunnelConfig":
        """
        Build a config from flat options.

        A key file takes precedence over a password.

        Raises:
            ConfigError: If neither a key file nor a password is given
        """
        auth: Optional[AuthMethod] = None
        if key_file:
            auth = KeyFileAuth(path=key_file, passphrase=passphrase)
        elif password is not None:
            auth = PasswordAuth(password=password)

        config = cls(user=user, auth=auth, timeout=timeout, host_key_policy=host_key_policy)
        config.validate()
        return config

    def validate(self) -> None:
        """Validate configuration"""
        if not self.user:
            raise ConfigError("SSH username required")
        if self.auth is None:
            raise ConfigError("authentication method required: key file or password")
        if self.timeout <= 0:
            raise ConfigError(f"Invalid timeout: {self.timeout}")

    def client_config(self) -> ClientAuthConfig:
        """
        Resolve the authentication method into a ClientAuthConfig.

        Raises:
            ConfigError: If no method is configured or the key cannot be loaded
        """
        self.validate()

        if isinstance(self.auth, PasswordAuth):
            return ClientAuthConfig(
                username=self.user,
                timeout=self.timeout,
                host_key_policy=self.host_key_policy,
                password=self.auth.password,
            )

        signer = load_signer(self.auth.path, self.auth.passphrase)
        return ClientAuthConfig(
            username=self.user,
            timeout=self.timeout,
            host_key_policy=self.host_key_policy,
            pkey=signer,
        )
