"""
Private key loading for key file authentication
"""
import io
from pathlib import Path
from typing import Optional

import paramiko

from ...core.exceptions import ConfigError
from ...core.logging import get_logger

logger = get_logger(__name__)

# Tried in order; DSA support is gone from current paramiko
KEY_CLASSES = (paramiko.Ed25519Key, paramiko.ECDSAKey, paramiko.RSAKey)


def read_key_material(path: str) -> str:
    """
    Read private key text from disk.

    Raises:
        ConfigError: If the file cannot be read
    """
    p = Path(path).expanduser()
    try:
        return p.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigError(f"cannot read key {p}: {e}") from e


def parse_private_key(material: str, passphrase: Optional[str] = None) -> paramiko.PKey:
    """
    Parse key text, probing each supported key type.

    Raises:
        paramiko.SSHException: If no key type accepts the material
    """
    errors = []
    for key_class in KEY_CLASSES:
        try:
            return key_class.from_private_key(io.StringIO(material), password=passphrase)
        except paramiko.PasswordRequiredException:
            raise
        except (paramiko.SSHException, ValueError) as e:
            errors.append(f"{key_class.__name__}: {e}")
    raise paramiko.SSHException("unsupported or malformed private key (" + "; ".join(errors) + ")")


def load_signer(path: str, passphrase: Optional[str] = None) -> paramiko.PKey:
    """
    Load the signer used for public key authentication.

    When a passphrase is given the key is first parsed with it, but that
    result is discarded: the signer returned is always the one parsed
    without a passphrase. Encrypted keys therefore fail here.

    Raises:
        ConfigError: If the key cannot be read or parsed
    """
    material = read_key_material(path)

    if passphrase is not None:
        try:
            parse_private_key(material, passphrase)
            logger.debug("Key %s parsed with passphrase", path)
        except paramiko.SSHException as e:
            logger.debug("Key %s did not parse with passphrase: %s", path, e)

    try:
        return parse_private_key(material)
    except paramiko.SSHException as e:
        raise ConfigError(f"cannot parse key {path}: {e}") from e
