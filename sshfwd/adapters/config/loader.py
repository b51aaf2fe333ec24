"""
Configuration loader with priority: CLI > env > TOML > defaults
"""
import os
import tomllib
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Tuple

from ...core.constants import ENV_PREFIX
from ...core.exceptions import ConfigError


# Environment variable suffix -> (config key, converter)
ENV_MAPPINGS: Dict[str, Tuple[str, Callable[[str], Any]]] = {
    "LOCAL": ("local", str),
    "PROXY": ("proxy", str),
    "REMOTE": ("remote", str),
    "USER": ("user", str),
    "KEY": ("key", str),
    "PASSPHRASE": ("passphrase", str),
    "PASSWORD": ("password", str),
    "TIMEOUT": ("timeout", float),
    "HOST_KEY_POLICY": ("host_key_policy", str),
    "MAX_CONNECTIONS": ("max_connections", int),
}

# Config key -> converter, shared by TOML values
CONFIG_TYPES: Dict[str, Callable[[Any], Any]] = {
    key: convert for key, convert in ENV_MAPPINGS.values()
}


class ConfigLoader:
    """Configuration loader with priority support"""

    def __init__(self, env_prefix: str = ENV_PREFIX):
        self._env_prefix = env_prefix

    def load_toml(self, path: Path) -> Dict[str, Any]:
        """Load TOML configuration file"""
        if not path.exists():
            raise ConfigError(f"Configuration file not found: {path}")

        try:
            data = tomllib.loads(path.read_text(encoding='utf-8'))
        except (tomllib.TOMLDecodeError, UnicodeDecodeError) as e:
            raise ConfigError(f"Failed to parse TOML configuration: {e}") from e

        config = {}
        for key, value in data.items():
            convert = CONFIG_TYPES.get(key)
            if convert is None:
                config[key] = value
                continue
            if not self._accepts(convert, value):
                raise ConfigError(f"Invalid value for '{key}' in {path}: {value!r}")
            try:
                config[key] = convert(value)
            except ValueError as e:
                raise ConfigError(f"Invalid value for '{key}' in {path}: {value!r}") from e

        return config

    @staticmethod
    def _accepts(convert: Callable[[Any], Any], value: Any) -> bool:
        """Whether a TOML value may be fed to convert"""
        # bool is an int subclass
        if isinstance(value, bool):
            return False
        if isinstance(value, str):
            return True
        if convert is float:
            return isinstance(value, (int, float))
        if convert is int:
            return isinstance(value, int)
        return False

    def load_env(self, environ: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        """Load configuration from environment variables"""
        environ = os.environ if environ is None else environ
        config = {}

        for suffix, (config_key, convert) in ENV_MAPPINGS.items():
            env_key = self._env_prefix + suffix
            value = environ.get(env_key)
            if value is None or value == "":
                continue
            try:
                config[config_key] = convert(value)
            except ValueError as e:
                raise ConfigError(f"Invalid value for {env_key}: {value!r}") from e

        return config

    def merge_configs(self, *configs: Dict[str, Any]) -> Dict[str, Any]:
        """
        Merge multiple configurations with priority.
        Later configs override earlier ones; None values never override.
        """
        result = {}

        for config in configs:
            result = self._deep_merge(result, config)

        return result

    def _deep_merge(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Deep merge two dictionaries"""
        result = base.copy()

        for key, value in override.items():
            if value is None:
                continue
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value

        return result

    def load(
        self,
        toml_path: Optional[Path] = None,
        cli_overrides: Optional[Dict[str, Any]] = None,
        use_env: bool = True,
    ) -> Dict[str, Any]:
        """
        Load configuration with priority: CLI > env > TOML > defaults

        Args:
            toml_path: Path to TOML configuration file
            cli_overrides: CLI parameter overrides
            use_env: Whether to load from environment variables

        Returns:
            Merged configuration dictionary
        """
        configs = []

        # 1. Load TOML if provided
        if toml_path:
            configs.append(self.load_toml(toml_path))

        # 2. Load environment variables
        if use_env:
            env_config = self.load_env()
            if env_config:
                configs.append(env_config)

        # 3. Apply CLI overrides (highest priority)
        if cli_overrides:
            configs.append(cli_overrides)

        return self.merge_configs(*configs)
