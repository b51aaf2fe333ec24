"""Test configuration loading."""

from pathlib import Path

import pytest

from sshfwd.adapters.config.loader import ConfigLoader
from sshfwd.core.exceptions import ConfigError


@pytest.fixture
def clean_env(monkeypatch):
    for suffix in ("LOCAL", "PROXY", "REMOTE", "USER", "KEY", "PASSPHRASE",
                   "PASSWORD", "TIMEOUT", "HOST_KEY_POLICY", "MAX_CONNECTIONS"):
        monkeypatch.delenv(f"SSHFWD_{suffix}", raising=False)
    return monkeypatch


class TestConfigLoader:
    """Test ConfigLoader."""

    def test_load_toml(self, tmp_path: Path) -> None:
        path = tmp_path / "sshfwd.toml"
        path.write_text('proxy = "bastion:22"\nremote = "db:5432"\ntimeout = 5.0\n')

        cfg = ConfigLoader().load_toml(path)

        assert cfg == {"proxy": "bastion:22", "remote": "db:5432", "timeout": 5.0}

    def test_missing_toml(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="not found"):
            ConfigLoader().load_toml(tmp_path / "missing.toml")

    def test_invalid_toml(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.toml"
        path.write_text("proxy = \n")

        with pytest.raises(ConfigError, match="Failed to parse"):
            ConfigLoader().load_toml(path)

    def test_toml_values_are_typed(self, tmp_path: Path) -> None:
        """Test TOML values go through the same converters as env values."""
        path = tmp_path / "sshfwd.toml"
        path.write_text('max_connections = "5"\ntimeout = 3\nuser = "ops"\n')

        cfg = ConfigLoader().load_toml(path)

        assert cfg == {"max_connections": 5, "timeout": 3.0, "user": "ops"}
        assert isinstance(cfg["timeout"], float)

    @pytest.mark.parametrize(
        "line",
        [
            'max_connections = "many"',
            "max_connections = 2.5",
            "max_connections = true",
            "timeout = \"soon\"",
            "user = 42",
            'proxy = ["bastion:22"]',
        ],
    )
    def test_invalid_toml_value(self, tmp_path: Path, line: str) -> None:
        path = tmp_path / "sshfwd.toml"
        path.write_text(line + "\n")

        with pytest.raises(ConfigError, match="Invalid value for"):
            ConfigLoader().load_toml(path)

    def test_env_values_are_typed(self) -> None:
        cfg = ConfigLoader().load_env({
            "SSHFWD_PROXY": "bastion:22",
            "SSHFWD_TIMEOUT": "2.5",
            "SSHFWD_MAX_CONNECTIONS": "1",
            "SSHFWD_PASSWORD": "0",
            "UNRELATED": "x",
        })

        assert cfg == {
            "proxy": "bastion:22",
            "timeout": 2.5,
            "max_connections": 1,
            "password": "0",
        }

    def test_invalid_env_value(self) -> None:
        with pytest.raises(ConfigError, match="SSHFWD_MAX_CONNECTIONS"):
            ConfigLoader().load_env({"SSHFWD_MAX_CONNECTIONS": "many"})

    def test_priority(self, tmp_path: Path, clean_env) -> None:
        """Test CLI overrides env, which overrides TOML."""
        path = tmp_path / "sshfwd.toml"
        path.write_text('proxy = "toml:22"\nremote = "toml:80"\nuser = "toml"\n')
        clean_env.setenv("SSHFWD_REMOTE", "env:80")
        clean_env.setenv("SSHFWD_USER", "env")

        cfg = ConfigLoader().load(toml_path=path, cli_overrides={"user": "cli", "proxy": None})

        assert cfg["proxy"] == "toml:22"
        assert cfg["remote"] == "env:80"
        assert cfg["user"] == "cli"

    def test_without_env(self, clean_env) -> None:
        clean_env.setenv("SSHFWD_USER", "env")

        cfg = ConfigLoader().load(cli_overrides={"proxy": "bastion:22"}, use_env=False)

        assert cfg == {"proxy": "bastion:22"}
