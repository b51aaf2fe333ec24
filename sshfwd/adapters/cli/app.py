"""
Main CLI application
"""
import sys
import time
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, Callable, Dict, Optional

import typer

from ...core.constants import DEFAULT_LOCAL_ADDRESS, DEFAULT_SSH_TIMEOUT, SHUTDOWN_GRACE_SECONDS
from ...core.exceptions import ConfigError, SshfwdError
from ...core.logging import setup_logging, get_logger, get_stderr_console
from ...domain.tunnel import Endpoint, HostKeyPolicy, Tunnel, TunnelConfig
from ..config.loader import ConfigLoader
from .endpoint_parser import parse_endpoint
from .prompts import RichPromptProvider

logger = get_logger(__name__)
stderr_console = get_stderr_console()
prompt_provider = RichPromptProvider()

# Readiness poll while the tunnel authenticates on its worker thread
READY_POLL_INTERVAL = 0.1

app = typer.Typer(
    name="sshfwd",
    add_completion=False,
    help="Forward a local port to a remote service through an SSH jump host",
    rich_markup_mode="rich",
)


def wait_for_enter() -> None:
    """Block until one line is read from stdin"""
    sys.stdin.readline()


def run_tunnel(
    tunnel: Tunnel,
    grace: float = SHUTDOWN_GRACE_SECONDS,
    shutdown_trigger: Callable[[], None] = wait_for_enter,
) -> None:
    """
    Run the tunnel on a worker thread until the shutdown trigger returns.

    Raises:
        TunnelError: If the tunnel fails to start
    """
    with ThreadPoolExecutor(max_workers=1, thread_name_prefix="Tunnel") as executor:
        future = executor.submit(tunnel.start)

        try:
            while not tunnel.wait(READY_POLL_INTERVAL):
                if future.done():
                    # Re-raises the start failure
                    future.result()
                    return
        except KeyboardInterrupt:
            prompt_provider.warning("Interrupted before the tunnel was ready")
            tunnel.stop()
            future.result()
            return

        prompt_provider.success("Tunnel established")
        prompt_provider.info(f"{tunnel.bound_address} --- {tunnel.proxy} --- {tunnel.remote}")
        prompt_provider.info("Press [cyan]Enter[/cyan] to stop")

        try:
            shutdown_trigger()
        except KeyboardInterrupt:
            pass

        prompt_provider.warning("Shutting down")
        time.sleep(grace)
        tunnel.stop()
        future.result()


def _require_endpoint(ctx: typer.Context, cfg: Dict[str, Any], name: str) -> Endpoint:
    value = cfg.get(name)
    if not value:
        raise typer.BadParameter("address is required", ctx=ctx, param_hint=f"'--{name}'")
    try:
        return parse_endpoint(value)
    except ConfigError as e:
        raise typer.BadParameter(str(e), ctx=ctx, param_hint=f"'--{name}'") from e


@app.command()
def main(
    ctx: typer.Context,
    local: Optional[str] = typer.Option(
        None, "--local", "-l",
        help=f"Address and port of the local endpoint (default: {DEFAULT_LOCAL_ADDRESS})",
    ),
    proxy: Optional[str] = typer.Option(
        None, "--proxy", "-p",
        help="(required) Address and port of the SSH daemon",
    ),
    remote: Optional[str] = typer.Option(
        None, "--remote", "-r",
        help="(required) Address and port of the remote endpoint",
    ),
    user: Optional[str] = typer.Option(
        None, "--user", "-u",
        help="(required) SSH username",
    ),
    key: Optional[str] = typer.Option(
        None, "--key", "-k",
        help="Path to SSH private key",
    ),
    passphrase: Optional[str] = typer.Option(
        None, "--passphrase",
        help="Passphrase for the private key",
    ),
    password: Optional[str] = typer.Option(
        None, "--password",
        help="Password for the SSH user",
    ),
    ask_password: bool = typer.Option(
        False, "--ask-password",
        help="Prompt for the SSH password",
    ),
    timeout: Optional[float] = typer.Option(
        None, "--timeout", "-t",
        help=f"SSH dial timeout in seconds (default: {DEFAULT_SSH_TIMEOUT:g})",
    ),
    host_key_policy: Optional[HostKeyPolicy] = typer.Option(
        None, "--host-key-policy",
        help="Proxy host key trust: accept-all (default), warn or strict",
        case_sensitive=False,
    ),
    max_connections: Optional[int] = typer.Option(
        None, "--max-connections",
        help="Cap on concurrently forwarded connections (default: unlimited)",
    ),
    grace: float = typer.Option(
        SHUTDOWN_GRACE_SECONDS, "--grace",
        help="Seconds to wait before stopping once shutdown is requested",
    ),
    config_file: Optional[Path] = typer.Option(
        None, "--config", "-c",
        help="Configuration file path (TOML)",
    ),
    log_level: str = typer.Option(
        "INFO", "--log-level",
        help="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    ),
    log_file: Optional[Path] = typer.Option(
        None, "--log-file",
        help="Log file path",
    ),
):
    """
    Forward connections on a local port to a remote endpoint through an SSH proxy.

    Examples:
        sshfwd -p bastion:22 -r db.internal:5432 -u deploy -k ~/.ssh/id_ed25519
        sshfwd -l localhost:8080 -p bastion:22 -r web:80 -u deploy --ask-password
    """
    setup_logging(level=log_level, log_file=log_file)

    try:
        cfg = ConfigLoader().load(
            toml_path=config_file,
            cli_overrides={
                "local": local,
                "proxy": proxy,
                "remote": remote,
                "user": user,
                "key": key,
                "passphrase": passphrase,
                "password": password,
                "timeout": timeout,
                "host_key_policy": host_key_policy.value if host_key_policy else None,
                "max_connections": max_connections,
            },
        )
    except ConfigError as e:
        stderr_console.print(f"[red]Config Error:[/red] {e}")
        raise typer.Exit(1)

    cfg.setdefault("local", DEFAULT_LOCAL_ADDRESS)
    local_endpoint = _require_endpoint(ctx, cfg, "local")
    proxy_endpoint = _require_endpoint(ctx, cfg, "proxy")
    remote_endpoint = _require_endpoint(ctx, cfg, "remote")
    if not cfg.get("user"):
        raise typer.BadParameter("SSH username is required", ctx=ctx, param_hint="'--user'")

    if ask_password and not cfg.get("key"):
        cfg["password"] = prompt_provider.prompt("Enter SSH password", password=True)

    try:
        tunnel_config = TunnelConfig.from_options(
            user=cfg["user"],
            password=cfg.get("password"),
            key_file=cfg.get("key"),
            passphrase=cfg.get("passphrase"),
            timeout=float(cfg.get("timeout", DEFAULT_SSH_TIMEOUT)),
            host_key_policy=HostKeyPolicy(cfg.get("host_key_policy", HostKeyPolicy.ACCEPT_ALL.value)),
        )
        tunnel = Tunnel(
            local_endpoint,
            proxy_endpoint,
            remote_endpoint,
            tunnel_config,
            logger=get_logger("sshfwd.tunnel"),
            max_connections=cfg.get("max_connections"),
        )
    except (ConfigError, ValueError) as e:
        stderr_console.print(f"[red]Config Error:[/red] {e}")
        raise typer.Exit(1)

    try:
        run_tunnel(tunnel, grace=grace)
    except SshfwdError as e:
        stderr_console.print(f"[red]Tunnel Error:[/red] {e}")
        raise typer.Exit(1)


def run():
    """CLI entry point"""
    app()


if __name__ == "__main__":
    run()
