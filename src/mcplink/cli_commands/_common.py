"""Options and client construction shared by the subcommands."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any, TypeVar

import click

from mcplink.protocols.mcp.client import MCPClient
from mcplink.registry.config import ClientSettings, load_builtin_servers, parse_descriptor
from mcplink.registry.registry import ServerRegistry

F = TypeVar("F", bound=Callable[..., Any])

PROBE_SERVER_ID = "cli-probe"


def config_option(func: F) -> F:
    return click.option(
        "--config",
        "config_path",
        type=click.Path(exists=True, dir_okay=False, path_type=Path),
        default=None,
        envvar="MCPLINK_SERVERS_FILE",
        help="YAML servers file replacing the built-in server list.",
    )(func)


def server_options(func: F) -> F:
    """Attach --server/--url/--token/--timeout/--config to a command."""
    func = click.option(
        "--timeout",
        type=float,
        default=10.0,
        show_default=True,
        help="Connect timeout in seconds.",
    )(func)
    func = click.option(
        "--token",
        envvar="MCPLINK_TOKEN",
        default=None,
        help="Bearer token for --url.",
    )(func)
    func = click.option(
        "--url",
        default=None,
        help="Ad-hoc server URL (overrides --server).",
    )(func)
    func = click.option(
        "--server",
        "-s",
        "server_id",
        default=None,
        help="Registered server id.",
    )(func)
    return config_option(func)


def load_registry(config_path: Path | None) -> ServerRegistry:
    return ServerRegistry(load_builtin_servers(config_path))


def build_client(
    *,
    config_path: Path | None,
    server_id: str | None,
    url: str | None,
    token: str | None,
    timeout: float,
) -> MCPClient:
    """Create a client selecting --url, --server, or the default server."""
    registry = load_registry(config_path)
    if url:
        registry.add(
            parse_descriptor({
                "id": PROBE_SERVER_ID,
                "display_name": "CLI probe",
                "url": url,
                "requires_auth": token is not None,
                "credential": token,
            })
        )
        server_id = PROBE_SERVER_ID
    return MCPClient(
        registry,
        server_id=server_id,
        settings=ClientSettings(connect_timeout=timeout),
    )
