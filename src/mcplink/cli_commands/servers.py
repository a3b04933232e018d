"""``mcplink servers`` — inspect the server registry."""

from __future__ import annotations

import sys
from pathlib import Path

import click

from mcplink.cli_commands._common import config_option, load_registry
from mcplink.cli_commands._output import console, print_servers_table
from mcplink.errors import MCPLinkError


@click.group()
def servers() -> None:
    """Inspect configured MCP servers."""


@servers.command("list")
@config_option
def list_servers(config_path: Path | None) -> None:
    """List built-in servers (after environment overrides)."""
    try:
        registry = load_registry(config_path)
    except MCPLinkError as exc:
        console.print(f"[red]Configuration error:[/red] {exc}")
        sys.exit(1)

    entries = registry.list_all()
    if not entries:
        console.print("[yellow]No servers configured.[/yellow]")
        return

    default = registry.get_default()
    print_servers_table(entries, default.id if default else None)
