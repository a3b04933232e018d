"""``mcplink tools`` — discover and call tools on an MCP server."""

from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path
from typing import Any

import click

from mcplink.cli_commands._common import build_client, server_options
from mcplink.cli_commands._output import console, print_tool_result, print_tools_table
from mcplink.errors import MCPLinkError
from mcplink.protocols.mcp.models import MCPToolDef, ToolCallResult


@click.group()
def tools() -> None:
    """Discover and call tools."""


@tools.command("list")
@server_options
def list_tools(
    config_path: Path | None,
    server_id: str | None,
    url: str | None,
    token: str | None,
    timeout: float,
) -> None:
    """Connect to a server and list its tools."""

    async def _list() -> list[MCPToolDef]:
        client = build_client(
            config_path=config_path, server_id=server_id, url=url, token=token, timeout=timeout
        )
        async with client:
            return await client.connect()

    try:
        tool_defs = asyncio.run(_list())
    except MCPLinkError as exc:
        console.print(f"[red]Connection failed:[/red] {exc}")
        sys.exit(1)

    if not tool_defs:
        console.print("[yellow]No tools discovered.[/yellow]")
        return

    print_tools_table(tool_defs)


@tools.command("call")
@click.argument("name")
@click.option("--args", "raw_args", default="{}", help="Tool arguments as a JSON object.")
@click.option("--json", "as_json", is_flag=True, help="Output the raw result as JSON.")
@server_options
def call_tool(
    name: str,
    raw_args: str,
    as_json: bool,
    config_path: Path | None,
    server_id: str | None,
    url: str | None,
    token: str | None,
    timeout: float,
) -> None:
    """Connect to a server and call tool NAME."""
    try:
        arguments: Any = json.loads(raw_args)
    except json.JSONDecodeError as exc:
        console.print(f"[red]Invalid --args:[/red] {exc}")
        sys.exit(1)
    if not isinstance(arguments, dict):
        console.print("[red]Invalid --args:[/red] expected a JSON object")
        sys.exit(1)

    async def _call() -> ToolCallResult:
        client = build_client(
            config_path=config_path, server_id=server_id, url=url, token=token, timeout=timeout
        )
        async with client:
            await client.connect()
            return await client.call_tool(name, arguments)

    try:
        result = asyncio.run(_call())
    except MCPLinkError as exc:
        console.print(f"[red]Tool call failed:[/red] {exc}")
        sys.exit(1)

    print_tool_result(result, as_json=as_json)
