"""``mcplink status`` — connect to a server and report its status."""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import click

from mcplink.cli_commands._common import build_client, server_options
from mcplink.cli_commands._output import console, print_status
from mcplink.errors import MCPLinkError
from mcplink.protocols.mcp.client import StatusReport


@click.command()
@server_options
def status(
    config_path: Path | None,
    server_id: str | None,
    url: str | None,
    token: str | None,
    timeout: float,
) -> None:
    """Connect to a server and print its status.

    Exits with status 1 when the server is not reachable.
    """

    async def _status() -> StatusReport:
        client = build_client(
            config_path=config_path, server_id=server_id, url=url, token=token, timeout=timeout
        )
        async with client:
            try:
                await client.connect()
            except MCPLinkError:
                pass  # reported through the status below
            return await client.status()

    try:
        report = asyncio.run(_status())
    except MCPLinkError as exc:
        console.print(f"[red]Status error:[/red] {exc}")
        sys.exit(1)

    print_status(report)
    if not report.connected:
        sys.exit(1)
