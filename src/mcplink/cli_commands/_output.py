"""Shared CLI output formatters."""

from __future__ import annotations

import json

from rich.console import Console
from rich.table import Table

from mcplink.protocols.mcp.client import StatusReport  # noqa: TC001
from mcplink.protocols.mcp.models import MCPToolDef, ToolCallResult  # noqa: TC001
from mcplink.registry.models import EndpointDescriptor  # noqa: TC001

console = Console()


def print_servers_table(servers: list[EndpointDescriptor], default_id: str | None) -> None:
    """Pretty-print registered servers as a table."""
    table = Table(title="MCP Servers")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Name")
    table.add_column("URL")
    table.add_column("Auth")
    table.add_column("Kind")

    for server in servers:
        name = server.display_name + (" (default)" if server.id == default_id else "")
        auth = server.auth_kind.value if server.requires_auth and server.auth_kind else "-"
        table.add_row(
            server.id,
            name,
            server.url,
            auth,
            "built-in" if server.is_builtin else "custom",
        )

    console.print(table)


def print_tools_table(tools: list[MCPToolDef]) -> None:
    """Pretty-print a tool list as a table."""
    table = Table(title="Discovered Tools")
    table.add_column("#", justify="right")
    table.add_column("Name", style="cyan", no_wrap=True)
    table.add_column("Description")

    for index, tool in enumerate(tools, start=1):
        table.add_row(str(index), tool.name, _truncate(tool.description))

    console.print(table)


def print_tool_result(result: ToolCallResult, *, as_json: bool = False) -> None:
    """Print a tool call result, text content first."""
    if as_json:
        console.print_json(result.model_dump_json(by_alias=True, exclude_none=True))
        return

    if result.is_error:
        console.print("[red]Tool reported an error[/red]")
    for item in result.content:
        if item.type == "text" and item.text is not None:
            console.print(item.text)
        else:
            console.print(f"[dim]<{item.type}>[/dim] {_truncate(json.dumps(item.data, default=str))}")


def print_status(report: StatusReport) -> None:
    """Print a status report."""
    colour = "green" if report.connected else "yellow"
    console.print(f"[bold]Server:[/bold] {report.server_id or '(none)'}")
    console.print(f"[bold]State:[/bold] [{colour}]{report.state.value}[/{colour}]")
    console.print(f"[bold]Session:[/bold] {report.session_id or '-'}")
    console.print(f"[bold]Tools:[/bold] {report.tool_count}")
    if report.error:
        console.print(f"[bold]Error:[/bold] [red]{report.error}[/red]")


def _truncate(text: str, max_len: int = 80) -> str:
    if len(text) <= max_len:
        return text
    return text[: max_len - 3] + "..."
