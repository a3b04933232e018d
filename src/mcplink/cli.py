"""mcplink CLI entrypoint."""

from __future__ import annotations

import click

from mcplink import __version__
from mcplink.utils.telemetry import configure_telemetry


@click.group()
@click.version_option(version=__version__, prog_name="mcplink")
@click.option(
    "--otel-endpoint",
    envvar="MCPLINK_OTLP_ENDPOINT",
    default=None,
    help="Export trace spans via OTLP/gRPC to this endpoint (needs mcplink[otel]).",
)
@click.option("--trace-console", is_flag=True, help="Print trace spans to stdout.")
def main(otel_endpoint: str | None, trace_console: bool) -> None:
    """mcplink — talk to MCP servers over HTTP."""
    if otel_endpoint or trace_console:
        try:
            configure_telemetry(export_to_console=trace_console, otlp_endpoint=otel_endpoint)
        except ImportError as exc:
            raise click.ClickException(str(exc)) from exc


# Register subcommands
from mcplink.cli_commands import register_commands  # noqa: E402

register_commands(main)

if __name__ == "__main__":
    main()
