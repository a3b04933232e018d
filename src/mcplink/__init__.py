"""mcplink — Model Context Protocol client runtime over HTTP and SSE."""

from __future__ import annotations

from typing import TYPE_CHECKING

__version__ = "0.1.0"

if TYPE_CHECKING:
    from mcplink.protocols.mcp.client import MCPClient as MCPClient
    from mcplink.registry.registry import ServerRegistry as ServerRegistry

_LAZY_EXPORTS = {
    "MCPClient": "mcplink.protocols.mcp.client",
    "ServerRegistry": "mcplink.registry.registry",
}


def __getattr__(name: str) -> object:
    module_path = _LAZY_EXPORTS.get(name)
    if module_path is not None:
        import importlib

        mod = importlib.import_module(module_path)
        return getattr(mod, name)
    raise AttributeError(f"module 'mcplink' has no attribute {name!r}")
