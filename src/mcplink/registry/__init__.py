"""Server registry — endpoint descriptors, built-in config, and lookup."""

from mcplink.registry.config import (
    BUILTIN_SERVERS,
    ClientSettings,
    apply_env_overrides,
    load_builtin_servers,
    load_servers_file,
    parse_descriptor,
)
from mcplink.registry.models import AuthKind, EndpointDescriptor
from mcplink.registry.registry import ServerRegistry

__all__ = [
    "BUILTIN_SERVERS",
    "AuthKind",
    "ClientSettings",
    "EndpointDescriptor",
    "ServerRegistry",
    "apply_env_overrides",
    "load_builtin_servers",
    "load_servers_file",
    "parse_descriptor",
]
