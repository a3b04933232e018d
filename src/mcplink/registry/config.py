"""Configuration — client settings, built-in servers, and env overrides."""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError

from mcplink import __version__
from mcplink.errors import ConfigError
from mcplink.registry.models import AuthKind, EndpointDescriptor


class ClientSettings(BaseModel):
    """Tunables for :class:`~mcplink.protocols.mcp.client.MCPClient`."""

    connect_timeout: float = Field(
        default=10.0,
        gt=0,
        description="Seconds connect() waits before aborting with a timeout.",
    )
    protocol_version: str = "2024-11-05"
    client_name: str = "mcplink"
    client_version: str = __version__


BUILTIN_SERVERS: tuple[EndpointDescriptor, ...] = (
    EndpointDescriptor(
        id="gitlab-mcp",
        display_name="GitLab MCP",
        description="GitLab Model Context Protocol server with session management",
        url="http://127.0.0.1:3333/mcp",
        requires_auth=True,
        auth_kind=AuthKind.BEARER,
        url_env="GITLAB_MCP_URL",
        credential_env="GITLAB_TOKEN",
        is_builtin=True,
    ),
    EndpointDescriptor(
        id="devops-mcp",
        display_name="DevOps MCP Server",
        description="DevOps MCP server with capabilities management",
        url="http://localhost:3001/api/mcp",
        url_env="DEVOPS_MCP_URL",
        is_builtin=True,
        is_default=True,
    ),
)


def parse_descriptor(data: Mapping[str, Any], *, builtin: bool = False) -> EndpointDescriptor:
    """Validate a mapping into an :class:`EndpointDescriptor`.

    Raises:
        ConfigError: If validation fails.
    """
    try:
        descriptor = EndpointDescriptor.model_validate(dict(data))
    except ValidationError as exc:
        raise ConfigError(str(exc)) from exc
    return descriptor.model_copy(update={"is_builtin": builtin})


def load_servers_file(path: Path) -> list[EndpointDescriptor]:
    """Read a YAML servers file into built-in descriptors.

    ``${VAR}`` references are expanded with :func:`os.path.expandvars`
    before parsing.  The file must be a mapping with a ``servers`` list.

    Raises:
        ConfigError: On read, YAML, or validation failures.
    """
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Cannot read {path}: {exc}") from exc

    try:
        data: Any = yaml.safe_load(os.path.expandvars(raw))
    except yaml.YAMLError as exc:
        raise ConfigError(f"YAML parse error: {exc}") from exc

    if not isinstance(data, dict) or not isinstance(data.get("servers"), list):
        raise ConfigError("Servers file must be a mapping with a 'servers' list")

    entries: list[Any] = data["servers"]
    descriptors: list[EndpointDescriptor] = []
    for entry in entries:
        if not isinstance(entry, dict):
            raise ConfigError(f"Server entry must be a mapping, got {type(entry).__name__}")
        descriptors.append(parse_descriptor(entry, builtin=True))
    return descriptors


def apply_env_overrides(
    descriptors: list[EndpointDescriptor] | tuple[EndpointDescriptor, ...],
    environ: Mapping[str, str] | None = None,
) -> list[EndpointDescriptor]:
    """Return copies of *descriptors* with env-provided URLs and credentials."""
    env = os.environ if environ is None else environ
    result: list[EndpointDescriptor] = []
    for descriptor in descriptors:
        update: dict[str, Any] = {}
        if descriptor.url_env and env.get(descriptor.url_env):
            update["url"] = env[descriptor.url_env]
        if descriptor.credential_env and env.get(descriptor.credential_env):
            update["credential"] = env[descriptor.credential_env]
        if update:
            merged = {**descriptor.model_dump(), **update}
            descriptor = parse_descriptor(merged, builtin=descriptor.is_builtin)
        result.append(descriptor)
    return result


def load_builtin_servers(
    path: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> list[EndpointDescriptor]:
    """Built-in servers from *path* (or the defaults) with env overrides applied."""
    descriptors = load_servers_file(path) if path is not None else list(BUILTIN_SERVERS)
    return apply_env_overrides(descriptors, environ)
