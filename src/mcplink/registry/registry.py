"""ServerRegistry — built-in plus custom MCP servers keyed by id."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from mcplink.errors import ConfigError, ConflictError, PolicyError, ServerNotFoundError
from mcplink.registry.models import EndpointDescriptor

logger = logging.getLogger(__name__)


class ServerRegistry:
    """Maps server ids to :class:`EndpointDescriptor` entries.

    Built-in entries are fixed at construction and can never be removed.
    Custom entries are appended by :meth:`add` and dropped by :meth:`remove`.
    Ids are unique across both sets, and at most one entry is flagged default.

    Usage::

        registry = ServerRegistry(load_builtin_servers())
        registry.add(parse_descriptor({"id": "local", "display_name": "Local",
                                       "url": "http://localhost:8000/mcp"}))
        endpoint = registry.resolve("local")
    """

    def __init__(self, builtins: Iterable[EndpointDescriptor] = ()) -> None:
        self._builtins: dict[str, EndpointDescriptor] = {}
        self._custom: dict[str, EndpointDescriptor] = {}
        for descriptor in builtins:
            if descriptor.id in self._builtins:
                raise ConflictError(descriptor.id)
            self._builtins[descriptor.id] = descriptor.model_copy(update={"is_builtin": True})
        defaults = [d.id for d in self._builtins.values() if d.is_default]
        if len(defaults) > 1:
            raise ConfigError(f"More than one default server: {', '.join(defaults)}")

    def __contains__(self, server_id: object) -> bool:
        return server_id in self._builtins or server_id in self._custom

    def __len__(self) -> int:
        return len(self._builtins) + len(self._custom)

    def resolve(self, server_id: str) -> EndpointDescriptor:
        """Return the entry for *server_id*.

        Raises:
            ServerNotFoundError: If no entry has that id.
        """
        descriptor = self._builtins.get(server_id) or self._custom.get(server_id)
        if descriptor is None:
            raise ServerNotFoundError(server_id)
        return descriptor

    def list_all(self) -> list[EndpointDescriptor]:
        """Built-in entries followed by custom entries, in insertion order."""
        return [*self._builtins.values(), *self._custom.values()]

    def is_builtin(self, server_id: str) -> bool:
        return server_id in self._builtins

    def get_default(self) -> EndpointDescriptor | None:
        """The entry flagged default, else the first built-in, else ``None``."""
        for descriptor in self.list_all():
            if descriptor.is_default:
                return descriptor
        return next(iter(self._builtins.values()), None)

    def add(self, descriptor: EndpointDescriptor) -> EndpointDescriptor:
        """Append *descriptor* to the custom set and return the stored copy.

        Raises:
            ConflictError: If the id is taken, or a second default is flagged.
        """
        if descriptor.id in self:
            raise ConflictError(descriptor.id)
        if descriptor.is_default and any(d.is_default for d in self.list_all()):
            raise ConflictError(
                descriptor.id, f"A default server is already configured; cannot add {descriptor.id}"
            )
        stored = descriptor.model_copy(update={"is_builtin": False})
        self._custom[stored.id] = stored
        logger.info("Added custom MCP server %s (%s)", stored.id, stored.url)
        return stored

    def remove(self, server_id: str) -> EndpointDescriptor:
        """Drop a custom entry and return it.

        Raises:
            PolicyError: If *server_id* is a built-in.
            ServerNotFoundError: If no custom entry has that id.
        """
        if server_id in self._builtins:
            raise PolicyError(server_id)
        descriptor = self._custom.pop(server_id, None)
        if descriptor is None:
            raise ServerNotFoundError(server_id)
        logger.info("Removed custom MCP server %s", server_id)
        return descriptor
