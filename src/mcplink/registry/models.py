"""Endpoint descriptors — which MCP server to talk to and how to authenticate."""

from __future__ import annotations

import base64
import logging
import re
from enum import Enum

from pydantic import BaseModel, Field, field_validator, model_validator

logger = logging.getLogger(__name__)

_ID_PATTERN = re.compile(r"^[a-z0-9-]+$")


class AuthKind(str, Enum):
    """How a server expects its static credential to be sent."""

    BEARER = "bearer"
    BASIC = "basic"
    CUSTOM = "custom"


class EndpointDescriptor(BaseModel):
    """A registered MCP server.

    Example YAML entry::

        id: gitlab-mcp
        display_name: GitLab MCP
        url: http://127.0.0.1:3333/mcp
        requires_auth: true
        auth_kind: bearer
        url_env: GITLAB_MCP_URL
        credential_env: GITLAB_TOKEN
    """

    id: str
    display_name: str
    description: str = ""
    url: str
    requires_auth: bool = False
    auth_kind: AuthKind | None = None
    auth_header: str = Field(
        default="X-API-Key",
        description="Header name used when auth_kind is 'custom'.",
    )
    credential: str | None = Field(default=None, repr=False)
    url_env: str | None = Field(default=None, description="Env var overriding 'url'.")
    credential_env: str | None = Field(
        default=None, description="Env var supplying 'credential'."
    )
    is_builtin: bool = False
    is_default: bool = False

    @field_validator("id")
    @classmethod
    def _check_id(cls, value: str) -> str:
        if not _ID_PATTERN.match(value):
            msg = "server id must contain only lowercase letters, numbers, and hyphens"
            raise ValueError(msg)
        return value

    @field_validator("url")
    @classmethod
    def _check_url(cls, value: str) -> str:
        if not value.startswith(("http://", "https://")):
            msg = "server url must start with http:// or https://"
            raise ValueError(msg)
        return value

    @model_validator(mode="after")
    def _default_auth_kind(self) -> EndpointDescriptor:
        if self.requires_auth and self.auth_kind is None:
            self.auth_kind = AuthKind.BEARER
        return self

    def auth_headers(self) -> dict[str, str]:
        """Return the static auth header for this server, if any."""
        if not self.requires_auth:
            return {}
        if not self.credential:
            logger.warning("Server %s requires auth but has no credential configured", self.id)
            return {}
        if self.auth_kind is AuthKind.BASIC:
            token = base64.b64encode(self.credential.encode()).decode("ascii")
            return {"Authorization": f"Basic {token}"}
        if self.auth_kind is AuthKind.CUSTOM:
            return {self.auth_header: self.credential}
        return {"Authorization": f"Bearer {self.credential}"}
