# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""Pydantic models for workspaces and integrations.

Authentication is a tagged union keyed on ``type``. Only the credential
fields of the chosen variant are encrypted at rest; the tag itself is stored
in cleartext so integrations can be listed without the master key.
"""

from __future__ import annotations

import base64
import re
import uuid
from datetime import datetime
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter, field_validator

DEFAULT_WORKSPACE = "default"
DEFAULT_TIMEOUT = 30

# Sensible API roots for well-known integration types
DEFAULT_BASE_URLS: dict[str, str] = {
    "github": "https://api.github.com",
    "slack": "https://slack.com/api",
    "discord": "https://discord.com/api/v10",
    "pagerduty": "https://api.pagerduty.com",
}

_WORKSPACE_NAME = re.compile(r"^[a-z0-9][a-z0-9_-]*$")


def default_base_url(integration_type: str) -> str:
    """Return the default API base URL for a type, or an empty string."""
    return DEFAULT_BASE_URLS.get(integration_type, "")


class NoAuth(BaseModel):
    """No authentication."""

    type: Literal["none"] = "none"


class TokenAuth(BaseModel):
    """Bearer token, sent as ``Authorization: Bearer <token>``."""

    type: Literal["token"] = "token"

    token: str = ""
    """The token, or a secret reference such as ``${GITHUB_TOKEN}``."""


class BasicAuth(BaseModel):
    """HTTP basic authentication."""

    type: Literal["basic"] = "basic"
    username: str = ""
    password: str = ""


class APIKeyAuth(BaseModel):
    """A custom header carrying an API key."""

    type: Literal["api-key"] = "api-key"

    header: str = ""
    """Header name, e.g. ``X-API-Key``."""

    value: str = ""
    """Header value, or a secret reference."""


AuthConfig = Annotated[
    Union[NoAuth, TokenAuth, BasicAuth, APIKeyAuth],
    Field(discriminator="type"),
]

AUTH_TYPES = ("none", "token", "basic", "api-key")

_auth_adapter: TypeAdapter[Any] = TypeAdapter(AuthConfig)


def auth_credentials(auth: AuthConfig) -> dict[str, str]:
    """Return the credential-bearing fields of an auth variant (no tag)."""
    return auth.model_dump(exclude={"type"})


def auth_from_credentials(auth_type: str, credentials: dict[str, Any]) -> AuthConfig:
    """Rebuild an auth variant from its stored tag and decrypted credentials."""
    return _auth_adapter.validate_python({**credentials, "type": auth_type})


def auth_headers(auth: AuthConfig) -> dict[str, str]:
    """Translate an auth variant into the HTTP headers that carry it."""
    if isinstance(auth, TokenAuth):
        return {"Authorization": f"Bearer {auth.token}"}
    if isinstance(auth, BasicAuth):
        raw = f"{auth.username}:{auth.password}".encode()
        return {"Authorization": f"Basic {base64.b64encode(raw).decode('ascii')}"}
    if isinstance(auth, APIKeyAuth):
        return {auth.header: auth.value}
    return {}


def redact_auth(auth: AuthConfig) -> str:
    """Summarize an auth variant for display without revealing secrets.

    Example:
        >>> redact_auth(TokenAuth(token="ghp_abc"))
        'token (configured)'
    """
    if isinstance(auth, BasicAuth):
        return f"basic (user: {auth.username})"
    if isinstance(auth, APIKeyAuth):
        return f"api-key (header: {auth.header})"
    if isinstance(auth, TokenAuth):
        return "token (configured)"
    return "none"


class Workspace(BaseModel):
    """A named configuration boundary owning a set of integrations."""

    name: str
    """Unique, immutable workspace name (lowercase identifier)."""

    description: str = ""
    """Human-readable context."""

    created_at: datetime | None = None
    updated_at: datetime | None = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Ensure the name is a lowercase identifier."""
        if not _WORKSPACE_NAME.match(v):
            raise ValueError(
                "workspace name must start with a lowercase letter or digit and contain "
                "only lowercase letters, digits, '-' and '_'"
            )
        return v


class Integration(BaseModel):
    """A configured connection to an external service."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    """Opaque identifier (UUID)."""

    workspace_name: str = DEFAULT_WORKSPACE
    """Owning workspace."""

    name: str
    """Local name, unique within the workspace."""

    type: str
    """Integration type such as ``github`` or ``slack``."""

    base_url: str = ""
    """API base URL; empty means the type's default."""

    auth: AuthConfig = Field(default_factory=NoAuth)
    """Authentication configuration."""

    headers: dict[str, str] = Field(default_factory=dict)
    """Extra HTTP headers sent with every request."""

    timeout_seconds: int = DEFAULT_TIMEOUT
    """Request timeout in seconds."""

    created_at: datetime | None = None
    updated_at: datetime | None = None

    @field_validator("name", "type")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        """Ensure identifying fields are present."""
        if not v or not v.strip():
            raise ValueError("must not be empty")
        return v

    @field_validator("timeout_seconds")
    @classmethod
    def validate_timeout(cls, v: int) -> int:
        """Ensure the timeout is positive."""
        if v <= 0:
            raise ValueError("timeout_seconds must be positive")
        return v

    @property
    def effective_base_url(self) -> str:
        """The configured base URL, falling back to the type default."""
        return self.base_url or default_base_url(self.type)
