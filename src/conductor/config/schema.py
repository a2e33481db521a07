# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""Pydantic models for workflow files.

Only the parts of a workflow that the CLI front-end reasons about are
modelled strictly: its identity and its ``requires`` block. Everything
else (steps, triggers, security) is carried through untouched for the
controller.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

_AS_SEPARATOR = re.compile(r"\s+as\s+")


@dataclass(frozen=True)
class IntegrationRequirement:
    """A parsed entry of ``requires.integrations``.

    Attributes:
        type: Integration type, e.g. ``github``.
        alias: Optional local alias, e.g. ``source``.
    """

    type: str
    alias: str | None = None

    @property
    def identifier(self) -> str:
        """The binding key: the alias if present, otherwise the type."""
        return self.alias or self.type

    def __str__(self) -> str:
        if self.alias:
            return f"{self.type} as {self.alias}"
        return self.type


def parse_integration_requirement(requirement: str) -> IntegrationRequirement:
    """Parse ``"github"`` or ``"github as source"`` into a requirement.

    Example:
        >>> parse_integration_requirement("github as source")
        IntegrationRequirement(type='github', alias='source')
    """
    parts = _AS_SEPARATOR.split(requirement.strip(), maxsplit=1)
    if len(parts) == 2:
        return IntegrationRequirement(type=parts[0].strip(), alias=parts[1].strip() or None)
    return IntegrationRequirement(type=requirement.strip())


class MCPServerRequirement(BaseModel):
    """An MCP server a workflow needs at runtime."""

    name: str
    """Registered MCP server name."""

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Ensure the server name is present."""
        if not v.strip():
            raise ValueError("name is required")
        return v


class RequirementsDefinition(BaseModel):
    """The ``requires`` block of a workflow."""

    integrations: list[str] = Field(default_factory=list)
    """Integration requirements in declaration order."""

    mcp_servers: list[MCPServerRequirement] = Field(default_factory=list)
    """MCP servers the workflow expects to be registered."""

    @model_validator(mode="after")
    def validate_requirements(self) -> RequirementsDefinition:
        """Reject empty entries, duplicate types and duplicate aliases."""
        seen_types: set[str] = set()
        seen_aliases: set[str] = set()
        for index, raw in enumerate(self.integrations):
            if not raw or not raw.strip():
                raise ValueError(f"integration requirement {index}: cannot be empty")
            parsed = parse_integration_requirement(raw)
            if parsed.alias is None:
                if parsed.type in seen_types:
                    raise ValueError(f"duplicate integration requirement: {parsed.type}")
                seen_types.add(parsed.type)
            else:
                if parsed.alias in seen_aliases:
                    raise ValueError(f"duplicate integration alias: {parsed.alias}")
                seen_aliases.add(parsed.alias)

        server_names: set[str] = set()
        for server in self.mcp_servers:
            if server.name in server_names:
                raise ValueError(f"duplicate mcp_server requirement: {server.name}")
            server_names.add(server.name)
        return self

    def parsed_integrations(self) -> list[IntegrationRequirement]:
        """Return the integration requirements parsed, in declaration order."""
        return [parse_integration_requirement(raw) for raw in self.integrations]


class WorkflowDefinition(BaseModel):
    """A workflow file as seen by the CLI front-end."""

    model_config = ConfigDict(extra="allow")

    name: str
    """Workflow name (a top-level ``name:`` key is what marks a YAML file as a workflow)."""

    description: str | None = None
    """Human-readable description."""

    requires: RequirementsDefinition | None = None
    """Abstract service dependencies, bound at run time."""

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Ensure the workflow name is not blank."""
        if not v.strip():
            raise ValueError("Workflow name cannot be empty")
        return v

    def integration_requirements(self) -> list[IntegrationRequirement]:
        """Return parsed integration requirements (empty when none declared)."""
        if self.requires is None:
            return []
        return self.requires.parsed_integrations()
