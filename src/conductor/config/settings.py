# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""Loading of the user-level settings files.

Two files live in the config directory:

- ``config.yaml`` holds provider definitions and global settings.
- ``mcp.yaml`` holds the registry of MCP servers.

Both may contain credentials, so they are only trusted when their mode is
0600 or stricter.
"""

from __future__ import annotations

import stat
import sys
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from conductor.config.paths import config_path, mcp_config_path
from conductor.exceptions import ConfigurationError, PermissionTooLooseError

MAX_CONFIG_MODE = 0o600


class ProviderSettings(BaseModel):
    """A single configured LLM provider."""

    model_config = ConfigDict(extra="allow")

    type: str | None = None
    """Provider implementation (claude-code, anthropic, openai, ollama)."""


class ConductorSettings(BaseModel):
    """Contents of ``config.yaml``."""

    model_config = ConfigDict(extra="allow")

    providers: dict[str, ProviderSettings] = Field(default_factory=dict)
    """Configured providers keyed by user-chosen name."""

    default_provider: str | None = None
    """Name of the provider used when a workflow does not pick one."""


class MCPServerSettings(BaseModel):
    """A registered MCP server."""

    model_config = ConfigDict(extra="allow")

    command: str | None = None
    args: list[str] = Field(default_factory=list)
    env: dict[str, str] = Field(default_factory=dict)
    timeout: int | None = None
    auto_start: bool = False


class MCPSettings(BaseModel):
    """Contents of ``mcp.yaml``."""

    model_config = ConfigDict(extra="allow")

    servers: dict[str, MCPServerSettings] = Field(default_factory=dict)


def check_permissions(path: Path) -> None:
    """Reject files whose mode is more permissive than 0600.

    The check is skipped on Windows, where POSIX mode bits are not meaningful.

    Raises:
        PermissionTooLooseError: If group or other bits are set, or the owner
            has execute permission.
        OSError: If the file cannot be stat'ed.
    """
    if sys.platform == "win32":
        return
    mode = stat.S_IMODE(path.stat().st_mode)
    if mode & ~MAX_CONFIG_MODE:
        raise PermissionTooLooseError(str(path), mode)


def _load_yaml_mapping(path: Path) -> dict[str, Any]:
    yaml = YAML(typ="safe")
    try:
        data = yaml.load(path.read_text(encoding="utf-8"))
    except YAMLError as e:
        raise ConfigurationError(
            f"Invalid YAML syntax in '{path}': {e}",
            file_path=str(path),
        ) from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Invalid configuration format in '{path}': "
            f"expected a mapping, got {type(data).__name__}",
            file_path=str(path),
        )
    return data


def load_settings(path: Path | None = None) -> ConductorSettings:
    """Load ``config.yaml``, returning defaults when the file is absent.

    Raises:
        PermissionTooLooseError: If the file is readable by others.
        ConfigurationError: If the file is not valid YAML or fails validation.
    """
    path = path or config_path()
    if not path.exists():
        return ConductorSettings()
    check_permissions(path)
    try:
        return ConductorSettings.model_validate(_load_yaml_mapping(path))
    except ValueError as e:
        raise ConfigurationError(
            f"Configuration validation failed in '{path}': {e}",
            file_path=str(path),
        ) from e


def load_mcp_settings(path: Path | None = None) -> MCPSettings:
    """Load ``mcp.yaml``, returning an empty registry when the file is absent.

    Raises:
        PermissionTooLooseError: If the file is readable by others.
        ConfigurationError: If the file is not valid YAML or fails validation.
    """
    path = path or mcp_config_path()
    if not path.exists():
        return MCPSettings()
    check_permissions(path)
    try:
        return MCPSettings.model_validate(_load_yaml_mapping(path))
    except ValueError as e:
        raise ConfigurationError(
            f"MCP configuration validation failed in '{path}': {e}",
            file_path=str(path),
        ) from e
