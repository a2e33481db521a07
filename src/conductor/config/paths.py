# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""Filesystem locations used by the Conductor CLI.

All per-user paths are resolved here so that environment overrides are
honoured consistently:

- ``CONDUCTOR_HOME`` overrides ``~/.conductor`` (database, audit log).
- ``CONDUCTOR_CONFIG_DIR`` overrides the config directory.
- ``XDG_CONFIG_HOME`` is used when set, otherwise the platform default.
- ``CONDUCTOR_CONFIG`` overrides the primary config file path.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

HOME_DIR_MODE = 0o700
DATABASE_FILENAME = "conductor.db"
AUDIT_LOG_FILENAME = "audit.log"
CONFIG_FILENAME = "config.yaml"
MCP_CONFIG_FILENAME = "mcp.yaml"


def conductor_home() -> Path:
    """Return the Conductor data directory (default ``~/.conductor``)."""
    override = os.environ.get("CONDUCTOR_HOME")
    if override:
        return Path(override).expanduser()
    return Path.home() / ".conductor"


def ensure_conductor_home() -> Path:
    """Create the Conductor data directory with mode 0700 if needed."""
    home = conductor_home()
    home.mkdir(mode=HOME_DIR_MODE, parents=True, exist_ok=True)
    return home


def database_path() -> Path:
    """Return the path of the workspace database."""
    return conductor_home() / DATABASE_FILENAME


def audit_log_path() -> Path:
    """Return the path of the audit log."""
    return conductor_home() / AUDIT_LOG_FILENAME


def _platform_config_home() -> Path:
    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg)
    if sys.platform == "win32":
        appdata = os.environ.get("APPDATA")
        if appdata:
            return Path(appdata)
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support"
    return Path.home() / ".config"


def config_dir() -> Path:
    """Return the Conductor config directory.

    Resolution order: ``CONDUCTOR_CONFIG_DIR``, then
    ``$XDG_CONFIG_HOME/conductor``, then the platform default.
    """
    override = os.environ.get("CONDUCTOR_CONFIG_DIR")
    if override:
        return Path(override).expanduser()
    return _platform_config_home() / "conductor"


def config_path() -> Path:
    """Return the primary config file path (``CONDUCTOR_CONFIG`` wins)."""
    override = os.environ.get("CONDUCTOR_CONFIG")
    if override:
        return Path(override).expanduser()
    return config_dir() / CONFIG_FILENAME


def mcp_config_path() -> Path:
    """Return the MCP server registry path."""
    return config_dir() / MCP_CONFIG_FILENAME
