# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""Shareable exports of a workspace's integrations.

Exports are safe to commit: every credential field is replaced by a
placeholder naming the flag that configures it.
"""

from __future__ import annotations

import io
import json
from datetime import datetime, timezone
from typing import Any

from ruamel.yaml import YAML

from conductor.workspace.models import APIKeyAuth, AuthConfig, BasicAuth, Integration, TokenAuth

EXPORT_FORMATS = ("yaml", "json")


def _redacted(flag: str) -> str:
    return f"REDACTED - configure with --{flag}"


def _export_auth(auth: AuthConfig) -> dict[str, str]:
    if isinstance(auth, TokenAuth):
        return {"type": auth.type, "token": _redacted("token")}
    if isinstance(auth, BasicAuth):
        return {
            "type": auth.type,
            "username": _redacted("username"),
            "password": _redacted("password"),
        }
    if isinstance(auth, APIKeyAuth):
        return {
            "type": auth.type,
            "header": _redacted("api-key-header"),
            "value": _redacted("api-key-value"),
        }
    return {"type": auth.type}


def build_export(
    workspace_name: str,
    integrations: list[Integration],
    exported_at: datetime | None = None,
) -> dict[str, Any]:
    """Build the export document for a workspace.

    Args:
        workspace_name: Name of the exported workspace.
        integrations: Its integrations, in the order to emit.
        exported_at: Export timestamp; defaults to now (UTC).
    """
    exported_at = exported_at or datetime.now(timezone.utc)
    entries: list[dict[str, Any]] = []
    for integration in integrations:
        entry: dict[str, Any] = {"name": integration.name, "type": integration.type}
        if integration.base_url:
            entry["base_url"] = integration.base_url
        entry["auth"] = _export_auth(integration.auth)
        if integration.headers:
            entry["headers"] = dict(integration.headers)
        entry["timeout"] = integration.timeout_seconds
        entries.append(entry)

    return {
        "workspace": workspace_name,
        "exported_at": exported_at.isoformat().replace("+00:00", "Z"),
        "integrations": entries,
    }


def render_export(document: dict[str, Any], output_format: str = "yaml") -> str:
    """Serialize an export document as YAML or JSON.

    Raises:
        ValueError: If the format is not ``yaml`` or ``json``.
    """
    if output_format == "json":
        return json.dumps(document, indent=2) + "\n"
    if output_format == "yaml":
        yaml = YAML()
        yaml.default_flow_style = False
        stream = io.StringIO()
        yaml.dump(document, stream)
        return stream.getvalue()
    raise ValueError(f"Unsupported export format: {output_format}")
