# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""Completion of enumerated flag values."""

from __future__ import annotations

from conductor.completion.safety import (
    Completer,
    CompletionResult,
    ShellCompDirective,
    candidate,
    filter_prefix,
    safe_completer,
)

SECURITY_PROFILES: dict[str, str] = {
    "unrestricted": "No restrictions (development only)",
    "standard": "Balanced defaults for everyday use",
    "strict": "Restricted filesystem and network access",
    "air-gapped": "No network access",
}

RUN_STATUSES: dict[str, str] = {
    "pending": "Waiting to start",
    "running": "Currently executing",
    "completed": "Finished successfully",
    "failed": "Finished with an error",
    "cancelled": "Stopped before completion",
}

SECRET_BACKENDS: dict[str, str] = {
    "env": "Environment variables",
    "keychain": "System keychain",
    "file": "Encrypted file",
}

MCP_TEMPLATES: dict[str, str] = {
    "filesystem": "Read and write local files",
    "github": "GitHub repositories, issues and pull requests",
    "postgres": "Query a PostgreSQL database",
    "sqlite": "Query a SQLite database",
    "puppeteer": "Browser automation",
    "fetch": "Fetch web content",
    "custom": "Start from an empty server",
}


def static_completer(values: dict[str, str]) -> Completer:
    """Build a completer over a fixed ``value -> description`` table."""

    def complete(to_complete: str) -> CompletionResult:
        candidates = [candidate(value, desc) for value, desc in values.items()]
        return filter_prefix(candidates, to_complete), ShellCompDirective.NO_FILE_COMP

    return safe_completer(complete)


complete_security_profiles = static_completer(SECURITY_PROFILES)
complete_run_statuses = static_completer(RUN_STATUSES)
complete_secret_backends = static_completer(SECRET_BACKENDS)
complete_mcp_templates = static_completer(MCP_TEMPLATES)
