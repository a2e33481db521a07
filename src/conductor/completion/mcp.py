# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""Completion of registered MCP server names."""

from __future__ import annotations

import logging

from conductor.completion.safety import (
    CompletionResult,
    ShellCompDirective,
    candidate,
    filter_prefix,
    safe_completer,
)
from conductor.config.settings import load_mcp_settings
from conductor.exceptions import ConductorError

logger = logging.getLogger(__name__)


def _complete_mcp_server_names(to_complete: str) -> CompletionResult:
    try:
        settings = load_mcp_settings()
    except (ConductorError, OSError) as e:
        logger.debug(f"Skipping MCP server completion: {e}")
        return [], ShellCompDirective.NO_FILE_COMP

    names = [
        candidate(name, server.command) for name, server in sorted(settings.servers.items())
    ]
    return filter_prefix(names, to_complete), ShellCompDirective.NO_FILE_COMP


complete_mcp_server_names = safe_completer(_complete_mcp_server_names)
