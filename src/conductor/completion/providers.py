# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""Completion of provider names and provider types."""

from __future__ import annotations

import logging

from conductor.completion.safety import (
    CompletionResult,
    ShellCompDirective,
    candidate,
    filter_prefix,
    safe_completer,
)
from conductor.config.settings import load_settings
from conductor.exceptions import ConductorError

logger = logging.getLogger(__name__)

PROVIDER_TYPES: dict[str, str] = {
    "claude-code": "Claude Code CLI",
    "anthropic": "Anthropic API",
    "openai": "OpenAI API",
    "ollama": "Local Ollama server",
}


def _complete_provider_names(to_complete: str) -> CompletionResult:
    try:
        settings = load_settings()
    except (ConductorError, OSError) as e:
        # Includes files more permissive than 0600, which are never trusted
        logger.debug(f"Skipping provider completion: {e}")
        return [], ShellCompDirective.NO_FILE_COMP

    names = []
    for name in sorted(settings.providers):
        provider_type = settings.providers[name].type
        names.append(candidate(name, provider_type))
    return filter_prefix(names, to_complete), ShellCompDirective.NO_FILE_COMP


def _complete_provider_types(to_complete: str) -> CompletionResult:
    types = [candidate(name, desc) for name, desc in PROVIDER_TYPES.items()]
    return filter_prefix(types, to_complete), ShellCompDirective.NO_FILE_COMP


complete_provider_names = safe_completer(_complete_provider_names)
complete_provider_types = safe_completer(_complete_provider_types)
