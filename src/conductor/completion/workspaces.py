# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""Completion of workspace and integration names from the local store.

The store is opened without a master key: names and types are stored in
cleartext, and completion never needs credentials. A missing database
yields no candidates rather than creating one.
"""

from __future__ import annotations

from conductor.completion.safety import (
    CompletionResult,
    ShellCompDirective,
    candidate,
    filter_prefix,
    safe_completer,
)
from conductor.config.paths import database_path
from conductor.workspace.store import WorkspaceStore, resolve_workspace_name


def _open_store() -> WorkspaceStore | None:
    path = database_path()
    if not path.is_file():
        return None
    return WorkspaceStore(path, encryptor=None)


def _complete_workspace_names(to_complete: str) -> CompletionResult:
    store = _open_store()
    if store is None:
        return [], ShellCompDirective.NO_FILE_COMP
    with store:
        names = [candidate(ws.name, ws.description) for ws in store.list_workspaces()]
    return filter_prefix(names, to_complete), ShellCompDirective.NO_FILE_COMP


def _complete_integration_names(to_complete: str) -> CompletionResult:
    store = _open_store()
    if store is None:
        return [], ShellCompDirective.NO_FILE_COMP
    with store:
        workspace = resolve_workspace_name(store)
        names = [
            candidate(name, integration_type)
            for name, integration_type in store.list_integration_names(workspace)
        ]
    return filter_prefix(names, to_complete), ShellCompDirective.NO_FILE_COMP


complete_workspace_names = safe_completer(_complete_workspace_names)
complete_integration_names = safe_completer(_complete_integration_names)
