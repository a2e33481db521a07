# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""Dynamic shell completion sources.

Every completer takes the word being completed and returns
``(candidates, directive)``. Candidates are plain values or
``"value\\tdescription"``. Completers never raise and never block the shell
for more than the completion budget.
"""

from conductor.completion.connectors import (
    complete_connector_names,
    complete_connector_operations,
)
from conductor.completion.examples import complete_example_names
from conductor.completion.flags import (
    complete_mcp_templates,
    complete_run_statuses,
    complete_secret_backends,
    complete_security_profiles,
)
from conductor.completion.mcp import complete_mcp_server_names
from conductor.completion.providers import complete_provider_names, complete_provider_types
from conductor.completion.runs import complete_active_run_ids, complete_run_ids
from conductor.completion.safety import (
    Completer,
    CompletionResult,
    ShellCompDirective,
    for_typer,
    safe_completer,
)
from conductor.completion.workflows import complete_workflow_files
from conductor.completion.workspaces import (
    complete_integration_names,
    complete_workspace_names,
)

# Source names accepted by the hidden ``conductor __complete`` command
COMPLETERS: dict[str, Completer] = {
    "workflows": complete_workflow_files,
    "runs": complete_run_ids,
    "active-runs": complete_active_run_ids,
    "providers": complete_provider_names,
    "provider-types": complete_provider_types,
    "mcp-servers": complete_mcp_server_names,
    "security": complete_security_profiles,
    "status": complete_run_statuses,
    "backend": complete_secret_backends,
    "mcp-templates": complete_mcp_templates,
    "connectors": complete_connector_names,
    "operations": complete_connector_operations,
    "examples": complete_example_names,
    "workspaces": complete_workspace_names,
    "integrations": complete_integration_names,
}

__all__ = [
    "COMPLETERS",
    "Completer",
    "CompletionResult",
    "ShellCompDirective",
    "complete_active_run_ids",
    "complete_connector_names",
    "complete_connector_operations",
    "complete_example_names",
    "complete_integration_names",
    "complete_mcp_server_names",
    "complete_mcp_templates",
    "complete_provider_names",
    "complete_provider_types",
    "complete_run_ids",
    "complete_run_statuses",
    "complete_secret_backends",
    "complete_security_profiles",
    "complete_workflow_files",
    "complete_workspace_names",
    "for_typer",
    "safe_completer",
]
