# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""Implementation of the 'conductor bindings' command.

Resolves a workflow's ``requires.integrations`` against a workspace and shows
which integration satisfies each requirement, without running anything.
"""

from __future__ import annotations

from pathlib import Path

from rich.console import Console
from rich.table import Table

from conductor.cli.common import audit_logger, get_workspace_name, open_store, verbose_log
from conductor.config.loader import load_workflow
from conductor.workspace.resolver import (
    BindingResolver,
    ResolvedBinding,
    merge_explicit_bindings,
)


def resolve_workflow_bindings(
    workflow_path: Path,
    bind_flags: list[str] | None = None,
    workspace: str | None = None,
) -> tuple[str, dict[str, ResolvedBinding]]:
    """Load a workflow and bind its integration requirements.

    Args:
        workflow_path: Path to the workflow YAML file.
        bind_flags: Raw ``--bind-integration`` values (``identifier=name``).
        workspace: Explicit workspace, overriding env and current workspace.

    Returns:
        The workspace name and the bindings keyed by requirement identifier.

    Raises:
        ConfigurationError: If the workflow cannot be loaded.
        ValidationError: If a bind flag is malformed.
        BindingError: If a requirement cannot be bound.
    """
    definition = load_workflow(workflow_path)
    requirements = definition.integration_requirements()
    explicit = merge_explicit_bindings(bind_flags)
    verbose_log(f"Workflow '{definition.name}' requires {len(requirements)} integration(s)")

    with open_store() as store:
        workspace_name = get_workspace_name(store, workspace)
        verbose_log(f"Resolving bindings in workspace '{workspace_name}'")
        bindings = BindingResolver(store, audit_logger()).resolve(
            workspace_name, requirements, explicit
        )
    return workspace_name, bindings


def display_bindings(
    workspace_name: str,
    bindings: dict[str, ResolvedBinding],
    console: Console,
) -> None:
    """Print resolved bindings as a table."""
    if not bindings:
        console.print("Workflow requires no integrations.")
        return

    table = Table(show_header=True, header_style="bold", title=f"Workspace: {workspace_name}")
    table.add_column("REQUIREMENT", style="cyan")
    table.add_column("INTEGRATION")
    table.add_column("TYPE")
    table.add_column("METHOD", style="dim")
    for identifier, binding in bindings.items():
        table.add_row(
            identifier,
            binding.integration.name,
            binding.integration.type,
            binding.method.value,
        )
    console.print(table)
