# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""Implementation of the 'conductor workspace' commands."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.table import Table

from conductor.cli.common import (
    console,
    get_workspace_name,
    open_store,
    output_console,
    print_error,
    verbose_log,
)
from conductor.completion import complete_workspace_names, for_typer
from conductor.exceptions import ConductorError, ValidationError
from conductor.workspace.export import EXPORT_FORMATS, build_export, render_export
from conductor.workspace.models import Workspace

workspace_app = typer.Typer(
    name="workspace",
    help="Manage workspaces (configuration boundaries for integrations).",
    no_args_is_help=True,
)

WorkspaceArg = Annotated[
    str,
    typer.Argument(help="Workspace name.", autocompletion=for_typer(complete_workspace_names)),
]


def _new_workspace(name: str, description: str) -> Workspace:
    try:
        return Workspace(name=name, description=description)
    except ValueError as e:
        raise ValidationError(
            f"Invalid workspace name '{name}'",
            suggestion="Use lowercase letters, digits, '-' and '_', e.g. 'team-backend'",
        ) from e


@workspace_app.command("create")
def create(
    name: WorkspaceArg,
    description: Annotated[
        str, typer.Option("--description", "-d", help="Human-readable description.")
    ] = "",
    use: Annotated[
        bool, typer.Option("--use", help="Make the new workspace the current one.")
    ] = False,
) -> None:
    """Create a new workspace.

    \b
    Examples:
        conductor workspace create team-backend
        conductor workspace create staging -d "Staging credentials" --use
    """
    try:
        with open_store() as store:
            workspace = store.create_workspace(_new_workspace(name, description))
            if use:
                store.set_current_workspace(workspace.name)
    except ConductorError as e:
        print_error(e)
        raise typer.Exit(code=1) from None

    output_console.print(f"[green]✓[/green] Created workspace [bold]{workspace.name}[/bold]")
    if use:
        output_console.print(f"Switched to workspace [bold]{workspace.name}[/bold]")


@workspace_app.command("list")
def list_workspaces() -> None:
    """List all workspaces, marking the current one."""
    try:
        with open_store() as store:
            current = get_workspace_name(store)
            workspaces = store.list_workspaces()
    except ConductorError as e:
        print_error(e)
        raise typer.Exit(code=1) from None

    table = Table(show_header=True, header_style="bold")
    table.add_column("", width=1)
    table.add_column("NAME", style="cyan")
    table.add_column("DESCRIPTION")
    table.add_column("CREATED", style="dim")
    for ws in workspaces:
        marker = "*" if ws.name == current else ""
        created = ws.created_at.strftime("%Y-%m-%d") if ws.created_at else ""
        table.add_row(marker, ws.name, ws.description, created)
    output_console.print(table)


@workspace_app.command("show")
def show(
    name: Annotated[
        str | None,
        typer.Argument(
            help="Workspace name (defaults to the current workspace).",
            autocompletion=for_typer(complete_workspace_names),
        ),
    ] = None,
) -> None:
    """Show a workspace and its integrations."""
    try:
        with open_store() as store:
            workspace_name = get_workspace_name(store, name)
            workspace = store.get_workspace(workspace_name)
            integrations = store.list_integration_names(workspace_name)
    except ConductorError as e:
        print_error(e)
        raise typer.Exit(code=1) from None

    output_console.print(f"[bold]Workspace:[/bold] {workspace.name}")
    if workspace.description:
        output_console.print(f"[bold]Description:[/bold] {workspace.description}")
    if workspace.created_at:
        output_console.print(f"[bold]Created:[/bold] {workspace.created_at.isoformat()}")
    output_console.print(f"[bold]Integrations:[/bold] {len(integrations)}")
    for integration_name, integration_type in integrations:
        output_console.print(f"  • {integration_name} [dim]({integration_type})[/dim]")


@workspace_app.command("update")
def update(
    name: WorkspaceArg,
    description: Annotated[
        str, typer.Option("--description", "-d", help="New description.")
    ],
) -> None:
    """Update a workspace's description."""
    try:
        with open_store() as store:
            store.update_workspace(name, description)
    except ConductorError as e:
        print_error(e)
        raise typer.Exit(code=1) from None
    output_console.print(f"[green]✓[/green] Updated workspace [bold]{name}[/bold]")


@workspace_app.command("delete")
def delete(
    name: WorkspaceArg,
    force: Annotated[
        bool, typer.Option("--force", "-f", help="Skip the confirmation prompt.")
    ] = False,
) -> None:
    """Delete a workspace and all of its integrations."""
    if not force:
        typer.confirm(
            f"Delete workspace '{name}' and all of its integrations?", abort=True
        )
    try:
        with open_store() as store:
            was_current = store.get_current_workspace() == name
            store.delete_workspace(name)
            if was_current:
                store.set_current_workspace("default")
                verbose_log("Current workspace reset to 'default'")
    except ConductorError as e:
        print_error(e)
        raise typer.Exit(code=1) from None
    output_console.print(f"[green]✓[/green] Deleted workspace [bold]{name}[/bold]")


@workspace_app.command("use")
def use(name: WorkspaceArg) -> None:
    """Switch the current workspace."""
    try:
        with open_store() as store:
            store.set_current_workspace(name)
    except ConductorError as e:
        print_error(e)
        raise typer.Exit(code=1) from None
    output_console.print(f"Switched to workspace [bold]{name}[/bold]")


@workspace_app.command("current")
def current() -> None:
    """Print the workspace commands operate on by default."""
    try:
        with open_store() as store:
            name = get_workspace_name(store)
    except ConductorError as e:
        print_error(e)
        raise typer.Exit(code=1) from None
    output_console.print(name, highlight=False)


@workspace_app.command("export")
def export(
    name: Annotated[
        str | None,
        typer.Argument(
            help="Workspace to export (defaults to the current workspace).",
            autocompletion=for_typer(complete_workspace_names),
        ),
    ] = None,
    output_format: Annotated[
        str, typer.Option("--format", "-f", help="Output format: yaml or json.")
    ] = "yaml",
    output: Annotated[
        Path | None, typer.Option("--output", "-o", help="Write to a file instead of stdout.")
    ] = None,
) -> None:
    """Export a workspace's integrations with credentials redacted.

    \b
    Examples:
        conductor workspace export > workspace.yaml
        conductor workspace export team-backend --format json -o team.json
    """
    if output_format not in EXPORT_FORMATS:
        print_error(
            ValidationError(
                f"Unsupported export format '{output_format}'",
                suggestion=f"Use one of: {', '.join(EXPORT_FORMATS)}",
            )
        )
        raise typer.Exit(code=1)

    try:
        with open_store() as store:
            workspace_name = get_workspace_name(store, name)
            store.get_workspace(workspace_name)
            integrations = store.list_integrations(workspace_name)
    except ConductorError as e:
        print_error(e)
        raise typer.Exit(code=1) from None

    rendered = render_export(build_export(workspace_name, integrations), output_format)
    if output is None:
        typer.echo(rendered, nl=False)
    else:
        output.write_text(rendered, encoding="utf-8")
        console.print(f"[green]✓[/green] Exported workspace '{workspace_name}' to {output}")
