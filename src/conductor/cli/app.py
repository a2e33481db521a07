# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""Typer application definition for the Conductor CLI.

This module defines the main Typer app, global options and the top-level
commands. Command groups live in their own modules.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer

from conductor import __version__
from conductor.cli.common import (
    configure_logging,
    format_error,
    is_verbose,
    output_console,
    print_error,
    verbose_mode,
)
from conductor.cli.integrations import integrations_app
from conductor.cli.workspace import workspace_app
from conductor.completion import complete_workflow_files, for_typer
from conductor.exceptions import ConductorError

# Create the main Typer app
app = typer.Typer(
    name="conductor",
    help="Conductor - Manage workspaces, integrations and workflow bindings.",
    add_completion=False,
    no_args_is_help=True,
)

app.add_typer(workspace_app, name="workspace")
app.add_typer(integrations_app, name="integrations")

__all__ = ["app", "format_error", "is_verbose", "print_error"]


def version_callback(value: bool) -> None:
    """Display version information and exit."""
    if value:
        output_console.print(f"Conductor v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            "-v",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-V",
            help="Show detailed diagnostic output.",
        ),
    ] = False,
) -> None:
    """Conductor - Manage workspaces, integrations and workflow bindings."""
    verbose_mode.set(verbose)
    configure_logging(verbose)


@app.command()
def bindings(
    workflow: Annotated[
        Path,
        typer.Argument(
            help="Path to the workflow YAML file.",
            exists=True,
            file_okay=True,
            dir_okay=False,
            readable=True,
            resolve_path=True,
            autocompletion=for_typer(complete_workflow_files),
        ),
    ],
    bind_integration: Annotated[
        list[str] | None,
        typer.Option(
            "--bind-integration",
            "-b",
            help="Bind a requirement to a named integration (identifier=name). "
            "Can be repeated.",
        ),
    ] = None,
    workspace: Annotated[
        str | None,
        typer.Option("--workspace", "-w", help="Workspace to bind against."),
    ] = None,
) -> None:
    """Show which integrations satisfy a workflow's requirements.

    Requirements are bound explicitly (--bind-integration or
    CONDUCTOR_BIND_INTEGRATION) or automatically when exactly one
    integration of the required type exists.

    \b
    Examples:
        conductor bindings workflow.yaml
        conductor bindings sync.yaml -b source=gh-work -b target=gh-personal
        conductor bindings workflow.yaml --workspace team-backend
    """
    from conductor.cli.bindings import display_bindings, resolve_workflow_bindings

    try:
        workspace_name, resolved = resolve_workflow_bindings(
            workflow, bind_integration, workspace
        )
    except ConductorError as e:
        print_error(e)
        raise typer.Exit(code=1) from None

    display_bindings(workspace_name, resolved, output_console)


@app.command("__complete", hidden=True)
def complete(
    source: Annotated[str, typer.Argument(help="Completion source name.")],
    to_complete: Annotated[str, typer.Argument(help="Word being completed.")] = "",
) -> None:
    """Print completion candidates for shell scripts."""
    from conductor.cli.complete import render_completion

    typer.echo(render_completion(source, to_complete), nl=False)
