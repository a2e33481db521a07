# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""Implementation of the 'conductor integrations' commands.

Credentials passed on the command line may be literal values or secret
references (``${VAR}``, ``env:VAR``, ``file:/path``, ``keychain:name``).
Either way they are encrypted at rest and never printed back.
"""

from __future__ import annotations

import io
import json
from typing import Annotated, Any

import httpx
import typer
from rich.table import Table
from ruamel.yaml import YAML

from conductor.cli.common import (
    audit_logger,
    get_workspace_name,
    open_store,
    output_console,
    print_error,
    verbose_log,
)
from conductor.completion import complete_integration_names, for_typer
from conductor.exceptions import ConductorError, ValidationError
from conductor.workspace.models import (
    APIKeyAuth,
    AuthConfig,
    BasicAuth,
    Integration,
    NoAuth,
    TokenAuth,
    auth_headers,
    default_base_url,
    redact_auth,
)
from conductor.workspace.resolver import BindingResolver

integrations_app = typer.Typer(
    name="integrations",
    help="Manage integrations (named, credentialed connections to external services).",
    no_args_is_help=True,
)

OUTPUT_FORMATS = ("table", "json", "yaml")

WorkspaceOpt = Annotated[
    str | None,
    typer.Option("--workspace", "-w", help="Workspace (defaults to CONDUCTOR_WORKSPACE or current)."),
]
FormatOpt = Annotated[
    str, typer.Option("--format", "-f", help="Output format: table, json or yaml.")
]
IntegrationArg = Annotated[
    str,
    typer.Argument(help="Integration name.", autocompletion=for_typer(complete_integration_names)),
]


def build_auth(
    token: str | None = None,
    username: str | None = None,
    password: str | None = None,
    api_key_header: str | None = None,
    api_key_value: str | None = None,
) -> AuthConfig | None:
    """Build an auth variant from CLI flags.

    Returns:
        The auth variant, or None when no credential flag was given.

    Raises:
        ValidationError: If flags from different auth methods are mixed or a
            required partner flag is missing.
    """
    methods = []
    if token is not None:
        methods.append("token")
    if username is not None or password is not None:
        methods.append("basic")
    if api_key_header is not None or api_key_value is not None:
        methods.append("api-key")

    if len(methods) > 1:
        raise ValidationError(
            f"Conflicting authentication flags: {', '.join(methods)}",
            suggestion="Use only one of --token, --username/--password or "
            "--api-key-header/--api-key-value",
        )
    if not methods:
        return None

    if methods[0] == "token":
        return TokenAuth(token=token or "")
    if methods[0] == "basic":
        if not username or not password:
            raise ValidationError(
                "Basic authentication requires both --username and --password"
            )
        return BasicAuth(username=username, password=password)
    if not api_key_header or not api_key_value:
        raise ValidationError(
            "API key authentication requires both --api-key-header and --api-key-value"
        )
    return APIKeyAuth(header=api_key_header, value=api_key_value)


def parse_headers(pairs: list[str] | None) -> dict[str, str]:
    """Parse ``Name=value`` (or ``Name: value``) header flags.

    Raises:
        ValidationError: If a pair has no separator or an empty name.
    """
    headers: dict[str, str] = {}
    for pair in pairs or []:
        sep = "=" if "=" in pair else ":"
        name, found, value = pair.partition(sep)
        if not found or not name.strip():
            raise ValidationError(
                f"Invalid header '{pair}'",
                suggestion="Use the form Name=value, e.g. --header X-Team=backend",
            )
        headers[name.strip()] = value.strip()
    return headers


def integration_view(integration: Integration) -> dict[str, Any]:
    """Return a display-safe dictionary for an integration."""
    return {
        "name": integration.name,
        "type": integration.type,
        "workspace": integration.workspace_name,
        "base_url": integration.effective_base_url,
        "auth": redact_auth(integration.auth),
        "headers": sorted(integration.headers),
        "timeout": integration.timeout_seconds,
    }


def _render(data: Any, output_format: str) -> str:
    if output_format == "json":
        return json.dumps(data, indent=2) + "\n"
    yaml = YAML()
    yaml.default_flow_style = False
    stream = io.StringIO()
    yaml.dump(data, stream)
    return stream.getvalue()


def _check_format(output_format: str) -> None:
    if output_format not in OUTPUT_FORMATS:
        raise ValidationError(
            f"Unsupported output format '{output_format}'",
            suggestion=f"Use one of: {', '.join(OUTPUT_FORMATS)}",
        )


def _print_integration(integration: Integration, output_format: str) -> None:
    view = integration_view(integration)
    if output_format != "table":
        typer.echo(_render(view, output_format), nl=False)
        return
    output_console.print(f"[bold]Name:[/bold] {view['name']}")
    output_console.print(f"[bold]Type:[/bold] {view['type']}")
    output_console.print(f"[bold]Workspace:[/bold] {view['workspace']}")
    output_console.print(f"[bold]Base URL:[/bold] {view['base_url'] or '-'}")
    output_console.print(f"[bold]Auth:[/bold] {view['auth']}")
    if view["headers"]:
        output_console.print(f"[bold]Headers:[/bold] {', '.join(view['headers'])}")
    output_console.print(f"[bold]Timeout:[/bold] {view['timeout']}s")


def check_connectivity(
    integration: Integration,
    transport: httpx.BaseTransport | None = None,
) -> tuple[bool, str]:
    """Issue a GET against an integration's base URL with its auth applied.

    Returns:
        ``(success, detail)`` where detail is the status line or the error
        category. Credentials never appear in the detail.
    """
    base_url = integration.effective_base_url
    if not base_url:
        return False, "no_base_url"

    headers = {**integration.headers, **auth_headers(integration.auth)}
    try:
        with httpx.Client(timeout=integration.timeout_seconds, transport=transport) as client:
            response = client.get(base_url, headers=headers)
    except httpx.TimeoutException:
        return False, "timeout"
    except httpx.HTTPError:
        return False, "connection_error"

    if response.status_code in (401, 403):
        return False, "auth_failed"
    if response.status_code >= 400:
        return False, f"http_{response.status_code}"
    return True, f"HTTP {response.status_code}"


@integrations_app.command("add")
def add(
    integration_type: Annotated[str, typer.Argument(help="Integration type, e.g. github.")],
    name: Annotated[
        str | None, typer.Option("--name", "-n", help="Integration name (defaults to the type).")
    ] = None,
    base_url: Annotated[str | None, typer.Option("--base-url", help="API base URL.")] = None,
    token: Annotated[str | None, typer.Option("--token", help="Bearer token or reference.")] = None,
    username: Annotated[str | None, typer.Option("--username", help="Basic auth username.")] = None,
    password: Annotated[str | None, typer.Option("--password", help="Basic auth password.")] = None,
    api_key_header: Annotated[
        str | None, typer.Option("--api-key-header", help="Header carrying the API key.")
    ] = None,
    api_key_value: Annotated[
        str | None, typer.Option("--api-key-value", help="API key value or reference.")
    ] = None,
    header: Annotated[
        list[str] | None,
        typer.Option("--header", "-H", help="Extra header as Name=value. Can be repeated."),
    ] = None,
    timeout: Annotated[int, typer.Option("--timeout", help="Request timeout in seconds.")] = 30,
    workspace: WorkspaceOpt = None,
    dry_run: Annotated[
        bool, typer.Option("--dry-run", help="Validate and print without saving.")
    ] = False,
    output_format: FormatOpt = "table",
) -> None:
    """Add an integration to a workspace.

    \b
    Examples:
        conductor integrations add github --token '${GITHUB_TOKEN}'
        conductor integrations add github --name work --token env:WORK_GH_TOKEN
        conductor integrations add jira --base-url https://acme.atlassian.net \\
            --username bot --password file:~/.secrets/jira
    """
    try:
        _check_format(output_format)
        auth = build_auth(token, username, password, api_key_header, api_key_value) or NoAuth()
        headers = parse_headers(header)
        with open_store() as store:
            workspace_name = get_workspace_name(store, workspace)
            try:
                integration = Integration(
                    workspace_name=workspace_name,
                    name=name or integration_type,
                    type=integration_type,
                    base_url=base_url if base_url is not None else default_base_url(integration_type),
                    auth=auth,
                    headers=headers,
                    timeout_seconds=timeout,
                )
            except ValueError as e:
                raise ValidationError(f"Invalid integration: {e}") from e

            if dry_run:
                store.get_workspace(workspace_name)
                verbose_log("Dry run: integration not saved")
            else:
                integration = store.create_integration(integration)
    except ConductorError as e:
        print_error(e)
        raise typer.Exit(code=1) from None

    if output_format == "table":
        prefix = "Would add" if dry_run else "Added"
        output_console.print(
            f"[green]✓[/green] {prefix} integration [bold]{integration.name}[/bold] "
            f"({integration.type}) to workspace [bold]{integration.workspace_name}[/bold]"
        )
    _print_integration(integration, output_format)


@integrations_app.command("list")
def list_integrations(
    workspace: WorkspaceOpt = None,
    integration_type: Annotated[
        str | None, typer.Option("--type", "-t", help="Only show integrations of this type.")
    ] = None,
    output_format: FormatOpt = "table",
) -> None:
    """List integrations in a workspace."""
    try:
        _check_format(output_format)
        with open_store() as store:
            workspace_name = get_workspace_name(store, workspace)
            if integration_type:
                integrations = store.list_integrations_by_type(workspace_name, integration_type)
            else:
                integrations = store.list_integrations(workspace_name)
    except ConductorError as e:
        print_error(e)
        raise typer.Exit(code=1) from None

    if output_format != "table":
        typer.echo(_render([integration_view(i) for i in integrations], output_format), nl=False)
        return

    if not integrations:
        output_console.print(f"No integrations in workspace '{workspace_name}'.")
        output_console.print(
            "[dim]Add one with: conductor integrations add <type> --token '${TOKEN}'[/dim]",
            highlight=False,
        )
        return

    table = Table(show_header=True, header_style="bold", title=f"Workspace: {workspace_name}")
    table.add_column("NAME", style="cyan")
    table.add_column("TYPE")
    table.add_column("BASE URL", style="dim")
    table.add_column("AUTH")
    for integration in integrations:
        view = integration_view(integration)
        table.add_row(view["name"], view["type"], view["base_url"], view["auth"])
    output_console.print(table)


@integrations_app.command("show")
def show(
    name: IntegrationArg,
    workspace: WorkspaceOpt = None,
    output_format: FormatOpt = "table",
) -> None:
    """Show one integration with credentials redacted."""
    try:
        _check_format(output_format)
        with open_store() as store:
            integration = store.get_integration(get_workspace_name(store, workspace), name)
    except ConductorError as e:
        print_error(e)
        raise typer.Exit(code=1) from None
    _print_integration(integration, output_format)


@integrations_app.command("update")
def update(
    name: IntegrationArg,
    base_url: Annotated[str | None, typer.Option("--base-url", help="API base URL.")] = None,
    token: Annotated[str | None, typer.Option("--token", help="Bearer token or reference.")] = None,
    username: Annotated[str | None, typer.Option("--username", help="Basic auth username.")] = None,
    password: Annotated[str | None, typer.Option("--password", help="Basic auth password.")] = None,
    api_key_header: Annotated[
        str | None, typer.Option("--api-key-header", help="Header carrying the API key.")
    ] = None,
    api_key_value: Annotated[
        str | None, typer.Option("--api-key-value", help="API key value or reference.")
    ] = None,
    no_auth: Annotated[
        bool, typer.Option("--no-auth", help="Remove authentication.")
    ] = False,
    header: Annotated[
        list[str] | None,
        typer.Option("--header", "-H", help="Replace extra headers with Name=value pairs."),
    ] = None,
    timeout: Annotated[
        int | None, typer.Option("--timeout", help="Request timeout in seconds.")
    ] = None,
    workspace: WorkspaceOpt = None,
) -> None:
    """Update an integration. Only the given fields change."""
    try:
        auth = build_auth(token, username, password, api_key_header, api_key_value)
        if no_auth and auth is not None:
            raise ValidationError("--no-auth cannot be combined with credential flags")
        with open_store() as store:
            existing = store.get_integration(get_workspace_name(store, workspace), name)
            changes: dict[str, Any] = {}
            if base_url is not None:
                changes["base_url"] = base_url
            if no_auth:
                changes["auth"] = NoAuth()
            elif auth is not None:
                changes["auth"] = auth
            if header is not None:
                changes["headers"] = parse_headers(header)
            if timeout is not None:
                if timeout <= 0:
                    raise ValidationError("--timeout must be positive")
                changes["timeout_seconds"] = timeout
            updated = store.update_integration(existing.model_copy(update=changes))
    except ConductorError as e:
        print_error(e)
        raise typer.Exit(code=1) from None
    output_console.print(
        f"[green]✓[/green] Updated integration [bold]{updated.name}[/bold] "
        f"in workspace [bold]{updated.workspace_name}[/bold]"
    )


@integrations_app.command("remove")
def remove(
    name: IntegrationArg,
    workspace: WorkspaceOpt = None,
    force: Annotated[
        bool, typer.Option("--force", "-f", help="Skip the confirmation prompt.")
    ] = False,
) -> None:
    """Remove an integration from a workspace."""
    if not force:
        typer.confirm(f"Remove integration '{name}'?", abort=True)
    try:
        with open_store() as store:
            workspace_name = get_workspace_name(store, workspace)
            store.delete_integration(workspace_name, name)
    except ConductorError as e:
        print_error(e)
        raise typer.Exit(code=1) from None
    output_console.print(
        f"[green]✓[/green] Removed integration [bold]{name}[/bold] "
        f"from workspace [bold]{workspace_name}[/bold]"
    )


@integrations_app.command("test")
def test(
    name: IntegrationArg,
    workspace: WorkspaceOpt = None,
) -> None:
    """Check that an integration's base URL is reachable with its credentials."""
    audit = audit_logger()
    try:
        with open_store() as store:
            workspace_name = get_workspace_name(store, workspace)
            integration = store.get_integration(workspace_name, name)
            resolved = BindingResolver(store, audit).resolve_secrets(integration)
    except ConductorError as e:
        print_error(e)
        raise typer.Exit(code=1) from None

    verbose_log(f"GET {resolved.effective_base_url}")
    success, detail = check_connectivity(resolved)
    audit.integration_tested(
        workspace_name,
        integration.name,
        integration.type,
        success=success,
        error_category=None if success else detail,
    )
    if success:
        output_console.print(f"[green]✓[/green] {integration.name}: reachable ({detail})")
        return
    output_console.print(f"[red]✗[/red] {integration.name}: {detail}")
    raise typer.Exit(code=1)
