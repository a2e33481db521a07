# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""Shared helpers for CLI commands: consoles, error display and store access."""

from __future__ import annotations

import contextvars
import logging
from collections.abc import Iterator
from contextlib import contextmanager

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.text import Text

from conductor.config.paths import audit_log_path, ensure_conductor_home
from conductor.exceptions import ConductorError
from conductor.workspace.audit import AuditLogger, configure_audit_log
from conductor.workspace.store import WorkspaceStore, resolve_workspace_name

# Diagnostics go to stderr; command results go to stdout
console = Console(stderr=True)
output_console = Console()

# Context variable for verbose mode (--verbose flag)
verbose_mode: contextvars.ContextVar[bool] = contextvars.ContextVar(
    "verbose_mode", default=False
)

_audit_handler: logging.Handler | None = None


def is_verbose() -> bool:
    """Check if verbose mode is enabled."""
    return verbose_mode.get()


def verbose_log(message: str, style: str = "dim") -> None:
    """Print a message to stderr if verbose mode is enabled.

    Args:
        message: The message to log.
        style: Rich style for the message.
    """
    if is_verbose():
        console.print(f"[{style}]{message}[/{style}]", highlight=False)


def configure_logging(verbose: bool) -> None:
    """Route ``conductor`` log records to stderr through Rich."""
    package_logger = logging.getLogger("conductor")
    for handler in list(package_logger.handlers):
        if isinstance(handler, RichHandler):
            package_logger.removeHandler(handler)
    handler = RichHandler(console=console, show_time=False, show_path=False)
    package_logger.addHandler(handler)
    package_logger.setLevel(logging.DEBUG if verbose else logging.WARNING)


def format_error(error: Exception) -> Panel:
    """Format an exception for Rich console display.

    Creates a styled Panel with the error message, location and field path
    (when available) and the suggestion.

    Args:
        error: The exception to format.

    Returns:
        Rich Panel with formatted error content.
    """
    content = Text()

    if isinstance(error, ConductorError):
        content.append(error.message, style="bold red")

        if error.file_path or error.line_number:
            content.append("\n\n")
            content.append("📍 Location: ", style="yellow")
            if error.file_path:
                content.append(error.file_path, style="cyan")
            if error.line_number:
                if error.file_path:
                    content.append(":", style="yellow")
                content.append(f"line {error.line_number}", style="cyan")

        field_path = getattr(error, "field_path", None)
        if field_path:
            content.append("\n")
            content.append("📋 Field: ", style="yellow")
            content.append(field_path, style="cyan")

        if error.suggestion:
            content.append("\n\n")
            content.append("💡 Suggestion: ", style="green")
            content.append(error.suggestion, style="white")

        error_type = error.error_type
    else:
        content.append(str(error), style="red")
        error_type = type(error).__name__

    return Panel(
        content,
        title=f"[bold red]❌ {error_type}[/bold red]",
        border_style="red",
        padding=(1, 2),
    )


def print_error(error: Exception) -> None:
    """Print a formatted error to stderr."""
    console.print(format_error(error))


def _ensure_audit_log() -> AuditLogger:
    global _audit_handler
    if _audit_handler is None:
        _audit_handler = configure_audit_log(audit_log_path())
    return AuditLogger()


@contextmanager
def open_store() -> Iterator[WorkspaceStore]:
    """Open the per-user workspace store with auditing enabled."""
    ensure_conductor_home()
    store = WorkspaceStore.open(audit=_ensure_audit_log())
    try:
        yield store
    finally:
        store.close()


def get_workspace_name(store: WorkspaceStore, flag_value: str | None = None) -> str:
    """Resolve the workspace for a command (flag, env, then current)."""
    return resolve_workspace_name(store, flag_value)


def audit_logger() -> AuditLogger:
    """Return the audit logger, installing the file sink on first use."""
    return _ensure_audit_log()
