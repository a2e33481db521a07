# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""Exception hierarchy for Conductor.

This module defines all custom exceptions used throughout the application.
All exceptions inherit from ConductorError and support optional suggestions
to help users resolve issues.

The hierarchy is closed: the workspace store, the binding resolver, the
crypto core and the controller client each raise one of the kinds below,
and the CLI maps each kind to a single remediation.
"""

from __future__ import annotations


class ConductorError(Exception):
    """Base exception for all Conductor errors.

    All custom exceptions in the application inherit from this class.
    Supports optional file path, line number, and suggestion to help
    users understand what went wrong and how to fix it.

    Attributes:
        suggestion: Optional actionable advice for resolving the error.
        file_path: Optional path to the file where the error occurred.
        line_number: Optional line number where the error occurred.
    """

    def __init__(
        self,
        message: str,
        suggestion: str | None = None,
        file_path: str | None = None,
        line_number: int | None = None,
    ) -> None:
        """Initialize a ConductorError.

        Args:
            message: The error message describing what went wrong.
            suggestion: Optional advice for resolving the error.
            file_path: Optional path to the file where the error occurred.
            line_number: Optional line number where the error occurred.
        """
        self.suggestion = suggestion
        self.file_path = file_path
        self.line_number = line_number
        super().__init__(message)

    @property
    def message(self) -> str:
        """Return the bare message without location or suggestion."""
        return self.args[0] if self.args else ""

    def __str__(self) -> str:
        """Format the error message with location and suggestion."""
        msg = self.message

        # Add location info if available
        if self.file_path or self.line_number:
            location_parts = []
            if self.file_path:
                location_parts.append(f"File: {self.file_path}")
            if self.line_number:
                location_parts.append(f"Line: {self.line_number}")
            location = ", ".join(location_parts)
            msg += f"\n\n📍 Location: {location}"

        if self.suggestion:
            msg += f"\n\n💡 Suggestion: {self.suggestion}"
        return msg

    @property
    def error_type(self) -> str:
        """Return the type name for display purposes."""
        return self.__class__.__name__


class ConfigurationError(ConductorError):
    """Raised when a workflow or settings file is invalid.

    This includes malformed YAML, missing required fields, or invalid
    configuration values.

    Attributes:
        field_path: Optional path to the invalid field (e.g., 'requires.integrations').
    """

    def __init__(
        self,
        message: str,
        suggestion: str | None = None,
        file_path: str | None = None,
        line_number: int | None = None,
        field_path: str | None = None,
    ) -> None:
        """Initialize a ConfigurationError.

        Args:
            message: The error message describing what went wrong.
            suggestion: Optional advice for resolving the error.
            file_path: Optional path to the file where the error occurred.
            line_number: Optional line number where the error occurred.
            field_path: Optional path to the invalid configuration field.
        """
        self.field_path = field_path

        # Auto-generate suggestion for common configuration errors
        if suggestion is None:
            suggestion = self._generate_suggestion(message, field_path)

        super().__init__(message, suggestion, file_path, line_number)

    def _generate_suggestion(self, message: str, field_path: str | None) -> str | None:
        """Generate helpful suggestions based on error message and field."""
        msg_lower = message.lower()

        if "duplicate integration alias" in msg_lower:
            return "Give each aliased requirement a distinct alias, e.g. 'github as source'"

        if "duplicate integration requirement" in msg_lower:
            return "Use aliases to require the same integration type more than once"

        if "required" in msg_lower:
            return f"Add the missing required field{' at ' + field_path if field_path else ''}"

        if "type" in msg_lower or "validation" in msg_lower:
            return "Check the field type matches the expected schema type"

        return None

    def __str__(self) -> str:
        """Format the error message with field path, location and suggestion."""
        msg = self.message

        if self.field_path:
            msg += f"\n\n📋 Field: {self.field_path}"

        if self.file_path or self.line_number:
            location_parts = []
            if self.file_path:
                location_parts.append(f"File: {self.file_path}")
            if self.line_number:
                location_parts.append(f"Line: {self.line_number}")
            location = ", ".join(location_parts)
            msg += f"\n\n📍 Location: {location}"

        if self.suggestion:
            msg += f"\n\n💡 Suggestion: {self.suggestion}"
        return msg


class PermissionTooLooseError(ConfigurationError):
    """Raised when a credential-bearing config file is readable by others.

    Configuration files that may hold provider keys must be mode 0600 or
    stricter. Shell completion skips such files silently; the CLI refuses
    to load them.

    Attributes:
        path: The offending file.
        mode: The permission bits found on disk.
    """

    def __init__(self, path: str, mode: int) -> None:
        """Initialize a PermissionTooLooseError.

        Args:
            path: The offending file.
            mode: The permission bits found on disk.
        """
        self.path = path
        self.mode = mode
        super().__init__(
            f"Config file {path} has permissions {mode:#o}, expected 0600 or stricter",
            suggestion=f"Run: chmod 600 {path}",
            file_path=path,
        )


class ValidationError(ConductorError):
    """Raised when user-supplied data fails validation.

    This includes Pydantic validation errors, malformed key=value pairs
    and auth configurations missing a required credential.
    """

    def __init__(
        self,
        message: str,
        suggestion: str | None = None,
        file_path: str | None = None,
        line_number: int | None = None,
        field_name: str | None = None,
        expected_type: str | None = None,
        actual_value: str | None = None,
    ) -> None:
        """Initialize a ValidationError.

        Args:
            message: The error message describing what went wrong.
            suggestion: Optional advice for resolving the error.
            file_path: Optional path to the file where the error occurred.
            line_number: Optional line number where the error occurred.
            field_name: Optional name of the field that failed validation.
            expected_type: Optional expected type for the field.
            actual_value: Optional string representation of the actual value.
        """
        self.field_name = field_name
        self.expected_type = expected_type
        self.actual_value = actual_value

        if suggestion is None and expected_type:
            suggestion = f"Expected type '{expected_type}'"
            if actual_value:
                suggestion += f", but got '{actual_value}'"

        super().__init__(message, suggestion, file_path, line_number)


# ---------------------------------------------------------------------------
# Crypto core
# ---------------------------------------------------------------------------


class CryptoError(ConductorError):
    """Base class for encryption and master-key failures."""


class EmptyInputError(CryptoError):
    """Raised when asked to encrypt a zero-length plaintext."""

    def __init__(self) -> None:
        super().__init__("Cannot encrypt empty input")


class InvalidKeyError(CryptoError):
    """Raised when a master key is not exactly 32 bytes or not valid base64."""

    def __init__(self, message: str, suggestion: str | None = None) -> None:
        if suggestion is None:
            suggestion = (
                "CONDUCTOR_MASTER_KEY must be the base64 encoding of exactly 32 bytes. "
                "Generate one with: head -c 32 /dev/urandom | base64"
            )
        super().__init__(message, suggestion)


class InvalidCiphertextError(CryptoError):
    """Raised when decryption fails.

    Truncated input, a wrong key and tampered bytes all surface as this
    single error; callers cannot tell them apart.
    """

    def __init__(self, message: str = "Invalid ciphertext") -> None:
        super().__init__(
            message,
            suggestion="The stored credential could not be decrypted with the current "
            "master key. Re-enter it with 'conductor integrations update'.",
        )


class KeychainUnavailableError(CryptoError):
    """Raised when the OS keychain is locked or absent."""

    def __init__(self, message: str = "System keychain unavailable") -> None:
        super().__init__(
            message,
            suggestion="Set CONDUCTOR_MASTER_KEY to a base64-encoded 32-byte key instead.",
        )


# ---------------------------------------------------------------------------
# Workspace store
# ---------------------------------------------------------------------------


class WorkspaceError(ConductorError):
    """Base class for workspace store errors."""


class WorkspaceNotFoundError(WorkspaceError):
    """Raised when a workspace lookup, update or delete finds nothing.

    Attributes:
        workspace_name: The missing workspace.
    """

    def __init__(self, workspace_name: str, suggestion: str | None = None) -> None:
        self.workspace_name = workspace_name
        if suggestion is None:
            suggestion = (
                "List available workspaces with 'conductor workspace list' or create it "
                f"with 'conductor workspace create {workspace_name}'"
            )
        super().__init__(f"Workspace '{workspace_name}' not found", suggestion)


class WorkspaceExistsError(WorkspaceError):
    """Raised when creating a workspace whose name is already taken."""

    def __init__(self, workspace_name: str) -> None:
        self.workspace_name = workspace_name
        super().__init__(
            f"Workspace '{workspace_name}' already exists",
            suggestion=f"Switch to it with 'conductor workspace use {workspace_name}'",
        )


class DefaultWorkspaceError(WorkspaceError):
    """Raised when attempting to delete the 'default' workspace."""

    def __init__(self) -> None:
        self.workspace_name = "default"
        super().__init__(
            "Cannot delete the default workspace",
            suggestion="Remove its integrations individually with 'conductor integrations remove'",
        )


class IntegrationNotFoundError(WorkspaceError):
    """Raised when an integration lookup, update or delete finds nothing.

    Attributes:
        workspace_name: Workspace that was searched.
        integration_name: The missing integration.
    """

    def __init__(self, workspace_name: str, integration_name: str) -> None:
        self.workspace_name = workspace_name
        self.integration_name = integration_name
        super().__init__(
            f"Integration '{integration_name}' not found in workspace '{workspace_name}'",
            suggestion=f"Add it with 'conductor integrations add <type> --name {integration_name}'",
        )


class IntegrationExistsError(WorkspaceError):
    """Raised when an integration name collides within its workspace."""

    def __init__(self, workspace_name: str, integration_name: str) -> None:
        self.workspace_name = workspace_name
        self.integration_name = integration_name
        super().__init__(
            f"Integration '{integration_name}' already exists in workspace '{workspace_name}'",
            suggestion=(
                f"Update it with 'conductor integrations update {integration_name} "
                f"--workspace {workspace_name}'"
            ),
        )


# ---------------------------------------------------------------------------
# Binding resolution
# ---------------------------------------------------------------------------


class BindingError(ConductorError):
    """Raised when a workflow requirement cannot be bound to an integration.

    Attributes:
        identifier: Requirement identifier (alias if present, otherwise type).
        reason: Why binding failed.
    """

    def __init__(
        self,
        identifier: str,
        reason: str,
        suggestion: str | None = None,
        message: str | None = None,
    ) -> None:
        self.identifier = identifier
        self.reason = reason
        super().__init__(message or f"Binding error for '{identifier}': {reason}", suggestion)


class NoIntegrationOfTypeError(BindingError):
    """Raised when a workspace holds no integration of a required type."""

    def __init__(self, integration_type: str, workspace_name: str) -> None:
        self.integration_type = integration_type
        self.workspace_name = workspace_name
        self.env_var = f"{to_upper_snake_case(integration_type)}_TOKEN"
        super().__init__(
            integration_type,
            f"no integration of type '{integration_type}' in workspace '{workspace_name}'",
            suggestion=(
                f"conductor integrations add {integration_type} --token '${{{self.env_var}}}'"
            ),
            message=(
                f"Workflow requires '{integration_type}' integration but none is configured "
                f"in workspace '{workspace_name}'"
            ),
        )


class MultipleIntegrationsOfTypeError(BindingError):
    """Raised when more than one integration could satisfy an unaliased requirement."""

    def __init__(
        self, integration_type: str, workspace_name: str, candidates: list[str]
    ) -> None:
        self.integration_type = integration_type
        self.workspace_name = workspace_name
        self.candidates = list(candidates)
        super().__init__(
            integration_type,
            f"{len(self.candidates)} integrations of type '{integration_type}' found",
            suggestion=(
                f"conductor run workflow.yaml --bind-integration {integration_type}=<name> "
                f"(one of: {', '.join(self.candidates)})"
            ),
            message=(
                f"Workflow requires '{integration_type}' but {len(self.candidates)} "
                f"integrations found in workspace '{workspace_name}': "
                f"{', '.join(self.candidates)}"
            ),
        )


class SecretResolutionError(BindingError):
    """Raised when a secret reference in an integration's auth cannot be resolved.

    Only the reference is reported, never a resolved value.
    """

    def __init__(self, integration_name: str, field: str, reference: str, cause: str) -> None:
        self.integration_name = integration_name
        self.field = field
        self.reference = reference
        super().__init__(
            integration_name,
            f"failed to resolve {field} reference '{reference}': {cause}",
            suggestion=_secret_suggestion(reference),
            message=(
                f"Failed to resolve secret for integration '{integration_name}' "
                f"(field: {field}, reference: {reference}): {cause}"
            ),
        )


def _secret_suggestion(reference: str) -> str | None:
    if reference.startswith("env:"):
        return f"export {reference[4:]}=<your-value>"
    if reference.startswith("${") and reference.endswith("}"):
        return f"export {reference[2:-1]}=<your-value>"
    if reference.startswith("file:"):
        return f"Ensure a readable file exists at {reference[5:]}"
    return None


def to_upper_snake_case(value: str) -> str:
    """Convert an integration type to UPPER_SNAKE_CASE.

    Example: ``"github-enterprise"`` becomes ``"GITHUB_ENTERPRISE"``.
    """
    result = []
    for i, ch in enumerate(value):
        if ch.isascii() and ch.isalnum():
            result.append(ch.upper())
        elif ch in "- ":
            result.append("_")
        elif i > 0 and ch in "_.":
            result.append("_")
    return "".join(result)


# ---------------------------------------------------------------------------
# Controller client
# ---------------------------------------------------------------------------


class DaemonAPIError(ConductorError):
    """Raised when the controller daemon cannot be reached or returns an error.

    Attributes:
        status_code: HTTP status code, or None for transport failures.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        suggestion: str | None = None,
    ) -> None:
        self.status_code = status_code
        if suggestion is None and status_code is None:
            suggestion = (
                "Check that the controller is running ('conductor controller start') "
                "and that CONDUCTOR_HOST points at it"
            )
        super().__init__(message, suggestion)


class TimeoutError(ConductorError):
    """Raised when an operation exceeds its deadline.

    Attributes:
        operation: Short description of what timed out.
        timeout_seconds: The deadline that was exceeded.
    """

    def __init__(
        self,
        message: str,
        *,
        operation: str | None = None,
        timeout_seconds: float | None = None,
        suggestion: str | None = None,
    ) -> None:
        self.operation = operation
        self.timeout_seconds = timeout_seconds
        super().__init__(message, suggestion)
