# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""Binding of workflow integration requirements to workspace integrations.

A workflow declares what it needs (``requires.integrations``); a workspace
holds what is available. The resolver maps each requirement to exactly one
integration, either automatically (one unaliased candidate of the type) or
explicitly (``--bind-integration identifier=name``).
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

import keyring
from keyring.errors import KeyringError

from conductor.config.loader import resolve_env_vars
from conductor.config.schema import IntegrationRequirement, parse_integration_requirement
from conductor.exceptions import (
    BindingError,
    ConductorError,
    ConfigurationError,
    CryptoError,
    IntegrationNotFoundError,
    InvalidCiphertextError,
    MultipleIntegrationsOfTypeError,
    NoIntegrationOfTypeError,
    SecretResolutionError,
    ValidationError,
    WorkspaceNotFoundError,
)
from conductor.workspace.audit import AuditLogger
from conductor.workspace.keychain import KEYCHAIN_SERVICE
from conductor.workspace.models import APIKeyAuth, BasicAuth, Integration, TokenAuth
from conductor.workspace.store import WorkspaceStore

logger = logging.getLogger(__name__)

BIND_INTEGRATION_ENV_VAR = "CONDUCTOR_BIND_INTEGRATION"


class BindingMethod(str, Enum):
    """How a requirement was bound."""

    AUTO = "auto"
    EXPLICIT = "explicit"


@dataclass(frozen=True)
class ResolvedBinding:
    """A requirement together with the integration that satisfies it."""

    requirement: IntegrationRequirement
    integration: Integration
    method: BindingMethod


def parse_bind_integration(pairs: list[str]) -> dict[str, str]:
    """Parse ``identifier=name`` pairs into an explicit binding map.

    Each pair is split on the first ``=`` and both sides are trimmed.

    Raises:
        ValidationError: If a pair has no ``=`` or an empty side.
    """
    bindings: dict[str, str] = {}
    for pair in pairs:
        identifier, sep, name = pair.partition("=")
        identifier, name = identifier.strip(), name.strip()
        if not sep or not identifier or not name:
            raise ValidationError(
                f"Invalid integration binding '{pair}'",
                suggestion="Use the form identifier=integration-name, e.g. github=work",
            )
        bindings[identifier] = name
    return bindings


def explicit_bindings_from_env() -> dict[str, str]:
    """Read explicit bindings from ``CONDUCTOR_BIND_INTEGRATION``.

    The value is a comma-separated list of ``identifier=name`` pairs.
    """
    raw = os.environ.get(BIND_INTEGRATION_ENV_VAR, "")
    pairs = [p for p in (part.strip() for part in raw.split(",")) if p]
    return parse_bind_integration(pairs)


def merge_explicit_bindings(flag_pairs: list[str] | None) -> dict[str, str]:
    """Combine environment bindings with flag bindings; flags win."""
    bindings = explicit_bindings_from_env()
    bindings.update(parse_bind_integration(flag_pairs or []))
    return bindings


def is_secret_reference(value: str) -> bool:
    """Return True for ``${VAR}``, ``env:VAR``, ``file:/path`` and ``keychain:name``."""
    if value.startswith("${") and value.endswith("}"):
        return True
    return value.startswith(("env:", "file:", "keychain:"))


def _resolve_reference(reference: str) -> str:
    if reference.startswith("env:"):
        var_name = reference[len("env:"):]
        value = os.environ.get(var_name)
        if value is None:
            raise LookupError(f"environment variable '{var_name}' is not set")
        return value
    if reference.startswith("file:"):
        path = Path(reference[len("file:"):]).expanduser()
        try:
            return path.read_text(encoding="utf-8").strip()
        except OSError as e:
            raise LookupError(f"cannot read file: {e.strerror or e}") from e
    if reference.startswith("keychain:"):
        name = reference[len("keychain:"):]
        try:
            value = keyring.get_password(KEYCHAIN_SERVICE, name)
        except KeyringError as e:
            raise LookupError(f"keychain unavailable: {e}") from e
        if value is None:
            raise LookupError(f"keychain entry '{name}' not found")
        return value
    try:
        return resolve_env_vars(reference)
    except ConfigurationError as e:
        raise LookupError(e.message) from e


class BindingResolver:
    """Resolves workflow requirements against a workspace.

    Args:
        store: The workspace store to read integrations from.
        audit: Optional audit logger for binding and access events.
    """

    def __init__(self, store: WorkspaceStore, audit: AuditLogger | None = None) -> None:
        self._store = store
        self._audit = audit

    def resolve(
        self,
        workspace_name: str,
        requirements: list[str] | list[IntegrationRequirement],
        explicit_bindings: dict[str, str] | None = None,
        run_id: str | None = None,
    ) -> dict[str, ResolvedBinding]:
        """Bind every requirement, in declaration order.

        Every failure is audited as binding.failed before it propagates.

        Args:
            workspace_name: Workspace to bind against.
            requirements: Raw requirement strings or parsed requirements.
            explicit_bindings: Identifier to integration-name overrides.
            run_id: Optional run identifier recorded in audit events.

        Returns:
            Bindings keyed by requirement identifier. Empty when there are
            no requirements.

        Raises:
            BindingError: On the first requirement that cannot be bound. The
                subclasses NoIntegrationOfTypeError and
                MultipleIntegrationsOfTypeError cover auto-binding failures.
            WorkspaceNotFoundError: If the workspace does not exist.
            InvalidCiphertextError: If a candidate cannot be decrypted with
                the current master key.
        """
        explicit_bindings = explicit_bindings or {}
        bindings: dict[str, ResolvedBinding] = {}

        for raw in requirements:
            requirement = (
                raw if isinstance(raw, IntegrationRequirement) else parse_integration_requirement(raw)
            )
            try:
                binding = self._resolve_one(workspace_name, requirement, explicit_bindings)
            except ConductorError as e:
                if self._audit:
                    self._audit.binding_failed(
                        workspace_name, requirement.type, _error_category(e), run_id=run_id
                    )
                raise

            bindings[requirement.identifier] = binding
            logger.debug(
                f"Bound '{requirement.identifier}' to integration "
                f"'{binding.integration.name}' ({binding.method.value})"
            )
            if self._audit:
                self._audit.binding_resolved(
                    workspace_name,
                    binding.integration.name,
                    binding.integration.type,
                    binding.method.value,
                    run_id=run_id,
                )

        return bindings

    def _resolve_one(
        self,
        workspace_name: str,
        requirement: IntegrationRequirement,
        explicit_bindings: dict[str, str],
    ) -> ResolvedBinding:
        identifier = requirement.identifier

        target = explicit_bindings.get(identifier)
        if target is not None:
            try:
                integration = self._store.get_integration(workspace_name, target)
            except (IntegrationNotFoundError, WorkspaceNotFoundError) as e:
                raise BindingError(
                    identifier,
                    f"explicit binding to integration '{target}' failed: {e.message}",
                    suggestion=(
                        f"List integrations with 'conductor integrations list --workspace "
                        f"{workspace_name}'"
                    ),
                ) from e
            if integration.type != requirement.type:
                raise BindingError(
                    identifier,
                    f"integration '{target}' has type '{integration.type}', "
                    f"but requirement needs type '{requirement.type}'",
                )
            return ResolvedBinding(requirement, integration, BindingMethod.EXPLICIT)

        # Aliases exist to distinguish same-typed requirements, so they never auto-bind
        if requirement.alias is not None:
            raise BindingError(
                identifier,
                f"aliased requirement '{requirement}' requires explicit binding via "
                f"--bind-integration {requirement.alias}=<name>",
                suggestion=f"--bind-integration {requirement.alias}=<name>",
            )

        matches = self._store.list_integrations_by_type(workspace_name, requirement.type)
        if not matches:
            raise NoIntegrationOfTypeError(requirement.type, workspace_name)
        if len(matches) > 1:
            raise MultipleIntegrationsOfTypeError(
                requirement.type, workspace_name, [m.name for m in matches]
            )
        return ResolvedBinding(requirement, matches[0], BindingMethod.AUTO)

    def resolve_secrets(
        self,
        integration: Integration,
        run_id: str | None = None,
        step_id: str | None = None,
    ) -> Integration:
        """Return a copy of ``integration`` with secret references resolved.

        Literal values pass through unchanged. The original is not modified.

        Raises:
            SecretResolutionError: If a reference cannot be resolved. The
                error names the field and reference, never a value.
        """
        auth = integration.auth
        if isinstance(auth, TokenAuth):
            auth = auth.model_copy(update={"token": self._resolve_field(integration, "token", auth.token)})
        elif isinstance(auth, BasicAuth):
            auth = auth.model_copy(
                update={"password": self._resolve_field(integration, "password", auth.password)}
            )
        elif isinstance(auth, APIKeyAuth):
            auth = auth.model_copy(
                update={"value": self._resolve_field(integration, "api_key_value", auth.value)}
            )

        if self._audit:
            self._audit.integration_accessed(
                integration.workspace_name,
                integration.name,
                integration.type,
                run_id=run_id,
                step_id=step_id,
            )
        return integration.model_copy(update={"auth": auth})

    @staticmethod
    def _resolve_field(integration: Integration, field: str, value: str) -> str:
        if not value or not is_secret_reference(value):
            return value
        try:
            return _resolve_reference(value)
        except LookupError as e:
            raise SecretResolutionError(integration.name, field, value, str(e)) from e


def _error_category(error: ConductorError) -> str:
    if isinstance(error, NoIntegrationOfTypeError):
        return "no_integration"
    if isinstance(error, MultipleIntegrationsOfTypeError):
        return "multiple_integrations"
    if isinstance(error, WorkspaceNotFoundError):
        return "workspace_not_found"
    if isinstance(error, InvalidCiphertextError):
        return "invalid_ciphertext"
    if isinstance(error, CryptoError):
        return "crypto_error"
    return "binding_error"
