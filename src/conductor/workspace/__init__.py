# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""Workspaces, encrypted integrations and runtime binding."""

from conductor.workspace.audit import AuditEvent, AuditEventType, AuditLogger
from conductor.workspace.crypto import Encryptor, generate_key
from conductor.workspace.keychain import KeychainManager
from conductor.workspace.models import (
    APIKeyAuth,
    BasicAuth,
    Integration,
    NoAuth,
    TokenAuth,
    Workspace,
)
from conductor.workspace.resolver import BindingMethod, BindingResolver, ResolvedBinding
from conductor.workspace.store import WorkspaceStore

__all__ = [
    "APIKeyAuth",
    "AuditEvent",
    "AuditEventType",
    "AuditLogger",
    "BasicAuth",
    "BindingMethod",
    "BindingResolver",
    "Encryptor",
    "Integration",
    "KeychainManager",
    "NoAuth",
    "ResolvedBinding",
    "TokenAuth",
    "Workspace",
    "WorkspaceStore",
    "generate_key",
]
