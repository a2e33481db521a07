# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""Structured audit events for credential and binding operations.

Every event is written to the ``conductor.audit`` logger as a single JSON
object per line: INFO when the operation succeeded, ERROR when it failed.
The API accepts field *names* only, never values, so credentials cannot
reach the audit trail.
"""

from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field

AUDIT_LOGGER_NAME = "conductor.audit"
AUDIT_FILE_MODE = 0o600

# Field names an integration update may report as changed
UPDATABLE_FIELDS = frozenset({"type", "base_url", "auth", "headers", "timeout_seconds"})


class AuditEventType(str, Enum):
    """Closed set of audit event types."""

    INTEGRATION_CREATED = "integration.created"
    INTEGRATION_UPDATED = "integration.updated"
    INTEGRATION_DELETED = "integration.deleted"
    INTEGRATION_ACCESSED = "integration.accessed"
    INTEGRATION_TESTED = "integration.tested"
    BINDING_RESOLVED = "binding.resolved"
    BINDING_FAILED = "binding.failed"


class AuditEvent(BaseModel):
    """A single audit record."""

    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    event_type: AuditEventType
    workspace: str
    integration_name: str | None = None
    integration_type: str | None = None
    run_id: str | None = None
    step_id: str | None = None
    binding_method: str | None = None
    success: bool = True
    error_category: str | None = None
    changed_fields: list[str] | None = None

    def to_json(self) -> str:
        """Serialize as a compact single-line JSON object without null fields."""
        return self.model_dump_json(exclude_none=True)


class AuditLogger:
    """Emits :class:`AuditEvent` records to the audit logger.

    Args:
        logger: Logger to write to; defaults to ``conductor.audit``.
    """

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or logging.getLogger(AUDIT_LOGGER_NAME)

    def log(self, event: AuditEvent) -> None:
        """Write an event at INFO on success, ERROR on failure."""
        level = logging.INFO if event.success else logging.ERROR
        self._logger.log(level, event.to_json())

    def integration_created(
        self,
        workspace: str,
        name: str,
        integration_type: str,
        error_category: str | None = None,
    ) -> None:
        """Record a create; an ``error_category`` marks it as failed."""
        self.log(
            AuditEvent(
                event_type=AuditEventType.INTEGRATION_CREATED,
                workspace=workspace,
                integration_name=name,
                integration_type=integration_type,
                success=error_category is None,
                error_category=error_category,
            )
        )

    def integration_updated(
        self,
        workspace: str,
        name: str,
        integration_type: str,
        changed_fields: list[str],
        error_category: str | None = None,
    ) -> None:
        """Record an update, naming which fields changed.

        A failed update carries ``error_category`` and no changed fields.

        Raises:
            ValueError: If a changed field is not an updatable integration field.
        """
        unknown = [f for f in changed_fields if f not in UPDATABLE_FIELDS]
        if unknown:
            raise ValueError(f"Unknown integration fields in audit event: {', '.join(unknown)}")
        self.log(
            AuditEvent(
                event_type=AuditEventType.INTEGRATION_UPDATED,
                workspace=workspace,
                integration_name=name,
                integration_type=integration_type,
                success=error_category is None,
                error_category=error_category,
                changed_fields=sorted(changed_fields) if error_category is None else None,
            )
        )

    def integration_deleted(
        self,
        workspace: str,
        name: str,
        integration_type: str | None,
        error_category: str | None = None,
    ) -> None:
        self.log(
            AuditEvent(
                event_type=AuditEventType.INTEGRATION_DELETED,
                workspace=workspace,
                integration_name=name,
                integration_type=integration_type,
                success=error_category is None,
                error_category=error_category,
            )
        )

    def integration_accessed(
        self,
        workspace: str,
        name: str,
        integration_type: str,
        run_id: str | None = None,
        step_id: str | None = None,
    ) -> None:
        self.log(
            AuditEvent(
                event_type=AuditEventType.INTEGRATION_ACCESSED,
                workspace=workspace,
                integration_name=name,
                integration_type=integration_type,
                run_id=run_id,
                step_id=step_id,
            )
        )

    def integration_tested(
        self,
        workspace: str,
        name: str,
        integration_type: str,
        success: bool,
        error_category: str | None = None,
    ) -> None:
        self.log(
            AuditEvent(
                event_type=AuditEventType.INTEGRATION_TESTED,
                workspace=workspace,
                integration_name=name,
                integration_type=integration_type,
                success=success,
                error_category=error_category,
            )
        )

    def binding_resolved(
        self,
        workspace: str,
        name: str,
        integration_type: str,
        binding_method: str,
        run_id: str | None = None,
    ) -> None:
        self.log(
            AuditEvent(
                event_type=AuditEventType.BINDING_RESOLVED,
                workspace=workspace,
                integration_name=name,
                integration_type=integration_type,
                binding_method=binding_method,
                run_id=run_id,
            )
        )

    def binding_failed(
        self,
        workspace: str,
        integration_type: str,
        error_category: str,
        run_id: str | None = None,
    ) -> None:
        self.log(
            AuditEvent(
                event_type=AuditEventType.BINDING_FAILED,
                workspace=workspace,
                integration_type=integration_type,
                success=False,
                error_category=error_category,
                run_id=run_id,
            )
        )


def configure_audit_log(path: Path) -> logging.Handler:
    """Attach a file handler writing audit events to ``path``.

    The file is created with mode 0600 and events stop propagating to the
    root logger.

    Returns:
        The installed handler, so callers can remove it again.
    """
    path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
    if not path.exists():
        fd = os.open(path, os.O_CREAT | os.O_WRONLY | os.O_APPEND, AUDIT_FILE_MODE)
        os.close(fd)

    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setFormatter(logging.Formatter("%(message)s"))

    audit_logger = logging.getLogger(AUDIT_LOGGER_NAME)
    audit_logger.addHandler(handler)
    audit_logger.setLevel(logging.INFO)
    audit_logger.propagate = False
    return handler
