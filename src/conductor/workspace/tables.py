# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""SQLAlchemy ORM tables for the workspace database.

These are the single source of truth for the on-disk schema. Creating them
is idempotent, so opening the store doubles as running migrations.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, LargeBinary, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

TimestampTZ = DateTime(timezone=True)


class Base(DeclarativeBase):
    """Declarative base for workspace tables."""

    pass


class WorkspaceRow(Base):
    __tablename__ = "workspaces"

    name: Mapped[str] = mapped_column(Text, primary_key=True)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    created_at: Mapped[datetime] = mapped_column(TimestampTZ, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(TimestampTZ, nullable=False)


class IntegrationRow(Base):
    __tablename__ = "integrations"
    __table_args__ = (
        UniqueConstraint("workspace_name", "name", name="uq_integrations_workspace_name"),
        Index("idx_integrations_workspace", "workspace_name"),
        Index("idx_integrations_type", "workspace_name", "type"),
    )

    id: Mapped[str] = mapped_column(Text, primary_key=True)
    workspace_name: Mapped[str] = mapped_column(
        Text, ForeignKey("workspaces.name", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[str] = mapped_column(Text, nullable=False)
    base_url: Mapped[str] = mapped_column(Text, nullable=False, default="")
    auth_type: Mapped[str] = mapped_column(Text, nullable=False, default="none")
    # Encrypted JSON of the auth variant's credential fields; empty for "none"
    auth_encrypted: Mapped[bytes] = mapped_column(LargeBinary, nullable=False, default=b"")
    headers_json: Mapped[str] = mapped_column(Text, nullable=False, default="{}")
    timeout_seconds: Mapped[int] = mapped_column(nullable=False, default=30)
    created_at: Mapped[datetime] = mapped_column(TimestampTZ, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(TimestampTZ, nullable=False)


class ConfigRow(Base):
    __tablename__ = "config"

    key: Mapped[str] = mapped_column(Text, primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
