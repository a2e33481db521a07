# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""Encrypted SQLite-backed store for workspaces and integrations.

The store owns a small SQLAlchemy connection pool over a single database
file in WAL mode with foreign keys enforced. Each mutation is a single
committed statement, so readers never observe partial writes.
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from sqlalchemy import Engine, create_engine, delete, event, select
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from conductor.config.paths import database_path, ensure_conductor_home
from conductor.exceptions import (
    ConductorError,
    CryptoError,
    DefaultWorkspaceError,
    IntegrationExistsError,
    IntegrationNotFoundError,
    InvalidCiphertextError,
    WorkspaceExistsError,
    WorkspaceNotFoundError,
)
from conductor.workspace.audit import AuditLogger
from conductor.workspace.crypto import Encryptor
from conductor.workspace.keychain import KeychainManager
from conductor.workspace.models import (
    DEFAULT_WORKSPACE,
    Integration,
    Workspace,
    auth_credentials,
    auth_from_credentials,
)
from conductor.workspace.tables import Base, ConfigRow, IntegrationRow, WorkspaceRow

logger = logging.getLogger(__name__)

CURRENT_WORKSPACE_KEY = "current_workspace"
WORKSPACE_ENV_VAR = "CONDUCTOR_WORKSPACE"

# A few concurrent readers; SQLite serializes writers anyway
POOL_SIZE = 2
MAX_OVERFLOW = 3
CONNECT_TIMEOUT_SECONDS = 5.0


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    # SQLite drops tzinfo on the way back
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _is_unique_violation(error: IntegrityError) -> bool:
    return "UNIQUE constraint failed" in str(error.orig)


def _is_foreign_key_violation(error: IntegrityError) -> bool:
    return "FOREIGN KEY constraint failed" in str(error.orig)


def _error_category(error: ConductorError) -> str:
    if isinstance(error, WorkspaceNotFoundError):
        return "workspace_not_found"
    if isinstance(error, IntegrationNotFoundError):
        return "integration_not_found"
    if isinstance(error, IntegrationExistsError):
        return "integration_exists"
    if isinstance(error, CryptoError):
        return "crypto_error"
    return "store_error"


def _set_sqlite_pragmas(dbapi_connection: Any, connection_record: Any) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.execute("PRAGMA synchronous=NORMAL")
    cursor.close()


class WorkspaceStore:
    """Durable, encrypted storage of workspaces and integrations.

    Opening the store creates any missing tables and seeds the ``default``
    workspace. Credentials are encrypted with the given encryptor on write
    and decrypted in memory on read.

    Args:
        db_path: Path of the SQLite database file.
        encryptor: Encryptor holding the master key. None opens the store
            for key-less listing only; reading or writing credentials then
            raises CryptoError.
        audit: Optional audit logger for create/update/delete events.
    """

    def __init__(
        self,
        db_path: Path,
        encryptor: Encryptor | None,
        audit: AuditLogger | None = None,
    ) -> None:
        self._db_path = db_path
        self._encryptor = encryptor
        self._audit = audit
        self._closed = False

        self._engine: Engine = create_engine(
            f"sqlite:///{db_path}",
            pool_size=POOL_SIZE,
            max_overflow=MAX_OVERFLOW,
            connect_args={"timeout": CONNECT_TIMEOUT_SECONDS, "check_same_thread": False},
        )
        event.listen(self._engine, "connect", _set_sqlite_pragmas)
        self._sessions = sessionmaker(self._engine, expire_on_commit=False)

        self._migrate()
        self._ensure_default_workspace()
        logger.debug(f"Opened workspace store at {db_path}")

    @classmethod
    def open(
        cls,
        db_path: Path | None = None,
        key: bytes | None = None,
        audit: AuditLogger | None = None,
    ) -> WorkspaceStore:
        """Open the per-user store, resolving the master key if not given.

        Raises:
            InvalidKeyError: If the configured master key is malformed.
        """
        if db_path is None:
            ensure_conductor_home()
            db_path = database_path()
        if key is None:
            key = KeychainManager().get_or_create_master_key()
        return cls(db_path, Encryptor(key), audit=audit)

    def __enter__(self) -> WorkspaceStore:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def close(self) -> None:
        """Release the connection pool. Calling it twice is a no-op."""
        if self._closed:
            return
        self._closed = True
        self._engine.dispose()

    @contextmanager
    def _transaction(self) -> Iterator[Session]:
        with self._sessions() as session, session.begin():
            yield session

    def _migrate(self) -> None:
        Base.metadata.create_all(self._engine, checkfirst=True)

    def _ensure_default_workspace(self) -> None:
        now = _now()
        stmt = (
            sqlite_insert(WorkspaceRow)
            .values(
                name=DEFAULT_WORKSPACE,
                description="Default workspace",
                created_at=now,
                updated_at=now,
            )
            .on_conflict_do_nothing(index_elements=["name"])
        )
        with self._transaction() as session:
            session.execute(stmt)

    # ------------------------------------------------------------------
    # Workspaces
    # ------------------------------------------------------------------

    @staticmethod
    def _workspace_from_row(row: WorkspaceRow) -> Workspace:
        return Workspace(
            name=row.name,
            description=row.description,
            created_at=_as_utc(row.created_at),
            updated_at=_as_utc(row.updated_at),
        )

    def create_workspace(self, workspace: Workspace) -> Workspace:
        """Insert a new workspace.

        Raises:
            WorkspaceExistsError: If the name is already taken.
        """
        now = _now()
        row = WorkspaceRow(
            name=workspace.name,
            description=workspace.description,
            created_at=now,
            updated_at=now,
        )
        try:
            with self._transaction() as session:
                session.add(row)
        except IntegrityError as e:
            if _is_unique_violation(e):
                raise WorkspaceExistsError(workspace.name) from e
            raise
        logger.debug(f"Created workspace '{workspace.name}'")
        return self._workspace_from_row(row)

    def get_workspace(self, name: str) -> Workspace:
        """Fetch a workspace by name.

        Raises:
            WorkspaceNotFoundError: If it does not exist.
        """
        with self._sessions() as session:
            row = session.get(WorkspaceRow, name)
            if row is None:
                raise WorkspaceNotFoundError(name)
            return self._workspace_from_row(row)

    def list_workspaces(self) -> list[Workspace]:
        """Return all workspaces ordered by name."""
        with self._sessions() as session:
            rows = session.scalars(select(WorkspaceRow).order_by(WorkspaceRow.name)).all()
            return [self._workspace_from_row(row) for row in rows]

    def update_workspace(self, name: str, description: str) -> Workspace:
        """Change a workspace's description.

        Raises:
            WorkspaceNotFoundError: If it does not exist.
        """
        with self._transaction() as session:
            row = session.get(WorkspaceRow, name)
            if row is None:
                raise WorkspaceNotFoundError(name)
            row.description = description
            row.updated_at = _now()
        return self._workspace_from_row(row)

    def delete_workspace(self, name: str) -> None:
        """Delete a workspace and, transitively, all of its integrations.

        Raises:
            DefaultWorkspaceError: If ``name`` is ``default``.
            WorkspaceNotFoundError: If it does not exist.
        """
        if name == DEFAULT_WORKSPACE:
            raise DefaultWorkspaceError()
        with self._transaction() as session:
            result = session.execute(delete(WorkspaceRow).where(WorkspaceRow.name == name))
            if result.rowcount == 0:
                raise WorkspaceNotFoundError(name)
        logger.debug(f"Deleted workspace '{name}'")

    def workspace_exists(self, name: str) -> bool:
        with self._sessions() as session:
            return session.get(WorkspaceRow, name) is not None

    def set_current_workspace(self, name: str) -> None:
        """Point the current-workspace setting at ``name``.

        Raises:
            WorkspaceNotFoundError: If the target workspace does not exist.
        """
        if not self.workspace_exists(name):
            raise WorkspaceNotFoundError(name)
        stmt = (
            sqlite_insert(ConfigRow)
            .values(key=CURRENT_WORKSPACE_KEY, value=name)
            .on_conflict_do_update(index_elements=["key"], set_={"value": name})
        )
        with self._transaction() as session:
            session.execute(stmt)

    def get_current_workspace(self) -> str:
        """Return the current workspace name, ``default`` when unset."""
        with self._sessions() as session:
            row = session.get(ConfigRow, CURRENT_WORKSPACE_KEY)
            if row is None or not row.value:
                return DEFAULT_WORKSPACE
            return row.value

    # ------------------------------------------------------------------
    # Integrations
    # ------------------------------------------------------------------

    def _cipher(self) -> Encryptor:
        if self._encryptor is None:
            raise CryptoError(
                "Master key required to access integration credentials",
                suggestion="Set CONDUCTOR_MASTER_KEY or unlock the system keychain",
            )
        return self._encryptor

    def _encrypt_auth(self, integration: Integration) -> bytes:
        credentials = auth_credentials(integration.auth)
        if integration.auth.type == "none" or not any(credentials.values()):
            return b""
        return self._cipher().encrypt(json.dumps(credentials).encode("utf-8"))

    def _integration_from_row(self, row: IntegrationRow) -> Integration:
        credentials: dict[str, Any] = {}
        if row.auth_encrypted:
            plaintext = self._cipher().decrypt(row.auth_encrypted)
            credentials = json.loads(plaintext)
        return Integration(
            id=row.id,
            workspace_name=row.workspace_name,
            name=row.name,
            type=row.type,
            base_url=row.base_url,
            auth=auth_from_credentials(row.auth_type, credentials),
            headers=json.loads(row.headers_json or "{}"),
            timeout_seconds=row.timeout_seconds,
            created_at=_as_utc(row.created_at),
            updated_at=_as_utc(row.updated_at),
        )

    def create_integration(self, integration: Integration) -> Integration:
        """Insert an integration, encrypting its credentials.

        Raises:
            WorkspaceNotFoundError: If the owning workspace does not exist.
            IntegrationExistsError: If the name is taken within the workspace.
        """
        try:
            return self._create_integration(integration)
        except ConductorError as e:
            if self._audit:
                self._audit.integration_created(
                    integration.workspace_name,
                    integration.name,
                    integration.type,
                    error_category=_error_category(e),
                )
            raise

    def _create_integration(self, integration: Integration) -> Integration:
        now = _now()
        row = IntegrationRow(
            id=integration.id,
            workspace_name=integration.workspace_name,
            name=integration.name,
            type=integration.type,
            base_url=integration.base_url,
            auth_type=integration.auth.type,
            auth_encrypted=self._encrypt_auth(integration),
            headers_json=json.dumps(integration.headers),
            timeout_seconds=integration.timeout_seconds,
            created_at=now,
            updated_at=now,
        )
        try:
            with self._transaction() as session:
                session.add(row)
        except IntegrityError as e:
            if _is_foreign_key_violation(e):
                raise WorkspaceNotFoundError(integration.workspace_name) from e
            if _is_unique_violation(e):
                raise IntegrationExistsError(integration.workspace_name, integration.name) from e
            raise

        logger.debug(
            f"Created integration '{integration.name}' ({integration.type}) "
            f"in workspace '{integration.workspace_name}'"
        )
        if self._audit:
            self._audit.integration_created(
                integration.workspace_name, integration.name, integration.type
            )
        return integration.model_copy(update={"created_at": now, "updated_at": now})

    def _get_integration_row(
        self, session: Session, workspace_name: str, name: str
    ) -> IntegrationRow | None:
        return session.scalars(
            select(IntegrationRow).where(
                IntegrationRow.workspace_name == workspace_name,
                IntegrationRow.name == name,
            )
        ).first()

    def get_integration(self, workspace_name: str, name: str) -> Integration:
        """Fetch an integration with its credentials decrypted.

        Raises:
            IntegrationNotFoundError: If it does not exist.
            InvalidCiphertextError: If its credentials cannot be decrypted.
        """
        with self._sessions() as session:
            row = self._get_integration_row(session, workspace_name, name)
            if row is None:
                raise IntegrationNotFoundError(workspace_name, name)
            return self._integration_from_row(row)

    def list_integrations(self, workspace_name: str) -> list[Integration]:
        """Return a workspace's integrations ordered by name.

        Raises:
            WorkspaceNotFoundError: If the workspace does not exist.
        """
        if not self.workspace_exists(workspace_name):
            raise WorkspaceNotFoundError(workspace_name)
        with self._sessions() as session:
            rows = session.scalars(
                select(IntegrationRow)
                .where(IntegrationRow.workspace_name == workspace_name)
                .order_by(IntegrationRow.name)
            ).all()
            return [self._integration_from_row(row) for row in rows]

    def list_integrations_by_type(
        self, workspace_name: str, integration_type: str
    ) -> list[Integration]:
        """Return a workspace's integrations of one type, ordered by name.

        Raises:
            WorkspaceNotFoundError: If the workspace does not exist.
        """
        if not self.workspace_exists(workspace_name):
            raise WorkspaceNotFoundError(workspace_name)
        with self._sessions() as session:
            rows = session.scalars(
                select(IntegrationRow)
                .where(
                    IntegrationRow.workspace_name == workspace_name,
                    IntegrationRow.type == integration_type,
                )
                .order_by(IntegrationRow.name)
            ).all()
            return [self._integration_from_row(row) for row in rows]

    def list_integration_names(self, workspace_name: str) -> list[tuple[str, str]]:
        """Return ``(name, type)`` pairs for a workspace without decrypting anything."""
        with self._sessions() as session:
            rows = session.execute(
                select(IntegrationRow.name, IntegrationRow.type)
                .where(IntegrationRow.workspace_name == workspace_name)
                .order_by(IntegrationRow.name)
            ).all()
            return [(row.name, row.type) for row in rows]

    def update_integration(self, integration: Integration) -> Integration:
        """Rewrite every mutable field of an integration.

        The name and workspace identify the row and are never changed.
        Credentials are re-encrypted with a fresh nonce even when unchanged.

        Raises:
            IntegrationNotFoundError: If it does not exist.
        """
        try:
            return self._update_integration(integration)
        except ConductorError as e:
            if self._audit:
                self._audit.integration_updated(
                    integration.workspace_name,
                    integration.name,
                    integration.type,
                    [],
                    error_category=_error_category(e),
                )
            raise

    def _update_integration(self, integration: Integration) -> Integration:
        now = _now()
        with self._transaction() as session:
            row = self._get_integration_row(session, integration.workspace_name, integration.name)
            if row is None:
                raise IntegrationNotFoundError(integration.workspace_name, integration.name)

            changed = self._changed_fields(row, integration)

            row.type = integration.type
            row.base_url = integration.base_url
            row.auth_type = integration.auth.type
            row.auth_encrypted = self._encrypt_auth(integration)
            row.headers_json = json.dumps(integration.headers)
            row.timeout_seconds = integration.timeout_seconds
            row.updated_at = now
            created_at = _as_utc(row.created_at)
            row_id = row.id

        if self._audit:
            self._audit.integration_updated(
                integration.workspace_name, integration.name, integration.type, changed
            )
        return integration.model_copy(
            update={"id": row_id, "created_at": created_at, "updated_at": now}
        )

    def _changed_fields(self, row: IntegrationRow, integration: Integration) -> list[str]:
        changed: list[str] = []
        if row.type != integration.type:
            changed.append("type")
        if row.base_url != integration.base_url:
            changed.append("base_url")
        if json.loads(row.headers_json or "{}") != integration.headers:
            changed.append("headers")
        if row.timeout_seconds != integration.timeout_seconds:
            changed.append("timeout_seconds")
        try:
            previous = self._integration_from_row(row).auth
        except InvalidCiphertextError:
            changed.append("auth")
        else:
            if previous != integration.auth:
                changed.append("auth")
        return changed

    def delete_integration(self, workspace_name: str, name: str) -> None:
        """Remove an integration.

        Raises:
            IntegrationNotFoundError: If it does not exist.
        """
        try:
            self._delete_integration(workspace_name, name)
        except ConductorError as e:
            if self._audit:
                self._audit.integration_deleted(
                    workspace_name, name, None, error_category=_error_category(e)
                )
            raise

    def _delete_integration(self, workspace_name: str, name: str) -> None:
        with self._transaction() as session:
            row = self._get_integration_row(session, workspace_name, name)
            if row is None:
                raise IntegrationNotFoundError(workspace_name, name)
            integration_type = row.type
            session.delete(row)

        logger.debug(f"Deleted integration '{name}' from workspace '{workspace_name}'")
        if self._audit:
            self._audit.integration_deleted(workspace_name, name, integration_type)


def resolve_workspace_name(store: WorkspaceStore, explicit: str | None = None) -> str:
    """Pick the workspace for an operation.

    Order: the explicit value (e.g. ``--workspace``), then
    ``CONDUCTOR_WORKSPACE``, then the store's current workspace.
    """
    if explicit:
        return explicit
    return os.environ.get(WORKSPACE_ENV_VAR) or store.get_current_workspace()
