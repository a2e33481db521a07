"""Pytest configuration and shared fixtures for Conductor tests.

Every test runs against a private Conductor home and config directory and an
in-memory keychain, so nothing touches the developer's real files or OS
keyring.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from pathlib import Path

import keyring
import pytest
from keyring.errors import PasswordDeleteError

from conductor.cli import common
from conductor.completion.runs import RunCache, set_run_cache
from conductor.workspace.audit import AUDIT_LOGGER_NAME, AuditLogger
from conductor.workspace.crypto import Encryptor
from conductor.workspace.keychain import _reset_generated_key
from conductor.workspace.store import WorkspaceStore

TEST_KEY = bytes(range(32))


class MemoryKeyring:
    """Dict-backed stand-in for the OS keychain."""

    def __init__(self) -> None:
        self.entries: dict[tuple[str, str], str] = {}
        self.fail_with: Exception | None = None

    def get_password(self, service: str, username: str) -> str | None:
        if self.fail_with is not None:
            raise self.fail_with
        return self.entries.get((service, username))

    def set_password(self, service: str, username: str, password: str) -> None:
        if self.fail_with is not None:
            raise self.fail_with
        self.entries[(service, username)] = password

    def delete_password(self, service: str, username: str) -> None:
        if self.fail_with is not None:
            raise self.fail_with
        if (service, username) not in self.entries:
            raise PasswordDeleteError("not found")
        del self.entries[(service, username)]


@pytest.fixture(autouse=True)
def memory_keyring(monkeypatch: pytest.MonkeyPatch) -> MemoryKeyring:
    """Replace the keyring API with an in-memory keychain."""
    fake = MemoryKeyring()
    monkeypatch.setattr(keyring, "get_password", fake.get_password)
    monkeypatch.setattr(keyring, "set_password", fake.set_password)
    monkeypatch.setattr(keyring, "delete_password", fake.delete_password)
    return fake


@pytest.fixture(autouse=True)
def isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point every Conductor path at a temporary directory."""
    home = tmp_path / "conductor-home"
    monkeypatch.setenv("CONDUCTOR_HOME", str(home))
    monkeypatch.setenv("CONDUCTOR_CONFIG_DIR", str(tmp_path / "conductor-config"))
    for var in (
        "CONDUCTOR_CONFIG",
        "CONDUCTOR_HOST",
        "CONDUCTOR_MASTER_KEY",
        "CONDUCTOR_WORKSPACE",
        "CONDUCTOR_BIND_INTEGRATION",
        "XDG_CONFIG_HOME",
    ):
        monkeypatch.delenv(var, raising=False)
    return home


@pytest.fixture(autouse=True)
def reset_process_state() -> Iterator[None]:
    """Undo process-wide state: generated key, run cache and log handlers."""
    _reset_generated_key()
    previous_cache = set_run_cache(RunCache())
    yield
    _reset_generated_key()
    set_run_cache(previous_cache)

    audit = logging.getLogger(AUDIT_LOGGER_NAME)
    for handler in list(audit.handlers):
        audit.removeHandler(handler)
        handler.close()
    audit.propagate = True
    audit.setLevel(logging.NOTSET)
    common._audit_handler = None

    package_logger = logging.getLogger("conductor")
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
    package_logger.setLevel(logging.NOTSET)


@pytest.fixture
def encryptor() -> Encryptor:
    """Return an encryptor with a fixed test key."""
    return Encryptor(TEST_KEY)


@pytest.fixture
def store(tmp_path: Path, encryptor: Encryptor) -> Iterator[WorkspaceStore]:
    """Return a fresh workspace store with auditing enabled."""
    workspace_store = WorkspaceStore(tmp_path / "test.db", encryptor, audit=AuditLogger())
    yield workspace_store
    workspace_store.close()


@pytest.fixture
def workflow_file(tmp_path: Path) -> Path:
    """Create a workflow that requires a single github integration."""
    path = tmp_path / "workflow.yaml"
    path.write_text(
        """\
name: pr-review
description: Review a pull request
requires:
  integrations:
    - github
steps:
  - id: fetch
    github.get_pull_request:
      number: "{{ inputs.pr }}"
"""
    )
    return path
