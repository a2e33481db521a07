# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""Tests for the workspace commands.

This module tests:
- Creating, listing, switching and deleting workspaces
- Current workspace resolution
- Exporting with credentials redacted
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from conductor.cli.app import app

runner = CliRunner()


class TestWorkspaceCreate:
    """Tests for 'workspace create'."""

    def test_create(self) -> None:
        """Test creating a workspace."""
        result = runner.invoke(app, ["workspace", "create", "team", "-d", "Team creds"])
        assert result.exit_code == 0
        assert "Created workspace team" in result.output

        listing = runner.invoke(app, ["workspace", "list"])
        assert listing.exit_code == 0
        assert "team" in listing.output
        assert "Team creds" in listing.output

    def test_create_and_use(self) -> None:
        """Test that --use switches to the new workspace."""
        result = runner.invoke(app, ["workspace", "create", "staging", "--use"])
        assert result.exit_code == 0
        assert "Switched to workspace staging" in result.output

        current = runner.invoke(app, ["workspace", "current"])
        assert current.stdout.strip() == "staging"

    def test_duplicate(self) -> None:
        """Test that a taken name fails with exit code 1."""
        runner.invoke(app, ["workspace", "create", "team"])
        result = runner.invoke(app, ["workspace", "create", "team"])
        assert result.exit_code == 1
        assert "already exists" in result.output

    def test_invalid_name(self) -> None:
        """Test that names outside the allowed pattern are rejected."""
        result = runner.invoke(app, ["workspace", "create", "Bad Name"])
        assert result.exit_code == 1
        assert "Invalid workspace name" in result.output


class TestWorkspaceCurrent:
    """Tests for current workspace selection."""

    def test_default(self) -> None:
        """Test that a fresh store starts on 'default'."""
        result = runner.invoke(app, ["workspace", "current"])
        assert result.exit_code == 0
        assert result.stdout.strip() == "default"

    def test_env_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that CONDUCTOR_WORKSPACE wins over the stored selection."""
        runner.invoke(app, ["workspace", "create", "team"])
        monkeypatch.setenv("CONDUCTOR_WORKSPACE", "team")
        result = runner.invoke(app, ["workspace", "current"])
        assert result.stdout.strip() == "team"

    def test_use_unknown(self) -> None:
        """Test that switching to a missing workspace fails."""
        result = runner.invoke(app, ["workspace", "use", "ghost"])
        assert result.exit_code == 1
        assert "not found" in result.output


class TestWorkspaceDelete:
    """Tests for 'workspace delete'."""

    def test_delete_current_resets_to_default(self) -> None:
        """Test that deleting the current workspace falls back to default."""
        runner.invoke(app, ["workspace", "create", "team", "--use"])
        result = runner.invoke(app, ["workspace", "delete", "team", "--force"])
        assert result.exit_code == 0
        assert "Deleted workspace team" in result.output

        current = runner.invoke(app, ["workspace", "current"])
        assert current.stdout.strip() == "default"

    def test_confirmation_declined(self) -> None:
        """Test that answering no keeps the workspace."""
        runner.invoke(app, ["workspace", "create", "team"])
        result = runner.invoke(app, ["workspace", "delete", "team"], input="n\n")
        assert result.exit_code != 0

        listing = runner.invoke(app, ["workspace", "list"])
        assert "team" in listing.output

    def test_default_cannot_be_deleted(self) -> None:
        """Test that the default workspace is protected."""
        result = runner.invoke(app, ["workspace", "delete", "default", "--force"])
        assert result.exit_code == 1
        assert "Cannot delete the default workspace" in result.output


class TestWorkspaceShowAndUpdate:
    """Tests for 'workspace show' and 'workspace update'."""

    def test_show_lists_integrations(self) -> None:
        """Test that show counts integrations without credentials."""
        runner.invoke(app, ["integrations", "add", "github", "--token", "ghp_secret"])
        result = runner.invoke(app, ["workspace", "show"])
        assert result.exit_code == 0
        assert "Integrations: 1" in result.output
        assert "github" in result.output
        assert "ghp_secret" not in result.output

    def test_update_description(self) -> None:
        """Test updating a description."""
        runner.invoke(app, ["workspace", "create", "team"])
        result = runner.invoke(app, ["workspace", "update", "team", "-d", "Renamed"])
        assert result.exit_code == 0
        show = runner.invoke(app, ["workspace", "show", "team"])
        assert "Renamed" in show.output


class TestWorkspaceExport:
    """Tests for 'workspace export'."""

    def test_export_json_redacts(self) -> None:
        """Test that the JSON export never contains credentials."""
        runner.invoke(app, ["integrations", "add", "github", "--token", "ghp_secret"])
        result = runner.invoke(app, ["workspace", "export", "--format", "json"])
        assert result.exit_code == 0
        assert "ghp_secret" not in result.stdout
        data = json.loads(result.stdout)
        assert data["workspace"] == "default"

    def test_export_to_file(self, tmp_path: Path) -> None:
        """Test writing the export to a file."""
        out = tmp_path / "export.yaml"
        result = runner.invoke(app, ["workspace", "export", "-o", str(out)])
        assert result.exit_code == 0
        assert out.exists()
        assert "default" in out.read_text()

    def test_unknown_format(self) -> None:
        """Test that unsupported formats fail."""
        result = runner.invoke(app, ["workspace", "export", "--format", "xml"])
        assert result.exit_code == 1
        assert "Unsupported export format" in result.output
