# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""Tests for the integrations commands.

This module tests:
- Adding, listing, showing, updating and removing integrations
- Auth flag validation
- Connectivity checks and their audit trail
"""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import patch

import httpx
import pytest
from typer.testing import CliRunner

from conductor.cli.app import app
from conductor.cli.integrations import build_auth, check_connectivity, parse_headers
from conductor.exceptions import ValidationError
from conductor.workspace.models import (
    APIKeyAuth,
    BasicAuth,
    Integration,
    NoAuth,
    TokenAuth,
)

runner = CliRunner()


def _add(*args: str) -> None:
    result = runner.invoke(app, ["integrations", "add", *args])
    assert result.exit_code == 0, result.output


class TestBuildAuth:
    """Tests for translating auth flags."""

    def test_no_flags(self) -> None:
        """Test that no credential flag yields None."""
        assert build_auth() is None

    def test_each_method(self) -> None:
        """Test token, basic and API-key variants."""
        assert build_auth(token="t") == TokenAuth(token="t")
        assert build_auth(username="u", password="p") == BasicAuth(username="u", password="p")
        assert build_auth(api_key_header="X-Key", api_key_value="v") == APIKeyAuth(
            header="X-Key", value="v"
        )

    def test_conflicting_methods(self) -> None:
        """Test that mixing methods is rejected."""
        with pytest.raises(ValidationError, match="Conflicting authentication flags"):
            build_auth(token="t", username="u", password="p")

    def test_incomplete_basic(self) -> None:
        """Test that basic auth needs both parts."""
        with pytest.raises(ValidationError, match="--username and --password"):
            build_auth(username="u")

    def test_incomplete_api_key(self) -> None:
        """Test that API-key auth needs both header and value."""
        with pytest.raises(ValidationError, match="--api-key-header"):
            build_auth(api_key_value="v")


class TestParseHeaders:
    """Tests for --header parsing."""

    def test_both_separators(self) -> None:
        """Test Name=value and Name: value forms."""
        assert parse_headers(["X-Team=backend", "Accept: application/json"]) == {
            "X-Team": "backend",
            "Accept": "application/json",
        }

    def test_invalid(self) -> None:
        """Test that a pair without separator is rejected."""
        with pytest.raises(ValidationError, match="Invalid header"):
            parse_headers(["nonsense"])


class TestAddAndList:
    """Tests for 'integrations add' and 'integrations list'."""

    def test_add_defaults(self) -> None:
        """Test that name and base URL default from the type."""
        result = runner.invoke(app, ["integrations", "add", "github", "--token", "ghp_secret"])
        assert result.exit_code == 0
        assert "Added integration github (github) to workspace default" in result.output
        assert "https://api.github.com" in result.output
        assert "ghp_secret" not in result.output

    def test_list_json_hides_secret(self) -> None:
        """Test that the JSON listing shows redacted auth only."""
        _add("github", "--token", "ghp_secret")
        _add("github", "--name", "gh-work", "--token", "env:WORK_TOKEN")

        result = runner.invoke(app, ["integrations", "list", "--format", "json"])
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert [entry["name"] for entry in data] == ["gh-work", "github"]
        assert all(entry["auth"] == "token (configured)" for entry in data)
        assert "ghp_secret" not in result.stdout
        assert "WORK_TOKEN" not in result.stdout

    def test_list_by_type(self) -> None:
        """Test filtering the listing by type."""
        _add("github", "--token", "t")
        _add("slack", "--token", "t")
        result = runner.invoke(app, ["integrations", "list", "-t", "slack", "--format", "json"])
        assert [entry["type"] for entry in json.loads(result.stdout)] == ["slack"]

    def test_list_empty(self) -> None:
        """Test the hint shown for an empty workspace."""
        result = runner.invoke(app, ["integrations", "list"])
        assert result.exit_code == 0
        assert "No integrations in workspace 'default'" in result.output

    def test_dry_run_does_not_save(self) -> None:
        """Test that --dry-run validates without persisting."""
        result = runner.invoke(
            app, ["integrations", "add", "github", "--token", "t", "--dry-run"]
        )
        assert result.exit_code == 0
        assert "Would add integration github" in result.output

        listing = runner.invoke(app, ["integrations", "list", "--format", "json"])
        assert json.loads(listing.stdout) == []

    def test_dry_run_unknown_workspace(self) -> None:
        """Test that --dry-run still checks the workspace exists."""
        result = runner.invoke(
            app, ["integrations", "add", "github", "--dry-run", "--workspace", "ghost"]
        )
        assert result.exit_code == 1
        assert "not found" in result.output

    def test_conflicting_flags_exit_1(self) -> None:
        """Test that mixed auth flags fail the command."""
        result = runner.invoke(
            app,
            ["integrations", "add", "jira", "--token", "t", "--username", "u", "--password", "p"],
        )
        assert result.exit_code == 1
        assert "Conflicting authentication flags" in result.output

    def test_duplicate_name(self) -> None:
        """Test that a second integration with the same name fails."""
        _add("github", "--token", "t")
        result = runner.invoke(app, ["integrations", "add", "github", "--token", "t"])
        assert result.exit_code == 1
        assert "already exists" in result.output

    def test_unknown_format(self) -> None:
        """Test that unsupported output formats fail."""
        result = runner.invoke(app, ["integrations", "list", "--format", "xml"])
        assert result.exit_code == 1
        assert "Unsupported output format" in result.output


class TestShowUpdateRemove:
    """Tests for 'integrations show', 'update' and 'remove'."""

    def test_show_yaml(self) -> None:
        """Test the YAML view of one integration."""
        _add("jira", "--base-url", "https://acme.example.com", "--username", "bot",
             "--password", "hunter2")
        result = runner.invoke(app, ["integrations", "show", "jira", "--format", "yaml"])
        assert result.exit_code == 0
        assert "basic (user: bot)" in result.stdout
        assert "hunter2" not in result.stdout

    def test_show_missing(self) -> None:
        """Test that a missing integration fails."""
        result = runner.invoke(app, ["integrations", "show", "nope"])
        assert result.exit_code == 1
        assert "not found" in result.output

    def test_update_only_given_fields(self) -> None:
        """Test that update leaves unspecified fields alone."""
        _add("github", "--token", "t", "--timeout", "10")
        result = runner.invoke(app, ["integrations", "update", "github", "--timeout", "45"])
        assert result.exit_code == 0

        shown = json.loads(
            runner.invoke(app, ["integrations", "show", "github", "--format", "json"]).stdout
        )
        assert shown["timeout"] == 45
        assert shown["auth"] == "token (configured)"

    def test_update_no_auth(self) -> None:
        """Test that --no-auth clears credentials."""
        _add("github", "--token", "t")
        runner.invoke(app, ["integrations", "update", "github", "--no-auth"])
        shown = json.loads(
            runner.invoke(app, ["integrations", "show", "github", "--format", "json"]).stdout
        )
        assert shown["auth"] == "none"

    def test_update_no_auth_with_token(self) -> None:
        """Test that --no-auth cannot be combined with credentials."""
        _add("github", "--token", "t")
        result = runner.invoke(
            app, ["integrations", "update", "github", "--no-auth", "--token", "x"]
        )
        assert result.exit_code == 1

    def test_remove(self) -> None:
        """Test removing with --force."""
        _add("github", "--token", "t")
        result = runner.invoke(app, ["integrations", "remove", "github", "--force"])
        assert result.exit_code == 0
        assert "Removed integration github from workspace default" in result.output

        listing = runner.invoke(app, ["integrations", "list", "--format", "json"])
        assert json.loads(listing.stdout) == []


class TestIntegrationTest:
    """Tests for 'integrations test'."""

    def test_success_is_audited(self, isolated_env: Path) -> None:
        """Test a passing check and its audit record."""
        _add("github", "--token", "t")
        with patch(
            "conductor.cli.integrations.check_connectivity", return_value=(True, "HTTP 200")
        ) as mock_check:
            result = runner.invoke(app, ["integrations", "test", "github"])

        assert result.exit_code == 0
        assert "reachable (HTTP 200)" in result.output
        tested = mock_check.call_args.args[0]
        assert tested.auth == TokenAuth(token="t")

        records = [
            json.loads(line)
            for line in (isolated_env / "audit.log").read_text().splitlines()
        ]
        assert records[-1]["event_type"] == "integration.tested"
        assert records[-1]["success"] is True

    def test_failure_exits_1(self, isolated_env: Path) -> None:
        """Test that a failed check exits 1 and records the category."""
        _add("github", "--token", "t")
        with patch(
            "conductor.cli.integrations.check_connectivity", return_value=(False, "auth_failed")
        ):
            result = runner.invoke(app, ["integrations", "test", "github"])

        assert result.exit_code == 1
        assert "auth_failed" in result.output
        last = json.loads((isolated_env / "audit.log").read_text().splitlines()[-1])
        assert last["error_category"] == "auth_failed"

    def test_unresolvable_reference(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that a missing env reference fails before any request."""
        monkeypatch.delenv("MISSING_GH_TOKEN", raising=False)
        _add("github", "--token", "env:MISSING_GH_TOKEN")
        with patch("conductor.cli.integrations.check_connectivity") as mock_check:
            result = runner.invoke(app, ["integrations", "test", "github"])
        assert result.exit_code == 1
        assert "export MISSING_GH_TOKEN=<your-value>" in result.output
        mock_check.assert_not_called()


class TestCheckConnectivity:
    """Tests for the connectivity check."""

    def _integration(self, **kwargs) -> Integration:
        return Integration(name="gh", type="github", **kwargs)

    def test_auth_header_applied(self) -> None:
        """Test that the bearer token reaches the server."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200)

        integration = self._integration(auth=TokenAuth(token="abc"), headers={"X-Team": "be"})
        assert check_connectivity(integration, httpx.MockTransport(handler)) == (True, "HTTP 200")
        assert seen[0].headers["Authorization"] == "Bearer abc"
        assert seen[0].headers["X-Team"] == "be"
        assert str(seen[0].url).startswith("https://api.github.com")

    @pytest.mark.parametrize(
        ("status", "detail"),
        [(401, "auth_failed"), (403, "auth_failed"), (404, "http_404"), (500, "http_500")],
    )
    def test_error_statuses(self, status: int, detail: str) -> None:
        """Test the error category for failing statuses."""
        transport = httpx.MockTransport(lambda r: httpx.Response(status))
        assert check_connectivity(self._integration(), transport) == (False, detail)

    def test_connection_error(self) -> None:
        """Test transport failures."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        assert check_connectivity(self._integration(), httpx.MockTransport(handler)) == (
            False,
            "connection_error",
        )

    def test_timeout(self) -> None:
        """Test request timeouts."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        assert check_connectivity(self._integration(), httpx.MockTransport(handler)) == (
            False,
            "timeout",
        )

    def test_no_base_url(self) -> None:
        """Test that custom types without a URL are not checked."""
        integration = Integration(name="svc", type="custom", auth=NoAuth())
        assert check_connectivity(integration) == (False, "no_base_url")
