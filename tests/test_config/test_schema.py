"""Tests for workflow requirement models."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from conductor.config.schema import (
    IntegrationRequirement,
    RequirementsDefinition,
    WorkflowDefinition,
    parse_integration_requirement,
)


class TestParseIntegrationRequirement:
    """Tests for parsing requirement strings."""

    def test_plain_type(self) -> None:
        """Test a requirement without an alias."""
        req = parse_integration_requirement("github")
        assert req == IntegrationRequirement(type="github")
        assert req.identifier == "github"
        assert str(req) == "github"

    def test_aliased(self) -> None:
        """Test a requirement with an alias."""
        req = parse_integration_requirement("github as source")
        assert req.type == "github"
        assert req.alias == "source"
        assert req.identifier == "source"
        assert str(req) == "github as source"

    def test_extra_whitespace(self) -> None:
        """Test that surrounding and separating whitespace is tolerated."""
        req = parse_integration_requirement("  github   as   target ")
        assert req == IntegrationRequirement(type="github", alias="target")

    def test_as_inside_word_is_not_separator(self) -> None:
        """Test that 'as' must be a separate word."""
        req = parse_integration_requirement("asana")
        assert req == IntegrationRequirement(type="asana")


class TestRequirementsDefinition:
    """Tests for requires block validation."""

    def test_empty(self) -> None:
        """Test that an empty requires block is valid."""
        assert RequirementsDefinition().parsed_integrations() == []

    def test_declaration_order_preserved(self) -> None:
        """Test that parsed requirements keep their order."""
        reqs = RequirementsDefinition(integrations=["slack", "github as source", "github as target"])
        assert [r.identifier for r in reqs.parsed_integrations()] == ["slack", "source", "target"]

    def test_empty_entry_rejected(self) -> None:
        """Test that blank entries are rejected."""
        with pytest.raises(ValidationError, match="cannot be empty"):
            RequirementsDefinition(integrations=["github", "  "])

    def test_duplicate_type_rejected(self) -> None:
        """Test that the same unaliased type may appear once."""
        with pytest.raises(ValidationError, match="duplicate integration requirement"):
            RequirementsDefinition(integrations=["github", "github"])

    def test_duplicate_alias_rejected(self) -> None:
        """Test that aliases must be unique."""
        with pytest.raises(ValidationError, match="duplicate integration alias"):
            RequirementsDefinition(integrations=["github as src", "gitlab as src"])

    def test_aliased_and_plain_same_type_allowed(self) -> None:
        """Test that an alias may share the type of a plain requirement."""
        reqs = RequirementsDefinition(integrations=["github", "github as mirror"])
        assert len(reqs.parsed_integrations()) == 2

    def test_mcp_servers(self) -> None:
        """Test MCP server requirements parse and must be unique."""
        reqs = RequirementsDefinition(mcp_servers=[{"name": "filesystem"}])
        assert reqs.mcp_servers[0].name == "filesystem"
        with pytest.raises(ValidationError, match="duplicate mcp_server"):
            RequirementsDefinition(mcp_servers=[{"name": "fs"}, {"name": "fs"}])


class TestWorkflowDefinition:
    """Tests for the workflow model."""

    def test_extra_fields_allowed(self) -> None:
        """Test that step definitions pass through untouched."""
        wf = WorkflowDefinition.model_validate({"name": "wf", "steps": [{"id": "a"}]})
        assert wf.integration_requirements() == []

    def test_blank_name_rejected(self) -> None:
        """Test that a blank name is rejected."""
        with pytest.raises(ValidationError):
            WorkflowDefinition(name="  ")

    def test_integration_requirements(self) -> None:
        """Test requirements are exposed parsed."""
        wf = WorkflowDefinition.model_validate(
            {"name": "wf", "requires": {"integrations": ["github as source"]}}
        )
        assert wf.integration_requirements() == [
            IntegrationRequirement(type="github", alias="source")
        ]
