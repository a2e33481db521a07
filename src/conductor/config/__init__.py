# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""Configuration: on-disk paths, settings files and workflow loading."""

from conductor.config.loader import load_workflow, load_workflow_string
from conductor.config.schema import (
    IntegrationRequirement,
    MCPServerRequirement,
    RequirementsDefinition,
    WorkflowDefinition,
    parse_integration_requirement,
)

__all__ = [
    "IntegrationRequirement",
    "MCPServerRequirement",
    "RequirementsDefinition",
    "WorkflowDefinition",
    "load_workflow",
    "load_workflow_string",
    "parse_integration_requirement",
]
