# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""Embedded example workflows and their completion."""

from __future__ import annotations

from dataclasses import dataclass
from importlib import resources

from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from conductor.completion.safety import (
    CompletionResult,
    ShellCompDirective,
    candidate,
    filter_prefix,
    safe_completer,
)

EXAMPLES_PACKAGE = "conductor.examples"


@dataclass(frozen=True)
class ExampleWorkflow:
    """An example workflow bundled with the package."""

    name: str
    description: str


def list_examples() -> list[ExampleWorkflow]:
    """Return the bundled examples sorted by name.

    The example name is the file stem; the description comes from the
    workflow's ``description`` key.
    """
    yaml = YAML(typ="safe")
    examples: list[ExampleWorkflow] = []
    for entry in resources.files(EXAMPLES_PACKAGE).iterdir():
        if not entry.name.endswith((".yaml", ".yml")):
            continue
        try:
            data = yaml.load(entry.read_text(encoding="utf-8"))
        except YAMLError:
            continue
        description = data.get("description", "") if isinstance(data, dict) else ""
        stem = entry.name.rsplit(".", 1)[0]
        examples.append(ExampleWorkflow(name=stem, description=description or ""))
    return sorted(examples, key=lambda e: e.name)


def _complete_example_names(to_complete: str) -> CompletionResult:
    names = [candidate(e.name, e.description) for e in list_examples()]
    return filter_prefix(names, to_complete), ShellCompDirective.NO_FILE_COMP


complete_example_names = safe_completer(_complete_example_names)
