# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""Completion of builtin connector names and ``connector.operation`` pairs."""

from __future__ import annotations

from conductor.completion.safety import (
    CompletionResult,
    ShellCompDirective,
    candidate,
    filter_prefix,
    safe_completer,
)

CONNECTOR_DESCRIPTIONS: dict[str, str] = {
    "file": "Filesystem operations (read, write, list, copy, etc.)",
    "shell": "Shell command execution",
    "transform": "Data transformation operations (parse, extract, split, map, filter, etc.)",
    "utility": "Utility functions (random, ID generation, math operations)",
}

CONNECTOR_OPERATIONS: dict[str, dict[str, str]] = {
    "file": {
        "read": "Read a file, decoding by extension",
        "read_text": "Read a file as text",
        "read_json": "Read and parse a JSON file",
        "read_yaml": "Read and parse a YAML file",
        "read_csv": "Read a CSV file into rows",
        "read_lines": "Read a file as a list of lines",
        "write": "Write content, encoding by extension",
        "write_text": "Write text to a file",
        "write_json": "Write data as JSON",
        "write_yaml": "Write data as YAML",
        "append": "Append text to a file",
        "render": "Render a template to a file",
        "list": "List directory entries",
        "exists": "Check whether a path exists",
        "stat": "Get file metadata",
        "mkdir": "Create a directory",
        "copy": "Copy a file or directory",
        "move": "Move or rename a file",
        "delete": "Delete a file or directory",
    },
    "shell": {
        "run": "Run a shell command",
    },
    "transform": {
        "parse_json": "Parse a JSON string",
        "parse_xml": "Parse an XML string",
        "extract": "Extract a value with a path expression",
        "split": "Split a string or array",
        "map": "Apply an expression to each element",
        "filter": "Keep elements matching an expression",
        "flatten": "Flatten nested arrays",
        "sort": "Sort elements",
        "group": "Group elements by key",
        "merge": "Merge objects",
        "concat": "Concatenate arrays",
    },
    "utility": {
        "random_int": "Random integer in a range",
        "random_choose": "Pick a random element",
        "random_weighted": "Pick a weighted random element",
        "random_sample": "Pick several random elements",
        "random_shuffle": "Shuffle a list",
        "id_uuid": "Generate a UUID",
        "id_nanoid": "Generate a Nano ID",
        "id_custom": "Generate an ID from a custom alphabet",
        "math_clamp": "Clamp a number to a range",
        "math_round": "Round a number",
        "math_min": "Smallest of several numbers",
        "math_max": "Largest of several numbers",
    },
}


def _complete_connector_names(to_complete: str) -> CompletionResult:
    names = [candidate(name, desc) for name, desc in CONNECTOR_DESCRIPTIONS.items()]
    return filter_prefix(names, to_complete), ShellCompDirective.NO_FILE_COMP


def _complete_connector_operations(to_complete: str) -> CompletionResult:
    pairs = [
        candidate(f"{connector}.{operation}", desc)
        for connector, operations in CONNECTOR_OPERATIONS.items()
        for operation, desc in operations.items()
    ]
    return filter_prefix(pairs, to_complete), ShellCompDirective.NO_FILE_COMP


complete_connector_names = safe_completer(_complete_connector_names)
complete_connector_operations = safe_completer(_complete_connector_operations)
