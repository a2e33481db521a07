# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""YAML workflow loader.

This module handles loading YAML workflow files and parsing them into
typed Pydantic models, plus the ``${VAR}`` / ``${VAR:-default}``
environment variable syntax shared by workflow files and secret
references.
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any

from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from conductor.config.schema import WorkflowDefinition
from conductor.exceptions import ConfigurationError

# Pattern to match ${VAR} or ${VAR:-default}
ENV_VAR_PATTERN = re.compile(r"\$\{([^}:]+)(?::-([^}]*))?\}")


def resolve_env_vars(value: str, max_depth: int = 10) -> str:
    """Resolve ${ENV:-default} patterns in strings.

    Supports recursive resolution where environment variable values
    may themselves contain environment variable references.

    Args:
        value: The string potentially containing env var references.
        max_depth: Maximum recursion depth to prevent infinite loops.

    Returns:
        The string with all environment variables resolved.

    Raises:
        ConfigurationError: If a required environment variable is missing
            (no default provided) or recursion limit is exceeded.
    """
    if max_depth <= 0:
        raise ConfigurationError(
            f"Maximum recursion depth exceeded while resolving environment variables in: {value}",
            suggestion="Check for circular references in your environment variables.",
        )

    def replace_env_var(match: re.Match) -> str:
        var_name = match.group(1)
        default_value = match.group(2)

        env_value = os.environ.get(var_name)

        if env_value is not None:
            return env_value
        elif default_value is not None:
            return default_value
        else:
            raise ConfigurationError(
                f"Required environment variable '{var_name}' is not set",
                suggestion=f"Set the environment variable '{var_name}' or provide a default "
                f"value using the syntax: ${{{var_name}:-default_value}}",
            )

    result = ENV_VAR_PATTERN.sub(replace_env_var, value)

    # Values may themselves reference other variables
    if ENV_VAR_PATTERN.search(result):
        return resolve_env_vars(result, max_depth - 1)

    return result


def _resolve_env_vars_recursive(data: Any) -> Any:
    """Recursively resolve environment variables in a data structure."""
    if isinstance(data, dict):
        return {k: _resolve_env_vars_recursive(v) for k, v in data.items()}
    elif isinstance(data, list):
        return [_resolve_env_vars_recursive(item) for item in data]
    elif isinstance(data, str):
        return resolve_env_vars(data)
    else:
        return data


class WorkflowLoader:
    """Loads and validates workflow files.

    This class handles:
    - YAML parsing with line number tracking for error messages
    - Pydantic schema validation of the fields the CLI consumes
    """

    def __init__(self) -> None:
        """Initialize the loader with a ruamel.yaml parser."""
        self._yaml = YAML(typ="safe")

    def load(self, path: str | Path) -> WorkflowDefinition:
        """Load a workflow definition from a YAML file.

        Raises:
            ConfigurationError: If the file cannot be read, contains invalid
                YAML syntax, or fails schema validation.
        """
        path = Path(path)

        if not path.exists():
            raise ConfigurationError(
                f"Workflow file not found: {path}",
                suggestion="Check that the file path is correct and the file exists.",
            )

        if not path.is_file():
            raise ConfigurationError(
                f"Path is not a file: {path}",
                suggestion="Provide a path to a YAML file, not a directory.",
            )

        try:
            content = path.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigurationError(
                f"Failed to read workflow file '{path}': {e}",
                suggestion="Check file permissions and ensure the file is readable.",
            ) from e

        return self.load_string(content, source_path=path)

    def load_string(self, content: str, source_path: Path | None = None) -> WorkflowDefinition:
        """Load a workflow definition from a YAML string.

        Raises:
            ConfigurationError: If the YAML is invalid or fails validation.
        """
        source = str(source_path) if source_path else "<string>"

        try:
            data = self._yaml.load(content)
        except YAMLError as e:
            line_info = ""
            if hasattr(e, "problem_mark") and e.problem_mark is not None:
                mark = e.problem_mark
                line_info = f" at line {mark.line + 1}, column {mark.column + 1}"  # type: ignore[union-attr]

            raise ConfigurationError(
                f"Invalid YAML syntax in '{source}'{line_info}: {e}",
                suggestion="Check the YAML syntax. Common issues include incorrect "
                "indentation, missing colons, or unquoted special characters.",
                file_path=source,
            ) from e

        if data is None:
            raise ConfigurationError(
                f"Empty workflow file: {source}",
                suggestion="Add a workflow definition to the YAML file.",
                file_path=source,
            )

        if not isinstance(data, dict):
            raise ConfigurationError(
                f"Invalid workflow format in '{source}': "
                f"expected a mapping, got {type(data).__name__}",
                suggestion="Ensure the YAML file contains a valid workflow definition.",
                file_path=source,
            )

        # Steps are rendered at run time; only the requirements are resolved here
        if "requires" in data:
            try:
                data["requires"] = _resolve_env_vars_recursive(data["requires"])
            except ConfigurationError as e:
                raise ConfigurationError(
                    f"Failed to resolve environment variables in '{source}': {e.message}",
                    suggestion=e.suggestion,
                    file_path=source,
                    field_path="requires",
                ) from e

        return self._validate(data, source)

    def _validate(self, data: dict[str, Any], source: str) -> WorkflowDefinition:
        try:
            return WorkflowDefinition.model_validate(data)
        except Exception as e:
            error_msg = str(e)

            # Pydantic errors carry a location path per failure
            if hasattr(e, "errors") and callable(e.errors):
                errors_result = e.errors()  # type: ignore[operator]
                if errors_result and isinstance(errors_result, list):
                    formatted_errors: list[str] = []
                    for err in errors_result:
                        if isinstance(err, dict):
                            loc = ".".join(str(x) for x in err.get("loc", []))
                            msg = err.get("msg", "Unknown error")
                            formatted_errors.append(f"  - {loc}: {msg}" if loc else f"  - {msg}")
                    if formatted_errors:
                        error_msg = "\n".join(formatted_errors)

            raise ConfigurationError(
                f"Workflow validation failed in '{source}':\n{error_msg}",
                file_path=source,
            ) from e


def load_workflow(path: str | Path) -> WorkflowDefinition:
    """Convenience function to load a workflow definition from a file."""
    return WorkflowLoader().load(path)


def load_workflow_string(content: str, source_path: Path | None = None) -> WorkflowDefinition:
    """Convenience function to load a workflow definition from a string."""
    return WorkflowLoader().load_string(content, source_path)
