# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""Completion of workflow file paths.

Discovery walks the current directory down to a fixed depth, keeps YAML
files that carry a top-level ``name:`` key, and offers ``github:`` for
remote workflows.
"""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from stat import S_ISREG

from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from conductor.completion.safety import (
    CompletionResult,
    ShellCompDirective,
    filter_prefix,
    safe_completer,
)

logger = logging.getLogger(__name__)

MAX_DEPTH = 2
MAX_RESULTS = 100
GITHUB_PREFIX = "github:"
WORKFLOW_SUFFIXES = (".yaml", ".yml")

_NAME_KEY = re.compile(r"""^(name|"name"|'name')\s*:""")


def _has_name_line(text: str) -> bool:
    return any(_NAME_KEY.match(line) for line in text.splitlines())


def is_workflow_file(path: Path, yaml: YAML | None = None) -> bool:
    """Return True if ``path`` is a regular YAML file with a top-level ``name``.

    Files without an unindented ``name:`` line are rejected before parsing.
    """
    if path.is_symlink() or not path.is_file():
        return False
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        return False
    if not _has_name_line(text):
        return False
    yaml = yaml or YAML(typ="safe")
    try:
        data = yaml.load(text)
    except YAMLError:
        logger.debug(f"Skipping {path}: not valid YAML")
        return False
    return isinstance(data, dict) and "name" in data


def _candidate_files(root: Path, max_depth: int) -> list[tuple[float, Path]]:
    """Collect YAML files under ``root`` with their mtimes, without reading them."""
    candidates: list[tuple[float, Path]] = []
    for dirpath, dirnames, filenames in os.walk(root):
        current = Path(dirpath)
        depth = len(current.relative_to(root).parts)
        if depth >= max_depth:
            dirnames[:] = []
        else:
            dirnames[:] = sorted(d for d in dirnames if not d.startswith("."))

        for filename in filenames:
            if not filename.endswith(WORKFLOW_SUFFIXES):
                continue
            path = current / filename
            try:
                stat = path.lstat()
            except OSError:
                continue
            if not S_ISREG(stat.st_mode):
                continue
            candidates.append((stat.st_mtime, path))
    return candidates


def find_workflow_files(
    root: Path | None = None,
    max_depth: int = MAX_DEPTH,
    limit: int = MAX_RESULTS,
) -> list[str]:
    """Discover workflow files under ``root``, newest first.

    Files directly in ``root`` are at depth 0; ``a/b/wf.yaml`` is at depth 2.
    Dot-directories and symlinked files are skipped. Candidates are ordered
    by mtime before any file is read, and reading stops once ``limit``
    workflows have been found.

    Returns:
        Paths relative to ``root``, at most ``limit`` of them.
    """
    root = root or Path.cwd()
    candidates = _candidate_files(root, max_depth)
    candidates.sort(key=lambda item: (-item[0], item[1].relative_to(root).as_posix()))

    yaml = YAML(typ="safe")
    found: list[str] = []
    for _, path in candidates:
        if len(found) >= limit:
            break
        if is_workflow_file(path, yaml):
            found.append(path.relative_to(root).as_posix())
    return found


def _complete_workflow_files(to_complete: str) -> CompletionResult:
    # Typing towards "github:" means a remote workflow; let the user keep typing
    if to_complete and GITHUB_PREFIX.startswith(to_complete):
        return [GITHUB_PREFIX], ShellCompDirective.NO_SPACE
    if to_complete.startswith(GITHUB_PREFIX):
        return [to_complete], ShellCompDirective.NO_SPACE

    matches = filter_prefix(find_workflow_files(), to_complete)
    if not matches:
        return [GITHUB_PREFIX], ShellCompDirective.NO_SPACE
    return matches, ShellCompDirective.NO_FILE_COMP


complete_workflow_files = safe_completer(_complete_workflow_files)
