# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""Implementation of the hidden '__complete' command used by shell scripts.

Output is one candidate per line (``value`` or ``value<TAB>description``)
followed by a final ``:<directive>`` line.
"""

from __future__ import annotations

from conductor.completion import COMPLETERS, ShellCompDirective


def render_completion(source: str, to_complete: str = "") -> str:
    """Run the named completer and format its result for the shell.

    Unknown sources produce no candidates and the no-file directive.
    """
    completer = COMPLETERS.get(source)
    if completer is None:
        candidates, directive = [], ShellCompDirective.NO_FILE_COMP
    else:
        candidates, directive = completer(to_complete)
    lines = [*candidates, f":{int(directive)}"]
    return "\n".join(lines) + "\n"
