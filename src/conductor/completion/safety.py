# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""Safety envelope shared by every completion source.

Shell completion runs inside the user's interactive shell, so a completer
must never raise, never return None and never block for long. The
``safe_completer`` decorator enforces all three.
"""

from __future__ import annotations

import functools
import logging
import threading
from collections.abc import Callable
from enum import IntFlag
from typing import Any

logger = logging.getLogger(__name__)

COMPLETION_BUDGET_SECONDS = 0.5


class ShellCompDirective(IntFlag):
    """Hints to the shell about how to treat the returned candidates.

    The numeric values match the wire protocol read by the shell scripts.
    """

    DEFAULT = 0
    ERROR = 1
    NO_SPACE = 2
    NO_FILE_COMP = 4


CompletionResult = tuple[list[str], ShellCompDirective]
Completer = Callable[[str], CompletionResult]


def candidate(value: str, description: str | None = None) -> str:
    """Encode a candidate, optionally with a tab-separated description."""
    if description:
        return f"{value}\t{description}"
    return value


def split_candidate(encoded: str) -> tuple[str, str]:
    """Split an encoded candidate into ``(value, description)``."""
    value, _, description = encoded.partition("\t")
    return value, description


def safe_completer(
    func: Callable[[str], CompletionResult | list[str] | None],
    budget: float | None = None,
) -> Completer:
    """Wrap a completer so it always returns promptly and never raises.

    - Any exception yields ``([], NO_FILE_COMP)``.
    - A None result (or None candidate list) is normalized to an empty list.
    - Work that overruns the budget is abandoned and yields an empty list.

    Args:
        func: The completer. It may return ``(candidates, directive)`` or just
            a candidate list, in which case ``NO_FILE_COMP`` is assumed.
        budget: Seconds allowed before giving up. Defaults to
            ``COMPLETION_BUDGET_SECONDS``, read at call time.
    """

    @functools.wraps(func)
    def wrapper(to_complete: str = "") -> CompletionResult:
        outcome: dict[str, Any] = {}

        def target() -> None:
            try:
                outcome["result"] = func(to_complete)
            except Exception as e:
                outcome["error"] = e

        # Daemon thread so an abandoned completer cannot hold up process exit
        worker = threading.Thread(target=target, name=f"complete-{func.__name__}", daemon=True)
        worker.start()
        worker.join(budget if budget is not None else COMPLETION_BUDGET_SECONDS)

        if worker.is_alive():
            logger.debug(f"Completer {func.__name__} exceeded its time budget")
            return [], ShellCompDirective.NO_FILE_COMP
        if "error" in outcome:
            logger.debug(f"Completer {func.__name__} failed: {outcome['error']}")
            return [], ShellCompDirective.NO_FILE_COMP

        result = outcome.get("result")
        if result is None:
            return [], ShellCompDirective.NO_FILE_COMP
        if isinstance(result, tuple):
            candidates, directive = result
            return list(candidates or []), ShellCompDirective(directive)
        return list(result), ShellCompDirective.NO_FILE_COMP

    return wrapper


def filter_prefix(candidates: list[str], to_complete: str) -> list[str]:
    """Keep candidates whose value starts with ``to_complete``."""
    if not to_complete:
        return list(candidates)
    return [c for c in candidates if split_candidate(c)[0].startswith(to_complete)]


def for_typer(completer: Completer) -> Callable[[str], list[tuple[str, str]]]:
    """Adapt a completer to Typer's ``autocompletion=`` callback shape."""

    def typer_callback(incomplete: str) -> list[tuple[str, str]]:
        candidates, _ = completer(incomplete)
        return [split_candidate(c) for c in candidates]

    typer_callback.__name__ = f"typer_{getattr(completer, '__name__', 'completer')}"
    return typer_callback
