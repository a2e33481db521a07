"""Tests for the completion safety envelope."""

from __future__ import annotations

import threading
import time

from conductor.completion.safety import (
    ShellCompDirective,
    candidate,
    filter_prefix,
    for_typer,
    safe_completer,
    split_candidate,
)


class TestCandidates:
    """Tests for candidate encoding helpers."""

    def test_candidate_with_description(self) -> None:
        """Test tab-separated encoding."""
        assert candidate("run-1", "build (running)") == "run-1\tbuild (running)"

    def test_candidate_without_description(self) -> None:
        """Test that an empty description leaves the bare value."""
        assert candidate("strict") == "strict"
        assert candidate("strict", "") == "strict"

    def test_split(self) -> None:
        """Test decoding both forms."""
        assert split_candidate("a\tdesc") == ("a", "desc")
        assert split_candidate("a") == ("a", "")

    def test_filter_on_value_only(self) -> None:
        """Test that prefixes never match descriptions."""
        candidates = ["run-1\tstatus", "other\trun-like"]
        assert filter_prefix(candidates, "run") == ["run-1\tstatus"]
        assert filter_prefix(candidates, "") == candidates


class TestSafeCompleter:
    """Tests for the safe_completer wrapper."""

    def test_passes_result_through(self) -> None:
        """Test that a normal result is returned unchanged."""
        wrapped = safe_completer(lambda s: (["a", "b"], ShellCompDirective.NO_SPACE))
        assert wrapped("") == (["a", "b"], ShellCompDirective.NO_SPACE)

    def test_exception_yields_empty(self) -> None:
        """Test that a raising completer returns nothing."""

        def broken(to_complete: str):
            raise RuntimeError("boom")

        assert safe_completer(broken)("x") == ([], ShellCompDirective.NO_FILE_COMP)

    def test_none_normalized(self) -> None:
        """Test that None results become empty lists."""
        assert safe_completer(lambda s: None)("") == ([], ShellCompDirective.NO_FILE_COMP)
        assert safe_completer(lambda s: (None, ShellCompDirective.NO_SPACE))("") == (
            [],
            ShellCompDirective.NO_SPACE,
        )

    def test_bare_list_gets_no_file_directive(self) -> None:
        """Test that a plain list result assumes NO_FILE_COMP."""
        assert safe_completer(lambda s: ["x"])("") == (["x"], ShellCompDirective.NO_FILE_COMP)

    def test_budget_enforced(self) -> None:
        """Test that a slow completer is abandoned within the budget."""
        release = threading.Event()

        def slow(to_complete: str):
            release.wait(5)
            return ["late"]

        start = time.monotonic()
        result = safe_completer(slow, budget=0.1)("")
        elapsed = time.monotonic() - start
        release.set()

        assert result == ([], ShellCompDirective.NO_FILE_COMP)
        assert elapsed < 1.0

    def test_directive_values(self) -> None:
        """Test the wire values of the directives."""
        assert int(ShellCompDirective.NO_SPACE) == 2
        assert int(ShellCompDirective.NO_FILE_COMP) == 4


class TestForTyper:
    """Tests for the Typer autocompletion adapter."""

    def test_pairs(self) -> None:
        """Test that candidates become (value, help) tuples."""
        callback = for_typer(safe_completer(lambda s: ["a\tfirst", "b"]))
        assert callback("") == [("a", "first"), ("b", "")]
