# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""Completion of run IDs, backed by a short-lived process-wide cache.

The cache moves through three states: empty, valid until an expiry time,
and expired. A successful fetch makes it valid; a failed fetch empties it.
Two callers that both observe a miss may both fetch. That is acceptable
because listing runs is idempotent and bounded by the completion budget.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass

from conductor.client import COMPLETION_TIMEOUT, ControllerClient
from conductor.completion.safety import (
    CompletionResult,
    ShellCompDirective,
    candidate,
    filter_prefix,
    safe_completer,
)

RUN_CACHE_TTL_SECONDS = 2.0
ACTIVE_STATUSES = frozenset({"running", "pending"})


@dataclass(frozen=True)
class RunSummary:
    """The projection of a run that completion needs."""

    id: str
    workflow: str
    status: str

    def as_candidate(self) -> str:
        return candidate(self.id, f"{self.workflow} ({self.status})")


def _default_client() -> ControllerClient:
    return ControllerClient(timeout=COMPLETION_TIMEOUT)


class RunCache:
    """Process-wide cache of run summaries with a fixed TTL.

    Args:
        ttl: Seconds a fetched list stays valid.
        clock: Monotonic clock, injectable for tests.
        client_factory: Builds the controller client used to fetch runs.
    """

    def __init__(
        self,
        ttl: float = RUN_CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        client_factory: Callable[[], ControllerClient] = _default_client,
    ) -> None:
        self._ttl = ttl
        self._clock = clock
        self._client_factory = client_factory
        self._lock = threading.Lock()
        self._runs: list[RunSummary] | None = None
        self._expires_at = 0.0

    def _cached(self) -> list[RunSummary] | None:
        with self._lock:
            if self._runs is not None and self._clock() < self._expires_at:
                return list(self._runs)
            return None

    def get(self) -> list[RunSummary]:
        """Return cached runs, fetching from the controller on a miss.

        Raises:
            DaemonAPIError: If the controller cannot be queried. The cache is
                left empty.
            TimeoutError: If the controller does not answer in time.
        """
        cached = self._cached()
        if cached is not None:
            return cached

        try:
            with self._client_factory() as client:
                raw_runs = client.list_runs()
        except Exception:
            self.clear()
            raise

        runs = [
            RunSummary(
                id=str(run["id"]),
                workflow=str(run.get("workflow") or ""),
                status=str(run.get("status") or ""),
            )
            for run in raw_runs
            if run.get("id")
        ]
        with self._lock:
            self._runs = runs
            self._expires_at = self._clock() + self._ttl
        return list(runs)

    def clear(self) -> None:
        """Drop any cached runs."""
        with self._lock:
            self._runs = None
            self._expires_at = 0.0


_run_cache = RunCache()


def get_run_cache() -> RunCache:
    """Return the process-wide run cache."""
    return _run_cache


def set_run_cache(cache: RunCache) -> RunCache:
    """Replace the process-wide run cache, returning the previous one."""
    global _run_cache
    previous, _run_cache = _run_cache, cache
    return previous


def _complete_run_ids(to_complete: str) -> CompletionResult:
    runs = get_run_cache().get()
    return filter_prefix([r.as_candidate() for r in runs], to_complete), ShellCompDirective.NO_FILE_COMP


def _complete_active_run_ids(to_complete: str) -> CompletionResult:
    runs = [r for r in get_run_cache().get() if r.status in ACTIVE_STATUSES]
    return filter_prefix([r.as_candidate() for r in runs], to_complete), ShellCompDirective.NO_FILE_COMP


complete_run_ids = safe_completer(_complete_run_ids)
complete_active_run_ids = safe_completer(_complete_active_run_ids)
