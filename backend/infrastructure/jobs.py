"""Storage for upload job progress snapshots."""
from __future__ import annotations

from dataclasses import replace
from typing import Protocol

from backend.domain.uploads import JobSnapshot


class JobStore(Protocol):
    """Persistence contract for job progress.

    The in-memory implementation assumes a single process instance; a shared
    cache can implement the same three calls when the service runs with
    several workers.
    """

    def get(self, job_id: str) -> JobSnapshot | None: ...

    def set(self, snapshot: JobSnapshot) -> None: ...

    def reset(self) -> None: ...


class InMemoryJobStore:
    """Process-local job map; entries live until the process restarts."""

    def __init__(self) -> None:
        self._jobs: dict[str, JobSnapshot] = {}

    def get(self, job_id: str) -> JobSnapshot | None:
        snapshot = self._jobs.get(job_id)
        return replace(snapshot) if snapshot is not None else None

    def set(self, snapshot: JobSnapshot) -> None:
        self._jobs[snapshot.job_id] = replace(snapshot)

    def reset(self) -> None:
        self._jobs.clear()
