"""Progress registry consulted by the polling client."""
from __future__ import annotations

from backend.domain.uploads import JobSnapshot, JobStatus
from backend.infrastructure.jobs import InMemoryJobStore, JobStore


class ProgressRegistry:
    """Write path for the pipeline, read path for the progress endpoint.

    While a job is processing its progress never moves backwards; the reset
    to 0 that accompanies an error is the one allowed decrease.
    """

    def __init__(self, store: JobStore) -> None:
        self._store = store

    def update(
        self,
        job_id: str,
        progress: int,
        status: JobStatus | str = JobStatus.PROCESSING,
        error: str | None = None,
        severity: str | None = None,
    ) -> JobSnapshot:
        status = JobStatus(status)
        progress = max(0, min(100, int(progress)))
        current = self._store.get(job_id)
        if (
            status is JobStatus.PROCESSING
            and current is not None
            and current.status is JobStatus.PROCESSING
        ):
            progress = max(progress, current.progress)
        snapshot = JobSnapshot(
            job_id=job_id,
            progress=progress,
            status=status,
            error=error,
            error_severity=severity,
        )
        self._store.set(snapshot)
        return snapshot

    def start(self, job_id: str, progress: int = 0) -> JobSnapshot:
        """Begin (or restart) a job; a retried upload starts from scratch."""

        snapshot = JobSnapshot(job_id=job_id, progress=progress)
        self._store.set(snapshot)
        return snapshot

    def snapshot(self, job_id: str) -> JobSnapshot:
        """Current state of a job; unknown jobs read as still starting."""

        return self._store.get(job_id) or JobSnapshot(job_id=job_id)

    def reset(self) -> None:
        self._store.reset()


_registry = ProgressRegistry(InMemoryJobStore())


def get_progress_registry() -> ProgressRegistry:
    """Return the singleton progress registry for the process."""

    return _registry


def configure_job_store(store: JobStore) -> None:
    global _registry
    _registry = ProgressRegistry(store)


def reset_progress_state() -> None:
    """Reset the in-memory store (used in tests)."""

    _registry.reset()
