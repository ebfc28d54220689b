"""Application services."""

from .progress import ProgressRegistry, configure_job_store, get_progress_registry, reset_progress_state

__all__ = [
    "ProgressRegistry",
    "configure_job_store",
    "get_progress_registry",
    "reset_progress_state",
]
