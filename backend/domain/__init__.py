"""Domain layer definitions."""

from .uploads import (
    CommitResult,
    Imbalance,
    JobSnapshot,
    JobStatus,
    SheetLayout,
    StagingResult,
    WorkbookLayout,
)

__all__ = [
    "CommitResult",
    "Imbalance",
    "JobSnapshot",
    "JobStatus",
    "SheetLayout",
    "StagingResult",
    "WorkbookLayout",
]
