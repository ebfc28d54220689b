"""Domain entities for workbook ingestion jobs."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum


class JobStatus(str, Enum):
    PROCESSING = "processing"
    DONE = "done"
    ERROR = "error"


@dataclass(slots=True)
class JobSnapshot:
    """Latest progress report of an upload job, as seen by the polling client."""

    job_id: str
    progress: int = 0
    status: JobStatus = JobStatus.PROCESSING
    error: str | None = None
    error_severity: str | None = None

    def to_payload(self) -> dict[str, object]:
        return {
            "progress": self.progress,
            "status": self.status.value,
            "error": self.error,
            "errorSeverity": self.error_severity,
        }


@dataclass(slots=True)
class SheetLayout:
    """Column classification of one required sheet, taken from its header row."""

    name: str
    headers: list[str]
    business_indices: dict[str, int] = field(default_factory=dict)
    date_indices: list[tuple[int, str]] = field(default_factory=list)
    estimated_rows: int = 0

    @property
    def date_headers(self) -> list[str]:
        return [header for _, header in self.date_indices]


@dataclass(slots=True)
class WorkbookLayout:
    sheets: list[SheetLayout] = field(default_factory=list)
    found_sheets: list[str] = field(default_factory=list)

    @property
    def date_columns(self) -> list[str]:
        """Union of date headers over every sheet, in first-seen order."""

        seen: dict[str, None] = {}
        for sheet in self.sheets:
            for header in sheet.date_headers:
                seen.setdefault(header, None)
        return list(seen)

    @property
    def estimated_rows(self) -> int:
        return sum(sheet.estimated_rows for sheet in self.sheets)


@dataclass(slots=True)
class StagingResult:
    file_name: str
    valid_count: int
    invalid_count: int
    date_columns: list[str] = field(default_factory=list)


@dataclass(slots=True)
class Imbalance:
    cod: int
    segmentos: str
    month: str
    resultado: float
    contabil: float
    ficticio: float
    diff: float

    def to_dict(self) -> dict[str, object]:
        return {
            "cod": self.cod,
            "segmentos": self.segmentos,
            "month": self.month,
            "resultado": self.resultado,
            "contabil": self.contabil,
            "ficticio": self.ficticio,
            "diff": self.diff,
        }


@dataclass(slots=True)
class CommitResult:
    team_id: int
    team_name: str
    version: int
    inserted_rows: int
    dates: list[date] = field(default_factory=list)
