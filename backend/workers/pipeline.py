from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO

from backend.application.progress import get_progress_registry
from backend.core.datadir import job_id_from_staged_name, resolve_data_path, staged_file_name
from backend.core.errors import UploadError, critical, parse_error, warning
from backend.core.parquetio import read_parquet
from backend.core.schema import REQUIRED_SHEETS, Team
from backend.core.validation import missing_business_headers, parse_sheet_row
from backend.domain.uploads import CommitResult, JobStatus, SheetLayout, StagingResult
from backend.extractors.workbook import iter_data_rows, open_workbook, scan_workbook
from backend.infrastructure.warehouse import Warehouse, get_warehouse
from backend.workers.balance import validate_sheet_balance
from backend.workers.cleanup import cleanup_staging
from backend.workers.committer import ARTIFACT_NOT_FOUND, VersionCommitter
from backend.workers.staging import StagingWriter, staging_table_name

logger = logging.getLogger(__name__)


@dataclass
class PipelineRequest:
    job_id: str
    filename: str
    source: Path | BinaryIO


@dataclass
class FinalizeRequest:
    file_name: str
    team: Team


def _as_upload_error(exc: Exception) -> UploadError:
    if isinstance(exc, UploadError):
        return exc
    return UploadError(parse_error(exc), status_code=500)


class PipelineWorker:
    """Runs uploads (parse, validate, stage, balance) and finalizes (commit)."""

    def __init__(self, warehouse: Warehouse | None = None) -> None:
        self._warehouse = warehouse
        self._committer: VersionCommitter | None = None

    @property
    def warehouse(self) -> Warehouse:
        return self._warehouse or get_warehouse()

    @property
    def committer(self) -> VersionCommitter:
        if self._committer is None:
            self._committer = VersionCommitter(self.warehouse)
        return self._committer

    # ------------------------------------------------------------------
    # upload
    # ------------------------------------------------------------------
    async def process_upload(self, payload: PipelineRequest) -> StagingResult:
        registry = get_progress_registry()
        job_id = payload.job_id
        file_name = staged_file_name(job_id)
        artifact = resolve_data_path(file_name)
        table_name = staging_table_name(job_id)
        writer: StagingWriter | None = None

        registry.start(job_id)
        registry.update(job_id, 10)
        logger.info("Processing %s for job %s", payload.filename, job_id)
        try:
            with open_workbook(payload.source) as workbook:
                layout = scan_workbook(workbook)
                date_columns = layout.date_columns
                writer = StagingWriter(
                    self.warehouse,
                    job_id,
                    date_columns,
                    total_rows=layout.estimated_rows,
                    on_progress=lambda value: registry.update(job_id, value),
                )
                writer.create_table()
                for sheet in layout.sheets:
                    position = REQUIRED_SHEETS.index(sheet.name)
                    registry.update(job_id, 15 + round(position / len(REQUIRED_SHEETS) * 5))
                    await self._stage_sheet(workbook, sheet, writer, date_columns)

            frame = writer.export(artifact)
            if writer.valid_count == 0:
                raise warning(
                    "No data rows found in Excel file",
                    "The required sheets contain no rows that could be staged.",
                    {"invalidCount": writer.invalid_count, "sheets": list(layout.found_sheets)},
                )
            with self.warehouse.cursor() as cursor:
                validate_sheet_balance(cursor, frame, date_columns)
            registry.update(job_id, 95)
        except Exception as exc:
            error = _as_upload_error(exc)
            registry.update(
                job_id,
                0,
                JobStatus.ERROR,
                error.error.display_message(),
                error.severity.value,
            )
            if error.status_code >= 500:
                logger.exception("Upload %s failed", job_id)
            else:
                logger.info("Upload %s rejected: %s", job_id, error.error.message)
            cleanup_staging(self.warehouse, artifact, table_name)
            if error is exc:
                raise
            raise error from exc
        finally:
            if writer is not None:
                writer.close()

        cleanup_staging(self.warehouse, staging_table=table_name)
        registry.update(job_id, 100, JobStatus.DONE)
        return StagingResult(
            file_name=file_name,
            valid_count=writer.valid_count,
            invalid_count=writer.invalid_count,
            date_columns=date_columns,
        )

    async def _stage_sheet(
        self,
        workbook,
        sheet: SheetLayout,
        writer: StagingWriter,
        date_columns: list[str],
    ) -> None:
        missing = missing_business_headers(sheet)
        for row_number, values in iter_data_rows(workbook, sheet.name):
            if missing:
                raise critical(
                    f'Missing required columns in sheet "{sheet.name}"',
                    f"The following columns are required but were not found: {', '.join(missing)}",
                    {"sheet": sheet.name, "missingColumns": missing, "headers": sheet.headers},
                )
            row = parse_sheet_row(values, sheet, row_number, date_columns)
            await writer.append(row)

    # ------------------------------------------------------------------
    # finalize
    # ------------------------------------------------------------------
    async def finalize(self, payload: FinalizeRequest) -> CommitResult:
        job_id = job_id_from_staged_name(payload.file_name)
        if job_id is None:
            raise critical("Missing or invalid fileName", status_code=400)
        artifact = resolve_data_path(payload.file_name)
        if not artifact.exists():
            raise critical(ARTIFACT_NOT_FOUND, context={"fileName": payload.file_name}, status_code=404)

        table_name = staging_table_name(job_id)
        try:
            result = await self.committer.commit(artifact, payload.team)
        except Exception as exc:
            error = _as_upload_error(exc)
            if error.status_code >= 500:
                logger.exception("Finalize of %s failed", payload.file_name)
            cleanup_staging(self.warehouse, artifact, table_name)
            if error is exc:
                raise
            raise error from exc

        cleanup_staging(self.warehouse, artifact, table_name)
        return result

    def preview_staged(self, file_name: str) -> list[dict]:
        if job_id_from_staged_name(file_name) is None:
            raise critical("Missing or invalid fileName", status_code=400)
        artifact = resolve_data_path(file_name)
        if not artifact.exists():
            raise critical(ARTIFACT_NOT_FOUND, context={"fileName": file_name}, status_code=404)
        return read_parquet(artifact).to_dict(orient="records")


_worker: PipelineWorker | None = None


def get_pipeline_worker() -> PipelineWorker:
    global _worker
    if _worker is None:
        _worker = PipelineWorker()
    return _worker


def reset_pipeline_worker() -> None:
    global _worker
    _worker = None
