from __future__ import annotations

from pathlib import Path

from fastapi import APIRouter, File, Form, UploadFile

from backend.application.progress import get_progress_registry
from backend.core.datadir import is_valid_job_id
from backend.core.errors import critical
from backend.infrastructure.warehouse import TeamDirectory, get_warehouse
from backend.workers.pipeline import FinalizeRequest, PipelineRequest, get_pipeline_worker

router = APIRouter(prefix="/upload", tags=["upload"])


@router.get("/progress/{job_id}")
async def get_progress(job_id: str) -> dict:
    """Current progress of a job; unknown jobs report ``processing`` at 0%."""
    return get_progress_registry().snapshot(job_id).to_payload()


@router.post("/process")
async def process_upload(
    file: UploadFile = File(...),
    job_id: str | None = Form(default=None, alias="jobId"),
) -> dict:
    """Validate and stage an uploaded workbook; returns the staged artifact name."""
    try:
        if not file.filename or not file.filename.lower().endswith(".xlsx"):
            raise critical("Invalid file type", "Only .xlsx workbooks are accepted.", status_code=400)
        if not is_valid_job_id(job_id):
            raise critical("Missing or invalid jobId", status_code=400)

        payload = PipelineRequest(job_id=job_id, filename=Path(file.filename).name, source=file.file)
        result = await get_pipeline_worker().process_upload(payload)
    finally:
        await file.close()

    return {
        "fileName": result.file_name,
        "validCount": result.valid_count,
        "invalidCount": result.invalid_count,
    }


@router.post("/finalize")
async def finalize_upload(payload: dict) -> dict:
    """Commit a staged artifact as the next version of a team's data."""
    file_name = payload.get("fileName")
    team_id = payload.get("teamId")
    if not file_name or not isinstance(file_name, str):
        raise critical("Missing or invalid fileName", status_code=400)
    if not isinstance(team_id, int) or isinstance(team_id, bool):
        raise critical("Missing or invalid teamId", status_code=400)

    directory: TeamDirectory = get_warehouse()
    team = directory.get_team(team_id)
    if team is None:
        raise critical("team not found", context={"teamId": team_id}, status_code=404)

    result = await get_pipeline_worker().finalize(FinalizeRequest(file_name=file_name, team=team))
    return {
        "success": True,
        "fileName": file_name,
        "teamId": result.team_id,
        "team": result.team_name,
        "version": result.version,
        "insertedRows": result.inserted_rows,
    }
