from __future__ import annotations

from fastapi import APIRouter, Query

from backend.infrastructure.warehouse import get_warehouse
from backend.workers.pipeline import get_pipeline_worker

router = APIRouter(prefix="/data", tags=["data"])


@router.get("/teams")
async def list_teams() -> list[dict]:
    return [team.model_dump() for team in get_warehouse().list_teams()]


@router.get("/temp/{file_name}")
async def get_staged_rows(file_name: str) -> dict:
    """Rows of a staged artifact, so the client can review them before finalizing."""
    rows = get_pipeline_worker().preview_staged(file_name)
    return {"fileName": file_name, "items": rows}


@router.get("/preview")
async def get_preview(team: str = Query(...), version: int | None = Query(default=None)) -> dict:
    rows = get_warehouse().fetch_preview(team, version)
    resolved = rows[0].version if rows else version
    return {"team": team, "version": resolved, "items": [row.model_dump() for row in rows]}


@router.get("/versions")
async def list_versions(team: str = Query(...)) -> dict:
    return {"team": team, "items": get_warehouse().list_versions(team)}
