"""Promote a staged artifact into a new version layer of the ``preview`` table."""
from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import duckdb
import pandas as pd

from backend.core.dates import header_to_date, is_date_header
from backend.core.errors import critical
from backend.core.parquetio import read_parquet
from backend.core.schema import COD, FILE_PATHS, ITENS_PERIODO, SEGMENTOS_COL, SHEET_NAME, Team
from backend.domain.uploads import CommitResult
from backend.infrastructure.warehouse import Warehouse
from backend.workers.balance import validate_sheet_balance

logger = logging.getLogger(__name__)

ARTIFACT_NOT_FOUND = "Temporary file not found (maybe already finalized or cleaned)"
_VIEW_NAME = "narrow_rows"

_ID_COLUMNS = {
    COD: "cod",
    ITENS_PERIODO: "itens_periodo",
    SEGMENTOS_COL: "segmentos",
    FILE_PATHS: "file_paths",
    SHEET_NAME: "sheet_name",
}

INSERT_PREVIEW = f"""
INSERT INTO preview
  (cod, itens_periodo, segmentos, file_paths, sheet_name, team_name, dat_ref, value, version)
SELECT
  cod,
  itens_periodo,
  segmentos,
  file_paths,
  sheet_name,
  $team_name,
  CAST(dat_ref AS DATE),
  CAST(value AS DECIMAL(38, 10)),
  $version
FROM {_VIEW_NAME}
"""


def pivot_to_narrow(frame: pd.DataFrame, date_columns: list[str]) -> pd.DataFrame:
    """Wide staged rows -> one row per (row, month) with a non-null, non-zero value."""

    narrow = frame.melt(
        id_vars=list(_ID_COLUMNS),
        value_vars=date_columns,
        var_name="month",
        value_name="value",
    )
    narrow = narrow[narrow["value"].notna() & (narrow["value"] != 0)]
    dat_refs = {column: pd.Timestamp(header_to_date(column)) for column in date_columns}
    narrow = narrow.assign(dat_ref=narrow["month"].map(dat_refs))
    narrow = narrow.rename(columns=_ID_COLUMNS)
    return narrow[[*_ID_COLUMNS.values(), "dat_ref", "value"]].reset_index(drop=True)


def next_version(cursor: duckdb.DuckDBPyConnection, team_name: str) -> int:
    cursor.execute(
        "SELECT CAST(COALESCE(MAX(version), 0) + 1 AS INTEGER) FROM preview WHERE team_name = ?",
        [team_name],
    )
    row = cursor.fetchone()
    return int(row[0]) if row else 1


class VersionCommitter:
    """Assigns version numbers and inserts committed rows.

    Finalizes for the same team are serialized, and the version read plus the
    insert share one transaction.
    """

    def __init__(self, warehouse: Warehouse) -> None:
        self._warehouse = warehouse
        self._locks: dict[str, asyncio.Lock] = {}

    def _lock_for(self, team_name: str) -> asyncio.Lock:
        lock = self._locks.get(team_name)
        if lock is None:
            lock = self._locks[team_name] = asyncio.Lock()
        return lock

    async def commit(self, artifact: Path, team: Team) -> CommitResult:
        async with self._lock_for(team.name):
            return self._commit(artifact, team)

    def _commit(self, artifact: Path, team: Team) -> CommitResult:
        if not artifact.exists():
            raise critical(ARTIFACT_NOT_FOUND, context={"fileName": artifact.name}, status_code=404)

        frame = read_parquet(artifact)
        date_columns = [column for column in frame.columns if is_date_header(column)]
        if not date_columns:
            raise critical(
                "No date columns found in temporary parquet",
                f"{artifact.name} has no month columns to commit.",
                {"fileName": artifact.name, "columns": list(frame.columns)},
                status_code=400,
            )

        with self._warehouse.cursor() as cursor:
            validate_sheet_balance(cursor, frame, date_columns)
            narrow = pivot_to_narrow(frame, date_columns)

            cursor.execute("BEGIN TRANSACTION")
            try:
                version = next_version(cursor, team.name)
                cursor.register(_VIEW_NAME, narrow)
                try:
                    cursor.execute(INSERT_PREVIEW, {"team_name": team.name, "version": version})
                finally:
                    cursor.unregister(_VIEW_NAME)
                cursor.execute(
                    "SELECT COUNT(*) FROM preview WHERE team_name = ? AND version = ?",
                    [team.name, version],
                )
                inserted = int(cursor.fetchone()[0])
                if inserted != len(narrow):
                    raise critical(
                        "Commit verification failed",
                        f"Expected {len(narrow)} rows for version {version}, found {inserted}.",
                        {"team": team.name, "version": version},
                        status_code=500,
                    )
                cursor.execute("COMMIT")
            except Exception:
                try:
                    cursor.execute("ROLLBACK")
                except duckdb.Error:
                    logger.warning("Rollback failed for team %s", team.name, exc_info=True)
                raise

        logger.info("Committed %s rows for team %s as version %s", inserted, team.name, version)
        return CommitResult(
            team_id=team.id,
            team_name=team.name,
            version=version,
            inserted_rows=inserted,
            dates=sorted({header_to_date(column) for column in date_columns}),
        )
