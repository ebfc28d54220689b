from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, Callable

import duckdb
import pandas as pd

from backend.core.parquetio import write_parquet
from backend.core.schema import COD, STAGING_COLUMNS
from backend.core.sql import column_definitions, quote_identifier, scoped_table_name
from backend.infrastructure.warehouse import Warehouse

logger = logging.getLogger(__name__)

STAGING_TABLE_PREFIX = "preview_raw"
BATCH_SIZE = 100
PROGRESS_FLOOR = 20
PROGRESS_SPAN = 70

_INT32_MIN, _INT32_MAX = -(2**31), 2**31 - 1


def staging_table_name(job_id: str) -> str:
    return scoped_table_name(STAGING_TABLE_PREFIX, job_id)


class StagingWriter:
    """Streams validated rows into the job's staging table in batches.

    Rows that cannot be turned into the table's physical types, or that the
    database refuses, are counted as invalid instead of failing the upload.
    """

    def __init__(
        self,
        warehouse: Warehouse,
        job_id: str,
        date_columns: list[str],
        *,
        total_rows: int = 0,
        on_progress: Callable[[int], None] | None = None,
    ) -> None:
        self.table_name = staging_table_name(job_id)
        self.date_columns = list(date_columns)
        self.columns: list[tuple[str, str]] = list(STAGING_COLUMNS) + [
            (column, "DOUBLE") for column in self.date_columns
        ]
        self.total_rows = total_rows
        self.valid_count = 0
        self.invalid_count = 0
        self._handled = 0
        self._buffer: list[tuple[Any, ...]] = []
        self._on_progress = on_progress
        self._cursor = warehouse.cursor()

    @property
    def column_names(self) -> list[str]:
        return [name for name, _ in self.columns]

    def create_table(self) -> None:
        self._cursor.execute(
            f"CREATE OR REPLACE TABLE {quote_identifier(self.table_name)} "
            f"({column_definitions(self.columns)})"
        )

    def _coerce(self, row: dict[str, Any]) -> tuple[Any, ...]:
        cod = int(row[COD])
        if not _INT32_MIN <= cod <= _INT32_MAX:
            raise OverflowError(f"Cod {cod} does not fit an INTEGER column")
        values: list[Any] = [cod]
        for name, _ in STAGING_COLUMNS[1:]:
            values.append(str(row[name]))
        for column in self.date_columns:
            values.append(float(row.get(column) or 0.0))
        return tuple(values)

    def _progress(self) -> int:
        if self.total_rows <= 0:
            return PROGRESS_FLOOR
        ratio = min(1.0, self._handled / self.total_rows)
        return PROGRESS_FLOOR + round(ratio * PROGRESS_SPAN)

    async def append(self, row: dict[str, Any]) -> None:
        self._handled += 1
        try:
            self._buffer.append(self._coerce(row))
        except (KeyError, TypeError, ValueError, OverflowError) as exc:
            self.invalid_count += 1
            logger.debug("Skipping staged row for %s: %s", self.table_name, exc)

        if self._handled % BATCH_SIZE == 0:
            self.flush()
            if self._on_progress is not None:
                self._on_progress(self._progress())
            await asyncio.sleep(0)

    def flush(self) -> None:
        if not self._buffer:
            return
        batch, self._buffer = self._buffer, []
        frame = pd.DataFrame(batch, columns=self.column_names)
        frame[COD] = frame[COD].astype("int32")
        try:
            self._cursor.append(self.table_name, frame)
        except duckdb.Error:
            logger.warning("Bulk append into %s failed, retrying row by row", self.table_name)
            self._insert_rows(batch)
        else:
            self.valid_count += len(batch)

    def _insert_rows(self, batch: list[tuple[Any, ...]]) -> None:
        placeholders = ", ".join("?" for _ in self.columns)
        statement = f"INSERT INTO {quote_identifier(self.table_name)} VALUES ({placeholders})"
        for values in batch:
            try:
                self._cursor.execute(statement, list(values))
            except duckdb.Error as exc:
                self.invalid_count += 1
                logger.debug("Row rejected by %s: %s", self.table_name, exc)
            else:
                self.valid_count += 1

    def export(self, path: Path) -> pd.DataFrame:
        """Flush pending rows and write the staging table to a parquet artifact."""

        self.flush()
        frame = self._cursor.execute(f"SELECT * FROM {quote_identifier(self.table_name)}").df()
        write_parquet(path, frame)
        logger.info(
            "Staged %s valid / %s invalid rows into %s", self.valid_count, self.invalid_count, path.name
        )
        return frame

    def close(self) -> None:
        self._cursor.close()
