from __future__ import annotations

import logging
from pathlib import Path

from backend.infrastructure.warehouse import Warehouse

logger = logging.getLogger(__name__)


def cleanup_staging(
    warehouse: Warehouse,
    artifact: Path | None = None,
    staging_table: str | None = None,
) -> None:
    """Remove a job's parquet artifact and staging table.

    Failures are logged and swallowed so they never replace the error that is
    being reported to the client.
    """

    if artifact is not None:
        for path in (artifact, artifact.with_name(artifact.name + ".tmp")):
            try:
                if path.exists():
                    path.unlink()
                    logger.info("Removed staged artifact %s", path.name)
            except Exception:
                logger.warning("Failed to remove staged artifact %s", path, exc_info=True)

    if staging_table:
        try:
            warehouse.drop_table(staging_table)
        except Exception:
            logger.warning("Failed to drop staging table %s", staging_table, exc_info=True)
