from __future__ import annotations

import os
import re
import time
from pathlib import Path

JOB_ID_RE = re.compile(r"^[A-Za-z0-9_-]{1,64}$")
STAGED_FILE_RE = re.compile(r"^temp_(?P<job_id>[A-Za-z0-9_-]{1,64})_(?P<ts>\d+)\.parquet$")


def _base_root() -> Path:
    env_root = os.getenv("PREVIEW_DATA_ROOT")
    if env_root:
        return Path(env_root).expanduser().resolve()
    return Path(__file__).resolve().parents[2] / "data"


def ensure_data_root() -> Path:
    """Ensure the data directory exists and return it."""

    root = _base_root()
    root.mkdir(parents=True, exist_ok=True)
    return root


def warehouse_location() -> str:
    name = os.getenv("PREVIEW_WAREHOUSE") or "warehouse.duckdb"
    if name == ":memory:":
        return name
    return str(ensure_data_root() / Path(name).name)


def is_valid_job_id(job_id: str | None) -> bool:
    return bool(job_id) and JOB_ID_RE.match(job_id) is not None


def staged_file_name(job_id: str, timestamp_ms: int | None = None) -> str:
    """Job-scoped, timestamp-qualified artifact name so concurrent jobs never collide."""

    if not is_valid_job_id(job_id):
        raise ValueError(f"invalid job id: {job_id!r}")
    ts = timestamp_ms if timestamp_ms is not None else int(time.time() * 1000)
    return f"temp_{job_id}_{ts}.parquet"


def job_id_from_staged_name(file_name: str) -> str | None:
    match = STAGED_FILE_RE.match(file_name)
    return match.group("job_id") if match else None


def resolve_data_path(file_name: str) -> Path:
    """Resolve a file inside the data directory, refusing anything that escapes it."""

    root = ensure_data_root()
    candidate = (root / Path(file_name).name).resolve()
    if candidate.parent != root:
        raise ValueError(f"invalid data file name: {file_name!r}")
    return candidate
