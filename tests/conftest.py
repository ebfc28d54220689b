import sys
from pathlib import Path
from typing import Callable

import pytest
from openpyxl import Workbook

sys.path.append(str(Path(__file__).resolve().parents[1]))

from backend.application.progress import reset_progress_state
from backend.infrastructure.warehouse import Warehouse, configure_warehouse
from backend.workers.pipeline import reset_pipeline_worker

HEADER = ["Cod", "Itens / Período", "Segmentos", "File_Paths", "Jan/25"]


def single_row_sheets(resultado, contabil, ficticio, gerencial=0, *, cod=1001, segment="Empresas I"):
    """One row per required sheet for the same (Cod, Segmentos, Jan/25)."""

    def rows(value):
        return [HEADER, [cod, "Receita", segment, "/fin/receita.xlsx", value]]

    return {
        "RESULTADO": rows(resultado),
        "CONTABIL": rows(contabil),
        "FICTICIO": rows(ficticio),
        "GERENCIAL": rows(gerencial),
    }


@pytest.fixture(autouse=True)
def reset_state():
    reset_progress_state()
    reset_pipeline_worker()
    yield
    reset_progress_state()
    reset_pipeline_worker()


@pytest.fixture()
def data_root(tmp_path, monkeypatch) -> Path:
    root = tmp_path / "data"
    monkeypatch.setenv("PREVIEW_DATA_ROOT", str(root))
    monkeypatch.setenv("PREVIEW_WAREHOUSE", ":memory:")
    return root


@pytest.fixture()
def warehouse(data_root):
    store = Warehouse(":memory:")
    store.initialise()
    configure_warehouse(store)
    yield store


@pytest.fixture()
def make_workbook(tmp_path) -> Callable[..., Path]:
    def _make(sheets: dict[str, list[list]], filename: str = "upload.xlsx") -> Path:
        workbook = Workbook()
        workbook.remove(workbook.active)
        for name, rows in sheets.items():
            worksheet = workbook.create_sheet(name)
            for row in rows:
                worksheet.append(row)
        path = tmp_path / filename
        workbook.save(path)
        return path

    return _make
