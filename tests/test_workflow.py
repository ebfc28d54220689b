import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

sys.path.append(str(Path(__file__).resolve().parents[1]))

from conftest import HEADER, single_row_sheets

XLSX = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


@pytest.fixture()
def client(data_root):
    from backend.app import create_app

    app = create_app()
    with TestClient(app) as test_client:
        yield test_client


def _upload(client, path: Path, job_id: str, filename: str = "financeiro.xlsx"):
    with path.open("rb") as fp:
        return client.post(
            "/api/upload/process",
            files={"file": (filename, fp, XLSX)},
            data={"jobId": job_id},
        )


def test_end_to_end_workflow(client, make_workbook, data_root):
    # 1. upload a balanced workbook
    path = make_workbook(single_row_sheets(150000, 100000, 50000, 150000))
    response = _upload(client, path, "job-1")
    assert response.status_code == 200
    body = response.json()
    assert body["validCount"] == 4
    assert body["invalidCount"] == 0
    file_name = body["fileName"]
    assert file_name.startswith("temp_job-1_") and file_name.endswith(".parquet")
    assert (data_root / file_name).exists()

    # 2. progress reaches 100%
    progress = client.get("/api/upload/progress/job-1").json()
    assert progress == {"progress": 100, "status": "done", "error": None, "errorSeverity": None}

    # 3. staged rows can be reviewed
    staged = client.get(f"/api/data/temp/{file_name}")
    assert staged.status_code == 200
    items = staged.json()["items"]
    assert {item["sheetName"] for item in items} == {"RESULTADO", "CONTABIL", "FICTICIO", "GERENCIAL"}
    by_sheet = {item["sheetName"]: item for item in items}
    assert by_sheet["RESULTADO"]["Jan/25"] == 150000
    assert by_sheet["FICTICIO"]["Cod"] == 1001

    # 4. finalize as version 1
    response = client.post("/api/upload/finalize", json={"fileName": file_name, "teamId": 1})
    assert response.status_code == 200
    result = response.json()
    assert result == {
        "success": True,
        "fileName": file_name,
        "teamId": 1,
        "team": "Creditos",
        "version": 1,
        "insertedRows": 4,
    }
    assert not (data_root / file_name).exists()

    # 5. same artifact cannot be finalized twice
    response = client.post("/api/upload/finalize", json={"fileName": file_name, "teamId": 1})
    assert response.status_code == 404

    # 6. a second upload becomes version 2
    path = make_workbook(single_row_sheets(200000, 150000, 50000), "segundo.xlsx")
    second = _upload(client, path, "job-2").json()["fileName"]
    response = client.post("/api/upload/finalize", json={"fileName": second, "teamId": 1})
    assert response.json()["version"] == 2
    assert response.json()["insertedRows"] == 3

    # 7. both layers are queryable
    versions = client.get("/api/data/versions", params={"team": "Creditos"}).json()["items"]
    assert [(item["version"], item["row_count"]) for item in versions] == [(1, 4), (2, 3)]

    latest = client.get("/api/data/preview", params={"team": "Creditos"}).json()
    assert latest["version"] == 2
    first = client.get("/api/data/preview", params={"team": "Creditos", "version": 1}).json()
    resultado = [row for row in first["items"] if row["sheet_name"] == "RESULTADO"]
    assert resultado[0]["value"] == 150000
    assert resultado[0]["dat_ref"] == "2025-01-01"


def test_imbalanced_upload_is_rejected_and_cleaned(client, make_workbook, data_root):
    path = make_workbook(single_row_sheets(150000, 100000, 45000))

    response = _upload(client, path, "job-bad")

    assert response.status_code == 422
    body = response.json()
    assert body["errorSeverity"] == "critical"
    assert "R$ 5.000,00" in body["error"]
    assert body["context"]["imbalanceCount"] == 1
    assert list(data_root.glob("temp_*")) == []

    progress = client.get("/api/upload/progress/job-bad").json()
    assert progress["status"] == "error"
    assert progress["progress"] == 0
    assert progress["errorSeverity"] == "critical"
    assert "Balance validation failed" in progress["error"]


def test_missing_sheet_leaves_no_artifact(client, make_workbook, data_root):
    sheets = single_row_sheets(150000, 100000, 50000)
    del sheets["GERENCIAL"]
    path = make_workbook(sheets)

    response = _upload(client, path, "job-missing")

    assert response.status_code == 422
    assert response.json()["context"]["missingSheets"] == ["GERENCIAL"]
    assert list(data_root.glob("temp_*")) == []


def test_invalid_row_reports_sheet_and_row(client, make_workbook):
    sheets = single_row_sheets(150000, 100000, 50000)
    sheets["CONTABIL"].append([1002, "Custo", "Atacado X", "/fin/custo.xlsx", 10])
    path = make_workbook(sheets)

    response = _upload(client, path, "job-row")

    assert response.status_code == 422
    context = response.json()["context"]
    assert context["sheet"] == "CONTABIL"
    assert context["row"] == 3
    assert context["actualValue"] == "Atacado X"


def test_missing_business_column_is_rejected(client, make_workbook):
    sheets = single_row_sheets(150000, 100000, 50000)
    sheets["FICTICIO"] = [
        ["Cod", "Itens / Período", "File_Paths", "Jan/25"],
        [1001, "Receita", "/fin/receita.xlsx", 50000],
    ]
    path = make_workbook(sheets)

    response = _upload(client, path, "job-cols")

    assert response.status_code == 422
    assert response.json()["context"]["missingColumns"] == ["Segmentos"]


def test_progress_of_unknown_job(client):
    response = client.get("/api/upload/progress/nobody")
    assert response.json() == {"progress": 0, "status": "processing", "error": None, "errorSeverity": None}


def test_upload_rejects_other_file_types(client, tmp_path):
    path = tmp_path / "notes.csv"
    path.write_text("Cod,Segmentos\n", encoding="utf-8")

    response = _upload(client, path, "job-csv", filename="notes.csv")

    assert response.status_code == 400
    assert response.json()["message"] == "Invalid file type"


def test_upload_rejects_unsafe_job_id(client, make_workbook):
    path = make_workbook(single_row_sheets(1, 1, 0))
    response = _upload(client, path, "../escape")
    assert response.status_code == 400


def test_finalize_input_errors(client, make_workbook):
    response = client.post("/api/upload/finalize", json={"teamId": 1})
    assert response.status_code == 400

    response = client.post("/api/upload/finalize", json={"fileName": "temp_x_1.parquet", "teamId": "1"})
    assert response.status_code == 400

    path = make_workbook(single_row_sheets(1, 1, 0))
    file_name = _upload(client, path, "job-team").json()["fileName"]
    response = client.post("/api/upload/finalize", json={"fileName": file_name, "teamId": 42})
    assert response.status_code == 404
    assert response.json()["message"] == "team not found"

    response = client.post("/api/upload/finalize", json={"fileName": "../warehouse.duckdb", "teamId": 1})
    assert response.status_code == 400


def test_teams_are_seeded(client):
    response = client.get("/api/data/teams")
    assert response.json() == [
        {"id": 0, "name": "CFO"},
        {"id": 1, "name": "Creditos"},
        {"id": 2, "name": "Investimentos"},
    ]


def test_extra_columns_are_ignored(client, make_workbook):
    sheets = single_row_sheets(150000, 100000, 50000)
    sheets["RESULTADO"] = [
        HEADER + ["Comentário"],
        [1001, "Receita", "Empresas I", "/fin/receita.xlsx", 150000, "ok"],
    ]
    path = make_workbook(sheets)

    response = _upload(client, path, "job-extra")

    assert response.status_code == 200
    assert response.json()["validCount"] == 4


def test_workbook_without_rows_is_a_warning(client, make_workbook, data_root):
    sheets = {name: [HEADER] for name in ("RESULTADO", "CONTABIL", "FICTICIO", "GERENCIAL")}
    path = make_workbook(sheets)

    response = _upload(client, path, "job-empty")

    assert response.status_code == 422
    assert response.json()["errorSeverity"] == "warning"
    assert client.get("/api/upload/progress/job-empty").json()["errorSeverity"] == "warning"
    assert list(data_root.glob("temp_*")) == []


def test_month_headers_differing_in_case_or_year_digits_are_one_month(client, make_workbook):
    sheets = single_row_sheets(150000, 100000, 50000, 150000)
    sheets["CONTABIL"][0] = HEADER[:4] + ["JAN/25"]
    sheets["FICTICIO"][0] = HEADER[:4] + ["jan/2025"]
    path = make_workbook(sheets)

    response = _upload(client, path, "job-case")

    assert response.status_code == 200
    file_name = response.json()["fileName"]
    staged = client.get(f"/api/data/temp/{file_name}").json()["items"]
    assert all("Jan/25" in item and "JAN/25" not in item for item in staged)

    response = client.post("/api/upload/finalize", json={"fileName": file_name, "teamId": 0})
    assert response.json()["insertedRows"] == 4
    rows = client.get("/api/data/preview", params={"team": "CFO"}).json()["items"]
    assert {row["dat_ref"] for row in rows} == {"2025-01-01"}


def test_upload_without_job_id_is_a_structured_error(client, make_workbook):
    path = make_workbook(single_row_sheets(1, 1, 0))
    with path.open("rb") as fp:
        response = client.post("/api/upload/process", files={"file": ("financeiro.xlsx", fp, XLSX)})

    assert response.status_code == 400
    body = response.json()
    assert body["message"] == "Missing or invalid jobId"
    assert body["errorSeverity"] == "critical"
