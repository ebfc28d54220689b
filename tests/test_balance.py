import duckdb
import pandas as pd
import pytest

from backend.core.errors import Severity, UploadError
from backend.workers.balance import find_imbalances, format_brl, validate_sheet_balance


def _frame(rows, months=("Jan/25",)):
    records = []
    for sheet, cod, segment, *values in rows:
        record = {
            "Cod": cod,
            "Itens / Período": "Receita",
            "Segmentos": segment,
            "File_Paths": "/a",
            "sheetName": sheet,
        }
        record.update(dict(zip(months, values)))
        records.append(record)
    return pd.DataFrame(records)


@pytest.fixture()
def cursor():
    connection = duckdb.connect(":memory:")
    yield connection.cursor()
    connection.close()


@pytest.mark.parametrize(
    "value,expected",
    [
        (5000, "R$ 5.000,00"),
        (0.005, "R$ 0,01"),
        (1234567.891, "R$ 1.234.567,89"),
        (-5000, "-R$ 5.000,00"),
        (0, "R$ 0,00"),
    ],
)
def test_format_brl(value, expected):
    assert format_brl(value) == expected


def test_balanced_sheets_pass(cursor):
    frame = _frame(
        [
            ("RESULTADO", 1001, "Empresas I", 150000.0),
            ("CONTABIL", 1001, "Empresas I", 100000.0),
            ("FICTICIO", 1001, "Empresas I", 50000.0),
            ("GERENCIAL", 1001, "Empresas I", 999.0),
        ]
    )
    validate_sheet_balance(cursor, frame, ["Jan/25"])


def test_differences_within_a_cent_are_tolerated(cursor):
    frame = _frame(
        [
            ("RESULTADO", 1001, "Varejo", 100.005),
            ("CONTABIL", 1001, "Varejo", 60.0),
            ("FICTICIO", 1001, "Varejo", 40.0),
        ]
    )
    assert find_imbalances(cursor, frame, ["Jan/25"]) == []


def test_imbalance_is_reported_with_formatted_difference(cursor):
    frame = _frame(
        [
            ("RESULTADO", 1001, "Empresas I", 150000.0),
            ("CONTABIL", 1001, "Empresas I", 100000.0),
            ("FICTICIO", 1001, "Empresas I", 45000.0),
        ]
    )

    with pytest.raises(UploadError) as excinfo:
        validate_sheet_balance(cursor, frame, ["Jan/25"])

    error = excinfo.value.error
    assert error.severity is Severity.CRITICAL
    assert error.message.startswith("Balance validation failed")
    assert "Found 1 imbalance(s)" in error.details
    assert "Diferença = R$ 5.000,00" in error.details
    imbalance = error.context["imbalances"][0]
    assert imbalance["cod"] == 1001
    assert imbalance["segmentos"] == "Empresas I"
    assert imbalance["month"] == "Jan/25"
    assert imbalance["diff"] == pytest.approx(5000.0)
    assert imbalance["diffFormatted"] == "R$ 5.000,00"


def test_imbalances_are_sorted_by_absolute_difference(cursor):
    months = ("Jan/25", "Fev/25")
    frame = _frame(
        [
            ("RESULTADO", 1001, "Varejo", 100.0, 100.0),
            ("CONTABIL", 1001, "Varejo", 50.0, 50.0),
            ("FICTICIO", 1001, "Varejo", 40.0, 80.0),
            ("RESULTADO", 2002, "Atacado", 10.0, 10.0),
            ("CONTABIL", 2002, "Atacado", 5.0, 5.0),
            ("FICTICIO", 2002, "Atacado", 5.0, 5.0),
        ],
        months,
    )

    imbalances = find_imbalances(cursor, frame, list(months))

    assert [(item.cod, item.month, item.diff) for item in imbalances] == [
        (1001, "Fev/25", pytest.approx(-30.0)),
        (1001, "Jan/25", pytest.approx(10.0)),
    ]


def test_missing_sheet_rows_count_as_zero(cursor):
    frame = _frame(
        [
            ("RESULTADO", 1001, "Corporate", 70.0),
            ("CONTABIL", 1001, "Corporate", 70.0),
        ]
    )
    assert find_imbalances(cursor, frame, ["Jan/25"]) == []

    frame = _frame([("CONTABIL", 3003, "Corporate", 12.5)])
    (only,) = find_imbalances(cursor, frame, ["Jan/25"])
    assert only.resultado == 0
    assert only.diff == pytest.approx(-12.5)
