"""Cross-sheet check: RESULTADO must equal CONTABIL + FICTICIO."""
from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

import duckdb
import pandas as pd

from backend.core.errors import critical
from backend.core.schema import BALANCE_SHEETS, COD, SEGMENTOS_COL, SHEET_NAME
from backend.core.sql import quote_columns, quote_identifier
from backend.domain.uploads import Imbalance

BALANCE_TOLERANCE = 0.01
_VIEW_NAME = "staged_rows"


def format_brl(value: float | Decimal) -> str:
    """Render an amount the way pt-BR shows currency, e.g. ``R$ 5.000,00``."""

    amount = Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    sign = "-" if amount < 0 else ""
    text = f"{abs(amount):,.2f}".translate(str.maketrans(",.", ".,"))
    return f"{sign}R$ {text}"


def _balance_query(date_columns: list[str]) -> tuple[str, dict[str, str]]:
    resultado, contabil, ficticio = BALANCE_SHEETS
    return f"""
        WITH melted AS (
            SELECT
                {quote_identifier(COD)} AS cod,
                {quote_identifier(SEGMENTOS_COL)} AS segmentos,
                {quote_identifier(SHEET_NAME)} AS sheet_name,
                month,
                COALESCE(value, 0) AS value
            FROM {_VIEW_NAME}
            UNPIVOT (value FOR month IN ({quote_columns(date_columns)}))
        ),
        pivoted AS (
            SELECT
                cod,
                segmentos,
                month,
                SUM(CASE WHEN sheet_name = $resultado THEN value ELSE 0 END) AS resultado,
                SUM(CASE WHEN sheet_name = $contabil THEN value ELSE 0 END) AS contabil,
                SUM(CASE WHEN sheet_name = $ficticio THEN value ELSE 0 END) AS ficticio
            FROM melted
            WHERE sheet_name IN ($resultado, $contabil, $ficticio)
            GROUP BY cod, segmentos, month
        )
        SELECT
            cod,
            segmentos,
            month,
            resultado,
            contabil,
            ficticio,
            resultado - (contabil + ficticio) AS diff
        FROM pivoted
        WHERE ABS(resultado - (contabil + ficticio)) > $tolerance
        ORDER BY ABS(resultado - (contabil + ficticio)) DESC, cod, segmentos, month
    """, {
        "resultado": resultado,
        "contabil": contabil,
        "ficticio": ficticio,
    }


def find_imbalances(
    cursor: duckdb.DuckDBPyConnection,
    frame: pd.DataFrame,
    date_columns: list[str],
    *,
    tolerance: float = BALANCE_TOLERANCE,
) -> list[Imbalance]:
    """Every (cod, segment, month) whose sums break the invariant, worst first."""

    if not date_columns or frame.empty:
        return []
    query, params = _balance_query(date_columns)
    cursor.register(_VIEW_NAME, frame)
    try:
        rows = cursor.execute(query, {**params, "tolerance": tolerance}).fetchall()
    finally:
        cursor.unregister(_VIEW_NAME)
    return [
        Imbalance(
            cod=int(cod),
            segmentos=str(segmentos),
            month=str(month),
            resultado=float(resultado),
            contabil=float(contabil),
            ficticio=float(ficticio),
            diff=float(diff),
        )
        for cod, segmentos, month, resultado, contabil, ficticio, diff in rows
    ]


def describe_imbalance(item: Imbalance) -> str:
    return "\n".join(
        [
            f"Cod: {item.cod}",
            f"Segmentos: {item.segmentos}",
            f"Mês: {item.month}",
            f"RESULTADO = {format_brl(item.resultado)}",
            f"CONTABIL  = {format_brl(item.contabil)}",
            f"FICTICIO  = {format_brl(item.ficticio)}",
            f"Diferença = {format_brl(item.diff)}",
        ]
    )


def validate_sheet_balance(
    cursor: duckdb.DuckDBPyConnection,
    frame: pd.DataFrame,
    date_columns: list[str],
) -> None:
    """Reject the staged data when any triple is out of balance.

    The full list is reported, sorted by descending absolute difference.
    """

    imbalances = find_imbalances(cursor, frame, date_columns)
    if not imbalances:
        return
    details = "\n\n".join(describe_imbalance(item) for item in imbalances)
    raise critical(
        'Balance validation failed: sheet "RESULTADO" must equal "CONTABIL" + "FICTICIO" '
        "for every Cod/Segmentos/mês.",
        f"Found {len(imbalances)} imbalance(s):\n\n{details}",
        {
            "imbalanceCount": len(imbalances),
            "imbalances": [
                {**item.to_dict(), "diffFormatted": format_brl(item.diff)} for item in imbalances
            ],
        },
    )
