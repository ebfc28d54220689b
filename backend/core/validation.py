from __future__ import annotations

import math
from decimal import Decimal, InvalidOperation
from typing import Any

from pydantic import ValidationError

from backend.core.errors import critical
from backend.core.schema import (
    BUSINESS_HEADERS,
    COD,
    FILE_PATHS,
    ITENS_PERIODO,
    REQUIRED_SHEETS,
    SEGMENTOS,
    SEGMENTOS_COL,
    SHEET_NAME,
    FinancialRow,
)
from backend.domain.uploads import SheetLayout

_ENUM_OPTIONS: dict[str, tuple[str, ...]] = {
    SEGMENTOS_COL: SEGMENTOS,
    SHEET_NAME: REQUIRED_SHEETS,
}


def _display(value: Any) -> str:
    return "" if value is None else str(value)


def _expected_for(issue: dict[str, Any], field_name: str) -> str:
    kind = str(issue.get("type") or "")
    if kind in {"literal_error", "enum"} and field_name in _ENUM_OPTIONS:
        return f"one of [{', '.join(_ENUM_OPTIONS[field_name])}]"
    if kind.startswith("int_"):
        return "type of int"
    if kind.startswith("string_"):
        return "type of string"
    if kind == "missing":
        return "present"
    return str(issue.get("msg") or kind)


def build_candidate(values: tuple[Any, ...] | list[Any], layout: SheetLayout) -> dict[str, Any]:
    """Pick the four business fields out of a raw row and tag it with the sheet."""

    def cell(header: str) -> Any:
        index = layout.business_indices.get(header)
        if index is None or index >= len(values):
            return None
        return values[index]

    def text(header: str) -> str:
        value = cell(header)
        return "" if value is None else str(value)

    return {
        COD: cell(COD),
        ITENS_PERIODO: text(ITENS_PERIODO),
        SEGMENTOS_COL: text(SEGMENTOS_COL),
        FILE_PATHS: text(FILE_PATHS),
        SHEET_NAME: layout.name,
    }


def validate_business_row(candidate: dict[str, Any], sheet_name: str, row_number: int) -> FinancialRow:
    """Validate a candidate record; the first issue becomes the reported error."""

    try:
        return FinancialRow.model_validate(candidate)
    except ValidationError as exc:
        issues = exc.errors()
        described: list[dict[str, Any]] = []
        for issue in issues:
            field_name = ".".join(str(part) for part in issue.get("loc", ()))
            described.append(
                {
                    "field": field_name,
                    "value": candidate.get(field_name),
                    "expected": _expected_for(issue, field_name),
                    "type": issue.get("type"),
                }
            )
        first = described[0]
        message = (
            f'Validation error in sheet "{sheet_name}" on row {row_number}: '
            f'the value "{_display(first["value"])}" in field "{first["field"]}" '
            f'=> value should be {first["expected"]}.'
        )
        details = "; ".join(
            f'Field "{item["field"]}" has value "{_display(item["value"])}" => should be {item["expected"]}'
            for item in described
        )
        raise critical(
            message,
            details,
            {
                "sheet": sheet_name,
                "row": row_number,
                "field": first["field"],
                "actualValue": first["value"],
                "expectedValue": first["expected"],
                "allIssues": described,
            },
        ) from exc


def _to_number(value: Any) -> float:
    if value is None:
        return 0.0
    if isinstance(value, bool):
        raise ValueError("boolean is not a number")
    if isinstance(value, (int, float, Decimal)):
        number = float(value)
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return 0.0
        try:
            number = float(Decimal(text))
        except InvalidOperation as exc:
            raise ValueError(text) from exc
    else:
        raise ValueError(f"unsupported cell type {type(value).__name__}")
    if not math.isfinite(number):
        raise ValueError("number is not finite")
    return number


def coerce_measure(value: Any, *, sheet_name: str, row_number: int, column: str) -> float:
    """Empty cells count as zero; anything else must be a finite number."""

    try:
        return _to_number(value)
    except ValueError as exc:
        raise critical(
            f'In sheet "{sheet_name}" on row {row_number}: the value "{value}" in column "{column}" '
            "=> value should be type of number (numeric/decimal value).",
            f'Column "{column}" contains non-numeric value "{value}" at row {row_number}. '
            "Expected a numeric value for date columns.",
            {
                "sheet": sheet_name,
                "row": row_number,
                "column": column,
                "actualValue": value,
                "expectedType": "number",
            },
        ) from exc


def parse_sheet_row(
    values: tuple[Any, ...] | list[Any],
    layout: SheetLayout,
    row_number: int,
    date_columns: list[str],
) -> dict[str, Any]:
    """Validate one data row and return it in staging shape.

    Date columns the sheet does not carry are zero-filled so every staged row
    has the same column set.
    """

    candidate = build_candidate(values, layout)
    record = validate_business_row(candidate, layout.name, row_number)

    row: dict[str, Any] = {
        COD: record.cod,
        ITENS_PERIODO: record.itens_periodo,
        SEGMENTOS_COL: record.segmentos,
        FILE_PATHS: record.file_paths,
        SHEET_NAME: record.sheet_name,
    }
    for column in date_columns:
        row[column] = 0.0
    for index, header in layout.date_indices:
        raw = values[index] if index < len(values) else None
        row[header] = coerce_measure(raw, sheet_name=layout.name, row_number=row_number, column=header)
    return row


def missing_business_headers(layout: SheetLayout) -> list[str]:
    return [header for header in BUSINESS_HEADERS if header not in layout.business_indices]


__all__ = [
    "build_candidate",
    "coerce_measure",
    "missing_business_headers",
    "parse_sheet_row",
    "validate_business_row",
]
