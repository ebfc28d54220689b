"""Header/schema parsing for the financial upload workbook.

Only the required sheets are looked at.  For each of them the first row is
the header row: headers that follow the month grammar (``Jan/25``,
``Fev/2025``...) become measure columns, the four business headers are
located by exact name, and anything else is ignored.
"""

from __future__ import annotations

import zipfile
from contextlib import contextmanager
from datetime import date
from pathlib import Path
from typing import Any, BinaryIO, Iterator

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException
from openpyxl.workbook.workbook import Workbook

from backend.core.dates import canonical_header, header_from_cell, header_to_date, is_date_header
from backend.core.errors import critical
from backend.core.schema import BUSINESS_HEADERS, REQUIRED_SHEETS
from backend.domain.uploads import SheetLayout, WorkbookLayout


@contextmanager
def open_workbook(source: Path | BinaryIO) -> Iterator[Workbook]:
    """Open a workbook in streaming (read-only) mode."""

    try:
        workbook = load_workbook(source, read_only=True, data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError) as exc:
        raise critical(
            "Could not read Excel file",
            f"The uploaded file is not a valid .xlsx workbook: {exc}",
            {"reason": exc.__class__.__name__},
        ) from exc
    try:
        yield workbook
    finally:
        workbook.close()


def classify_headers(sheet_name: str, headers: list[str]) -> SheetLayout:
    layout = SheetLayout(name=sheet_name, headers=headers)
    for index, header in enumerate(headers):
        if is_date_header(header):
            layout.date_indices.append((index, canonical_header(header)))
        elif header in BUSINESS_HEADERS and header not in layout.business_indices:
            layout.business_indices[header] = index
    return layout


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def scan_workbook(workbook: Workbook) -> WorkbookLayout:
    """Read the header row of every required sheet.

    Raises a critical error naming the required sheets that never appeared.
    """

    layout = WorkbookLayout()
    for worksheet in workbook.worksheets:
        name = worksheet.title
        if name not in REQUIRED_SHEETS or name in layout.found_sheets:
            continue
        layout.found_sheets.append(name)

        first_row = next(worksheet.iter_rows(min_row=1, max_row=1, values_only=True), None)
        headers = [header_from_cell(value) for value in (first_row or ())]
        sheet = classify_headers(name, headers)
        sheet.estimated_rows = max(0, (worksheet.max_row or 1) - 1)
        layout.sheets.append(sheet)

    missing = [sheet for sheet in REQUIRED_SHEETS if sheet not in layout.found_sheets]
    if missing:
        raise critical(
            "Missing required sheets in Excel file",
            f"The following sheets are required but were not found: {', '.join(missing)}",
            {
                "missingSheets": missing,
                "requiredSheets": list(REQUIRED_SHEETS),
                "foundSheets": list(layout.found_sheets),
            },
        )
    _unify_month_headers(layout)
    return layout


def _unify_month_headers(layout: WorkbookLayout) -> None:
    """Give every month one column name: the first spelling seen in the workbook.

    ``Jan/25`` and ``Jan/2025`` name the same month; a sheet carrying both is
    rejected.
    """

    spellings: dict[date, str] = {}
    for sheet in layout.sheets:
        seen: dict[date, str] = {}
        unified: list[tuple[int, str]] = []
        for index, header in sheet.date_indices:
            month = header_to_date(header)
            if month in seen:
                raise critical(
                    f'Duplicate month column in sheet "{sheet.name}"',
                    f'Columns "{seen[month]}" and "{header}" refer to the same month.',
                    {"sheet": sheet.name, "headers": [seen[month], header]},
                )
            seen[month] = header
            unified.append((index, spellings.setdefault(month, header)))
        sheet.date_indices = unified


def iter_data_rows(workbook: Workbook, sheet_name: str) -> Iterator[tuple[int, tuple[Any, ...]]]:
    """Yield ``(spreadsheet row number, values)`` for every non-empty data row."""

    worksheet = workbook[sheet_name]
    for row_number, values in enumerate(worksheet.iter_rows(min_row=2, values_only=True), start=2):
        if all(_is_blank(value) for value in values):
            continue
        yield row_number, values
