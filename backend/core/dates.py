"""Month/year column headers written with Brazilian month abbreviations."""

from __future__ import annotations

import re
from datetime import date, datetime

BRAZILIAN_TO_ENGLISH_MONTHS: dict[str, str] = {
    "Jan": "Jan",
    "Fev": "Feb",
    "Mar": "Mar",
    "Abr": "Apr",
    "Mai": "May",
    "Jun": "Jun",
    "Jul": "Jul",
    "Ago": "Aug",
    "Set": "Sep",
    "Out": "Oct",
    "Nov": "Nov",
    "Dez": "Dec",
}

BRAZILIAN_MONTHS: tuple[str, ...] = tuple(BRAZILIAN_TO_ENGLISH_MONTHS)

_ENGLISH_MONTH_NUMBERS: dict[str, int] = {
    english: index for index, english in enumerate(BRAZILIAN_TO_ENGLISH_MONTHS.values(), start=1)
}

MONTH_HEADER_RE = re.compile(
    r"^\s*(" + "|".join(BRAZILIAN_MONTHS) + r")\s*/\s*(\d{2}|\d{4})\s*$",
    re.IGNORECASE,
)


def _canonical_month(token: str) -> str:
    return token[:1].upper() + token[1:].lower()


def is_date_header(header: object) -> bool:
    return isinstance(header, str) and MONTH_HEADER_RE.match(header) is not None


def header_from_cell(value: object) -> str:
    """Render a header cell as text; real date cells become ``Mmm/yyyy``."""

    if value is None:
        return ""
    if isinstance(value, (datetime, date)):
        return f"{BRAZILIAN_MONTHS[value.month - 1]}/{value.year:04d}"
    return str(value).strip()


def canonical_header(header: str) -> str:
    """``" JAN / 25 "`` -> ``"Jan/25"``; non-matching text is returned unchanged."""

    match = MONTH_HEADER_RE.match(header)
    if not match:
        return header
    month, year = match.groups()
    return f"{_canonical_month(month)}/{year}"


def convert_brazilian_header(header: str) -> str:
    """``"Fev/25"`` -> ``"Feb/25"``; non-matching text is returned unchanged.

    The year keeps its original number of digits.
    """

    match = MONTH_HEADER_RE.match(header)
    if not match:
        return header
    month, year = match.groups()
    english = BRAZILIAN_TO_ENGLISH_MONTHS.get(_canonical_month(month))
    if english is None:
        return header
    return f"{english}/{year}"


def header_to_date(header: str) -> date:
    """Resolve a date header to the first day of its month.

    Two-digit years follow ``strptime``'s ``%y`` pivot, four-digit years ``%Y``.
    """

    if not MONTH_HEADER_RE.match(header):
        raise ValueError(f"not a month header: {header!r}")
    month_token, year = convert_brazilian_header(header).split("/")
    fmt = "%y" if len(year) == 2 else "%Y"
    parsed_year = datetime.strptime(year, fmt).year
    return date(parsed_year, _ENGLISH_MONTH_NUMBERS[month_token], 1)
