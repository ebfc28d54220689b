"""Helpers for building DuckDB statements whose column set is only known at runtime.

Values always travel as bound parameters; identifiers (spreadsheet headers,
per-job table names) go through :func:`quote_identifier`.
"""
from __future__ import annotations

import re
from typing import Iterable

_SAFE_NAME = re.compile(r"[^A-Za-z0-9_]")


def quote_identifier(name: str) -> str:
    if "\x00" in name:
        raise ValueError("identifier contains a NUL byte")
    return '"' + name.replace('"', '""') + '"'


def quote_columns(names: Iterable[str]) -> str:
    return ", ".join(quote_identifier(name) for name in names)


def column_definitions(columns: Iterable[tuple[str, str]]) -> str:
    return ", ".join(f"{quote_identifier(name)} {sql_type}" for name, sql_type in columns)


def scoped_table_name(prefix: str, token: str) -> str:
    """``preview_raw`` + job id -> ``preview_raw_<job id with unsafe chars replaced>``."""

    return f"{prefix}_{_SAFE_NAME.sub('_', token)}"
