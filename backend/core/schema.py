from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Literal, get_args

from pydantic import BaseModel, ConfigDict, Field

SheetName = Literal["RESULTADO", "CONTABIL", "FICTICIO", "GERENCIAL"]
Segmento = Literal[
    "Empresas I",
    "Empresas II",
    "Empresas III",
    "Varejo",
    "Atacado",
    "Corporate",
]

REQUIRED_SHEETS: tuple[str, ...] = get_args(SheetName)
SEGMENTOS: tuple[str, ...] = get_args(Segmento)
BALANCE_SHEETS: tuple[str, ...] = ("RESULTADO", "CONTABIL", "FICTICIO")

COD = "Cod"
ITENS_PERIODO = "Itens / Período"
SEGMENTOS_COL = "Segmentos"
FILE_PATHS = "File_Paths"
SHEET_NAME = "sheetName"

BUSINESS_HEADERS: tuple[str, ...] = (COD, ITENS_PERIODO, SEGMENTOS_COL, FILE_PATHS)

# physical layout of the staging table, date columns follow as DOUBLE
STAGING_COLUMNS: tuple[tuple[str, str], ...] = (
    (COD, "INTEGER"),
    (ITENS_PERIODO, "VARCHAR"),
    (SEGMENTOS_COL, "VARCHAR"),
    (FILE_PATHS, "VARCHAR"),
    (SHEET_NAME, "VARCHAR"),
)


class FinancialRow(BaseModel):
    """Business fields of one spreadsheet row, keyed by the sheet headers."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    cod: int = Field(alias=COD)
    itens_periodo: str = Field(alias=ITENS_PERIODO)
    segmentos: Segmento = Field(alias=SEGMENTOS_COL)
    file_paths: str = Field(alias=FILE_PATHS)
    sheet_name: SheetName = Field(alias=SHEET_NAME)


class PreviewRow(BaseModel):
    cod: int
    itens_periodo: str
    segmentos: str
    file_paths: str
    sheet_name: str
    team_name: str
    dat_ref: date
    value: Decimal
    version: int
    updated_at: datetime | None = None


class Team(BaseModel):
    id: int
    name: str
