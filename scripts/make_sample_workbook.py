#!/usr/bin/env python
from __future__ import annotations

import argparse
from pathlib import Path

from openpyxl import Workbook

HEADER = ["Cod", "Itens / Período", "Segmentos", "File_Paths"]
MONTHS = ["Jan", "Fev", "Mar", "Abr", "Mai", "Jun", "Jul", "Ago", "Set", "Out", "Nov", "Dez"]


def main() -> None:
    parser = argparse.ArgumentParser(description="Generate a sample upload workbook with every required sheet")
    parser.add_argument("--output", required=True, help="output file (.xlsx)")
    parser.add_argument("--year", type=int, default=25, help="two or four digit year used in the month headers")
    parser.add_argument("--months", type=int, default=3, help="number of month columns")
    parser.add_argument("--imbalance", type=float, default=0.0, help="amount added to RESULTADO to break the balance")
    args = parser.parse_args()

    headers = HEADER + [f"{month}/{args.year}" for month in MONTHS[: args.months]]
    contabil = [100000.0 + 1000 * index for index in range(args.months)]
    ficticio = [50000.0 + 500 * index for index in range(args.months)]
    resultado = [c + f + args.imbalance for c, f in zip(contabil, ficticio)]

    sheets = {
        "RESULTADO": resultado,
        "CONTABIL": contabil,
        "FICTICIO": ficticio,
        "GERENCIAL": resultado,
    }

    workbook = Workbook()
    workbook.remove(workbook.active)
    for name, values in sheets.items():
        worksheet = workbook.create_sheet(name)
        worksheet.append(headers)
        worksheet.append([1001, "Receita de intermediação", "Empresas I", "/financeiro/receita.xlsx", *values])

    output = Path(args.output)
    output.parent.mkdir(parents=True, exist_ok=True)
    workbook.save(output)
    print(f"Sample workbook written to {output}")


if __name__ == "__main__":
    main()
