#CSV and Excel serializers
"""
Tabular and spreadsheet renderers.

Both take the same ordered headers and row matrix:
- render_csv: comma-delimited text via pandas. Fields containing a comma,
  a double quote or a line break are quoted, inner quotes doubled; None
  becomes an empty field; no trailing newline.
- render_workbook: a single-sheet .xlsx via openpyxl with the headers in
  row 1 and raw cell values below.
"""

from __future__ import annotations
from io import BytesIO
from typing import Sequence, Union

import pandas as pd
from openpyxl import Workbook
from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter

Cell = Union[str, int, float, None]

CSV_MIME_TYPE = "text/csv; charset=utf-8"
XLSX_MIME_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def render_csv(headers: Sequence[str], rows: Sequence[Sequence[Cell]]) -> str:
    """Serialize headers and rows to CSV text."""
    df = pd.DataFrame(list(rows), columns=list(headers), dtype=object)
    text = df.to_csv(index=False, lineterminator="\n")
    # to_csv terminates every record; the last one must not be
    return text[:-1] if text.endswith("\n") else text


def _excel_value(value: Cell) -> Cell:
    if isinstance(value, str):
        return ILLEGAL_CHARACTERS_RE.sub("", value)
    return value


def render_workbook(
    headers: Sequence[str],
    rows: Sequence[Sequence[Cell]],
    sheet_name: str
) -> bytes:
    """Serialize headers and rows into a one-sheet workbook."""
    wb = Workbook()
    ws = wb.active
    ws.title = sheet_name

    ws.append(list(headers))
    for cell in ws[1]:
        cell.font = Font(bold=True)

    for row in rows:
        ws.append([_excel_value(value) for value in row])

    # Auto column width
    for column in ws.columns:
        max_length = max((len(str(cell.value)) for cell in column if cell.value is not None), default=0)
        ws.column_dimensions[get_column_letter(column[0].column)].width = min(max_length + 4, 50)

    buffer = BytesIO()
    wb.save(buffer)
    return buffer.getvalue()

