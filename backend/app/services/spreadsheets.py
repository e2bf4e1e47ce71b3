"""
Spreadsheet Helpers
Reading uploaded .xlsx files and writing styled workbooks with openpyxl.

Reading:
    rows = read_rows(content)          # [(sheet_row_number, {header: value}), ...]
    code = column_value(row, "Dealer Code")

Writing:
    wb = Workbook()
    write_table(wb.active, headers, rows, title="Recce Tasks")
    data = workbook_bytes(wb)
"""

import re
from datetime import date, datetime
from io import BytesIO
from typing import Iterable, List, Optional, Sequence, Tuple
from zipfile import BadZipFile

from openpyxl import Workbook, load_workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter
from openpyxl.utils.exceptions import InvalidFileException

from app.core.exceptions import ValidationError


XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

# Brand palette shared with the PDF/PPT reports
PRIMARY = "EAB308"
BORDER_DARK = "B45309"
LIGHT_BG = "FEF3C7"

TITLE_FONT = Font(bold=True, size=16, color="000000")
HEADER_FONT = Font(bold=True, color="000000")
HEADER_FILL = PatternFill(start_color=PRIMARY, end_color=PRIMARY, fill_type="solid")
ZEBRA_FILL = PatternFill(start_color=LIGHT_BG, end_color=LIGHT_BG, fill_type="solid")
THIN = Side(style="thin", color=BORDER_DARK)
CELL_BORDER = Border(left=THIN, right=THIN, top=THIN, bottom=THIN)
CENTER = Alignment(horizontal="center", vertical="center", wrap_text=True)
WRAP = Alignment(vertical="top", wrap_text=True)

DATE_FORMAT = "%d-%b-%Y"


class SpreadsheetError(ValidationError):
    """Uploaded file is not a readable workbook."""


def cell_text(value) -> str:
    """Cell value as trimmed text; whole floats lose their ".0"."""
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, datetime):
        return value.strftime(DATE_FORMAT)
    if isinstance(value, date):
        return value.strftime(DATE_FORMAT)
    return str(value).strip()


def normalise_header(header) -> str:
    return re.sub(r"[^a-z0-9]", "", str(header or "").lower())


def read_rows(content: bytes) -> List[Tuple[int, dict]]:
    """
    Rows of the first sheet keyed by the header row.

    Blank rows are skipped; the returned number is the 1-based sheet row,
    so the first data row is 2.

    Raises:
        SpreadsheetError: content is not an .xlsx workbook
    """
    try:
        wb = load_workbook(BytesIO(content), read_only=True, data_only=True)
    except (InvalidFileException, BadZipFile, KeyError, ValueError, OSError) as exc:
        raise SpreadsheetError(f"Unreadable spreadsheet: {exc}")

    try:
        if not wb.worksheets:
            return []
        rows = wb.worksheets[0].iter_rows(values_only=True)
        header = next(rows, None)
        if header is None:
            return []
        headers = [cell_text(h) for h in header]

        result = []
        for row_number, values in enumerate(rows, start=2):
            if values is None or all(cell_text(v) == "" for v in values):
                continue
            record = {}
            for index, name in enumerate(headers):
                if name:
                    record[name] = values[index] if index < len(values) else None
            result.append((row_number, record))
        return result
    finally:
        wb.close()


def column_value(row: dict, *names: str) -> str:
    """
    Text of the first matching column.

    Exact header names are tried first, then a comparison that ignores case,
    spaces and punctuation ("dealer code" matches "Dealer Code").
    """
    for name in names:
        if name in row:
            return cell_text(row[name])
    normalised = {normalise_header(key): key for key in row}
    for name in names:
        key = normalised.get(normalise_header(name))
        if key is not None:
            return cell_text(row[key])
    return ""


def number_or_none(text: str) -> Optional[float]:
    try:
        return float(text)
    except (TypeError, ValueError):
        return None


def write_table(
    ws,
    headers: Sequence[str],
    rows: Iterable[Sequence],
    title: Optional[str] = None,
    widths: Optional[Sequence[int]] = None,
) -> None:
    """
    Write a styled table: optional merged title block over rows 1-3,
    brand-coloured header row, bordered zebra rows, frozen header.
    """
    last_column = get_column_letter(len(headers))
    header_row = 1
    if title:
        ws.merge_cells(f"A1:{last_column}3")
        ws["A1"] = title
        ws["A1"].font = TITLE_FONT
        ws["A1"].alignment = CENTER
        header_row = 5

    for col, name in enumerate(headers, start=1):
        cell = ws.cell(row=header_row, column=col, value=name)
        cell.font = HEADER_FONT
        cell.fill = HEADER_FILL
        cell.alignment = CENTER
        cell.border = CELL_BORDER

    row_index = header_row
    for row_index, values in enumerate(rows, start=header_row + 1):
        for col, value in enumerate(values, start=1):
            cell = ws.cell(row=row_index, column=col, value=value)
            cell.border = CELL_BORDER
            cell.alignment = WRAP
            if (row_index - header_row) % 2 == 0:
                cell.fill = ZEBRA_FILL

    for col, name in enumerate(headers, start=1):
        width = widths[col - 1] if widths and col - 1 < len(widths) else max(12, len(name) + 4)
        ws.column_dimensions[get_column_letter(col)].width = width

    ws.freeze_panes = ws.cell(row=header_row + 1, column=1)


def new_workbook(sheet_title: str):
    wb = Workbook()
    ws = wb.active
    ws.title = sheet_title[:31]
    return wb, ws


def workbook_bytes(wb) -> bytes:
    buffer = BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


def format_date(value) -> str:
    return value.strftime(DATE_FORMAT) if value else ""
